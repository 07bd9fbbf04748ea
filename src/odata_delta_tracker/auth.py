"""
Authorization headers for the authentication modes the server accepts.
"""

import base64

import aiohttp

CAM = "CAM"
TM1 = "TM1"


def build_authorization_header(
    mode: str, user: str, password: str, namespace: str = ""
) -> str:
    """
    Build the value of the ``Authorization`` header.

    Args:
        mode: ``CAM`` for CAM authentication; anything else means Basic
        user: User name
        password: Password
        namespace: CAM namespace, only used for ``CAM``

    Returns:
        The header value
    """
    if mode.upper() == CAM:
        credentials = f"{user}:{password}:{namespace}".encode("utf-8")
        return "CAMNamespace " + base64.b64encode(credentials).decode("ascii")

    return aiohttp.BasicAuth(user, password).encode()
