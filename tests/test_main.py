"""Test the command line entry point."""

import logging
import signal
from unittest.mock import AsyncMock, Mock, patch

import pytest

from odata_delta_tracker import __main__ as cli
from odata_delta_tracker.config import TrackerConfig
from odata_delta_tracker.errors import ConfigurationError, DecodingError, UnexpectedStatusError
from odata_delta_tracker.models import TrackingSummary

from conftest import page


def test_parse_args():
    args = cli.parse_args(["--env-file", "prod.env", "--verbose", "--collection", "Cubes"])
    assert args.env_file == "prod.env"
    assert args.verbose is True
    assert args.collection == "Cubes"


def test_main_success_applies_overrides():
    config = TrackerConfig(service_root_url="http://localhost:5001/api/v1/")
    with patch.object(cli.TrackerConfig, "from_env", return_value=config) as from_env, patch.object(
        cli, "run", new=AsyncMock(return_value=TrackingSummary())
    ) as run:
        assert cli.main(["--env-file", "x.env", "--verbose", "--collection", "Cubes"]) == 0

    from_env.assert_called_once_with("x.env")
    used = run.await_args.args[0]
    assert used.verbose is True
    assert used.collection == "Cubes"


def test_main_reports_library_errors(caplog):
    error = UnexpectedStatusError("Version check failed.", 401, "Unauthorized", "denied")
    config = TrackerConfig(service_root_url="http://localhost:5001/api/v1/")
    with patch.object(cli.TrackerConfig, "from_env", return_value=config), patch.object(
        cli, "run", new=AsyncMock(side_effect=error)
    ), caplog.at_level(logging.ERROR, logger="odata_delta_tracker"):
        assert cli.main([]) == 1

    assert "401 Unauthorized" in caplog.text
    assert "denied" in caplog.text


def test_main_missing_configuration():
    with patch.object(
        cli.TrackerConfig, "from_env", side_effect=ConfigurationError("TM1_SERVICE_ROOT_URL is not set")
    ):
        assert cli.main([]) == 1


def test_install_signal_handlers_registers_stop():
    tracker = Mock()
    loop = Mock()
    with patch.object(cli.asyncio, "get_running_loop", return_value=loop):
        cli._install_signal_handlers(tracker)

    registered = {c.args[0]: c.args[1] for c in loop.add_signal_handler.call_args_list}
    assert registered == {signal.SIGTERM: tracker.stop, signal.SIGINT: tracker.stop}


@pytest.mark.asyncio
async def test_run_against_server(odata_service):
    odata_service.add_text("11.8.01300.3")
    odata_service.add_json(page([], next_link="MessageLogEntries?page=2"))
    odata_service.add_json(page([]))
    config = TrackerConfig(
        service_root_url=odata_service.root_url,
        user="admin",
        password="apple",
        interval=1,
    )

    with patch.object(cli, "_install_signal_handlers") as install:
        summary = await cli.run(config)

    install.assert_called_once()
    assert summary.requests == 2
    assert odata_service.paths == [
        "/api/v1/Configuration/ProductVersion/$value",
        "/api/v1/MessageLogEntries",
        "/api/v1/MessageLogEntries?page=2",
    ]


@pytest.mark.asyncio
async def test_run_non_object_entity_raises_decoding_error(odata_service):
    odata_service.add_text("11.8.01300.3")
    odata_service.add_json({"value": ["oops"]})
    config = TrackerConfig(service_root_url=odata_service.root_url, interval=1)

    with patch.object(cli, "_install_signal_handlers"), pytest.raises(
        DecodingError, match="not a JSON object"
    ):
        await cli.run(config)
