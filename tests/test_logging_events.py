# tests/test_logging_events.py
import asyncio
import json
import logging
import sys

import pytest

from runscripts.domain import Event
from runscripts.services.eventbus import LocalEventBus, emit
from runscripts.services.logging import JsonFormatter, attach_event_logger, setup_logging


class _Collect(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def collected():
    logger = logging.getLogger("runscripts.test.events")
    handler = _Collect()
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    yield logger, handler.records
    logger.removeHandler(handler)


def test_setup_logging_writes_json_file(tmp_path):
    logger = setup_logging("INFO", tmp_path / "logs")
    logging.getLogger("runscripts.test").info("hello", extra={"extra": {"k": 1}})
    for h in logger.handlers:
        h.flush()

    logfile = tmp_path / "logs" / "runscripts.log"
    assert logfile.exists()
    entry = json.loads(logfile.read_text(encoding="utf-8").splitlines()[-1])
    assert entry["msg"] == "hello"
    assert entry["logger"] == "runscripts.test"
    assert entry["level"] == "INFO"
    assert entry["k"] == 1


def test_setup_logging_twice_replaces_handlers(tmp_path):
    setup_logging("DEBUG", tmp_path)
    logger = setup_logging("warning")
    assert len(logger.handlers) == 1
    assert logger.level == logging.WARNING
    assert setup_logging("nonsense").level == logging.INFO


def test_json_formatter_includes_exception():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.LogRecord("runscripts", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())
    data = json.loads(JsonFormatter().format(record))
    assert data["msg"] == "failed"
    assert "RuntimeError: boom" in data["exc"]


def test_bus_prefix_subscription_and_unsubscribe():
    bus = LocalEventBus()
    got = []
    unsubscribe = bus.subscribe("script.", lambda ev: got.append(ev.type))
    emit(bus, "script.start", {"index": 0}, "test")
    emit(bus, "run.summary", {}, "test")
    emit(bus, "script.exit", {"index": 0}, "test")
    unsubscribe()
    emit(bus, "script.start", {"index": 1}, "test")
    assert got == ["script.start", "script.exit"]


def test_failing_handler_does_not_stop_others():
    bus = LocalEventBus()
    got = []

    def broken(ev):
        raise RuntimeError("handler bug")

    bus.subscribe("", broken)
    bus.subscribe("*", got.append)
    emit(bus, "run.summary", {"total": 0}, "test")
    assert [e.type for e in got] == ["run.summary"]


@pytest.mark.asyncio
async def test_async_handler_runs_on_loop():
    bus = LocalEventBus()
    got = []

    async def handler(ev):
        got.append(ev.payload["index"])

    bus.subscribe("script.", handler)
    emit(bus, "script.start", {"index": 3}, "test")
    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert got == [3]


def test_emit_without_bus_is_noop():
    emit(None, "script.start", {}, "test")


def test_event_logger_levels(collected):
    logger, records = collected
    bus = LocalEventBus()
    attach_event_logger(bus, logger)
    bus.publish(Event(type="script.exit", payload={"index": 0, "success": True}, source="t", ts=0.0))
    bus.publish(Event(type="script.exit", payload={"index": 1, "success": False}, source="t", ts=0.0))
    bus.publish(Event(type="run.error", payload={"index": 2}, source="t", ts=0.0))

    assert [(r.getMessage(), r.levelno) for r in records] == [
        ("script.exit", logging.INFO),
        ("script.exit", logging.WARNING),
        ("run.error", logging.ERROR),
    ]
    assert records[1].extra["payload"] == {"index": 1, "success": False}
    assert records[2].extra["source"] == "t"
