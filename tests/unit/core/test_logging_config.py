"""Tests unitarios para el contexto de logging."""

import asyncio
import logging

import pytest

from feedsync.core.logging_config import ContextFilter, LogContext, get_logging_configuration


class RecordingHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)

    def by_message(self, message):
        return next(record for record in self.records if record.getMessage() == message)


@pytest.fixture
def recorded():
    logger = logging.getLogger("tests.log_context")
    handler = RecordingHandler()
    handler.addFilter(ContextFilter())
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    yield logger, handler
    logger.removeHandler(handler)


class TestLogContext:
    """Tests para LogContext y ContextFilter."""

    def test_context_is_added_and_removed(self, recorded):
        logger, handler = recorded

        with LogContext(sync_id="full_1", operation="catalog_sync"):
            logger.info("inside")
        logger.info("outside")

        inside = handler.by_message("inside")
        outside = handler.by_message("outside")
        assert inside.sync_id == "full_1"
        assert inside.operation == "catalog_sync"
        assert not hasattr(outside, "sync_id")
        assert not hasattr(outside, "operation")

    def test_nested_context_restores_outer(self, recorded):
        logger, handler = recorded

        with LogContext(sync_id="full_1", operation="catalog_sync"):
            with LogContext(operation="feed_generation"):
                logger.info("nested")
            logger.info("outer")

        assert handler.by_message("nested").sync_id == "full_1"
        assert handler.by_message("nested").operation == "feed_generation"
        assert handler.by_message("outer").operation == "catalog_sync"

    @pytest.mark.asyncio
    async def test_interleaved_tasks_do_not_leak(self, recorded):
        """Una sync y un feed concurrentes; la sync sale primero y nada queda pegado después."""
        logger, handler = recorded
        sync_entered = asyncio.Event()
        feed_entered = asyncio.Event()
        sync_exited = asyncio.Event()

        async def sync_side():
            with LogContext(sync_id="full_1", operation="catalog_sync"):
                sync_entered.set()
                await feed_entered.wait()
                logger.info("sync")
            sync_exited.set()

        async def feed_side():
            await sync_entered.wait()
            with LogContext(operation="feed_generation"):
                feed_entered.set()
                await sync_exited.wait()
                logger.info("feed")

        await asyncio.gather(sync_side(), feed_side())
        logger.info("after")

        assert handler.by_message("sync").operation == "catalog_sync"
        assert handler.by_message("feed").operation == "feed_generation"
        assert not hasattr(handler.by_message("feed"), "sync_id")
        assert not hasattr(handler.by_message("after"), "sync_id")
        assert not hasattr(handler.by_message("after"), "operation")

    def test_handlers_carry_context_filter(self):
        config = get_logging_configuration()

        assert config["filters"]["log_context"]["()"] is ContextFilter
        assert all(handler["filters"] == ["log_context"] for handler in config["handlers"].values())
