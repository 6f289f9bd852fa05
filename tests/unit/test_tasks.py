"""
Unit tests for detached best-effort tasks.
"""

import asyncio
import logging

import pytest

from policybot.core import BackgroundTasks


async def _ok(results):
    results.append("done")


async def _fail():
    raise RuntimeError("redaction refused")


class TestBackgroundTasks:

    @pytest.mark.asyncio
    async def test_spawn_runs_without_awaiting(self):
        tasks = BackgroundTasks()
        results = []
        tasks.spawn(_ok(results), "ok")
        assert results == []
        await tasks.drain()
        assert results == ["done"]
        assert tasks.pending == 0

    @pytest.mark.asyncio
    async def test_failures_go_to_sink(self):
        failures = []
        tasks = BackgroundTasks(on_failure=lambda desc, err: failures.append((desc, err)))
        tasks.spawn(_fail(), "remove acknowledgement")
        await tasks.drain()

        assert len(failures) == 1
        assert failures[0][0] == "remove acknowledgement"
        assert isinstance(failures[0][1], RuntimeError)

    @pytest.mark.asyncio
    async def test_default_sink_logs(self, caplog):
        tasks = BackgroundTasks()
        with caplog.at_level(logging.WARNING, logger="policybot.core.tasks"):
            tasks.spawn(_fail(), "mark application resolved")
            await tasks.drain()
        assert "mark application resolved" in caplog.text

    @pytest.mark.asyncio
    async def test_sink_errors_are_contained(self):
        def broken_sink(desc, err):
            raise ValueError("sink broke")

        tasks = BackgroundTasks(on_failure=broken_sink)
        tasks.spawn(_fail(), "anything")
        await tasks.drain()
        assert tasks.pending == 0

    @pytest.mark.asyncio
    async def test_cancel_all(self):
        tasks = BackgroundTasks()
        task = tasks.spawn(asyncio.sleep(60), "sleep")
        await tasks.cancel_all()
        assert task.cancelled()
        assert tasks.pending == 0
