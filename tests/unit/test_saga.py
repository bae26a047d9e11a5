"""
Unit tests for compensating multi-step operations.

Tests cover:
- Step ordering and results
- Reverse compensation on failure
- Failing compensations
- Error propagation and wrapping
"""

import logging

import pytest

from catalog.system_model.errors import InternalError, NotFoundError
from catalog.system_model.manager.saga import Saga


class TestSaga:
    """Tests for Saga."""

    @pytest.fixture
    def calls(self):
        return []

    def recorder(self, calls, name, result=None):
        async def action():
            calls.append(name)
            return result

        return action

    def undoer(self, calls, name):
        async def compensation(result):
            calls.append((name, result))

        return compensation

    @pytest.mark.asyncio
    async def test_steps_run_in_order(self, calls):
        """Every step runs once, results are returned in order."""
        saga = (
            Saga("test")
            .step("one", self.recorder(calls, "one", 1))
            .step("two", self.recorder(calls, "two", 2))
        )

        results = await saga.run()

        assert calls == ["one", "two"]
        assert results == [1, 2]

    @pytest.mark.asyncio
    async def test_compensation_in_reverse_order(self, calls):
        """Completed steps are undone last to first with their results."""

        async def fail():
            raise NotFoundError("cluster")

        saga = (
            Saga("test")
            .step("one", self.recorder(calls, "one", "r1"), self.undoer(calls, "undo-one"))
            .step("two", self.recorder(calls, "two", "r2"), self.undoer(calls, "undo-two"))
            .step("three", fail, self.undoer(calls, "undo-three"))
        )

        with pytest.raises(NotFoundError):
            await saga.run()

        assert calls == ["one", "two", ("undo-two", "r2"), ("undo-one", "r1")]

    @pytest.mark.asyncio
    async def test_steps_without_compensation_skipped(self, calls):
        async def fail():
            raise NotFoundError("node")

        saga = (
            Saga("test")
            .step("one", self.recorder(calls, "one"), self.undoer(calls, "undo-one"))
            .step("two", self.recorder(calls, "two"))
            .step("three", fail)
        )

        with pytest.raises(NotFoundError):
            await saga.run()

        assert calls == ["one", "two", ("undo-one", None)]

    @pytest.mark.asyncio
    async def test_failing_compensation_does_not_stop_others(self, calls, caplog):
        """The original error is raised even if a compensation fails."""

        async def broken(result):
            raise RuntimeError("cannot undo")

        async def fail():
            raise NotFoundError("node").with_params("n-1")

        saga = (
            Saga("test")
            .step("one", self.recorder(calls, "one"), self.undoer(calls, "undo-one"))
            .step("two", self.recorder(calls, "two"), broken)
            .step("three", fail)
        )

        with caplog.at_level(logging.ERROR):
            with pytest.raises(NotFoundError) as exc_info:
                await saga.run()

        assert exc_info.value.params == ["n-1"]
        assert ("undo-one", None) in calls
        assert any("compensation failed" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_unexpected_error_wrapped(self):
        """Errors outside the catalog hierarchy surface as InternalError."""

        async def fail():
            raise ValueError("boom")

        with pytest.raises(InternalError) as exc_info:
            await Saga("remove_cluster").step("fail", fail).run()

        assert exc_info.value.message == "remove_cluster failed"
        assert isinstance(exc_info.value.__cause__, ValueError)

    @pytest.mark.asyncio
    async def test_empty_saga(self):
        assert await Saga("noop").run() == []
