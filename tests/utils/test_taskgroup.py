"""Tests for the fail-fast task group."""

import asyncio

import pytest

from slugcmplr.utils.taskgroup import FailFastGroup


@pytest.mark.unit
class TestFailFastGroup:
    """Test fan-out, first-error propagation and draining."""

    @pytest.mark.asyncio
    async def test_all_tasks_complete(self) -> None:
        async def double(value: int) -> int:
            await asyncio.sleep(0)
            return value * 2

        async with FailFastGroup() as group:
            tasks = [group.spawn(double, i) for i in range(3)]

        assert [task.result() for task in tasks] == [0, 2, 4]

    @pytest.mark.asyncio
    async def test_first_error_raised_after_siblings_drain(self) -> None:
        """Test in-flight siblings finish before the first error surfaces."""
        finished = []

        async def slow() -> None:
            await asyncio.sleep(0.05)
            finished.append("slow")

        async def fail(message: str, delay: float) -> None:
            await asyncio.sleep(delay)
            raise RuntimeError(message)

        with pytest.raises(RuntimeError, match="first"):
            async with FailFastGroup() as group:
                group.spawn(slow)
                group.spawn(fail, "first", 0.01)
                group.spawn(fail, "second", 0.02)

        assert finished == ["slow"]
        assert group.cancelled.is_set()

    @pytest.mark.asyncio
    async def test_cancelled_group_skips_unstarted_work(self) -> None:
        called = []

        async def work() -> str:
            called.append(True)
            return "done"

        cancelled = asyncio.Event()
        cancelled.set()

        async with FailFastGroup(cancelled) as group:
            task = group.spawn(work)

        assert task.result() is None
        assert called == []

    @pytest.mark.asyncio
    async def test_shared_event_propagates_to_outer_group(self) -> None:
        async def fail() -> None:
            raise ValueError("inner")

        outer = FailFastGroup()
        with pytest.raises(ValueError, match="inner"):
            async with FailFastGroup(outer.cancelled) as inner:
                inner.spawn(fail)

        assert outer.cancelled.is_set()

    @pytest.mark.asyncio
    async def test_body_error_sets_cancelled(self) -> None:
        async def noop() -> None:
            await asyncio.sleep(0)

        with pytest.raises(KeyError):
            async with FailFastGroup() as group:
                group.spawn(noop)
                raise KeyError("body")

        assert group.cancelled.is_set()
