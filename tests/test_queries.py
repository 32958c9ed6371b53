"""Tests for panel query execution and supersede handling."""

import asyncio

import pytest
from panelforge.core.errors import AuthenticationError, DatasourceError
from panelforge.models import Series
from panelforge.queries import SESSION_EXPIRED_MESSAGE, PanelQueryRunner, PanelState
from panelforge.timerange import ResolvedRange

WINDOW = ResolvedRange(start=1000, end=4600, step="60s")


class FakeQuerySource:
    def __init__(self):
        self.calls = []
        self.gates: list[asyncio.Event] = []
        self.error = None

    async def query_range(self, query, start, end, step, datasource=None):
        self.calls.append((query, start, end, step, datasource))
        error = self.error
        result = [Series(labels={"q": query})]
        if self.gates:
            await self.gates.pop(0).wait()
        if error is not None:
            raise error
        return result


class TestPanelQueryRunner:
    """Tests for PanelQueryRunner.run."""

    @pytest.mark.asyncio
    async def test_success(self):
        source = FakeQuerySource()
        runner = PanelQueryRunner(source)

        applied = await runner.run("p1", "up", WINDOW, "main")

        assert applied is True
        assert source.calls == [("up", 1000, 4600, "60s", "main")]
        state = runner.state("p1")
        assert state.loading is False
        assert state.error is None
        assert state.series[0].labels == {"q": "up"}

    @pytest.mark.asyncio
    async def test_empty_query_not_issued(self):
        source = FakeQuerySource()
        runner = PanelQueryRunner(source)

        assert await runner.run("p1", None, WINDOW) is False
        assert await runner.run("p1", "", WINDOW) is False
        assert source.calls == []
        assert runner.state("p1") == PanelState()

    @pytest.mark.asyncio
    async def test_error_localized(self):
        source = FakeQuerySource()
        runner = PanelQueryRunner(source)
        await runner.run("ok", "up", WINDOW)

        source.error = DatasourceError("HTTP 400: bad query", status=400)
        await runner.run("bad", "rate(", WINDOW)

        assert runner.state("bad").error == "HTTP 400: bad query"
        assert runner.state("ok").error is None
        assert len(runner.state("ok").series) == 1

    @pytest.mark.asyncio
    async def test_auth_error(self):
        calls = []
        source = FakeQuerySource()
        source.error = AuthenticationError()
        runner = PanelQueryRunner(source, on_auth_error=lambda: calls.append(1))

        await runner.run("p1", "up", WINDOW)

        assert runner.state("p1").error == SESSION_EXPIRED_MESSAGE
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_newer_request_wins(self):
        source = FakeQuerySource()
        slow, fast = asyncio.Event(), asyncio.Event()
        source.gates = [slow, fast]
        runner = PanelQueryRunner(source)

        old = asyncio.ensure_future(runner.run("p1", "old_query", WINDOW))
        await asyncio.sleep(0)
        new = asyncio.ensure_future(runner.run("p1", "new_query", WINDOW))
        await asyncio.sleep(0)

        fast.set()
        assert await new is True
        slow.set()
        assert await old is False

        assert runner.state("p1").series[0].labels == {"q": "new_query"}

    @pytest.mark.asyncio
    async def test_superseded_auth_error_still_reported(self):
        calls = []
        source = FakeQuerySource()
        slow, fast = asyncio.Event(), asyncio.Event()
        source.gates = [slow, fast]
        runner = PanelQueryRunner(source, on_auth_error=lambda: calls.append(1))

        source.error = AuthenticationError()
        old = asyncio.ensure_future(runner.run("p1", "old_query", WINDOW))
        await asyncio.sleep(0)
        source.error = None
        new = asyncio.ensure_future(runner.run("p1", "new_query", WINDOW))
        await asyncio.sleep(0)

        fast.set()
        assert await new is True
        slow.set()
        assert await old is False

        assert calls == [1]
        state = runner.state("p1")
        assert state.error is None
        assert state.series[0].labels == {"q": "new_query"}

    @pytest.mark.asyncio
    async def test_cancel_discards_in_flight(self):
        source = FakeQuerySource()
        gate = asyncio.Event()
        source.gates = [gate]
        runner = PanelQueryRunner(source)

        pending = asyncio.ensure_future(runner.run("p1", "up", WINDOW))
        await asyncio.sleep(0)
        assert runner.state("p1").loading is True

        runner.cancel("p1")
        gate.set()

        assert await pending is False
        assert runner.state("p1").loading is False
        assert runner.state("p1").series == []

    @pytest.mark.asyncio
    async def test_clear(self):
        runner = PanelQueryRunner(FakeQuerySource())
        await runner.run("p1", "up", WINDOW)

        runner.clear()

        assert runner.state("p1") == PanelState()
