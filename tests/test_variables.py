"""Tests for variable parsing and resolution."""

import asyncio

import pytest
from panelforge.core.errors import AuthenticationError, DatasourceError
from panelforge.models import Variable, VariableKind
from panelforge.variables import (
    INVALID_QUERY_MESSAGE,
    InvalidVariableQuery,
    LabelQuery,
    VariableResolver,
    VariableStatus,
    parse_label_values_query,
)


class FakeSource:
    """In-memory label value lookup with optional per-label gates."""

    def __init__(self, values=None, errors=None, datasources=None):
        self.values = values or {}
        self.errors = errors or {}
        self.datasources = datasources or ["main"]
        self.gates: dict[str, list[asyncio.Event]] = {}
        self.calls: list[tuple] = []

    def gate(self, label: str) -> asyncio.Event:
        event = asyncio.Event()
        self.gates.setdefault(label, []).append(event)
        return event

    async def label_values(self, label, match=None, datasource=None):
        # Outcome is fixed when the request is issued, not when it completes
        self.calls.append((label, match, datasource))
        error = self.errors.get(label)
        result = self.values.get(label, [])
        result = list(result() if callable(result) else result)
        gates = self.gates.get(label)
        if gates:
            await gates.pop(0).wait()
        if error is not None:
            raise error
        return result

    def names(self):
        return list(self.datasources)


def query_var(name, label_name, metric="up", **kwargs):
    return Variable(name=name, query=f"label_values({metric}, {label_name})", **kwargs)


class TestParseLabelValuesQuery:
    """Tests for the label_values grammar."""

    def test_simple(self):
        assert parse_label_values_query("label_values(up, instance)") == LabelQuery("up", "instance")

    def test_missing_label(self):
        assert parse_label_values_query("label_values(metric)") is None

    def test_empty(self):
        assert parse_label_values_query("") is None
        assert parse_label_values_query(None) is None

    def test_whitespace_ignored(self):
        parsed = parse_label_values_query("  label_values (  node_load1 ,  job  )  ")
        assert parsed == LabelQuery("node_load1", "job")

    def test_selector_with_commas(self):
        parsed = parse_label_values_query(
            'label_values(node_network_receive_bytes_total{job="node", device!="lo"}, device)'
        )
        assert parsed == LabelQuery(
            'node_network_receive_bytes_total{job="node", device!="lo"}', "device"
        )

    def test_quoted_comma(self):
        parsed = parse_label_values_query('label_values(up{path=~"a,b"}, path)')
        assert parsed == LabelQuery('up{path=~"a,b"}', "path")

    def test_empty_label_after_comma(self):
        assert parse_label_values_query("label_values(up, )") is None

    def test_empty_metric(self):
        assert parse_label_values_query("label_values(, job)") is None

    def test_other_function(self):
        assert parse_label_values_query("query_result(up)") is None

    def test_trailing_text(self):
        assert parse_label_values_query("label_values(up, job) extra") is None


class TestVariableResolverLoad:
    """Tests for loading candidates."""

    @pytest.mark.asyncio
    async def test_success_selects_first(self):
        source = FakeSource(values={"device": ["eth0", "eth1"]})
        resolver = VariableResolver(source)

        await resolver.load([query_var("device", "device", metric="node_network_up")])

        state = resolver.get("device")
        assert state.status == VariableStatus.READY
        assert state.values == ["eth0", "eth1"]
        assert state.selected == "eth0"
        assert state.error is None
        assert source.calls == [("device", "node_network_up", None)]

    @pytest.mark.asyncio
    async def test_empty_candidates(self):
        resolver = VariableResolver(FakeSource(values={"job": []}))
        await resolver.load([query_var("job", "job")])

        state = resolver.get("job")
        assert state.status == VariableStatus.READY
        assert state.selected == ""
        assert resolver.selected_values() == {}

    @pytest.mark.asyncio
    async def test_invalid_query_no_network_call(self):
        source = FakeSource()
        resolver = VariableResolver(source)

        await resolver.load([Variable(name="bad", query="up")])

        state = resolver.get("bad")
        assert state.status == VariableStatus.ERRORED
        assert state.error == INVALID_QUERY_MESSAGE
        assert source.calls == []

    @pytest.mark.asyncio
    async def test_failure_isolated_from_siblings(self):
        source = FakeSource(
            values={"job": ["api"]},
            errors={"instance": DatasourceError("HTTP 500: boom", status=500)},
        )
        resolver = VariableResolver(source)

        await resolver.load([query_var("instance", "instance"), query_var("job", "job")])

        assert resolver.get("instance").status == VariableStatus.ERRORED
        assert resolver.get("instance").error == "HTTP 500: boom"
        assert resolver.get("job").status == VariableStatus.READY
        assert resolver.selected_values() == {"job": "api"}

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_state(self):
        source = FakeSource(errors={"job": RuntimeError("kaboom")})
        resolver = VariableResolver(source)

        await resolver.load([query_var("job", "job")])

        assert resolver.get("job").error == "kaboom"

    @pytest.mark.asyncio
    async def test_auth_error_signals_callback(self):
        calls = []
        source = FakeSource(errors={"job": AuthenticationError()})
        resolver = VariableResolver(source, on_auth_error=lambda: calls.append(1))

        await resolver.load([query_var("job", "job")])

        assert calls == [1]
        assert resolver.get("job").status == VariableStatus.ERRORED
        assert resolver.get("job").error == "Unauthorized"

    @pytest.mark.asyncio
    async def test_non_auth_error_does_not_signal(self):
        calls = []
        source = FakeSource(errors={"job": DatasourceError("nope", status=500)})
        resolver = VariableResolver(source, on_auth_error=lambda: calls.append(1))

        await resolver.load([query_var("job", "job")])

        assert calls == []

    @pytest.mark.asyncio
    async def test_datasource_variable_lists_datasources(self):
        source = FakeSource(datasources=["longterm", "main"])
        resolver = VariableResolver(source)

        await resolver.load([Variable(name="ds", kind=VariableKind.DATASOURCE)])

        assert resolver.get("ds").values == ["longterm", "main"]
        assert resolver.get("ds").selected == "longterm"
        assert source.calls == []

    @pytest.mark.asyncio
    async def test_variable_datasource_passed_to_lookup(self):
        source = FakeSource(values={"job": ["a"]})
        resolver = VariableResolver(source)

        await resolver.load([query_var("job", "job", datasource="longterm")])

        assert source.calls == [("job", "up", "longterm")]

    @pytest.mark.asyncio
    async def test_preferred_selection(self):
        source = FakeSource(values={"device": ["eth0", "eth1"]})
        resolver = VariableResolver(source)

        await resolver.load([query_var("device", "device")], preferred={"device": "eth1"})
        assert resolver.get("device").selected == "eth1"

        await resolver.load([query_var("device", "device")], preferred={"device": "wlan0"})
        assert resolver.get("device").selected == "eth0"

    @pytest.mark.asyncio
    async def test_concurrent_fetches(self):
        source = FakeSource(values={"a": ["1"], "b": ["2"]})
        gate_a = source.gate("a")
        resolver = VariableResolver(source)

        task = asyncio.ensure_future(resolver.load([query_var("a", "a"), query_var("b", "b")]))
        for _ in range(5):
            await asyncio.sleep(0)

        # b completes while a is still blocked
        assert resolver.get("a").loading
        assert resolver.get("b").status == VariableStatus.READY
        assert resolver.loading

        gate_a.set()
        await task
        assert not resolver.loading
        assert resolver.all_values() == {"a": ["1"], "b": ["2"]}

    @pytest.mark.asyncio
    async def test_display_label_and_hidden(self):
        resolver = VariableResolver(FakeSource())
        resolver.reset([query_var("job", "job", label="Job", hidden=True)])

        state = resolver.get("job")
        assert state.label == "Job"
        assert state.hidden is True
        assert state.status == VariableStatus.LOADING


class TestSupersede:
    """Stale results never overwrite newer ones."""

    @pytest.mark.asyncio
    async def test_stale_reload_discarded(self):
        results = iter([["stale"], ["fresh"]])
        source = FakeSource(values={"job": lambda: next(results)})
        first_gate = source.gate("job")
        second_gate = source.gate("job")
        resolver = VariableResolver(source)
        resolver.reset([query_var("job", "job")])

        first = asyncio.ensure_future(resolver.reload("job"))
        await asyncio.sleep(0)
        second = asyncio.ensure_future(resolver.reload("job"))
        await asyncio.sleep(0)

        # Later request finishes first
        second_gate.set()
        await second
        assert resolver.get("job").values == ["fresh"]

        first_gate.set()
        await first
        assert resolver.get("job").values == ["fresh"]
        assert resolver.get("job").status == VariableStatus.READY

    @pytest.mark.asyncio
    async def test_dashboard_change_discards_pending(self):
        source = FakeSource(values={"job": ["stale"], "other": ["x"]})
        gate = source.gate("job")
        resolver = VariableResolver(source)

        pending = asyncio.ensure_future(resolver.load([query_var("job", "job")]))
        await asyncio.sleep(0)

        await resolver.load([query_var("other", "other")])
        gate.set()
        await pending

        assert resolver.get("job") is None
        assert resolver.get("other").values == ["x"]

    @pytest.mark.asyncio
    async def test_stale_error_discarded(self):
        source = FakeSource(
            values={"job": ["fresh"]},
            errors={"job": DatasourceError("late failure")},
        )
        gate = source.gate("job")
        resolver = VariableResolver(source)
        resolver.reset([query_var("job", "job")])

        stale = asyncio.ensure_future(resolver.reload("job"))
        await asyncio.sleep(0)
        del source.errors["job"]
        await resolver.reload("job")

        gate.set()
        await stale

        assert resolver.get("job").status == VariableStatus.READY
        assert resolver.get("job").values == ["fresh"]


class TestSelection:
    """Tests for set_selection."""

    @pytest.mark.asyncio
    async def test_set_selection_no_refetch(self):
        source = FakeSource(values={"device": ["eth0", "eth1"]})
        resolver = VariableResolver(source)
        await resolver.load([query_var("device", "device")])

        resolver.set_selection("device", "eth1")

        assert resolver.get("device").selected == "eth1"
        assert len(source.calls) == 1

    def test_unknown_variable_ignored(self):
        resolver = VariableResolver(FakeSource())
        resolver.set_selection("nope", "x")
        assert resolver.get("nope") is None

    @pytest.mark.asyncio
    async def test_load_candidates_raises_on_invalid(self):
        resolver = VariableResolver(FakeSource())
        with pytest.raises(InvalidVariableQuery):
            await resolver.load_candidates(Variable(name="x", query="nope"))
