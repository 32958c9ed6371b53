"""Tests for dashboard models."""

import pytest
from panelforge.core.errors import ValidationError
from panelforge.models import (
    ChartType,
    Dashboard,
    Panel,
    PanelKind,
    Row,
    Series,
    Unit,
    Variable,
    VariableKind,
)


@pytest.fixture
def dashboard_dict():
    return {
        "title": "Network",
        "variables": [
            {
                "name": "device",
                "label": "Device",
                "query": "label_values(node_network_up, device)",
            },
            {"name": "ds", "type": "datasource", "hidden": True},
        ],
        "rows": [
            {
                "title": "Traffic $device",
                "repeat": "device",
                "panels": [
                    {
                        "title": "Receive",
                        "type": "graph",
                        "query": 'rate(node_network_receive_bytes_total{device="$device"}[5m])',
                        "unit": "bytes",
                        "legend": "{instance}",
                        "chart_type": "area",
                        "datasource": "$ds",
                    },
                    {"title": "Notes", "type": "markdown", "content": "# $device"},
                ],
            }
        ],
    }


class TestFromDict:
    """Tests for building models from YAML mappings."""

    def test_full_dashboard(self, dashboard_dict):
        dashboard = Dashboard.from_dict(dashboard_dict, path="network/traffic")

        assert dashboard.path == "network/traffic"
        assert dashboard.title == "Network"
        assert [v.name for v in dashboard.variables] == ["device", "ds"]
        assert dashboard.variables[1].kind == VariableKind.DATASOURCE
        assert dashboard.variables[1].hidden is True
        assert dashboard.variables[0].display_label == "Device"

        row = dashboard.rows[0]
        assert row.repeat == "device"
        graph, markdown = row.panels
        assert graph.kind == PanelKind.GRAPH
        assert graph.unit == Unit.BYTES
        assert graph.chart_type == ChartType.AREA
        assert graph.datasource == "$ds"
        assert markdown.kind == PanelKind.MARKDOWN
        assert markdown.content == "# $device"

        dashboard.validate()

    def test_defaults(self):
        panel = Panel.from_dict({"title": "p", "query": "up"})
        assert panel.kind == PanelKind.GRAPH
        assert panel.chart_type == ChartType.LINE
        assert panel.unit is None

        var = Variable.from_dict({"name": "job", "query": "label_values(up, job)"})
        assert var.kind == VariableKind.QUERY
        assert var.display_label == "job"

    def test_invalid_panel_type(self):
        with pytest.raises(ValidationError) as exc_info:
            Panel.from_dict({"title": "p", "type": "pie"})
        assert "graph" in exc_info.value.details["allowed"]

    def test_not_a_mapping(self):
        with pytest.raises(ValidationError):
            Dashboard.from_dict(["nope"])

    def test_datasource_list_alias(self):
        var = Variable.from_dict({"name": "ds", "type": "datasourceList"})
        assert var.kind == VariableKind.DATASOURCE

    def test_variable_lookup(self, dashboard_dict):
        dashboard = Dashboard.from_dict(dashboard_dict)
        assert dashboard.variable("ds").kind == VariableKind.DATASOURCE
        assert dashboard.variable("missing") is None


class TestValidate:
    """Tests for Dashboard.validate."""

    def test_missing_title(self):
        with pytest.raises(ValidationError, match="title"):
            Dashboard(title="").validate()

    def test_graph_requires_query(self):
        dashboard = Dashboard(title="d", rows=[Row(title="r", panels=[Panel(title="p")])])
        with pytest.raises(ValidationError, match="query"):
            dashboard.validate()

    def test_markdown_requires_content(self):
        panel = Panel(title="p", kind=PanelKind.MARKDOWN)
        dashboard = Dashboard(title="d", rows=[Row(title="r", panels=[panel])])
        with pytest.raises(ValidationError, match="content"):
            dashboard.validate()

    def test_duplicate_variables(self):
        dashboard = Dashboard(
            title="d",
            variables=[Variable(name="a", query="q"), Variable(name="a", query="q")],
        )
        with pytest.raises(ValidationError, match="duplicate"):
            dashboard.validate()

    def test_invalid_variable_name(self):
        dashboard = Dashboard(title="d", variables=[Variable(name="my-var", query="q")])
        with pytest.raises(ValidationError, match="invalid variable name"):
            dashboard.validate()

    def test_query_variable_requires_query(self):
        dashboard = Dashboard(title="d", variables=[Variable(name="a")])
        with pytest.raises(ValidationError, match="requires a query"):
            dashboard.validate()

    def test_repeat_must_reference_variable(self):
        dashboard = Dashboard(title="d", rows=[Row(title="r", repeat="device")])
        with pytest.raises(ValidationError, match="undefined variable"):
            dashboard.validate()


class TestSeries:
    """Tests for Series.from_prometheus."""

    def test_parses_matrix_entry(self):
        series = Series.from_prometheus(
            {
                "metric": {"__name__": "up", "job": "api"},
                "values": [[1700000000, "1"], [1700000060, "0.5"]],
            }
        )
        assert series.labels == {"__name__": "up", "job": "api"}
        assert series.samples == [(1700000000.0, 1.0), (1700000060.0, 0.5)]

    def test_skips_bad_samples(self):
        series = Series.from_prometheus(
            {"metric": {}, "values": [[1, "bad"], [2], [3, "NaN"], [4, "+Inf"]]}
        )
        assert [ts for ts, _ in series.samples] == [3.0, 4.0]

    def test_missing_fields(self):
        series = Series.from_prometheus({})
        assert series.labels == {}
        assert series.samples == []
