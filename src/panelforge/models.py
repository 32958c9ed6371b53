"""Dashboard data models.

Typed models for dashboard definitions loaded from YAML, plus the
``Series`` shape returned by the datasource client.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from panelforge.core.errors import ValidationError

_VARIABLE_NAME_RE = re.compile(r"^\w+$")


class PanelKind(str, Enum):
    GRAPH = "graph"
    MARKDOWN = "markdown"


class VariableKind(str, Enum):
    QUERY = "query"
    DATASOURCE = "datasource"


# YAML spellings accepted for a variable type besides the enum values
VARIABLE_KIND_ALIASES = {"datasourceList": VariableKind.DATASOURCE}


class ChartType(str, Enum):
    LINE = "line"
    BAR = "bar"
    AREA = "area"
    SCATTER = "scatter"


class Unit(str, Enum):
    BYTES = "bytes"
    PERCENT = "percent"
    COUNT = "count"
    SECONDS = "seconds"


def _enum_value(enum_cls, raw: Any, field_name: str):
    if raw is None:
        return None
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(
            f"invalid {field_name} {raw!r}", {"allowed": allowed}
        ) from None


def _variable_kind(raw: Any) -> VariableKind:
    if isinstance(raw, str) and raw in VARIABLE_KIND_ALIASES:
        return VARIABLE_KIND_ALIASES[raw]
    return _enum_value(VariableKind, raw, "variable type")


@dataclass
class Panel:
    """Single visualization panel within a row.

    Title, query, content and legend are templates until rendered.
    """

    title: str
    kind: PanelKind = PanelKind.GRAPH
    query: Optional[str] = None
    content: Optional[str] = None
    legend: Optional[str] = None
    unit: Optional[Unit] = None
    chart_type: ChartType = ChartType.LINE
    datasource: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Panel:
        kind = _enum_value(PanelKind, data.get("type", PanelKind.GRAPH.value), "panel type")
        return cls(
            title=str(data.get("title") or ""),
            kind=kind,
            query=data.get("query"),
            content=data.get("content"),
            legend=data.get("legend"),
            unit=_enum_value(Unit, data.get("unit"), "unit"),
            chart_type=_enum_value(ChartType, data.get("chart_type"), "chart_type") or ChartType.LINE,
            datasource=data.get("datasource"),
        )

    def validate(self, where: str) -> None:
        if not self.title:
            raise ValidationError("panel title is required", {"at": where})
        if self.kind == PanelKind.GRAPH and not self.query:
            raise ValidationError("graph panel requires a query", {"at": where})
        if self.kind == PanelKind.MARKDOWN and not self.content:
            raise ValidationError("markdown panel requires content", {"at": where})


@dataclass
class Row:
    """Horizontal row of panels, optionally repeated per variable value."""

    title: str
    panels: List[Panel] = field(default_factory=list)
    repeat: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Row:
        return cls(
            title=str(data.get("title") or ""),
            panels=[Panel.from_dict(p) for p in data.get("panels") or []],
            repeat=data.get("repeat") or None,
        )


@dataclass
class Variable:
    """Dashboard variable definition.

    ``query`` uses the ``label_values(<selector>, <label>)`` grammar for
    query variables; datasource variables list configured datasources.
    """

    name: str
    kind: VariableKind = VariableKind.QUERY
    query: Optional[str] = None
    datasource: Optional[str] = None
    label: Optional[str] = None
    hidden: bool = False

    @property
    def display_label(self) -> str:
        return self.label or self.name

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Variable:
        return cls(
            name=str(data.get("name") or ""),
            kind=_variable_kind(data.get("type", VariableKind.QUERY.value)),
            query=data.get("query"),
            datasource=data.get("datasource"),
            label=data.get("label"),
            hidden=bool(data.get("hidden", False)),
        )


@dataclass
class Dashboard:
    """Dashboard definition."""

    title: str
    rows: List[Row] = field(default_factory=list)
    variables: List[Variable] = field(default_factory=list)
    path: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any], path: str = "") -> Dashboard:
        """Build a dashboard from a parsed YAML mapping."""
        if not isinstance(data, dict):
            raise ValidationError("dashboard must be a mapping", {"path": path})
        return cls(
            title=str(data.get("title") or ""),
            rows=[Row.from_dict(r) for r in data.get("rows") or []],
            variables=[Variable.from_dict(v) for v in data.get("variables") or []],
            path=path,
        )

    def variable(self, name: str) -> Optional[Variable]:
        for var in self.variables:
            if var.name == name:
                return var
        return None

    def validate(self) -> None:
        """Check structural rules, raising ValidationError on the first problem."""
        if not self.title:
            raise ValidationError("dashboard title is required", {"path": self.path})

        seen: set[str] = set()
        for var in self.variables:
            if not _VARIABLE_NAME_RE.match(var.name):
                raise ValidationError("invalid variable name", {"name": var.name})
            if var.name in seen:
                raise ValidationError("duplicate variable name", {"name": var.name})
            seen.add(var.name)
            if var.kind == VariableKind.QUERY and not var.query:
                raise ValidationError("query variable requires a query", {"name": var.name})

        for r_idx, row in enumerate(self.rows):
            if row.repeat and row.repeat not in seen:
                raise ValidationError(
                    "row repeats an undefined variable",
                    {"row": r_idx, "variable": row.repeat},
                )
            for p_idx, panel in enumerate(row.panels):
                panel.validate(f"rows[{r_idx}].panels[{p_idx}]")


@dataclass
class Series:
    """One time series: a label set and its samples."""

    labels: Dict[str, str]
    samples: List[Tuple[float, float]] = field(default_factory=list)

    @classmethod
    def from_prometheus(cls, result: Dict[str, Any]) -> Series:
        """Build from a matrix result entry, skipping unparsable samples."""
        samples: List[Tuple[float, float]] = []
        for pair in result.get("values") or []:
            if len(pair) < 2:
                continue
            try:
                value = float(pair[1])
            except (TypeError, ValueError):
                continue
            samples.append((float(pair[0]), value))
        return cls(labels=dict(result.get("metric") or {}), samples=samples)
