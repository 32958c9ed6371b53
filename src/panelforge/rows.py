"""
Repeat-row expansion.

A row with ``repeat: <variable>`` is instantiated once per candidate value
of that variable; every other row renders once with the session selection.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Set

from panelforge.models import Dashboard, Row
from panelforge.variables import VariableState


@dataclass(frozen=True)
class RowInstance:
    """One concrete rendering of a row template."""

    key: str
    row: Row
    selection: Dict[str, str]
    repeat_value: Optional[str] = None


def instance_key(row_index: int, value: Optional[str] = None) -> str:
    """Stable identity for a (row, repeat value) pair."""
    if value is None:
        return f"row-{row_index}"
    return f"row-{row_index}-{value}"


class RowExpander:
    """Expands row templates into concrete instances."""

    def expand(
        self,
        row: Row,
        states: Mapping[str, VariableState],
        base_selection: Mapping[str, str],
        row_index: int = 0,
    ) -> List[RowInstance]:
        """Return one instance per candidate of the repeat variable.

        Without a repeat variable, or when it has no candidates, the row
        renders once with ``base_selection`` unchanged.
        """
        state = states.get(row.repeat) if row.repeat else None
        if state is None or not state.values:
            return [RowInstance(key=instance_key(row_index), row=row, selection=dict(base_selection))]

        instances = []
        for value in state.values:
            selection = dict(base_selection)
            selection[state.name] = value
            instances.append(
                RowInstance(
                    key=instance_key(row_index, value),
                    row=row,
                    selection=selection,
                    repeat_value=value,
                )
            )
        return instances

    def expand_all(
        self,
        rows: Iterable[Row],
        states: Mapping[str, VariableState],
        base_selection: Mapping[str, str],
    ) -> List[RowInstance]:
        instances: List[RowInstance] = []
        for idx, row in enumerate(rows):
            instances.extend(self.expand(row, states, base_selection, row_index=idx))
        return instances


def repeat_sources(dashboard: Dashboard) -> Set[str]:
    """Names of all variables used as a row repeat source."""
    return {row.repeat for row in dashboard.rows if row.repeat}


def is_repeat_source(dashboard: Dashboard, name: str) -> bool:
    """True if the variable bar should show ``name`` as read-only "All (N)"."""
    return name in repeat_sources(dashboard)


def repeat_source_label(state: VariableState) -> str:
    return f"All ({len(state.values)})"
