"""
Dashboard variable resolution.

Each variable moves through ``uninitialized -> loading -> ready | errored``.
All variables of a dashboard are fetched concurrently and independently:
one variable failing never blocks or fails its siblings.

Every fetch carries a token drawn from a process-wide counter. A result is
applied only if its token is still the current one for that variable, so a
slow response can never overwrite the outcome of a newer request.
"""

from __future__ import annotations

import asyncio
import itertools
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, Iterator, List, Mapping, Optional, Protocol, Sequence

import structlog

from panelforge.core.errors import PanelForgeError, is_auth_error
from panelforge.models import Variable, VariableKind

logger = structlog.get_logger()

INVALID_QUERY_MESSAGE = "Invalid query format"

_LABEL_VALUES_RE = re.compile(r"^\s*label_values\s*\((.*)\)\s*$", re.DOTALL)
_LABEL_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_OPENERS = {"{": "}", "(": ")", "[": "]"}
_CLOSERS = {"}", ")", "]"}


@dataclass(frozen=True)
class LabelQuery:
    """Parsed ``label_values(<metric>, <label>)`` query."""

    metric: str
    label: str


def _last_top_level_comma(text: str) -> int:
    """Index of the last comma outside braces, brackets, parens and quotes."""
    depth = 0
    quote: Optional[str] = None
    escaped = False
    found = -1
    for idx, char in enumerate(text):
        if quote:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = None
            continue
        if char in ('"', "'", "`"):
            quote = char
        elif char in _OPENERS:
            depth += 1
        elif char in _CLOSERS:
            depth = max(depth - 1, 0)
        elif char == "," and depth == 0:
            found = idx
    return found


def parse_label_values_query(query: Optional[str]) -> Optional[LabelQuery]:
    """Extract the metric selector and label name from a variable query.

    The selector may contain braces and commas of its own; it is everything
    up to the last top-level comma. Returns None when the text does not
    match the grammar.

    Example:
        >>> parse_label_values_query('label_values(up{job="api", env="prod"}, instance)')
        LabelQuery(metric='up{job="api", env="prod"}', label='instance')
    """
    if not query:
        return None
    match = _LABEL_VALUES_RE.match(query)
    if not match:
        return None

    inner = match.group(1)
    comma = _last_top_level_comma(inner)
    if comma < 0:
        return None

    metric = inner[:comma].strip()
    label = inner[comma + 1 :].strip()
    if not metric or not _LABEL_NAME_RE.match(label):
        return None
    return LabelQuery(metric=metric, label=label)


class VariableStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    ERRORED = "errored"


@dataclass(frozen=True)
class VariableState:
    """Runtime state of one variable."""

    name: str
    label: str
    hidden: bool = False
    values: List[str] = field(default_factory=list)
    selected: str = ""
    status: VariableStatus = VariableStatus.UNINITIALIZED
    error: Optional[str] = None

    @property
    def loading(self) -> bool:
        return self.status == VariableStatus.LOADING


class LabelValuesSource(Protocol):
    """Lookup used to populate variable candidates."""

    async def label_values(
        self, label: str, match: Optional[str] = None, datasource: Optional[str] = None
    ) -> List[str]: ...

    def names(self) -> List[str]: ...


class InvalidVariableQuery(PanelForgeError):
    """Raised by load_candidates when a query does not match the grammar."""


class VariableResolver:
    """Owns the per-variable state table of one dashboard session."""

    def __init__(
        self,
        source: LabelValuesSource,
        on_auth_error: Optional[Callable[[], None]] = None,
    ) -> None:
        self._source = source
        self._on_auth_error = on_auth_error
        self._definitions: Dict[str, Variable] = {}
        self._states: Dict[str, VariableState] = {}
        self._tokens: Dict[str, int] = {}
        self._counter = itertools.count(1)

    # --- state table -----------------------------------------------------

    def __iter__(self) -> Iterator[VariableState]:
        return iter(list(self._states.values()))

    def __len__(self) -> int:
        return len(self._states)

    def get(self, name: str) -> Optional[VariableState]:
        return self._states.get(name)

    def states(self) -> Dict[str, VariableState]:
        return dict(self._states)

    @property
    def loading(self) -> bool:
        return any(state.loading for state in self._states.values())

    def selected_values(self) -> Dict[str, str]:
        """Name to selected value, omitting variables with no selection."""
        return {name: state.selected for name, state in self._states.items() if state.selected}

    def all_values(self) -> Dict[str, List[str]]:
        return {name: list(state.values) for name, state in self._states.items()}

    def set_selection(self, name: str, value: str) -> None:
        """Select ``value`` for ``name``; no re-fetch."""
        state = self._states.get(name)
        if state is None:
            logger.warning("unknown_variable_selected", variable=name)
            return
        self._states[name] = replace(state, selected=value)

    # --- loading ---------------------------------------------------------

    def reset(self, definitions: Sequence[Variable]) -> None:
        """Replace the state table with fresh ``loading`` entries."""
        self._definitions = {var.name: var for var in definitions}
        self._states = {
            var.name: VariableState(
                name=var.name,
                label=var.display_label,
                hidden=var.hidden,
                status=VariableStatus.LOADING,
            )
            for var in definitions
        }
        self._tokens = {var.name: next(self._counter) for var in definitions}

    async def load(
        self,
        definitions: Sequence[Variable],
        preferred: Optional[Mapping[str, str]] = None,
    ) -> None:
        """Reset state and fetch every variable's candidates concurrently.

        ``preferred`` selections (e.g. restored from the URL) win over the
        first-candidate default when they are among the candidates.
        """
        self.reset(definitions)
        preferred = preferred or {}
        await asyncio.gather(
            *(
                self._fetch(var, self._tokens[var.name], preferred.get(var.name))
                for var in definitions
            )
        )

    async def reload(self, name: str) -> None:
        """Re-fetch a single variable, superseding any fetch in flight."""
        var = self._definitions.get(name)
        if var is None:
            logger.warning("unknown_variable_reload", variable=name)
            return
        token = next(self._counter)
        self._tokens[name] = token
        previous = self._states[name]
        self._states[name] = replace(previous, status=VariableStatus.LOADING, error=None)
        await self._fetch(var, token, previous.selected or None)

    async def load_candidates(self, variable: Variable) -> List[str]:
        """Fetch candidate values for one variable.

        Raises:
            InvalidVariableQuery: query text does not match label_values(...)
            PanelForgeError: the lookup failed
        """
        if variable.kind == VariableKind.DATASOURCE:
            return list(self._source.names())

        parsed = parse_label_values_query(variable.query)
        if parsed is None:
            raise InvalidVariableQuery(INVALID_QUERY_MESSAGE, {"variable": variable.name})
        return list(
            await self._source.label_values(parsed.label, parsed.metric, variable.datasource)
        )

    async def _fetch(self, variable: Variable, token: int, preferred: Optional[str]) -> None:
        log = logger.bind(variable=variable.name, token=token)
        try:
            values = await self.load_candidates(variable)
        except PanelForgeError as exc:
            self._fail(variable.name, token, exc, exc.message, log)
            return
        except Exception as exc:
            log.error("variable_fetch_unexpected_error", error=str(exc), error_type=type(exc).__name__)
            self._fail(variable.name, token, exc, str(exc) or type(exc).__name__, log)
            return

        if not self._is_current(variable.name, token):
            log.debug("variable_fetch_superseded")
            return

        selected = preferred if preferred in values else (values[0] if values else "")
        self._states[variable.name] = replace(
            self._states[variable.name],
            values=values,
            selected=selected,
            status=VariableStatus.READY,
            error=None,
        )
        log.debug("variable_ready", candidates=len(values))

    def _fail(self, name: str, token: int, exc: Exception, message: str, log) -> None:
        # Auth failures are reported even for superseded fetches
        if is_auth_error(exc) and self._on_auth_error is not None:
            self._on_auth_error()
        if not self._is_current(name, token):
            log.debug("variable_fetch_superseded")
            return
        log.warning("variable_fetch_failed", error=message)
        self._states[name] = replace(
            self._states[name], status=VariableStatus.ERRORED, error=message
        )

    def _is_current(self, name: str, token: int) -> bool:
        return self._tokens.get(name) == token and name in self._states
