"""Named datasource clients."""

from __future__ import annotations

from typing import Iterable

from panelforge.clients.prometheus import PrometheusClient
from panelforge.config.loader import DatasourceConfig
from panelforge.core.errors import ConfigurationError, DatasourceError
from panelforge.models import Series


class DatasourceRegistry:
    """Maps datasource names to clients; an empty name means the default."""

    def __init__(self, clients: dict[str, PrometheusClient], default_name: str) -> None:
        if default_name not in clients:
            raise ConfigurationError("default datasource is not registered", {"name": default_name})
        self._clients = dict(clients)
        self._default_name = default_name

    @classmethod
    def from_config(cls, datasources: Iterable[DatasourceConfig]) -> DatasourceRegistry:
        clients: dict[str, PrometheusClient] = {}
        default_name = ""
        for ds in datasources:
            clients[ds.name] = PrometheusClient(ds.url, timeout=ds.timeout)
            if ds.default:
                default_name = ds.name
        if not clients:
            raise ConfigurationError("no datasources configured")
        return cls(clients, default_name)

    @property
    def default_name(self) -> str:
        return self._default_name

    def names(self) -> list[str]:
        return sorted(self._clients)

    def get(self, name: str | None = None) -> PrometheusClient:
        if not name:
            return self._clients[self._default_name]
        try:
            return self._clients[name]
        except KeyError:
            raise DatasourceError(f"unknown datasource {name!r}") from None

    async def label_values(
        self, label: str, match: str | None = None, datasource: str | None = None
    ) -> list[str]:
        return await self.get(datasource).label_values(label, match)

    async def query_range(
        self, query: str, start: int, end: int, step: str, datasource: str | None = None
    ) -> list[Series]:
        return await self.get(datasource).query_range(query, start, end, step)
