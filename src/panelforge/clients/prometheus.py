"""
Prometheus HTTP API client.

Covers the two calls a dashboard needs: range queries for graph panels
and label values for query variables.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import structlog

from panelforge.clients.base import BaseHTTPClient
from panelforge.core.errors import DatasourceError
from panelforge.models import Series

logger = structlog.get_logger()


class PrometheusClient(BaseHTTPClient):
    """Prometheus-compatible datasource (Prometheus, Thanos, VictoriaMetrics)."""

    user_agent = "panelforge-prometheus/0.1.0"

    @staticmethod
    def _data(body: Any) -> Any:
        if not isinstance(body, dict):
            raise DatasourceError("unexpected response body")
        if body.get("status") != "success":
            error = body.get("error", "Unknown error")
            raise DatasourceError(f"Prometheus API error: {error}")
        return body.get("data")

    async def query_range(self, query: str, start: int, end: int, step: str) -> list[Series]:
        """
        Execute a range query.

        Args:
            query: PromQL expression (already substituted)
            start: Start time, unix seconds
            end: End time, unix seconds
            step: Query resolution, e.g. "60s"

        Returns:
            One Series per matrix result
        """
        body = await self.get(
            "/api/v1/query_range",
            params={"query": query, "start": str(start), "end": str(end), "step": step},
        )
        data = self._data(body) or {}
        result = data.get("result") or []
        logger.debug("query_range_complete", series=len(result), step=step)
        return [Series.from_prometheus(entry) for entry in result]

    async def label_values(self, label: str, match: str | None = None) -> list[str]:
        """
        List values of ``label``, optionally restricted by a series selector.

        Order is preserved as returned by the server.
        """
        params: list[tuple[str, str]] = []
        if match:
            params.append(("match[]", match))
        body = await self.get(f"/api/v1/label/{quote(label, safe='')}/values", params=params or None)
        values = self._data(body) or []
        return [str(v) for v in values]

    async def ping(self) -> bool:
        """Return True if the server reports ready."""
        try:
            await self.get("/-/ready")
        except DatasourceError as exc:
            logger.warning("datasource_not_ready", url=self.base_url, error=exc.message)
            return False
        return True
