from panelforge.clients.base import BaseHTTPClient, PermanentHTTPError, RetryableHTTPError
from panelforge.clients.prometheus import PrometheusClient
from panelforge.clients.registry import DatasourceRegistry

__all__ = [
    "BaseHTTPClient",
    "PermanentHTTPError",
    "RetryableHTTPError",
    "PrometheusClient",
    "DatasourceRegistry",
]
