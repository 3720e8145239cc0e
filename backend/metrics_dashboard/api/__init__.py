"""HTTP access to the remote metrics API."""

from .client import MetricsAPIClient, MetricsAPIError, parse_body

__all__ = ["MetricsAPIClient", "MetricsAPIError", "parse_body"]
