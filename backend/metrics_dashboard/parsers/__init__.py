"""Parsers that turn raw API responses into typed models."""

from .base import BaseParser
from .metrics_document import (
    MetricsDocumentParser,
    PagedListParser,
    coerce_number,
    parse_metrics_document,
    unwrap_payload,
)

__all__ = [
    "BaseParser",
    "MetricsDocumentParser",
    "PagedListParser",
    "coerce_number",
    "parse_metrics_document",
    "unwrap_payload",
]
