"""Base classes and interfaces for parsers."""

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class BaseParser(ABC, Generic[T]):
    """Abstract base class for response parsers."""

    @abstractmethod
    def parse(self, source: Any) -> T:
        """Parse a decoded API response into a typed model."""
        raise NotImplementedError
