"""Dashboard service for model evaluation metrics served by a remote API."""

__version__ = "1.0.0"
