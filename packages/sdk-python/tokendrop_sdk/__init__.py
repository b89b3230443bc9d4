"""TOKENDROP Python SDK."""

__version__ = "0.1.0"

from tokendrop_sdk.client import HistoryClient

__all__ = ["HistoryClient"]
