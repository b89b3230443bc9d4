"""TOKENDROP API - fixed-amount token distribution with an org-scoped audit ledger."""

__version__ = "0.1.0"
