"""Prometheus metrics."""

from prometheus_client import Counter

# External commit metrics
external_commits = Counter(
    "tokendrop_external_commits_total",
    "External ledger commits by outcome",
    ["operation", "outcome"],
)

# Ledger metrics
ledger_appends = Counter(
    "tokendrop_ledger_appends_total",
    "Distribution events appended to the audit ledger",
    ["kind"],
)

ledger_store_failures = Counter(
    "tokendrop_ledger_store_failures_total",
    "Ledger store failures",
    ["operation"],
)

history_queries = Counter(
    "tokendrop_history_queries_total",
    "Ledger range queries",
    ["bounded"],
)
