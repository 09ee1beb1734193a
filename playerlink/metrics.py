"""Prometheus counters for provisioning."""

from prometheus_client import CollectorRegistry, Counter

registry = CollectorRegistry()

provisioning_outcomes = Counter(
    "playerlink_provisioning_total",
    "Provisioning requests by mode and outcome",
    ["mode", "outcome"],
    registry=registry,
)
ledger_faults = Counter(
    "playerlink_ledger_faults_total",
    "Ledger submissions rejected, by fault kind",
    ["kind"],
    registry=registry,
)
recoveries = Counter(
    "playerlink_recoveries_total",
    "Completed reconciliations, by whether a token account had to be created",
    ["token_account_created"],
    registry=registry,
)
