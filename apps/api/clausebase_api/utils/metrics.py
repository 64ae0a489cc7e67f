"""Prometheus metrics."""

from prometheus_client import Counter

# Version chain metrics
versions_created = Counter(
    "clausebase_versions_created_total",
    "Total versions appended to contract chains",
)

version_append_conflicts = Counter(
    "clausebase_version_append_conflicts_total",
    "Version number conflicts retried during append",
)

# Approval metrics
votes_cast = Counter(
    "clausebase_votes_cast_total",
    "Total votes cast on versions",
    ["vote"],
)

# Merge metrics
merges_completed = Counter(
    "clausebase_merges_completed_total",
    "Total versions merged into their contract",
    ["trigger"],
)

# Proof anchoring metrics
anchor_attempts = Counter(
    "clausebase_anchor_attempts_total",
    "Proof anchoring attempts",
    ["outcome"],
)

# Notification metrics
notifications_enqueued = Counter(
    "clausebase_notifications_enqueued_total",
    "Notification deliveries enqueued",
    ["status"],
)
