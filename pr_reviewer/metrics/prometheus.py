# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Prometheus metrics — single source of truth for all metric objects.
Imported by services and middleware. Never instantiated in controllers.
"""

from prometheus_client import Counter, Histogram

# ── HTTP Metrics (used by middleware) ──
REQUEST_COUNT = Counter(
    "reviewer_requests_total",
    "Total HTTP requests to the reviewer service",
    ["method", "endpoint", "status"],
)
REQUEST_LATENCY = Histogram(
    "reviewer_request_duration_seconds",
    "Request latency in seconds",
    ["method", "endpoint"],
)
HTTP_ERRORS = Counter(
    "reviewer_http_errors_total",
    "Total HTTP error responses",
    ["method", "endpoint", "status"],
)

# ── Business Metrics (updated by service layer only) ──
PRS_CREATED = Counter(
    "reviewer_prs_created_total",
    "Total pull requests created",
)
PRS_MERGED = Counter(
    "reviewer_prs_merged_total",
    "Total pull requests merged",
)
REVIEWERS_ASSIGNED = Counter(
    "reviewer_assignments_total",
    "Total reviewer assignments written",
    ["source"],
)
REASSIGNMENTS = Counter(
    "reviewer_reassignments_total",
    "Explicit reassignments by outcome",
    ["outcome"],
)
PRS_REBALANCED = Counter(
    "reviewer_prs_rebalanced_total",
    "Open PRs that received a replacement reviewer during a deactivation cascade",
)
USERS_DEACTIVATED = Counter(
    "reviewer_users_deactivated_total",
    "Total users deactivated",
    ["reason"],
)
TX_ROLLBACKS = Counter(
    "reviewer_transaction_rollbacks_total",
    "Units of work rolled back",
    ["error"],
)
