"""Flow-engine constants shared across the SDK.

These values are referenced by the store, evaluator, router, and review
validator.  They mirror conventions encoded in the YAML step graphs under
``graphs/``.

Several constants can be overridden via environment variables so that
deployments can adjust program thresholds without code changes.
"""

import os

# Idle minutes after which a persisted flow is treated as expired and evicted.
# Overridable via STATE_TTL_MINUTES env var.
STATE_TTL_MINUTES = int(os.getenv("STATE_TTL_MINUTES", "20"))

# Age-category lower bounds (inclusive).  Anything below YOUTH_MIN_AGE is a child.
SENIORS_MIN_AGE = int(os.getenv("SENIORS_MIN_AGE", "65"))
ADULTS_MIN_AGE = int(os.getenv("ADULTS_MIN_AGE", "18"))
YOUTH_MIN_AGE = int(os.getenv("YOUTH_MIN_AGE", "16"))

# Marital-status codes that imply a partner/spouse section is required.
# Comma-separated override via PARTNER_MARITAL_STATUSES.
PARTNER_MARITAL_STATUSES: frozenset[str] = frozenset(
    s.strip()
    for s in os.getenv("PARTNER_MARITAL_STATUSES", "married,common-law").split(",")
    if s.strip()
)

# Flow family -> context.  The family namespaces storage keys; the context
# selects the step graph.
FLOW_FAMILIES: dict[str, str] = {
    "apply": "intake",
    "protected-apply": "intake",
    "renew": "renewal",
    "protected-renew": "renewal",
}

# Branch-rule categories in evaluation order.  The edit-mode override is
# applied before any of these.
BRANCH_PRIORITY_ORDER: tuple[str, ...] = ("terminal", "age", "applicant_type", "default")

# Fields a step patch may never set directly.
IMMUTABLE_FIELDS: frozenset[str] = frozenset(
    {"id", "context", "last_updated_on", "children", "submission_info"}
)
