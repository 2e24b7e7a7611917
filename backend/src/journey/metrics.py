"""Business metrics for Prometheus monitoring."""
from prometheus_client import Counter, Gauge

# Reminder dispatch
reminders_sent_total = Counter(
    "journey_reminders_sent_total",
    "Operator reminders submitted to the notification collaborator",
    labelnames=["intent", "status"],  # status: sent, failed
)

# Template manager
templates_written_total = Counter(
    "journey_templates_written_total",
    "Email template writes",
    labelnames=["action"],  # created, updated, deleted
)

# A/B variant engine
ab_variants_created_total = Counter(
    "journey_ab_variants_created_total",
    "A/B variants created",
)

email_events_total = Counter(
    "journey_email_events_total",
    "Email tracking events recorded",
    labelnames=["event_type"],
)

# Funnel gauges, refreshed by the worker
stage_users_gauge = Gauge(
    "journey_stage_users",
    "Distinct users with a record in each journey stage",
    labelnames=["stage"],
)

stuck_stages_gauge = Gauge(
    "journey_stuck_stages",
    "Stages whose average time in stage exceeds the attention threshold",
)
