"""Pydantic schemas for API request/response validation."""

from journey.schemas.ab_test import (
    ABMetrics,
    ABMetricsList,
    ABVariant,
    ABVariantCreate,
    ABVariantUpdate,
    ABVariantWithTemplate,
    EmailEventCreate,
    TemplateOption,
    VariantAssignment,
)
from journey.schemas.analytics import (
    AdvancedAnalyticsResponse,
    AdvancedMetric,
    DailyRollup,
    RollupSummary,
)
from journey.schemas.email_template import (
    EmailTemplate,
    EmailTemplateCreate,
    EmailTemplateList,
    EmailTemplateUpdate,
    EmailTemplateWrite,
)
from journey.schemas.journey import (
    FunnelResponse,
    FunnelStageView,
    FunnelStat,
    FunnelSummary,
    JourneyRecord,
    RosterEntry,
    RosterList,
    StageEntryCreate,
    StageInfo,
)
from journey.schemas.reminder import (
    BuiltinReminder,
    ReminderIntent,
    ReminderPayload,
    ReminderPreview,
    ReminderRequest,
    ReminderResult,
)

__all__ = [
    # Journey schemas
    "StageInfo",
    "JourneyRecord",
    "RosterEntry",
    "RosterList",
    "FunnelStat",
    "FunnelStageView",
    "FunnelSummary",
    "FunnelResponse",
    "StageEntryCreate",
    # Reminder schemas
    "ReminderIntent",
    "ReminderRequest",
    "ReminderPayload",
    "ReminderPreview",
    "ReminderResult",
    "BuiltinReminder",
    # Email template schemas
    "EmailTemplate",
    "EmailTemplateCreate",
    "EmailTemplateUpdate",
    "EmailTemplateWrite",
    "EmailTemplateList",
    # A/B schemas
    "TemplateOption",
    "ABVariant",
    "ABVariantCreate",
    "ABVariantUpdate",
    "ABVariantWithTemplate",
    "ABMetrics",
    "ABMetricsList",
    "EmailEventCreate",
    "VariantAssignment",
    # Analytics schemas
    "AdvancedMetric",
    "DailyRollup",
    "RollupSummary",
    "AdvancedAnalyticsResponse",
]
