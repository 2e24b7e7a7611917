"""
Journey stage vocabulary.

The six lifecycle stages form a fixed total order used for funnel
sequencing, filtering and display:

    signup -> profile_completed -> plan_selected -> payment_pending
           -> payment_confirmed -> active
"""
import enum
from typing import Optional


class JourneyStage(str, enum.Enum):
    """Lifecycle stage a user currently occupies."""

    SIGNUP = "signup"
    PROFILE_COMPLETED = "profile_completed"
    PLAN_SELECTED = "plan_selected"
    PAYMENT_PENDING = "payment_pending"
    PAYMENT_CONFIRMED = "payment_confirmed"
    ACTIVE = "active"


class UnknownStageError(ValueError):
    """Raised when a stage value is not part of the journey vocabulary."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Unknown journey stage: {value!r}")


# Users lingering longer than this in a stage need attention
NEEDS_ATTENTION_HOURS = 48

STAGE_LABELS = {
    JourneyStage.SIGNUP: "Cadastro Inicial",
    JourneyStage.PROFILE_COMPLETED: "Perfil Completo",
    JourneyStage.PLAN_SELECTED: "Plano Escolhido",
    JourneyStage.PAYMENT_PENDING: "Pagamento Pendente",
    JourneyStage.PAYMENT_CONFIRMED: "Pagamento Confirmado",
    JourneyStage.ACTIVE: "Usuário Ativo",
}

_ORDER = list(JourneyStage)

ALL_STAGES_FILTER = "all"


def all_stages() -> list[JourneyStage]:
    """Return the stages in funnel order."""
    return list(_ORDER)


def ordinal(stage: JourneyStage) -> int:
    """Position of the stage in the funnel, starting at 0 for signup."""
    return _ORDER.index(stage)


def label(stage: JourneyStage) -> str:
    """Human-readable stage name."""
    return STAGE_LABELS[stage]


def next_stage(stage: JourneyStage) -> Optional[JourneyStage]:
    """Stage following ``stage``, or None for the last one."""
    position = ordinal(stage)
    if position + 1 < len(_ORDER):
        return _ORDER[position + 1]
    return None


def parse_stage(value: object) -> JourneyStage:
    """
    Convert a raw stage value into a JourneyStage.

    Args:
        value: Stage string as stored or received

    Returns:
        Matching JourneyStage

    Raises:
        UnknownStageError: If the value is not a known stage
    """
    if isinstance(value, JourneyStage):
        return value
    try:
        return JourneyStage(value)
    except ValueError:
        raise UnknownStageError(value) from None


def parse_stage_filter(value: Optional[str]) -> Optional[JourneyStage]:
    """Parse a stage filter where None, "" and "all" mean every stage."""
    if value is None or value == "" or value == ALL_STAGES_FILTER:
        return None
    return parse_stage(value)


def needs_attention(hours_in_stage: float) -> bool:
    """Whether a user has been stuck in a stage past the threshold."""
    return hours_in_stage > NEEDS_ATTENTION_HOURS
