"""
Operator reminders for a single user.

A dispatch moves through ``IDLE -> COMPOSING -> SENDING -> SENT | FAILED``.
A failed dispatch may be sent again (manual retry) or recomposed; nothing
is retried automatically. Once issued, the outbound call is shielded from
cancellation of the caller: it runs to completion in the background and
its outcome is logged.
"""
import asyncio
import enum
from typing import Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from journey import metrics
from journey.integrations.notification_service import NotificationResult, NotificationService
from journey.models.reminder_log import ReminderLog
from journey.schemas.journey import JourneyRecord
from journey.schemas.reminder import (
    BuiltinReminder,
    ReminderIntent,
    ReminderPayload,
    ReminderPreview,
    ReminderRequest,
    ReminderResult,
)
from journey.services.errors import (
    InvalidReminderState,
    NotFoundError,
    ReminderDeliveryError,
    ReminderValidationError,
)
from journey.services.journey_record_service import JourneyRecordService

logger = structlog.get_logger(__name__)

NAME_PLACEHOLDER = "{name}"
DEFAULT_SEND_ERROR = "Erro ao enviar lembrete"
MISSING_FIELDS_TITLE = "Campos obrigatórios"
MISSING_FIELDS_DESCRIPTION = "Preencha o assunto e a mensagem do email personalizado"

REMINDER_TEMPLATES: dict[ReminderIntent, BuiltinReminder] = {
    ReminderIntent.COMPLETE_PROFILE: BuiltinReminder(
        intent=ReminderIntent.COMPLETE_PROFILE,
        label="Completar Perfil",
        subject="Complete seu perfil - Mulheres em Convergência",
        message=(
            "Olá {name},\n\n"
            "Notamos que você iniciou seu cadastro no portal Mulheres em Convergência. "
            "Para aproveitar todos os benefícios, complete seu perfil com seus dados.\n\n"
            "Acesse: https://mulheresemconvergencia.com.br\n\n"
            "Qualquer dúvida, estamos à disposição!"
        ),
    ),
    ReminderIntent.CHOOSE_PLAN: BuiltinReminder(
        intent=ReminderIntent.CHOOSE_PLAN,
        label="Escolher Plano",
        subject="Escolha seu plano - Mulheres em Convergência",
        message=(
            "Olá {name},\n\n"
            "Seu perfil está completo! Agora é hora de escolher o plano ideal para você "
            "e começar a divulgar seu negócio.\n\n"
            "Conheça nossos planos: https://mulheresemconvergencia.com.br/planos\n\n"
            "Estamos aqui para ajudar!"
        ),
    ),
    ReminderIntent.COMPLETE_PAYMENT: BuiltinReminder(
        intent=ReminderIntent.COMPLETE_PAYMENT,
        label="Finalizar Pagamento",
        subject="Finalize seu pagamento - Mulheres em Convergência",
        message=(
            "Olá {name},\n\n"
            "Você está a um passo de ativar sua assinatura! Finalize seu pagamento para "
            "começar a aproveitar todos os benefícios.\n\n"
            "Acesse: https://mulheresemconvergencia.com.br/painel\n\n"
            "Precisa de ajuda? Entre em contato conosco!"
        ),
    ),
    ReminderIntent.CUSTOM: BuiltinReminder(
        intent=ReminderIntent.CUSTOM,
        label="Mensagem Personalizada",
        subject="",
        message="",
    ),
}


def display_name(record: JourneyRecord) -> str:
    """Name used for ``{name}``: full name when non-empty, else e-mail."""
    return record.full_name or record.email


def render_builtin(intent: ReminderIntent, record: JourneyRecord) -> tuple[str, str]:
    """
    Subject and message of a built-in reminder for ``record``.

    Every ``{name}`` occurrence is replaced; no other token is touched.
    """
    if intent is ReminderIntent.CUSTOM:
        raise ValueError("custom reminders have no built-in content")
    template = REMINDER_TEMPLATES[intent]
    return template.subject, template.message.replace(NAME_PLACEHOLDER, display_name(record))


def compose_reminder(
    intent: ReminderIntent,
    record: JourneyRecord,
    subject: Optional[str] = None,
    message: Optional[str] = None,
) -> tuple[str, str]:
    """
    Final subject and message for a reminder.

    Raises:
        ReminderValidationError: If a custom reminder lacks subject or message
    """
    if intent is ReminderIntent.CUSTOM:
        if not (subject or "").strip() or not (message or "").strip():
            raise ReminderValidationError(MISSING_FIELDS_TITLE, MISSING_FIELDS_DESCRIPTION)
        return subject, message
    return render_builtin(intent, record)


class ReminderState(str, enum.Enum):
    """Dispatch lifecycle."""

    IDLE = "idle"
    COMPOSING = "composing"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"


class ReminderDispatch:
    """One operator reminder, from opening the dialog to the send outcome."""

    def __init__(self, notifier: NotificationService):
        self.notifier = notifier
        self.state = ReminderState.IDLE
        self.record: JourneyRecord | None = None
        self.intent: ReminderIntent | None = None
        self.payload: ReminderPayload | None = None
        self.result: NotificationResult | None = None

    def _require(self, *allowed: ReminderState) -> None:
        if self.state not in allowed:
            raise InvalidReminderState(
                f"Reminder is {self.state.value}; expected {', '.join(s.value for s in allowed)}"
            )

    def open(self, record: JourneyRecord) -> None:
        """Start composing a reminder for ``record``."""
        self._require(ReminderState.IDLE)
        self.record = record
        self.state = ReminderState.COMPOSING

    def compose(
        self,
        intent: ReminderIntent,
        subject: Optional[str] = None,
        message: Optional[str] = None,
    ) -> ReminderPayload:
        """
        Compose the outbound payload.

        Allowed while composing, or after a failure to edit before retrying.

        Raises:
            ReminderValidationError: If a custom reminder lacks subject or message
        """
        self._require(ReminderState.COMPOSING, ReminderState.FAILED)
        final_subject, final_message = compose_reminder(intent, self.record, subject, message)

        self.intent = intent
        self.payload = ReminderPayload(
            user_id=self.record.user_id,
            user_email=self.record.email,
            user_name=self.record.full_name,
            journey_stage=self.record.journey_stage,
            subject=final_subject,
            message=final_message,
        )
        self.state = ReminderState.COMPOSING
        return self.payload

    async def send(self) -> NotificationResult:
        """
        Submit the composed payload exactly once.

        Raises:
            InvalidReminderState: If nothing is composed or a send is in flight
        """
        self._require(ReminderState.COMPOSING, ReminderState.FAILED)
        if self.payload is None:
            raise InvalidReminderState("Reminder has not been composed")

        self.state = ReminderState.SENDING
        task = asyncio.ensure_future(self.notifier.send_reminder(self.payload))

        try:
            result = await asyncio.shield(task)
        except asyncio.CancelledError:
            task.add_done_callback(self._finish_in_background)
            logger.warning("reminder_caller_cancelled", user_id=self.payload.user_id)
            raise
        except Exception:
            self.state = ReminderState.FAILED
            raise

        self._apply(result)
        return result

    def _apply(self, result: NotificationResult) -> None:
        self.result = result
        self.state = ReminderState.SENT if result.success else ReminderState.FAILED

    def _finish_in_background(self, task: asyncio.Future) -> None:
        if task.cancelled():
            self.state = ReminderState.FAILED
            logger.warning("reminder_cancelled_in_flight", user_id=self.payload.user_id)
            return
        error = task.exception()
        if error is not None:
            self.state = ReminderState.FAILED
            logger.error("reminder_completed_after_cancel", user_id=self.payload.user_id, error=str(error))
            return
        result = task.result()
        self._apply(result)
        logger.info(
            "reminder_completed_after_cancel",
            user_id=self.payload.user_id,
            success=result.success,
            error=result.error,
        )


class ReminderService:
    """Reminder dispatch backed by the journey store and the notification collaborator."""

    def __init__(self, db: AsyncSession, notifier: NotificationService):
        """Initialize reminder service with database session and notifier."""
        self.db = db
        self.notifier = notifier

    async def _current_record(self, user_id: str) -> JourneyRecord:
        record = await JourneyRecordService(self.db).current_record(user_id)
        if record is None:
            raise NotFoundError(f"No journey record for user {user_id}")
        return record

    async def preview(self, request: ReminderRequest) -> ReminderPreview:
        """
        Compose a reminder without sending it.

        Raises:
            NotFoundError: If the user has no journey record
            ReminderValidationError: If a custom reminder lacks subject or message
        """
        dispatch = ReminderDispatch(self.notifier)
        dispatch.open(await self._current_record(request.user_id))
        payload = dispatch.compose(request.intent, request.subject, request.message)
        return ReminderPreview(
            intent=request.intent,
            recipient=payload.user_email,
            subject=payload.subject,
            message=payload.message,
        )

    async def send(self, request: ReminderRequest, sent_by: str | None = None) -> ReminderResult:
        """
        Compose and send a reminder to the user's current stage record.

        A failed activity-log write is logged and rolled back; it never turns
        a delivered e-mail into an error.

        Args:
            request: User, intent and optional custom content
            sent_by: Operator identifier stored in the activity log

        Returns:
            Success outcome with the recipient address

        Raises:
            NotFoundError: If the user has no journey record
            ReminderValidationError: If a custom reminder lacks subject or message
            ReminderDeliveryError: If the collaborator reports a failure
        """
        dispatch = ReminderDispatch(self.notifier)
        dispatch.open(await self._current_record(request.user_id))
        payload = dispatch.compose(request.intent, request.subject, request.message)

        result = await dispatch.send()

        if not result.success:
            metrics.reminders_sent_total.labels(intent=request.intent.value, status="failed").inc()
            logger.warning(
                "reminder_failed",
                user_id=payload.user_id,
                intent=request.intent.value,
                error=result.error,
                retryable=result.retryable,
            )
            raise ReminderDeliveryError(result.error or DEFAULT_SEND_ERROR, retryable=result.retryable)

        log = ReminderLog(
            user_id=payload.user_id,
            user_email=payload.user_email,
            journey_stage=payload.journey_stage.value,
            intent=request.intent.value,
            subject=payload.subject,
            message=payload.message,
            sent_by=sent_by,
            details={"email_sent_to": result.email_sent_to, "mock": self.notifier.mock_mode},
        )
        self.db.add(log)
        try:
            await self.db.flush()
        except SQLAlchemyError:
            # Delivery already happened, the send stays successful
            logger.exception("reminder_log_write_failed", user_id=payload.user_id, intent=request.intent.value)
            await self.db.rollback()

        metrics.reminders_sent_total.labels(intent=request.intent.value, status="sent").inc()
        logger.info(
            "reminder_sent",
            user_id=payload.user_id,
            intent=request.intent.value,
            stage=payload.journey_stage.value,
            sent_by=sent_by,
        )

        return ReminderResult(
            recipient=payload.user_email,
            subject=payload.subject,
            detail=f"Email enviado com sucesso para {payload.user_email}",
        )

    @staticmethod
    def builtin_templates() -> list[BuiltinReminder]:
        """The fixed reminder catalog, custom last."""
        return list(REMINDER_TEMPLATES.values())
