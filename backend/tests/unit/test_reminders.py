"""Unit tests for reminder composition and the dispatch state machine."""
import asyncio
from datetime import datetime

import pytest

from journey.integrations.notification_service import NotificationResult
from journey.models.journey_stage import JourneyStage
from journey.schemas.journey import JourneyRecord
from journey.schemas.reminder import ReminderIntent
from journey.services.errors import InvalidReminderState, ReminderValidationError
from journey.services.reminder_service import (
    REMINDER_TEMPLATES,
    ReminderDispatch,
    ReminderState,
    compose_reminder,
    render_builtin,
)


class FakeNotifier:
    """Collects payloads; answers with queued results."""

    mock_mode = False

    def __init__(self, *results: NotificationResult, delay: float = 0.0):
        self.results = list(results) or [NotificationResult(success=True)]
        self.delay = delay
        self.calls = []

    async def send_reminder(self, payload):
        self.calls.append(payload)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.results.pop(0)


def make_record(full_name: str | None = "Maria Souza", email: str = "maria@example.com") -> JourneyRecord:
    return JourneyRecord(
        user_id="user-1",
        email=email,
        full_name=full_name,
        journey_stage=JourneyStage.PROFILE_COMPLETED,
        created_at=datetime(2026, 1, 1),
        hours_in_stage=72,
    )


def test_builtin_catalog_has_three_intents_plus_custom() -> None:
    assert list(REMINDER_TEMPLATES) == [
        ReminderIntent.COMPLETE_PROFILE,
        ReminderIntent.CHOOSE_PLAN,
        ReminderIntent.COMPLETE_PAYMENT,
        ReminderIntent.CUSTOM,
    ]
    assert REMINDER_TEMPLATES[ReminderIntent.CHOOSE_PLAN].label == "Escolher Plano"


def test_empty_full_name_falls_back_to_email() -> None:
    subject, message = render_builtin(ReminderIntent.COMPLETE_PROFILE, make_record(full_name="", email="x@y.com"))

    assert message.startswith("Olá x@y.com,")
    assert subject == "Complete seu perfil - Mulheres em Convergência"


def test_full_name_used_when_present() -> None:
    _, message = render_builtin(ReminderIntent.COMPLETE_PAYMENT, make_record())

    assert message.startswith("Olá Maria Souza,")
    assert "{name}" not in message


def test_every_name_placeholder_replaced_and_nothing_else(monkeypatch) -> None:
    template = REMINDER_TEMPLATES[ReminderIntent.CHOOSE_PLAN]
    monkeypatch.setitem(
        REMINDER_TEMPLATES,
        ReminderIntent.CHOOSE_PLAN,
        template.model_copy(update={"message": "{name} e {name}; {{user_name}} {email}"}),
    )

    _, message = render_builtin(ReminderIntent.CHOOSE_PLAN, make_record(full_name="Ana"))

    assert message == "Ana e Ana; {{user_name}} {email}"


@pytest.mark.parametrize("intent", [i for i in ReminderIntent if i is not ReminderIntent.CUSTOM])
def test_builtin_reminders_never_empty(intent: ReminderIntent) -> None:
    subject, message = compose_reminder(intent, make_record())

    assert subject.strip()
    assert message.strip()


@pytest.mark.parametrize(
    "subject, message",
    [("", "hello"), ("Assunto", ""), (None, "hello"), ("   ", "hello"), ("Assunto", "\n ")],
)
def test_custom_reminder_requires_subject_and_message(subject, message) -> None:
    with pytest.raises(ReminderValidationError) as exc_info:
        compose_reminder(ReminderIntent.CUSTOM, make_record(), subject, message)

    assert exc_info.value.title == "Campos obrigatórios"
    assert exc_info.value.description == "Preencha o assunto e a mensagem do email personalizado"


def test_custom_reminder_is_sent_verbatim() -> None:
    subject, message = compose_reminder(ReminderIntent.CUSTOM, make_record(), "Oi", "Olá {name}")

    assert (subject, message) == ("Oi", "Olá {name}")


@pytest.mark.asyncio
async def test_blank_custom_subject_never_calls_notifier() -> None:
    notifier = FakeNotifier()
    dispatch = ReminderDispatch(notifier)
    dispatch.open(make_record())

    with pytest.raises(ReminderValidationError):
        dispatch.compose(ReminderIntent.CUSTOM, subject="", message="hello")

    with pytest.raises(InvalidReminderState):
        await dispatch.send()

    assert notifier.calls == []
    assert dispatch.state is ReminderState.COMPOSING


@pytest.mark.asyncio
async def test_successful_send_reaches_sent() -> None:
    notifier = FakeNotifier(NotificationResult(success=True, email_sent_to="maria@example.com"))
    dispatch = ReminderDispatch(notifier)

    assert dispatch.state is ReminderState.IDLE
    dispatch.open(make_record())
    assert dispatch.state is ReminderState.COMPOSING

    payload = dispatch.compose(ReminderIntent.COMPLETE_PROFILE)
    result = await dispatch.send()

    assert result.success is True
    assert dispatch.state is ReminderState.SENT
    assert len(notifier.calls) == 1
    assert payload.user_email == "maria@example.com"
    assert payload.journey_stage is JourneyStage.PROFILE_COMPLETED


@pytest.mark.asyncio
async def test_failed_send_allows_manual_retry() -> None:
    notifier = FakeNotifier(
        NotificationResult(success=False, error="MailRelay API error: quota"),
        NotificationResult(success=True),
    )
    dispatch = ReminderDispatch(notifier)
    dispatch.open(make_record())
    dispatch.compose(ReminderIntent.CHOOSE_PLAN)

    first = await dispatch.send()
    assert first.error == "MailRelay API error: quota"
    assert dispatch.state is ReminderState.FAILED

    second = await dispatch.send()
    assert second.success is True
    assert dispatch.state is ReminderState.SENT
    assert len(notifier.calls) == 2


@pytest.mark.asyncio
async def test_sent_dispatch_cannot_send_again() -> None:
    dispatch = ReminderDispatch(FakeNotifier())
    dispatch.open(make_record())
    dispatch.compose(ReminderIntent.COMPLETE_PROFILE)
    await dispatch.send()

    with pytest.raises(InvalidReminderState):
        await dispatch.send()


@pytest.mark.asyncio
async def test_no_second_send_while_sending() -> None:
    notifier = FakeNotifier(delay=0.05)
    dispatch = ReminderDispatch(notifier)
    dispatch.open(make_record())
    dispatch.compose(ReminderIntent.COMPLETE_PROFILE)

    first = asyncio.create_task(dispatch.send())
    await asyncio.sleep(0)
    assert dispatch.state is ReminderState.SENDING

    with pytest.raises(InvalidReminderState):
        await dispatch.send()

    await first
    assert len(notifier.calls) == 1


def test_open_twice_is_illegal() -> None:
    dispatch = ReminderDispatch(FakeNotifier())
    dispatch.open(make_record())

    with pytest.raises(InvalidReminderState):
        dispatch.open(make_record())


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_abort_send() -> None:
    """The outbound call finishes in the background and its outcome is applied."""
    notifier = FakeNotifier(NotificationResult(success=True), delay=0.05)
    dispatch = ReminderDispatch(notifier)
    dispatch.open(make_record())
    dispatch.compose(ReminderIntent.COMPLETE_PAYMENT)

    caller = asyncio.create_task(dispatch.send())
    await asyncio.sleep(0.01)
    caller.cancel()

    with pytest.raises(asyncio.CancelledError):
        await caller

    assert dispatch.state is ReminderState.SENDING

    await asyncio.sleep(0.1)
    assert dispatch.state is ReminderState.SENT
    assert len(notifier.calls) == 1
