"""Operator reminder endpoints."""
import structlog
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from journey.api.deps import get_current_user, get_db, get_notification_service
from journey.auth.rbac import Role, require_roles
from journey.integrations.notification_service import NotificationService
from journey.schemas.reminder import BuiltinReminder, ReminderPreview, ReminderRequest, ReminderResult
from journey.services.errors import NotFoundError, ReminderDeliveryError, ReminderValidationError
from journey.services.reminder_service import ReminderService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/journey/reminders", tags=["Reminders"])


def validation_exception(error: ReminderValidationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={"title": error.title, "message": error.description},
    )


@router.get("/templates", response_model=list[BuiltinReminder])
@require_roles(Role.ANALYST)
async def list_reminder_templates(current_user: dict = Depends(get_current_user)) -> list[BuiltinReminder]:
    """Built-in reminder catalog. ``{name}`` is replaced at compose time."""
    return ReminderService.builtin_templates()


@router.post("/preview", response_model=ReminderPreview)
@require_roles(Role.MARKETING)
async def preview_reminder(
    request: ReminderRequest,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
    current_user: dict = Depends(get_current_user),
) -> ReminderPreview:
    """Compose a reminder for the user's current stage without sending it."""
    service = ReminderService(db, notifier)

    try:
        return await service.preview(request)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ReminderValidationError as e:
        raise validation_exception(e) from e


@router.post("", response_model=ReminderResult)
@require_roles(Role.MARKETING)
async def send_reminder(
    request: ReminderRequest,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
    current_user: dict = Depends(get_current_user),
) -> ReminderResult:
    """
    Compose and send one reminder.

    - Custom reminders need both subject and message (422 otherwise, nothing sent)
    - The relay is called exactly once; a failure returns 502 with its message
      and may be retried by sending again
    """
    service = ReminderService(db, notifier)

    try:
        result = await service.send(request, sent_by=current_user.get("sub"))
    except NotFoundError as e:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ReminderValidationError as e:
        await db.rollback()
        raise validation_exception(e) from e
    except ReminderDeliveryError as e:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(e),
            headers={"Retry-After": "30"} if e.retryable else None,
        ) from e

    try:
        await db.commit()
    except SQLAlchemyError:
        logger.exception("reminder_log_commit_failed", user_id=request.user_id)
        await db.rollback()
    return result
