"""Managed e-mail template endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import HTMLResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from journey.api.deps import get_current_user, get_db
from journey.auth.rbac import Role, require_roles
from journey.models.email_template import EmailTemplate as EmailTemplateModel
from journey.schemas.email_template import (
    EmailTemplate,
    EmailTemplateCreate,
    EmailTemplateList,
    EmailTemplateUpdate,
    EmailTemplateWrite,
)
from journey.services.errors import NotFoundError
from journey.services.template_service import TemplateService, unknown_placeholders

router = APIRouter(prefix="/email-templates", tags=["Email Templates"])


def write_response(template: EmailTemplateModel) -> EmailTemplateWrite:
    return EmailTemplateWrite(
        **EmailTemplate.model_validate(template).model_dump(),
        unknown_placeholders=unknown_placeholders(template),
    )


@router.get("", response_model=EmailTemplateList)
@require_roles(Role.ANALYST)
async def list_templates(
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> EmailTemplateList:
    """Every template, newest first."""
    templates, total = await TemplateService(db).list_templates()
    return EmailTemplateList(items=[EmailTemplate.model_validate(t) for t in templates], total=total)


@router.post("", response_model=EmailTemplateWrite, status_code=status.HTTP_201_CREATED)
@require_roles(Role.MARKETING)
async def create_template(
    template_data: EmailTemplateCreate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> EmailTemplateWrite:
    """
    Create a template.

    - **name**, **subject**, **html_content**, **journey_stage** are required
    - **variables** is always the full placeholder catalog
    - placeholders outside the catalog are accepted and listed in
      **unknown_placeholders**
    """
    template = await TemplateService(db).create_template(template_data)
    await db.commit()
    return write_response(template)


@router.get("/{template_id}", response_model=EmailTemplate)
@require_roles(Role.ANALYST)
async def get_template(
    template_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> EmailTemplate:
    """Get template by ID."""
    template = await TemplateService(db).get_template(template_id)
    if not template:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Template {template_id} not found")
    return EmailTemplate.model_validate(template)


@router.patch("/{template_id}", response_model=EmailTemplateWrite)
@require_roles(Role.MARKETING)
async def update_template(
    template_id: UUID,
    update_data: EmailTemplateUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> EmailTemplateWrite:
    """Update the provided fields. Concurrent edits: last write wins."""
    service = TemplateService(db)

    try:
        template = await service.update_template(template_id, update_data)
        await db.commit()
        return write_response(template)
    except NotFoundError as e:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
@require_roles(Role.ADMIN)
async def delete_template(
    template_id: UUID,
    confirm: bool = Query(default=False, description="Must be true; deletion is irreversible"),
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> Response:
    """Delete a template and its A/B variants. Requires ``confirm=true``."""
    if not confirm:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Deleting a template is irreversible; repeat the request with confirm=true",
        )

    service = TemplateService(db)
    try:
        await service.delete_template(template_id)
        await db.commit()
    except NotFoundError as e:
        await db.rollback()
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e

    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{template_id}/preview", response_class=HTMLResponse)
@require_roles(Role.ANALYST)
async def preview_template(
    template_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
) -> HTMLResponse:
    """Raw ``html_content``; placeholders appear literally."""
    try:
        html = await TemplateService(db).preview(template_id)
    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return HTMLResponse(content=html)
