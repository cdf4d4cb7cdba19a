"""
Request-owner operations — drafting, editing, deleting, attachments.

Routing changes (submit included) go through ``routing.perform_action``;
this module only touches fields the owner controls while the request is
still in their hands (draft / need_more_details).

Usage:
    from reqflow.services import request_service

    result = request_service.create_request(actor, "New laptop", "Mine is broken")
    request_service.update_request(result["request"]["id"], actor, title="New laptop (14in)")
"""

from __future__ import annotations

import logging

from reqflow.core.exceptions import IllegalTransitionError, NotFoundError, ValidationError
from reqflow.models import db
from reqflow.models.request import EDITABLE_STATUSES, Request, RequestAttachment
from reqflow.services.attachment_storage import get_storage
from reqflow.services.authorization import Actor, authorize
from reqflow.services.helpers.lookups import find_department_a, get_active_request
from reqflow.services.helpers.unit_of_work import unit_of_work
from reqflow.services.request_queries import project_request

logger = logging.getLogger(__name__)

TITLE_MAX = 255
EDITABLE_FIELDS = ("title", "description", "additional_details")


def _clean_text(value, field: str, *, required: bool, max_length: int | None = None):
    if value is None:
        if required:
            raise ValidationError(f"{field} is required", details={field: "required"})
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", details={field: "invalid"})
    value = value.strip()
    if required and not value:
        raise ValidationError(f"{field} is required", details={field: "required"})
    if max_length is not None and len(value) > max_length:
        raise ValidationError(
            f"{field} must be at most {max_length} characters", details={field: "too_long"},
        )
    return value or None


def _owned_request(request_id: int, actor: Actor, action: str) -> Request:
    req = get_active_request(request_id)
    dept_a = find_department_a()
    authorize(actor, action, req, department_a_id=dept_a.id if dept_a else None)
    return req


def create_request(actor: Actor, title, description, additional_details=None) -> dict:
    """Create a draft request owned by ``actor``."""
    title = _clean_text(title, "title", required=True, max_length=TITLE_MAX)
    description = _clean_text(description, "description", required=True)
    additional_details = _clean_text(additional_details, "additional_details", required=False)

    with unit_of_work():
        req = Request(
            title=title,
            description=description,
            additional_details=additional_details,
            owner_id=actor.user_id,
            status="draft",
        )
        db.session.add(req)
        db.session.flush()

    logger.info(
        "Request %s created", req.id,
        extra={"request_ref": req.id, "action": "create", "actor_id": actor.user_id},
    )
    return {"message": "Request created successfully", "request": project_request(req)}


def update_request(request_id: int, actor: Actor, **fields) -> dict:
    """Edit title / description / additional_details while draft or need_more_details."""
    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(
            f"Fields not editable: {', '.join(sorted(unknown))}",
            details={name: "not_editable" for name in sorted(unknown)},
        )

    with unit_of_work():
        req = _owned_request(request_id, actor, "edit")
        if req.status not in EDITABLE_STATUSES:
            raise IllegalTransitionError("edit", req.status, "only draft or returned requests can be edited")
        if "title" in fields:
            req.title = _clean_text(fields["title"], "title", required=True, max_length=TITLE_MAX)
        if "description" in fields:
            req.description = _clean_text(fields["description"], "description", required=True)
        if "additional_details" in fields:
            req.additional_details = _clean_text(
                fields["additional_details"], "additional_details", required=False,
            )

    logger.info(
        "Request %s updated", req.id,
        extra={"request_ref": req.id, "action": "edit", "actor_id": actor.user_id},
    )
    return {"message": "Request updated successfully", "request": project_request(req)}


def delete_request(request_id: int, actor: Actor) -> dict:
    """Soft-delete a draft. The row and its history stay in the database."""
    with unit_of_work():
        req = _owned_request(request_id, actor, "delete")
        if req.status != "draft":
            raise IllegalTransitionError("delete", req.status, "only draft requests can be deleted")
        req.soft_delete()

    logger.info(
        "Request %s deleted", req.id,
        extra={"request_ref": req.id, "action": "delete", "actor_id": actor.user_id},
    )
    return {"message": "Request deleted successfully", "id": req.id}


# ── Attachments ──────────────────────────────────────────────────────────────


def add_attachment(request_id: int, actor: Actor, file_storage) -> dict:
    """Store an uploaded file and attach its metadata to the request."""
    storage = get_storage()
    stored = None
    try:
        with unit_of_work():
            req = _owned_request(request_id, actor, "manage_attachments")
            stored = storage.save(req.id, file_storage)
            attachment = RequestAttachment(
                request_id=req.id,
                uploaded_by=actor.user_id,
                file_name=stored.file_name,
                file_path=stored.file_path,
                file_type=stored.file_type,
                file_size=stored.file_size,
            )
            db.session.add(attachment)
    except Exception:
        # Bytes written before a failed commit have no metadata row.
        if stored is not None:
            storage.delete(stored.file_path)
        raise

    logger.info(
        "Attachment %s added to request %s", attachment.id, req.id,
        extra={"request_ref": req.id, "action": "add_attachment", "actor_id": actor.user_id},
    )
    return {"message": "Attachment uploaded successfully", "attachment": attachment.to_dict()}


def remove_attachment(request_id: int, attachment_id: int, actor: Actor) -> dict:
    """Delete the stored bytes, then the metadata row."""
    with unit_of_work():
        req = _owned_request(request_id, actor, "manage_attachments")
        attachment = RequestAttachment.query.filter_by(id=attachment_id, request_id=req.id).first()
        if attachment is None:
            raise NotFoundError(resource="RequestAttachment", resource_id=attachment_id)
        get_storage().delete(attachment.file_path)
        db.session.delete(attachment)

    logger.info(
        "Attachment %s removed from request %s", attachment_id, request_id,
        extra={"request_ref": request_id, "action": "remove_attachment", "actor_id": actor.user_id},
    )
    return {"message": "Attachment deleted successfully", "id": attachment_id}
