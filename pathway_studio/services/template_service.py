"""Pathway template service.

CRUD and lifecycle for PathwayTemplate. Every public function takes the
acting principal first and routes through the authorization guard before
reading or writing.

Lifecycle:
    draft          → pending_review | published | archived
    pending_review → draft | published
    published      → archived
    archived       → draft

Any transition into ``published`` goes through
``versioning_service.publish`` so that publishing always snapshots.
"""

from __future__ import annotations

import logging

from pathway_studio.core.exceptions import ValidationError
from pathway_studio.models.pathway import (
    TEMPLATE_STATUSES,
    TEMPLATE_TRANSITIONS,
    PathwayTemplate,
    validate_template_transition,
)
from pathway_studio.services import activity_log, authorization, versioning_service
from pathway_studio.services.helpers import template_repository as repo
from pathway_studio.services.unit_of_work import UnitOfWork
from pathway_studio.utils.helpers import clean_tags, parse_bool, parse_date_input

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 255

# Fields set through create/update; status and creator_id are not among them.
EDITABLE_FIELDS = (
    "name",
    "description",
    "is_private",
    "is_visible_to_applicants",
    "tags",
    "application_open_date",
    "participation_deadline",
    "general_instructions",
)
_READ_ONLY_FIELDS = ("status", "creator_id")


# ── Validation ───────────────────────────────────────────────────────────────


def _validate_name(value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("name is required", details={"name": "required"})
    name = value.strip()
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError(
            f"name must be at most {NAME_MAX_LENGTH} characters",
            details={"name": "too_long"},
        )
    return name


def _coerce_fields(data: dict) -> dict:
    """Validate and convert the editable fields present in ``data``."""
    changes = {}
    if "name" in data:
        changes["name"] = _validate_name(data["name"])
    for field in ("description", "general_instructions"):
        if field in data:
            value = data[field]
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"{field} must be a string", details={field: "invalid"})
            changes[field] = value
    for field, default in (("is_private", False), ("is_visible_to_applicants", True)):
        if field in data:
            try:
                changes[field] = parse_bool(data[field], default)
            except ValueError as exc:
                raise ValidationError(str(exc), details={field: "invalid"}) from exc
    if "tags" in data:
        try:
            changes["tags"] = clean_tags(data["tags"])
        except ValueError as exc:
            raise ValidationError(str(exc), details={"tags": "invalid"}) from exc
    for field in ("application_open_date", "participation_deadline"):
        if field in data:
            try:
                changes[field] = parse_date_input(data[field])
            except ValueError as exc:
                raise ValidationError(str(exc), details={field: "invalid_date"}) from exc
    return changes


def _check_deadline(open_date, deadline):
    if open_date and deadline and deadline < open_date:
        raise ValidationError(
            "participation_deadline must not precede application_open_date",
            details={"participation_deadline": "before_open_date"},
        )


# ── Reads ────────────────────────────────────────────────────────────────────


def list_templates(principal) -> list[PathwayTemplate]:
    """Every template the principal may read, newest first."""
    principal = authorization.require_principal(principal)
    if principal.is_admin:
        return repo.list_templates(include_all=True)
    return repo.list_templates(readable_by=principal.id)


def get_template(principal, template_id) -> PathwayTemplate:
    return authorization.authorize(principal, template_id, authorization.READ).template


# ── Writes ───────────────────────────────────────────────────────────────────


def create_template(principal, data: dict) -> PathwayTemplate:
    """Create a draft template owned by ``principal``."""
    grant = authorization.authorize(principal, None, authorization.WRITE)
    if "name" not in data:
        raise ValidationError("name is required", details={"name": "required"})
    fields = _coerce_fields(data)
    _check_deadline(fields.get("application_open_date"), fields.get("participation_deadline"))

    template = PathwayTemplate(
        creator_id=grant.principal.id,
        status="draft",
        last_updated_by=grant.principal.id,
        **fields,
    )
    with UnitOfWork("create_template") as uow:
        with uow.step("insert_template"):
            repo.add_template(grant, template)

    logger.info(
        "Template created: %s", template.name,
        extra={"template_id": template.id, "actor_id": grant.principal.id},
    )
    activity_log.record(
        template.id, grant.principal.id, "template.created",
        f"Created template '{template.name}'",
    )
    return template


def update_template(principal, template_id, data: dict) -> PathwayTemplate:
    """Patch editable template fields. Status changes use ``update_status``."""
    grant = authorization.authorize(principal, template_id, authorization.WRITE)
    template = grant.template

    for field in _READ_ONLY_FIELDS:
        if field in data and data[field] != getattr(template, field):
            raise ValidationError(
                f"{field} cannot be changed here",
                details={field: "read_only"},
            )

    changes = _coerce_fields(data)
    _check_deadline(
        changes.get("application_open_date", template.application_open_date),
        changes.get("participation_deadline", template.participation_deadline),
    )
    if not changes:
        return template
    changes["last_updated_by"] = grant.principal.id

    with UnitOfWork("update_template", template_id=template_id) as uow:
        with uow.step("update_template"):
            repo.update_fields(grant, template, changes)

    changed = sorted(k for k in changes if k != "last_updated_by")
    logger.info(
        "Template updated: %s", ", ".join(changed),
        extra={"template_id": template_id, "actor_id": grant.principal.id},
    )
    activity_log.record(
        template_id, grant.principal.id, "template.updated",
        f"Updated {', '.join(changed)}",
        {"fields": changed},
    )
    return template


def delete_template(principal, template_id) -> None:
    """Hard-delete a template with its phases and versions.

    Campaigns built from it survive; their template and provenance
    pointers are nulled by the database.
    """
    grant = authorization.authorize(principal, template_id, authorization.WRITE)
    name = grant.template.name

    with UnitOfWork("delete_template", template_id=template_id) as uow:
        with uow.step("delete_template"):
            repo.delete_template(grant, grant.template)

    logger.info(
        "Template deleted: %s", name,
        extra={"template_id": template_id, "actor_id": grant.principal.id},
    )
    activity_log.record(
        template_id, grant.principal.id, "template.deleted",
        f"Deleted template '{name}'",
    )


def update_status(principal, template_id, new_status) -> PathwayTemplate:
    """Move a template along its lifecycle."""
    if new_status not in TEMPLATE_STATUSES:
        raise ValidationError(
            f"status must be one of: {', '.join(TEMPLATE_STATUSES)}",
            details={"status": "invalid"},
        )
    if new_status == "published":
        template, _version = versioning_service.publish(principal, template_id)
        return template

    grant = authorization.authorize(principal, template_id, authorization.WRITE)
    template = grant.template
    old_status = template.status
    if not validate_template_transition(old_status, new_status):
        raise ValidationError(
            f"Cannot move template from '{old_status}' to '{new_status}'",
            details={"allowed": TEMPLATE_TRANSITIONS.get(old_status, [])},
        )

    with UnitOfWork("update_status", template_id=template_id) as uow:
        with uow.step("set_status"):
            repo.update_fields(grant, template, {
                "status": new_status,
                "last_updated_by": grant.principal.id,
            })

    logger.info(
        "Template status %s → %s", old_status, new_status,
        extra={"template_id": template_id, "actor_id": grant.principal.id},
    )
    activity_log.record(
        template_id, grant.principal.id, "template.status_changed",
        f"Status changed from {old_status} to {new_status}",
        {"from": old_status, "to": new_status},
    )
    return template


def archive_template(principal, template_id) -> PathwayTemplate:
    return update_status(principal, template_id, "archived")


def unarchive_template(principal, template_id) -> PathwayTemplate:
    """Return an archived template to draft."""
    template = authorization.authorize(principal, template_id, authorization.WRITE).template
    if template.status != "archived":
        raise ValidationError(
            "Only archived templates can be unarchived",
            details={"status": template.status},
        )
    return update_status(principal, template_id, "draft")
