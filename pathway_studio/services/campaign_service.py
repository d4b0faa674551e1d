"""Campaign service — running instances built from pathway templates.

Campaign lifecycle (separate from the template lifecycle):
    draft     → active | archived
    active    → completed | archived
    completed → archived
    archived  → draft

Creating a campaign from a template requires read access to the template
and deep-copies its phases in the same unit of work as the insert.
"""

from __future__ import annotations

import logging

from pathway_studio.core.exceptions import ValidationError
from pathway_studio.models.campaign import (
    CAMPAIGN_STATUSES,
    CAMPAIGN_TRANSITIONS,
    Campaign,
    validate_campaign_transition,
)
from pathway_studio.services import activity_log, authorization
from pathway_studio.services.clone_service import copy_phases_into_campaign
from pathway_studio.services.helpers import template_repository as repo
from pathway_studio.services.unit_of_work import UnitOfWork
from pathway_studio.utils.helpers import parse_bool, parse_date_input

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 255


def _coerce_fields(data: dict) -> dict:
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name is required", details={"name": "required"})
    if len(name.strip()) > NAME_MAX_LENGTH:
        raise ValidationError(
            f"name must be at most {NAME_MAX_LENGTH} characters",
            details={"name": "too_long"},
        )
    fields = {"name": name.strip()}

    description = data.get("description")
    if description is not None and not isinstance(description, str):
        raise ValidationError("description must be a string", details={"description": "invalid"})
    fields["description"] = description

    for field in ("start_date", "end_date"):
        try:
            fields[field] = parse_date_input(data.get(field))
        except ValueError as exc:
            raise ValidationError(str(exc), details={field: "invalid_date"}) from exc
    if fields["start_date"] and fields["end_date"] and fields["end_date"] < fields["start_date"]:
        raise ValidationError(
            "end_date must not precede start_date",
            details={"end_date": "before_start"},
        )

    try:
        fields["is_public"] = parse_bool(data.get("is_public"), False)
    except ValueError as exc:
        raise ValidationError(str(exc), details={"is_public": "invalid"}) from exc

    config = data.get("config")
    if config is not None and not isinstance(config, dict):
        raise ValidationError("config must be a JSON object", details={"config": "invalid"})
    fields["config"] = dict(config or {})
    return fields


def create_campaign(principal, data: dict):
    """Create a draft campaign, optionally seeded from a template.

    Returns:
        (campaign, copied_phases)
    """
    campaign_grant = authorization.authorize_campaign(principal, None, authorization.WRITE)
    fields = _coerce_fields(data)
    template_id = data.get("pathway_template_id")
    if template_id is not None:
        authorization.authorize(principal, template_id, authorization.READ)

    campaign = Campaign(
        creator_id=campaign_grant.principal.id,
        pathway_template_id=template_id,
        status="draft",
        **fields,
    )
    copies = []
    with UnitOfWork("create_campaign", template_id=template_id) as uow:
        with uow.step("insert_campaign"):
            campaign_grant = repo.add_campaign(campaign_grant, campaign)
        if template_id is not None:
            with uow.step("copy_phases"):
                copies = copy_phases_into_campaign(campaign_grant, template_id, campaign)

    logger.info(
        "Campaign created: %s (%d phases copied)", campaign.name, len(copies),
        extra={"campaign_id": campaign.id, "template_id": template_id,
               "actor_id": campaign_grant.principal.id},
    )
    if copies:
        activity_log.record(
            template_id, campaign_grant.principal.id, "campaign.phases_copied",
            f"Copied {len(copies)} phases into campaign '{campaign.name}'",
            {"campaign_id": campaign.id, "phase_count": len(copies)},
        )
    return campaign, copies


def get_campaign(principal, campaign_id) -> Campaign:
    return authorization.authorize_campaign(principal, campaign_id, authorization.READ).campaign


def list_campaign_phases(principal, campaign_id):
    authorization.authorize_campaign(principal, campaign_id, authorization.READ)
    return repo.list_campaign_phases(campaign_id)


def update_campaign_status(principal, campaign_id, new_status) -> Campaign:
    if new_status not in CAMPAIGN_STATUSES:
        raise ValidationError(
            f"status must be one of: {', '.join(CAMPAIGN_STATUSES)}",
            details={"status": "invalid"},
        )
    grant = authorization.authorize_campaign(principal, campaign_id, authorization.WRITE)
    campaign = grant.campaign
    old_status = campaign.status
    if not validate_campaign_transition(old_status, new_status):
        raise ValidationError(
            f"Cannot move campaign from '{old_status}' to '{new_status}'",
            details={"allowed": CAMPAIGN_TRANSITIONS.get(old_status, [])},
        )

    with UnitOfWork("update_campaign_status", campaign_id=campaign_id) as uow:
        with uow.step("set_status"):
            repo.update_campaign_fields(grant, campaign, {"status": new_status})

    logger.info(
        "Campaign status %s → %s", old_status, new_status,
        extra={"campaign_id": campaign_id, "actor_id": grant.principal.id},
    )
    return campaign
