"""Clone / instantiation engine.

clone_template
    Copies a readable template into a new draft template owned by the
    caller. Phases get fresh ids and no provenance link; Decision/Review
    branch targets are remapped onto the clone's own phases.

deep_copy_phases_to_instance
    Copies a template's phases into a campaign. Every copy keeps
    ``original_phase_id`` pointing at its source phase, and ``config`` is
    copied verbatim.
"""

from __future__ import annotations

import logging
import uuid

from pathway_studio.core.exceptions import ValidationError
from pathway_studio.models.campaign import CampaignPhase
from pathway_studio.models.pathway import PHASE_COPY_FIELDS, PathwayTemplate, Phase
from pathway_studio.services import activity_log, authorization
from pathway_studio.services.helpers import template_repository as repo
from pathway_studio.services.unit_of_work import UnitOfWork
from pathway_studio.services.versioning_service import remap_branch_targets

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 255

# Template fields carried over to a clone; status and ownership are reset.
CLONED_TEMPLATE_FIELDS = (
    "description",
    "is_private",
    "is_visible_to_applicants",
    "application_open_date",
    "participation_deadline",
    "general_instructions",
)


def _clone_name(source_name, new_name):
    if new_name is None:
        return f"{source_name} (Copy)"[:NAME_MAX_LENGTH]
    if not isinstance(new_name, str) or not new_name.strip():
        raise ValidationError("name must be a non-empty string", details={"name": "required"})
    name = new_name.strip()
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError(
            f"name must be at most {NAME_MAX_LENGTH} characters",
            details={"name": "too_long"},
        )
    return name


def clone_template(principal, template_id, new_name=None) -> PathwayTemplate:
    """Create an independent draft copy of a template the principal can read."""
    source = authorization.authorize(principal, template_id, authorization.READ).template
    create_grant = authorization.authorize(principal, None, authorization.WRITE)
    actor_id = create_grant.principal.id
    name = _clone_name(source.name, new_name)
    source_phases = repo.list_phases(template_id)

    clone = PathwayTemplate(
        creator_id=actor_id,
        name=name,
        status="draft",
        tags=list(source.tags or []),
        last_updated_by=actor_id,
        **{field: getattr(source, field) for field in CLONED_TEMPLATE_FIELDS},
    )
    id_map = {p.id: str(uuid.uuid4()) for p in source_phases}

    with UnitOfWork("clone_template", template_id=template_id) as uow:
        with uow.step("insert_template"):
            grant = repo.add_template(create_grant, clone)
        with uow.step("copy_phases"):
            for phase in source_phases:
                fields = {field: getattr(phase, field) for field in PHASE_COPY_FIELDS}
                fields["config"] = remap_branch_targets(phase.config, id_map)
                repo.add_phase(grant, Phase(
                    id=id_map[phase.id],
                    pathway_template_id=clone.id,
                    last_updated_by=actor_id,
                    **fields,
                ))

    logger.info(
        "Template cloned from %s (%d phases)", template_id, len(source_phases),
        extra={"template_id": clone.id, "actor_id": actor_id},
    )
    activity_log.record(
        clone.id, actor_id, "template.cloned",
        f"Cloned from '{source.name}'",
        {"source_template_id": template_id, "phase_count": len(source_phases)},
    )
    return clone


def copy_phases_into_campaign(campaign_grant, template_id, campaign) -> list[CampaignPhase]:
    """Append copies of a template's phases to ``campaign``. Caller owns the transaction."""
    offset = repo.count_campaign_phases(campaign.id)
    copies = []
    for phase in repo.list_phases(template_id):
        fields = {field: getattr(phase, field) for field in PHASE_COPY_FIELDS}
        fields["config"] = dict(phase.config or {})
        fields["order_index"] = offset + phase.order_index
        copies.append(repo.add_campaign_phase(campaign_grant, CampaignPhase(
            campaign_id=campaign.id,
            original_phase_id=phase.id,
            **fields,
        )))
    return copies


def deep_copy_phases_to_instance(principal, campaign_id, template_id) -> list[CampaignPhase]:
    """Copy a template's phases into an existing campaign, keeping provenance.

    A template without phases yields an empty list.
    """
    campaign_grant = authorization.authorize_campaign(principal, campaign_id, authorization.WRITE)
    authorization.authorize(principal, template_id, authorization.READ)

    with UnitOfWork("deep_copy_phases", template_id=template_id, campaign_id=campaign_id) as uow:
        with uow.step("copy_phases"):
            copies = copy_phases_into_campaign(campaign_grant, template_id, campaign_grant.campaign)

    logger.info(
        "Copied %d phases into campaign", len(copies),
        extra={"template_id": template_id, "campaign_id": campaign_id,
               "actor_id": campaign_grant.principal.id},
    )
    if copies:
        activity_log.record(
            template_id, campaign_grant.principal.id, "campaign.phases_copied",
            f"Copied {len(copies)} phases into campaign '{campaign_grant.campaign.name}'",
            {"campaign_id": campaign_id, "phase_count": len(copies)},
        )
    return copies
