"""
Template repository — keyed CRUD and simple filters for the pathway engine.

Every query the engine runs lives here. Services never build ``select()``
statements themselves, and blueprints never touch the session.

Reads take plain ids. Writes take a grant issued by
``services.authorization`` and call ``grant.require_modify(...)`` before
touching the session, so a code path that skipped the guard cannot write.

Filters offered:
    phases    by parent template, ordered by order_index
    versions  by parent template, ordered by version_number descending
    activity  by template, newest first
    campaign phases by campaign, ordered by order_index
"""

import dataclasses
import logging

from sqlalchemy import func, or_, select

from pathway_studio.models import db
from pathway_studio.models.activity import TemplateActivityLog
from pathway_studio.models.campaign import Campaign, CampaignPhase
from pathway_studio.models.pathway import PathwayTemplate, Phase
from pathway_studio.models.versioning import TemplateVersion

logger = logging.getLogger(__name__)


# ── Templates ────────────────────────────────────────────────────────────────


def get_template(template_id):
    if not template_id:
        return None
    return db.session.get(PathwayTemplate, str(template_id))


def list_templates(*, readable_by=None, include_all=False):
    """Templates newest first.

    Args:
        readable_by: Principal id; restricts to that creator's templates plus
            public published ones. Ignored when ``include_all`` is set.
        include_all: Return every template (admin listing).
    """
    stmt = select(PathwayTemplate)
    if not include_all:
        stmt = stmt.where(
            or_(
                PathwayTemplate.creator_id == readable_by,
                (PathwayTemplate.is_private.is_(False)) & (PathwayTemplate.status == "published"),
            )
        )
    stmt = stmt.order_by(PathwayTemplate.created_at.desc(), PathwayTemplate.name)
    return db.session.execute(stmt).scalars().all()


def add_template(grant, template):
    """Insert a new template and return a grant bound to it."""
    grant.require_modify(template.id)
    db.session.add(template)
    db.session.flush()
    return dataclasses.replace(grant, template=template)


def update_fields(grant, obj, changes: dict, *, template_id=None):
    """Apply ``changes`` to a template or phase row covered by ``grant``."""
    owner_id = template_id or getattr(obj, "pathway_template_id", None) or obj.id
    grant.require_modify(owner_id)
    for field, value in changes.items():
        setattr(obj, field, value)
    return obj


def delete_template(grant, template):
    grant.require_modify(template.id)
    db.session.delete(template)


# ── Phases ───────────────────────────────────────────────────────────────────


def get_phase(phase_id):
    if not phase_id:
        return None
    return db.session.get(Phase, str(phase_id))


def list_phases(template_id):
    stmt = (
        select(Phase)
        .where(Phase.pathway_template_id == template_id)
        .order_by(Phase.order_index, Phase.created_at)
    )
    return db.session.execute(stmt).scalars().all()


def sibling_phase_ids(template_id) -> set:
    stmt = select(Phase.id).where(Phase.pathway_template_id == template_id)
    return set(db.session.execute(stmt).scalars().all())


def add_phase(grant, phase):
    grant.require_modify(phase.pathway_template_id)
    db.session.add(phase)
    return phase


def delete_phase(grant, phase):
    grant.require_modify(phase.pathway_template_id)
    db.session.delete(phase)


def delete_all_phases(grant, template_id) -> int:
    """Delete every phase of a template; returns the number removed."""
    grant.require_modify(template_id)
    phases = list_phases(template_id)
    for phase in phases:
        db.session.delete(phase)
    db.session.flush()
    template = get_template(template_id)
    if template is not None:
        db.session.expire(template, ["phases"])
    return len(phases)


# ── Versions ─────────────────────────────────────────────────────────────────


def get_version(version_id):
    if not version_id:
        return None
    return db.session.get(TemplateVersion, str(version_id))


def list_versions(template_id):
    stmt = (
        select(TemplateVersion)
        .where(TemplateVersion.pathway_template_id == template_id)
        .order_by(TemplateVersion.version_number.desc())
    )
    return db.session.execute(stmt).scalars().all()


def latest_version_number(template_id) -> int:
    stmt = select(func.max(TemplateVersion.version_number)).where(
        TemplateVersion.pathway_template_id == template_id
    )
    return db.session.execute(stmt).scalar() or 0


def add_version(grant, version):
    grant.require_modify(version.pathway_template_id)
    db.session.add(version)
    return version


# ── Campaigns ────────────────────────────────────────────────────────────────


def get_campaign(campaign_id):
    if not campaign_id:
        return None
    return db.session.get(Campaign, str(campaign_id))


def list_campaign_phases(campaign_id):
    stmt = (
        select(CampaignPhase)
        .where(CampaignPhase.campaign_id == campaign_id)
        .order_by(CampaignPhase.order_index, CampaignPhase.created_at)
    )
    return db.session.execute(stmt).scalars().all()


def count_campaign_phases(campaign_id) -> int:
    stmt = select(func.count(CampaignPhase.id)).where(CampaignPhase.campaign_id == campaign_id)
    return db.session.execute(stmt).scalar() or 0


def add_campaign(grant, campaign):
    """Insert a new campaign and return a grant bound to it."""
    grant.require_modify(campaign.id)
    db.session.add(campaign)
    db.session.flush()
    return dataclasses.replace(grant, campaign=campaign)


def update_campaign_fields(grant, campaign, changes: dict):
    grant.require_modify(campaign.id)
    for field, value in changes.items():
        setattr(campaign, field, value)
    return campaign


def add_campaign_phase(grant, campaign_phase):
    grant.require_modify(campaign_phase.campaign_id)
    db.session.add(campaign_phase)
    return campaign_phase


# ── Activity ─────────────────────────────────────────────────────────────────


def list_activity(template_id, *, limit=100):
    stmt = (
        select(TemplateActivityLog)
        .where(TemplateActivityLog.template_id == template_id)
        .order_by(TemplateActivityLog.created_at.desc(), TemplateActivityLog.id.desc())
        .limit(limit)
    )
    return db.session.execute(stmt).scalars().all()
