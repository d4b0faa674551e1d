"""Versioning engine — immutable template snapshots, publish and rollback.

Snapshot layout (stored in TemplateVersion.snapshot)::

    {
        "template": {id, creator_id, name, description, is_private, status,
                     is_visible_to_applicants, tags, application_open_date,
                     participation_deadline, general_instructions},
        "phases":   [{id, name, type, order_index, description, config,
                      phase_start_date, phase_end_date, applicant_instructions,
                      manager_instructions, is_visible_to_applicants}, ...],
    }

Version numbers run 1..N per template with no gaps; the next number is
``max(version_number) + 1`` and the (template, version_number) pair is
unique in the database.

``publish`` and ``rollback`` each run as one unit of work. A failure at
any step rolls everything back and raises PersistenceError naming the
step, so a half-published or half-restored template is never committed.
"""

from __future__ import annotations

import logging
import uuid

from pathway_studio.core.exceptions import NotFoundError, ValidationError
from pathway_studio.models.pathway import (
    BRANCH_KEYS,
    PHASE_COPY_FIELDS,
    TEMPLATE_MUTABLE_FIELDS,
    TEMPLATE_TRANSITIONS,
    Phase,
    validate_template_transition,
)
from pathway_studio.models.versioning import TemplateVersion
from pathway_studio.services import activity_log, authorization
from pathway_studio.services.helpers import template_repository as repo
from pathway_studio.services.unit_of_work import UnitOfWork
from pathway_studio.utils.helpers import parse_date_input

logger = logging.getLogger(__name__)

_TEMPLATE_DATE_FIELDS = ("application_open_date", "participation_deadline")
_PHASE_DATE_FIELDS = ("phase_start_date", "phase_end_date")


# ── Snapshots ────────────────────────────────────────────────────────────────


def build_snapshot(template, phases) -> dict:
    """Freeze a template and its phases into a JSON-safe dict."""
    ordered = sorted(phases, key=lambda p: p.order_index)
    return {
        "template": template.snapshot_fields(),
        "phases": [p.snapshot_fields() for p in ordered],
    }


def remap_branch_targets(config: dict, id_map: dict) -> dict:
    """Rewrite branch targets through ``id_map``; unknown targets become None."""
    result = dict(config or {})
    for key in BRANCH_KEYS:
        target = result.get(key)
        if target is not None:
            result[key] = id_map.get(target)
    return result


def _insert_version(grant, template, actor_id) -> TemplateVersion:
    version = TemplateVersion(
        pathway_template_id=template.id,
        version_number=repo.latest_version_number(template.id) + 1,
        snapshot=build_snapshot(template, repo.list_phases(template.id)),
        created_by=actor_id,
    )
    return repo.add_version(grant, version)


# ── Reads ────────────────────────────────────────────────────────────────────


def list_versions(principal, template_id) -> list[TemplateVersion]:
    """Versions of a readable template, newest first."""
    authorization.authorize(principal, template_id, authorization.READ)
    return repo.list_versions(template_id)


def get_version(principal, version_id) -> TemplateVersion:
    authorization.require_principal(principal)
    version = repo.get_version(version_id)
    if version is None:
        raise NotFoundError(resource="TemplateVersion", resource_id=version_id)
    authorization.authorize(principal, version.pathway_template_id, authorization.READ)
    return version


# ── Writes ───────────────────────────────────────────────────────────────────


def create_version(principal, template_id) -> TemplateVersion:
    """Snapshot the template as it stands. Does not change its status."""
    grant = authorization.authorize(principal, template_id, authorization.VERSION)

    with UnitOfWork("create_version", template_id=template_id) as uow:
        with uow.step("create_version"):
            version = _insert_version(grant, grant.template, grant.principal.id)

    logger.info(
        "Version %d created", version.version_number,
        extra={
            "template_id": template_id,
            "version_number": version.version_number,
            "actor_id": grant.principal.id,
        },
    )
    activity_log.record(
        template_id, grant.principal.id, "version.created",
        f"Created version {version.version_number}",
        {"version_id": version.id, "version_number": version.version_number},
    )
    return version


def publish(principal, template_id):
    """Set status to published and snapshot, atomically.

    Publishing an already-published template keeps its status and records
    a fresh version.

    Returns:
        (template, version)
    """
    grant = authorization.authorize(principal, template_id, authorization.VERSION)
    template = grant.template
    old_status = template.status
    if old_status != "published" and not validate_template_transition(old_status, "published"):
        raise ValidationError(
            f"Cannot publish a template in status '{old_status}'",
            details={"allowed": TEMPLATE_TRANSITIONS.get(old_status, [])},
        )

    with UnitOfWork("publish", template_id=template_id) as uow:
        with uow.step("set_status"):
            repo.update_fields(grant, template, {
                "status": "published",
                "last_updated_by": grant.principal.id,
            })
        with uow.step("create_version"):
            version = _insert_version(grant, template, grant.principal.id)

    logger.info(
        "Template published as version %d", version.version_number,
        extra={
            "template_id": template_id,
            "version_number": version.version_number,
            "actor_id": grant.principal.id,
        },
    )
    activity_log.record(
        template_id, grant.principal.id, "template.published",
        f"Published as version {version.version_number}",
        {"from": old_status, "version_id": version.id, "version_number": version.version_number},
    )
    return template, version


def rollback(principal, template_id, version_id):
    """Restore a template and its phases to the state captured in a version.

    Current phases are deleted and the snapshot's phases re-inserted with
    fresh ids; branch targets are remapped onto the new ids. Status is
    restored from the snapshot as well.

    Returns:
        The restored template.
    """
    grant = authorization.authorize(principal, template_id, authorization.WRITE)
    template = grant.template
    version = repo.get_version(version_id)
    if version is None or version.pathway_template_id != template_id:
        raise NotFoundError(resource="TemplateVersion", resource_id=version_id)

    snapshot_template = version.snapshot_template
    snapshot_phases = version.snapshot_phases

    restored = {}
    for field in TEMPLATE_MUTABLE_FIELDS:
        if field not in snapshot_template:
            continue
        value = snapshot_template[field]
        if field in _TEMPLATE_DATE_FIELDS:
            value = parse_date_input(value)
        elif field == "tags":
            value = list(value or [])
        restored[field] = value
    restored["last_updated_by"] = grant.principal.id

    id_map = {p["id"]: str(uuid.uuid4()) for p in snapshot_phases if p.get("id")}

    with UnitOfWork("rollback", template_id=template_id) as uow:
        with uow.step("restore_template"):
            repo.update_fields(grant, template, restored)
        with uow.step("delete_phases"):
            repo.delete_all_phases(grant, template_id)
        with uow.step("restore_phases"):
            for data in snapshot_phases:
                fields = {k: data.get(k) for k in PHASE_COPY_FIELDS if k in data}
                for field in _PHASE_DATE_FIELDS:
                    fields[field] = parse_date_input(fields.get(field))
                fields["config"] = remap_branch_targets(fields.get("config"), id_map)
                repo.add_phase(grant, Phase(
                    id=id_map.get(data.get("id")) or str(uuid.uuid4()),
                    pathway_template_id=template_id,
                    last_updated_by=grant.principal.id,
                    **fields,
                ))

    logger.info(
        "Template rolled back to version %d (%d phases)",
        version.version_number, len(snapshot_phases),
        extra={
            "template_id": template_id,
            "version_number": version.version_number,
            "actor_id": grant.principal.id,
        },
    )
    activity_log.record(
        template_id, grant.principal.id, "template.rolled_back",
        f"Rolled back to version {version.version_number}",
        {"version_id": version.id, "version_number": version.version_number},
    )
    return template
