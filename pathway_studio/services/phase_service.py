"""Phase graph manager.

Owns phase creation, update, deletion and reordering for a template, and
enforces the two graph invariants:

  * ordering   — a template's phase ``order_index`` values form exactly
                 ``0..n-1`` after reorder and delete
  * branching  — only Decision/Review phases carry
                 ``next_phase_id_on_success`` / ``next_phase_id_on_failure``,
                 and every non-null target is another phase of the same
                 template

Deletion compacts the remaining indices and nulls every sibling branch
target that pointed at the deleted phase, in one unit of work.

``type`` is immutable after creation; ``order_index`` changes only through
``reorder_phases``.

db.session.commit() happens only in this file (via UnitOfWork) for phase
writes — blueprints never call it.
"""

from __future__ import annotations

import logging

from pathway_studio.core.exceptions import (
    InvalidBranchTargetError,
    NotFoundError,
    ValidationError,
)
from pathway_studio.models.pathway import (
    BRANCH_FAILURE_KEY,
    BRANCH_KEYS,
    BRANCH_SUCCESS_KEY,
    BRANCHING_PHASE_TYPES,
    PHASE_TYPES,
    Phase,
)
from pathway_studio.services import activity_log, authorization
from pathway_studio.services.helpers import template_repository as repo
from pathway_studio.services.unit_of_work import UnitOfWork
from pathway_studio.utils.helpers import parse_bool, parse_date_input

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 255

_TEXT_FIELDS = ("description", "applicant_instructions", "manager_instructions")
_DATE_FIELDS = ("phase_start_date", "phase_end_date")


# ── Internal helpers ─────────────────────────────────────────────────────────


def _load_phase(principal, phase_id) -> Phase:
    authorization.require_principal(principal)
    phase = repo.get_phase(phase_id)
    if phase is None:
        raise NotFoundError(resource="Phase", resource_id=phase_id)
    return phase


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


def _validate_type(value) -> str:
    if value not in PHASE_TYPES:
        raise ValidationError(
            f"type must be one of: {', '.join(PHASE_TYPES)}",
            details={"type": "invalid"},
        )
    return value


def _validate_order_index(value) -> int:
    # bool is an int subclass; reject it explicitly.
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(
            "order_index must be a non-negative integer",
            details={"order_index": "invalid"},
        )
    return value


def _coerce_common_fields(data: dict) -> dict:
    """Validate the optional descriptive fields present in ``data``."""
    changes = {}
    for field in _TEXT_FIELDS:
        if field in data:
            value = data[field]
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"{field} must be a string", details={field: "invalid"})
            changes[field] = value
    for field in _DATE_FIELDS:
        if field in data:
            try:
                changes[field] = parse_date_input(data[field])
            except ValueError as exc:
                raise ValidationError(str(exc), details={field: "invalid_date"}) from exc
    if "is_visible_to_applicants" in data:
        try:
            changes["is_visible_to_applicants"] = parse_bool(data["is_visible_to_applicants"], True)
        except ValueError as exc:
            raise ValidationError(str(exc), details={"is_visible_to_applicants": "invalid"}) from exc
    return changes


def _check_date_range(start, end):
    if start and end and end < start:
        raise ValidationError(
            "phase_end_date must not precede phase_start_date",
            details={"phase_end_date": "before_start"},
        )


def validate_branch_targets(template_id, phase_type, targets: dict, phase_id=None) -> None:
    """Check the branch keys in ``targets`` against the template's phases.

    Non-null targets are only allowed on Decision/Review phases and must
    name another phase of ``template_id``. A phase may not target itself.

    Raises:
        ValidationError: branching set on a non-branching phase type.
        InvalidBranchTargetError: a target is unknown, foreign or self.
    """
    set_targets = {k: v for k, v in targets.items() if k in BRANCH_KEYS and v is not None}
    if not set_targets:
        return
    if phase_type not in BRANCHING_PHASE_TYPES:
        raise ValidationError(
            f"Branching is only supported on {' and '.join(sorted(BRANCHING_PHASE_TYPES))} phases",
            details={"type": phase_type},
        )
    candidates = repo.sibling_phase_ids(template_id)
    candidates.discard(phase_id)
    for key, target in set_targets.items():
        if not isinstance(target, str) or target not in candidates:
            raise InvalidBranchTargetError(
                f"{key} must reference another phase of the same template",
                details={key: target},
            )


def _coerce_config(value) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValidationError("config must be a JSON object", details={"config": "invalid"})
    return dict(value)


# ── Reads ────────────────────────────────────────────────────────────────────


def list_phases(principal, template_id) -> list[Phase]:
    """Phases of a readable template, ordered by order_index."""
    authorization.authorize(principal, template_id, authorization.READ)
    return repo.list_phases(template_id)


def get_phase(principal, phase_id) -> Phase:
    phase = _load_phase(principal, phase_id)
    authorization.authorize(principal, phase.pathway_template_id, authorization.READ)
    return phase


# ── Writes ───────────────────────────────────────────────────────────────────


def create_phase(principal, template_id, data: dict) -> Phase:
    """Add a phase to a template.

    ``order_index`` defaults to the current phase count (append). A supplied
    index is stored as given; a gap or duplicate is logged, not repaired.
    """
    grant = authorization.authorize(principal, template_id, authorization.WRITE)

    name = _validate_name(data.get("name"))
    phase_type = _validate_type(data.get("type"))
    fields = _coerce_common_fields(data)
    _check_date_range(fields.get("phase_start_date"), fields.get("phase_end_date"))
    config = _coerce_config(data.get("config"))

    existing = repo.list_phases(template_id)
    if data.get("order_index") is None:
        order_index = len(existing)
    else:
        order_index = _validate_order_index(data["order_index"])
        taken = {p.order_index for p in existing}
        if order_index in taken or order_index > len(existing):
            logger.warning(
                "Phase order_index %d leaves a gap or duplicate (template has %d phases)",
                order_index, len(existing),
                extra={"template_id": template_id, "actor_id": grant.principal.id},
            )

    validate_branch_targets(template_id, phase_type, config)

    phase = Phase(
        pathway_template_id=template_id,
        name=name,
        type=phase_type,
        order_index=order_index,
        config=config,
        last_updated_by=grant.principal.id,
        **fields,
    )
    with UnitOfWork("create_phase", template_id=template_id) as uow:
        with uow.step("insert_phase"):
            repo.add_phase(grant, phase)

    logger.info(
        "Phase created: %s (%s) at %d", phase.name, phase.type, phase.order_index,
        extra={"template_id": template_id, "phase_id": phase.id, "actor_id": grant.principal.id},
    )
    activity_log.record(
        template_id, grant.principal.id, "phase.created",
        f"Added phase '{phase.name}' ({phase.type})",
        {"phase_id": phase.id, "order_index": phase.order_index},
    )
    return phase


def update_phase(principal, phase_id, data: dict) -> Phase:
    """Patch a phase's descriptive fields and config.

    ``type`` and ``order_index`` may be echoed back unchanged but not
    altered. Replacing ``config`` keeps the current branch targets unless
    the new config names them.
    """
    phase = _load_phase(principal, phase_id)
    grant = authorization.authorize(principal, phase.pathway_template_id, authorization.WRITE)

    if "type" in data and data["type"] != phase.type:
        raise ValidationError("Phase type cannot be changed after creation", details={"type": "immutable"})
    if "order_index" in data and data["order_index"] != phase.order_index:
        raise ValidationError(
            "order_index is changed through the reorder operation",
            details={"order_index": "use_reorder"},
        )

    changes = _coerce_common_fields(data)
    if "name" in data:
        changes["name"] = _validate_name(data["name"])
    _check_date_range(
        changes.get("phase_start_date", phase.phase_start_date),
        changes.get("phase_end_date", phase.phase_end_date),
    )

    if "config" in data:
        config = _coerce_config(data["config"])
        current = phase.config or {}
        for key in BRANCH_KEYS:
            if key not in config and current.get(key) is not None:
                config[key] = current[key]
        validate_branch_targets(phase.pathway_template_id, phase.type, config, phase_id=phase.id)
        changes["config"] = config

    if not changes:
        return phase
    changes["last_updated_by"] = grant.principal.id

    with UnitOfWork("update_phase", template_id=phase.pathway_template_id) as uow:
        with uow.step("update_phase"):
            repo.update_fields(grant, phase, changes)

    changed = sorted(k for k in changes if k != "last_updated_by")
    logger.info(
        "Phase updated: %s", ", ".join(changed),
        extra={"template_id": phase.pathway_template_id, "phase_id": phase.id},
    )
    activity_log.record(
        phase.pathway_template_id, grant.principal.id, "phase.updated",
        f"Updated phase '{phase.name}'",
        {"phase_id": phase.id, "fields": changed},
    )
    return phase


def update_branching(principal, phase_id, success_target_id=None, failure_target_id=None) -> Phase:
    """Set both branch targets of a Decision/Review phase (None clears a target)."""
    phase = _load_phase(principal, phase_id)
    grant = authorization.authorize(principal, phase.pathway_template_id, authorization.WRITE)

    if not phase.supports_branching:
        raise ValidationError(
            f"{phase.type} phases do not support branching",
            details={"type": phase.type},
        )
    targets = {BRANCH_SUCCESS_KEY: success_target_id, BRANCH_FAILURE_KEY: failure_target_id}
    validate_branch_targets(phase.pathway_template_id, phase.type, targets, phase_id=phase.id)

    with UnitOfWork("update_branching", template_id=phase.pathway_template_id) as uow:
        with uow.step("update_branching"):
            repo.update_fields(grant, phase, {
                "config": {**(phase.config or {}), **targets},
                "last_updated_by": grant.principal.id,
            })

    logger.info(
        "Phase branching updated",
        extra={"template_id": phase.pathway_template_id, "phase_id": phase.id},
    )
    activity_log.record(
        phase.pathway_template_id, grant.principal.id, "phase.branching_updated",
        f"Updated branching on '{phase.name}'",
        {"phase_id": phase.id, **targets},
    )
    return phase


def reorder_phases(principal, template_id, items) -> list[Phase]:
    """Apply a full reordering of a template's phases in one batch.

    ``items`` is ``[{"id": ..., "order_index": ...}, ...]`` and must name
    every phase of the template exactly once, with indices forming
    ``0..n-1``. Anything else is rejected before any write.
    """
    grant = authorization.authorize(principal, template_id, authorization.WRITE)

    if not isinstance(items, list):
        raise ValidationError("phases must be a list of {id, order_index}")

    phases = {p.id: p for p in repo.list_phases(template_id)}
    new_order = {}
    for item in items:
        if not isinstance(item, dict) or not isinstance(item.get("id"), str):
            raise ValidationError("Each entry needs an id and an order_index")
        phase_id = item["id"]
        if phase_id not in phases:
            raise ValidationError(
                "Phase does not belong to this template",
                details={"id": phase_id},
            )
        if phase_id in new_order:
            raise ValidationError("Phase listed more than once", details={"id": phase_id})
        new_order[phase_id] = _validate_order_index(item.get("order_index"))

    if set(new_order) != set(phases):
        missing = sorted(set(phases) - set(new_order))
        raise ValidationError(
            "Reorder must include every phase of the template",
            details={"missing": missing},
        )
    if sorted(new_order.values()) != list(range(len(phases))):
        raise ValidationError(
            f"order_index values must be exactly 0..{len(phases) - 1}",
            details={"order_index": sorted(new_order.values())},
        )

    with UnitOfWork("reorder_phases", template_id=template_id) as uow:
        with uow.step("apply_indices"):
            for phase_id, index in new_order.items():
                if phases[phase_id].order_index != index:
                    repo.update_fields(grant, phases[phase_id], {"order_index": index})

    logger.info(
        "Phases reordered (%d)", len(new_order),
        extra={"template_id": template_id, "actor_id": grant.principal.id},
    )
    activity_log.record(
        template_id, grant.principal.id, "phases.reordered",
        f"Reordered {len(new_order)} phases",
        {"order": [pid for pid, _ in sorted(new_order.items(), key=lambda kv: kv[1])]},
    )
    return repo.list_phases(template_id)


def delete_phase(principal, phase_id) -> None:
    """Hard-delete a phase, compact sibling indices and clear dangling branches."""
    phase = _load_phase(principal, phase_id)
    template_id = phase.pathway_template_id
    grant = authorization.authorize(principal, template_id, authorization.WRITE)
    phase_name = phase.name

    cleared = []
    with UnitOfWork("delete_phase", template_id=template_id, phase_id=phase_id) as uow:
        with uow.step("delete_phase"):
            repo.delete_phase(grant, phase)
        remaining = [p for p in repo.list_phases(template_id) if p.id != phase_id]
        with uow.step("compact_indices"):
            for index, sibling in enumerate(remaining):
                if sibling.order_index != index:
                    repo.update_fields(grant, sibling, {"order_index": index})
        with uow.step("clear_branch_targets"):
            for sibling in remaining:
                config = sibling.config or {}
                stale = [key for key in BRANCH_KEYS if config.get(key) == phase_id]
                if stale:
                    repo.update_fields(grant, sibling, {
                        "config": {**config, **{key: None for key in stale}},
                    })
                    cleared.append(sibling.id)

    logger.info(
        "Phase deleted: %s (cleared %d branch references)", phase_name, len(cleared),
        extra={"template_id": template_id, "phase_id": phase_id, "actor_id": grant.principal.id},
    )
    activity_log.record(
        template_id, grant.principal.id, "phase.deleted",
        f"Deleted phase '{phase_name}'",
        {"phase_id": phase_id, "cleared_branch_references": cleared},
    )
