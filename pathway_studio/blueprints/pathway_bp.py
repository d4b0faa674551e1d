"""Pathway template blueprint.

REST API for templates, their phase graph and their versions.

Endpoint groups:
  Templates        GET/POST         /api/v1/pathway-templates
                   GET/PUT/DELETE   /api/v1/pathway-templates/<id>
  Lifecycle        PUT  /api/v1/pathway-templates/<id>/status
                   POST /api/v1/pathway-templates/<id>/publish
  Clone            POST /api/v1/pathway-templates/<id>/clone
  Activity         GET  /api/v1/pathway-templates/<id>/activity
  Phases           GET/POST         /api/v1/pathway-templates/<id>/phases
                   PUT              /api/v1/pathway-templates/<id>/phases/reorder
                   GET/PUT/DELETE   /api/v1/pathway-templates/phases/<phase_id>
                   PUT              /api/v1/pathway-templates/phases/<phase_id>/branching
  Versions         GET/POST         /api/v1/pathway-templates/<id>/versions
                   GET              /api/v1/pathway-templates/versions/<version_id>
                   POST             /api/v1/pathway-templates/<id>/versions/<version_id>/rollback

The acting principal comes from the JWT middleware (``current_principal``)
and is passed explicitly to the service layer, which owns all business
logic, authorization and commits.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from pathway_studio.auth import current_principal
from pathway_studio.models.pathway import BRANCH_FAILURE_KEY, BRANCH_SUCCESS_KEY
from pathway_studio.services import (
    activity_log,
    clone_service,
    phase_service,
    template_service,
    versioning_service,
)
from pathway_studio.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)

pathway_bp = Blueprint("pathways", __name__, url_prefix="/api/v1/pathway-templates")

register_error_handlers(pathway_bp)


def _json_body():
    """Return the JSON object body, or an error response tuple."""
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        return None, api_error(E.VALIDATION_REQUIRED, "Request body must be a JSON object")
    return data, None


# ═════════════════════════════════════════════════════════════════════════
# Templates
# ═════════════════════════════════════════════════════════════════════════


@pathway_bp.route("", methods=["GET"])
def list_templates():
    """Return every template the caller may read, newest first."""
    templates = template_service.list_templates(current_principal())
    return jsonify([t.to_dict() for t in templates]), 200


@pathway_bp.route("", methods=["POST"])
def create_template():
    """Create a draft template owned by the caller.

    Body: { name, description?, is_private?, is_visible_to_applicants?, tags?,
            application_open_date?, participation_deadline?, general_instructions? }
    Returns: created template (201).
    """
    data, err = _json_body()
    if err:
        return err
    template = template_service.create_template(current_principal(), data)
    return jsonify(template.to_dict()), 201


@pathway_bp.route("/<template_id>", methods=["GET"])
def get_template(template_id):
    """Return a template with its ordered phases."""
    template = template_service.get_template(current_principal(), template_id)
    return jsonify(template.to_dict(include_phases=True)), 200


@pathway_bp.route("/<template_id>", methods=["PUT"])
def update_template(template_id):
    data, err = _json_body()
    if err:
        return err
    template = template_service.update_template(current_principal(), template_id, data)
    return jsonify(template.to_dict()), 200


@pathway_bp.route("/<template_id>", methods=["DELETE"])
def delete_template(template_id):
    """Hard-delete a template with its phases and versions. Returns 204."""
    template_service.delete_template(current_principal(), template_id)
    return "", 204


# ── Lifecycle ────────────────────────────────────────────────────────────────


@pathway_bp.route("/<template_id>/status", methods=["PUT"])
def update_status(template_id):
    """Body: { status }. Moving to ``published`` also snapshots a version."""
    data, err = _json_body()
    if err:
        return err
    status = data.get("status")
    if not status:
        return api_error(E.VALIDATION_REQUIRED, "status is required")
    template = template_service.update_status(current_principal(), template_id, status)
    return jsonify(template.to_dict()), 200


@pathway_bp.route("/<template_id>/publish", methods=["POST"])
def publish_template(template_id):
    """Publish and snapshot in one step. Returns { template, version } (201)."""
    template, version = versioning_service.publish(current_principal(), template_id)
    return jsonify({
        "template": template.to_dict(),
        "version": version.to_dict(include_snapshot=False),
    }), 201


@pathway_bp.route("/<template_id>/clone", methods=["POST"])
def clone_template(template_id):
    """Body: { name? }. Returns the new draft template with phases (201)."""
    data, err = _json_body()
    if err:
        return err
    clone = clone_service.clone_template(current_principal(), template_id, data.get("name"))
    return jsonify(clone.to_dict(include_phases=True)), 201


@pathway_bp.route("/<template_id>/activity", methods=["GET"])
def list_activity(template_id):
    """Query params: limit (default 100, max 500). Newest first."""
    limit = min(max(request.args.get("limit", 100, type=int), 1), 500)
    entries = activity_log.list_activity(current_principal(), template_id, limit=limit)
    return jsonify([e.to_dict() for e in entries]), 200


# ═════════════════════════════════════════════════════════════════════════
# Phases
# ═════════════════════════════════════════════════════════════════════════


@pathway_bp.route("/<template_id>/phases", methods=["GET"])
def list_phases(template_id):
    phases = phase_service.list_phases(current_principal(), template_id)
    return jsonify([p.to_dict() for p in phases]), 200


@pathway_bp.route("/<template_id>/phases", methods=["POST"])
def create_phase(template_id):
    """Body: { name, type, order_index?, config?, description?, dates, instructions }.

    Omitting order_index appends the phase. Returns the phase (201).
    """
    data, err = _json_body()
    if err:
        return err
    phase = phase_service.create_phase(current_principal(), template_id, data)
    return jsonify(phase.to_dict()), 201


@pathway_bp.route("/<template_id>/phases/reorder", methods=["PUT"])
def reorder_phases(template_id):
    """Body: { phases: [{id, order_index}, ...] } covering every phase exactly once."""
    payload = request.get_json(silent=True)
    items = payload.get("phases") if isinstance(payload, dict) else payload
    if items is None:
        return api_error(E.VALIDATION_REQUIRED, "phases is required")
    phases = phase_service.reorder_phases(current_principal(), template_id, items)
    return jsonify([p.to_dict() for p in phases]), 200


@pathway_bp.route("/phases/<phase_id>", methods=["GET"])
def get_phase(phase_id):
    phase = phase_service.get_phase(current_principal(), phase_id)
    return jsonify(phase.to_dict()), 200


@pathway_bp.route("/phases/<phase_id>", methods=["PUT"])
def update_phase(phase_id):
    data, err = _json_body()
    if err:
        return err
    phase = phase_service.update_phase(current_principal(), phase_id, data)
    return jsonify(phase.to_dict()), 200


@pathway_bp.route("/phases/<phase_id>", methods=["DELETE"])
def delete_phase(phase_id):
    """Delete a phase; siblings are re-indexed and dangling branches cleared. Returns 204."""
    phase_service.delete_phase(current_principal(), phase_id)
    return "", 204


@pathway_bp.route("/phases/<phase_id>/branching", methods=["PUT"])
def update_branching(phase_id):
    """Body: { next_phase_id_on_success?, next_phase_id_on_failure? } (null clears)."""
    data, err = _json_body()
    if err:
        return err
    phase = phase_service.update_branching(
        current_principal(),
        phase_id,
        success_target_id=data.get(BRANCH_SUCCESS_KEY),
        failure_target_id=data.get(BRANCH_FAILURE_KEY),
    )
    return jsonify(phase.to_dict()), 200


# ═════════════════════════════════════════════════════════════════════════
# Versions
# ═════════════════════════════════════════════════════════════════════════


@pathway_bp.route("/<template_id>/versions", methods=["GET"])
def list_versions(template_id):
    """Newest first, without snapshot bodies."""
    versions = versioning_service.list_versions(current_principal(), template_id)
    return jsonify([v.to_dict(include_snapshot=False) for v in versions]), 200


@pathway_bp.route("/<template_id>/versions", methods=["POST"])
def create_version(template_id):
    version = versioning_service.create_version(current_principal(), template_id)
    return jsonify(version.to_dict()), 201


@pathway_bp.route("/versions/<version_id>", methods=["GET"])
def get_version(version_id):
    version = versioning_service.get_version(current_principal(), version_id)
    return jsonify(version.to_dict()), 200


@pathway_bp.route("/<template_id>/versions/<version_id>/rollback", methods=["POST"])
def rollback_version(template_id, version_id):
    """Restore the template and its phases from a version. Returns the template with phases."""
    template = versioning_service.rollback(current_principal(), template_id, version_id)
    return jsonify(template.to_dict(include_phases=True)), 200
