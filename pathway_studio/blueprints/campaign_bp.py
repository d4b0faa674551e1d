"""Campaign blueprint.

Endpoint groups:
  Campaigns     POST /api/v1/campaigns
                GET  /api/v1/campaigns/<id>
                PUT  /api/v1/campaigns/<id>/status
  Phases        GET  /api/v1/campaigns/<id>/phases
                POST /api/v1/campaigns/<id>/copy-phases
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from pathway_studio.auth import current_principal
from pathway_studio.services import campaign_service, clone_service
from pathway_studio.utils.errors import E, api_error, register_error_handlers

logger = logging.getLogger(__name__)

campaign_bp = Blueprint("campaigns", __name__, url_prefix="/api/v1/campaigns")

register_error_handlers(campaign_bp)


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        return None, api_error(E.VALIDATION_REQUIRED, "Request body must be a JSON object")
    return data, None


@campaign_bp.route("", methods=["POST"])
def create_campaign():
    """Create a draft campaign, deep-copying phases when a template is given.

    Body: { name, pathway_template_id?, description?, start_date?, end_date?,
            is_public?, config? }
    Returns: { campaign, phases } (201).
    """
    data, err = _json_body()
    if err:
        return err
    campaign, phases = campaign_service.create_campaign(current_principal(), data)
    return jsonify({
        "campaign": campaign.to_dict(),
        "phases": [p.to_dict() for p in phases],
    }), 201


@campaign_bp.route("/<campaign_id>", methods=["GET"])
def get_campaign(campaign_id):
    campaign = campaign_service.get_campaign(current_principal(), campaign_id)
    return jsonify(campaign.to_dict()), 200


@campaign_bp.route("/<campaign_id>/status", methods=["PUT"])
def update_campaign_status(campaign_id):
    data, err = _json_body()
    if err:
        return err
    status = data.get("status")
    if not status:
        return api_error(E.VALIDATION_REQUIRED, "status is required")
    campaign = campaign_service.update_campaign_status(current_principal(), campaign_id, status)
    return jsonify(campaign.to_dict()), 200


@campaign_bp.route("/<campaign_id>/phases", methods=["GET"])
def list_campaign_phases(campaign_id):
    phases = campaign_service.list_campaign_phases(current_principal(), campaign_id)
    return jsonify([p.to_dict() for p in phases]), 200


@campaign_bp.route("/<campaign_id>/copy-phases", methods=["POST"])
def copy_phases(campaign_id):
    """Body: { pathway_template_id }. Appends copies of the template's phases (201)."""
    data, err = _json_body()
    if err:
        return err
    template_id = data.get("pathway_template_id")
    if not template_id:
        return api_error(E.VALIDATION_REQUIRED, "pathway_template_id is required")
    phases = clone_service.deep_copy_phases_to_instance(current_principal(), campaign_id, template_id)
    return jsonify([p.to_dict() for p in phases]), 201
