from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from health_procure.application.procurement_service import ProcurementService
from health_procure.auth import current_user, require_current_user
from health_procure.db import get_db, get_read_db
from health_procure.directory import current_resolver
from health_procure.errors import ValidationError
from health_procure.procurement.approval_flow import ACTION_APPROVED
from health_procure.procurement.catalog import catalog_bundle, search_items
from health_procure.ui_strings import STATUS_ITEMS, success_message


procurement_bp = Blueprint("procurement", __name__)

TEXT_CLIENT_EXTENSION_KEY = "text_generation_client"


def _service() -> ProcurementService:
    return ProcurementService(
        resolver=current_resolver(),
        text_client=current_app.extensions.get(TEXT_CLIENT_EXTENSION_KEY),
    )


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError(code="payload_invalid")
    return payload


@procurement_bp.route("/api/catalog", methods=["GET"])
def api_catalog():
    bundle = catalog_bundle()
    query = request.args.get("q")
    if query:
        bundle["items"] = search_items(query)
    bundle["statuses"] = STATUS_ITEMS
    return jsonify(bundle)


@procurement_bp.route("/api/requests", methods=["GET"])
def api_requests_queue():
    payload = _service().approval_queue(get_read_db(), current_user(), request.args.get("filter"))
    return jsonify(payload)


@procurement_bp.route("/api/requests/scope", methods=["GET"])
def api_requests_scope():
    payload = _service().scope_listing(get_read_db(), current_user(), request.args.get("filter"))
    return jsonify(payload)


@procurement_bp.route("/api/requests/<request_id>", methods=["GET"])
def api_request_detail(request_id: str):
    return jsonify(_service().request_detail(get_read_db(), current_user(), request_id))


@procurement_bp.route("/api/requests", methods=["POST"])
def api_submit_requests():
    actor = require_current_user()
    payload = _json_body()
    items = payload.get("items")
    if items is None:
        items = [payload]
    if not isinstance(items, list):
        raise ValidationError(code="invalid_submission", payload={"field": "items"})

    result = _service().submit_requests(get_db(), actor, items)
    body = result.to_dict()
    body["message"] = success_message("requests_submitted")
    return jsonify(body), 201


@procurement_bp.route("/api/requests/<request_id>/decision", methods=["POST"])
def api_decide(request_id: str):
    actor = require_current_user()
    payload = _json_body()
    service = _service()
    updated = service.decide(
        get_db(),
        actor,
        request_id,
        payload.get("decision"),
        payload.get("comment"),
    )
    message_key = "request_approved" if updated.audit_log[-1].action == ACTION_APPROVED else "request_rejected"
    return jsonify({"request": service.request_view(updated, actor), "message": success_message(message_key)})


@procurement_bp.route("/api/reports/approved-items", methods=["GET"])
def api_report_approved_items():
    return jsonify(_service().approved_items(get_read_db(), current_user()))


@procurement_bp.route("/api/reports/requested-budget", methods=["GET"])
def api_report_requested_budget():
    return jsonify(_service().requested_budget(get_read_db(), current_user()))


@procurement_bp.route("/api/reports/grouping", methods=["GET"])
def api_report_grouping():
    return jsonify(_service().report_grouping(get_read_db(), current_user()))


@procurement_bp.route("/api/reports/cost-breakdown", methods=["GET"])
def api_report_cost_breakdown():
    payload = _service().cost_breakdown(
        get_read_db(),
        current_user(),
        unit_id=(request.args.get("unitId") or "").strip() or None,
        category=(request.args.get("category") or "").strip() or None,
    )
    return jsonify(payload)


@procurement_bp.route("/api/assist/justification", methods=["POST"])
def api_assist_justification():
    result = _service().draft_justification(require_current_user(), _json_body())
    return jsonify(result.to_dict())


@procurement_bp.route("/api/assist/forecast", methods=["POST"])
def api_assist_forecast():
    result = _service().forecast_demand(get_read_db(), require_current_user(), _json_body())
    return jsonify(result.to_dict())
