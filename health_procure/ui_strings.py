from __future__ import annotations

from typing import Dict, List


STATUS_ITEMS: List[Dict[str, str]] = [
    {
        "key": "Pending Taluka Approval",
        "label": "Pending taluka approval",
        "description": "Submitted by a facility and waiting for the taluka officer.",
    },
    {
        "key": "Pending District Approval",
        "label": "Pending district approval",
        "description": "Cleared by the taluka and waiting for the district officer.",
    },
    {
        "key": "Pending State Approval",
        "label": "Pending state approval",
        "description": "Cleared by the district and waiting for the state officer.",
    },
    {
        "key": "Approved",
        "label": "Approved",
        "description": "Final approval granted at state level.",
    },
    {
        "key": "Rejected",
        "label": "Rejected",
        "description": "Rejected at one of the approval tiers. No further action is possible.",
    },
]


QUEUE_TITLES: Dict[str, str] = {
    "state": "State-Level Approval Queue",
    "district": "District-Level Approval Queue",
    "taluka": "Taluka-Level Approval Queue",
    "base": "My Procurement Requests",
}


MESSAGES: Dict[str, Dict[str, str]] = {
    "success": {
        "requests_submitted": "Requests submitted for approval.",
        "request_approved": "Request approved.",
        "request_rejected": "Request rejected.",
        "logged_in": "Signed in.",
        "logged_out": "Signed out.",
    },
    "error": {
        "auth_required": "Authentication required.",
        "user_not_found": "User not found.",
        "permission_denied": "You do not have permission for this action.",
        "not_authorized_for_stage": "This request is not waiting for your approval tier.",
        "submission_not_allowed": "Your role cannot submit procurement requests.",
        "action_not_allowed_for_status": "This action is not allowed for the current request status.",
        "request_not_found": "Procurement request not found.",
        "validation_error": "The submitted data is invalid.",
        "invalid_submission": "Please ensure all selected items have a quantity and justification.",
        "decision_invalid": "Decision must be Approve or Reject.",
        "status_filter_invalid": "Unknown status filter.",
        "payload_invalid": "Request body must be a JSON object.",
        "text_generation_unavailable": "The text generation service is unavailable. Try again shortly.",
        "text_generation_empty": "The text generation service returned no text.",
        "directory_invalid": "The user directory is misconfigured.",
        "rate_limit_exceeded": "Too many requests. Try again shortly.",
        "unexpected_error": "The operation could not be completed. Try again shortly.",
    },
}


def status_keys() -> List[str]:
    return [item["key"] for item in STATUS_ITEMS]


def queue_title(role: str | None) -> str:
    return QUEUE_TITLES.get(str(role or ""), "Procurement Requests")


def get_message(category: str, key: str, default: str | None = None) -> str:
    message = MESSAGES.get(category, {}).get(key)
    if message:
        return message
    if default is not None:
        return default
    return key


def error_message(key: str, default: str | None = None) -> str:
    return get_message("error", key, default)


def success_message(key: str, default: str | None = None) -> str:
    return get_message("success", key, default)
