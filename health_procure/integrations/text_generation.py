from __future__ import annotations

import csv
import io
import json
import os
import ssl
import urllib.error
import urllib.request
from typing import Any, Dict, Iterable

from flask import current_app

from health_procure.domain.contracts import ProcurementRequest, TextGenerationResult
from health_procure.errors import UpstreamServiceError
from health_procure.integrations import text_generation_mock


CSV_COLUMNS = ("id", "category", "itemName", "quantity", "pricePerUnit", "priority", "status", "createdAt")


class TextGenerationError(RuntimeError):
    pass


def _upstream_error(code: str, details: str) -> UpstreamServiceError:
    return UpstreamServiceError(code=code, details=details)


class TextGenerationClient:
    """Request/response access to the justification and forecast flows.

    ``mock`` mode answers locally; ``remote`` posts JSON to
    ``{TEXTGEN_BASE_URL}/{flow}`` and expects ``{"resultText": ...}`` back.
    Failures and empty answers surface as UpstreamServiceError; nothing is
    retried.
    """

    def __init__(self, mode: str | None = None, transport=None) -> None:
        self._mode = mode
        self._transport = transport or _request_json

    @property
    def mode(self) -> str:
        return str(self._mode or _get_config("TEXTGEN_MODE", "mock") or "mock").strip().lower()

    def generate(self, flow: str, prompt_inputs: Dict[str, Any]) -> TextGenerationResult:
        mode = self.mode
        if mode == "mock":
            text = self._generate_mock(flow, prompt_inputs)
            source = "mock"
        elif mode == "remote":
            text = self._generate_remote(flow, prompt_inputs)
            source = "remote"
        else:
            raise _upstream_error("text_generation_unavailable", f"invalid TEXTGEN_MODE: {mode}")

        normalized = str(text or "").strip()
        if not normalized:
            raise _upstream_error("text_generation_empty", f"{flow} returned no text")
        return TextGenerationResult(result_text=normalized, source=source)

    def generate_justification(self, item_name: str, category: str, quantity: int) -> TextGenerationResult:
        return self.generate(
            "justification",
            {"itemName": item_name, "category": category, "quantity": int(quantity)},
        )

    def forecast_demand(self, historical_data: str, current_requests: str) -> TextGenerationResult:
        return self.generate(
            "forecast",
            {"historicalData": historical_data, "currentRequests": current_requests},
        )

    @staticmethod
    def _generate_mock(flow: str, prompt_inputs: Dict[str, Any]) -> str:
        if flow == "justification":
            return text_generation_mock.generate_justification(
                str(prompt_inputs.get("itemName") or ""),
                str(prompt_inputs.get("category") or ""),
                int(prompt_inputs.get("quantity") or 0),
            )
        if flow == "forecast":
            return text_generation_mock.forecast_demand(
                str(prompt_inputs.get("historicalData") or ""),
                str(prompt_inputs.get("currentRequests") or ""),
            )
        raise _upstream_error("text_generation_unavailable", f"unknown flow: {flow}")

    def _generate_remote(self, flow: str, prompt_inputs: Dict[str, Any]) -> str:
        base_url = str(_get_config("TEXTGEN_BASE_URL") or "").strip()
        if not base_url:
            raise _upstream_error("text_generation_unavailable", "TEXTGEN_BASE_URL is not configured")
        url = f"{base_url.rstrip('/')}/{flow}"
        try:
            payload = self._transport("POST", url, prompt_inputs)
        except TextGenerationError as exc:
            raise _upstream_error("text_generation_unavailable", str(exc)) from exc
        if not isinstance(payload, dict):
            return ""
        output = payload.get("output") if isinstance(payload.get("output"), dict) else payload
        for key in ("resultText", "justification", "forecastSummary", "text"):
            value = output.get(key)
            if isinstance(value, str) and value.strip():
                return value
        return ""


def requests_to_csv(requests: Iterable[ProcurementRequest]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(CSV_COLUMNS), extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    for request in requests:
        writer.writerow(request.to_dict())
    return buffer.getvalue()


def _request_json(method: str, url: str, payload: dict | None = None) -> object:
    timeout = _int_config("TEXTGEN_TIMEOUT_SECONDS", 30)
    headers = {"Accept": "application/json"}

    api_key = _get_config("TEXTGEN_API_KEY")
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"

    data = None
    if payload is not None:
        headers["Content-Type"] = "application/json"
        data = json.dumps(payload, separators=(",", ":"), ensure_ascii=True).encode("utf-8")

    request = urllib.request.Request(url, data=data, headers=headers, method=method.upper())

    context = None
    if not _bool_config("TEXTGEN_VERIFY_SSL", True):
        context = ssl._create_unverified_context()

    try:
        with urllib.request.urlopen(request, timeout=timeout, context=context) as response:
            body = response.read().decode("utf-8")
            if not body:
                return {}
            return json.loads(body)
    except urllib.error.HTTPError as exc:  # noqa: PERF203
        error_body = exc.read().decode("utf-8") if exc.fp else ""
        raise TextGenerationError(f"text generation HTTP {exc.code}: {error_body[:200]}") from exc
    except urllib.error.URLError as exc:
        raise TextGenerationError(f"text generation connection error: {exc.reason}") from exc
    except TimeoutError as exc:
        raise TextGenerationError("text generation timed out") from exc
    except json.JSONDecodeError as exc:
        raise TextGenerationError("text generation returned invalid JSON") from exc


def _get_config(key: str, default: object | None = None) -> object | None:
    try:
        return current_app.config.get(key, default)
    except RuntimeError:
        return os.environ.get(key, default)


def _int_config(key: str, default: int) -> int:
    value = _get_config(key, default)
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


def _bool_config(key: str, default: bool) -> bool:
    value = _get_config(key, default)
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "on"}
