from __future__ import annotations

import csv
import io
from typing import Dict, List


CATEGORY_NEEDS: Dict[str, str] = {
    "HR": "to keep essential services staffed across all shifts",
    "Infrastructure": "to keep the facility safe and fit for patient care",
    "Equipment": "to sustain diagnostic and emergency care without referral delays",
    "Training": "to keep staff current with clinical protocols and new equipment",
}


def generate_justification(item_name: str, category: str, quantity: int) -> str:
    need = CATEGORY_NEEDS.get(category, "to meet the current service load")
    unit = "unit" if int(quantity) == 1 else "units"
    return (
        f"The primary health centre requires {quantity} {unit} of {item_name} "
        f"under {category} {need}. Current stock does not cover the patient volume "
        f"recorded this quarter, and the shortfall affects timely care for the "
        f"community served by the facility."
    )


def _csv_rows(raw: str) -> List[Dict[str, str]]:
    text = (raw or "").strip()
    if not text:
        return []
    return [dict(row) for row in csv.DictReader(io.StringIO(text))]


def _quantities_by_item(rows: List[Dict[str, str]]) -> Dict[str, int]:
    totals: Dict[str, int] = {}
    for row in rows:
        item = (row.get("itemName") or row.get("item") or "").strip()
        if not item:
            continue
        try:
            quantity = int(float(row.get("quantity") or 0))
        except ValueError:
            continue
        totals[item] = totals.get(item, 0) + quantity
    return totals


def forecast_demand(historical_data: str, current_requests: str) -> str:
    history = _quantities_by_item(_csv_rows(historical_data))
    current = _quantities_by_item(_csv_rows(current_requests))
    if not history and not current:
        return ""

    lines = ["Demand forecast summary:"]
    for item in sorted(set(history) | set(current)):
        past = history.get(item, 0)
        now = current.get(item, 0)
        if past and now > past:
            trend = f"rising demand ({now} requested vs {past} historically); plan for a possible shortage"
        elif past and now < past:
            trend = f"falling demand ({now} requested vs {past} historically); watch for overstock"
        elif not past:
            trend = f"new demand of {now} with no history; monitor closely"
        else:
            trend = f"stable demand at {now}"
        lines.append(f"- {item}: {trend}.")
    return "\n".join(lines)
