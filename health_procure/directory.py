from __future__ import annotations

import json
import logging
from typing import Any, Dict, List

from flask import current_app

from health_procure.errors import ConfigurationError
from health_procure.procurement.hierarchy import HierarchyResolver, UserDirectory


LOGGER = logging.getLogger("health_procure")

DIRECTORY_EXTENSION_KEY = "user_directory"


DEMO_USERS: List[Dict[str, Any]] = [
    {"id": "state-1", "name": "State Health Directorate", "role": "state", "reportsTo": None},
    {"id": "district-1", "name": "Pune District Health Office", "role": "district", "reportsTo": "state-1"},
    {"id": "district-2", "name": "Nashik District Health Office", "role": "district", "reportsTo": "state-1"},
    {"id": "taluka-1", "name": "Haveli Taluka Health Office", "role": "taluka", "reportsTo": "district-1"},
    {"id": "taluka-2", "name": "Mulshi Taluka Health Office", "role": "taluka", "reportsTo": "district-1"},
    {"id": "taluka-3", "name": "Niphad Taluka Health Office", "role": "taluka", "reportsTo": "district-2"},
    {"id": "base-1", "name": "PHC Wagholi", "role": "base", "reportsTo": "taluka-1"},
    {"id": "base-2", "name": "PHC Khed Shivapur", "role": "base", "reportsTo": "taluka-1"},
    {"id": "base-3", "name": "PHC Paud", "role": "base", "reportsTo": "taluka-2"},
    {"id": "base-4", "name": "PHC Lasalgaon", "role": "base", "reportsTo": "taluka-3"},
]


def load_directory_records(path: str | None) -> List[Dict[str, Any]]:
    if not path:
        return [dict(record) for record in DEMO_USERS]
    try:
        with open(path, "r", encoding="utf-8") as handle:
            records = json.load(handle)
    except OSError as exc:
        raise ConfigurationError(details=f"cannot read user directory {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(details=f"user directory {path} is not valid JSON") from exc
    if isinstance(records, dict):
        records = records.get("users")
    if not isinstance(records, list):
        raise ConfigurationError(details=f"user directory {path} must hold a list of users")
    return records


def build_user_directory(app) -> UserDirectory:
    path = app.config.get("USER_DIRECTORY_PATH")
    directory = UserDirectory.from_records(load_directory_records(path))
    LOGGER.info(
        "user_directory_loaded",
        extra={"source": path or "demo", "users": len(directory)},
    )
    app.extensions[DIRECTORY_EXTENSION_KEY] = directory
    return directory


def current_directory() -> UserDirectory:
    directory = current_app.extensions.get(DIRECTORY_EXTENSION_KEY)
    if directory is None:
        raise ConfigurationError(details="user directory was not initialised")
    return directory


def current_resolver() -> HierarchyResolver:
    return HierarchyResolver(current_directory())
