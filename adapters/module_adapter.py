"""Adapter for the module API → canonical Module.

API endpoints handled:
- GET    /modules                         → list[Module] (bare array)
- POST   /modules  {title, levels, ...}   → {success, data: Module}
- PATCH  /modules  {_id, title?, ...}     → {success, data: Module}
- DELETE /modules  {_id}                  → {success}
"""

from __future__ import annotations

import logging
from typing import Any

from adapters.normalize import normalize_module, normalize_modules, unwrap_data
from models.entities import Module
from models.mutations import ModuleDraft
from services.api_client import ProgressApiClient

logger = logging.getLogger(__name__)


def draft_to_payload(draft: ModuleDraft) -> dict[str, Any]:
    """Serialize a module draft into the camelCase body the API expects."""
    payload = draft.model_dump(by_alias=True, exclude_none=True)
    payload["title"] = draft.title.strip()
    return payload


async def fetch_modules(client: ProgressApiClient) -> list[Module]:
    """Fetch every module.

    GET /modules
    """
    items = unwrap_data(await client.get("/modules"))
    if not isinstance(items, list):
        logger.warning("fetch_modules: expected list, got %s", type(items))
        return []
    return normalize_modules(items)


async def create_module(client: ProgressApiClient, draft: ModuleDraft) -> Module:
    """Create a module and return the server-confirmed record.

    POST /modules
    """
    payload = draft_to_payload(draft)
    data = unwrap_data(await client.post("/modules", json_body=payload))
    # The API echoes the request body plus the generated _id.
    return normalize_module({**payload, **(data if isinstance(data, dict) else {})})


async def update_module(client: ProgressApiClient, module_id: str, draft: ModuleDraft) -> Module:
    """Update a module and return the stored record.

    PATCH /modules
    """
    payload = {"_id": module_id, **draft_to_payload(draft)}
    data = unwrap_data(await client.patch("/modules", json_body=payload))
    return normalize_module({**payload, **(data if isinstance(data, dict) else {})})


async def delete_module(client: ProgressApiClient, module_id: str) -> None:
    """Delete a module.

    DELETE /modules
    """
    unwrap_data(await client.delete("/modules", json_body={"_id": module_id}))
