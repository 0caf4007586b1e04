"""Module endpoints.

Reads return only the modules the actor may manage; writes go through the
coordinator, which validates and runs the authorization policy before any
call to the upstream API.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from adapters.normalize import filter_modules_for_program
from api.deps import Workspace, get_workspace, require_actor
from config.settings import get_settings
from models.entities import Actor
from models.mutations import ModuleDraft
from services.policy import visible_modules

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/modules", tags=["modules"])


@router.get("")
async def list_modules(
    program: str | None = Query(default=None),
    actor: Actor = Depends(require_actor),
    workspace: Workspace = Depends(get_workspace),
):
    """Visible modules, optionally narrowed to one program level."""
    modules = list(workspace.store.state.modules.data)
    if program:
        modules = filter_modules_for_program(modules, program, get_settings().all_programs_level)
    data = [m.model_dump(by_alias=True, mode="json") for m in visible_modules(actor, modules)]
    return {"success": True, "data": data}


@router.post("", status_code=201)
async def create_module(
    draft: ModuleDraft,
    actor: Actor = Depends(require_actor),
    workspace: Workspace = Depends(get_workspace),
):
    module = await workspace.coordinator.create_module(actor, draft)
    return {"success": True, "data": module.model_dump(by_alias=True, mode="json")}


@router.patch("/{module_id}")
async def update_module(
    module_id: str,
    draft: ModuleDraft,
    actor: Actor = Depends(require_actor),
    workspace: Workspace = Depends(get_workspace),
):
    module = await workspace.coordinator.update_module(actor, module_id, draft)
    return {"success": True, "data": module.model_dump(by_alias=True, mode="json")}


@router.delete("/{module_id}")
async def delete_module(
    module_id: str,
    actor: Actor = Depends(require_actor),
    workspace: Workspace = Depends(get_workspace),
):
    await workspace.coordinator.delete_module(actor, module_id)
    return {"success": True}
