"""Health check endpoint."""

from fastapi import APIRouter, Depends

from api.deps import Workspace, get_workspace
from config.settings import get_settings
from services.entity_store import COLLECTIONS

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health(workspace: Workspace = Depends(get_workspace)):
    """Liveness plus a snapshot of how much data the store holds."""
    state = workspace.store.state
    return {
        "status": "healthy",
        "offline": get_settings().use_fallback_data,
        "collections": {
            name: {"count": len(state.collection(name).data), "loading": state.collection(name).loading}
            for name in COLLECTIONS
        },
    }
