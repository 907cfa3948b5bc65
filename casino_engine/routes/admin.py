from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from casino_engine.middleware.auth import get_admin_capability
from casino_engine.routes.serializers import settings_json

router = APIRouter()

class AdminAuthRequest(BaseModel):
    pin: str

@router.post("/auth")
async def auth_admin(body: AdminAuthRequest, request: Request):
    token = request.app.state.casino.authenticate_admin(body.pin)
    return {"token": token}

@router.post("/logout")
async def logout_admin(request: Request, capability: Optional[str] = Depends(get_admin_capability)):
    casino = request.app.state.casino
    casino.settings_store.authorize(capability)
    casino.revoke_admin(capability)
    return {"ok": True}

@router.get("/settings")
async def list_settings(request: Request, capability: Optional[str] = Depends(get_admin_capability)):
    all_settings = request.app.state.casino.all_settings(capability)
    return {gid: settings_json(s) for gid, s in all_settings.items()}

@router.patch("/settings/{game_id}")
async def update_settings(game_id: str, body: Dict[str, Any], request: Request,
                          capability: Optional[str] = Depends(get_admin_capability)):
    updated = request.app.state.casino.update_settings(game_id, body, capability)
    return {"game_id": game_id, "settings": settings_json(updated)}

@router.post("/settings/{game_id}/reset")
async def reset_settings(game_id: str, request: Request, capability: Optional[str] = Depends(get_admin_capability)):
    restored = request.app.state.casino.reset_settings(game_id, capability)
    return {"game_id": game_id, "settings": settings_json(restored)}
