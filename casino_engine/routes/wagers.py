from decimal import Decimal
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from casino_engine.config import settings
from casino_engine.middleware.auth import get_session_id
from casino_engine.routes.serializers import amount, result_json, round_json, settings_json

router = APIRouter()

class WagerRequest(BaseModel):
    currency: str = settings.DEFAULT_CURRENCY
    stake: Decimal
    params: Dict[str, Any] = Field(default_factory=dict)

class AutoplayRequest(WagerRequest):
    rounds: int = Field(10, ge=1, le=100)

class RoundActionRequest(BaseModel):
    action: str
    params: Dict[str, Any] = Field(default_factory=dict)

@router.get("")
async def list_games(request: Request):
    return {"games": request.app.state.casino.list_games()}

@router.get("/{game_id}/settings")
async def game_settings(game_id: str, request: Request):
    return settings_json(request.app.state.casino.get_settings(game_id))

@router.post("/{game_id}/play")
async def play(game_id: str, body: WagerRequest, request: Request, session_id: str = Depends(get_session_id)):
    casino = request.app.state.casino
    result = await casino.place_wager(session_id, game_id, body.currency, body.stake, body.params)
    balance = await casino.get_balance(session_id, body.currency)
    return {"result": result_json(result), "balance": amount(balance)}

@router.post("/{game_id}/autoplay")
async def autoplay(game_id: str, body: AutoplayRequest, request: Request, session_id: str = Depends(get_session_id)):
    casino = request.app.state.casino
    report = await casino.autoplay(session_id, game_id, body.currency, body.stake, body.params, body.rounds)
    balance = await casino.get_balance(session_id, body.currency)
    return {
        "results": [result_json(r) for r in report.results],
        "rounds_played": report.rounds_played,
        "stopped_by": report.stopped_by.to_dict() if report.stopped_by else None,
        "balance": amount(balance),
    }

@router.post("/{game_id}/rounds")
async def start_round(game_id: str, body: WagerRequest, request: Request, session_id: str = Depends(get_session_id)):
    casino = request.app.state.casino
    rnd, result = await casino.start_round(session_id, game_id, body.currency, body.stake, body.params)
    balance = await casino.get_balance(session_id, body.currency)
    return {"round": round_json(rnd, result), "balance": amount(balance)}

@router.get("/{game_id}/rounds/{round_id}")
async def get_round(game_id: str, round_id: str, request: Request, session_id: str = Depends(get_session_id)):
    rnd = await request.app.state.casino.get_round(session_id, game_id, round_id)
    return {"round": round_json(rnd)}

@router.post("/{game_id}/rounds/{round_id}")
async def round_action(game_id: str, round_id: str, body: RoundActionRequest, request: Request,
                       session_id: str = Depends(get_session_id)):
    casino = request.app.state.casino
    rnd, result = await casino.round_action(session_id, game_id, round_id, body.action, body.params)
    balance = await casino.get_balance(session_id, rnd.wager.currency)
    return {"round": round_json(rnd, result), "balance": amount(balance)}
