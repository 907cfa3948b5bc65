from decimal import Decimal

from fastapi import APIRouter, Depends, Request, Query
from pydantic import BaseModel

from casino_engine.config import settings
from casino_engine.middleware.auth import get_session_id
from casino_engine.routes.serializers import amount, result_json

router = APIRouter()

@router.get("/balance")
async def get_balance(request: Request, currency: str = Query(settings.DEFAULT_CURRENCY),
                      session_id: str = Depends(get_session_id)):
    balance = await request.app.state.casino.get_balance(session_id, currency)
    return {"currency": currency, "balance": amount(balance)}

@router.get("/balances")
async def get_balances(request: Request, session_id: str = Depends(get_session_id)):
    balances = await request.app.state.casino.get_balances(session_id)
    return {"balances": {cur: amount(v) for cur, v in balances.items()}}

@router.get("/results")
async def get_results(request: Request, limit: int = Query(settings.RECENT_RESULTS_LIMIT, ge=1, le=100),
                      session_id: str = Depends(get_session_id)):
    results = await request.app.state.casino.recent_results(session_id, limit)
    return {"results": [result_json(r) for r in results]}

@router.get("/stats")
async def get_stats(request: Request, session_id: str = Depends(get_session_id)):
    stats = await request.app.state.casino.stats(session_id)
    return stats.to_dict()

class WalletRequest(BaseModel):
    currency: str = settings.DEFAULT_CURRENCY
    amount: Decimal

@router.post("/deposit")
async def deposit(body: WalletRequest, request: Request, session_id: str = Depends(get_session_id)):
    balance = await request.app.state.casino.deposit(session_id, body.currency, body.amount)
    return {"ok": True, "currency": body.currency, "balance": amount(balance)}

@router.post("/withdraw")
async def withdraw(body: WalletRequest, request: Request, session_id: str = Depends(get_session_id)):
    balance = await request.app.state.casino.withdraw(session_id, body.currency, body.amount)
    return {"ok": True, "currency": body.currency, "balance": amount(balance)}

@router.post("/logout")
async def logout(request: Request, session_id: str = Depends(get_session_id)):
    closed = request.app.state.casino.end_session(session_id)
    return {"ok": True, "closed": closed}
