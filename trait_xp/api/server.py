"""
FastAPI Web 服务
评分入口 + 钱包与账本查询
"""

from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..storage.errors import PersistenceError
from ..system.telemetry import session_from_dict

# 全局引用 (在 system.py 启动时注入)
_system_ref = None


def set_system_ref(system):
    global _system_ref
    _system_ref = system


@asynccontextmanager
async def _lifespan(app: FastAPI):
    started = False
    if _system_ref is not None and not _system_ref.running:
        await _system_ref.start()
        started = True
    yield
    if started:
        await _system_ref.stop()


app = FastAPI(title="特质经验引擎", version="0.1.0", lifespan=_lifespan)


def create_app(system) -> FastAPI:
    set_system_ref(system)
    return app


# ── Pydantic Models ────────────────────────────────

class MicroEventPayload(BaseModel):
    type: str
    timestamp: Optional[str] = None
    description: Optional[str] = None


class SessionPayload(BaseModel):
    session_id: str
    duration_minutes: float = Field(default=0, allow_inf_nan=False)
    events: list[MicroEventPayload] = Field(default_factory=list)
    self_report: Optional[dict[str, Any]] = None
    task_id: Optional[str] = None
    user_id: Optional[str] = None
    completed: bool = True


class ScoreTaskRequest(BaseModel):
    user_id: str
    sessions: Optional[list[SessionPayload]] = None


class ScoreSessionRequest(BaseModel):
    task_id: str
    user_id: str


class SweepRequest(BaseModel):
    user_id: str
    task_ids: list[str]


def _not_ready() -> JSONResponse:
    return JSONResponse({"error": "系统未初始化"}, status_code=503)


def _storage_error(e: PersistenceError) -> JSONResponse:
    return JSONResponse({"error": str(e), "retryable": True}, status_code=503)


# ── Routes ─────────────────────────────────────────

@app.get("/api/status")
async def get_status():
    """获取系统状态"""
    if not _system_ref:
        return _not_ready()

    return {
        "system": {
            "name": _system_ref.config.system.name,
            "version": _system_ref.config.system.version,
            "running": _system_ref.running,
        },
        "exp_stats": _system_ref.exp_engine.get_stats(),
    }


@app.put("/api/tasks/{task_id}/classification")
async def put_classification(task_id: str, meta: dict[str, Any]):
    """写入任务分类 (通常由分类采集流程调用)"""
    if not _system_ref:
        return _not_ready()

    await _system_ref.db.save_classification(task_id, meta)
    classification = await _system_ref.exp_engine.resolve_classification(task_id)
    return {"task_id": task_id, "classification": classification.to_dict()}


@app.post("/api/sessions")
async def ingest_session(payload: SessionPayload):
    """接收会话追踪子系统上报的会话"""
    if not _system_ref:
        return _not_ready()

    session = session_from_dict(payload.model_dump())
    await _system_ref.db.save_session(session)
    return {"success": True, "session_id": session.session_id}


@app.post("/api/tasks/{task_id}/score")
async def score_task(task_id: str, req: ScoreTaskRequest):
    """为任务下所有未评分会话发放经验和代币"""
    if not _system_ref:
        return _not_ready()

    sessions = None
    if req.sessions is not None:
        sessions = [session_from_dict(s.model_dump()) for s in req.sessions]
    try:
        result = await _system_ref.exp_engine.award_unscored_sessions_for_task(
            task_id, req.user_id, sessions
        )
    except PersistenceError as e:
        return _storage_error(e)
    return result.to_dict()


@app.post("/api/sessions/{session_id}/score")
async def score_session(session_id: str, req: ScoreSessionRequest):
    """会话结束时立即评分"""
    if not _system_ref:
        return _not_ready()

    row = await _system_ref.db.get_session(session_id)
    if row is None:
        return JSONResponse({"error": "会话不存在"}, status_code=404)
    session = session_from_dict(row)
    if not session.completed:
        return JSONResponse({"error": "会话尚未结束"}, status_code=409)
    try:
        result = await _system_ref.exp_engine.score_session(session, req.task_id, req.user_id)
    except PersistenceError as e:
        return _storage_error(e)
    return result.to_dict()


@app.post("/api/sweep")
async def sweep(req: SweepRequest):
    """批量扫描多个任务，逐任务返回结果"""
    if not _system_ref:
        return _not_ready()

    outcomes = await _system_ref.exp_engine.sweep(req.task_ids, req.user_id)
    return {"outcomes": outcomes}


@app.get("/api/wallets/{user_id}")
async def get_wallet(user_id: str, limit: int = 10):
    """钱包余额和最近铸造记录"""
    if not _system_ref:
        return _not_ready()

    balance = await _system_ref.db.get_wallet_balance(user_id)
    mints = await _system_ref.db.get_recent_mints(user_id, limit)
    events = []
    for m in mints:
        item = m.to_dict()
        item["per_trait_totals"] = await _system_ref.exp_engine.per_trait_totals_for_mint(m)
        events.append(item)
    return {"user_id": user_id, "balance": balance, "mints": events}


@app.get("/api/sessions/{session_id}/ledger")
async def get_ledger(session_id: str):
    """会话的经验账本"""
    if not _system_ref:
        return _not_ready()

    entries = await _system_ref.db.get_ledger_entries([session_id])
    return {
        "session_id": session_id,
        "scored": bool(entries),
        "entries": [
            {
                "trait": e.trait.value,
                "base_xp": e.base_xp,
                "final_xp": e.final_xp,
                "multipliers": e.multiplier_breakdown,
                "narrative_seed": e.narrative_seed,
                "created_at": e.created_at.isoformat(),
            }
            for e in entries
        ],
    }


@app.get("/api/exp-stats")
async def get_exp_stats():
    """获取经验引擎统计"""
    if not _system_ref:
        return _not_ready()

    return _system_ref.exp_engine.get_stats()
