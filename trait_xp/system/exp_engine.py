"""
经验值引擎
把已完成的专注会话换算成特质经验并铸造代币

两个入口:
  - award_unscored_sessions_for_task: 任务完成时扫描全部会话，只处理尚无账本记录的会话
  - score_session: 会话结束时立即给单个会话评分

同一会话最多贡献一次账本与代币。账本的 (session_id, trait) 唯一约束是最终防线，
冲突的行视为已评分，不计入本次经验与代币。
"""

import logging
from typing import Any, Iterable

import aiosqlite

from ..core.config import ScoringConfig
from ..core.events import EventBus, EventType
from ..core.traits import Trait
from ..storage.database import Database
from ..storage.errors import PersistenceError
from ..storage.models import (
    MintEvent,
    ScoringResult,
    SessionSummary,
    TaskClassification,
    TraitResult,
)
from .classification import resolve_classification
from .ledger import LedgerWriter
from .narrative import build_narrative_context
from .scoring import compute_trait_xp, get_multiplier
from .telemetry import session_from_dict
from .token_minter import TokenMinter

logger = logging.getLogger(__name__)


def filter_unscored(
    sessions: Iterable[SessionSummary],
    scored_ids: set[str],
) -> list[SessionSummary]:
    """尚无账本记录的已完成会话，保持输入顺序"""
    seen: set[str] = set()
    unscored = []
    for s in sessions:
        if not s.completed or s.session_id in scored_ids or s.session_id in seen:
            continue
        seen.add(s.session_id)
        unscored.append(s)
    return unscored


class _BatchTotals:
    """一次评分运行内的累计"""

    def __init__(self):
        self.results: list[TraitResult] = []
        self.total_xp = 0
        self.per_trait: dict[Trait, int] = {}
        self.session_ids: list[str] = []

    def add(self, session_id: str, results: list[TraitResult]) -> None:
        if not results:
            return
        self.session_ids.append(session_id)
        for r in results:
            self.results.append(r)
            self.total_xp += r.final_xp
            self.per_trait[r.trait] = self.per_trait.get(r.trait, 0) + r.final_xp

    def per_trait_totals(self) -> dict[str, int]:
        return {t.value: self.per_trait[t] for t in Trait if t in self.per_trait}


class ExpEngine:
    """经验值引擎"""

    def __init__(
        self,
        db: Database,
        event_bus: EventBus,
        config: ScoringConfig | None = None,
    ):
        self.db = db
        self.bus = event_bus
        self.config = config or ScoringConfig()
        self.ledger = LedgerWriter(db)
        self.minter = TokenMinter(db, self.config.xp_per_token)
        self._sessions_scored = 0
        self._total_xp_awarded = 0
        self._total_minted = 0

    async def resolve_classification(self, task_id: str) -> TaskClassification:
        """读取任务分类，缺失字段填默认值"""
        meta = await self.db.load_classification(task_id)
        return resolve_classification(meta)

    # ── 批量评分 ──────────────────────────────────────

    async def award_unscored_sessions_for_task(
        self,
        task_id: str,
        user_id: str,
        sessions: list[SessionSummary] | None = None,
    ) -> ScoringResult:
        """为任务下所有未评分的已完成会话发放经验，整批只铸造一次代币

        sessions 为空时从存储读取该任务下用户的已完成会话。
        """
        try:
            # 过滤与写入在同一事务内完成
            async with self.db.transaction():
                classification = await self.resolve_classification(task_id)
                if sessions is None:
                    rows = await self.db.get_completed_sessions(task_id, user_id)
                    sessions = [session_from_dict(row) for row in rows]

                candidates = [s for s in sessions if s.completed]
                scored = await self.db.get_scored_session_ids(
                    [s.session_id for s in candidates]
                )
                unscored = filter_unscored(candidates, scored)
                if not unscored:
                    logger.debug("[ExpEngine] 任务 %s 没有未评分会话", task_id)
                    return ScoringResult()

                multiplier = get_multiplier(classification)
                totals = _BatchTotals()
                for session in unscored:
                    results = compute_trait_xp(session, classification, multiplier)
                    totals.add(session.session_id, await self._record(session.session_id, results))

                tokens = self.minter.tokens_for(totals.total_xp)
                mint = await self._mint(
                    user_id, tokens, task_id, totals, self.config.mint_source_batch
                )
        except PersistenceError as e:
            await self._report_failure(task_id, user_id, e)
            raise
        except aiosqlite.Error as e:
            await self._report_failure(task_id, user_id, e)
            raise PersistenceError(f"任务 {task_id} 评分失败: {e}") from e

        result = ScoringResult(
            per_trait_results=totals.results,
            total_xp=totals.total_xp,
            tokens=tokens,
            per_trait_totals=totals.per_trait_totals(),
            session_ids=totals.session_ids,
        )
        await self._announce(result, task_id, user_id, classification, mint, "task_complete",
                             sum(s.duration_minutes for s in unscored))
        return result

    # ── 单会话评分 ────────────────────────────────────

    async def score_session(
        self,
        session: SessionSummary,
        task_id: str,
        user_id: str,
    ) -> ScoringResult:
        """会话结束时立即评分并按本会话经验铸造代币

        不经过未评分过滤，调用方需保证每个会话只触发一次；
        重复触发时账本唯一约束会让第二次既不写入也不铸造。
        未结束的会话不评分，留给结束后的评分。
        """
        if not session.completed:
            logger.info("[ExpEngine] 会话 %s 尚未结束，跳过评分", session.session_id)
            return ScoringResult()

        try:
            async with self.db.transaction():
                classification = await self.resolve_classification(task_id)
                results = compute_trait_xp(session, classification)
                totals = _BatchTotals()
                totals.add(session.session_id, await self._record(session.session_id, results))

                tokens = self.minter.tokens_for(totals.total_xp)
                mint = await self._mint(
                    user_id, tokens, task_id, totals, self.config.mint_source_session
                )
        except PersistenceError as e:
            await self._report_failure(task_id, user_id, e, session_id=session.session_id)
            raise
        except aiosqlite.Error as e:
            await self._report_failure(task_id, user_id, e, session_id=session.session_id)
            raise PersistenceError(f"会话 {session.session_id} 评分失败: {e}") from e

        result = ScoringResult(
            per_trait_results=totals.results,
            total_xp=totals.total_xp,
            tokens=tokens,
            per_trait_totals=totals.per_trait_totals(),
            session_ids=totals.session_ids,
        )
        await self._announce(result, task_id, user_id, classification, mint, "session_complete",
                             session.duration_minutes)
        return result

    # ── 扫描 ──────────────────────────────────────────

    async def sweep(self, task_ids: list[str], user_id: str) -> list[dict[str, Any]]:
        """逐个任务批量评分，单个任务失败不影响其他任务"""
        outcomes = []
        for task_id in task_ids:
            try:
                result = await self.award_unscored_sessions_for_task(task_id, user_id)
            except PersistenceError as e:
                outcomes.append({"task_id": task_id, "success": False, "error": str(e)})
                continue
            except Exception as e:
                await self._report_failure(task_id, user_id, e)
                outcomes.append({"task_id": task_id, "success": False, "error": str(e)})
                continue
            outcomes.append({"task_id": task_id, "success": True, "result": result.to_dict()})
        return outcomes

    # ── 账本回溯 ──────────────────────────────────────

    async def per_trait_totals_for_mint(self, mint: MintEvent) -> dict[str, int]:
        """旧的铸造记录只有 session_ids 时，从账本重新汇总各特质经验"""
        per_trait = mint.meta.get("per_trait_totals")
        if per_trait:
            return per_trait

        entries = await self.db.get_ledger_entries(mint.meta.get("session_ids") or [])
        totals: dict[Trait, int] = {}
        for entry in entries:
            totals[entry.trait] = totals.get(entry.trait, 0) + entry.final_xp
        return {t.value: totals[t] for t in Trait if t in totals}

    def get_stats(self) -> dict:
        """获取经验引擎统计"""
        return {
            "sessions_scored": self._sessions_scored,
            "total_xp_awarded": self._total_xp_awarded,
            "total_minted": self._total_minted,
            **self.minter.get_stats(),
        }

    # ── 内部 ──────────────────────────────────────────

    async def _record(self, session_id: str, results: list[TraitResult]) -> list[TraitResult]:
        """写入账本，只返回实际入账的结果"""
        accepted = {e.trait for e in await self.ledger.append(session_id, results)}
        return [r for r in results if r.trait in accepted]

    async def _mint(
        self,
        user_id: str,
        tokens: int,
        task_id: str,
        totals: _BatchTotals,
        source: str,
    ) -> MintEvent | None:
        if tokens <= 0:
            return None
        return await self.minter.mint(user_id, tokens, {
            "session_ids": totals.session_ids,
            "per_trait_totals": totals.per_trait_totals(),
            "source_task_id": task_id,
            "total_xp": totals.total_xp,
            "source": source,
        })

    async def _announce(
        self,
        result: ScoringResult,
        task_id: str,
        user_id: str,
        classification: TaskClassification,
        mint: MintEvent | None,
        action_type: str,
        duration_minutes: float,
    ) -> None:
        """事务提交后通知订阅方"""
        if not result.session_ids:
            return

        self._sessions_scored += len(result.session_ids)
        self._total_xp_awarded += result.total_xp
        logger.info(
            "[ExpEngine] 任务 %s: %d 个会话, %d XP, %d 代币",
            task_id, len(result.session_ids), result.total_xp, result.tokens,
        )

        for session_id in result.session_ids:
            await self.bus.emit_simple(EventType.SESSION_SCORED, session_id=session_id, task_id=task_id)
        await self.bus.emit_simple(
            EventType.XP_AWARDED,
            user_id=user_id,
            task_id=task_id,
            total_xp=result.total_xp,
            per_trait_totals=result.per_trait_totals,
        )
        if mint is not None:
            self._total_minted += mint.amount
            await self.bus.emit_simple(
                EventType.TOKENS_MINTED,
                user_id=user_id,
                amount=mint.amount,
                meta=mint.meta,
            )

        context = build_narrative_context(
            result.per_trait_results, classification, action_type, duration_minutes, result.tokens,
        )
        if context:
            await self.bus.emit_simple(EventType.NOTIFICATION_PUSH, narrative=context, user_id=user_id)

    async def _report_failure(
        self,
        task_id: str,
        user_id: str,
        error: Exception,
        session_id: str | None = None,
    ) -> None:
        logger.error("[ExpEngine] 任务 %s 评分失败: %s", task_id, error)
        await self.bus.emit_simple(
            EventType.SCORING_FAILED,
            task_id=task_id,
            user_id=user_id,
            session_id=session_id,
            error=str(error),
        )
