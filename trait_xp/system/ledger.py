"""
经验账本写入
账本只追加；某会话存在账本行即视为已评分
"""

import logging

import aiosqlite

from ..storage.database import Database
from ..storage.errors import LedgerWriteError
from ..storage.models import TraitResult, XpLedgerEntry

logger = logging.getLogger(__name__)


class LedgerWriter:
    """经验账本写入器"""

    def __init__(self, db: Database):
        self.db = db

    async def append(self, session_id: str, results: list[TraitResult]) -> list[XpLedgerEntry]:
        """写入一次会话的评分结果，返回实际写入的行

        唯一约束冲突的行视为已评分，不计入本次结果。
        """
        entries = [
            XpLedgerEntry.from_result(session_id, r)
            for r in results
            if r.final_xp > 0
        ]
        if not entries:
            return []

        try:
            async with self.db.transaction():
                accepted = await self.db.insert_ledger_entries(entries)
        except aiosqlite.Error as e:
            raise LedgerWriteError(f"写入会话 {session_id} 的经验账本失败: {e}") from e

        skipped = len(entries) - len(accepted)
        if skipped:
            logger.info("[Ledger] 会话 %s 有 %d 行已评分，跳过", session_id, skipped)
        return accepted
