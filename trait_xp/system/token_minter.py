"""
代币铸造
经验按固定比例换算为代币，铸造记录与钱包余额在同一事务中更新
铸造累计由调用方在事务提交后统计
"""

import logging
from typing import Any

import aiosqlite

from ..storage.database import Database
from ..storage.errors import MintError
from ..storage.models import MintEvent

logger = logging.getLogger(__name__)

XP_PER_TOKEN = 10


def tokens_for_xp(total_xp: int, xp_per_token: int = XP_PER_TOKEN) -> int:
    """经验 -> 代币，向下取整"""
    if total_xp <= 0:
        return 0
    return total_xp // xp_per_token


class TokenMinter:
    """代币铸造器"""

    def __init__(self, db: Database, xp_per_token: int = XP_PER_TOKEN):
        self.db = db
        self.xp_per_token = xp_per_token

    def tokens_for(self, total_xp: int) -> int:
        return tokens_for_xp(total_xp, self.xp_per_token)

    async def mint(self, user_id: str, amount: int, meta: dict[str, Any]) -> MintEvent | None:
        """铸造代币并累加钱包，数量为 0 时不写任何记录"""
        if amount <= 0:
            return None

        event = MintEvent(user_id=user_id, amount=amount, meta=meta)
        try:
            async with self.db.transaction():
                event = await self.db.insert_mint(event)
        except aiosqlite.Error as e:
            raise MintError(f"为用户 {user_id} 铸造 {amount} 代币失败: {e}") from e

        logger.info("[TokenMinter] 用户 %s 获得 %d 代币", user_id, amount)
        return event

    def get_stats(self) -> dict:
        return {"xp_per_token": self.xp_per_token}
