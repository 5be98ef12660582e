"""
SQLite 数据库管理
异步 SQLite 操作，存储任务分类、会话、经验账本、铸造记录和钱包
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncIterator

import aiosqlite

from ..core.traits import Trait
from .models import MintEvent, SessionSummary, XpLedgerEntry

logger = logging.getLogger(__name__)

# 当前协程链是否已处于事务中
_in_transaction: ContextVar[bool] = ContextVar("_in_transaction", default=False)


class Database:
    """异步 SQLite 数据库"""

    def __init__(self, db_path: str = "data/trait_xp.db"):
        self.db_path = db_path
        self._db: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        """连接数据库并初始化表"""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row
        await self._init_tables()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    async def _init_tables(self) -> None:
        """创建数据库表"""
        await self._db.executescript("""
            CREATE TABLE IF NOT EXISTS task_trait_tags (
                task_id TEXT PRIMARY KEY,
                task_metadata TEXT NOT NULL DEFAULT '{}',
                updated_at TEXT
            );

            CREATE TABLE IF NOT EXISTS trait_sessions (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                task_id TEXT,
                duration_min REAL CHECK (duration_min >= 0),
                events TEXT NOT NULL DEFAULT '[]',
                self_report TEXT NOT NULL DEFAULT '{}',
                t_end TEXT,
                created_at TEXT
            );

            CREATE TABLE IF NOT EXISTS trait_xp_records (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                session_id TEXT NOT NULL,
                trait_name TEXT NOT NULL,
                base_xp INTEGER NOT NULL CHECK (base_xp >= 0),
                multipliers TEXT NOT NULL DEFAULT '{}',
                final_xp INTEGER NOT NULL CHECK (final_xp >= 0),
                quest_text TEXT,
                created_at TEXT NOT NULL,
                UNIQUE (session_id, trait_name)
            );

            CREATE TABLE IF NOT EXISTS token_mints (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                amount INTEGER NOT NULL CHECK (amount >= 0),
                meta TEXT NOT NULL DEFAULT '{}',
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS wallets (
                user_id TEXT PRIMARY KEY,
                balance INTEGER NOT NULL DEFAULT 0,
                updated_at TEXT
            );

            CREATE INDEX IF NOT EXISTS trait_sessions_task_idx
                ON trait_sessions (task_id, user_id);
            CREATE INDEX IF NOT EXISTS token_mints_user_idx
                ON token_mints (user_id, created_at);
        """)
        await self._db.commit()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """串行化的写事务，嵌套调用并入外层事务"""
        if _in_transaction.get():
            yield
            return

        async with self._lock:
            token = _in_transaction.set(True)
            try:
                yield
            except BaseException:
                await self._db.rollback()
                raise
            else:
                # 提交失败时回滚，避免残留写入并入下一个事务
                try:
                    await self._db.commit()
                except BaseException:
                    await self._db.rollback()
                    raise
            finally:
                _in_transaction.reset(token)

    # ── Classification ────────────────────────────────

    async def save_classification(self, task_id: str, meta: dict[str, Any]) -> None:
        """保存任务分类元数据"""
        async with self.transaction():
            await self._db.execute("""
                INSERT INTO task_trait_tags (task_id, task_metadata, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT (task_id) DO UPDATE SET
                    task_metadata = excluded.task_metadata,
                    updated_at = excluded.updated_at
            """, (task_id, json.dumps(meta), datetime.now().isoformat()))

    async def load_classification(self, task_id: str) -> dict[str, Any] | None:
        """读取任务分类元数据，没有记录返回 None"""
        async with self._db.execute(
            "SELECT task_metadata FROM task_trait_tags WHERE task_id=?", (task_id,)
        ) as cursor:
            row = await cursor.fetchone()
            return json.loads(row["task_metadata"]) if row else None

    # ── Sessions ──────────────────────────────────────

    async def save_session(self, session: SessionSummary) -> None:
        """保存会话摘要，已完成的会话写入结束时间"""
        now = datetime.now().isoformat()
        async with self.transaction():
            await self._db.execute("""
                INSERT OR REPLACE INTO trait_sessions
                (id, user_id, task_id, duration_min, events, self_report, t_end, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, COALESCE(
                    (SELECT created_at FROM trait_sessions WHERE id=?), ?
                ))
            """, (
                session.session_id,
                session.user_id or "",
                session.task_id,
                session.duration_minutes,
                json.dumps([e.to_dict() for e in session.events]),
                json.dumps(session.self_report.to_dict() if session.self_report else {}),
                now if session.completed else None,
                session.session_id, now,
            ))

    async def get_completed_sessions(self, task_id: str, user_id: str) -> list[dict[str, Any]]:
        """读取某任务下用户所有已完成会话的原始行"""
        async with self._db.execute("""
            SELECT * FROM trait_sessions
            WHERE task_id=? AND user_id=? AND t_end IS NOT NULL
            ORDER BY created_at
        """, (task_id, user_id)) as cursor:
            rows = await cursor.fetchall()
            return [self._session_row(row) for row in rows]

    async def get_session(self, session_id: str) -> dict[str, Any] | None:
        async with self._db.execute(
            "SELECT * FROM trait_sessions WHERE id=?", (session_id,)
        ) as cursor:
            row = await cursor.fetchone()
            return self._session_row(row) if row else None

    def _session_row(self, row) -> dict[str, Any]:
        return {
            "session_id": row["id"],
            "user_id": row["user_id"],
            "task_id": row["task_id"],
            "duration_minutes": row["duration_min"] or 0,
            "events": json.loads(row["events"] or "[]"),
            "self_report": json.loads(row["self_report"] or "{}"),
            "completed": row["t_end"] is not None,
        }

    # ── XP Ledger ─────────────────────────────────────

    async def get_scored_session_ids(self, session_ids: list[str]) -> set[str]:
        """返回已有账本记录的会话 ID"""
        if not session_ids:
            return set()
        placeholders = ",".join("?" for _ in session_ids)
        async with self._db.execute(
            f"SELECT DISTINCT session_id FROM trait_xp_records WHERE session_id IN ({placeholders})",
            session_ids,
        ) as cursor:
            rows = await cursor.fetchall()
            return {row["session_id"] for row in rows}

    async def insert_ledger_entries(self, entries: list[XpLedgerEntry]) -> list[XpLedgerEntry]:
        """追加账本行，(session_id, trait) 冲突的行被跳过

        必须在 transaction() 内调用，返回实际写入的行。
        """
        accepted = []
        for entry in entries:
            cursor = await self._db.execute("""
                INSERT INTO trait_xp_records
                (session_id, trait_name, base_xp, multipliers, final_xp, quest_text, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (session_id, trait_name) DO NOTHING
            """, (
                entry.session_id,
                entry.trait.value,
                entry.base_xp,
                json.dumps(entry.multiplier_breakdown),
                entry.final_xp,
                entry.narrative_seed,
                entry.created_at.isoformat(),
            ))
            if cursor.rowcount == 1:
                accepted.append(entry)
            else:
                logger.info(
                    "[Database] 账本已存在 %s/%s，跳过", entry.session_id, entry.trait.value
                )
            await cursor.close()
        return accepted

    async def get_ledger_entries(self, session_ids: list[str]) -> list[XpLedgerEntry]:
        """读取若干会话的账本行"""
        if not session_ids:
            return []
        placeholders = ",".join("?" for _ in session_ids)
        async with self._db.execute(
            f"SELECT * FROM trait_xp_records WHERE session_id IN ({placeholders}) ORDER BY id",
            session_ids,
        ) as cursor:
            rows = await cursor.fetchall()
            return [
                XpLedgerEntry(
                    session_id=row["session_id"],
                    trait=Trait(row["trait_name"]),
                    base_xp=row["base_xp"],
                    final_xp=row["final_xp"],
                    multiplier_breakdown=json.loads(row["multipliers"] or "{}"),
                    narrative_seed=row["quest_text"] or "",
                    created_at=datetime.fromisoformat(row["created_at"]),
                )
                for row in rows
            ]

    # ── Mints & Wallets ───────────────────────────────

    async def insert_mint(self, event: MintEvent) -> MintEvent:
        """写入铸造记录并累加钱包余额

        必须在 transaction() 内调用，余额累加是单条原子语句。
        """
        cursor = await self._db.execute(
            "INSERT INTO token_mints (user_id, amount, meta, created_at) VALUES (?, ?, ?, ?)",
            (event.user_id, event.amount, json.dumps(event.meta), event.timestamp.isoformat()),
        )
        event.id = cursor.lastrowid
        await cursor.close()

        await self._db.execute("""
            INSERT INTO wallets (user_id, balance, updated_at) VALUES (?, ?, ?)
            ON CONFLICT (user_id) DO UPDATE SET
                balance = balance + excluded.balance,
                updated_at = excluded.updated_at
        """, (event.user_id, event.amount, event.timestamp.isoformat()))
        return event

    async def get_wallet_balance(self, user_id: str) -> int:
        async with self._db.execute(
            "SELECT balance FROM wallets WHERE user_id=?", (user_id,)
        ) as cursor:
            row = await cursor.fetchone()
            return row["balance"] if row else 0

    async def get_recent_mints(self, user_id: str, limit: int = 10) -> list[MintEvent]:
        """获取用户最近的铸造记录"""
        async with self._db.execute(
            "SELECT * FROM token_mints WHERE user_id=? ORDER BY id DESC LIMIT ?",
            (user_id, limit),
        ) as cursor:
            rows = await cursor.fetchall()
            return [
                MintEvent(
                    id=row["id"],
                    user_id=row["user_id"],
                    amount=row["amount"],
                    meta=json.loads(row["meta"] or "{}"),
                    timestamp=datetime.fromisoformat(row["created_at"]),
                )
                for row in rows
            ]
