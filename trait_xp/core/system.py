"""
特质经验引擎 - 服务入口
串联存储层、评分引擎和 Web API
"""

import asyncio
import logging

import uvicorn

from .config import Config, load_config
from .events import EventBus, EventType, bus
from ..storage.database import Database
from ..system.exp_engine import ExpEngine

logger = logging.getLogger(__name__)


class TraitXpSystem:
    """特质经验引擎核心"""

    def __init__(self, config: Config | None = None, event_bus: EventBus | None = None):
        self.config = config or load_config()
        self.bus = event_bus or bus
        self.running = False

        self.db = Database(self.config.storage.database)
        self.exp_engine = ExpEngine(self.db, self.bus, self.config.scoring)

    async def start(self) -> None:
        """连接数据库并发送启动事件"""
        await self.db.connect()
        self.running = True
        await self.bus.emit_simple(EventType.SYSTEM_START)
        logger.info("[System] %s v%s 已启动", self.config.system.name, self.config.system.version)

    async def stop(self) -> None:
        """停止系统"""
        self.running = False
        await self.db.close()
        await self.bus.emit_simple(EventType.SYSTEM_STOP)
        logger.info("[System] 已安全关闭")

    async def serve(self) -> None:
        """启动 Web 服务直到退出"""
        from ..api.server import create_app

        print("=" * 60)
        print(f"  {self.config.system.name} v{self.config.system.version}")
        print(f"  数据库: {self.config.storage.database}")
        print(f"  Web API: http://localhost:{self.config.web.port}")
        print("=" * 60)

        app = create_app(self)
        server = uvicorn.Server(uvicorn.Config(
            app,
            host=self.config.web.host,
            port=self.config.web.port,
            log_level="warning",
        ))
        await server.serve()


def main() -> None:
    config = load_config()
    logging.basicConfig(
        level=config.logging.level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    system = TraitXpSystem(config)
    try:
        asyncio.run(system.serve())
    except KeyboardInterrupt:
        pass
