"""
配置管理模块
加载 YAML 配置，支持默认配置 + 本地覆盖 + 环境变量
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field


class SystemConfig(BaseModel):
    name: str = "特质经验引擎"
    version: str = "0.1.0"


class ScoringConfig(BaseModel):
    xp_per_token: int = Field(default=10, ge=1)
    mint_source_batch: str = "task_complete"
    mint_source_session: str = "session_stop"


class WebConfig(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8890


class StorageConfig(BaseModel):
    database: str = "data/trait_xp.db"


class LoggingConfig(BaseModel):
    level: str = "INFO"


class Config(BaseModel):
    system: SystemConfig = Field(default_factory=SystemConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    web: WebConfig = Field(default_factory=WebConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def load_config(config_dir: str | Path = "config") -> Config:
    """加载配置文件，优先级: 环境变量 > local.yaml > default.yaml"""
    config_dir = Path(config_dir)
    data: dict[str, Any] = {}

    # 加载默认配置
    default_path = config_dir / "default.yaml"
    if default_path.exists():
        with open(default_path) as f:
            data = yaml.safe_load(f) or {}

    # 加载本地覆盖
    local_path = config_dir / "local.yaml"
    if local_path.exists():
        with open(local_path) as f:
            local_data = yaml.safe_load(f) or {}
            data = _deep_merge(data, local_data)

    # 环境变量覆盖
    env_db = os.environ.get("TRAIT_XP_DATABASE", "")
    if env_db:
        data.setdefault("storage", {})["database"] = env_db
    env_port = os.environ.get("TRAIT_XP_PORT", "")
    if env_port:
        data.setdefault("web", {})["port"] = int(env_port)

    return Config(**data)


def _deep_merge(base: dict, override: dict) -> dict:
    """深度合并两个字典"""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result
