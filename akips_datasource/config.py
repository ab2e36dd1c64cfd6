from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, Field, ValidationError
from loguru import logger

from akips_datasource.exceptions import ConfigError


class AkipsConfig(BaseModel):
    # 提供 POST /api/tsdb/query（{queries, from, to} -> {results}）的服务地址，
    # 即托管 AKiPS 后端插件的 Grafana，而不是 AKiPS 自身的 /api-db
    baseUrl: str
    # 原样作为 password 查询参数转发
    password: Optional[str] = None
    queryTimeout: Optional[str] = None
    maxDataPoints: Optional[int] = None
    # IANA 时区名，用于 __from_datetime/__to_datetime；为空则沿用时间本身的时区
    timezone: Optional[str] = None


class GlobalConfig(BaseModel):
    akipsConfig: AkipsConfig
    serverPort: Optional[int] = Field(default=7000, description="MCP 服务监听端口")


@dataclass
class ConfigManager:
    global_config: GlobalConfig

    @property
    def base_url(self) -> str:
        return self.global_config.akipsConfig.baseUrl

    @property
    def password(self) -> Optional[str]:
        # 环境变量优先，避免把口令写进配置文件
        return os.getenv("AKIPS_PASSWORD") or self.global_config.akipsConfig.password

    @staticmethod
    def load(path: Optional[str] = None) -> "ConfigManager":
        cfg_path = path or os.getenv("AKIPS_CONFIG_PATH") or os.path.abspath("config.json")
        logger.debug(f"加载配置文件: {cfg_path}")
        try:
            with open(cfg_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"配置文件读取失败: {e}")
            raise ConfigError(f"Cannot read config {cfg_path}: {e}") from e
        try:
            gc = GlobalConfig.model_validate(raw)
        except ValidationError as e:
            logger.error(f"配置文件校验失败: {e}")
            raise ConfigError(f"Invalid config.json: {e}") from e
        logger.info(
            f"配置加载成功: akipsBase={gc.akipsConfig.baseUrl} "
            f"timezone={gc.akipsConfig.timezone or 'N/A'} port={gc.serverPort}"
        )
        return ConfigManager(global_config=gc)
