from __future__ import annotations

from typing import Optional


class AkipsError(RuntimeError):
    """akips_datasource 所有异常的基类。"""


class ConfigError(AkipsError):
    """配置文件缺失或校验失败。"""


class BackendError(AkipsError):
    """后端传输失败或返回非 2xx，整次查询失败。"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class TemplateError(AkipsError):
    """图例正则非法，仅在本地恢复，不向上抛出。"""
