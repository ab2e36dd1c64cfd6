from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from loguru import logger

# 后端采样粒度固定为整分钟
MIN_INTERVAL_MS = 60_000

AKIPS_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

# 从大到小，y/M 按 365/30 天折算
_DURATION_UNITS = (
    ("y", 365 * 86400),
    ("M", 30 * 86400),
    ("w", 7 * 86400),
    ("d", 86400),
    ("h", 3600),
    ("m", 60),
)


def parse_duration_to_seconds(text: str | None, default: float = 30.0) -> float:
    if not text:
        return default
    t = text.strip().lower()
    try:
        if t.endswith("ms"):
            return float(t[:-2]) / 1000.0
        if t.endswith("s"):
            return float(t[:-1])
        if t.endswith("m"):
            return float(t[:-1]) * 60.0
        if t.endswith("h"):
            return float(t[:-1]) * 3600.0
        if t.endswith("d"):
            return float(t[:-1]) * 86400.0
        return float(t)
    except ValueError:
        logger.warning(f"无法解析时长 {text!r}，使用默认值 {default}s")
        return default


def seconds_to_duration(sec: int) -> str:
    """选择能整除的最大单位表示，否则退回秒，例如 300 -> 5m，3600 -> 1h，90 -> 90s。"""
    sec_int = int(sec)
    if sec_int > 0:
        for suffix, size in _DURATION_UNITS:
            if sec_int % size == 0:
                return f"{sec_int // size}{suffix}"
    return f"{sec_int}s"


def normalize_interval_ms(interval_ms: Optional[float]) -> int:
    """把请求的采样间隔向上取整到 60000ms 的整数倍；空值或非正数时取 60000。"""
    if not interval_ms or interval_ms <= 0:
        return MIN_INTERVAL_MS
    return int(math.ceil(interval_ms / MIN_INTERVAL_MS)) * MIN_INTERVAL_MS


def _as_aware(dt: datetime) -> datetime:
    # 无时区信息的时间按 UTC 处理
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def to_unix_seconds(dt: datetime) -> int:
    # 截断而不是四舍五入
    return math.floor(_as_aware(dt).timestamp())


def to_epoch_ms(dt: datetime) -> int:
    return math.floor(_as_aware(dt).timestamp() * 1000)


def resolve_timezone(name: Optional[str]) -> Optional[ZoneInfo]:
    if not name:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"未知时区 {name!r}，沿用时间自带时区")
        return None


def format_datetime(dt: datetime, tz: Optional[ZoneInfo] = None) -> str:
    aware = _as_aware(dt)
    if tz is not None:
        aware = aware.astimezone(tz)
    return aware.strftime(AKIPS_TIME_FORMAT)
