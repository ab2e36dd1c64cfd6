from __future__ import annotations

from typing import Optional
from zoneinfo import ZoneInfo

from loguru import logger

from akips_datasource.models import QueryTarget, ScopedVar, ScopedVars, TimeRange
from akips_datasource.utils import format_datetime, seconds_to_duration, to_unix_seconds

RESERVED_VARIABLES = frozenset({
    "__interval",
    "__interval_ms",
    "__interval_sec",
    "__from_sec",
    "__from_datetime",
    "__to_sec",
    "__to_datetime",
    "__device",
    "__child",
    "__attribute",
    "__metricName",
})


def _var(value) -> ScopedVar:
    return ScopedVar(text=str(value), value=value)


def build_scoped_variables(time_range: Optional[TimeRange], interval_ms: Optional[int],
                           target: Optional[QueryTarget] = None,
                           tz: Optional[ZoneInfo] = None) -> ScopedVars:
    """按时间范围、采样间隔与查询的设备选择生成本次执行的保留变量。
    任何输入缺失都退化为空字符串，不抛异常。
    """
    out: ScopedVars = {}
    if interval_ms:
        interval_sec = round(interval_ms / 1000)
        out["__interval_ms"] = _var(int(interval_ms))
        out["__interval_sec"] = _var(interval_sec)
        out["__interval"] = _var(seconds_to_duration(interval_sec))
    else:
        for name in ("__interval_ms", "__interval_sec", "__interval"):
            out[name] = _var("")

    if time_range is not None:
        out["__from_sec"] = _var(to_unix_seconds(time_range.start))
        out["__from_datetime"] = _var(format_datetime(time_range.start, tz))
        out["__to_sec"] = _var(to_unix_seconds(time_range.end))
        out["__to_datetime"] = _var(format_datetime(time_range.end, tz))
    else:
        for name in ("__from_sec", "__from_datetime", "__to_sec", "__to_datetime"):
            out[name] = _var("")

    out["__device"] = _var((target.device if target else None) or "")
    out["__child"] = _var((target.child if target else None) or "")
    out["__attribute"] = _var((target.attribute if target else None) or "")
    # 图例格式化时按序列覆盖为原名
    out["__metricName"] = _var("")
    logger.debug(
        f"保留变量 interval={out['__interval'].text} from={out['__from_sec'].text} "
        f"to={out['__to_sec'].text} device={out['__device'].text!r}"
    )
    return out
