from __future__ import annotations

from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from loguru import logger

from akips_datasource.legend import format_legend
from akips_datasource.models import (
    BackendResult,
    FieldType,
    Frame,
    FrameField,
    QueryResponse,
    QueryTarget,
    ResultEntry,
    Table,
    TimeSeries,
)

UNIT_SUFFIXES: Mapping[str, str] = MappingProxyType({
    "Octets": "bytes",
    "BitRate": "bps",
    "Util": "percent",
})

VALUE_COLUMN = "Value"
TIME_FIELD = "Time"


def guess_unit(name: Optional[str]) -> Optional[str]:
    """按序列原名的后缀推断单位，多个后缀命中时取最长的。"""
    if not name:
        return None
    best = None
    for suffix in UNIT_SUFFIXES:
        if name.endswith(suffix) and (best is None or len(suffix) > len(best)):
            best = suffix
    return UNIT_SUFFIXES[best] if best else None


def _point_at(point: Any, index: int) -> Any:
    if isinstance(point, (list, tuple)) and len(point) > index:
        return point[index]
    return None


def series_frame(ref_id: str, series: List[TimeSeries], target: Optional[QueryTarget],
                 scoped_vars: Optional[Mapping[str, Any]] = None) -> Frame:
    fields: List[FrameField] = []
    for s in series:
        raw_name = s.name or ""
        fields.append(FrameField(
            type=FieldType.NUMBER,
            name=format_legend(target, raw_name, scoped_vars),
            unit=guess_unit(raw_name),
            values=[_point_at(p, 0) for p in (s.points or [])],
        ))
    # 同一结果内的序列视为同一采样时刻，只取第一条序列的时间戳
    first = series[0].points or []
    fields.append(FrameField(type=FieldType.TIME, name=TIME_FIELD, values=[_point_at(p, 1) for p in first]))
    return Frame(refId=ref_id, fields=fields)


def table_frame(ref_id: str, table: Table) -> Frame:
    columns = table.columns or []
    rows = table.rows or []
    fields: List[FrameField] = []
    for i, col in enumerate(columns):
        kind = FieldType.NUMBER if i == 0 and col.text == VALUE_COLUMN else FieldType.STRING
        fields.append(FrameField(
            type=kind,
            name=col.text,
            values=[row[i] if i < len(row) else None for row in rows],
        ))
    return Frame(refId=ref_id, fields=fields)


def entry_frame(ref_id: str, entry: ResultEntry, target: Optional[QueryTarget],
                scoped_vars: Optional[Mapping[str, Any]] = None) -> Optional[Frame]:
    if entry.series:
        return series_frame(ref_id, entry.series, target, scoped_vars)
    if entry.tables:
        return table_frame(ref_id, entry.tables[0])
    return None


def materialize(result: BackendResult, targets_by_ref: Mapping[str, QueryTarget],
                variables_by_ref: Optional[Mapping[str, Mapping[str, Any]]] = None) -> QueryResponse:
    """把后端结果转换为输出帧。
    - 只处理调用方提交过的 refId（探测等内部 refId 不输出）
    - 单个 refId 的 error 记入 errors，其它 refId 照常输出
    - series 与 tables 都为空的 refId 不输出
    """
    frames: List[Frame] = []
    errors: Dict[str, str] = {}
    for ref_id, entry in result.results.items():
        target = targets_by_ref.get(ref_id)
        if target is None:
            logger.debug(f"忽略未知 refId={ref_id}")
            continue
        if entry.error:
            logger.warning(f"查询失败 refId={ref_id} error={entry.error}")
            errors[ref_id] = entry.error
            continue
        frame = entry_frame(ref_id, entry, target, (variables_by_ref or {}).get(ref_id))
        if frame is None:
            logger.debug(f"空结果 refId={ref_id}")
            continue
        frames.append(frame)
    logger.info(f"结果转换完成 frames={len(frames)} errors={len(errors)}")
    return QueryResponse(frames=frames, errors=errors)
