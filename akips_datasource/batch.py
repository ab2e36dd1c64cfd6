from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence
from zoneinfo import ZoneInfo

from loguru import logger

from akips_datasource.models import BackendRequest, ExpandedQuery, QueryTarget, TimeRange
from akips_datasource.templating import merge_variables, substitute
from akips_datasource.utils import normalize_interval_ms, to_epoch_ms
from akips_datasource.variables import build_scoped_variables


@dataclass
class QueryBatch:
    request: BackendRequest
    # refId -> 原始查询，用于图例与结果过滤
    targets: Dict[str, QueryTarget] = field(default_factory=dict)
    # refId -> 该查询展开时使用的变量（外部变量 + 保留变量）
    variables: Dict[str, dict] = field(default_factory=dict)


def build_batch(targets: Sequence[QueryTarget], time_range: TimeRange, interval_ms: Optional[int], *,
                max_data_points: Optional[int] = None,
                scoped_vars: Optional[Mapping[str, Any]] = None,
                tz: Optional[ZoneInfo] = None) -> Optional[QueryBatch]:
    """把面板查询展开为一次后端请求。
    - hide=True 的查询直接跳过
    - 全部被跳过时返回 None，调用方不应再请求后端
    - refId 在一批内唯一由调用方保证
    """
    visible = [t for t in targets if not t.hide]
    if not visible:
        logger.debug(f"无可执行查询 total={len(targets)}")
        return None

    interval = normalize_interval_ms(interval_ms)
    queries: List[ExpandedQuery] = []
    batch_targets: Dict[str, QueryTarget] = {}
    batch_vars: Dict[str, dict] = {}
    for t in visible:
        reserved = build_scoped_variables(time_range, interval, t, tz)
        variables = merge_variables(scoped_vars, reserved)
        q = substitute(t.rawQuery, variables)
        logger.debug(f"展开查询 refId={t.refId} query={q[:120]}")
        queries.append(ExpandedQuery(
            refId=t.refId,
            queryType=t.queryType,
            query=q,
            rawQuery=t.rawQuery,
            intervalMs=interval,
            maxDataPoints=t.maxDataPoints or max_data_points,
            singleValue=t.singleValue,
            omitParents=t.omitParents,
            device=t.device,
            child=t.child,
            attribute=t.attribute,
        ))
        batch_targets[t.refId] = t
        batch_vars[t.refId] = variables

    request = BackendRequest(
        queries=queries,
        from_=str(to_epoch_ms(time_range.start)),
        to=str(to_epoch_ms(time_range.end)),
    )
    logger.info(f"构建查询批次 count={len(queries)} skipped={len(targets) - len(queries)} intervalMs={interval}")
    return QueryBatch(request=request, targets=batch_targets, variables=batch_vars)
