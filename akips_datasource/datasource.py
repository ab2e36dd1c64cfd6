from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence

from loguru import logger

from akips_datasource.batch import build_batch
from akips_datasource.client import AkipsRestClient
from akips_datasource.config import ConfigManager
from akips_datasource.exceptions import BackendError
from akips_datasource.materializer import materialize
from akips_datasource.models import (
    BackendRequest,
    ConnectionStatus,
    EntityValue,
    ExpandedQuery,
    QueryKind,
    QueryResponse,
    QueryTarget,
    TimeRange,
)
from akips_datasource.templating import substitute
from akips_datasource.utils import MIN_INTERVAL_MS, resolve_timezone

ENTITY_REF_ID = "tableQuery"


def _subject_index(columns: Sequence[Any]) -> int:
    # mlist 结果按 Parent/Child/Attribute 排列，取最深一级作为选项
    idx = 0
    if len(columns) > 1 and columns[1].text == "Child":
        idx = 1
    if len(columns) > 2 and columns[2].text == "Attribute":
        idx = 2
    return idx


class AkipsDatasource:
    """面向可视化层的入口：执行查询、解析设备选项、测试连通性。
    每次调用相互独立，不保存跨调用状态。
    """

    def __init__(self, client: AkipsRestClient, *, timezone: Optional[str] = None,
                 max_data_points: Optional[int] = None):
        self.client = client
        self.tz = resolve_timezone(timezone)
        self.max_data_points = max_data_points

    @classmethod
    def from_config(cls, cfg: ConfigManager) -> "AkipsDatasource":
        acfg = cfg.global_config.akipsConfig
        client = AkipsRestClient(cfg.base_url, password=cfg.password, request_timeout=acfg.queryTimeout)
        return cls(client, timezone=acfg.timezone, max_data_points=acfg.maxDataPoints)

    def execute(self, targets: Sequence[QueryTarget], time_range: TimeRange, interval_ms: Optional[int],
                scoped_vars: Optional[Mapping[str, Any]] = None) -> QueryResponse:
        """执行一批查询。后端传输失败抛 BackendError；单个 refId 的失败记录在 errors 中。"""
        logger.info(f"执行查询 targets={len(targets)} intervalMs={interval_ms}")
        batch = build_batch(targets, time_range, interval_ms, max_data_points=self.max_data_points,
                            scoped_vars=scoped_vars, tz=self.tz)
        if batch is None:
            return QueryResponse()
        result = self.client.query(batch.request)
        return materialize(result, batch.targets, batch.variables)

    def resolve_entities(self, query_text: str, scoped_vars: Optional[Mapping[str, Any]] = None) -> List[EntityValue]:
        """执行一条表格查询并把每行的主体列作为选项返回，供设备/子项/属性下拉框使用。"""
        q = substitute(query_text, scoped_vars)
        logger.debug(f"解析实体 query={q[:120]}")
        request = BackendRequest(queries=[ExpandedQuery(
            refId=ENTITY_REF_ID,
            queryType=QueryKind.TABLE,
            query=q,
            rawQuery=query_text,
            intervalMs=MIN_INTERVAL_MS,
        )])
        result = self.client.query(request)
        entry = result.results.get(ENTITY_REF_ID)
        if entry is None:
            return []
        if entry.error:
            logger.warning(f"实体查询失败 error={entry.error}")
            return []
        if not entry.tables:
            return []
        table = entry.tables[0]
        idx = _subject_index(table.columns or [])
        values = [
            EntityValue(text=str(row[idx]) if idx < len(row) and row[idx] is not None else "")
            for row in (table.rows or [])
        ]
        logger.info(f"实体解析完成 count={len(values)}")
        return values

    def test_connection(self) -> ConnectionStatus:
        try:
            self.client.probe()
        except BackendError as e:
            return ConnectionStatus(status="error", message=e.message)
        return ConnectionStatus(status="success", message="Success")

    @staticmethod
    def interpolate_variables_in_queries(targets: Sequence[QueryTarget],
                                         scoped_vars: Optional[Mapping[str, Any]] = None) -> List[QueryTarget]:
        """explore 模式：只用调用方变量展开 rawQuery，写回 query 字段。"""
        return [t.model_copy(update={"query": substitute(t.rawQuery, scoped_vars)}) for t in targets]

    @staticmethod
    def query_display_text(target: QueryTarget) -> str:
        return target.query or target.rawQuery or ""
