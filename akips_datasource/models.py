from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class QueryKind(str, Enum):
    TIME_SERIES = "time_series"
    TABLE = "table"


# 历史版本中出现过的查询类型写法
_KIND_ALIASES = {
    "time_series": QueryKind.TIME_SERIES,
    "timeSeriesQuery": QueryKind.TIME_SERIES,
    "timeserie": QueryKind.TIME_SERIES,
    "table": QueryKind.TABLE,
    "tableQuery": QueryKind.TABLE,
    "csv": QueryKind.TABLE,
}

# 旧字段名 -> 新字段名
_FIELD_ALIASES = {
    "referenceId": "refId",
    "rawQueryTemplate": "rawQuery",
    "legendIsRegex": "legendRegex",
    "hidden": "hide",
    "type": "queryType",
}


class QueryTarget(BaseModel):
    """面板上的一条查询。
    - rawQuery 为模板，可含 ${__interval_sec}、${__device} 等变量
    - 旧版本字段名（query/type/legendIsRegex/hidden 等）在校验前统一改写
    """
    refId: str
    rawQuery: str = ""
    queryType: QueryKind = QueryKind.TIME_SERIES
    device: Optional[str] = None
    child: Optional[str] = None
    attribute: Optional[str] = None
    singleValue: bool = False
    omitParents: bool = False
    legendFormat: Optional[str] = None
    legendRegex: bool = False
    hide: bool = False
    intervalMs: Optional[int] = None
    maxDataPoints: Optional[int] = None
    # 仅用于 explore 模式回填展开后的查询
    query: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _upgrade_legacy_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for old, new in _FIELD_ALIASES.items():
            if old in data and new not in data:
                data[new] = data.pop(old)
        if not data.get("rawQuery") and data.get("query"):
            data["rawQuery"] = data["query"]
        kind = data.get("queryType")
        if isinstance(kind, str):
            data["queryType"] = _KIND_ALIASES.get(kind, QueryKind.TIME_SERIES)
        elif kind is None:
            data.pop("queryType", None)
        return data

    @property
    def kind(self) -> QueryKind:
        return self.queryType


class TimeRange(BaseModel):
    start: datetime
    end: datetime

    @classmethod
    def from_unix(cls, start: int, end: int) -> "TimeRange":
        return cls(start=datetime.fromtimestamp(start, timezone.utc),
                   end=datetime.fromtimestamp(end, timezone.utc))


class ScopedVar(BaseModel):
    text: str
    value: Union[int, str]


ScopedVars = Dict[str, ScopedVar]


class ExpandedQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    refId: str
    queryType: QueryKind = QueryKind.TIME_SERIES
    query: str
    rawQuery: str = ""
    intervalMs: int
    maxDataPoints: Optional[int] = None
    singleValue: bool = False
    omitParents: bool = False
    device: Optional[str] = None
    child: Optional[str] = None
    attribute: Optional[str] = None


class BackendRequest(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    queries: List[ExpandedQuery] = Field(default_factory=list)
    from_: Optional[str] = Field(default=None, alias="from")
    to: Optional[str] = None

    def payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class TimeSeries(BaseModel):
    name: Optional[str] = None
    tags: Optional[Dict[str, str]] = None
    # 每个点 = [value, timestamp_ms]
    points: Optional[List[List[Any]]] = None


class TableColumn(BaseModel):
    text: str = ""


class Table(BaseModel):
    columns: Optional[List[TableColumn]] = None
    rows: Optional[List[List[Any]]] = None


class ResultEntry(BaseModel):
    refId: Optional[str] = None
    error: Optional[str] = None
    metaJson: Optional[str] = None
    series: Optional[List[TimeSeries]] = None
    tables: Optional[List[Table]] = None


class BackendResult(BaseModel):
    results: Dict[str, ResultEntry] = Field(default_factory=dict)


class FieldType(str, Enum):
    NUMBER = "number"
    TIME = "time"
    STRING = "string"


class FrameField(BaseModel):
    type: FieldType
    name: str
    unit: Optional[str] = None
    values: List[Any] = Field(default_factory=list)


class Frame(BaseModel):
    refId: str
    fields: List[FrameField] = Field(default_factory=list)


class QueryResponse(BaseModel):
    frames: List[Frame] = Field(default_factory=list)
    # refId -> 后端返回的错误信息（部分失败，不影响其它 refId）
    errors: Dict[str, str] = Field(default_factory=dict)


class EntityValue(BaseModel):
    text: str
    value: Optional[str] = None


class ConnectionStatus(BaseModel):
    status: str
    message: str
