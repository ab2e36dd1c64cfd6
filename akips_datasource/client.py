from __future__ import annotations

import httpx
from typing import Any, Dict, Optional

from pydantic import ValidationError
from loguru import logger

from akips_datasource.exceptions import BackendError
from akips_datasource.models import BackendRequest, BackendResult, ExpandedQuery, QueryKind
from akips_datasource.utils import MIN_INTERVAL_MS, parse_duration_to_seconds

# 批量查询协议 {queries, from, to} -> {results}，由托管 AKiPS 插件的服务提供
QUERY_ENDPOINT = "/api/tsdb/query"
PROBE_REF_ID = "testDatasource"
PROBE_QUERY = "mget device __dummy__"


class AkipsRestClient:
    def __init__(self, base_url: str, password: Optional[str] = None,
                 request_timeout: Optional[str] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        timeout_seconds = parse_duration_to_seconds(request_timeout, 30.0)
        # 口令以 password 查询参数附加到每个请求
        params = {"password": password} if password else None
        logger.debug(f"初始化 AkipsRestClient base_url={self.base_url} timeout={timeout_seconds}s auth={'password' if password else 'none'}")
        self.client = httpx.Client(timeout=timeout_seconds, params=params, transport=transport)

    def close(self) -> None:
        self.client.close()

    @staticmethod
    def _error_message(r: httpx.Response) -> str:
        try:
            body = r.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            msg = body.get("message") or body.get("error")
            if msg:
                return str(msg)
        return f"HTTP {r.status_code} {r.reason_phrase}".strip()

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{QUERY_ENDPOINT}"
        try:
            r = self.client.post(url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"AKiPS 请求失败 url={url}: {e}")
            raise BackendError(f"transport failure: {e}") from e
        if r.status_code // 100 != 2:
            msg = self._error_message(r)
            logger.error(f"AKiPS 返回非 2xx status={r.status_code} message={msg}")
            raise BackendError(msg, status_code=r.status_code)
        try:
            body = r.json()
        except ValueError as e:
            logger.exception("AKiPS 响应不是合法 JSON")
            raise BackendError("transport failure: invalid JSON response", status_code=r.status_code) from e
        if not isinstance(body, dict):
            logger.error(f"AKiPS 返回非 JSON 对象: {type(body)}")
            raise BackendError("transport failure: unexpected response shape", status_code=r.status_code)
        return body

    def query(self, request: BackendRequest) -> BackendResult:
        """一次往返发送整批查询，返回按 refId 分组的结果。"""
        logger.debug(f"执行批量查询 count={len(request.queries)} from={request.from_} to={request.to}")
        body = self._post(request.payload())
        try:
            result = BackendResult.model_validate(body)
        except ValidationError as e:
            logger.error(f"AKiPS 响应结构校验失败: {e}")
            raise BackendError(f"transport failure: malformed results: {e}") from e
        logger.info(f"查询完成 results={len(result.results)}")
        return result

    def probe(self) -> None:
        """发送最小探测查询，只判断成功与否，不解析数据。"""
        request = BackendRequest(queries=[ExpandedQuery(
            refId=PROBE_REF_ID,
            queryType=QueryKind.TABLE,
            query=PROBE_QUERY,
            rawQuery=PROBE_QUERY,
            intervalMs=MIN_INTERVAL_MS,
        )])
        body = self._post(request.payload())
        results = body.get("results") or {}
        if not isinstance(results, dict):
            logger.error(f"连通性探测响应结构异常: results={type(results)}")
            raise BackendError("transport failure: unexpected response shape")
        entry = results.get(PROBE_REF_ID)
        if isinstance(entry, dict) and entry.get("error"):
            logger.error(f"连通性探测返回错误: {entry['error']}")
            raise BackendError(str(entry["error"]))
        logger.info("连通性探测成功")
