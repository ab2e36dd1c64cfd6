from __future__ import annotations

from typing import Any, Dict, List, Annotated, Optional

from fastmcp import FastMCP

from akips_datasource.config import ConfigManager
from akips_datasource.datasource import AkipsDatasource
from akips_datasource.exceptions import BackendError
from akips_datasource.models import QueryTarget, TimeRange
from akips_datasource.pickers import attribute_list_query, child_list_query, device_list_query
from loguru import logger
import time

app = FastMCP("akips-datasource")


def _datasource() -> AkipsDatasource:
    return AkipsDatasource.from_config(ConfigManager.load())


def _entities(query: str) -> List[str]:
    ds = _datasource()
    try:
        return [v.text for v in ds.resolve_entities(query)]
    finally:
        ds.client.close()


@app.tool()
def query(
    targets: Annotated[List[Dict[str, Any]], "查询列表，每项至少包含 refId 与 rawQuery，可选 queryType(time_series/table)、device、child、attribute、legendFormat、legendRegex、hide"],
    start: Annotated[int, "起始时间戳(unix)，单位:秒"],
    end: Annotated[int, "结束时间戳(unix)，单位:秒"],
    interval_ms: Annotated[Optional[int], "采样间隔(毫秒)，会向上取整到整分钟；省略则为 60000"] = None,
    variables: Annotated[Optional[Dict[str, str]], "额外模板变量，如 {'site': 'dc1'}，用于替换 ${site}"] = None,
) -> Dict[str, Any]:
    """执行一批 AKiPS 查询，返回规范化后的数据帧(frames)与按 refId 的错误(errors)。"""
    logger.info(f"调用 query targets={len(targets)} start={start} end={end} interval_ms={interval_ms}")
    if end <= start:
        return {"error": "end 必须大于 start"}
    parsed = [QueryTarget.model_validate(t) for t in targets]
    scoped = {k: {"text": v, "value": v} for k, v in (variables or {}).items()}
    ds = _datasource()
    try:
        resp = ds.execute(parsed, TimeRange.from_unix(start, end), interval_ms, scoped_vars=scoped)
    except BackendError as e:
        return {"error": f"AKiPS 查询失败: {e.message}"}
    finally:
        ds.client.close()
    return resp.model_dump(mode="json", exclude_none=True)


@app.tool()
def list_devices() -> List[str]:
    """列出全部设备名。"""
    logger.info("调用 list_devices")
    return _entities(device_list_query())


@app.tool()
def list_children(device: Annotated[str, "设备名(来自 list_devices)"]) -> List[str]:
    """列出设备下的子项(接口等)。"""
    logger.info(f"调用 list_children device={device}")
    return _entities(child_list_query(device))


@app.tool()
def list_attributes(
    device: Annotated[str, "设备名"],
    child: Annotated[str, "子项名(来自 list_children)"],
) -> List[str]:
    """列出设备子项下可查询的属性。"""
    logger.info(f"调用 list_attributes device={device} child={child}")
    return _entities(attribute_list_query(device, child))


@app.tool()
def resolve_entities(query: Annotated[str, "AKiPS mlist 查询，例如 mlist device *"]) -> List[str]:
    """执行任意 mlist 查询并返回主体列。"""
    logger.info("调用 resolve_entities")
    return _entities(query)


@app.tool()
def test_connection() -> Dict[str, str]:
    """测试 AKiPS 连通性与口令。"""
    logger.info("调用 test_connection")
    ds = _datasource()
    try:
        return ds.test_connection().model_dump()
    finally:
        ds.client.close()


@app.tool()
def current_timestamp() -> Dict[str, int]:
    """获取当前 Unix 时间戳(秒)"""
    ts = int(time.time())
    logger.info(f"调用 current_timestamp now={ts}")
    return {"timestamp": ts}


def main() -> None:
    cfg = ConfigManager.load()
    port = cfg.global_config.serverPort or 7000
    logger.info(f"启动 akips-datasource 服务器 port={port}")
    app.run(transport="streamable-http", port=port)


if __name__ == "__main__":
    main()
