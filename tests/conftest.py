"""Pytest configuration and shared fixtures"""
import json

import httpx
import pytest

from akips_datasource.client import AkipsRestClient
from akips_datasource.models import QueryTarget, TimeRange

BASE_URL = "http://akips.test"


@pytest.fixture
def time_range():
    """一小时时间范围 1700000000 ~ 1700003600 (UTC)"""
    return TimeRange.from_unix(1700000000, 1700003600)


@pytest.fixture
def target():
    """带设备选择的时间序列查询"""
    return QueryTarget(
        refId="A",
        rawQuery='series avg ${__interval_sec} "${__device}" "${__child}" "${__attribute}"',
        device="core-sw1",
        child="eth0",
        attribute="IF-MIB.ifHCInOctets",
    )


class RecordingHandler:
    """httpx.MockTransport 处理器：记录请求并返回预设响应"""

    def __init__(self, response=None, status_code=200, exc=None):
        self.response = response if response is not None else {"results": {}}
        self.status_code = status_code
        self.exc = exc
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc
        if isinstance(self.response, (dict, list)):
            return httpx.Response(self.status_code, json=self.response)
        return httpx.Response(self.status_code, text=self.response)

    @property
    def payloads(self):
        return [json.loads(r.content) for r in self.requests]


@pytest.fixture
def make_client():
    """按给定处理器构造走 MockTransport 的 AkipsRestClient"""
    clients = []

    def _make(handler, password=None):
        c = AkipsRestClient(BASE_URL, password=password, transport=httpx.MockTransport(handler))
        clients.append(c)
        return c

    yield _make
    for c in clients:
        c.close()
