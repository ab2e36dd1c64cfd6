"""Unit tests for the AKiPS REST client

Tests the single round trip dispatch including:
- request payload and password authentication
- response parsing
- transport error mapping
"""
import httpx
import pytest

from akips_datasource.client import PROBE_QUERY, PROBE_REF_ID, AkipsRestClient
from akips_datasource.exceptions import BackendError
from akips_datasource.models import BackendRequest, ExpandedQuery
from tests.conftest import RecordingHandler


def _request():
    return BackendRequest(
        queries=[ExpandedQuery(refId="A", query="mget * sw1", rawQuery="mget * ${__device}", intervalMs=60000)],
        from_="1700000000000",
        to="1700003600000",
    )


class TestQuery:

    def test_posts_batch_once(self, make_client):
        handler = RecordingHandler({"results": {"A": {"series": [{"name": "x", "points": [[1, 1000]]}]}}})
        client = make_client(handler)
        result = client.query(_request())

        assert len(handler.requests) == 1
        req = handler.requests[0]
        assert req.method == "POST"
        assert req.url.path == "/api/tsdb/query"
        body = handler.payloads[0]
        assert body["from"] == "1700000000000"
        assert body["to"] == "1700003600000"
        assert body["queries"][0]["refId"] == "A"
        assert body["queries"][0]["query"] == "mget * sw1"
        assert body["queries"][0]["intervalMs"] == 60000
        assert result.results["A"].series[0].name == "x"

    def test_password_sent_as_query_param(self, make_client):
        handler = RecordingHandler()
        make_client(handler, password="s3cret").query(_request())
        assert handler.requests[0].url.params["password"] == "s3cret"

    def test_no_password_param_without_password(self, make_client):
        handler = RecordingHandler()
        make_client(handler).query(_request())
        assert "password" not in handler.requests[0].url.params

    def test_base_url_trailing_slash(self):
        handler = RecordingHandler()
        client = AkipsRestClient("http://akips.test/", transport=httpx.MockTransport(handler))
        try:
            client.query(_request())
        finally:
            client.close()
        assert str(handler.requests[0].url) == "http://akips.test/api/tsdb/query"


class TestErrors:

    def test_non_2xx_uses_backend_message(self, make_client):
        client = make_client(RecordingHandler({"message": "invalid password"}, status_code=401))
        with pytest.raises(BackendError) as exc:
            client.query(_request())
        assert exc.value.message == "invalid password"
        assert exc.value.status_code == 401

    def test_non_2xx_without_message(self, make_client):
        client = make_client(RecordingHandler("<html>oops</html>", status_code=502))
        with pytest.raises(BackendError) as exc:
            client.query(_request())
        assert exc.value.message == "HTTP 502 Bad Gateway"

    def test_transport_failure(self, make_client):
        client = make_client(RecordingHandler(exc=httpx.ConnectError("connection refused")))
        with pytest.raises(BackendError) as exc:
            client.query(_request())
        assert exc.value.message.startswith("transport failure")
        assert exc.value.status_code is None

    def test_invalid_json(self, make_client):
        client = make_client(RecordingHandler("not json"))
        with pytest.raises(BackendError):
            client.query(_request())

    def test_backend_error_is_runtime_error(self, make_client):
        client = make_client(RecordingHandler({"error": "down"}, status_code=500))
        with pytest.raises(RuntimeError, match="down"):
            client.query(_request())


class TestConnectivityCheck:

    def test_sends_single_dummy_query(self, make_client):
        handler = RecordingHandler({"results": {}})
        make_client(handler).probe()
        queries = handler.payloads[0]["queries"]
        assert len(queries) == 1
        assert queries[0]["refId"] == PROBE_REF_ID
        assert queries[0]["query"] == PROBE_QUERY
        assert "from" not in handler.payloads[0]

    def test_error_entry_fails(self, make_client):
        client = make_client(RecordingHandler({"results": {PROBE_REF_ID: {"error": "akips: bad password"}}}))
        with pytest.raises(BackendError, match="bad password"):
            client.probe()

    def test_payload_not_interpreted(self, make_client):
        client = make_client(RecordingHandler({"results": {PROBE_REF_ID: {"tables": "garbage"}}}))
        client.probe()

    def test_results_not_object_fails(self, make_client):
        client = make_client(RecordingHandler({"results": ["oops"]}))
        with pytest.raises(BackendError, match="unexpected response shape"):
            client.probe()
