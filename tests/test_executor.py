import base64
import json
import logging

import httpx
import pytest

from smartbear_api_mcp.errors import DecodeError, HttpError, TransportError
from smartbear_api_mcp.executor import RequestExecutor, new_http_client
from smartbear_api_mcp.models import BasicCredentials, ClientConfiguration, RequestDescriptor, TokenAuth

from .conftest import BASE_URL


def executor_for(handler, config):
    return RequestExecutor(config, new_http_client(config, transport=httpx.MockTransport(handler)))


async def requested_url(base, url):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        return httpx.Response(200, json={})

    config = ClientConfiguration(base_path=base, auth=TokenAuth(token="t"))
    await executor_for(handler, config).execute(RequestDescriptor(url=url))
    return seen["url"]


class TestUrlResolution:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "base, url, expected",
        [
            ("http://base.com", "/path", "http://base.com/path"),
            ("http://base.com/", "/path", "http://base.com/path"),
            ("http://base.com", "path", "http://base.com/path"),
            ("http://base.com", "", "http://base.com/"),
            ("https://api.zephyrscale.smartbear.com/v2", "/testcases", "https://api.zephyrscale.smartbear.com/v2/testcases"),
            ("https://api.bugsnag.com", "/api/v1/errors?page=2&filter=active",
             "https://api.bugsnag.com/api/v1/errors?page=2&filter=active"),
        ],
    )
    async def test_relative_urls_join_the_base_path(self, base, url, expected):
        assert await requested_url(base, url) == expected

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", ["http://example.com/path", "https://secure.example.com/path?x=1"])
    async def test_absolute_urls_pass_through(self, url):
        assert await requested_url("http://base.com", url) == url


class TestHeaders:
    @pytest.mark.asyncio
    async def test_token_auth_and_default_headers_are_sent(self, config):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            return httpx.Response(200, json={"id": "1"})

        await executor_for(handler, config).execute(
            RequestDescriptor(url="/test", headers={"X-Call": "yes"})
        )

        assert seen["url"] == f"{BASE_URL}/test"
        assert seen["headers"]["authorization"] == "token secret-token"
        assert seen["headers"]["x-test-header"] == "test-value"
        assert seen["headers"]["x-call"] == "yes"

    @pytest.mark.asyncio
    async def test_call_headers_cannot_replace_authentication(self, config, caplog):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["authorization"] = request.headers["authorization"]
            return httpx.Response(200, json={})

        with caplog.at_level(logging.WARNING, logger="smartbear_api_mcp.executor"):
            await executor_for(handler, config).execute(
                RequestDescriptor(url="/test", headers={"authorization": "Bearer stolen"})
            )

        assert seen["authorization"] == "token secret-token"
        assert "Ignoring Authorization header" in caplog.text

    @pytest.mark.asyncio
    async def test_basic_credentials(self):
        config = ClientConfiguration(
            base_path=BASE_URL, auth=BasicCredentials(username="user", password="pass")
        )
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["authorization"] = request.headers["authorization"]
            return httpx.Response(200, json={})

        await executor_for(handler, config).execute(RequestDescriptor(url="/test"))

        assert seen["authorization"] == "Basic " + base64.b64encode(b"user:pass").decode()
        assert isinstance(config.auth.http_auth(), httpx.BasicAuth)

    @pytest.mark.asyncio
    async def test_bearer_token(self):
        config = ClientConfiguration(base_path=BASE_URL, auth=TokenAuth(token="abc", scheme="Bearer"))
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["authorization"] = request.headers["authorization"]
            return httpx.Response(200, json={})

        await executor_for(handler, config).execute(RequestDescriptor(url="/test"))

        assert seen["authorization"] == "Bearer abc"


class TestBody:
    @pytest.mark.asyncio
    async def test_body_is_sent_as_json(self, config):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            seen["content_type"] = request.headers["content-type"]
            seen["method"] = request.method
            return httpx.Response(200, json={"ok": True})

        result = await executor_for(handler, config).execute(
            RequestDescriptor(method="PATCH", url="/errors/1", body={"operation": "fix"})
        )

        assert seen == {"body": {"operation": "fix"}, "content_type": "application/json", "method": "PATCH"}
        assert result.body == {"ok": True}

    @pytest.mark.asyncio
    async def test_no_body_sends_no_content(self, config):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["content"] = request.content
            return httpx.Response(200, json={})

        await executor_for(handler, config).execute(RequestDescriptor(method="POST", url="/x"))

        assert seen["content"] == b""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{}, [], 0, False, ""])
    async def test_falsy_json_bodies_are_sent(self, config, body):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={})

        await executor_for(handler, config).execute(RequestDescriptor(method="POST", url="/x", body=body))

        assert seen["body"] == body

    @pytest.mark.asyncio
    async def test_no_content_decodes_to_none(self, config):
        result = await executor_for(lambda request: httpx.Response(204), config).execute(
            RequestDescriptor(method="DELETE", url="/x")
        )
        assert result.status == 204
        assert result.body is None


class TestFailures:
    @pytest.mark.asyncio
    async def test_http_error_keeps_status_and_body(self, config):
        executor = executor_for(lambda request: httpx.Response(404, text="Not Found"), config)

        with pytest.raises(HttpError) as excinfo:
            await executor.execute(RequestDescriptor(url="/test"))

        assert excinfo.value.status == 404
        assert excinfo.value.body_text == "Not Found"
        assert str(excinfo.value) == "Request failed with status 404: Not Found"

    @pytest.mark.asyncio
    async def test_invalid_json_is_a_decode_error_without_retry(self, config):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, text="<html>oops</html>")

        with pytest.raises(DecodeError) as excinfo:
            await executor_for(handler, config).execute(RequestDescriptor(url="/test"))

        assert excinfo.value.body_text == "<html>oops</html>"
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_network_failure_is_a_transport_error(self, config):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransportError) as excinfo:
            await executor_for(handler, config).execute(RequestDescriptor(url="/test"))

        assert excinfo.value.url == f"{BASE_URL}/test"
        assert "connection refused" in str(excinfo.value)
