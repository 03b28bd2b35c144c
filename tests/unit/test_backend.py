"""Tests for promptgrid.core.backend — reply parsing and the HTTP client.

HTTP is faked with ``httpx.MockTransport``.
"""

from __future__ import annotations

import httpx
import pytest

from promptgrid.core.backend import GenerationClient, cookie_header, parse_backend_reply
from promptgrid.core.errors import BackendError
from promptgrid.core.models import ReferenceImage


class TestParseBackendReply:
    def test_full_reply(self):
        result = parse_backend_reply(
            {
                "images": [
                    {"url": "https://img/1", "filename": "a.png", "mime": "image/png", "dimensions": [1024, 768]},
                ],
                "conversationId": "c_1",
                "responseId": "r_1",
                "modelName": "imagen",
            }
        )
        assert len(result.images) == 1
        ref = result.images[0]
        assert ref.url == "https://img/1"
        assert ref.filename == "a.png"
        assert ref.mime_type == "image/png"
        assert ref.dimensions == (1024, 768)
        assert (result.conversation_id, result.response_id, result.model_name) == ("c_1", "r_1", "imagen")

    def test_missing_metadata_defaults_to_none(self):
        result = parse_backend_reply({"images": []})
        assert result.images == []
        assert result.conversation_id is None
        assert result.response_id is None
        assert result.model_name is None

    def test_non_string_metadata_is_ignored(self):
        result = parse_backend_reply({"conversationId": 123, "responseId": None, "modelName": ""})
        assert result.conversation_id is None
        assert result.response_id is None
        assert result.model_name is None

    def test_aliases(self):
        result = parse_backend_reply(
            {
                "images": [{"url": "https://img/1", "title": "t.jpg", "mimeType": "image/jpeg", "width": 5, "height": 6}],
                "cid": "c",
                "rid": "r",
                "model": "m",
            }
        )
        ref = result.images[0]
        assert ref.filename == "t.jpg"
        assert ref.mime_type == "image/jpeg"
        assert ref.dimensions == (5, 6)
        assert (result.conversation_id, result.response_id, result.model_name) == ("c", "r", "m")

    def test_entries_without_url_are_skipped(self):
        result = parse_backend_reply(
            {"images": [{"filename": "no-url.png"}, "junk", {"url": ""}, {"url": "https://img/ok"}]}
        )
        assert [ref.url for ref in result.images] == ["https://img/ok"]

    def test_filename_and_mime_defaults(self):
        result = parse_backend_reply({"images": [{"url": "https://img/a"}, {"url": "https://img/b", "filename": "b.jpg"}]})
        first, second = result.images
        assert first.filename == "image-1.png"
        assert first.mime_type == "image/png"
        assert second.mime_type == "image/jpeg"

    @pytest.mark.parametrize(
        "dims",
        [[0, 10], [10], [1, 2, 3], ["10", "20"], [True, 5], None, "1024x1024"],
    )
    def test_invalid_dimensions_dropped(self, dims):
        result = parse_backend_reply({"images": [{"url": "https://img/a", "dimensions": dims}]})
        assert result.images[0].dimensions is None

    def test_images_not_a_list(self):
        assert parse_backend_reply({"images": {"url": "x"}}).images == []

    @pytest.mark.parametrize("payload", [[], "text", None, 42])
    def test_non_object_reply_raises(self, payload):
        with pytest.raises(BackendError):
            parse_backend_reply(payload)


def test_cookie_header():
    assert cookie_header({}) == {}
    assert cookie_header({"a": "1", "b": "2"}) == {"Cookie": "a=1; b=2"}


class TestGenerationClient:
    @pytest.mark.anyio
    async def test_posts_prompt_files_and_cookies(self, test_config, session):
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["cookie"] = request.headers.get("cookie")
            seen["content_type"] = request.headers.get("content-type", "")
            seen["body"] = request.read()
            return httpx.Response(
                200,
                json={"images": [{"url": "https://img/1", "filename": "x.png"}], "conversationId": "c"},
            )

        refs = [ReferenceImage(data=b"REFBYTES", filename="ref.png", mime_type="image/png")]
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = GenerationClient(test_config, session, http)
            result = await client.generate("draw a fox", refs)

        assert seen["url"] == "https://backend.test/generate"
        assert "__Secure-1PSID=psid-value" in seen["cookie"]
        assert seen["content_type"].startswith("multipart/form-data")
        assert b"draw a fox" in seen["body"]
        assert b"REFBYTES" in seen["body"]
        assert b'filename="ref.png"' in seen["body"]
        assert [ref.url for ref in result.images] == ["https://img/1"]
        assert result.conversation_id == "c"

    @pytest.mark.anyio
    async def test_without_reference_images(self, test_config, session):
        def handler(request: httpx.Request) -> httpx.Response:
            assert b"prompt=hello" in request.read()
            return httpx.Response(200, json={"images": []})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            result = await GenerationClient(test_config, session, http).generate("hello", [])
        assert result.images == []

    @pytest.mark.anyio
    async def test_server_error_passes_message_through(self, test_config, session):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="upstream exploded")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(BackendError) as exc_info:
                await GenerationClient(test_config, session, http).generate("p", [])

        assert "HTTP 502" in exc_info.value.message
        assert "upstream exploded" in exc_info.value.message
        assert exc_info.value.auth_failure is False

    @pytest.mark.anyio
    @pytest.mark.parametrize("status", [401, 403])
    async def test_auth_rejection_flagged(self, test_config, session, status):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(BackendError) as exc_info:
                await GenerationClient(test_config, session, http).generate("p", [])
        assert exc_info.value.auth_failure is True

    @pytest.mark.anyio
    async def test_invalid_json(self, test_config, session):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(BackendError, match="invalid JSON"):
                await GenerationClient(test_config, session, http).generate("p", [])

    @pytest.mark.anyio
    async def test_transport_error(self, test_config, session):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(BackendError, match="connection refused"):
                await GenerationClient(test_config, session, http).generate("p", [])

    @pytest.mark.anyio
    async def test_timeout(self, test_config, session):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(BackendError, match="timed out"):
                await GenerationClient(test_config, session, http).generate("p", [])
