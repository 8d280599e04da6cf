"""测试：生成服务 HTTP 适配器

使用 httpx.MockTransport 模拟生成服务，不发出真实网络请求。
"""

import json

import httpx
import pytest

from motif_engine.domain.exceptions import (
    GenerationNetworkError,
    GenerationServiceError,
    GenerationTimeoutError,
    RateLimitError,
)
from motif_engine.domain.value_objects.generation import GenerationRequest, WorkflowImage
from motif_engine.infrastructure.adapters.generation_httpx_adapter import GenerationHttpxAdapter

SERVICE_URL = "https://generate.test/api/generate"


def _adapter(handler) -> GenerationHttpxAdapter:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GenerationHttpxAdapter(SERVICE_URL, timeout=5.0, client=client)


def _request() -> GenerationRequest:
    return GenerationRequest(
        prompt="a cat",
        model="google/gemini-3-pro-image",
        images=(WorkflowImage(url="https://cdn.test/seed.png", media_type="image/png", sequence_number=1),),
        session_id="wf-1",
    )


class TestSuccessfulGeneration:
    @pytest.mark.asyncio
    async def test_posts_camel_case_payload(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json={"success": True, "outputImage": {"url": "https://cdn.test/out.png"}})

        response = await _adapter(handler).generate(_request())

        assert captured["url"] == SERVICE_URL
        assert captured["body"]["sessionId"] == "wf-1"
        assert captured["body"]["images"][0]["mediaType"] == "image/png"
        assert response.image_url == "https://cdn.test/out.png"
        assert response.text is None

    @pytest.mark.asyncio
    async def test_structured_output_files(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "text": "export default App",
                    "structuredOutput": {
                        "files": [
                            {"content": "export default App", "language": "tsx", "filename": "App.tsx"},
                            {"content": ".app {}", "language": "css"},
                        ]
                    },
                },
            )

        response = await _adapter(handler).generate(_request())

        assert response.is_multi_file is True
        assert [file.filename for file in response.files] == ["App.tsx", None]
        assert response.structured_output["files"][1]["language"] == "css"


class TestFailures:
    @pytest.mark.asyncio
    async def test_rate_limit_with_reset(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"error": "Too many requests", "reset": "soon"})

        with pytest.raises(RateLimitError) as exc_info:
            await _adapter(handler).generate(_request())

        assert str(exc_info.value) == "Rate limit exceeded. Try again at soon."

    @pytest.mark.asyncio
    async def test_rate_limit_without_reset(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, text="slow down")

        with pytest.raises(RateLimitError) as exc_info:
            await _adapter(handler).generate(_request())

        assert exc_info.value.reset is None

    @pytest.mark.asyncio
    async def test_error_status_uses_body_message(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"error": "Model overloaded"})

        with pytest.raises(GenerationServiceError) as exc_info:
            await _adapter(handler).generate(_request())

        assert str(exc_info.value) == "Model overloaded"
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_error_status_without_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="<html>bad gateway</html>")

        with pytest.raises(GenerationServiceError) as exc_info:
            await _adapter(handler).generate(_request())

        assert str(exc_info.value) == "HTTP 502: Generation failed"

    @pytest.mark.asyncio
    async def test_success_false(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": False, "error": "Prompt rejected"})

        with pytest.raises(GenerationServiceError, match="Prompt rejected"):
            await _adapter(handler).generate(_request())

    @pytest.mark.asyncio
    async def test_empty_output(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": True})

        with pytest.raises(GenerationServiceError, match="no output"):
            await _adapter(handler).generate(_request())

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(GenerationTimeoutError):
            await _adapter(handler).generate(_request())

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GenerationNetworkError):
            await _adapter(handler).generate(_request())
