from __future__ import annotations

import json
from collections.abc import Callable

import anyio
import httpx
import pytest

from gitgandalf.errors import ConfigurationError
from gitgandalf.errors import InfrastructureError
from gitgandalf.llm.client import DEFAULT_MODEL_ID
from gitgandalf.llm.client import ModelGateway

Handler = Callable[[httpx.Request], httpx.Response]


def _models_response(model_ids: list[str]) -> httpx.Response:
    return httpx.Response(200, json={"object": "list", "data": [{"id": m, "object": "model"} for m in model_ids]})


def _completion_response(content: str | None) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "id": "chatcmpl-1",
            "object": "chat.completion",
            "choices": [{"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
        },
    )


def _gateway(handler: object, timeout_seconds: float = 5.0, strict: bool = False) -> ModelGateway:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))  # type: ignore[arg-type]
    return ModelGateway(
        base_url="http://llm.test",
        http_client=http_client,
        timeout_seconds=timeout_seconds,
        api_key="test",
        strict_client_errors=strict,
    )


@pytest.mark.anyio
async def test_request_judgment_sends_discovered_model_and_messages() -> None:
    seen: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/models":
            assert request.method == "GET"
            return _models_response(["qwen-coder"])
        assert request.url.path == "/v1/chat/completions"
        seen.append(json.loads(request.content))
        return _completion_response('{"risk": "LOW"}')

    reply = await _gateway(handler).request_judgment(system_prompt="SYS", user_payload="USER")

    assert reply == '{"risk": "LOW"}'
    body = seen[0]
    assert body["model"] == "qwen-coder"
    assert body["temperature"] == 0.1
    assert body["messages"] == [{"role": "system", "content": "SYS"}, {"role": "user", "content": "USER"}]


@pytest.mark.anyio
async def test_request_judgment_falls_back_to_default_model() -> None:
    seen: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/models":
            return _models_response([])
        seen.append(json.loads(request.content))
        return _completion_response("{}")

    await _gateway(handler).request_judgment(system_prompt="s", user_payload="u")
    assert seen[0]["model"] == DEFAULT_MODEL_ID


@pytest.mark.anyio
@pytest.mark.parametrize("content", [None, ""])
async def test_request_judgment_passes_through_empty_object(content: str | None) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/models":
            return _models_response(["m"])
        return _completion_response(content)

    assert await _gateway(handler).request_judgment(system_prompt="s", user_payload="u") == "{}"


@pytest.mark.anyio
async def test_request_judgment_empty_choices_is_empty_object() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/models":
            return _models_response(["m"])
        return httpx.Response(200, json={"choices": []})

    assert await _gateway(handler).request_judgment(system_prompt="s", user_payload="u") == "{}"


@pytest.mark.anyio
async def test_connection_refused_is_infrastructure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    with pytest.raises(InfrastructureError) as exc_info:
        await _gateway(handler).request_judgment(system_prompt="s", user_payload="u")
    assert exc_info.value.reason == "connection"


@pytest.mark.anyio
@pytest.mark.parametrize("status", [400, 404, 500, 503])
async def test_non_success_status_is_infrastructure_by_default(status: int) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/models":
            return _models_response(["m"])
        return httpx.Response(status, json={"error": {"message": "nope"}})

    with pytest.raises(InfrastructureError) as exc_info:
        await _gateway(handler).request_judgment(system_prompt="s", user_payload="u")
    assert exc_info.value.reason == "status"
    assert exc_info.value.status_code == status


@pytest.mark.anyio
async def test_models_endpoint_failure_is_infrastructure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, json={"error": {"message": "bad gateway"}})

    with pytest.raises(InfrastructureError):
        await _gateway(handler).request_judgment(system_prompt="s", user_payload="u")


@pytest.mark.anyio
async def test_strict_mode_treats_client_error_as_configuration_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/models":
            return _models_response(["m"])
        return httpx.Response(400, json={"error": {"message": "bad request"}})

    with pytest.raises(ConfigurationError):
        await _gateway(handler, strict=True).request_judgment(system_prompt="s", user_payload="u")


@pytest.mark.anyio
async def test_strict_mode_still_skips_rate_limits_and_server_errors() -> None:
    statuses = iter([429, 500])

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/models":
            return _models_response(["m"])
        return httpx.Response(next(statuses), json={"error": {"message": "busy"}})

    gateway = _gateway(handler, strict=True)
    for _ in range(2):
        with pytest.raises(InfrastructureError):
            await gateway.request_judgment(system_prompt="s", user_payload="u")


@pytest.mark.anyio
async def test_deadline_bounds_total_time_of_both_calls() -> None:
    calls: list[str] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        # 每次调用都小于 deadline，但两次加起来超过
        await anyio.sleep(0.3)
        if request.url.path == "/v1/models":
            return _models_response(["m"])
        return _completion_response('{"risk": "LOW"}')

    with pytest.raises(InfrastructureError) as exc_info:
        await _gateway(handler, timeout_seconds=0.5).request_judgment(system_prompt="s", user_payload="u")
    assert exc_info.value.reason == "timeout"
    assert calls == ["/v1/models", "/v1/chat/completions"]


def test_gateway_rejects_non_positive_timeout() -> None:
    with pytest.raises(ValueError):
        _gateway(lambda request: httpx.Response(200), timeout_seconds=0)


@pytest.mark.anyio
async def test_blank_model_id_falls_back_to_default_model() -> None:
    seen: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/models":
            return _models_response(["   "])
        seen.append(json.loads(request.content))
        return _completion_response("{}")

    await _gateway(handler).request_judgment(system_prompt="s", user_payload="u")
    assert seen[0]["model"] == DEFAULT_MODEL_ID
