import json
from typing import Any, Callable, Dict, Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..core.config_manager import ConfigManager
from ..core.error_handling import ErrorContext, ErrorHandler, RelayError
from ..core.logging import logger
from ..services.relay import ClientWriter, FullBodyRelay, RelayMode, StreamRelay, Usage
from ..services.upstream import UpstreamClient
from ..utils.token_counter import count_prompt_tokens, count_tokens as default_count_tokens
from .middleware import RequestLoggerMiddleware
from .responses import RelayResponse


API_PREFIX = "/v1"


def is_event_stream(response: httpx.Response) -> bool:
    return response.headers.get("content-type", "").startswith("text/event-stream")


def record_usage(request_id: str, model: str, relay_mode: RelayMode, usage: Usage):
    """Hand the usage record to accounting; here it is logged."""
    logger.info(
        f"Usage recorded | model={model} | total_tokens={usage.total_tokens}",
        log_type="usage",
        request_id=request_id,
        model_id=model,
        relay_mode=relay_mode.value,
        prompt_tokens=usage.prompt_tokens,
        completion_tokens=usage.completion_tokens,
        total_tokens=usage.total_tokens
    )


async def relay_request(request: Request, count_tokens: Callable[[str, str], int]):
    """Forward the request upstream and relay the answer with the right relay."""
    app = request.app
    path = request.url.path[len(API_PREFIX):]
    relay_mode = RelayMode.from_path(path)
    request_id = getattr(request.state, "request_id", "unknown")
    config_manager: ConfigManager = app.state.config_manager
    context = ErrorContext(request_id=request_id, relay_mode=relay_mode.value, endpoint_path=path)

    try:
        request_body = await request.json()
    except json.JSONDecodeError as e:
        raise ErrorHandler.handle_invalid_request(str(e), context) from e
    if not isinstance(request_body, dict):
        raise ErrorHandler.handle_invalid_request("request body must be a JSON object", context)

    model = request_body.get("model") or ""
    context.model_id = model
    fixed_content = config_manager.fixed_content

    try:
        upstream_client = UpstreamClient(config_manager.upstream_config, app.state.httpx_client)
    except ValueError as e:
        raise ErrorHandler.handle_internal_server_error(str(e), context, e) from e

    prompt_tokens = count_prompt_tokens(request_body, model, count_tokens) if model else 0

    logger.request(
        operation="Relay Request",
        request_id=request_id,
        model_id=model,
        relay_mode=relay_mode.value,
        stream=bool(request_body.get("stream"))
    )

    upstream = await upstream_client.open(path, request_body, request_id=request_id, context=context)

    async def handler(client: ClientWriter):
        if is_event_stream(upstream):
            relay = StreamRelay(fixed_content)
            response_text = await relay.relay(upstream, client, relay_mode, request_id=request_id, context=context)
            usage = Usage.computed(prompt_tokens, count_tokens(response_text, model))
        else:
            relay = FullBodyRelay(fixed_content, count_tokens=count_tokens)
            usage, _ = await relay.relay(upstream, client, prompt_tokens, model, request_id=request_id, context=context)
        record_usage(request_id, model, relay_mode, usage)

    return RelayResponse(handler, request_id=request_id)


def create_app(
    config_manager: Optional[ConfigManager] = None,
    httpx_client: Optional[httpx.AsyncClient] = None,
    count_tokens: Callable[[str, str], int] = default_count_tokens
) -> FastAPI:
    app = FastAPI()
    app.state.config_manager = config_manager or ConfigManager()
    app.state.httpx_client = httpx_client
    app.state.owns_httpx_client = httpx_client is None

    @app.on_event("startup")
    async def startup_event():
        app.state.config_manager.start_reloader_task()
        if app.state.httpx_client is None:
            app.state.httpx_client = httpx.AsyncClient()

    @app.on_event("shutdown")
    async def shutdown_event():
        if app.state.owns_httpx_client and app.state.httpx_client is not None:
            await app.state.httpx_client.aclose()

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError):
        return JSONResponse(status_code=exc.status_code, content=exc.detail)

    app.add_middleware(RequestLoggerMiddleware)

    @app.get("/health")
    async def health_check() -> Dict[str, Any]:
        return {"status": "ok"}

    @app.post("/v1/chat/completions")
    async def chat_completions(request: Request):
        return await relay_request(request, count_tokens)

    @app.post("/v1/completions")
    async def completions(request: Request):
        return await relay_request(request, count_tokens)

    return app


if __name__ == "__main__":
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
