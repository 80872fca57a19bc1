"""
Kubelet API routes.

The API server calls back into the node for container logs and exec. Exec
comes in two wire variants sharing one query encoding:

- WebSocket: one binary frame, a tag byte (1 = result, 2 = error) followed
  by the UTF-8 payload, then the socket is closed.
- POST: the raw result as the body with 200, or the error text with 500.
"""

import logging

from fastapi import APIRouter, Request, WebSocket
from fastapi.responses import PlainTextResponse, Response

from wasilet.exceptions import ProviderNotImplementedError, WasiletError
from wasilet.modules.exec import parse_exec_query
from wasilet.modules.provider import LogOptions, LogSender, Provider

logger = logging.getLogger("wasilet.api")

PING = "this is the Wasilet HTTP server"
LOGS_NOT_IMPLEMENTED = "Logs not implemented in provider."

RESULT_TAG = 1
ERROR_TAG = 2


def frame(tag: int, payload: str) -> bytes:
    """Build a tagged exec response frame."""
    return bytes([tag]) + payload.encode("utf-8")


def create_kubelet_router(provider: Provider) -> APIRouter:
    """
    Create the kubelet callback router with an injected provider.

    Args:
        provider: Backend that runs exec commands and returns logs

    Returns:
        FastAPI router with health, logs and exec endpoints
    """
    router = APIRouter(tags=["kubelet"])

    @router.get("/", response_class=PlainTextResponse)
    @router.get("/healthz", response_class=PlainTextResponse)
    async def ping() -> str:
        """Fixed greeting for kubelet health checks."""
        return PING

    @router.get("/containerLogs/{namespace}/{pod}/{container}")
    async def container_logs(namespace: str, pod: str, container: str, request: Request):
        """
        Return the captured output of a container.

        Returns:
            200: Output as plain text
            400: Malformed log options
            501: The provider does not serve logs
            500: Any other provider error
        """
        options = LogOptions.model_validate(dict(request.query_params))
        sender = LogSender(options)
        try:
            await provider.logs(namespace, pod, container, sender)
        except WasiletError as e:
            logger.error("Error fetching logs for %s/%s/%s: %s", namespace, pod, container, e)
            if isinstance(e, ProviderNotImplementedError):
                return PlainTextResponse(LOGS_NOT_IMPLEMENTED, status_code=501)
            return PlainTextResponse(f"Server error: {e}", status_code=500)
        return Response(content=sender.body(), media_type="text/plain")

    @router.websocket("/exec/{namespace}/{pod}/{container}")
    async def exec_stream(websocket: WebSocket, namespace: str, pod: str, container: str):
        """Run an exec command and answer with a single tagged frame."""
        await websocket.accept()
        try:
            options = parse_exec_query(websocket.url.query)
            result = await provider.exec(namespace, pod, container, options)
        except WasiletError as e:
            logger.info("Exec failed in %s/%s/%s: %s", namespace, pod, container, e)
            await websocket.send_bytes(frame(ERROR_TAG, str(e)))
        else:
            await websocket.send_bytes(frame(RESULT_TAG, result))
        await websocket.close()

    @router.post("/exec/{namespace}/{pod}/{container}")
    async def exec_unary(namespace: str, pod: str, container: str, request: Request):
        """
        Run an exec command and return its output.

        Returns:
            200: Raw command output
            500: The query could not be parsed or the command failed
        """
        try:
            options = parse_exec_query(request.url.query)
            result = await provider.exec(namespace, pod, container, options)
        except WasiletError as e:
            logger.info("Exec failed in %s/%s/%s: %s", namespace, pod, container, e)
            return PlainTextResponse(str(e), status_code=500)
        return Response(content=result.encode("utf-8"), media_type="text/plain")

    return router
