# alarm_backup/routers/gateway.py
"""
Catch-all HTTP surface. Converts each FastAPI request into a GatewayRequest
and lets the RequestRouter classify it, so the HTTP server and the Lambda
handler share one routing table.
"""

from fastapi import APIRouter, Depends, Request, Response
from starlette.concurrency import run_in_threadpool

from alarm_backup.factory import get_services
from alarm_backup.services.request_router import GatewayRequest, RequestRouter

router = APIRouter()

_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


def get_request_router() -> RequestRouter:
    """FastAPI dependency: overridden in tests."""
    return get_services().router


@router.api_route("/{path:path}", methods=_METHODS, include_in_schema=False)
async def gateway(path: str, request: Request, request_router: RequestRouter = Depends(get_request_router)):
    body = await request.body()
    gateway_request = GatewayRequest(
        method=request.method,
        path=request.url.path,
        headers=dict(request.headers),
        query=dict(request.query_params),
        body=body.decode("utf-8", errors="replace") if body else None,
    )
    # boto3 and httpx calls below are blocking
    result = await run_in_threadpool(request_router.dispatch, gateway_request)
    return Response(
        content=result.json_body,
        status_code=result.status_code,
        headers=result.headers,
        media_type=None,
    )
