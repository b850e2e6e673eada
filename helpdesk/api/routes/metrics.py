from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from helpdesk.dependencies.auth import AdminUser
from helpdesk.metrics import PrometheusExporter, metrics_registry

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get("", response_class=PlainTextResponse, summary="Prometheus text exposition")
async def metrics(_: AdminUser) -> PlainTextResponse:
    payload = PrometheusExporter(metrics_registry).build_payload()
    return PlainTextResponse(payload, media_type="text/plain; version=0.0.4")
