from fastapi import APIRouter

router = APIRouter(prefix="/ping", tags=["health"])


@router.get("", summary="Public health check")
async def ping() -> dict[str, dict[str, str]]:
    return {"data": {"status": "ok"}}
