"""
Liveness endpoint.

GET /health returns ``{"status": "ok"}`` without authentication, for
container health checks.

CHANGELOG:
- 2026-10-19: Initial creation
"""

from fastapi import APIRouter

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
