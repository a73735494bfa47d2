from __future__ import annotations

from fastapi import APIRouter, Request

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(request: Request) -> dict:
    """Liveness probe.

    Returns:
        dict: ``status`` set to "ok" and the number of tracked rate limit counters.
    """

    store = request.app.state.rate_limit_store
    return {"status": "ok", "counters": len(store)}
