"""
Monitor API routes for the Interview Prep LLM Engine.
Provides the liveness probe used by load balancers.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter

router = APIRouter(prefix="/api/v1", tags=["monitor"])


@router.get("/health")
async def health() -> Dict[str, Any]:
    """
    Liveness probe.

    Returns:
        {
            "status": "up",
            "timestamp": str (ISO timestamp, UTC)
        }
    """
    return {
        "status": "up",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
