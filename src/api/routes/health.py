"""Health check routes."""

from fastapi import APIRouter

from src.api.dependencies import Explainer

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health() -> dict:
    """Health check endpoint."""
    return {"status": True}


@router.get("/llm")
async def llm_status(explainer: Explainer) -> dict:
    """Explanation provider availability and rate-limit state."""
    return {
        "enabled": explainer.client.enabled,
        **explainer.rate_limiter.snapshot(),
    }
