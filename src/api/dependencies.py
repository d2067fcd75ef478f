"""
API Dependencies.

Shared dependencies for API routes. Services are built once in the app
lifespan and stored on app.state.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from src.matching.explainer import ExplanationGenerator
from src.matching.orchestrator import MatchOrchestrator


def _state(request: Request, name: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return service


def get_orchestrator(request: Request) -> MatchOrchestrator:
    """Get the match orchestrator built at startup."""
    return _state(request, "orchestrator")


def get_explainer(request: Request) -> ExplanationGenerator:
    """Get the explanation generator built at startup."""
    return _state(request, "explainer")


# Type aliases for dependency injection
Orchestrator = Annotated[MatchOrchestrator, Depends(get_orchestrator)]
Explainer = Annotated[ExplanationGenerator, Depends(get_explainer)]
