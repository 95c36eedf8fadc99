"""
Connection API routes — list providers, authorize URL, OAuth callback.

Route prefix: /api/v1/connections
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Request, Response, status

from auth.dependencies import get_current_user_id
from connections.models import ConnectionCallbackSchema
from connections.orchestrator import CallbackOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(tags=["connections"])


def get_orchestrator(request: Request) -> CallbackOrchestrator:
    return request.app.state.orchestrator


@router.get("")
async def list_connections(
    orchestrator: CallbackOrchestrator = Depends(get_orchestrator),
) -> List[Dict[str, Any]]:
    """Known connections and whether each is enabled."""
    return orchestrator.registry.list_providers()


@router.get("/{provider_id}/authorize")
async def authorize(
    provider_id: str,
    user_id: str = Depends(get_current_user_id),
    orchestrator: CallbackOrchestrator = Depends(get_orchestrator),
) -> Dict[str, str]:
    """
    Return the provider's authorization URL for the current user.

    The frontend redirects the user there; the provider sends them back to
    ``{public_base_url}/connections/{provider_id}/callback``.
    """
    connection = orchestrator.resolve(provider_id)
    return {"url": connection.build_authorization_url(user_id)}


@router.post("/{provider_id}/callback", status_code=status.HTTP_204_NO_CONTENT)
async def callback(
    provider_id: str,
    body: ConnectionCallbackSchema,
    user_id: str = Depends(get_current_user_id),
    orchestrator: CallbackOrchestrator = Depends(get_orchestrator),
) -> Response:
    """
    Complete a connection for the current user.  The state must have been
    issued to that user.  Answers 204 whether the link is new or already
    existed.
    """
    outcome = await orchestrator.on_callback(provider_id, body, user_id)
    logger.debug("Callback for %s done (created=%s)", provider_id, outcome.created)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
