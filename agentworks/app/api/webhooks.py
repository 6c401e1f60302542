"""
Inbound webhook endpoint.

POST /api/v1/webhooks/{provider}

    200  {"status": "ok", "provider": ..., "event_type": ...}
    400  body could not be decoded by the integration
    401  verification failed (payload never reaches the integration)
    404  no integration configured for the provider
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request

from agentworks.app.dependencies import Runtime, get_runtime
from agentworks.errors import IntegrationNotConfiguredError, WebhookVerificationError
from agentworks.integrations import WebhookPayload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/{provider}")
async def receive_webhook(
    provider: str,
    request: Request,
    runtime: Runtime = Depends(get_runtime),
) -> dict[str, Any]:
    payload = WebhookPayload(
        provider=provider,
        body=await request.body(),
        headers=dict(request.headers),
    )

    try:
        outcome = await runtime.webhooks.handle(payload)
    except IntegrationNotConfiguredError:
        raise HTTPException(status_code=404, detail=f"No integration configured for '{provider}'")
    except WebhookVerificationError:
        raise HTTPException(status_code=401, detail="Webhook verification failed")
    except ValueError as e:
        logger.warning(f"[webhooks] Malformed {provider} payload: {e}")
        raise HTTPException(status_code=400, detail="Malformed webhook payload")

    return {"status": "ok", "provider": provider, "event_type": outcome.event_type}
