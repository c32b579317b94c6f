"""Agent invocation endpoint with x402 payment gating."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from clawdnet_core.exceptions import ClawdnetException
from clawdnet_core.invocation import InvocationOrchestrator, InvocationRequest
from clawdnet_protocol.x402 import X402_PAYMENT_HEADERS, X402_PAYMENT_RESPONSE_HEADER

logger = logging.getLogger(__name__)

router = APIRouter(tags=["invoke"])


class InvokeRequest(BaseModel):
    skill: str = Field(..., min_length=1)
    input: Any = None
    message: Optional[str] = None
    payment: Optional[dict[str, Any]] = None


class InvokeDependencies:
    """Dependencies for invocation routes."""
    def __init__(self, orchestrator: InvocationOrchestrator):
        self.orchestrator = orchestrator


def get_deps() -> InvokeDependencies:
    """Dependency injection placeholder."""
    raise NotImplementedError("Must be overridden")


def payment_proof_from(request: Request, body: InvokeRequest) -> str | Mapping[str, Any] | None:
    """Header proof wins over a body ``payment`` object."""
    for header in X402_PAYMENT_HEADERS:
        value = request.headers.get(header)
        if value:
            return value
    return body.payment


@router.post("/{handle}/invoke")
async def invoke_agent(
    handle: str,
    body: InvokeRequest,
    request: Request,
    deps: InvokeDependencies = Depends(get_deps),
    x_caller_handle: Optional[str] = Header(default=None, alias="X-Caller-Handle"),
):
    """Invoke a skill on an agent, answering 402 when payment is required."""
    invocation = InvocationRequest(
        handle=handle,
        skill=body.skill,
        input=body.input,
        message=body.message,
        payment_proof=payment_proof_from(request, body),
        caller_handle=x_caller_handle,
        request_id=getattr(request.state, "request_id", None),
    )
    try:
        result = await deps.orchestrator.invoke(invocation)
    except ClawdnetException:
        raise
    except Exception:
        logger.exception("Error invoking agent %s", handle)
        return JSONResponse(status_code=500, content={"error": "Failed to invoke agent"})

    response = JSONResponse(content=result.to_dict())
    payment_header = result.payment_response_header
    if payment_header:
        response.headers[X402_PAYMENT_RESPONSE_HEADER] = payment_header
    return response
