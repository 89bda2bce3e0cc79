"""
Typed failures for the economy, messaging and call domains.

Policy violations carry a stable `code` and a message the end user can act on.
Upstream failures come from the AI edge functions and are never retried.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from core.logging import request_id_var

logger = logging.getLogger(__name__)


class PolicyViolation(Exception):
    """A rule blocked the operation. Nothing was written."""

    code = "policy_violation"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "This action is not allowed right now."

    def __init__(self, message=None, **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)


class AlreadyCheckedIn(PolicyViolation):
    code = "already_checked_in"
    status_code = status.HTTP_409_CONFLICT
    default_message = "You already checked in today. Come back tomorrow!"


class InsufficientBalance(PolicyViolation):
    code = "insufficient_balance"
    default_message = "You don't have enough balance for this."


class DailyLimitReached(PolicyViolation):
    code = "daily_limit_reached"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "You've reached today's limit. Come back tomorrow!"


class InvalidAmount(PolicyViolation):
    code = "invalid_amount"
    default_message = "Amount must be a positive whole number."


class SelfTransfer(PolicyViolation):
    code = "self_transfer"
    default_message = "You can't send a gift to yourself."


class ClaimNotEligible(PolicyViolation):
    code = "claim_not_eligible"
    default_message = "You need more green points before you can claim."


class InvalidCallTransition(PolicyViolation):
    code = "invalid_call_transition"
    status_code = status.HTTP_409_CONFLICT
    default_message = "This call can no longer be updated."


class UpstreamServiceError(Exception):
    """An AI edge function failed. The user has to retry by hand."""

    code = "ai_error"
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "The assistant is unavailable right now. Please try again."

    def __init__(self, message=None, *, upstream_status=None):
        self.message = message or self.default_message
        self.upstream_status = upstream_status
        super().__init__(self.message)


class UpstreamRateLimited(UpstreamServiceError):
    code = "rate_limit"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many requests. Please wait a moment and try again."


class UpstreamQuotaExhausted(UpstreamServiceError):
    code = "payment_required"
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    default_message = "AI credits are used up. Please try again later."


def _error_payload(code: str, message: str) -> dict:
    return {"error": code, "message": message, "request_id": request_id_var.get() or None}


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(PolicyViolation)
    async def policy_violation_handler(request: Request, exc: PolicyViolation):
        logger.info(
            "Policy violation | code=%s | path=%s | context=%s",
            exc.code,
            request.url.path,
            exc.context,
        )
        return JSONResponse(status_code=exc.status_code, content=_error_payload(exc.code, exc.message))

    @app.exception_handler(UpstreamServiceError)
    async def upstream_error_handler(request: Request, exc: UpstreamServiceError):
        logger.warning(
            "Upstream failure | code=%s | upstream_status=%s | path=%s",
            exc.code,
            exc.upstream_status,
            request.url.path,
        )
        return JSONResponse(status_code=exc.status_code, content=_error_payload(exc.code, exc.message))
