import logging
import time
import uuid

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from starlette.middleware.base import BaseHTTPMiddleware

from core.config import APP_NAME, APP_VERSION, ENVIRONMENT, LOG_LEVEL, SCHEDULER_ENABLED, TESTING
from core.errors import install_error_handlers
from core.logging import configure_logging, request_id_var
from routers.assistant.api import router as assistant_router
from routers.calls.api import router as calls_router
from routers.dependencies import validate_access_token
from routers.messaging.api import router as messaging_router
from routers.notifications.api import router as notifications_router
from routers.rewards.api import router as rewards_router
from routers.wallet.api import router as wallet_router

log_level = configure_logging(environment=ENVIRONMENT, log_level=LOG_LEVEL)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title=APP_NAME,
    description="Backend API for Green Earth - rewards, wallet, messaging, calls and the waste scanner",
    version=APP_VERSION,
    swagger_ui_parameters={
        "docExpansion": "none",
        "displayRequestDuration": True,
        "filter": True,
        "deepLinking": True,
        "defaultModelsExpandDepth": 2,
        "defaultModelExpandDepth": 2,
    },
)


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title=APP_NAME,
        version=APP_VERSION,
        description="""
        Green Earth Backend API

        ## Authentication
        Every endpoint except `/` and `/health` requires a Supabase access token.

        Format: `Authorization: Bearer <your_access_token>`
        """,
        routes=app.routes,
    )
    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "bearerAuth": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
        }
    }
    openapi_schema["security"] = [{"bearerAuth": []}]
    app.openapi_schema = openapi_schema
    return openapi_schema


app.openapi = custom_openapi


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())[:8]
        token = request_id_var.set(request_id)
        request.state.request_id = request_id

        start_time = time.time()

        user_id = None
        auth_header = request.headers.get("authorization")
        if auth_header and " " in auth_header:
            try:
                claims = validate_access_token(auth_header.split(" ", 1)[1].strip())
                user_id = claims.get("sub", "")[:8]
            except HTTPException:
                pass

        query_str = f"?{request.url.query}" if request.query_params else ""
        logger.info(
            f"REQUEST | method={request.method} | path={request.url.path}{query_str} | "
            f"user_id={user_id or 'anonymous'} | ip={request.client.host if request.client else 'unknown'}"
        )

        try:
            response = await call_next(request)
            process_time = time.time() - start_time
            logger.info(
                f"RESPONSE | method={request.method} | path={request.url.path} | "
                f"status={response.status_code} | time={process_time:.3f}s | user_id={user_id or 'anonymous'}"
            )
            response.headers["X-Request-ID"] = request_id
            return response
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                f"ERROR | method={request.method} | path={request.url.path} | "
                f"error={type(e).__name__}: {str(e)} | time={process_time:.3f}s | user_id={user_id or 'anonymous'}",
                exc_info=True,
            )
            raise
        finally:
            request_id_var.reset(token)


# Add request logging middleware (before CORS so it logs all requests)
app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*", "Authorization", "Content-Type", "Accept", "Origin", "X-Requested-With"],
)

install_error_handlers(app)

# NOTE: /assistant/chat is an SSE stream; do not add compression middleware that touches text/event-stream.

app.include_router(rewards_router)        # Check-in, daily limits, content views
app.include_router(wallet_router)         # Gifts, shares, NFT rewards, claims, history
app.include_router(messaging_router)      # Conversations, receipts, typing, reactions
app.include_router(calls_router)          # Call state, call log, recordings
app.include_router(assistant_router)      # Waste scanner and Green Buddy chat
app.include_router(notifications_router)  # Notifications and Pusher channel auth


@app.on_event("startup")
async def startup_event():
    logger.info(f"{APP_NAME} started successfully")

    from fastapi.routing import APIRoute

    for route in app.routes:
        if isinstance(route, APIRoute):
            logger.debug(f"{','.join(sorted(route.methods)):8} {route.path}")

    if SCHEDULER_ENABLED and not TESTING:
        from scheduler import start_scheduler

        start_scheduler()
        logger.info("Background scheduler started")
    else:
        logger.info("Background scheduler disabled")


@app.on_event("shutdown")
async def shutdown_event():
    if SCHEDULER_ENABLED and not TESTING:
        from scheduler import stop_scheduler

        stop_scheduler()


@app.get("/")
async def read_root():
    """
    Root endpoint to check if the server is running.
    Returns basic API information.
    """
    return {
        "status": "online",
        "message": f"Welcome to {APP_NAME}!",
        "version": APP_VERSION,
        "environment": ENVIRONMENT,
    }


@app.get("/health")
async def health_check():
    """
    Health check endpoint for monitoring.
    """
    return {"status": "healthy"}
