"""
FastAPI webhook server for receiving alert notifications.

This module implements the HTTP surface: a liveness probe and the webhook
endpoint that hands each notification to the lifecycle reconciler, mapping
validation failures to 400 and persistence / upstream failures to 500.
"""

import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from . import __version__
from .config import Config, config as default_config
from .exceptions import AlertTicketerError, AlertValidationError, UpstreamError
from .models import WebhookPayload
from .notifier import SmtpNotificationSink
from .reconciler import LifecycleReconciler, TicketPolicy
from .store import IdentityStore
from .tickets import AzureDevOpsBackend


logger = structlog.get_logger(__name__)


def _timestamp() -> str:
    return datetime.fromtimestamp(time.time()).isoformat() + "Z"


def build_reconciler(config: Config) -> LifecycleReconciler:
    """Wire the identity store, email sink and Azure DevOps backend from configuration."""
    store = IdentityStore(
        config.counter_path,
        config.mapping_path,
        prefix=config.alert_id_prefix,
        initial_counter=config.initial_counter,
    )
    return LifecycleReconciler(
        store=store,
        notifier=SmtpNotificationSink.from_config(config),
        tickets=AzureDevOpsBackend.from_config(config),
        recipients=config.email_recipients,
        from_address=config.email_from,
        footer_text=config.email_footer_text,
        logo_url=config.email_logo_url,
        policy=TicketPolicy(config.ticket_policy),
    )


def _error_response(status_code: int, error: str, correlation_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "correlation_id": correlation_id,
            "timestamp": _timestamp()
        }
    )


def create_app(
    reconciler: Optional[LifecycleReconciler] = None,
    config: Config = default_config,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        reconciler: Pre-built reconciler; when omitted one is wired from
            configuration on startup
        config: Application configuration
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Wire collaborators from configuration unless already provided, close them on shutdown."""
        if app.state.reconciler is None:
            app.state.reconciler = build_reconciler(config)
            logger.info(
                "Reconciler initialized",
                state_dir=config.state_dir,
                ticket_policy=config.ticket_policy,
                ado_organization=config.ado_organization,
                ado_project=config.ado_project,
                recipient_count=len(config.email_recipients)
            )

        yield

        current = app.state.reconciler
        if current is not None and isinstance(current.tickets, AzureDevOpsBackend):
            await current.tickets.aclose()
            logger.info("Azure DevOps client closed")

    app = FastAPI(
        title="Alert Ticketer",
        description="Alert webhook relay with stable alert IDs, email notification and Azure DevOps work items",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.reconciler = reconciler

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        current = app.state.reconciler
        return {
            "status": "healthy",
            "timestamp": _timestamp(),
            "service": "alert-ticketer",
            "version": __version__,
            "known_alerts": len(current.store) if current else 0,
            "alert_id_counter": current.store.counter if current else None
        }

    @app.get("/webhook", response_class=PlainTextResponse)
    async def webhook_probe():
        """Liveness probe used by alerting systems when testing the contact point."""
        logger.info("GET request received")
        return "GET Reached"

    @app.post("/webhook")
    async def receive_webhook(request: Request):
        """
        Receive an alert notification and reconcile its lifecycle.

        This endpoint:
        1. Validates the payload (title, message and an alert key are required)
        2. Resolves or allocates the stable alert ID
        3. Resolved alerts close their open work items
        4. Any other status sends the email and creates or updates a work item
        """
        correlation_id = str(uuid.uuid4())

        try:
            body = await request.json()
        except ValueError:
            logger.warning("Rejected webhook with invalid JSON", correlation_id=correlation_id)
            return _error_response(400, "Invalid JSON body", correlation_id)

        if not isinstance(body, dict):
            return _error_response(400, "Invalid payload", correlation_id)

        try:
            payload = WebhookPayload.model_validate(body)
        except ValidationError as e:
            logger.warning("Rejected malformed webhook", correlation_id=correlation_id, error=str(e))
            return _error_response(400, "Invalid payload", correlation_id)

        logger.info(
            "Received alert webhook",
            correlation_id=correlation_id,
            group_key=payload.groupKey,
            status=payload.effective_status,
            alert_count=len(payload.alerts)
        )

        try:
            outcome = await request.app.state.reconciler.handle(payload)
        except AlertValidationError as e:
            logger.warning("Rejected invalid webhook", correlation_id=correlation_id, reason=str(e))
            return _error_response(400, str(e), correlation_id)
        except AlertTicketerError as e:
            logger.error(
                "Failed to process webhook",
                correlation_id=correlation_id,
                error=str(e),
                error_type=type(e).__name__,
                service=e.service if isinstance(e, UpstreamError) else None,
                exc_info=True
            )
            return _error_response(500, "Error processing webhook", correlation_id)

        logger.info(
            "Webhook processing completed",
            correlation_id=correlation_id,
            alert_id=outcome.alert_id,
            action=outcome.action.value,
            ticket_count=len(outcome.tickets)
        )

        return {
            "correlation_id": correlation_id,
            "alert_id": outcome.alert_id,
            "action": outcome.action.value,
            "notified": outcome.notified,
            "work_item_ids": [ticket.id for ticket in outcome.tickets],
            "message": outcome.message,
            "timestamp": _timestamp()
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler for unhandled errors."""
        correlation_id = str(uuid.uuid4())

        logger.error(
            "Unhandled exception in webhook server",
            correlation_id=correlation_id,
            url=str(request.url),
            method=request.method,
            error=str(exc),
            exc_info=True
        )

        return _error_response(500, "Internal server error", correlation_id)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    from .logging_setup import configure_logging

    configure_logging(default_config.log_level)
    uvicorn.run(
        "alert_ticketer.webhook:app",
        host=default_config.host,
        port=default_config.port,
        log_level=default_config.log_level.lower(),
        reload=default_config.is_development
    )
