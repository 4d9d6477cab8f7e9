"""
FastAPI Application Entry Point for PR Review Bot.

Exposes the GitHub webhook endpoint and its liveness check.
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Header, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from pr_review_bot import __version__
from pr_review_bot.config import Settings, get_settings, setup_logging
from pr_review_bot.models.schemas import WebhookAck
from pr_review_bot.services.context_assembler import ContextAssembler
from pr_review_bot.services.dispatcher import WebhookDispatcher
from pr_review_bot.services.github_app import GitHubApp
from pr_review_bot.services.review_generator import ReviewGenerator
from pr_review_bot.services.review_orchestrator import ReviewOrchestrator
from pr_review_bot.services.review_publisher import ReviewPublisher

logger = logging.getLogger("pr_review_bot.main")


def build_dispatcher(settings: Settings) -> WebhookDispatcher:
    """
    Wire the default pipeline from settings.

    Args:
        settings: Application settings.

    Returns:
        Dispatcher backed by the OpenAI generator and the GitHub publisher.
    """
    generator = ReviewGenerator.from_settings(settings)
    publisher = ReviewPublisher()
    orchestrator = ReviewOrchestrator(
        generate_review=generator.generate_review,
        submit_review=publisher.submit_review,
        assembler=ContextAssembler(max_concurrency=settings.max_concurrent_fetches),
        deduplicate_in_flight=settings.deduplicate_in_flight,
    )
    return WebhookDispatcher(
        github_app=GitHubApp.from_settings(settings),
        orchestrator=orchestrator,
        include_full_context=settings.include_full_context,
    )


def create_app(
    settings: Optional[Settings] = None,
    dispatcher: Optional[WebhookDispatcher] = None,
) -> FastAPI:
    """
    Create the webhook application.

    Args:
        settings: Application settings. Uses cached settings if not provided.
        dispatcher: Webhook dispatcher. Built from settings if not provided.

    Returns:
        Configured FastAPI application.
    """
    settings = settings or get_settings()
    dispatcher = dispatcher or build_dispatcher(settings)
    webhook_path = settings.webhook_path

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Log startup and let in-flight reviews finish on shutdown."""
        logger.info(f"Server is listening on http://{settings.host}:{settings.port}")
        logger.info(f"GitHub App configured: {settings.is_github_app_configured}")
        logger.info(f"OpenAI configured: {settings.is_openai_configured}")

        yield

        logger.info(f"Shutting down, waiting for {dispatcher.pending} review(s)...")
        await dispatcher.drain()

    app = FastAPI(
        title="PR Review Bot",
        description="GitHub App reviewing newly opened pull requests with full file context.",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    # Paths are matched exactly; "/api/review/" is a 404, not a redirect
    app.router.redirect_slashes = False
    app.state.settings = settings
    app.state.dispatcher = dispatcher

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log every incoming request."""
        logger.info(f"Received request: {request.method} {request.url.path}")
        return await call_next(request)

    @app.exception_handler(StarletteHTTPException)
    async def not_found_handler(request: Request, exc: StarletteHTTPException):
        """Answer unknown paths and methods with a plain 404."""
        if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
            logger.info(f"404 Not Found: {request.method} {request.url.path}")
            return PlainTextResponse("Not Found", status_code=status.HTTP_404_NOT_FOUND)
        return PlainTextResponse(str(exc.detail), status_code=exc.status_code)

    @app.get(webhook_path, response_class=PlainTextResponse, tags=["Webhook"])
    async def webhook_liveness() -> str:
        """Confirm the webhook endpoint is reachable."""
        logger.info(f"GET {webhook_path} endpoint hit!")
        return f"GET {webhook_path} is working!"

    @app.post(webhook_path, tags=["Webhook"])
    async def receive_webhook(
        request: Request,
        x_github_event: Optional[str] = Header(None),
        x_github_delivery: Optional[str] = Header(None),
        x_hub_signature_256: Optional[str] = Header(None),
    ):
        """
        Receive a GitHub webhook delivery.

        The review run is scheduled in the background; the response never
        reflects its outcome.
        """
        logger.info(f"POST {webhook_path} endpoint hit!")
        body = await request.body()

        if not dispatcher.verify_signature(body, x_hub_signature_256):
            logger.warning(f"Invalid webhook signature for delivery {x_github_delivery}")
            return PlainTextResponse("Invalid signature", status_code=status.HTTP_401_UNAUTHORIZED)

        if not x_github_event:
            return PlainTextResponse(
                "Missing X-GitHub-Event header", status_code=status.HTTP_400_BAD_REQUEST
            )

        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return PlainTextResponse("Invalid JSON payload", status_code=status.HTTP_400_BAD_REQUEST)

        if not isinstance(payload, dict):
            return PlainTextResponse("Invalid JSON payload", status_code=status.HTTP_400_BAD_REQUEST)

        try:
            scheduled = dispatcher.dispatch(x_github_event, payload, x_github_delivery)
        except ValueError as e:
            logger.warning(f"Rejected malformed {x_github_event} delivery {x_github_delivery}: {e}")
            return PlainTextResponse("Malformed event payload", status_code=status.HTTP_400_BAD_REQUEST)

        ack = WebhookAck(
            status="accepted" if scheduled else "ignored",
            event=x_github_event,
            delivery=x_github_delivery,
        )
        return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=ack.model_dump())

    return app


def run() -> None:
    """Run the webhook server with uvicorn."""
    import uvicorn

    settings = get_settings()
    setup_logging(settings)
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
