"""
FastAPI proxy in front of the generative model.
Admits requests per caller, validates the question, and forwards it through
the retrying upstream invoker.
"""

import logging
import math
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..config import AppConfig
from ..errors import RateLimitExceeded, UpstreamError, UpstreamRateLimited, ValidationError
from .prompts import build_prompt
from .rate_limiter import FixedWindowRateLimiter
from .upstream import GeminiClient, Generate, RetryingInvoker

logger = logging.getLogger(__name__)


class ApiServer:
    """
    HTTP API server exposing ``/api/ask`` and ``/api/health``.
    Owns the rate limiter state and the upstream client for its lifetime.
    """

    def __init__(
        self,
        config: AppConfig,
        generate: Optional[Generate] = None,
        limiter: Optional[FixedWindowRateLimiter] = None,
    ):
        self.config = config
        self._upstream: Optional[GeminiClient] = None
        if generate is None:
            self._upstream = GeminiClient(config.upstream)
            generate = self._upstream.generate
        self.invoker = RetryingInvoker.from_config(generate, config.upstream)
        self.limiter = limiter or FixedWindowRateLimiter(config.rate_limit)

        self.app = FastAPI(
            title=config.server.service_name,
            docs_url=None,
            redoc_url=None,
            lifespan=self._lifespan,
        )
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=config.server.cors_origins,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        self._setup_error_handlers()
        self._setup_routes()

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        """Open the upstream client for as long as the app is serving."""
        if self._upstream:
            await self._upstream.initialize()
        try:
            yield
        finally:
            if self._upstream:
                await self._upstream.close()

    def _setup_routes(self):
        """Configure FastAPI routes."""

        @self.app.post("/api/ask")
        async def ask(request: Request):
            self._admit(request)
            question = await self._read_question(request)
            prompt = build_prompt(question, self.config.persona)
            try:
                answer = await self.invoker.invoke(prompt)
            except UpstreamRateLimited:
                return JSONResponse(
                    status_code=429,
                    content={"error": "AI service rate limit exceeded. Please try again later."},
                )
            except UpstreamError as e:
                logger.error("Error calling upstream model: %s", e)
                return JSONResponse(
                    status_code=500,
                    content={"error": "Failed to generate response. Please try again."},
                )
            return {"response": answer}

        @self.app.get("/api/health")
        async def health():
            return {
                "status": "OK",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "service": self.config.server.service_name,
            }

    def _setup_error_handlers(self):
        """Turn every failure into a JSON ``{error}`` body."""

        @self.app.exception_handler(RateLimitExceeded)
        async def rate_limited(request: Request, exc: RateLimitExceeded):
            return JSONResponse(
                status_code=429,
                content={"error": "Too many requests. Please try again later."},
                headers={"Retry-After": str(math.ceil(exc.retry_after))},
            )

        @self.app.exception_handler(ValidationError)
        async def invalid_request(request: Request, exc: ValidationError):
            return JSONResponse(status_code=400, content={"error": str(exc)})

        @self.app.exception_handler(StarletteHTTPException)
        async def http_error(request: Request, exc: StarletteHTTPException):
            # A known path with an unsupported method is reported as unmatched.
            if exc.status_code in (404, 405):
                return JSONResponse(status_code=404, content={"error": "Endpoint not found"})
            return JSONResponse(
                status_code=exc.status_code,
                content={"error": str(exc.detail)},
                headers=getattr(exc, "headers", None),
            )

        @self.app.exception_handler(Exception)
        async def unhandled(request: Request, exc: Exception):
            logger.exception("Unhandled error on %s", request.url.path)
            return JSONResponse(status_code=500, content={"error": "Internal server error"})

    def _admit(self, request: Request):
        """Raise RateLimitExceeded when the caller is over its allowance."""
        caller = request.client.host if request.client else "unknown"
        allowed, retry_after = self.limiter.check(caller)
        if not allowed:
            raise RateLimitExceeded(caller, retry_after)

    async def _read_question(self, request: Request) -> str:
        """Extract and validate the ``question`` field of the JSON body."""
        try:
            body = await request.json()
        except ValueError:
            raise ValidationError("Request body must be valid JSON")

        question = body.get("question") if isinstance(body, dict) else None
        if not isinstance(question, str) or not question.strip():
            raise ValidationError("Question is required and must be a string")

        limit = self.config.server.max_question_length
        if len(question) > limit:
            raise ValidationError(f"Question is too long (max {limit} characters)")
        return question

    async def start(self):
        """Start the uvicorn server; the app lifespan opens the upstream client."""
        import uvicorn

        config = uvicorn.Config(
            self.app,
            host=self.config.server.host,
            port=self.config.server.port,
            log_level="warning",
            access_log=False,
        )
        server = uvicorn.Server(config)
        logger.info(
            "🚀 Voice Bot API server starting on %s:%d",
            self.config.server.host, self.config.server.port
        )
        logger.info(
            "📍 Health check: http://localhost:%d/api/health", self.config.server.port
        )
        await server.serve()

    async def stop(self):
        """Release the upstream client if serving was interrupted before shutdown."""
        if self._upstream:
            await self._upstream.close()
        logger.info("API server stopped")


def create_app(
    config: AppConfig,
    generate: Optional[Generate] = None,
    limiter: Optional[FixedWindowRateLimiter] = None,
) -> FastAPI:
    """Build the FastAPI application."""
    return ApiServer(config, generate, limiter).app
