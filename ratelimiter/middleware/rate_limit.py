"""Rate limiting middleware for ASGI applications.

Applies any cache-backed limiter to incoming requests. Limiters report cache
failures in the decision's ``error`` field; this middleware decides what such
a decision means for the request (fail closed or fail open).
"""

import hashlib
from typing import Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from ratelimiter.core.config import settings
from ratelimiter.core.logging import get_log_context, get_logger
from ratelimiter.limiters import RateLimitBackend, create_rate_limiter

logger = get_logger(__name__)

MAX_API_KEY_LENGTH = 512


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce rate limits on requests.

    Rate limits are applied per API key if available, otherwise per IP.
    """

    def __init__(
        self,
        app,
        limiter: Optional[RateLimitBackend] = None,
        fail_closed: Optional[bool] = None,
    ):
        """Initialize the middleware.

        Args:
            app: The wrapped ASGI application
            limiter: Limiter to apply (None = create_rate_limiter() from settings)
            fail_closed: Reject requests whose decision carries an error
                (None = settings.rate_limit_fail_closed)
        """
        super().__init__(app)
        self.limiter = limiter if limiter is not None else create_rate_limiter()
        self.fail_closed = (
            fail_closed if fail_closed is not None else settings.rate_limit_fail_closed
        )

    def _get_client_key(self, request: Request) -> Optional[str]:
        """Get the client id used as the limiter key for a request.

        API keys and IPs are hashed with SHA-256 (32 hex chars) so raw
        credentials never reach the cache.

        Returns:
            Client id string, or None if the API key is too long
        """
        auth = request.headers.get("Authorization", "")
        if auth.startswith("Bearer "):
            api_key = auth[7:].strip()
            if len(api_key) > MAX_API_KEY_LENGTH:
                return None
            key_hash = hashlib.sha256(api_key.encode()).hexdigest()[:32]
            return f"apikey:{key_hash}"

        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            client_ip = forwarded.split(",")[0].strip()
        else:
            client_ip = request.client.host if request.client else "unknown"

        ip_hash = hashlib.sha256(client_ip.encode()).hexdigest()[:32]
        return f"ip:{ip_hash}"

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request with rate limiting."""
        client_id = self._get_client_key(request)
        if client_id is None:
            return JSONResponse(
                status_code=400,
                content={
                    "error": "invalid_api_key",
                    "message": f"API key too long (max {MAX_API_KEY_LENGTH} characters)",
                },
            )

        decision = await self.limiter.limit(client_id)
        limit_header = str(self.limiter.capacity)
        context = get_log_context(
            client_id=client_id,
            algorithm=self.limiter.algorithm,
            path=request.url.path,
            method=request.method,
        )

        if decision.error is not None:
            if self.fail_closed:
                logger.warning(
                    f"Rate limiting fail-closed triggered: {decision.error}. Request denied.",
                    extra=context,
                )
                return JSONResponse(
                    status_code=503,
                    content={
                        "error": "rate_limit_unavailable",
                        "message": "Rate limiting is temporarily unavailable. Please try again later.",
                    },
                )
            logger.warning(
                f"Rate limiting fail-open triggered: {decision.error}. "
                "Request allowed without rate limit check.",
                extra=context,
            )
            return await call_next(request)

        if not decision.allow:
            logger.info("Rate limit exceeded", extra=context)
            return JSONResponse(
                status_code=429,
                content={
                    "error": "rate_limit_exceeded",
                    "message": "Rate limit exceeded. Please try again later.",
                },
                headers={
                    "X-RateLimit-Limit": limit_header,
                    "X-RateLimit-Remaining": "0",
                },
            )

        response = await call_next(request)

        response.headers["X-RateLimit-Limit"] = limit_header
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)

        return response
