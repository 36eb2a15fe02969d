# =============================================================================
# app/middleware.py - Fault Translator Middleware
# =============================================================================
# Wraps the whole downstream application (routing, handlers, response
# writing) and gives callers one failure contract:
#
#   normal return            -> response untouched
#   fault, nothing sent yet  -> JSON {"message": ...} with 400/500, one event
#   fault, response started  -> one Warning event, fault re-raised
#   request cancelled        -> one Warning event, no response, re-raised
#
# Written as a plain ASGI middleware rather than BaseHTTPMiddleware so it
# can see exactly when `http.response.start` goes out, and so faults raised
# after a suspension point are caught the same way as synchronous ones.
# =============================================================================

import asyncio
import time

from starlette.datastructures import Headers, MutableHeaders
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.exceptions import FAULT_POLICIES, FaultKind, classify, error_body
from core.models.log_event import LogEvent
from core.services.enrichment import new_correlation_id, request_context
from core.services.log_router import LogRouter

CORRELATION_HEADER = "X-Request-ID"


class FaultTranslatorMiddleware:
    """
    Converts unhandled faults into uniform JSON error responses.

    Also binds the request context (correlation id, method, path) used to
    enrich every event logged while the request is being handled.

    Usage:
        app.add_middleware(FaultTranslatorMiddleware, router=log_router)
    """

    category = "app.middleware.FaultTranslatorMiddleware"

    def __init__(self, app: ASGIApp, router: LogRouter):
        self.app = app
        self.router = router
        self.log = router.get_logger(self.category)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "")
        path = scope.get("path", "")
        correlation_id = Headers(scope=scope).get(CORRELATION_HEADER) or new_correlation_id()
        response_started = False
        status_code: int | None = None

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started, status_code
            if message["type"] == "http.response.start":
                response_started = True
                status_code = message["status"]
                message.setdefault("headers", [])
                MutableHeaders(scope=message).append(CORRELATION_HEADER, correlation_id)
            await send(message)

        with request_context(
            correlation_id=correlation_id,
            request_method=method,
            request_path=path,
        ):
            self.log.info("HTTP {method} {path} received", method=method, path=path)
            started_at = time.perf_counter()

            try:
                await self.app(scope, receive, send_wrapper)

            except asyncio.CancelledError as exc:
                if response_started:
                    template = "HTTP {method} {path} was cancelled after the response started with {status_code}"
                else:
                    template = "HTTP {method} {path} was cancelled before a response could be sent"
                self._log_fault(
                    FaultKind.CANCELLED,
                    template,
                    exc,
                    method=method,
                    path=path,
                    response_started=response_started,
                    status_code=status_code,
                )
                raise

            except Exception as exc:
                if response_started:
                    self._log_fault(
                        FaultKind.RESPONSE_STARTED,
                        "HTTP {method} {path} failed after the response started; "
                        "the response cannot be rewritten",
                        exc,
                        method=method,
                        path=path,
                        status_code=status_code,
                    )
                    raise

                kind = classify(exc)
                policy = FAULT_POLICIES[kind]
                self._log_fault(
                    kind,
                    "HTTP {method} {path} failed: {error}",
                    exc,
                    method=method,
                    path=path,
                    error=str(exc),
                    status_code=policy.status_code,
                )
                response = JSONResponse(status_code=policy.status_code, content=error_body(exc))
                await response(scope, receive, send_wrapper)

            else:
                self.log.info(
                    "HTTP {method} {path} responded {status_code} in {elapsed_ms:.1f} ms",
                    method=method,
                    path=path,
                    status_code=status_code,
                    elapsed_ms=(time.perf_counter() - started_at) * 1000,
                )

    def _log_fault(self, kind: FaultKind, template: str, exc: BaseException, **properties) -> None:
        """Emit the single event every fault path produces."""
        self.router.emit(LogEvent(
            level=FAULT_POLICIES[kind].severity,
            source_category=self.category,
            message_template=template,
            properties={"fault_kind": kind.value, **properties},
            exception=exc,
        ))
