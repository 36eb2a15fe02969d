# =============================================================================
# tests/test_fault_translator.py - Fault Translator Tests
# =============================================================================
# This module contains tests for:
# - The fault classification table
# - FaultTranslatorMiddleware on raw ASGI apps:
#   success passthrough, translated faults, faults after the response
#   started, and cancellation
# =============================================================================

import asyncio

import pytest
from starlette.responses import PlainTextResponse
from starlette.testclient import TestClient

from app.exceptions import (
    FAULT_POLICIES,
    FaultKind,
    ForecastApiException,
    InvalidArgumentError,
    InvalidOperationError,
    classify,
    error_body,
)
from app.middleware import FaultTranslatorMiddleware
from core.models.log_event import Severity


def raising_app(exc: Exception):
    """ASGI app that fails before sending anything."""
    async def app(scope, receive, send):
        await asyncio.sleep(0)
        raise exc
    return app


def partial_response_app(exc: Exception):
    """ASGI app that starts a streamed response, then fails."""
    async def app(scope, receive, send):
        await send({
            "type": "http.response.start",
            "status": 200,
            "headers": [(b"content-type", b"text/plain")],
        })
        await send({"type": "http.response.body", "body": b"partial", "more_body": True})
        raise exc
    return app


def fault_events(memory_sink):
    return [e for e in memory_sink.events if e.level >= Severity.WARNING]


# =============================================================================
# Classification
# =============================================================================

class TestClassification:
    """Tests for classify and the policy table."""

    @pytest.mark.parametrize("exc,kind", [
        (InvalidOperationError("not now"), FaultKind.INVALID_OPERATION),
        (InvalidArgumentError("bad input"), FaultKind.INVALID_ARGUMENT),
        (ValueError("bad value"), FaultKind.INVALID_ARGUMENT),
        (RuntimeError("boom"), FaultKind.UNCLASSIFIED),
        (KeyError("x"), FaultKind.UNCLASSIFIED),
        (ForecastApiException("generic"), FaultKind.UNCLASSIFIED),
    ])
    def test_classify(self, exc, kind):
        assert classify(exc) == kind

    def test_subclass_of_builtin(self):
        class BadDate(ValueError):
            pass

        assert classify(BadDate("2024-13-01")) == FaultKind.INVALID_ARGUMENT

    def test_tag_wins_over_type(self):
        class Tagged(RuntimeError):
            fault_kind = FaultKind.INVALID_OPERATION

        assert classify(Tagged("x")) == FaultKind.INVALID_OPERATION

    def test_policy_table(self):
        assert FAULT_POLICIES[FaultKind.INVALID_OPERATION].status_code == 400
        assert FAULT_POLICIES[FaultKind.INVALID_ARGUMENT].status_code == 400
        assert FAULT_POLICIES[FaultKind.UNCLASSIFIED].status_code == 500
        assert FAULT_POLICIES[FaultKind.RESPONSE_STARTED].status_code is None
        assert FAULT_POLICIES[FaultKind.RESPONSE_STARTED].rethrow
        assert FAULT_POLICIES[FaultKind.RESPONSE_STARTED].severity == Severity.WARNING
        for kind in (FaultKind.INVALID_OPERATION, FaultKind.INVALID_ARGUMENT, FaultKind.UNCLASSIFIED):
            assert FAULT_POLICIES[kind].severity == Severity.ERROR
            assert not FAULT_POLICIES[kind].rethrow

    def test_error_body(self):
        assert error_body(InvalidArgumentError("days must be positive")) == {
            "message": "days must be positive"
        }
        assert error_body(RuntimeError()) == {"message": "An unexpected error occurred"}


# =============================================================================
# Middleware
# =============================================================================

class TestFaultTranslatorMiddleware:
    """Tests for FaultTranslatorMiddleware."""

    def test_success_passes_through(self, router, memory_sink):
        app = FaultTranslatorMiddleware(PlainTextResponse("fine"), router=router)
        client = TestClient(app)

        response = client.get("/ok", headers={"X-Request-ID": "req-1"})

        assert response.status_code == 200
        assert response.text == "fine"
        assert response.headers["X-Request-ID"] == "req-1"
        assert fault_events(memory_sink) == []

        received, completed = memory_sink.events
        assert received.render_message() == "HTTP GET /ok received"
        assert received.properties["correlation_id"] == "req-1"
        assert completed.properties["status_code"] == 200

    @pytest.mark.parametrize("exc,status", [
        (InvalidOperationError("Forecast already published"), 400),
        (InvalidArgumentError("days must be at least 1"), 400),
        (RuntimeError("database exploded"), 500),
    ])
    def test_translated_faults(self, router, memory_sink, exc, status):
        """Each fault kind gets its status and exactly one Error event."""
        client = TestClient(FaultTranslatorMiddleware(raising_app(exc), router=router))

        response = client.get("/weatherforecast")

        assert response.status_code == status
        assert response.headers["content-type"] == "application/json"
        assert response.json() == {"message": str(exc)}

        events = fault_events(memory_sink)
        assert len(events) == 1
        assert events[0].level == Severity.ERROR
        assert events[0].exception is exc

    def test_invalid_argument_before_response(self, router, memory_sink):
        client = TestClient(FaultTranslatorMiddleware(
            raising_app(InvalidArgumentError("Unknown city: Atlantis")),
            router=router,
        ))

        response = client.get("/weatherforecast")

        assert response.status_code == 400
        assert response.json() == {"message": "Unknown city: Atlantis"}
        errors = memory_sink.at(Severity.ERROR)
        assert len(errors) == 1
        assert errors[0].properties["fault_kind"] == "invalid_argument"
        assert errors[0].properties["correlation_id"]

    def test_no_stack_trace_in_response(self, router):
        client = TestClient(FaultTranslatorMiddleware(raising_app(RuntimeError("boom")), router=router))

        body = client.get("/").text

        assert "Traceback" not in body
        assert "RuntimeError" not in body

    def test_fault_after_response_started(self, router, memory_sink):
        """No second response; the fault is re-raised; one Warning event."""
        sent = []
        exc = RuntimeError("stream broke")
        app = FaultTranslatorMiddleware(partial_response_app(exc), router=router)

        async def receive():
            return {"type": "http.request", "body": b"", "more_body": False}

        async def send(message):
            sent.append(message)

        scope = {"type": "http", "method": "GET", "path": "/stream", "headers": []}

        with pytest.raises(RuntimeError, match="stream broke"):
            asyncio.run(app(scope, receive, send))

        starts = [m for m in sent if m["type"] == "http.response.start"]
        assert len(starts) == 1
        assert starts[0]["status"] == 200

        events = fault_events(memory_sink)
        assert len(events) == 1
        assert events[0].level == Severity.WARNING
        assert events[0].properties["fault_kind"] == "response_started"
        assert events[0].exception is exc

    def test_fault_after_response_started_through_test_client(self, router, memory_sink):
        client = TestClient(FaultTranslatorMiddleware(
            partial_response_app(RuntimeError("stream broke")),
            router=router,
        ))

        with pytest.raises(RuntimeError):
            client.get("/stream")

        assert len(memory_sink.at(Severity.WARNING)) == 1
        assert memory_sink.at(Severity.ERROR) == []

    def test_cancellation(self, router, memory_sink):
        """A cancelled request writes nothing and logs one Warning."""
        sent = []

        async def scenario():
            started = asyncio.Event()

            async def slow_app(scope, receive, send):
                started.set()
                await asyncio.Event().wait()

            app = FaultTranslatorMiddleware(slow_app, router=router)

            async def receive():
                return {"type": "http.request", "body": b"", "more_body": False}

            async def send(message):
                sent.append(message)

            scope = {"type": "http", "method": "GET", "path": "/slow", "headers": []}
            task = asyncio.create_task(app(scope, receive, send))
            await started.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())

        assert sent == []
        warnings = memory_sink.at(Severity.WARNING)
        assert len(warnings) == 1
        assert warnings[0].properties["fault_kind"] == "cancelled"
        assert warnings[0].properties["response_started"] is False
        assert warnings[0].properties["status_code"] is None
        assert warnings[0].render_message() == "HTTP GET /slow was cancelled before a response could be sent"

    def test_cancellation_after_response_started(self, router, memory_sink):
        """Cancelling a streaming response says the status was already sent."""
        sent = []

        async def scenario():
            started = asyncio.Event()

            async def streaming_app(scope, receive, send):
                await send({"type": "http.response.start", "status": 200, "headers": []})
                await send({"type": "http.response.body", "body": b"first", "more_body": True})
                started.set()
                await asyncio.Event().wait()

            app = FaultTranslatorMiddleware(streaming_app, router=router)

            async def receive():
                return {"type": "http.request", "body": b"", "more_body": False}

            async def send(message):
                sent.append(message)

            scope = {"type": "http", "method": "GET", "path": "/stream", "headers": []}
            task = asyncio.create_task(app(scope, receive, send))
            await started.wait()
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())

        assert [m["type"] for m in sent] == ["http.response.start", "http.response.body"]
        (warning,) = memory_sink.at(Severity.WARNING)
        assert warning.properties["fault_kind"] == "cancelled"
        assert warning.properties["response_started"] is True
        assert warning.properties["status_code"] == 200
        assert warning.render_message() == (
            "HTTP GET /stream was cancelled after the response started with 200"
        )

    def test_non_http_scope_untouched(self, router, memory_sink):
        calls = []

        async def app(scope, receive, send):
            calls.append(scope["type"])

        middleware = FaultTranslatorMiddleware(app, router=router)
        asyncio.run(middleware({"type": "lifespan"}, None, None))

        assert calls == ["lifespan"]
        assert memory_sink.events == []
