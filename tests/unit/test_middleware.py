"""Unit tests for the API middleware: error mapping, request logging, CORS."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
    status_for,
)
from src.utils.errors import (
    CompletionError,
    NotFoundError,
    StorageError,
    UnsupportedFileTypeError,
)


def _app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    configure_cors(app, allowed_origins=["http://localhost:3000"])

    @app.get("/ok")
    async def ok() -> dict:
        return {"ok": True}

    @app.get("/missing")
    async def missing() -> dict:
        raise NotFoundError(message="Document not found: abc")

    @app.get("/unsupported")
    async def unsupported() -> dict:
        raise UnsupportedFileTypeError(message="Unsupported file extension: .png")

    @app.get("/broken")
    async def broken() -> dict:
        raise CompletionError(message="Failed to generate a response", provider_name="openai")

    return app


class TestStatusFor:
    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (NotFoundError("x"), 404),
            (UnsupportedFileTypeError("x"), 415),
            (CompletionError("x"), 500),
            (StorageError("x"), 500),
        ],
    )
    def test_mapping(self, error, expected: int) -> None:
        assert status_for(error) == expected


class TestErrorHandlingMiddleware:
    def test_success_passes_through(self) -> None:
        with TestClient(_app()) as client:
            response = client.get("/ok")

        assert response.status_code == 200
        assert response.json() == {"ok": True}

    def test_not_found(self) -> None:
        with TestClient(_app()) as client:
            response = client.get("/missing")

        assert response.status_code == 404
        assert response.json() == {"error": "NotFoundError", "detail": "Document not found: abc"}

    def test_unsupported_type(self) -> None:
        with TestClient(_app()) as client:
            response = client.get("/unsupported")

        assert response.status_code == 415
        assert response.json()["error"] == "UnsupportedFileTypeError"

    def test_server_error_hides_provider(self) -> None:
        with TestClient(_app()) as client:
            response = client.get("/broken")

        assert response.status_code == 500
        body = response.json()
        assert body["detail"] == "Failed to generate a response"
        assert "openai" not in response.text


class TestCors:
    def test_allowed_origin_echoed(self) -> None:
        with TestClient(_app()) as client:
            response = client.get("/ok", headers={"Origin": "http://localhost:3000"})

        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"

    def test_preflight(self) -> None:
        with TestClient(_app()) as client:
            response = client.options(
                "/ok",
                headers={
                    "Origin": "http://localhost:3000",
                    "Access-Control-Request-Method": "POST",
                },
            )

        assert response.status_code == 200
