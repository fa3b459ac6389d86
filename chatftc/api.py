"""HTTP API exposing the chat routes."""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import config
from .errors import ChatFTCError
from .knowledge import build_chat_services
from .scraping import PageFetcher

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from .conversation import ChatService

logger = config.get_logger(__name__)

SESSION_COOKIE = "session_id"
SESSION_HEADER = "X-Session-Id"
CHAT_ERROR_MESSAGE = "Error communicating with the chatbot"

ROUTES = {
    "/api/llm-response": "manual",
    "/api/llm-response/programming": "programming",
}


class ChatRequest(BaseModel):
    """Request body for the chat routes."""

    model_config = ConfigDict(populate_by_name=True)

    user_input: str = Field(alias="userInput", min_length=1)
    session_id: str | None = Field(default=None, alias="sessionId")

    @field_validator("user_input")
    @classmethod
    def reject_blank(cls, value: str) -> str:
        if not value.strip():
            msg = "userInput must not be blank"
            raise ValueError(msg)
        return value


def resolve_session_id(request: Request, body: ChatRequest) -> tuple[str, bool]:
    """Pick the session id from the body, header or cookie.

    Returns:
        The session id and whether it was newly issued.
    """
    session_id = (
        body.session_id
        or request.headers.get(SESSION_HEADER)
        or request.cookies.get(SESSION_COOKIE)
    )
    if session_id:
        return session_id, False
    return uuid.uuid4().hex, True


def _error_response(exc: Exception) -> JSONResponse:
    logger.error("Chat request failed: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": CHAT_ERROR_MESSAGE},
    )


async def _stream_response(
    service: ChatService, session_id: str, user_input: str
) -> Response:
    fragments = service.stream_answer(session_id, user_input)
    # Await the first fragment so an immediate failure still gets a 500.
    try:
        first = await anext(fragments)
    except StopAsyncIteration:
        first = ""
    except ChatFTCError as exc:
        return _error_response(exc)

    async def body() -> AsyncIterator[str]:
        try:
            if first:
                yield first
            async for fragment in fragments:
                yield fragment
        except ChatFTCError:
            logger.exception("Chat stream failed after the response started")
        finally:
            # Releases the session lock when the client disconnects early.
            await fragments.aclose()

    return StreamingResponse(body(), media_type="text/plain; charset=utf-8")


def _register_chat_route(app: FastAPI, path: str, knowledge_base: str) -> None:
    async def chat(request: Request, body: ChatRequest, stream: bool = False):  # noqa: ANN202, FBT001, FBT002
        service: ChatService = request.app.state.services[knowledge_base]
        session_id, issued = resolve_session_id(request, body)
        logger.info("Chat request for %s (session %s)", knowledge_base, session_id)

        if stream:
            response = await _stream_response(service, session_id, body.user_input)
        else:
            try:
                result = await service.answer(session_id, body.user_input)
            except ChatFTCError as exc:
                return _error_response(exc)
            response = JSONResponse({"response": result.answer})

        if issued:
            response.set_cookie(
                SESSION_COOKIE, session_id, httponly=True, samesite="lax"
            )
        return response

    chat.__name__ = f"chat_{knowledge_base}"
    app.add_api_route(path, chat, methods=["POST"], name=chat.__name__)


def create_app(services: dict[str, ChatService] | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        services: Chat services keyed by knowledge base name. If None, the
            default services are built at startup and torn down at shutdown.

    Returns:
        The configured application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        fetcher: PageFetcher | None = None
        if app.state.services is None:
            config.setup_logging()
            fetcher = PageFetcher()
            app.state.services = build_chat_services(fetcher)
        try:
            yield
        finally:
            if fetcher is not None:
                await fetcher.aclose()

    app = FastAPI(
        title="ChatFTC",
        description="Retrieval-augmented assistant for FTC teams",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None if config.is_production() else "/docs",
        redoc_url=None if config.is_production() else "/redoc",
    )
    app.state.services = services

    for path, knowledge_base in ROUTES.items():
        _register_chat_route(app, path, knowledge_base)

    @app.delete("/api/sessions/{session_id}", status_code=204)
    async def clear_session(session_id: str, request: Request) -> Response:
        for service in request.app.state.services.values():
            service.clear_history(session_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
