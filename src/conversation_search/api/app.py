"""
HTTP API.

Exposes the controller over FastAPI. Error mapping follows the package
taxonomy: 'UserError' and request validation failures become 400 responses
carrying the message, everything else is logged with full detail and answered
with a generic 500 so no internals leak to the caller.

Run with:

    conversation-search

or:

    uvicorn conversation_search.api.app:create_app --factory
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from conversation_search.config import AppConfig, configure_logging, load_config
from conversation_search.controller import (
    ConversationListResponse,
    ConversationSearchController,
    IngestRequest,
    IngestResponse,
    MessageListResponse,
    SearchRequest,
    SearchResponse,
    open_controller,
)
from conversation_search.errors import ApplicationError, UserError

GENERIC_ERROR = "There was an error processing your request"

router = APIRouter(prefix="/api")


def get_controller(request: Request) -> ConversationSearchController:
    return request.app.state.controller


@router.post("/search-conversation-embeddings", response_model=SearchResponse, response_model_by_alias=True)
async def search_conversation_embeddings(body: SearchRequest, request: Request) -> SearchResponse:
    return await get_controller(request).search(body)


@router.post("/store-conversation-embedding", response_model=IngestResponse, response_model_by_alias=True)
async def store_conversation_embedding(body: IngestRequest, request: Request) -> IngestResponse:
    return await get_controller(request).ingest(body)


@router.get("/conversations", response_model=ConversationListResponse, response_model_by_alias=True)
async def list_conversations(request: Request) -> ConversationListResponse:
    return await get_controller(request).get_conversations()


@router.get(
    "/conversations/{conversation_ref}/messages",
    response_model=MessageListResponse,
    response_model_by_alias=True,
)
async def list_conversation_messages(conversation_ref: str, request: Request) -> MessageListResponse:
    return await get_controller(request).get_conversation_messages(conversation_ref)


@router.delete("/conversations/{conversation_ref}")
async def delete_conversation(conversation_ref: str, request: Request) -> dict[str, bool]:
    return {"success": await get_controller(request).delete_conversation(conversation_ref)}


async def _user_error_handler(request: Request, exc: UserError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": exc.message, "data": exc.data})


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]
    return JSONResponse(status_code=400, content={"error": "Invalid request data", "data": errors})


async def _application_error_handler(request: Request, exc: Exception) -> JSONResponse:
    if isinstance(exc, ApplicationError):
        logger.error(f"{exc.message}: {exc.data!r}")
    else:
        logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": GENERIC_ERROR})


def create_app(
    config: AppConfig | None = None,
    controller: ConversationSearchController | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Pass a ready 'controller' to serve it directly (tests, embedding in a
    larger app). Otherwise the controller is built from 'config', or from the
    environment when no config is given, when the app starts up.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if controller is not None:
            app.state.controller = controller
            yield
            return

        app_config = config or load_config()
        configure_logging(app_config.log_level)
        async with open_controller(app_config) as built:
            app.state.controller = built
            yield
        logger.info("Shutting down")

    app = FastAPI(title="Conversation Search API", version="0.1.0", lifespan=lifespan)
    if controller is not None:
        app.state.controller = controller
    app.include_router(router)
    app.add_exception_handler(UserError, _user_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ApplicationError, _application_error_handler)
    app.add_exception_handler(Exception, _application_error_handler)
    return app


def main() -> None:
    config = load_config()
    configure_logging(config.log_level)
    uvicorn.run(create_app(config), host=config.host, port=config.port)


if __name__ == "__main__":
    main()
