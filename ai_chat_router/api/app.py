"""
HTTP API for routing and chat.

Endpoints:
- POST /chat: one conversation turn (route, infer, persist)
- POST /route: routing decision only
- POST /analytics: dashboard query or explicit event logging

Every response is JSON. Errors are a single ``{"error": ...}`` object with
the status carried by the raised ChatRouterError; anything unexpected is
logged with detail and reported as a generic 500.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ai_chat_router.analytics.dashboard import DEFAULT_TIME_RANGE, build_dashboard
from ai_chat_router.analytics.emitter import AnalyticsEmitter
from ai_chat_router.config.loader import Settings, load_settings
from ai_chat_router.core.errors import ChatRouterError, InvalidRequest
from ai_chat_router.core.orchestrator import ConversationOrchestrator
from ai_chat_router.core.routing import TaskDescriptor
from ai_chat_router.sdk.identity import IdentityProvider, StaticTokenIdentityProvider, token_from_header
from ai_chat_router.sdk.openai_client import UpstreamClient
from ai_chat_router.storage.repository import ChatRepository


logger = logging.getLogger(__name__)

CORS_ALLOWED_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


class ChatBody(BaseModel):
    message: str
    conversationId: Optional[str] = None
    modelName: Optional[str] = None


class RouteBody(BaseModel):
    taskType: str
    complexity: Optional[str] = None
    priority: Optional[str] = None
    content: Optional[str] = None
    userPreferences: Optional[Dict[str, Any]] = None


class AnalyticsBody(BaseModel):
    action: str
    timeRange: str = DEFAULT_TIME_RANGE
    eventType: Optional[str] = None
    eventData: Optional[Dict[str, Any]] = None
    sessionId: Optional[str] = None


def create_app(
    settings: Optional[Settings] = None,
    repository: Optional[ChatRepository] = None,
    orchestrator: Optional[ConversationOrchestrator] = None,
    identity: Optional[IdentityProvider] = None
) -> FastAPI:
    """Build the application with its collaborators.

    Anything not supplied is constructed from ``settings`` (loaded from the
    environment when omitted).
    """
    settings = settings or load_settings()
    if orchestrator is None:
        repository = repository or ChatRepository(settings.database_path)
        orchestrator = ConversationOrchestrator(
            repository=repository,
            upstream=UpstreamClient(settings.upstream),
            emitter=AnalyticsEmitter(repository),
            settings=settings
        )
    repository = repository or orchestrator.repository
    emitter = orchestrator.emitter
    identity = identity or StaticTokenIdentityProvider(settings.auth.tokens)

    app = FastAPI(title="AI Chat Router", version="0.1.0")
    app.state.settings = settings
    app.state.repository = repository
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["POST", "OPTIONS"],
        allow_headers=CORS_ALLOWED_HEADERS,
    )

    @app.exception_handler(ChatRouterError)
    async def chat_router_error_handler(request: Request, exc: ChatRouterError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s (context=%s)",
                         request.method, request.url.path, exc, exc.context)
        else:
            logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        fields = sorted({".".join(str(p) for p in err["loc"][1:]) for err in exc.errors()})
        return JSONResponse(status_code=400, content={"error": f"Invalid request body: {', '.join(fields)}"})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error in %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.post("/chat")
    def chat(body: ChatBody, authorization: Optional[str] = Header(None)):
        user_id = identity.authenticate(token_from_header(authorization))
        logger.info("Processing chat request: user=%s conversation=%s model=%s",
                    user_id, body.conversationId, body.modelName)
        result = orchestrator.send_message(
            user_id,
            body.message,
            conversation_id=body.conversationId,
            model_name=body.modelName
        )
        return result.to_response()

    @app.post("/route")
    def route(body: RouteBody, authorization: Optional[str] = Header(None)):
        user_id = identity.authenticate(token_from_header(authorization))
        task = TaskDescriptor.from_request(
            body.taskType,
            complexity=body.complexity,
            priority=body.priority,
            content=body.content
        )
        logger.info("Model routing request: user=%s task=%s complexity=%s",
                    user_id, task.task_type, task.complexity.value)
        return orchestrator.route_task(user_id, task, body.userPreferences).to_response()

    @app.post("/analytics")
    def analytics(body: AnalyticsBody, authorization: Optional[str] = Header(None)):
        user_id = identity.authenticate(token_from_header(authorization))

        if body.action == "get_dashboard":
            return build_dashboard(repository, user_id, body.timeRange)

        if body.action == "log_event":
            if not body.eventType:
                raise InvalidRequest("eventType is required")
            recorded = emitter.emit(user_id, body.eventType, body.eventData, body.sessionId)
            return {"success": recorded}

        raise InvalidRequest("Invalid action specified")

    return app
