"""FastAPI backend for the Cerebro helpdesk.

Serves the chat and the IT dashboard over HTTP, and pushes invalidation
events over a WebSocket.  The helpdesk service is built once at startup and
shared across requests.
"""

import contextlib
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastapi import (
    Depends,
    FastAPI,
    File,
    Form,
    HTTPException,
    Query,
    Request,
    Response,
    UploadFile,
    WebSocket,
    WebSocketDisconnect,
)
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel
from starlette.routing import Match

from cerebro.config import get_settings
from cerebro.observability.metrics import APP_INFO, REQUEST_DURATION, REQUESTS_IN_PROGRESS, REQUESTS_TOTAL
from cerebro.service import (
    ConversationNotFoundError,
    HelpdeskService,
    InvalidRequestError,
    TicketNotFoundError,
)
from cerebro.store.models import Attachment, KBArticle, LogAnalysis, Message, Ticket, TicketStatus

logger = logging.getLogger(__name__)

APP_VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class SendMessageResponse(BaseModel):
    """Response body for POST /api/send-message."""

    success: bool = True
    messages: list[Message]


class MarkHelpfulRequest(BaseModel):
    """Request body for POST /api/mark-helpful."""

    conversation_id: str = ""
    article_id: str | None = None


class TechnicianMessageRequest(BaseModel):
    content: str = ""
    technician_name: str | None = None


class StatusUpdateRequest(BaseModel):
    status: TicketStatus


class RequestInfoRequest(BaseModel):
    message: str = ""


class SimilarTicketsRequest(BaseModel):
    description: str = ""


class ActionResponse(BaseModel):
    success: bool = True
    message: str | None = None


class HealthResponse(BaseModel):
    """Response body for GET /health."""

    status: str
    version: str
    tickets: int
    kb_articles: int
    pending_analyses: int
    websocket_subscribers: int


# ---------------------------------------------------------------------------
# Application lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the helpdesk service once at startup, tear down on shutdown."""
    settings = get_settings()
    APP_INFO.info({"version": APP_VERSION, "store": settings.store_db_path})

    logger.info("Building helpdesk service...")
    try:
        service = HelpdeskService.build(settings)
    except Exception:
        logger.exception("Failed to build helpdesk service at startup")
        raise

    service.start()
    app.state.service = service
    yield
    service.shutdown()
    logger.info("Shutting down Cerebro helpdesk")


app = FastAPI(title="Cerebro Helpdesk", lifespan=lifespan)


def get_service(request: Request) -> HelpdeskService:
    return request.app.state.service  # type: ignore[no-any-return]


ServiceDep = Annotated[HelpdeskService, Depends(get_service)]


@contextlib.contextmanager
def _service_errors(action: str) -> Iterator[None]:
    """Map service exceptions onto HTTP errors."""
    try:
        yield
    except InvalidRequestError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except (TicketNotFoundError, ConversationNotFoundError) as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("%s failed", action)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


def _endpoint_label(request: Request) -> str:
    for route in request.app.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return str(getattr(route, "path", request.url.path))
    return "unmatched"


@app.middleware("http")
async def record_request_metrics(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    endpoint = _endpoint_label(request)
    REQUESTS_IN_PROGRESS.labels(endpoint=endpoint).inc()
    start = time.monotonic()
    status = "error"
    try:
        response = await call_next(request)
        status = "success" if response.status_code < 400 else "error"
        return response
    finally:
        REQUESTS_IN_PROGRESS.labels(endpoint=endpoint).dec()
        REQUEST_DURATION.labels(endpoint=endpoint).observe(time.monotonic() - start)
        REQUESTS_TOTAL.labels(endpoint=endpoint, status=status).inc()


# ---------------------------------------------------------------------------
# Chat endpoints
# ---------------------------------------------------------------------------


@app.get("/api/messages/{conversation_id}", response_model=list[Message])
async def get_messages(conversation_id: str, service: ServiceDep) -> list[Message]:
    with _service_errors("get-messages"):
        return service.get_messages(conversation_id)


@app.post("/api/send-message", response_model=SendMessageResponse)
async def send_message(
    service: ServiceDep,
    conversation_id: Annotated[str, Form()] = "",
    content: Annotated[str, Form()] = "",
    file: Annotated[UploadFile | None, File()] = None,
) -> SendMessageResponse:
    """Send a chat message, optionally with a file, and get the updated thread."""
    attachment = None
    if file is not None:
        attachment = Attachment(
            filename=file.filename or "upload",
            content=await file.read(),
            content_type=file.content_type or "application/octet-stream",
        )
    logger.info("Received message for %s (file=%s)", conversation_id, attachment is not None)

    with _service_errors("send-message"):
        messages = await service.send_message(conversation_id, content, attachment)
    return SendMessageResponse(messages=messages)


@app.get("/api/kb-suggestions/{conversation_id}")
async def kb_suggestions(conversation_id: str, service: ServiceDep) -> Any:
    """Current KB article (or similar tickets) for the conversation, else ``{}``."""
    with _service_errors("kb-suggestions"):
        suggestions = service.kb_suggestions(conversation_id)
    return suggestions if suggestions is not None else {}


@app.post("/api/mark-helpful", response_model=ActionResponse)
async def mark_helpful(request: MarkHelpfulRequest, service: ServiceDep) -> ActionResponse:
    with _service_errors("mark-helpful"):
        await service.mark_helpful(request.conversation_id, request.article_id)
    return ActionResponse()


@app.get("/api/conversation-ticket/{conversation_id}", response_model=Ticket | None)
async def conversation_ticket(conversation_id: str, service: ServiceDep) -> Ticket | None:
    with _service_errors("conversation-ticket"):
        return service.conversation_ticket(conversation_id)


# ---------------------------------------------------------------------------
# Ticket endpoints
# ---------------------------------------------------------------------------


@app.get("/api/tickets", response_model=list[Ticket])
async def list_tickets(service: ServiceDep) -> list[Ticket]:
    with _service_errors("list-tickets"):
        return service.list_tickets()


@app.post("/api/tickets/similar", response_model=list[Ticket])
async def similar_tickets(request: SimilarTicketsRequest, service: ServiceDep) -> list[Ticket]:
    with _service_errors("similar-tickets"):
        return service.find_similar_tickets(request.description)


@app.get("/api/tickets/{ticket_id}", response_model=Ticket)
async def get_ticket(ticket_id: str, service: ServiceDep) -> Ticket:
    with _service_errors("get-ticket"):
        return service.get_ticket(ticket_id)


@app.get("/api/ticket-messages/{ticket_id}", response_model=list[Message])
async def ticket_messages(ticket_id: str, service: ServiceDep) -> list[Message]:
    with _service_errors("ticket-messages"):
        return service.ticket_messages(ticket_id)


@app.get("/api/ticket-analysis/{ticket_id}", response_model=LogAnalysis | None)
async def ticket_analysis(ticket_id: str, service: ServiceDep) -> LogAnalysis | None:
    with _service_errors("ticket-analysis"):
        return service.ticket_analysis(ticket_id)


@app.post("/api/tickets/{ticket_id}/message", response_model=ActionResponse)
async def technician_message(
    ticket_id: str, request: TechnicianMessageRequest, service: ServiceDep
) -> ActionResponse:
    with _service_errors("technician-message"):
        await service.post_technician_message(ticket_id, request.content, request.technician_name)
    return ActionResponse()


@app.patch("/api/tickets/{ticket_id}/status", response_model=Ticket)
async def update_status(ticket_id: str, request: StatusUpdateRequest, service: ServiceDep) -> Ticket:
    with _service_errors("update-status"):
        return await service.update_ticket_status(ticket_id, request.status)


@app.post("/api/tickets/{ticket_id}/run-analysis", response_model=ActionResponse)
async def run_analysis(ticket_id: str, service: ServiceDep) -> ActionResponse:
    with _service_errors("run-analysis"):
        await service.run_analysis(ticket_id)
    return ActionResponse(message="Log analysis started")


@app.post("/api/tickets/{ticket_id}/apply-fix", response_model=ActionResponse)
async def apply_fix(ticket_id: str, service: ServiceDep) -> ActionResponse:
    with _service_errors("apply-fix"):
        await service.apply_fix(ticket_id)
    return ActionResponse(message="Fix applied")


@app.post("/api/tickets/{ticket_id}/request-info", response_model=ActionResponse)
async def request_info(ticket_id: str, request: RequestInfoRequest, service: ServiceDep) -> ActionResponse:
    with _service_errors("request-info"):
        await service.request_info(ticket_id, request.message)
    return ActionResponse(message="Request sent to user")


# ---------------------------------------------------------------------------
# Knowledge base and downloads
# ---------------------------------------------------------------------------


@app.get("/api/kb/search", response_model=list[KBArticle])
async def search_kb(
    service: ServiceDep,
    q: str = "",
    app_name: Annotated[str | None, Query(alias="app")] = None,
) -> list[KBArticle]:
    with _service_errors("kb-search"):
        return service.search_kb(q, app_name)


@app.get("/api/download-converted-file")
async def download_converted_file(service: ServiceDep) -> Response:
    filename, content = service.converted_file()
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------------------------------------------------------------
# Push channel, health and metrics
# ---------------------------------------------------------------------------


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """Invalidation events: ``ticket_update`` and ``message_update``."""
    notifier = websocket.app.state.service.notifier
    await notifier.connect(websocket)
    try:
        with contextlib.suppress(WebSocketDisconnect):
            while True:
                await websocket.receive_text()
    finally:
        await notifier.disconnect(websocket)


@app.get("/health", response_model=HealthResponse)
async def health(service: ServiceDep) -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=APP_VERSION,
        tickets=service.store.count("tickets"),
        kb_articles=service.store.count("kb_articles"),
        pending_analyses=len(service.simulator.pending),
        websocket_subscribers=service.notifier.subscriber_count,
    )


@app.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus metrics in exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
