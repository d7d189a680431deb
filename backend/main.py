"""Main entry point for the MedFit API."""
import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from supabase import AuthError

from config import CORS_ORIGINS, LOG_FORMAT, LOG_LEVEL, PORT
from logger import setup_logging
from models.api import (
    ChatRequest,
    ChatStateResponse,
    CriteriaPayload,
    DiseasePayload,
    DiseaseQueryState,
    SearchMessage,
    SessionResponse,
    TurnPayload,
)
from models.disease import SortKey
from services.auth import AuthService, UserSession
from services.conversation_pipeline import ConversationPipeline
from services.disease_store import DiseaseStore, create_supabase_client
from services.llm_client import TextGenerator
from services.llm_provider import create_llm_client
from services.query_pipeline import QuerySnapshot, RecordQueryPipeline
from services.workspace import WorkspaceRegistry

# Initialize logging
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="MedFit API",
    description="Disease search and medical chat assistant",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize services (will be done on startup)
llm_client: TextGenerator = None
disease_store: DiseaseStore = None
auth_service: AuthService = None
workspaces: WorkspaceRegistry = None


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    global llm_client, disease_store, auth_service, workspaces

    if LOG_FORMAT == "json":
        setup_logging(LOG_LEVEL)

    logger.info("Initializing MedFit services...")

    try:
        supabase_client = await create_supabase_client()

        disease_store = DiseaseStore(supabase_client)
        logger.info("Initialized DiseaseStore")

        auth_service = AuthService(supabase_client)
        logger.info("Initialized AuthService")

        llm_client = create_llm_client()
        logger.info("Initialized LLM client")

        workspaces = WorkspaceRegistry(llm_client, disease_store)
        logger.info("All services initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}", exc_info=True)
        raise


@app.on_event("shutdown")
async def shutdown_event():
    """Close every open workspace."""
    if workspaces is not None:
        workspaces.close_all()


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def current_session(authorization: Optional[str] = Header(None)) -> UserSession:
    """Resolve the bearer token to a session or reject the request."""
    if auth_service is None or workspaces is None:
        raise HTTPException(status_code=503, detail="Service is not initialized")

    session = await auth_service.get_session(_bearer_token(authorization))
    if session is None:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session


def _chat_state(conversation: ConversationPipeline) -> ChatStateResponse:
    return ChatStateResponse(
        transcript=[
            TurnPayload(role=turn.role.value, content=turn.content)
            for turn in conversation.transcript
        ],
        is_awaiting_response=conversation.is_awaiting_response,
    )


def _query_state(snapshot: QuerySnapshot) -> DiseaseQueryState:
    criteria = snapshot.criteria
    return DiseaseQueryState(
        criteria=CriteriaPayload(
            search_term=criteria.search_term,
            sort_by=criteria.sort_key.value,
            order="asc" if criteria.ascending else "desc",
        ),
        status=snapshot.status.value,
        is_loading=snapshot.is_loading,
        results=[
            DiseasePayload(
                id=record.id,
                name=record.name,
                diagnosis=record.diagnosis,
                treatment=record.treatment,
                created_at=record.created_at,
            )
            for record in snapshot.results
        ],
        error=snapshot.error,
    )


def _state_message(snapshot: QuerySnapshot) -> Dict[str, Any]:
    return {"type": "state", **_query_state(snapshot).model_dump(mode="json")}


def apply_search_message(pipeline: RecordQueryPipeline, message: SearchMessage) -> None:
    """Translate a live-search client message into a pipeline call."""
    if message.type == "criteria":
        pipeline.set_criteria(
            search_term=message.search_term,
            sort_key=SortKey(message.sort_by) if message.sort_by else None,
            ascending=(message.order == "asc") if message.order else None,
        )
    elif message.type == "retry":
        pipeline.retry()
    elif message.type == "dismiss_error":
        pipeline.dismiss_error()


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "MedFit API"}


@app.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "service": "medfit-api",
        "version": "1.0.0",
        "services_initialized": workspaces is not None,
    }


@app.get("/session", response_model=SessionResponse)
async def get_session(session: UserSession = Depends(current_session)) -> SessionResponse:
    """Return the signed-in user."""
    return SessionResponse(user_id=session.user_id, email=session.email)


@app.post("/auth/sign-out")
async def sign_out(session: UserSession = Depends(current_session)):
    """Sign out at the auth provider and discard the user's pipelines."""
    try:
        await auth_service.sign_out(session)
    except AuthError as e:
        logger.warning(f"Auth provider rejected sign-out for user {session.user_id}: {e}")
    finally:
        workspaces.discard(session.user_id)
    return {"status": "signed_out"}


@app.get("/chat", response_model=ChatStateResponse)
async def get_chat(session: UserSession = Depends(current_session)) -> ChatStateResponse:
    """Return the transcript of the user's conversation."""
    return _chat_state(workspaces.get_or_create(session).conversation)


@app.post("/chat", response_model=ChatStateResponse)
async def post_chat(
    request: ChatRequest,
    session: UserSession = Depends(current_session),
) -> ChatStateResponse:
    """
    Submit a chat message and wait for the assistant's reply.

    Generation failures never surface as HTTP errors; they arrive as an
    assistant turn with guidance for the user.

    Raises:
        HTTPException: 400 for blank messages, 409 while a reply is pending
    """
    if not request.message.strip():
        raise HTTPException(status_code=400, detail="Message cannot be empty")

    conversation = workspaces.get_or_create(session).conversation
    logger.info(f"Processing chat message: {request.message[:100]}...")

    accepted = await conversation.submit(request.message)
    if not accepted:
        raise HTTPException(status_code=409, detail="A response is already pending")

    return _chat_state(conversation)


@app.get("/diseases", response_model=DiseaseQueryState)
async def get_diseases(session: UserSession = Depends(current_session)) -> DiseaseQueryState:
    """Return the current disease search state, starting the search on first access."""
    pipeline = workspaces.get_or_create(session).diseases
    pipeline.start()
    return _query_state(pipeline.snapshot())


@app.websocket("/ws/diseases")
async def diseases_socket(websocket: WebSocket, token: Optional[str] = Query(None)):
    """
    Live disease search.

    Clients send criteria changes, retry and dismiss_error messages; the server
    pushes a state snapshot after every change of the search pipeline.
    """
    if auth_service is None or workspaces is None:
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    session = await auth_service.get_session(token)
    if session is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    pipeline = workspaces.get_or_create(session).diseases
    outbox: asyncio.Queue = asyncio.Queue()

    def push(snapshot: QuerySnapshot) -> None:
        outbox.put_nowait(_state_message(snapshot))

    async def pump():
        while True:
            await websocket.send_json(await outbox.get())

    pipeline.add_listener(push)
    sender = asyncio.create_task(pump())
    try:
        if pipeline.started:
            push(pipeline.snapshot())
        else:
            pipeline.start()

        while True:
            raw = await websocket.receive_text()
            try:
                message = SearchMessage.model_validate_json(raw)
            except ValidationError as e:
                outbox.put_nowait({
                    "type": "error",
                    "detail": e.errors(include_url=False, include_context=False),
                })
                continue
            apply_search_message(pipeline, message)
    except WebSocketDisconnect:
        logger.info(f"Search socket closed for user {session.user_id}")
    finally:
        pipeline.remove_listener(push)
        sender.cancel()


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting MedFit API on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
