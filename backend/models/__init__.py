"""Data models for the MedFit backend."""
from .conversation import Role, Turn, INITIAL_GREETING, GenerationAttempt, GenerationRequest
from .disease import DiseaseRecord, QueryCriteria, SortKey
from .api import (
    ChatRequest,
    ChatStateResponse,
    CriteriaPayload,
    DiseasePayload,
    DiseaseQueryState,
    SearchMessage,
    SessionResponse,
    TurnPayload,
)

__all__ = [
    "Role",
    "Turn",
    "INITIAL_GREETING",
    "GenerationAttempt",
    "GenerationRequest",
    "DiseaseRecord",
    "QueryCriteria",
    "SortKey",
    "ChatRequest",
    "ChatStateResponse",
    "CriteriaPayload",
    "DiseasePayload",
    "DiseaseQueryState",
    "SearchMessage",
    "SessionResponse",
    "TurnPayload",
]
