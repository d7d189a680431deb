"""API request/response models for the MedFit backend."""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class TurnPayload(BaseModel):
    """One transcript message."""
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Chat submission."""
    message: str = Field(..., min_length=1, description="User question")


class ChatStateResponse(BaseModel):
    """Full transcript and whether a reply is still pending."""
    transcript: List[TurnPayload]
    is_awaiting_response: bool


class SessionResponse(BaseModel):
    """Authenticated user."""
    user_id: str
    email: Optional[str] = None


class DiseasePayload(BaseModel):
    """Disease record as shown in search results."""
    id: str
    name: str
    diagnosis: str
    treatment: str
    created_at: Optional[datetime] = None


class CriteriaPayload(BaseModel):
    """Search term and sort configuration."""
    search_term: str = ""
    sort_by: Literal["name", "created_at"] = "name"
    order: Literal["asc", "desc"] = "asc"


class DiseaseQueryState(BaseModel):
    """Snapshot of the record query pipeline."""
    criteria: CriteriaPayload
    status: Literal["loading", "success", "failed"]
    is_loading: bool
    results: List[DiseasePayload]
    error: Optional[str] = None


class SearchMessage(BaseModel):
    """Client message on the live search socket."""
    type: Literal["criteria", "retry", "dismiss_error"]
    search_term: Optional[str] = None
    sort_by: Optional[Literal["name", "created_at"]] = None
    order: Optional[Literal["asc", "desc"]] = None
