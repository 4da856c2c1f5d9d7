from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ===================================================================
# Patent session schemas
# ===================================================================

class PatentSectionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    session_id: str
    section_type: str
    content: str
    is_user_edited: bool
    created_at: datetime


class AIQuestionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    question: str
    answer: Optional[str] = None
    created_at: datetime


class PatentSessionSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    idea_prompt: Optional[str] = None
    patent_type: Optional[str] = None
    status: str
    created_at: datetime


class PatentSessionRead(PatentSessionSummary):
    """
    Session with everything the editor needs in one round trip
    """
    technical_analysis: Optional[str] = None
    patentability_score: Optional[float] = None
    ai_analysis_complete: bool = False
    sections: List[PatentSectionRead] = []
    questions: List[AIQuestionRead] = []


class CreateSessionRequest(BaseModel):
    idea_prompt: str = ""
    patent_type: Optional[str] = "utility"


class SaveSectionRequest(BaseModel):
    content: str = ""


# ===================================================================
# Request bodies of the service routes
#
# Required fields are Optional here so the handlers can answer with the
# same 400 messages the front end already displays.
# ===================================================================

class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class CheckoutRequest(_CamelModel):
    plan_type: str = Field("check_and_see", alias="planType")


class PaymentRequest(_CamelModel):
    application_id: Optional[str] = Field(None, alias="applicationId")


class VerifyPaymentRequest(_CamelModel):
    session_id: Optional[str] = Field(None, alias="sessionId")


class PriorArtReference(BaseModel):
    title: Optional[str] = None
    publication_number: Optional[str] = None
    similarity_score: Optional[float] = None
    overlap_claims: Optional[List[str]] = None
    difference_claims: Optional[List[str]] = None


class AnalyzeClaimsRequest(_CamelModel):
    claims: Optional[str] = None
    prior_art: List[PriorArtReference] = Field(default_factory=list, alias="priorArt")
    invention_context: Optional[str] = Field(None, alias="inventionContext")


class SectionQualityRequest(BaseModel):
    section_type: Optional[str] = None
    content: Optional[str] = None


class GlossaryRequest(_CamelModel):
    content: Optional[str] = None
    section_type: Optional[str] = Field(None, alias="sectionType")


class DiagramsRequest(BaseModel):
    session_id: Optional[str] = None
    context: str = ""


class DraftSectionRequest(BaseModel):
    session_id: Optional[str] = None
    section_type: Optional[str] = None
    user_input: Optional[str] = None


class EnhanceAnswerRequest(BaseModel):
    session_id: Optional[str] = None
    question: str = ""
    answer: str = ""
    github_url: Optional[str] = None


class SessionRequest(BaseModel):
    session_id: Optional[str] = None


class EnhanceSectionRequest(BaseModel):
    session_id: Optional[str] = None
    section_type: Optional[str] = None


class ClaimChartRequest(BaseModel):
    session_id: Optional[str] = None
    prior_art_id: Optional[str] = None


class FollowupsRequest(BaseModel):
    session_id: Optional[str] = None
    idea_prompt: Optional[str] = None


class ChatMessage(BaseModel):
    role: str  # "user" or "assistant"
    content: str


class PatentChatRequest(_CamelModel):
    messages: List[ChatMessage] = []
    session_id: Optional[str] = Field(None, alias="sessionId")
    mode: Optional[str] = None


class CrawlRequest(BaseModel):
    url: Optional[str] = None


class ExportRequest(BaseModel):
    session_id: Optional[str] = None


class ProjectsRequest(_CamelModel):
    organization_id: Optional[str] = Field(None, alias="organizationId")


class FinalizeConnectionRequest(_CamelModel):
    connection_id: Optional[str] = Field(None, alias="connectionId")
    organization_id: Optional[str] = Field(None, alias="organizationId")
    project_id: Optional[str] = Field(None, alias="projectId")
    project_ref: Optional[str] = Field(None, alias="projectRef")
    project_name: Optional[str] = Field(None, alias="projectName")
    project_region: Optional[str] = Field(None, alias="projectRegion")


# ===================================================================
# Authenticated user
# ===================================================================

class AuthUser(BaseModel):
    """User as reported by the managed auth provider"""
    id: str
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = {}
