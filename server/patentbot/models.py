import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from patentbot.internal.db import Base


def new_id() -> str:
    return str(uuid.uuid4())


class PatentSession(Base):
    """
    Patent session table - one in-progress patent drafting workflow

    The session itself only stores columns; drafted text lives in PatentSection
    rows and the intake interview lives in AIQuestion rows.
    """
    __tablename__ = "patent_sessions"

    id = Column(String(36), primary_key=True, default=new_id)

    # Owner - id issued by the managed auth provider
    user_id = Column(String(36), nullable=False, index=True)

    # The inventor's initial description (or a URL to crawl)
    idea_prompt = Column(Text, nullable=True)
    patent_type = Column(String, nullable=True)
    technical_analysis = Column(Text, nullable=True)

    # 0..1 likelihood estimate from a patentability assessment
    patentability_score = Column(Float, nullable=True)
    ai_analysis_complete = Column(Boolean, nullable=False, default=False)

    # Free-form results of auxiliary analyses, e.g. the examiner prediction
    data_source = Column(JSON, nullable=True)

    # 'in_progress' until the filing payment is confirmed, then 'completed'
    status = Column(String, nullable=False, default="in_progress")

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    sections = relationship(
        "PatentSection",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="PatentSection.created_at",
    )
    questions = relationship(
        "AIQuestion",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="AIQuestion.created_at",
    )
    prior_art = relationship(
        "PriorArtResult",
        back_populates="session",
        cascade="all, delete-orphan",
    )


class PatentSection(Base):
    """
    One drafted section of an application (abstract, claims, drawings, ...)

    Why keep is_user_edited?
    - AI regeneration resets it to False
    - Manual saves from the editor set it to True so the UI can warn before overwriting
    """
    __tablename__ = "patent_sections"

    id = Column(String(36), primary_key=True, default=new_id)
    session_id = Column(String(36), ForeignKey("patent_sessions.id"), nullable=False, index=True)
    section_type = Column(String, nullable=False)
    content = Column(Text, nullable=False, default="")
    is_user_edited = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    session = relationship("PatentSession", back_populates="sections")


class AIQuestion(Base):
    """Follow-up question asked during intake; answer is NULL until the inventor replies"""
    __tablename__ = "ai_questions"

    id = Column(String(36), primary_key=True, default=new_id)
    session_id = Column(String(36), ForeignKey("patent_sessions.id"), nullable=False, index=True)
    question = Column(Text, nullable=False)
    answer = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    session = relationship("PatentSession", back_populates="questions")


class PriorArtResult(Base):
    __tablename__ = "prior_art_results"

    id = Column(String(36), primary_key=True, default=new_id)
    session_id = Column(String(36), ForeignKey("patent_sessions.id"), nullable=False, index=True)
    title = Column(String, nullable=True)
    publication_number = Column(String, nullable=True)
    summary = Column(Text, nullable=True)
    url = Column(String, nullable=True)
    similarity_score = Column(Float, nullable=True)

    # Lists of short claim fragments
    overlap_claims = Column(JSON, nullable=True)
    difference_claims = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    session = relationship("PatentSession", back_populates="prior_art")


# ===================================================================
# Billing
# ===================================================================

class Subscription(Base):
    """
    One subscription row per user

    Status mirrors the payment processor ('active', 'inactive', 'past_due',
    'cancelled', ...). Plan is 'free', 'check_and_see' or 'admin'.
    """
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), nullable=False, unique=True, index=True)
    status = Column(String, nullable=False, default="inactive")
    plan = Column(String, nullable=False, default="free")
    stripe_subscription_id = Column(String, nullable=True, index=True)
    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class UserSearchCredits(Base):
    """Free-trial prior art search allowance"""
    __tablename__ = "user_search_credits"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), nullable=False, unique=True, index=True)
    searches_used = Column(Integer, nullable=False, default=0)
    free_searches_remaining = Column(Integer, nullable=False, default=3)
    last_search_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class UserRole(Base):
    __tablename__ = "user_roles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    role = Column(String, nullable=False)


class PaymentTransaction(Base):
    """Audit trail of every checkout session created or confirmed"""
    __tablename__ = "payment_transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    application_id = Column(String(36), nullable=True)
    stripe_session_id = Column(String, nullable=True, index=True)
    stripe_payment_intent_id = Column(String, nullable=True)

    # Amounts are in cents
    amount = Column(Integer, nullable=False)
    currency = Column(String, nullable=False, default="usd")

    status = Column(String, nullable=False, default="pending")
    payment_type = Column(String, nullable=False)
    description = Column(String, nullable=True)
    transaction_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class ApplicationPayment(Base):
    """One-time filing fee for a single patent session"""
    __tablename__ = "application_payments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    application_id = Column(String(36), nullable=False, index=True)
    stripe_session_id = Column(String, nullable=False, unique=True)
    stripe_payment_id = Column(String, nullable=True)
    amount = Column(Integer, nullable=False)
    currency = Column(String, nullable=False, default="usd")
    status = Column(String, nullable=False, default="pending")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


# ===================================================================
# Management API connections
# ===================================================================

class ManagementConnection(Base):
    """
    OAuth connection to the user's backend-project management account

    Life cycle: the OAuth callback stores tokens with status 'pending', the user
    then picks an organization and project, and finalize marks it 'active'.
    """
    __tablename__ = "management_connections"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), nullable=False, unique=True, index=True)
    organization_id = Column(String, nullable=True)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=True)
    token_expires_at = Column(DateTime, nullable=True)
    scopes = Column(JSON, nullable=True)
    project_ref = Column(String, nullable=True)
    project_name = Column(String, nullable=True)
    project_region = Column(String, nullable=True)
    connection_status = Column(String, nullable=False, default="pending")
    connection_metadata = Column(JSON, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        """Public view of the connection; tokens are never returned"""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "organization_id": self.organization_id,
            "project_ref": self.project_ref,
            "project_name": self.project_name,
            "project_region": self.project_region,
            "connection_status": self.connection_status,
            "connection_metadata": self.connection_metadata or {},
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
