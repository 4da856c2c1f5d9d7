from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from patentbot.internal.ai import AIGatewayError
from patentbot.internal.auth import get_current_user, get_current_user_with_email
from patentbot.internal.crawler import CrawlError
from patentbot.internal.db import Base, engine, get_db
from patentbot.internal.management_api import ManagementAPIError
import patentbot.schemas as schemas

from patentbot import ai_endpoints, billing_endpoints, connection_endpoints, credits_endpoints, session_endpoints

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Create the database tables on startup"""
    Base.metadata.create_all(bind=engine)
    logger.info("✅ Database tables ready")
    yield


app = FastAPI(title="PatentBot API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ===================================================================
# Errors raised by external collaborators
# ===================================================================

@app.exception_handler(AIGatewayError)
async def ai_gateway_error_handler(_: Request, exc: AIGatewayError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(CrawlError)
async def crawl_error_handler(_: Request, exc: CrawlError):
    content = {"detail": exc.message}
    if exc.content is not None:
        content["content"] = exc.content
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(ManagementAPIError)
async def management_api_error_handler(_: Request, exc: ManagementAPIError):
    return JSONResponse(status_code=exc.status_code, content={"success": False, "detail": exc.message})


# ===================================================================
# Payments
# ===================================================================

@app.post("/api/create-checkout")
def create_checkout(
    request: schemas.CheckoutRequest = schemas.CheckoutRequest(),
    user: schemas.AuthUser = Depends(get_current_user_with_email),
    db: Session = Depends(get_db),
):
    return billing_endpoints.create_checkout(request, user, db)


@app.post("/api/create-payment")
def create_payment(
    request: schemas.PaymentRequest,
    user: schemas.AuthUser = Depends(get_current_user_with_email),
    db: Session = Depends(get_db),
):
    return billing_endpoints.create_payment(request, user, db)


@app.post("/api/verify-payment")
def verify_payment(request: schemas.VerifyPaymentRequest, db: Session = Depends(get_db)):
    return billing_endpoints.verify_payment(request, db)


@app.post("/api/stripe-webhook")
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    return await billing_endpoints.stripe_webhook(request, db)


# ===================================================================
# Subscriptions and search credits
# ===================================================================

@app.post("/api/check-search-credits")
def check_search_credits(
    user: schemas.AuthUser = Depends(get_current_user), db: Session = Depends(get_db)
):
    return credits_endpoints.check_search_credits(user, db)


@app.post("/api/use-search-credit")
def use_search_credit(
    user: schemas.AuthUser = Depends(get_current_user), db: Session = Depends(get_db)
):
    return credits_endpoints.use_search_credit(user, db)


@app.post("/api/check-subscription")
def check_subscription(
    user: schemas.AuthUser = Depends(get_current_user_with_email), db: Session = Depends(get_db)
):
    return credits_endpoints.check_subscription(user, db)


# ===================================================================
# AI analysis and drafting
# ===================================================================

@app.post("/api/analyze-claims")
async def analyze_claims(request: schemas.AnalyzeClaimsRequest):
    return await ai_endpoints.analyze_claims(request)


@app.post("/api/analyze-section-quality")
async def analyze_section_quality(request: schemas.SectionQualityRequest):
    return await ai_endpoints.analyze_section_quality(request)


@app.post("/api/extract-patent-glossary")
async def extract_patent_glossary(request: schemas.GlossaryRequest):
    return await ai_endpoints.extract_patent_glossary(request)


@app.post("/api/generate-patent-diagrams")
async def generate_patent_diagrams(request: schemas.DiagramsRequest, db: Session = Depends(get_db)):
    return await ai_endpoints.generate_patent_diagrams(request, db)


@app.post("/api/draft-patent-section")
async def draft_patent_section(request: schemas.DraftSectionRequest, db: Session = Depends(get_db)):
    return await ai_endpoints.draft_patent_section(request, db)


@app.post("/api/enhance-answer")
async def enhance_answer(request: schemas.EnhanceAnswerRequest, db: Session = Depends(get_db)):
    return await ai_endpoints.enhance_answer(request, db)


@app.post("/api/ask-followups")
async def ask_followups(request: schemas.FollowupsRequest, db: Session = Depends(get_db)):
    return await ai_endpoints.ask_followups(request, db)


@app.post("/api/patent-chat")
async def patent_chat(request: schemas.PatentChatRequest, db: Session = Depends(get_db)):
    return await ai_endpoints.patent_chat(request, db)


@app.post("/api/analyze-patentability")
async def analyze_patentability(request: schemas.SessionRequest, db: Session = Depends(get_db)):
    return await ai_endpoints.analyze_patentability(request, db)


@app.post("/api/enhance-patent-section")
async def enhance_patent_section(request: schemas.EnhanceSectionRequest, db: Session = Depends(get_db)):
    return await ai_endpoints.enhance_patent_section(request, db)


@app.post("/api/generate-claim-chart")
async def generate_claim_chart(request: schemas.ClaimChartRequest, db: Session = Depends(get_db)):
    return await ai_endpoints.generate_claim_chart(request, db)


@app.post("/api/predict-examiner")
async def predict_examiner(request: schemas.SessionRequest, db: Session = Depends(get_db)):
    return await ai_endpoints.predict_examiner(request, db)


@app.post("/api/generate-patent-draft")
async def generate_patent_draft(request: schemas.SessionRequest, db: Session = Depends(get_db)):
    return await ai_endpoints.generate_patent_draft(request, db)


@app.post("/api/crawl-url-content")
async def crawl_url_content(request: schemas.CrawlRequest):
    return await session_endpoints.crawl_url_content(request)


# ===================================================================
# Management API connection
# ===================================================================

@app.post("/api/oauth/init")
def oauth_init(
    user: schemas.AuthUser = Depends(get_current_user),
    referer: Optional[str] = Header(default=None),
    origin: Optional[str] = Header(default=None),
):
    return connection_endpoints.oauth_init(user, referer, origin)


@app.get("/api/oauth/callback")
async def oauth_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return await connection_endpoints.oauth_callback(db, code=code, state=state, error=error)


@app.post("/api/oauth/organizations")
async def oauth_organizations(
    user: schemas.AuthUser = Depends(get_current_user), db: Session = Depends(get_db)
):
    return await connection_endpoints.get_organizations(user, db)


@app.post("/api/oauth/projects")
async def oauth_projects(
    request: schemas.ProjectsRequest,
    user: schemas.AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return await connection_endpoints.get_projects(request, user, db)


@app.post("/api/oauth/finalize")
def oauth_finalize(
    request: schemas.FinalizeConnectionRequest,
    user: schemas.AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return connection_endpoints.finalize_connection(request, user, db)


# ===================================================================
# Patent sessions
# ===================================================================

@app.get("/api/sessions")
def list_sessions(
    user: schemas.AuthUser = Depends(get_current_user), db: Session = Depends(get_db)
) -> list[schemas.PatentSessionSummary]:
    return session_endpoints.list_sessions(user, db)


@app.post("/api/sessions")
def create_session(
    request: schemas.CreateSessionRequest,
    user: schemas.AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> schemas.PatentSessionRead:
    return session_endpoints.create_session(request, user, db)


@app.get("/api/sessions/{session_id}")
def get_session(
    session_id: str, user: schemas.AuthUser = Depends(get_current_user), db: Session = Depends(get_db)
) -> schemas.PatentSessionRead:
    return session_endpoints.get_session(session_id, user, db)


@app.put("/api/sessions/{session_id}/sections/{section_type}")
def save_section(
    session_id: str,
    section_type: str,
    request: schemas.SaveSectionRequest,
    user: schemas.AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return session_endpoints.save_section(session_id, section_type, request, user, db)


@app.post("/api/export-patent")
def export_patent(request: schemas.ExportRequest, db: Session = Depends(get_db)):
    return session_endpoints.export_patent(request, db)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
