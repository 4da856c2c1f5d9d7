# Patent session storage, export and URL crawling endpoints

import logging

from fastapi import HTTPException
from fastapi.responses import Response
from sqlalchemy import select
from sqlalchemy.orm import Session

from patentbot.internal.crawler import crawl_url
from patentbot.internal.patent_export import EXPORT_FILENAME, PatentTextExporter
from patentbot.internal.text_utils import sanitize_text, validate_patent_idea, validate_section_content
from patentbot.models import PatentSection, PatentSession
from patentbot.schemas import (
    AuthUser,
    CrawlRequest,
    CreateSessionRequest,
    ExportRequest,
    PatentSessionRead,
    PatentSessionSummary,
    SaveSectionRequest,
)

logger = logging.getLogger(__name__)


def _owned_session(db: Session, session_id: str, user: AuthUser) -> PatentSession:
    session = db.get(PatentSession, session_id)
    # Someone else's session is reported exactly like a missing one
    if not session or session.user_id != user.id:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def list_sessions(user: AuthUser, db: Session):
    sessions = db.scalars(
        select(PatentSession)
        .where(PatentSession.user_id == user.id)
        .order_by(PatentSession.created_at.desc())
    ).all()
    return [PatentSessionSummary.model_validate(s) for s in sessions]


def create_session(request: CreateSessionRequest, user: AuthUser, db: Session):
    """
    Start a new drafting session

    The idea is validated before sanitizing so a prompt made only of markup
    is still reported as too short rather than silently stored empty.
    """
    is_valid, error_message = validate_patent_idea(request.idea_prompt)
    if not is_valid:
        raise HTTPException(status_code=400, detail=error_message)

    idea = sanitize_text(request.idea_prompt)
    is_valid, error_message = validate_patent_idea(idea)
    if not is_valid:
        raise HTTPException(status_code=400, detail=error_message)

    session = PatentSession(
        user_id=user.id,
        idea_prompt=idea,
        patent_type=request.patent_type or "utility",
        status="in_progress",
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info(f"Created patent session {session.id} for user {user.id}")

    return PatentSessionRead.model_validate(session)


def get_session(session_id: str, user: AuthUser, db: Session):
    session = _owned_session(db, session_id, user)
    return PatentSessionRead.model_validate(session)


def save_section(session_id: str, section_type: str, request: SaveSectionRequest, user: AuthUser, db: Session):
    """Manual save from the editor; marks the section as user edited"""
    _owned_session(db, session_id, user)

    is_valid, error_message = validate_section_content(request.content)
    if not is_valid:
        raise HTTPException(status_code=400, detail=error_message)

    section = db.scalar(
        select(PatentSection).where(
            PatentSection.session_id == session_id,
            PatentSection.section_type == section_type,
        )
    )
    if section is None:
        section = PatentSection(session_id=session_id, section_type=section_type)
        db.add(section)

    section.content = request.content
    section.is_user_edited = True
    db.commit()
    db.refresh(section)

    return {
        "id": section.id,
        "session_id": session_id,
        "section_type": section_type,
        "content": section.content,
        "is_user_edited": section.is_user_edited,
    }


def export_patent(request: ExportRequest, db: Session):
    if not request.session_id:
        raise HTTPException(status_code=400, detail="session_id is required")

    session = db.get(PatentSession, request.session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")

    sections = db.scalars(
        select(PatentSection)
        .where(PatentSection.session_id == request.session_id)
        .order_by(PatentSection.created_at)
    ).all()
    if not sections:
        raise HTTPException(status_code=400, detail="No patent sections found")

    document = PatentTextExporter().render(session, sections)
    logger.info(f"Exported session {session.id} ({len(sections)} sections)")

    return Response(
        content=document,
        media_type="text/plain; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


async def crawl_url_content(request: CrawlRequest):
    if not request.url:
        raise HTTPException(status_code=400, detail="url is required")

    content = await crawl_url(request.url)
    return {
        "success": True,
        "url": request.url,
        "content": content,
        "content_length": len(content),
    }
