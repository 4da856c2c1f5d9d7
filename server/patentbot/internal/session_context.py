"""
Patent session context for AI prompts

Each AI route describes the same session slightly differently (how much of
each section, how many prior art references), so the renderings live here
next to each other.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from patentbot.internal.text_utils import percent
from patentbot.models import AIQuestion, PatentSection, PatentSession, PriorArtResult

MAX_ENHANCE_CONTEXT_CHARS = 12000


def load_session_bundle(db: Session, session_id: str):
    """
    Load a session with its questions, sections and prior art (best match first)

    Returns:
        (session | None, questions, sections, prior_art)
    """
    session = db.get(PatentSession, session_id)
    if not session:
        return None, [], [], []

    questions = db.scalars(
        select(AIQuestion).where(AIQuestion.session_id == session_id).order_by(AIQuestion.created_at)
    ).all()
    sections = db.scalars(
        select(PatentSection).where(PatentSection.session_id == session_id).order_by(PatentSection.created_at)
    ).all()
    prior_art = db.scalars(
        select(PriorArtResult)
        .where(PriorArtResult.session_id == session_id)
        .order_by(PriorArtResult.similarity_score.desc())
    ).all()
    return session, list(questions), list(sections), list(prior_art)


def build_invention_context(
    session: PatentSession,
    questions: List[AIQuestion],
    sections: List[PatentSection],
    user_input: Optional[str] = None,
) -> str:
    """Full context for drafting: answered Q&A and every existing section"""
    qa = "\n\n".join(f"Q: {q.question}\nA: {q.answer}" for q in questions if q.answer)
    existing = "\n\n".join(f"{s.section_type}:\n{s.content}" for s in sections)

    parts = [
        f"Invention Title: {session.idea_prompt}",
        f"Patent Type: {session.patent_type}",
        f"Technical Analysis: {session.technical_analysis or ''}",
        f"Detailed Q&A:\n{qa}",
        f"Existing Sections:\n{existing}",
    ]
    if user_input:
        parts.append(f"Additional Input: {user_input}")
    return "\n\n".join(parts)


def build_chat_context(
    session: Optional[PatentSession],
    sections: List[PatentSection],
    prior_art: List[PriorArtResult],
) -> str:
    """Compact context for the chat assistant: section previews and top five prior art"""
    if not session:
        return ""

    score = (
        f"{percent(session.patentability_score)}%"
        if session.patentability_score is not None
        else "Not assessed"
    )
    section_lines = "\n\n".join(
        f"[{s.section_type}]: {(s.content or '')[:500]}..." for s in sections
    )
    prior_art_lines = "\n".join(
        f"- {p.title} ({p.publication_number}) - {percent(p.similarity_score)}% similar\n"
        f"  Overlaps: {'; '.join(p.overlap_claims or [])}\n"
        f"  Differences: {'; '.join(p.difference_claims or [])}"
        for p in prior_art[:5]
    )

    return f"""
PATENT APPLICATION CONTEXT:
- Invention: {session.idea_prompt or 'Not specified'}
- Type: {session.patent_type or 'Not specified'}
- Patentability Score: {score}
- Technical Analysis: {session.technical_analysis or 'None'}

CURRENT DRAFT SECTIONS:
{section_lines}

TOP PRIOR ART (potential conflicts):
{prior_art_lines}
"""


def build_enhance_context(
    session: Optional[PatentSession],
    questions: List[AIQuestion],
    sections: List[PatentSection],
    prior_art: List[PriorArtResult],
    github_url: Optional[str] = None,
) -> str:
    """Reference context for answer enhancement, bounded to MAX_ENHANCE_CONTEXT_CHARS"""
    parts = []
    if session:
        parts.append(f"Invention: {session.idea_prompt or ''}")
        parts.append(f"Patent Type: {session.patent_type or ''}")
    if github_url:
        parts.append(f"GitHub: {github_url}")
    if sections:
        joined = "\n\n".join(f"# {s.section_type}\n{(s.content or '')[:1000]}" for s in sections[:6])
        parts.append(f"Sections:\n{joined}")
    if questions:
        joined = "\n\n".join(f"Q: {q.question}\nA: {q.answer or ''}" for q in questions[:8])
        parts.append(f"Q&A so far:\n{joined}")
    if prior_art:
        joined = "\n".join(
            f"- {p.title} :: {percent(p.similarity_score, 1)}%\n{p.summary or ''}" for p in prior_art[:5]
        )
        parts.append(f"Relevant prior art:\n{joined}")

    return "\n\n".join(parts)[:MAX_ENHANCE_CONTEXT_CHARS]
