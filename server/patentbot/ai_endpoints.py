# AI-backed endpoints: analysis, drafting, intake questions, drawings and chat

import asyncio
from datetime import datetime
import json
import logging
from typing import Dict, List, Optional, Union

from fastapi import HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from patentbot.internal.ai import AIGateway, AIGatewayError, get_ai_gateway
from patentbot.internal.crawler import CrawlError, fetch_page_text
from patentbot.internal.prompts import (
    CLAIM_CHART_SYSTEM_PROMPT,
    CLAIMS_FALLBACK_ANALYSIS,
    CLAIMS_SYSTEM_PROMPT,
    CLASSIFICATION_SYSTEM_PROMPT,
    DIAGRAM_SPECS,
    DRAFT_CHAIN_ABSTRACT_PROMPT,
    DRAFT_CHAIN_CLAIMS_PROMPT,
    DRAFT_CHAIN_LEGAL_PROMPT,
    DRAFT_CHAIN_TECHNICAL_PROMPT,
    DRAFT_SECTION_DEFAULTS,
    ENHANCE_SECTION_SYSTEM_PROMPT,
    ENHANCE_SYSTEM_PROMPT,
    EXAMINER_PROMPT,
    EXAMINER_SYSTEM_PROMPT,
    GLOSSARY_SYSTEM_PROMPT,
    PATENTABILITY_SYSTEM_PROMPT,
    QUALITY_FALLBACK_ANALYSIS,
    QUALITY_SYSTEM_PROMPT,
    figure_description,
    format_chat_system_prompt,
    format_claim_chart_prompt,
    format_claims_prompt,
    format_classification_prompt,
    format_diagram_prompt,
    format_draft_system_prompt,
    format_enhance_prompt,
    format_enhance_section_prompt,
    format_followups_prompt,
    format_glossary_prompt,
    format_patentability_context,
    format_quality_prompt,
    glossary_fallback,
    placeholder_description,
)
from patentbot.internal.session_context import (
    build_chat_context,
    build_enhance_context,
    build_invention_context,
    load_session_bundle,
)
from patentbot.internal.settings import get_settings
from patentbot.internal.text_utils import (
    claim_chart_differences,
    claim_chart_overlaps,
    extract_json,
    looks_like_url,
    parse_stage_output,
    word_count,
)
from patentbot.models import AIQuestion, PatentSection, PriorArtResult
from patentbot.schemas import (
    AnalyzeClaimsRequest,
    ClaimChartRequest,
    DiagramsRequest,
    DraftSectionRequest,
    EnhanceAnswerRequest,
    EnhanceSectionRequest,
    FollowupsRequest,
    GlossaryRequest,
    PatentChatRequest,
    SectionQualityRequest,
    SessionRequest,
)

logger = logging.getLogger(__name__)

DIAGRAM_MAX_RETRIES = 2
DIAGRAM_RETRY_DELAY_SECONDS = 1.0
FOLLOWUPS_CRAWL_TIMEOUT_SECONDS = 15.0


def _upsert_section(db: Session, session_id: str, section_type: str, content: str) -> PatentSection:
    """AI output replaces the section and clears the user-edited flag"""
    section = db.scalar(
        select(PatentSection).where(
            PatentSection.session_id == session_id,
            PatentSection.section_type == section_type,
        )
    )
    if section is None:
        section = PatentSection(session_id=session_id, section_type=section_type)
        db.add(section)
    section.content = content
    section.is_user_edited = False
    db.commit()
    return section


def _require_session(db: Session, session_id):
    """Session bundle for a request, 400 without an id and 404 when the session is unknown"""
    if not session_id:
        raise HTTPException(status_code=400, detail="session_id is required")
    bundle = load_session_bundle(db, session_id)
    if not bundle[0]:
        raise HTTPException(status_code=404, detail="Session not found")
    return bundle


# ===================================================================
# Analysis
# ===================================================================

async def analyze_claims(request: AnalyzeClaimsRequest):
    """
    Score each claim for strength, enforceability and USPTO compliance

    Unparseable model output falls back to CLAIMS_FALLBACK_ANALYSIS so the
    front end can still render a report.
    """
    if not request.claims:
        raise HTTPException(status_code=400, detail="Claims content is required")

    ai = get_ai_gateway()
    prior_art = [p.model_dump() for p in request.prior_art]
    logger.info(f"Analyzing claims ({len(request.claims)} chars, {len(prior_art)} prior art references)")

    content = await ai.complete(
        [
            {"role": "system", "content": CLAIMS_SYSTEM_PROMPT},
            {"role": "user", "content": format_claims_prompt(request.claims, prior_art, request.invention_context)},
        ],
        temperature=0.3,
        max_tokens=6000,
    )

    try:
        analysis = extract_json(content, dict)
    except ValueError as e:
        logger.error(f"Failed to parse claims analysis: {e}")
        analysis = dict(CLAIMS_FALLBACK_ANALYSIS)

    return {"success": True, "analysis": analysis}


async def analyze_section_quality(request: SectionQualityRequest):
    if not request.section_type or not request.content:
        raise HTTPException(status_code=400, detail="section_type and content are required")

    ai = get_ai_gateway()
    content = await ai.complete(
        [
            {"role": "system", "content": QUALITY_SYSTEM_PROMPT},
            {"role": "user", "content": format_quality_prompt(request.section_type, request.content)},
        ],
        temperature=0.3,
        max_tokens=1000,
    )

    try:
        analysis = extract_json(content, dict)
    except ValueError as e:
        logger.error(f"Failed to parse section quality analysis: {e}")
        analysis = dict(QUALITY_FALLBACK_ANALYSIS)

    return {"success": True, "analysis": analysis}


async def extract_patent_glossary(request: GlossaryRequest):
    """Returns the glossary object itself (terms + summary), not wrapped"""
    if not request.content:
        raise HTTPException(status_code=400, detail="Content is required")

    ai = get_ai_gateway()
    content = await ai.complete(
        [
            {"role": "system", "content": GLOSSARY_SYSTEM_PROMPT},
            {"role": "user", "content": format_glossary_prompt(request.content, request.section_type)},
        ],
        temperature=0.3,
    )

    try:
        glossary = extract_json(content, dict)
    except ValueError as e:
        logger.error(f"Failed to parse glossary: {e}")
        return glossary_fallback()

    logger.info(f"Extracted {len(glossary.get('terms', []))} glossary terms")
    return glossary


async def analyze_patentability(request: SessionRequest, db: Session):
    """
    Score the invention against novelty, non-obviousness, utility and eligibility

    The 0-100 overall score is stored on the session as a 0..1
    patentability_score and the session is marked as analyzed.
    """
    session, questions, _, prior_art = _require_session(db, request.session_id)
    logger.info(f"Analyzing patentability for session: {request.session_id}")

    ai = get_ai_gateway()
    content = await ai.complete(
        [
            {"role": "system", "content": PATENTABILITY_SYSTEM_PROMPT},
            {"role": "user", "content": format_patentability_context(session, questions, prior_art)},
        ],
        temperature=0.3,
        max_tokens=2000,
    )

    try:
        analysis = extract_json(content, dict)
        overall_score = float(analysis["overall_score"])
    except (ValueError, TypeError, KeyError) as e:
        logger.error(f"Failed to parse patentability analysis: {e}")
        raise HTTPException(status_code=500, detail="Failed to parse patentability analysis")

    session.patentability_score = min(max(overall_score / 100, 0.0), 1.0)
    session.ai_analysis_complete = True
    db.commit()
    logger.info(f"Patentability score for {session.id}: {session.patentability_score:.2f}")

    return {"success": True, "analysis": analysis}


async def predict_examiner(request: SessionRequest, db: Session):
    """
    Classify the invention, then predict the art unit and examiner behaviour

    Both texts are kept under data_source["examiner_prediction"] on the session.
    """
    session, _, _, _ = _require_session(db, request.session_id)
    logger.info("[EXAMINER PREDICTION] Analyzing likely patent examiner...")

    ai = get_ai_gateway()
    classification = await ai.complete(
        [
            {"role": "system", "content": CLASSIFICATION_SYSTEM_PROMPT},
            {"role": "user", "content": format_classification_prompt(session.idea_prompt, session.technical_analysis)},
        ],
        temperature=0.1,
        max_tokens=1000,
        fallback_error="Failed to classify invention",
    )
    prediction = await ai.complete(
        [
            {"role": "system", "content": EXAMINER_SYSTEM_PROMPT},
            {"role": "user", "content": EXAMINER_PROMPT.format(classification=classification)},
        ],
        temperature=0.3,
        max_tokens=1500,
        fallback_error="Failed to predict examiner",
    )

    session.data_source = {
        **(session.data_source or {}),
        "examiner_prediction": {
            "classification": classification,
            "prediction": prediction,
            "generated_at": datetime.utcnow().isoformat(),
        },
    }
    db.commit()
    logger.info("[EXAMINER PREDICTION] Complete")

    return {
        "success": True,
        "classification": classification,
        "prediction": prediction,
        "data_source": "AI analysis of USPTO art unit patterns",
    }


async def generate_claim_chart(request: ClaimChartRequest, db: Session):
    """
    Compare the session's claims element by element with one prior art result

    Overlapping and differing claim elements found in the chart replace the
    result's overlap_claims and difference_claims.
    """
    if not request.session_id or not request.prior_art_id:
        raise HTTPException(status_code=400, detail="session_id and prior_art_id are required")

    claims = db.scalar(
        select(PatentSection).where(
            PatentSection.session_id == request.session_id,
            PatentSection.section_type == "claims",
        )
    )
    if claims is None or not claims.content:
        raise HTTPException(status_code=404, detail="Claims not found. Generate patent draft first.")

    prior_art = db.scalar(
        select(PriorArtResult).where(
            PriorArtResult.id == request.prior_art_id,
            PriorArtResult.session_id == request.session_id,
        )
    )
    if prior_art is None:
        raise HTTPException(status_code=404, detail="Prior art not found")

    logger.info("[CLAIM CHART] Generating element-by-element comparison...")
    ai = get_ai_gateway()
    chart = await ai.complete(
        [
            {"role": "system", "content": CLAIM_CHART_SYSTEM_PROMPT},
            {"role": "user", "content": format_claim_chart_prompt(claims.content, prior_art)},
        ],
        temperature=0.2,
        max_tokens=3000,
        fallback_error="Failed to generate claim chart",
    )

    prior_art.overlap_claims = claim_chart_overlaps(chart)
    prior_art.difference_claims = claim_chart_differences(chart)
    db.commit()
    logger.info(
        f"[CLAIM CHART] Generated successfully ({len(prior_art.overlap_claims)} overlaps, "
        f"{len(prior_art.difference_claims)} differences)"
    )

    return {"success": True, "claim_chart": chart, "prior_art_id": prior_art.id}


# ===================================================================
# Drawings
# ===================================================================

async def generate_diagram(
    ai: AIGateway,
    context: str,
    spec: Dict[str, str],
    index: int,
    max_retries: int = DIAGRAM_MAX_RETRIES,
    retry_delay: float = DIAGRAM_RETRY_DELAY_SECONDS,
) -> Dict:
    """
    Generate one figure, retrying with linear backoff

    Never raises: after the last failed attempt a placeholder figure with
    image_data None is returned so the other figures still get stored.
    """
    figure_number = index + 1
    prompt = format_diagram_prompt(context, spec)

    for attempt in range(max_retries + 1):
        try:
            logger.info(f"[PATENT DIAGRAMS] Generating {spec['title']}... (attempt {attempt + 1})")
            image_url = await ai.generate_image(prompt)
            return {
                "figure_number": figure_number,
                "description": figure_description(figure_number, spec["title"]),
                "image_data": image_url,
            }
        except AIGatewayError as e:
            logger.error(f"[PATENT DIAGRAMS] Attempt {attempt + 1} failed for {spec['title']}: {e.message}")
            if attempt == max_retries:
                logger.warning(f"[PATENT DIAGRAMS] All retries exhausted for {spec['title']}, using placeholder")
                break
            await asyncio.sleep(retry_delay * (attempt + 1))

    return {
        "figure_number": figure_number,
        "description": placeholder_description(figure_number, spec["title"]),
        "image_data": None,
    }


async def generate_patent_diagrams(
    request: DiagramsRequest,
    db: Session,
    retry_delay: float = DIAGRAM_RETRY_DELAY_SECONDS,
):
    """Generate all four figures concurrently and store them as the drawings section"""
    if not request.session_id:
        raise HTTPException(status_code=400, detail="session_id is required")

    ai = get_ai_gateway()
    logger.info("[PATENT DIAGRAMS] Generating patent diagrams with AI")

    diagrams = await asyncio.gather(*[
        generate_diagram(ai, request.context, spec, index, retry_delay=retry_delay)
        for index, spec in enumerate(DIAGRAM_SPECS)
    ])

    _upsert_section(db, request.session_id, "drawings", json.dumps(diagrams))
    logger.info(f"[PATENT DIAGRAMS] Generated {len(diagrams)} diagrams")

    return {"success": True, "diagrams_count": len(diagrams)}


# ===================================================================
# Drafting and intake
# ===================================================================

async def draft_patent_section(request: DraftSectionRequest, db: Session):
    if not request.session_id or not request.section_type:
        raise HTTPException(status_code=400, detail="session_id and section_type are required")

    session, questions, sections, _ = load_session_bundle(db, request.session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")

    logger.info(f"Drafting {request.section_type} section for session: {request.session_id}")
    ai = get_ai_gateway()
    content = await ai.complete(
        [
            {"role": "system", "content": format_draft_system_prompt(request.section_type)},
            {"role": "user", "content": build_invention_context(session, questions, sections, request.user_input)},
        ],
        temperature=0.2,
        max_tokens=2000,
        fallback_error="Failed to draft section",
    )

    _upsert_section(db, request.session_id, request.section_type, content)

    return {
        "success": True,
        "section_type": request.section_type,
        "content": content,
        "word_count": word_count(content),
    }


async def enhance_patent_section(request: EnhanceSectionRequest, db: Session):
    """Redraft one section against the Q&A and the closest prior art, then store it"""
    if not request.session_id or not request.section_type:
        raise HTTPException(status_code=400, detail="session_id and section_type are required")

    session, questions, _, prior_art = _require_session(db, request.session_id)

    # Claims get the stronger model
    model = get_settings().ai_claims_model if request.section_type == "claims" else None
    max_tokens = 2000 if request.section_type == "description" else 1000
    logger.info(f"Enhancing {request.section_type} section for session: {request.session_id}")

    ai = get_ai_gateway()
    content = await ai.complete(
        [
            {"role": "system", "content": ENHANCE_SECTION_SYSTEM_PROMPT},
            {"role": "user", "content": format_enhance_section_prompt(
                request.section_type, session.idea_prompt, questions, prior_art,
            )},
        ],
        temperature=0.2,
        max_tokens=max_tokens,
        model=model,
        fallback_error="Failed to enhance patent section",
    )

    _upsert_section(db, request.session_id, request.section_type, content)

    return {
        "success": True,
        "section_type": request.section_type,
        "model_used": model or ai.model,
        "content_length": len(content),
    }


def _stage_text(stage: Union[dict, str], key: str, raw_limit: Optional[int] = 0) -> str:
    """
    Section text from one drafting stage

    A parsed stage gives its `key`; a raw text stage gives its first
    `raw_limit` characters (all of it for None, nothing for 0). Empty results
    fall back to the section default.
    """
    if isinstance(stage, dict):
        value = stage.get(key)
        if isinstance(value, str) and value.strip():
            return value
    elif stage and raw_limit != 0:
        return stage[:raw_limit]
    return DRAFT_SECTION_DEFAULTS[key]


def assemble_draft(legal, claims, abstract) -> Dict[str, str]:
    """Combine the legal, claims and abstract stage outputs into the seven draft sections"""
    return {
        "abstract": _stage_text(abstract, "abstract", raw_limit=300),
        "field": _stage_text(legal, "field"),
        "background": _stage_text(legal, "background", raw_limit=500),
        "summary": _stage_text(legal, "summary"),
        "claims": _stage_text(claims, "claims", raw_limit=None),
        "drawings": _stage_text(abstract, "drawings"),
        "description": _stage_text(legal, "description", raw_limit=None),
    }


async def generate_patent_draft(request: SessionRequest, db: Session):
    """
    Generate a complete draft with a four-stage chain

    1. Technical extraction from the idea and answered Q&A
    2. Legal formatting into field, background, summary and description
    3. Claims expansion
    4. Abstract and drawing descriptions

    The session's existing sections are replaced by the seven generated ones.
    """
    session, questions, _, _ = _require_session(db, request.session_id)

    answered = [q for q in questions if q.answer]
    if not answered:
        raise HTTPException(status_code=400, detail="No answered questions found")

    qa_text = "\n\n".join(f"Q: {q.question}\nA: {q.answer}" for q in answered)
    idea_prompt = session.idea_prompt or "No specific idea provided"
    ai = get_ai_gateway()

    async def run_stage(system_prompt: str, user_content: str) -> str:
        return await ai.complete(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            temperature=0.7,
            max_tokens=2000,
            fallback_error="Failed to generate patent draft",
        )

    logger.info("Stage 1: Deep technical extraction")
    technical = await run_stage(DRAFT_CHAIN_TECHNICAL_PROMPT, f"Invention Idea: {idea_prompt}\n\nQ&A Results:\n{qa_text}")

    logger.info("Stage 2: Legal language formatting")
    legal = await run_stage(DRAFT_CHAIN_LEGAL_PROMPT, technical)

    logger.info("Stage 3: Claims expansion")
    claims = await run_stage(DRAFT_CHAIN_CLAIMS_PROMPT, f"Technical Analysis: {technical}\n\nLegal Formatted: {legal}")

    logger.info("Stage 4: Prior art differentiation")
    abstract = await run_stage(
        DRAFT_CHAIN_ABSTRACT_PROMPT,
        f"Technical: {technical}\nLegal: {legal}\nClaims: {claims}",
    )

    draft = assemble_draft(
        parse_stage_output(legal),
        parse_stage_output(claims),
        parse_stage_output(abstract),
    )

    db.execute(delete(PatentSection).where(PatentSection.session_id == session.id))
    db.add_all([
        PatentSection(session_id=session.id, section_type=section_type, content=content, is_user_edited=False)
        for section_type, content in draft.items()
    ])
    db.commit()
    logger.info(f"✅ Patent draft with {len(draft)} sections stored for session {session.id}")

    return {
        "success": True,
        "sections_generated": len(draft),
        "sections": [{"type": t, "length": len(c)} for t, c in draft.items()],
    }


async def enhance_answer(request: EnhanceAnswerRequest, db: Session):
    if not request.question or not request.answer:
        raise HTTPException(status_code=400, detail="question and answer are required")

    session, questions, sections, prior_art = (None, [], [], [])
    if request.session_id:
        session, questions, sections, prior_art = load_session_bundle(db, request.session_id)

    context = build_enhance_context(session, questions, sections, prior_art, request.github_url)

    ai = get_ai_gateway()
    enhanced = await ai.complete(
        [
            {"role": "system", "content": ENHANCE_SYSTEM_PROMPT},
            {"role": "user", "content": format_enhance_prompt(request.question, request.answer, context)},
        ],
        temperature=0.3,
        max_tokens=600,
        fallback_error="AI request failed",
    )

    return {"success": True, "enhancedAnswer": enhanced.strip()}


async def _crawl_for_context(idea_prompt: str) -> str:
    """Page text for a URL-like idea prompt, or "" when crawling fails"""
    url = idea_prompt.strip()
    if not url.startswith("http"):
        url = "https://" + url

    logger.info(f"Detected URL input, crawling content: {url}")
    try:
        text = await fetch_page_text(url, timeout=FOLLOWUPS_CRAWL_TIMEOUT_SECONDS)
    except CrawlError as e:
        logger.warning(f"Continuing without crawled content: {e.message}")
        return ""

    if len(text) <= 100:
        logger.warning(f"Very little content extracted from URL: {text!r}")
    return text


async def ask_followups(request: FollowupsRequest, db: Session):
    """
    Generate the intake interview for a new session

    Previously generated questions for the session are replaced.
    """
    if not request.session_id or not request.idea_prompt:
        raise HTTPException(status_code=400, detail="session_id and idea_prompt are required")

    url_crawled = looks_like_url(request.idea_prompt)
    contextual_info = await _crawl_for_context(request.idea_prompt) if url_crawled else ""

    logger.info(f"Generating follow-up questions (context length {len(contextual_info)})")
    ai = get_ai_gateway()
    content = await ai.complete(
        [{"role": "system", "content": format_followups_prompt(request.idea_prompt, contextual_info)}],
        temperature=0.7,
        max_tokens=1000,
        fallback_error="Failed to generate follow-up questions",
    )

    try:
        questions: List = extract_json(content, list)
    except ValueError as e:
        logger.error(f"Failed to parse follow-up questions: {e}")
        raise HTTPException(status_code=500, detail="Failed to parse generated questions")

    texts = [str(q).strip() for q in questions if str(q).strip()]

    db.execute(delete(AIQuestion).where(AIQuestion.session_id == request.session_id))
    db.add_all([AIQuestion(session_id=request.session_id, question=q) for q in texts])
    db.commit()
    logger.info(f"✅ Saved {len(texts)} follow-up questions")

    return {
        "success": True,
        "questions_generated": len(texts),
        "url_crawled": url_crawled,
        "context_length": len(contextual_info),
    }


# ===================================================================
# Chat
# ===================================================================

def sse_event(data) -> str:
    payload = data if isinstance(data, str) else json.dumps(data)
    return f"data: {payload}\n\n"


async def patent_chat(request: PatentChatRequest, db: Session):
    """
    Stream an assistant reply as server-sent events

    Each chunk mirrors the OpenAI streaming shape
        data: {"choices": [{"delta": {"content": "..."}}]}
    and the stream ends with data: [DONE].
    """
    patent_context = ""
    if request.session_id:
        session, _, sections, prior_art = load_session_bundle(db, request.session_id)
        patent_context = build_chat_context(session, sections, prior_art)

    messages = [{"role": "system", "content": format_chat_system_prompt(request.mode, patent_context)}]
    messages += [{"role": m.role, "content": m.content} for m in request.messages]

    ai = get_ai_gateway()
    # Opened before responding so gateway errors still produce a JSON error
    deltas = await ai.open_chat_stream(messages, temperature=0.4, max_tokens=4000)

    async def event_stream():
        async for delta in deltas:
            yield sse_event({"choices": [{"delta": {"content": delta}}]})
        yield sse_event("[DONE]")

    return StreamingResponse(event_stream(), media_type="text/event-stream")
