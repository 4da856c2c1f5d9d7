"""
Tests for the AI-backed endpoints with the gateway mocked out.
"""

import json
from unittest import IsolatedAsyncioTestCase
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import status
from sqlalchemy import select

from patentbot.ai_endpoints import assemble_draft, generate_diagram
from patentbot.internal.ai import RATE_LIMIT_MESSAGE, AIGatewayError
from patentbot.internal.crawler import CrawlError
from patentbot.internal.prompts import DIAGRAM_SPECS
from patentbot.models import AIQuestion, PatentSection, PatentSession, PriorArtResult


@pytest.fixture
def mock_gateway():
    """Patch get_ai_gateway so no request leaves the test process."""
    gateway = MagicMock()
    gateway.complete = AsyncMock()
    gateway.generate_image = AsyncMock()
    gateway.open_chat_stream = AsyncMock()
    with patch("patentbot.ai_endpoints.get_ai_gateway", return_value=gateway):
        yield gateway


class TestAnalyzeClaims:

    def test_claims_required(self, client, mock_gateway):
        response = client.post("/api/analyze-claims", json={"claims": ""})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "Claims content is required"
        mock_gateway.complete.assert_not_called()

    def test_analysis_parsed_from_fenced_json(self, client, mock_gateway):
        mock_gateway.complete.return_value = (
            'Analysis follows\n```json\n{"overallScore": 78, "overallGrade": "B", "claims": []}\n```'
        )

        response = client.post("/api/analyze-claims", json={
            "claims": "1. A plant pot comprising a reservoir.",
            "priorArt": [{
                "title": "Smart planter",
                "publication_number": "US7654321B1",
                "similarity_score": 0.83,
                "overlap_claims": ["moisture sensor"],
                "difference_claims": ["no reservoir"],
            }],
            "inventionContext": "Self-watering pot",
        })

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["analysis"]["overallScore"] == 78

        messages = mock_gateway.complete.call_args.args[0]
        user_prompt = messages[1]["content"]
        assert "RELEVANT PRIOR ART" in user_prompt
        assert "1. Smart planter (US7654321B1) - 83% similar" in user_prompt
        assert "Self-watering pot" in user_prompt

    def test_unparseable_output_uses_fallback(self, client, mock_gateway):
        mock_gateway.complete.return_value = "I could not produce JSON this time."

        response = client.post("/api/analyze-claims", json={"claims": "1. A widget."})

        assert response.status_code == status.HTTP_200_OK
        analysis = response.json()["analysis"]
        assert analysis["overallScore"] == 65
        assert analysis["overallGrade"] == "C"
        assert analysis["portfolioRecommendations"] == ["Manual review recommended - AI parsing failed"]

    def test_rate_limit_is_forwarded(self, client, mock_gateway):
        mock_gateway.complete.side_effect = AIGatewayError(RATE_LIMIT_MESSAGE, 429)

        response = client.post("/api/analyze-claims", json={"claims": "1. A widget."})

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        assert response.json()["detail"] == RATE_LIMIT_MESSAGE

    def test_missing_gateway_key(self, client, monkeypatch):
        monkeypatch.setenv("AI_GATEWAY_API_KEY", "")

        response = client.post("/api/analyze-claims", json={"claims": "1. A widget."})

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["detail"] == "AI_GATEWAY_API_KEY is not configured"


class TestSectionQualityAndGlossary:

    def test_section_quality_requires_both_fields(self, client, mock_gateway):
        response = client.post("/api/analyze-section-quality", json={"section_type": "abstract"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "section_type and content are required"

    def test_section_quality_prompt_lists_requirements(self, client, mock_gateway):
        mock_gateway.complete.return_value = '{"score": 85, "grade": "B"}'

        response = client.post("/api/analyze-section-quality", json={
            "section_type": "abstract", "content": "A plant pot with a sensor.",
        })

        assert response.json() == {"success": True, "analysis": {"score": 85, "grade": "B"}}
        user_prompt = mock_gateway.complete.call_args.args[0][1]["content"]
        assert "Must summarize the invention in a single paragraph" in user_prompt

    def test_section_quality_fallback(self, client, mock_gateway):
        mock_gateway.complete.return_value = "not json"

        response = client.post("/api/analyze-section-quality", json={
            "section_type": "claims", "content": "1. A pot.",
        })

        analysis = response.json()["analysis"]
        assert analysis["score"] == 70
        assert analysis["grade"] == "C"

    def test_glossary_returned_unwrapped(self, client, mock_gateway):
        glossary = {
            "terms": [{"term": "MCU", "definition": "Microcontroller unit", "category": "acronym"}],
            "summary": {"totalTerms": 1, "needsStandardization": 0, "categories": {"acronym": 1}},
        }
        mock_gateway.complete.return_value = json.dumps(glossary)

        response = client.post("/api/extract-patent-glossary", json={"content": "The MCU reads...", "sectionType": "claims"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == glossary
        assert "Analyze this claims section" in mock_gateway.complete.call_args.args[0][1]["content"]

    def test_glossary_fallback(self, client, mock_gateway):
        mock_gateway.complete.return_value = "Sorry"

        response = client.post("/api/extract-patent-glossary", json={"content": "text"})

        assert response.json() == {
            "terms": [],
            "summary": {"totalTerms": 0, "needsStandardization": 0, "categories": {}},
            "error": "Failed to parse AI response",
        }

    def test_glossary_requires_content(self, client, mock_gateway):
        response = client.post("/api/extract-patent-glossary", json={})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "Content is required"


class TestGenerateDiagram(IsolatedAsyncioTestCase):
    """Retry behaviour of a single figure."""

    async def test_succeeds_after_retries(self):
        ai = MagicMock()
        ai.generate_image = AsyncMock(side_effect=[
            AIGatewayError("No image generated in response"),
            AIGatewayError("No image generated in response"),
            "data:image/png;base64,OK",
        ])

        figure = await generate_diagram(ai, "plant pot", DIAGRAM_SPECS[1], 1, retry_delay=0)

        self.assertEqual(ai.generate_image.await_count, 3)
        self.assertEqual(figure["figure_number"], 2)
        self.assertEqual(figure["image_data"], "data:image/png;base64,OK")
        self.assertIn("Figure 2 - Process Flow Diagram", figure["description"])

    async def test_placeholder_after_final_failure(self):
        ai = MagicMock()
        ai.generate_image = AsyncMock(side_effect=AIGatewayError("AI image generation error (500): boom"))

        figure = await generate_diagram(ai, "plant pot", DIAGRAM_SPECS[0], 0, retry_delay=0)

        self.assertEqual(ai.generate_image.await_count, 3)
        self.assertIsNone(figure["image_data"])
        self.assertIn("[Diagram generation pending - please regenerate this section]", figure["description"])

    @patch("patentbot.ai_endpoints.asyncio.sleep", new_callable=AsyncMock)
    async def test_linear_backoff(self, mock_sleep):
        ai = MagicMock()
        ai.generate_image = AsyncMock(side_effect=AIGatewayError("down"))

        await generate_diagram(ai, "ctx", DIAGRAM_SPECS[0], 0, retry_delay=1.0)

        self.assertEqual([c.args[0] for c in mock_sleep.await_args_list], [1.0, 2.0])


class TestGeneratePatentDiagrams:

    def test_four_figures_stored_as_drawings(self, client, mock_gateway, db_session, sample_session):
        mock_gateway.generate_image.return_value = "data:image/png;base64,IMG"

        response = client.post("/api/generate-patent-diagrams", json={
            "session_id": sample_session.id, "context": "A self-watering pot",
        })

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"success": True, "diagrams_count": 4}

        section = db_session.scalar(select(PatentSection).where(
            PatentSection.session_id == sample_session.id, PatentSection.section_type == "drawings",
        ))
        figures = json.loads(section.content)
        assert [f["figure_number"] for f in figures] == [1, 2, 3, 4]
        assert all(f["image_data"] == "data:image/png;base64,IMG" for f in figures)
        assert section.is_user_edited is False

    def test_existing_drawings_replaced(self, client, mock_gateway, db_session, sample_session):
        db_session.add(PatentSection(session_id=sample_session.id, section_type="drawings",
                                     content="old", is_user_edited=True))
        db_session.commit()
        mock_gateway.generate_image.return_value = "data:image/png;base64,NEW"

        client.post("/api/generate-patent-diagrams", json={"session_id": sample_session.id, "context": "x"})

        sections = db_session.scalars(select(PatentSection).where(
            PatentSection.session_id == sample_session.id, PatentSection.section_type == "drawings",
        )).all()
        assert len(sections) == 1
        assert sections[0].content != "old"
        assert sections[0].is_user_edited is False


class TestDraftingAndIntake:

    def test_draft_section(self, client, mock_gateway, db_session, sample_session, sample_questions):
        mock_gateway.complete.return_value = "A plant pot comprising a reservoir and sensor."

        response = client.post("/api/draft-patent-section", json={
            "session_id": sample_session.id, "section_type": "abstract", "user_input": "Mention the app",
        })

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data == {
            "success": True,
            "section_type": "abstract",
            "content": "A plant pot comprising a reservoir and sensor.",
            "word_count": 8,
        }

        system_prompt, user_prompt = [m["content"] for m in mock_gateway.complete.call_args.args[0]]
        assert "Section to draft: ABSTRACT" in system_prompt
        assert "A capacitive soil moisture probe." in user_prompt
        # Unanswered questions are left out of the drafting context
        assert "How is water delivered?" not in user_prompt
        assert "Additional Input: Mention the app" in user_prompt

        section = db_session.scalar(select(PatentSection).where(PatentSection.section_type == "abstract"))
        assert section.content == "A plant pot comprising a reservoir and sensor."

    def test_draft_unknown_session(self, client, mock_gateway):
        response = client.post("/api/draft-patent-section", json={"session_id": "missing", "section_type": "claims"})

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_enhance_answer(self, client, mock_gateway, sample_session, sample_sections, sample_prior_art):
        mock_gateway.complete.return_value = "  The probe measures capacitance.  "

        response = client.post("/api/enhance-answer", json={
            "session_id": sample_session.id,
            "question": "What sensor is used?",
            "answer": "a probe",
            "github_url": "https://github.com/example/pot",
        })

        assert response.json() == {"success": True, "enhancedAnswer": "The probe measures capacitance."}
        user_prompt = mock_gateway.complete.call_args.args[0][1]["content"]
        assert "USER'S SHORT ANSWER:\na probe" in user_prompt
        assert "GitHub: https://github.com/example/pot" in user_prompt
        # Prior art listed best match first
        assert user_prompt.index("Smart planter") < user_prompt.index("Automatic watering device")

    def test_followups_replace_existing_questions(self, client, mock_gateway, db_session, sample_session, sample_questions):
        mock_gateway.complete.return_value = '["What powers the pump?", "How large is the reservoir?", "Is there an app?"]'

        response = client.post("/api/ask-followups", json={
            "session_id": sample_session.id, "idea_prompt": "A self-watering plant pot",
        })

        assert response.json() == {
            "success": True, "questions_generated": 3, "url_crawled": False, "context_length": 0,
        }
        questions = db_session.scalars(
            select(AIQuestion).where(AIQuestion.session_id == sample_session.id)
        ).all()
        assert sorted(q.question for q in questions) == [
            "How large is the reservoir?", "Is there an app?", "What powers the pump?",
        ]
        assert all(q.answer is None for q in questions)

    def test_followups_crawl_url_prompt(self, client, mock_gateway, sample_session):
        mock_gateway.complete.return_value = '["Q1?", "Q2?", "Q3?"]'
        page_text = "Smart pot product page " * 10

        with patch("patentbot.ai_endpoints.fetch_page_text", new_callable=AsyncMock, return_value=page_text) as mock_fetch:
            response = client.post("/api/ask-followups", json={
                "session_id": sample_session.id, "idea_prompt": "smartpot.example.com",
            })

        assert mock_fetch.await_args.args[0] == "https://smartpot.example.com"
        data = response.json()
        assert data["url_crawled"] is True
        assert data["context_length"] == len(page_text)
        assert "Additional context from the provided URL" in mock_gateway.complete.call_args.args[0][0]["content"]

    def test_followups_crawl_failure_ignored(self, client, mock_gateway, sample_session):
        mock_gateway.complete.return_value = '["Q1?", "Q2?", "Q3?"]'

        with patch("patentbot.ai_endpoints.fetch_page_text", new_callable=AsyncMock,
                   side_effect=CrawlError("Request timeout - URL took too long to respond", 408)):
            response = client.post("/api/ask-followups", json={
                "session_id": sample_session.id, "idea_prompt": "https://slow.example.com",
            })

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["context_length"] == 0

    def test_followups_unparseable(self, client, mock_gateway, sample_session):
        mock_gateway.complete.return_value = "Here are some questions: what, why"

        response = client.post("/api/ask-followups", json={
            "session_id": sample_session.id, "idea_prompt": "A self-watering plant pot",
        })

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["detail"] == "Failed to parse generated questions"

    def test_followups_require_fields(self, client, mock_gateway):
        response = client.post("/api/ask-followups", json={"session_id": "abc"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestPatentChat:

    def test_reply_streamed_as_events(self, client, mock_gateway, sample_session, sample_sections, sample_prior_art):
        async def deltas():
            yield "Claim 1 "
            yield "is broad."

        mock_gateway.open_chat_stream.return_value = deltas()

        response = client.post("/api/patent-chat", json={
            "messages": [{"role": "user", "content": "How strong is claim 1?"}],
            "sessionId": sample_session.id,
            "mode": "claims",
        })

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-type"].startswith("text/event-stream")

        events = [line[len("data: "):] for line in response.text.split("\n\n") if line.startswith("data: ")]
        assert events[-1] == "[DONE]"
        contents = [json.loads(e)["choices"][0]["delta"]["content"] for e in events[:-1]]
        assert "".join(contents) == "Claim 1 is broad."

        messages = mock_gateway.open_chat_stream.call_args.args[0]
        assert messages[0]["role"] == "system"
        assert "elite patent attorney" in messages[0]["content"]
        assert "Patentability Score: 72%" in messages[0]["content"]
        assert messages[1] == {"role": "user", "content": "How strong is claim 1?"}

    def test_gateway_error_returned_before_stream(self, client, mock_gateway):
        mock_gateway.open_chat_stream.side_effect = AIGatewayError("AI credits depleted. Please add credits.", 402)

        response = client.post("/api/patent-chat", json={"messages": [{"role": "user", "content": "hi"}]})

        assert response.status_code == status.HTTP_402_PAYMENT_REQUIRED
        assert response.json()["detail"] == "AI credits depleted. Please add credits."


class TestAnalyzePatentability:

    def test_score_stored_on_session(self, client, mock_gateway, db_session, sample_session,
                                     sample_questions, sample_prior_art):
        session_id = sample_session.id
        mock_gateway.complete.return_value = (
            '```json\n{"overall_score": 82, "criteria": [{"name": "Novelty", "score": 80}], '
            '"recommendation": "proceed"}\n```'
        )

        response = client.post("/api/analyze-patentability", json={"session_id": session_id})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["analysis"]["recommendation"] == "proceed"

        db_session.expire_all()
        session = db_session.get(PatentSession, session_id)
        assert session.patentability_score == pytest.approx(0.82)
        assert session.ai_analysis_complete is True

        user_prompt = mock_gateway.complete.call_args.args[0][1]["content"]
        assert "Q: How is water delivered?\nA: Not answered" in user_prompt
        assert "Prior Art Found: 2 patents" in user_prompt
        # Best match first
        assert user_prompt.index("Smart planter (Similarity: 83.0%)") < user_prompt.index("Automatic watering device")

    def test_score_clamped(self, client, mock_gateway, db_session, sample_session):
        mock_gateway.complete.return_value = '{"overall_score": 140}'

        client.post("/api/analyze-patentability", json={"session_id": sample_session.id})

        db_session.expire_all()
        assert db_session.get(PatentSession, sample_session.id).patentability_score == 1.0

    def test_unparseable_analysis(self, client, mock_gateway, db_session, sample_session):
        mock_gateway.complete.return_value = "The invention looks promising."

        response = client.post("/api/analyze-patentability", json={"session_id": sample_session.id})

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["detail"] == "Failed to parse patentability analysis"
        db_session.expire_all()
        assert db_session.get(PatentSession, sample_session.id).patentability_score == pytest.approx(0.72)

    def test_session_required(self, client, mock_gateway):
        assert client.post("/api/analyze-patentability", json={}).status_code == status.HTTP_400_BAD_REQUEST
        response = client.post("/api/analyze-patentability", json={"session_id": "missing"})

        assert response.status_code == status.HTTP_404_NOT_FOUND
        mock_gateway.complete.assert_not_awaited()


class TestEnhancePatentSection:

    def test_claims_use_claims_model(self, client, mock_gateway, db_session, sample_session, sample_sections,
                                     sample_questions, sample_prior_art, monkeypatch):
        monkeypatch.setenv("AI_CLAIMS_MODEL", "google/gemini-2.5-pro")
        mock_gateway.model = "google/gemini-2.5-flash"
        mock_gateway.complete.return_value = "1. A plant pot comprising a capacitive sensor."
        sample_sections[1].is_user_edited = True
        db_session.commit()

        response = client.post("/api/enhance-patent-section", json={
            "session_id": sample_session.id, "section_type": "claims",
        })

        assert response.json() == {
            "success": True,
            "section_type": "claims",
            "model_used": "google/gemini-2.5-pro",
            "content_length": len("1. A plant pot comprising a capacitive sensor."),
        }
        kwargs = mock_gateway.complete.call_args.kwargs
        assert kwargs["model"] == "google/gemini-2.5-pro"
        assert kwargs["max_tokens"] == 1000

        user_prompt = mock_gateway.complete.call_args.args[0][1]["content"]
        assert "PRIOR ART TO DIFFERENTIATE FROM:" in user_prompt
        assert '1. "Smart planter" (83% similar)' in user_prompt
        assert "Key differentiators: no reservoir level detection" in user_prompt
        assert "How is water delivered?" not in user_prompt

        db_session.expire_all()
        section = db_session.scalar(select(PatentSection).where(PatentSection.section_type == "claims"))
        assert section.content == "1. A plant pot comprising a capacitive sensor."
        assert section.is_user_edited is False

    def test_description_gets_default_model(self, client, mock_gateway, sample_session):
        mock_gateway.model = "google/gemini-2.5-flash"
        mock_gateway.complete.return_value = "The pot 10 includes a reservoir 20."

        response = client.post("/api/enhance-patent-section", json={
            "session_id": sample_session.id, "section_type": "description",
        })

        assert response.json()["model_used"] == "google/gemini-2.5-flash"
        kwargs = mock_gateway.complete.call_args.kwargs
        assert kwargs["model"] is None
        assert kwargs["max_tokens"] == 2000
        user_prompt = mock_gateway.complete.call_args.args[0][1]["content"]
        assert "PRIOR ART TO DIFFERENTIATE FROM" not in user_prompt

    def test_fields_required(self, client, mock_gateway, sample_session):
        response = client.post("/api/enhance-patent-section", json={"session_id": sample_session.id})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "session_id and section_type are required"


CLAIM_CHART = """| Claim Element | Present in Prior Art? | Prior Art Disclosure | Differences |
|---|---|---|---|
| 1. A plant pot | Yes | Fig. 1 | None |
| 2. A reservoir | Partially | Col. 3 | Larger capacity |
| 3. A moisture sensor | No | not disclosed | Sensor-driven watering |

Overall Assessment: Claim 1 is not anticipated."""


class TestGenerateClaimChart:

    def test_chart_updates_prior_art(self, client, mock_gateway, db_session, sample_session,
                                     sample_sections, sample_prior_art):
        prior_art_id = sample_prior_art[1].id
        mock_gateway.complete.return_value = CLAIM_CHART

        response = client.post("/api/generate-claim-chart", json={
            "session_id": sample_session.id, "prior_art_id": prior_art_id,
        })

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"success": True, "claim_chart": CLAIM_CHART, "prior_art_id": prior_art_id}

        user_prompt = mock_gateway.complete.call_args.args[0][1]["content"]
        assert "1. A plant pot comprising a reservoir and a moisture sensor." in user_prompt
        assert "Publication Number: US7654321B1" in user_prompt

        db_session.expire_all()
        result = db_session.get(PriorArtResult, prior_art_id)
        assert result.overlap_claims == ["A plant pot", "A reservoir"]
        assert result.difference_claims == ["A moisture sensor"]

    def test_claims_section_required(self, client, mock_gateway, sample_session, sample_prior_art):
        response = client.post("/api/generate-claim-chart", json={
            "session_id": sample_session.id, "prior_art_id": sample_prior_art[0].id,
        })

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["detail"] == "Claims not found. Generate patent draft first."
        mock_gateway.complete.assert_not_awaited()

    def test_prior_art_of_another_session(self, client, mock_gateway, db_session, test_user,
                                          sample_session, sample_sections):
        other = PatentSession(user_id=test_user.id, idea_prompt="A folding kayak paddle")
        db_session.add(other)
        db_session.commit()
        foreign = PriorArtResult(session_id=other.id, title="Paddle", similarity_score=0.5)
        db_session.add(foreign)
        db_session.commit()

        response = client.post("/api/generate-claim-chart", json={
            "session_id": sample_session.id, "prior_art_id": foreign.id,
        })

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["detail"] == "Prior art not found"

    def test_both_ids_required(self, client, mock_gateway):
        response = client.post("/api/generate-claim-chart", json={"session_id": "abc"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestPredictExaminer:

    def test_prediction_kept_in_data_source(self, client, mock_gateway, db_session, sample_session):
        session_id = sample_session.id
        sample_session.data_source = {"imported_from": "questionnaire"}
        db_session.commit()
        mock_gateway.complete.side_effect = [
            "Primary CPC: A01G 27/00. Art unit 3643.",
            "Art Unit 3643, allowance rate about 60%.",
        ]

        response = client.post("/api/predict-examiner", json={"session_id": session_id})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["classification"] == "Primary CPC: A01G 27/00. Art unit 3643."
        assert data["prediction"] == "Art Unit 3643, allowance rate about 60%."

        first_call, second_call = mock_gateway.complete.call_args_list
        assert "TECHNICAL ANALYSIS: Capacitive moisture sensor drives a micro pump" in first_call.args[0][1]["content"]
        assert first_call.kwargs["temperature"] == 0.1
        assert "Primary CPC: A01G 27/00" in second_call.args[0][1]["content"]

        db_session.expire_all()
        stored = db_session.get(PatentSession, session_id).data_source
        assert stored["imported_from"] == "questionnaire"
        assert stored["examiner_prediction"]["prediction"] == "Art Unit 3643, allowance rate about 60%."
        assert "generated_at" in stored["examiner_prediction"]

    def test_unknown_session(self, client, mock_gateway):
        response = client.post("/api/predict-examiner", json={"session_id": "missing"})

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_rate_limit_between_stages(self, client, mock_gateway, db_session, sample_session):
        mock_gateway.complete.side_effect = ["G06F 16/00", AIGatewayError(RATE_LIMIT_MESSAGE, 429)]

        response = client.post("/api/predict-examiner", json={"session_id": sample_session.id})

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        db_session.expire_all()
        assert db_session.get(PatentSession, sample_session.id).data_source is None


class TestGeneratePatentDraft:

    STAGES = [
        '{"technical_components": ["capacitive sensor"], "mechanisms": ["pump"], '
        '"innovations": ["reservoir level"], "specifications": "5 V"}',
        '```json\n{"field": "Horticultural devices.", "background": "Plants are over-watered.", '
        '"summary": "A pot that waters itself.", "description": "The pot 10 holds a reservoir 20."}\n```',
        "Claims follow. 1. A plant pot comprising a reservoir and a sensor.",
        '{"abstract": "A self-watering plant pot.", "drawings": "FIG. 1 shows the pot 10."}',
    ]

    def test_sections_replaced_by_draft(self, client, mock_gateway, db_session, sample_session,
                                        sample_questions, sample_sections):
        session_id = sample_session.id
        mock_gateway.complete.side_effect = list(self.STAGES)

        response = client.post("/api/generate-patent-draft", json={"session_id": session_id})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["sections_generated"] == 7
        assert [s["type"] for s in data["sections"]] == [
            "abstract", "field", "background", "summary", "claims", "drawings", "description",
        ]

        calls = mock_gateway.complete.call_args_list
        assert len(calls) == 4
        first_user = calls[0].args[0][1]["content"]
        assert first_user.startswith("Invention Idea: A self-watering plant pot")
        assert "How is water delivered?" not in first_user
        # Each stage sees what came before it
        assert calls[1].args[0][1]["content"] == self.STAGES[0]
        assert self.STAGES[2] in calls[3].args[0][1]["content"]

        db_session.expire_all()
        sections = {
            s.section_type: s
            for s in db_session.scalars(select(PatentSection).where(PatentSection.session_id == session_id))
        }
        assert len(sections) == 7
        assert sections["abstract"].content == "A self-watering plant pot."
        assert sections["field"].content == "Horticultural devices."
        assert sections["claims"].content == self.STAGES[2]
        assert sections["drawings"].content == "FIG. 1 shows the pot 10."
        assert all(not s.is_user_edited for s in sections.values())
        assert db_session.get(PatentSession, session_id).status == "in_progress"

    def test_answered_questions_required(self, client, mock_gateway, db_session, sample_session):
        db_session.add(AIQuestion(session_id=sample_session.id, question="What sensor is used?"))
        db_session.commit()

        response = client.post("/api/generate-patent-draft", json={"session_id": sample_session.id})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "No answered questions found"
        mock_gateway.complete.assert_not_awaited()

    def test_gateway_failure_keeps_existing_sections(self, client, mock_gateway, db_session, sample_session,
                                                     sample_questions, sample_sections):
        mock_gateway.complete.side_effect = [self.STAGES[0], AIGatewayError("Failed to generate patent draft")]

        response = client.post("/api/generate-patent-draft", json={"session_id": sample_session.id})

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        db_session.expire_all()
        assert len(db_session.scalars(select(PatentSection)).all()) == 3


class TestAssembleDraft:

    def test_raw_text_stages(self):
        legal = "L" * 800
        abstract = "A" * 400

        draft = assemble_draft(legal, "1. A pot.", abstract)

        assert draft["abstract"] == "A" * 300
        assert draft["background"] == "L" * 500
        assert draft["description"] == legal
        assert draft["claims"] == "1. A pot."
        assert draft["field"] == "Field of technology related to the disclosed invention"
        assert draft["drawings"] == "Technical drawings showing system components and interactions"

    def test_missing_or_non_text_keys_use_defaults(self):
        draft = assemble_draft({"field": "Horticulture", "summary": ["not", "text"]}, {"claims": ""}, "")

        assert draft["field"] == "Horticulture"
        assert draft["summary"] == "Summary of the disclosed invention and its advantages"
        assert draft["claims"] == "1. A system comprising novel technical elements."
        assert draft["abstract"] == "Generated patent abstract for innovative system"
