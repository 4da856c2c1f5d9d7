"""
Tests for patent session storage and the text export.
"""

import json
from datetime import date

from fastapi import status
from sqlalchemy import select

from patentbot.internal.patent_export import EXPORT_FILENAME, RULE, PatentTextExporter
from patentbot.models import PatentSection, PatentSession


class TestSessions:

    def test_create_session(self, client, db_session, test_user):
        response = client.post("/api/sessions", json={
            "idea_prompt": "  A <b>bicycle lock</b> that unlocks with a fingerprint  ",
        })

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["idea_prompt"] == "A bbicycle lock/b that unlocks with a fingerprint"
        assert data["patent_type"] == "utility"
        assert data["status"] == "in_progress"
        assert data["sections"] == []

        session = db_session.get(PatentSession, data["id"])
        assert session.user_id == test_user.id

    def test_create_session_idea_too_short(self, client):
        response = client.post("/api/sessions", json={"idea_prompt": "lock"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "at least 10 characters" in response.json()["detail"]

    def test_list_only_own_sessions(self, client, db_session, sample_session):
        db_session.add(PatentSession(user_id="someone-else", idea_prompt="Another inventor's idea"))
        db_session.commit()

        response = client.get("/api/sessions")

        assert response.status_code == status.HTTP_200_OK
        assert [s["id"] for s in response.json()] == [sample_session.id]

    def test_get_session_with_sections_and_questions(self, client, sample_session, sample_sections, sample_questions):
        response = client.get(f"/api/sessions/{sample_session.id}")

        data = response.json()
        assert data["patentability_score"] == 0.72
        assert {s["section_type"] for s in data["sections"]} == {"abstract", "claims", "background"}
        assert len(data["questions"]) == 2

    def test_other_users_session_is_not_found(self, client, db_session):
        other = PatentSession(user_id="someone-else", idea_prompt="Hidden idea for a device")
        db_session.add(other)
        db_session.commit()

        response = client.get(f"/api/sessions/{other.id}")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["detail"] == "Session not found"

    def test_save_section_marks_user_edit(self, client, db_session, sample_session, sample_sections):
        response = client.put(
            f"/api/sessions/{sample_session.id}/sections/claims",
            json={"content": "1. An improved plant pot."},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["is_user_edited"] is True

        sections = db_session.scalars(select(PatentSection).where(
            PatentSection.session_id == sample_session.id, PatentSection.section_type == "claims",
        )).all()
        assert len(sections) == 1
        assert sections[0].content == "1. An improved plant pot."

    def test_save_section_too_long(self, client, sample_session):
        response = client.put(
            f"/api/sessions/{sample_session.id}/sections/description",
            json={"content": "x" * 50001},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "50,000" in response.json()["detail"]


class TestPatentTextExporter:

    def test_sections_in_filing_order(self, sample_session, sample_sections):
        document = PatentTextExporter(filing_date=date(2024, 3, 5)).render(sample_session, sample_sections)

        lines = document.split("\n")
        assert lines[0] == "PATENT APPLICATION"
        assert "Title: A self-watering plant pot that measures soil moisture" in lines
        assert "Inventor: [Inventor Name]" in lines
        assert "Filing Date: 03/05/2024" in lines

        # Background, claims, abstract regardless of the order they were saved in
        background = document.index("2. BACKGROUND OF THE INVENTION\n")
        claims = document.index("4. CLAIMS\n")
        abstract = document.index("7. ABSTRACT\n")
        assert background < claims < abstract
        assert "4. CLAIMS ............................ Page 5" in lines
        assert "SUMMARY OF THE INVENTION" not in document
        assert document.count(RULE) == 4

    def test_drawings_rendered_as_figure_descriptions(self, sample_session):
        figures = [
            {"figure_number": 1, "description": "<p><strong>Figure 1 - Overview:</strong> The system.</p>",
             "image_data": "data:image/png;base64,AAAA"},
        ]
        drawings = PatentSection(session_id=sample_session.id, section_type="drawings", content=json.dumps(figures))

        document = PatentTextExporter().render(sample_session, [drawings])

        assert "Figure 1 - Overview: The system." in document
        assert "base64" not in document

    def test_drawings_plain_text_kept(self, sample_session):
        drawings = PatentSection(session_id=sample_session.id, section_type="drawings",
                                 content="FIG. 1 shows the pot.")

        document = PatentTextExporter().render(sample_session, [drawings])

        assert "FIG. 1 shows the pot." in document


class TestExportEndpoint:

    def test_download(self, anonymous_client, sample_session, sample_sections):
        response = anonymous_client.post("/api/export-patent", json={"session_id": sample_session.id})

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-type"].startswith("text/plain")
        assert response.headers["content-disposition"] == f'attachment; filename="{EXPORT_FILENAME}"'
        assert "1. A plant pot comprising a reservoir and a moisture sensor." in response.text

    def test_session_without_sections(self, anonymous_client, sample_session):
        response = anonymous_client.post("/api/export-patent", json={"session_id": sample_session.id})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "No patent sections found"

    def test_unknown_session(self, anonymous_client):
        response = anonymous_client.post("/api/export-patent", json={"session_id": "missing"})

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_session_id_required(self, anonymous_client):
        response = anonymous_client.post("/api/export-patent", json={})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "session_id is required"
