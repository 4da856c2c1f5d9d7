"""
Plain-text patent application export

Lays out the drafted sections in USPTO order with a table of contents.
"""

import json
import logging
from datetime import date
from typing import Iterable, List, Optional

from patentbot.internal.text_utils import html_to_plain_text
from patentbot.models import PatentSection, PatentSession

logger = logging.getLogger(__name__)

SECTION_ORDER = ["field", "background", "summary", "claims", "drawings", "description", "abstract"]

SECTION_TITLES = {
    "field": "FIELD OF THE INVENTION",
    "background": "BACKGROUND OF THE INVENTION",
    "summary": "SUMMARY OF THE INVENTION",
    "claims": "CLAIMS",
    "drawings": "BRIEF DESCRIPTION OF THE DRAWINGS",
    "description": "DETAILED DESCRIPTION OF THE INVENTION",
    "abstract": "ABSTRACT",
}

RULE = "=" * 60

EXPORT_FILENAME = "patent-application.txt"


class PatentTextExporter:
    """Render a patent session as a USPTO-ordered text document"""

    def __init__(self, filing_date: Optional[date] = None):
        self.filing_date = filing_date or date.today()

    def render(self, session: PatentSession, sections: Iterable[PatentSection]) -> str:
        by_type = {}
        for section in sections:
            # Later rows win, matching the order sections were saved in
            by_type[section.section_type] = section

        lines: List[str] = [
            "PATENT APPLICATION",
            "",
            f"Title: {session.idea_prompt or ''}",
            "Inventor: [Inventor Name]",
            f"Filing Date: {self.filing_date.strftime('%m/%d/%Y')}",
            "",
            "TABLE OF CONTENTS",
            "",
        ]

        for index, section_type in enumerate(SECTION_ORDER, 1):
            if section_type in by_type:
                lines.append(
                    f"{index}. {SECTION_TITLES[section_type]} ............................ Page {index + 1}"
                )

        lines += ["", RULE, ""]

        for index, section_type in enumerate(SECTION_ORDER, 1):
            section = by_type.get(section_type)
            if not section:
                continue
            lines += [
                f"{index}. {SECTION_TITLES[section_type]}",
                "",
                self._section_body(section),
                "",
                RULE,
                "",
            ]

        return "\n".join(lines)

    def _section_body(self, section: PatentSection) -> str:
        content = section.content or ""
        if section.section_type != "drawings":
            return content

        # Generated drawings are stored as a JSON list of figures
        try:
            figures = json.loads(content)
        except ValueError:
            return content
        if not isinstance(figures, list):
            return content

        descriptions = []
        for figure in figures:
            if isinstance(figure, dict):
                descriptions.append(html_to_plain_text(figure.get("description") or ""))
        return "\n\n".join(descriptions)
