"""
Text processing utility module
HTML to text conversion, AI response parsing and input validation

Why do we need this module?
- Crawled web pages arrive as raw HTML but the AI only needs readable text
- AI completions wrap JSON in prose or markdown fences
- Editor input must be bounded before it is stored or sent to the AI
"""

import json
import logging
import re
from typing import Any, Optional, Union

from bs4 import BeautifulSoup, Comment

logger = logging.getLogger(__name__)

# Roughly 2000 tokens
MAX_CRAWL_CHARS = 8000
TRUNCATION_MARKER = "... [content truncated]"

MAX_IDEA_CHARS = 10000
MIN_IDEA_CHARS = 10
MAX_SECTION_CHARS = 50000


def html_to_plain_text(html_content: str) -> str:
    """
    Convert an HTML page to a single line of readable text

    Conversion process:
    1. Use BeautifulSoup to parse HTML structure
    2. Drop <script>, <style>, <noscript> and HTML comments
    3. Collapse all whitespace (including line breaks) to single spaces

    Args:
        html_content (str): Raw HTML of the crawled page

    Returns:
        str: Visible text of the page

    Example:
        Input: "<p>First <b>bold</b></p><script>x()</script>"
        Output: "First bold"
    """
    if not html_content or not html_content.strip():
        return ""

    try:
        soup = BeautifulSoup(html_content, "html.parser")

        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
            comment.extract()

        # Separator keeps words from adjacent elements apart
        text = soup.get_text(separator=" ")
        text = re.sub(r"\s+", " ", text).strip()

        logger.info(f"HTML conversion complete: {len(html_content)} -> {len(text)} characters")
        return text

    except Exception as e:
        logger.error(f"HTML to plain text conversion failed: {e}")
        # Fallback processing: simple HTML tag removal
        return re.sub(r"\s+", " ", re.sub(r"<[^>]+>", " ", html_content)).strip()


def truncate_text(text: str, limit: int = MAX_CRAWL_CHARS, marker: str = TRUNCATION_MARKER) -> str:
    """Cut text to `limit` characters, appending `marker` when something was dropped"""
    if len(text) <= limit:
        return text
    return text[:limit] + marker


def extract_json(text: str, expect: type = dict) -> Union[dict, list]:
    """
    Find and parse the JSON payload inside an AI completion

    AI responses frequently come back as
        Here is the analysis:
        ```json
        {...}
        ```
    so a fenced block is tried first, then the outermost {...} (or [...] when
    a list is expected), then the whole text.

    Args:
        text (str): Raw completion text
        expect (type): dict or list

    Returns:
        The parsed JSON value

    Raises:
        ValueError: when no JSON of the expected type can be parsed
    """
    if not text or not text.strip():
        raise ValueError("Empty AI response")

    open_char, close_char = ("[", "]") if expect is list else ("{", "}")

    candidates = []
    fenced = re.search(r"```(?:json)?\s*([\s\S]*?)```", text)
    if fenced:
        candidates.append(fenced.group(1))

    start = text.find(open_char)
    end = text.rfind(close_char)
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])

    candidates.append(text)

    for candidate in candidates:
        try:
            value = json.loads(candidate.strip())
        except json.JSONDecodeError:
            continue
        if isinstance(value, expect):
            return value

    raise ValueError(f"No JSON {expect.__name__} found in AI response")


def word_count(text: str) -> int:
    return len(text.split())


def looks_like_url(text: str) -> bool:
    """
    Guess whether an idea prompt is really a link to a product page

    Accepts "http..." and "www..." prefixes and bare domains like "example.com/x".
    """
    candidate = (text or "").strip().lower()
    return (
        candidate.startswith("http")
        or candidate.startswith("www.")
        or re.match(r"^[a-z0-9-]+\.[a-z]{2,}", candidate) is not None
    )


def sanitize_text(text: str, limit: int = MAX_IDEA_CHARS) -> str:
    """Strip angle brackets and control characters, trim and bound the length"""
    text = re.sub(r"[<>]", "", text or "")
    text = re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", text)
    return text.strip()[:limit]


def validate_patent_idea(idea: str) -> tuple[bool, Optional[str]]:
    """
    Validate an invention description before a session is created

    Returns:
        tuple[bool, str | None]: (is_valid, error_message)
    """
    if not idea or not idea.strip():
        return False, "Patent idea cannot be empty"
    if len(idea) < MIN_IDEA_CHARS:
        return False, f"Patent idea must be at least {MIN_IDEA_CHARS} characters long"
    if len(idea) > MAX_IDEA_CHARS:
        return False, "Patent idea cannot exceed 10,000 characters"
    return True, None


def validate_section_content(content: str) -> tuple[bool, Optional[str]]:
    if content and len(content) > MAX_SECTION_CHARS:
        return False, "Patent section cannot exceed 50,000 characters"
    return True, None


def percent(score: Optional[Any], digits: int = 0) -> str:
    """Format a 0..1 similarity score as a percentage string without the sign"""
    try:
        value = float(score or 0)
    except (TypeError, ValueError):
        value = 0.0
    return f"{value * 100:.{digits}f}"


# Numbered claim chart row: "| 1. A housing | Yes | ..."
CLAIM_CHART_ROW = re.compile(r"\d+\.\s*(.+?)\s*\|")
MAX_CHART_ELEMENTS = 10


def claim_chart_elements(chart: str, markers: tuple[str, ...]) -> list[str]:
    """
    Claim elements of the chart rows that contain any of `markers`

    Example:
        claim_chart_elements("| 1. A housing | Yes | ...", ("Yes",)) -> ["A housing"]
    """
    elements = []
    for line in (chart or "").splitlines():
        if not any(marker in line for marker in markers):
            continue
        match = CLAIM_CHART_ROW.search(line)
        if match:
            elements.append(match.group(1).strip())
    return elements[:MAX_CHART_ELEMENTS]


def claim_chart_overlaps(chart: str) -> list[str]:
    return claim_chart_elements(chart, ("Yes", "Partially"))


def claim_chart_differences(chart: str) -> list[str]:
    return claim_chart_elements(chart, ("| No |", "not disclosed"))


def parse_stage_output(text: str, limit: int = 1000) -> Union[dict, str]:
    """JSON object of a drafting stage, or its first `limit` characters when it is not JSON"""
    try:
        return extract_json(text, dict)
    except ValueError:
        return (text or "").strip()[:limit]
