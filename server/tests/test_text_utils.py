"""
Tests for text utility functions.
"""

import pytest

from patentbot.internal.text_utils import (
    MAX_CRAWL_CHARS,
    TRUNCATION_MARKER,
    claim_chart_differences,
    claim_chart_overlaps,
    extract_json,
    html_to_plain_text,
    looks_like_url,
    parse_stage_output,
    percent,
    sanitize_text,
    truncate_text,
    validate_patent_idea,
    validate_section_content,
    word_count,
)


class TestHtmlToPlainText:
    """Test HTML to plain text conversion functionality."""

    def test_simple_html_conversion(self):
        result = html_to_plain_text("<h1>Title</h1><p>This is a paragraph.</p>")

        assert "Title" in result
        assert "This is a paragraph." in result
        assert "<h1>" not in result

    def test_scripts_styles_and_comments_removed(self):
        html_content = """
        <html><head><style>body { color: red; }</style></head>
        <body>
            <!-- tracking pixel -->
            <p>Visible product copy</p>
            <script>window.analytics = true;</script>
            <noscript>Enable JavaScript</noscript>
        </body></html>
        """

        result = html_to_plain_text(html_content)

        assert result == "Visible product copy"

    def test_whitespace_is_collapsed(self):
        result = html_to_plain_text("<div>\n  first\n\n\t<span>second</span>   third</div>")

        assert result == "first second third"

    def test_html_entities_decoded(self):
        result = html_to_plain_text("<p>Fish &amp; chips &lt; 10</p>")

        assert result == "Fish & chips < 10"

    def test_empty_input(self):
        assert html_to_plain_text("") == ""
        assert html_to_plain_text("   ") == ""


class TestTruncateText:

    def test_short_text_unchanged(self):
        assert truncate_text("short") == "short"

    def test_long_text_gets_marker(self):
        text = "a" * (MAX_CRAWL_CHARS + 50)

        result = truncate_text(text)

        assert result == "a" * MAX_CRAWL_CHARS + TRUNCATION_MARKER

    def test_exact_limit_not_marked(self):
        text = "b" * MAX_CRAWL_CHARS
        assert truncate_text(text) == text


class TestExtractJson:
    """AI responses wrap JSON in prose and code fences."""

    def test_fenced_block(self):
        text = 'Here is the analysis:\n```json\n{"overallScore": 82}\n```\nLet me know.'
        assert extract_json(text) == {"overallScore": 82}

    def test_outermost_braces(self):
        text = 'Result: {"score": 70, "issues": [{"severity": "low"}]} -- end'
        assert extract_json(text) == {"score": 70, "issues": [{"severity": "low"}]}

    def test_plain_json(self):
        assert extract_json('{"terms": []}') == {"terms": []}

    def test_list_expected(self):
        text = 'Sure!\n["What material is used?", "Who is the user?"]'
        assert extract_json(text, list) == ["What material is used?", "Who is the user?"]

    def test_wrong_type_rejected(self):
        with pytest.raises(ValueError):
            extract_json('["a", "b"]', dict)

    @pytest.mark.parametrize("text", ["", "no json here", "{broken: json"])
    def test_unparseable(self, text):
        with pytest.raises(ValueError):
            extract_json(text)


class TestClaimChart:

    def test_rows_split_by_presence(self):
        chart = (
            "| Element | Present? | Disclosure | Differences |\n"
            "| 1. A housing | Yes | Fig. 2 | - |\n"
            "| 2. A hinge | Partially | Col. 4 | Spring loaded |\n"
            "| 3. A latch | No | - | Magnetic |\n"
            "| 4. A seal | Unclear | The seal is not disclosed | - |\n"
        )

        assert claim_chart_overlaps(chart) == ["A housing", "A hinge"]
        assert claim_chart_differences(chart) == ["A latch", "A seal"]

    def test_unnumbered_rows_ignored(self):
        assert claim_chart_overlaps("| housing | Yes |\nYes, claim 1 is anticipated.") == []

    def test_at_most_ten_elements(self):
        chart = "\n".join(f"| {i}. Element {i} | Yes |" for i in range(1, 15))

        assert claim_chart_overlaps(chart) == [f"Element {i}" for i in range(1, 11)]


class TestParseStageOutput:

    def test_json_object(self):
        assert parse_stage_output('Sure: {"claims": "1. A pot."}') == {"claims": "1. A pot."}

    def test_plain_text_is_cut(self):
        assert parse_stage_output("  " + "x" * 1200) == "x" * 1000


class TestLooksLikeUrl:

    @pytest.mark.parametrize("text,expected", [
        ("https://example.com/product", True),
        ("http://example.com", True),
        ("www.example.com", True),
        ("example.com/widget", True),
        ("  Example.COM  ", True),
        ("A bicycle lock that unlocks with a fingerprint", False),
        ("", False),
    ])
    def test_detection(self, text, expected):
        assert looks_like_url(text) is expected


class TestValidation:

    def test_valid_idea(self):
        assert validate_patent_idea("A solar powered phone charger") == (True, None)

    def test_empty_idea(self):
        is_valid, message = validate_patent_idea("   ")
        assert not is_valid
        assert message == "Patent idea cannot be empty"

    def test_short_idea(self):
        is_valid, message = validate_patent_idea("tiny")
        assert not is_valid
        assert "at least 10 characters" in message

    def test_long_idea(self):
        is_valid, message = validate_patent_idea("x" * 10001)
        assert not is_valid
        assert "10,000" in message

    def test_section_limit(self):
        assert validate_section_content("x" * 50000) == (True, None)
        is_valid, message = validate_section_content("x" * 50001)
        assert not is_valid
        assert "50,000" in message

    def test_sanitize_strips_brackets_and_controls(self):
        assert sanitize_text("  <b>Smart\x00 lock</b>\x07 ") == "bSmart lock/b"


def test_word_count():
    assert word_count("one two  three\nfour") == 4


@pytest.mark.parametrize("score,digits,expected", [
    (0.83, 0, "83"),
    (0.8351, 1, "83.5"),
    (None, 0, "0"),
    ("bad", 0, "0"),
])
def test_percent(score, digits, expected):
    assert percent(score, digits) == expected
