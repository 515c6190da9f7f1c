"""Tests for markup/markdown rendering and the parsing front-ends."""

from resume_engine.core.markup import normalize_body
from resume_engine.core.schemas import Section, SectionKind
from resume_engine.core.serializer import (
    detect_format,
    from_markdown_text,
    from_markup,
    parse_content,
    parse_to_response,
    to_markdown_text,
    to_markup,
)


JANE_MARKDOWN = (
    "# Jane Doe\njane@x.com | 555-1111\n\n## Experience\n### Manager\nAcme Co | 2020-2023\n- Led team\n\n"
    "### Directed R&D:\nManaged 6 researchers at Acme Co in 2020-2023"
)

CLEAN_MARKDOWN = "# Jane Doe\njane@x.com\n\n## Experience\n### Engineer\nAcme | 2020-2023\n- Built APIs"


def shape(sections):
    return [(s.id, s.kind, s.title, normalize_body(s.body), s.parent_ref) for s in sections]


def test_markdown_rendering():
    text = to_markdown_text(from_markdown_text(JANE_MARKDOWN))
    assert text.startswith("# Jane Doe\n\njane@x.com | 555-1111\n\n## Experience\n\n### Manager\n\n")
    assert "- Led team\n- **Directed R&D:** Managed 6 researchers at Acme Co in 2020-2023" in text


def test_markdown_round_trip():
    sections = from_markdown_text(JANE_MARKDOWN)
    again = from_markdown_text(to_markdown_text(sections))
    assert shape(again) == shape(sections)


def test_markup_rendering_uses_heading_levels():
    html = to_markup(from_markdown_text(JANE_MARKDOWN))
    assert html.index("<h1>Jane Doe</h1>") < html.index("<h2>Experience</h2>") < html.index("<h3>Manager</h3>")
    assert "Directed R&amp;D" in html


def test_markup_round_trip():
    sections = from_markdown_text(JANE_MARKDOWN)
    again = from_markup(to_markup(sections))
    assert shape(again) == shape(sections)


def test_rendering_follows_canonical_order():
    sections = [
        Section(id="skills", title="Skills", kind=SectionKind.SKILLS, body="<p>Go</p>"),
        Section(id="header", title="Jane Doe", kind=SectionKind.HEADER),
    ]
    assert to_markdown_text(sections) == "# Jane Doe\n\n## Skills\n\nGo\n"


def test_no_heading_document_is_single_header():
    text = (
        "Jane Doe\nSenior engineer who likes building reliable systems and mentoring people "
        "across many teams and time zones around the world."
    )
    sections = from_markdown_text(text)
    assert len(sections) == 1
    assert sections[0].kind == SectionKind.HEADER
    assert sections[0].title == "Jane Doe"


class TestParseContent:

    def test_detect_format(self):
        assert detect_format('{"summary": "x"}') == "record"
        assert detect_format('```json\n{"summary": "x"}\n```') == "record"
        assert detect_format("<h1>Jane</h1><p>x</p>") == "html"
        assert detect_format(JANE_MARKDOWN) == "markdown"

    def test_record_content(self):
        sections = parse_content('{"header": {"name": "Jane Doe"}, "skills": ["Go"]}')
        assert [s.kind for s in sections] == [SectionKind.HEADER, SectionKind.SKILLS]

    def test_html_content(self):
        sections = parse_content("<h1>Jane Doe</h1><h2>Skills</h2><ul><li>Go</li></ul>")
        assert [s.kind for s in sections] == [SectionKind.HEADER, SectionKind.SKILLS]

    def test_markdown_and_html_agree(self):
        from_md = parse_content(JANE_MARKDOWN)
        from_html = parse_content(to_markup(from_md))
        assert shape(from_html) == shape(from_md)

    def test_plain_text_format(self):
        sections = parse_content("JANE DOE\njane@x.com\nSKILLS\n• Go", source_format="text")
        assert [s.kind for s in sections] == [SectionKind.HEADER, SectionKind.SKILLS]

    def test_never_raises(self):
        for content in ["", "   ", "{not json", "<<<>>>", "```", "<div><p>unclosed", "\x00\x01"]:
            assert isinstance(parse_content(content), list)


class TestResponse:

    def test_clean_document_is_high_quality(self):
        response = parse_to_response(CLEAN_MARKDOWN)
        assert response.parse_quality == "high"
        assert response.warnings == []

    def test_repairs_lower_quality_and_warn(self):
        response = parse_to_response(JANE_MARKDOWN)
        assert response.parse_quality == "medium"
        assert any("Directed R&D:" in w for w in response.warnings)

    def test_missing_experience_warns(self):
        response = parse_to_response("# Jane Doe\n\n## Skills\n- Go")
        assert response.parse_quality == "medium"
        assert "No experience section found" in response.warnings

    def test_unrecognized_document_is_low_quality(self):
        response = parse_to_response("Jane Doe\nLikes hiking.")
        assert response.parse_quality == "low"
