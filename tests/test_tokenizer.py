"""Tests for the heading-block tokenizer (HTML, markdown and plain-text front-ends)."""

from resume_engine.core.markup import list_items, paragraph_texts
from resume_engine.core.schemas import AnomalyKind
from resume_engine.core.tokenizer import (
    plain_text_to_markdown,
    tokenize,
    tokenize_markdown,
    tokenize_plain_text,
)


JANE_MARKDOWN = (
    "# Jane Doe\njane@x.com | 555-1111\n\n## Experience\n### Manager\nAcme Co | 2020-2023\n- Led team\n\n"
    "### Directed R&D:\nManaged 6 researchers at Acme Co in 2020-2023"
)


class TestHtmlLevels:

    def test_leading_h1_is_title(self):
        blocks = tokenize(
            "<h1>Jane Doe</h1><p>jane@x.com</p><h2>Experience</h2><h3>Manager</h3><p>Acme</p>"
        )
        assert [b.level for b in blocks] == [0, 2, 3]
        assert blocks[0].heading == "Jane Doe"
        assert blocks[0].content == "<p>jane@x.com</p>"
        assert blocks[2].heading == "Manager"
        assert not blocks[0].implicit

    def test_later_h1_is_level_one(self):
        blocks = tokenize("<h1>Jane Doe</h1><h1>Experience</h1><h4>Engineer</h4>")
        assert [b.level for b in blocks] == [0, 1, 3]

    def test_h1_after_other_heading_is_not_title(self):
        blocks = tokenize("<h2>Summary</h2><p>Builder.</p><h1>Experience</h1>")
        assert [b.level for b in blocks] == [2, 1]

    def test_containers_are_flattened(self):
        blocks = tokenize(
            '<div class="resume"><section><h2>Skills</h2><div><p>Python</p></div></section></div>'
        )
        assert len(blocks) == 1
        assert blocks[0].heading == "Skills"
        assert paragraph_texts(blocks[0].content) == ["Python"]

    def test_headings_inside_list_items_become_strong(self):
        blocks = tokenize(
            "<h2>Experience</h2><ul><li><h3>Directed R&amp;D</h3> Managed labs</li></ul>"
        )
        assert len(blocks) == 1, "Heading inside <li> must not start a block"
        assert "<strong>Directed R&amp;D:</strong>" in blocks[0].content

    def test_glyph_only_list_items_dropped(self):
        blocks = tokenize("<h2>Skills</h2><ul><li>•</li><li> </li><li>Real</li></ul>")
        assert list_items(blocks[0].content) == ["Real"]

    def test_scripts_and_attributes_removed(self):
        blocks = tokenize('<h2>Skills</h2><script>alert(1)</script><p class="x" style="y">Go</p>')
        assert blocks[0].content == "<p>Go</p>"

    def test_links_keep_href(self):
        blocks = tokenize('<h2>Links</h2><p><a href="https://x.dev" target="_blank">site</a></p>')
        assert '<a href="https://x.dev">site</a>' in blocks[0].content


class TestImplicitHeader:

    def test_preamble_becomes_implicit_title(self):
        blocks = tokenize("<p>Jane Doe<br>Seattle, WA</p><p>Hello</p><h2>Skills</h2><p>Go</p>")
        assert [b.level for b in blocks] == [0, 2]
        assert blocks[0].implicit
        assert blocks[0].heading == "Jane Doe"
        assert paragraph_texts(blocks[0].content) == ["Seattle, WA", "Hello"]

    def test_text_above_leading_h1_joins_title_block(self):
        blocks = tokenize("<p>Curriculum Vitae</p><h1>Jane Doe</h1><p>jane@x.com</p><h2>Skills</h2>")
        assert [b.level for b in blocks] == [0, 2]
        assert blocks[0].heading == "Jane Doe"
        assert not blocks[0].implicit
        assert paragraph_texts(blocks[0].content) == ["Curriculum Vitae", "jane@x.com"]

    def test_no_heading_document_yields_one_block(self):
        blocks = tokenize("<p>Jane Doe</p><p>Some text about Jane.</p>")
        assert len(blocks) == 1
        assert blocks[0].level == 0
        assert blocks[0].heading == "Jane Doe"

    def test_inline_markup_in_first_line_kept_together(self):
        blocks = tokenize("<p>Jane <strong>Doe</strong></p>")
        assert blocks[0].heading == "Jane Doe"

    def test_empty_input(self):
        assert tokenize("") == []
        assert tokenize("   ") == []
        assert tokenize_markdown("") == []


class TestMarkdown:

    def test_scenario_levels(self):
        blocks = tokenize_markdown(JANE_MARKDOWN)
        assert [(b.level, b.heading) for b in blocks] == [
            (0, "Jane Doe"),
            (2, "Experience"),
            (3, "Manager"),
            (3, "Directed R&D:"),
        ]
        assert list_items(blocks[2].content) == ["Led team"]
        assert paragraph_texts(blocks[2].content) == ["Acme Co | 2020-2023"]

    def test_list_directly_after_text(self):
        """Generated markdown often omits the blank line before a list."""
        blocks = tokenize_markdown("## Skills\nTools I use:\n- Python\n- SQL")
        assert list_items(blocks[0].content) == ["Python", "SQL"]

    def test_glyph_bullets(self):
        blocks = tokenize_markdown("## Skills\n• Python\n• SQL")
        assert list_items(blocks[0].content) == ["Python", "SQL"]

    def test_fenced_document(self):
        blocks = tokenize_markdown("```markdown\n# Jane Doe\n## Skills\n- Go\n```")
        assert [b.heading for b in blocks] == ["Jane Doe", "Skills"]

    def test_never_raises(self):
        anomalies = []
        blocks = tokenize_markdown("<<<>>> ]]] [[[ ### ", anomalies)
        assert isinstance(blocks, list)


class TestPlainText:
    """Upload front-end: extracted DOCX/PDF/TXT lines."""

    RESUME_LINES = [
        "JANE DOE",
        "jane@x.com | 555-1111",
        "EXPERIENCE",
        "Senior Engineer",
        "Acme Co | 2020 - 2023",
        "• Built APIs",
        "• Ran on-call",
        "EDUCATION",
        "BS Computer Science",
    ]

    def test_structure_promoted(self):
        blocks = tokenize_plain_text(self.RESUME_LINES)
        assert [(b.level, b.heading) for b in blocks] == [
            (0, "JANE DOE"),
            (2, "EXPERIENCE"),
            (3, "Senior Engineer"),
            (2, "EDUCATION"),
        ]
        assert paragraph_texts(blocks[0].content) == ["jane@x.com | 555-1111"]
        assert list_items(blocks[2].content) == ["Built APIs", "Ran on-call"]

    def test_accepts_a_string(self):
        blocks = tokenize_plain_text("\n".join(self.RESUME_LINES))
        assert blocks[0].heading == "JANE DOE"

    def test_all_caps_lines_become_sections(self):
        md = plain_text_to_markdown(["Jane Doe", "VOLUNTEER WORK", "Food bank driver"])
        assert "## VOLUNTEER WORK" in md

    def test_sentences_not_promoted(self):
        md = plain_text_to_markdown(["Jane Doe", "Experience building things for people."])
        assert "## " not in md


class TestFallback:

    def test_unparsable_fragment_recorded(self, monkeypatch):
        import resume_engine.core.tokenizer as tokenizer

        def boom(*args, **kwargs):
            raise ValueError("bad markup")

        monkeypatch.setattr(tokenizer, "parse_fragment", boom)
        anomalies = []
        blocks = tokenizer.tokenize("<h2>Skills</h2>", anomalies)
        assert len(blocks) == 1
        assert blocks[0].level == 1
        assert blocks[0].heading == ""
        assert "Skills" in blocks[0].content
        assert anomalies[0].kind == AnomalyKind.UNPARSABLE_FRAGMENT
