"""
Markup tokenizer.

Walks a heading-delimited document and yields ordered Blocks:

    level 0  leading title heading (the candidate's name)
    level 1  h1 that is not the leading title
    level 2  h2 section headings
    level 3  h3-h6 sub-headings (job roles, degree lines, skill categories)

Three front-ends share the walker: HTML (tokenize), markdown
(tokenize_markdown) and plain extracted text (tokenize_plain_text). None of
them raise; anything the walker cannot segment is kept verbatim.
"""

import re
import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from bs4 import Comment, NavigableString, Tag

from resume_engine.core.classifier import classify
from resume_engine.core.config import DEFAULT_CONFIG, EngineConfig
from resume_engine.core.markup import (
    HEADING_TAGS,
    INLINE_TAGS,
    element_text,
    escape,
    markdown_to_html,
    parse_fragment,
)
from resume_engine.core.schemas import Anomaly, AnomalyKind, Block, SectionKind
from resume_engine.core.text_normalization import (
    collapse_ws,
    is_bullet_line,
    looks_like_contact,
    looks_like_employer_line,
    strip_bullet,
)

logger = logging.getLogger(__name__)

CONTAINER_TAGS = {"html", "body", "div", "section", "article", "main", "header", "footer"}
DROP_TAGS = ("script", "style", "head", "title", "noscript", "svg", "form", "nav")
ALLOWED_TAGS = {"p", "ul", "ol", "li", "strong", "b", "em", "i", "br", "a", "code", *HEADING_TAGS}
GLYPH_ONLY_RE = re.compile(r"^[\s•●▪◦‣∙·\-*]*$")


def _sanitize(soup) -> None:
    """Reduce arbitrary markup to headings, paragraphs, lists and emphasis."""
    for tag in soup.find_all(DROP_TAGS):
        tag.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()

    # Headings inside list items are emphasized lead-ins, not structure
    for h in soup.select(", ".join(f"li {t}" for t in HEADING_TAGS)):
        text = element_text(h)
        if not text.endswith(":"):
            text += ":"
        strong = soup.new_tag("strong")
        strong.string = text
        h.replace_with(strong)

    for li in soup.find_all("li"):
        if GLYPH_ONLY_RE.match(li.get_text()):
            li.decompose()

    for tag in soup.find_all(True):
        if tag.name in CONTAINER_TAGS:
            tag.attrs = {}
            continue
        if tag.name not in ALLOWED_TAGS:
            tag.unwrap()
            continue
        href = tag.get("href") if tag.name == "a" else None
        tag.attrs = {"href": href} if href else {}


def _flatten(node, out: List[Tuple[str, object]]) -> None:
    """Collect top-level headings and content blocks, descending through containers."""
    inline: List[str] = []

    def flush() -> None:
        text = "".join(inline).strip()
        if text:
            out.append(("content", f"<p>{text}</p>"))
        inline.clear()

    for child in node.children:
        if isinstance(child, NavigableString):
            if str(child).strip():
                inline.append(escape(str(child)))
            elif inline:
                inline.append(" ")
            continue
        if not isinstance(child, Tag):
            continue
        if child.name in INLINE_TAGS:
            inline.append(str(child))
            continue
        flush()
        if child.name in HEADING_TAGS:
            out.append(("heading", child))
        elif child.name in CONTAINER_TAGS:
            _flatten(child, out)
        else:
            out.append(("content", str(child)))
    flush()


def _heading_level(tag_name: str, is_title: bool) -> int:
    if is_title:
        return 0
    if tag_name == "h1":
        return 1
    if tag_name == "h2":
        return 2
    return 3


def _implicit_header(preamble: List[str]) -> Optional[Block]:
    """Treat the first line of leading prose as the document title."""
    if not preamble:
        return None
    first = parse_fragment(preamble[0])
    el = first.find(True)
    if el is not None and el.name == "p":
        for br in el.find_all("br"):
            br.replace_with("\n")
        lines = [collapse_ws(line) for line in el.get_text().split("\n") if collapse_ws(line)]
        if lines:
            rest = [f"<p>{escape(line)}</p>" for line in lines[1:]]
            return Block(level=0, heading=lines[0], content="".join(rest + preamble[1:]), implicit=True)
    heading = element_text(first).split(". ")[0][:80]
    return Block(level=0, heading=heading, content="".join(preamble), implicit=True)


def _fallback_block(raw: str, anomalies: Optional[List[Anomaly]], reason: str) -> List[Block]:
    logger.warning(f"Unparsable fragment kept verbatim: {reason}")
    if anomalies is not None:
        anomalies.append(Anomaly(kind=AnomalyKind.UNPARSABLE_FRAGMENT, message=f"Content kept verbatim: {reason}"))
    text = (raw or "").strip()
    if not text:
        return []
    return [Block(level=1, heading="", content=f"<p>{escape(text)}</p>")]


def tokenize(markup: str, anomalies: Optional[List[Anomaly]] = None) -> List[Block]:
    """Split an HTML document into ordered heading blocks. Never raises."""
    if not markup or not markup.strip():
        return []
    try:
        soup = parse_fragment(markup)
        _sanitize(soup)
        items: List[Tuple[str, object]] = []
        _flatten(soup, items)
    except Exception as e:
        return _fallback_block(markup, anomalies, str(e))

    blocks: List[Block] = []
    preamble: List[str] = []
    idx = 0
    while idx < len(items) and items[idx][0] == "content":
        preamble.append(items[idx][1])
        idx += 1

    first_heading = items[idx][1] if idx < len(items) else None
    title_is_h1 = first_heading is not None and first_heading.name == "h1"
    if not title_is_h1:
        header = _implicit_header(preamble)
        if header is not None:
            blocks.append(header)
        preamble = []

    # Text above a leading h1 opens the title block's content
    current: Optional[Tuple[int, str]] = None
    body: List[str] = list(preamble)
    for kind, value in items[idx:]:
        if kind == "heading":
            if current is not None:
                blocks.append(Block(level=current[0], heading=current[1], content="".join(body)))
                body = []
            level = _heading_level(value.name, is_title=(value is first_heading and title_is_h1))
            current = (level, element_text(value))
        else:
            body.append(value)
    if current is not None:
        blocks.append(Block(level=current[0], heading=current[1], content="".join(body)))

    logger.debug(f"Tokenized {len(blocks)} blocks: {[(b.level, b.heading) for b in blocks]}")
    return blocks


def tokenize_markdown(text: str, anomalies: Optional[List[Anomaly]] = None) -> List[Block]:
    if not text or not text.strip():
        return []
    try:
        html = markdown_to_html(text)
    except Exception as e:
        return _fallback_block(text, anomalies, str(e))
    return tokenize(html, anomalies)


# ============================================================================
# Plain text front-end (uploaded DOCX/PDF/TXT without markup)
# ============================================================================

def _is_section_label(line: str, config: EngineConfig) -> bool:
    """Known section names, or short ALL-CAPS lines ('VOLUNTEER WORK')."""
    t = line.strip().rstrip(":").strip()
    if not t or len(t) > config.heading_max_chars or ":" in t or "," in t or t.endswith("."):
        return False
    if is_bullet_line(t) or looks_like_employer_line(t) or looks_like_contact(t):
        return False
    if classify(t, config) not in (SectionKind.OTHER, SectionKind.JOB_ROLE):
        return True
    letters = [c for c in t if c.isalpha()]
    return len(letters) >= 3 and t.upper() == t


def plain_text_to_markdown(lines: Iterable[str], config: EngineConfig = DEFAULT_CONFIG) -> str:
    """
    Promote structure in extracted text:
    - the first line is the title ('# ')
    - known section labels become '## '
    - inside an experience section, a short line directly followed by an
      employer/date line becomes a job role ('### ')
    - bullet glyphs become '- ' items; every other line is its own paragraph
    """
    cleaned = [collapse_ws(l) for l in lines]
    cleaned = [l for l in cleaned if l]
    out: List[str] = []
    section = None
    for i, line in enumerate(cleaned):
        nxt = cleaned[i + 1] if i + 1 < len(cleaned) else ""
        if i == 0 and classify(line.rstrip(":"), config) in (SectionKind.OTHER, SectionKind.JOB_ROLE):
            out.append(f"# {line}")
        elif _is_section_label(line, config):
            section = classify(line.rstrip(":"), config)
            out.append(f"## {line.rstrip(':').strip()}")
        elif is_bullet_line(line):
            out.append(f"- {strip_bullet(line)}")
            continue
        elif (
            section == SectionKind.EXPERIENCE
            and len(line) <= 80
            and not line.endswith(".")
            and not looks_like_employer_line(line)
            and nxt
            and looks_like_employer_line(nxt)
            and not is_bullet_line(nxt)
        ):
            out.append(f"### {line}")
        else:
            out.append(line)
        out.append("")
    return "\n".join(out).strip() + "\n"


def tokenize_plain_text(
    text_or_lines,
    config: EngineConfig = DEFAULT_CONFIG,
    anomalies: Optional[List[Anomaly]] = None,
) -> List[Block]:
    lines: Sequence[str] = text_or_lines.splitlines() if isinstance(text_or_lines, str) else list(text_or_lines)
    return tokenize_markdown(plain_text_to_markdown(lines, config), anomalies)
