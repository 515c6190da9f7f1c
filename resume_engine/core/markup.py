"""
HTML/markdown plumbing for section bodies.

Section bodies are small HTML fragments limited to headings, paragraphs,
lists and emphasis. BeautifulSoup does the parsing, Python-Markdown converts
markdown to HTML, and html_to_markdown() walks the soup for the reverse
direction.
"""

import re
import html as html_lib
from typing import List, Optional

import markdown
from bs4 import BeautifulSoup, NavigableString, Tag

from resume_engine.core.text_normalization import BULLET_RE, collapse_ws, looks_like_employer_line

FENCE_RE = re.compile(r"^\s*```[a-zA-Z]*\s*\n(.*?)\n\s*```\s*$", re.DOTALL)
MD_LIST_ITEM_RE = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+")
MD_HEADING_RE = re.compile(r"^\s{0,3}#{1,6}")

HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")
INLINE_TAGS = {"strong", "b", "em", "i", "a", "span", "code", "u", "br", "small", "sup", "sub"}


def escape(text: str) -> str:
    return html_lib.escape(text or "", quote=False)


def parse_fragment(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def strip_tags(html: str) -> str:
    """Text content of an HTML fragment with whitespace collapsed."""
    if not html:
        return ""
    return collapse_ws(parse_fragment(html).get_text(" "))


def element_text(node) -> str:
    if isinstance(node, NavigableString):
        return collapse_ws(str(node))
    return collapse_ws(node.get_text(" "))


def normalize_body(html: str) -> str:
    """Canonical form for comparing bodies: re-serialized, inter-tag whitespace removed."""
    if not html or not html.strip():
        return ""
    out = str(parse_fragment(html))
    out = re.sub(r">\s+<", "><", out)
    out = re.sub(r"\s+", " ", out)
    out = re.sub(r"\s+(</[a-z0-9]+>)", r"\1", out)
    out = re.sub(r"(<[a-z0-9]+[^>]*>)\s+", r"\1", out)
    return out.strip()


def paragraph_texts(html: str) -> List[str]:
    soup = parse_fragment(html)
    return [element_text(p) for p in soup.find_all("p") if element_text(p)]


def first_paragraph_text(html: str) -> str:
    texts = paragraph_texts(html)
    return texts[0] if texts else ""


def list_items(html: str) -> List[str]:
    soup = parse_fragment(html)
    return [element_text(li) for li in soup.find_all("li") if element_text(li)]


def extract_plain_text(html: str) -> str:
    """
    Plain text rendition of a body: headings and paragraphs separated by blank
    lines, list items prefixed with '• '.
    """
    soup = parse_fragment(html)
    lines: List[str] = []
    for el in soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6", "p", "li"]):
        text = element_text(el)
        if not text:
            continue
        if el.name == "li":
            lines.append(f"• {text}")
        else:
            lines.append(f"{text}\n")
    text = "\n".join(lines)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


# ============================================================================
# markdown -> HTML
# ============================================================================

def unwrap_code_fence(text: str) -> str:
    """Generative output often wraps the whole document in ```markdown fences."""
    m = FENCE_RE.match(text or "")
    return m.group(1) if m else (text or "")


def prepare_markdown(text: str) -> str:
    """
    Repair markdown the way models and editors tend to emit it, so
    Python-Markdown sees real lists:
    - bullet glyphs ('•', '●') become '- '
    - a blank line is inserted before a list that directly follows a paragraph
    - a blank line is inserted after a list that is directly followed by a
      paragraph or a heading
    """
    lines = unwrap_code_fence(text).replace("\r\n", "\n").replace("\r", "\n").split("\n")
    out: List[str] = []
    prev_kind = "blank"
    for raw in lines:
        line = raw.rstrip()
        if not line.strip():
            out.append("")
            prev_kind = "blank"
            continue
        if BULLET_RE.match(line) and not MD_LIST_ITEM_RE.match(line):
            line = "- " + BULLET_RE.sub("", line, count=1)
        if MD_HEADING_RE.match(line):
            kind = "heading"
        elif MD_LIST_ITEM_RE.match(line):
            kind = "list"
        elif prev_kind == "list" and raw.startswith(("  ", "\t")):
            kind = "list"
        else:
            kind = "text"
        if kind == "list" and prev_kind == "text":
            out.append("")
        if kind == "text" and prev_kind == "list":
            out.append("")
        if kind == "heading" and prev_kind == "list":
            out.append("")
        out.append(line)
        prev_kind = kind
    return "\n".join(out)


def markdown_to_html(text: str) -> str:
    if not text or not text.strip():
        return ""
    return markdown.markdown(prepare_markdown(text), extensions=["sane_lists"])


# ============================================================================
# HTML -> markdown
# ============================================================================

def _inline_markdown(node) -> str:
    if isinstance(node, NavigableString):
        return re.sub(r"\s+", " ", str(node))
    if not isinstance(node, Tag):
        return ""
    if node.name == "br":
        return "\n"
    inner = "".join(_inline_markdown(c) for c in node.children)
    if node.name in ("strong", "b"):
        stripped = inner.strip()
        return f"**{stripped}**" if stripped else ""
    if node.name in ("em", "i"):
        stripped = inner.strip()
        return f"*{stripped}*" if stripped else ""
    if node.name == "code":
        return f"`{inner}`"
    return inner


def _inline_text(node) -> str:
    text = "".join(_inline_markdown(c) for c in node.children)
    return "\n".join(collapse_ws(line) for line in text.split("\n")).strip()


def _list_markdown(node: Tag, depth: int = 0) -> List[str]:
    lines: List[str] = []
    ordered = node.name == "ol"
    index = 1
    for li in node.find_all("li", recursive=False):
        nested = [c for c in li.children if isinstance(c, Tag) and c.name in ("ul", "ol")]
        for n in nested:
            n.extract()
        text = _inline_text(li)
        marker = f"{index}." if ordered else "-"
        if text:
            lines.append(f"{'    ' * depth}{marker} {text}")
            index += 1
        for n in nested:
            lines.extend(_list_markdown(n, depth + 1))
    return lines


def _block_markdown(node, blocks: List[str]) -> None:
    if isinstance(node, NavigableString):
        text = collapse_ws(str(node))
        if text:
            blocks.append(text)
        return
    if not isinstance(node, Tag):
        return
    name = node.name
    if name in HEADING_TAGS:
        text = _inline_text(node)
        if text:
            blocks.append(f"{'#' * int(name[1])} {text}")
    elif name in ("ul", "ol"):
        lines = _list_markdown(node)
        if lines:
            blocks.append("\n".join(lines))
    elif name == "p" or name in INLINE_TAGS:
        text = _inline_text(node) if name == "p" else _inline_markdown(node).strip()
        if text:
            blocks.append(text)
    else:
        for child in node.children:
            _block_markdown(child, blocks)


def html_to_markdown(html: str) -> str:
    """
    Convert a body fragment to markdown.

    Headings become '#' lines, paragraphs plain text, lists '- ' items
    (nested lists indented four spaces), strong/em become **/*.
    """
    if not html or not html.strip():
        return ""
    blocks: List[str] = []
    for child in parse_fragment(html).children:
        _block_markdown(child, blocks)
    return "\n\n".join(blocks)


# ============================================================================
# Job role bodies
# ============================================================================

def find_employer_paragraph(soup) -> Optional[Tag]:
    """
    The <p> holding a job role's employer/date line.

    First paragraph that looks like 'Employer | dates'; failing that, a short
    leading paragraph directly followed by the bullet list ('Acme Co' over
    the role's bullets). A lone short paragraph is description, not employer.
    """
    paragraphs = soup.find_all("p")
    for p in paragraphs:
        if looks_like_employer_line(element_text(p)):
            return p
    top = [c for c in soup.children if isinstance(c, Tag)]
    if len(top) >= 2 and top[0].name == "p" and top[1].name in ("ul", "ol"):
        text = element_text(top[0])
        if text and len(text) <= 80 and not text.endswith("."):
            return top[0]
    return None


def employer_line(html: str) -> str:
    p = find_employer_paragraph(parse_fragment(html))
    return element_text(p) if p is not None else ""
