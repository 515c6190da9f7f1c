from io import BytesIO
from typing import List, Optional, Tuple

from docx import Document

from resume_engine.core.config import DEFAULT_CONFIG, EngineConfig
from resume_engine.core.tokenizer import plain_text_to_markdown

# Paragraph style -> markdown prefix
HEADING_STYLES = {
    "title": "# ",
    "heading 1": "# ",
    "heading 2": "## ",
    "heading 3": "### ",
    "heading 4": "### ",
    "subtitle": "### ",
}


def _is_list_paragraph(p) -> bool:
    style = (p.style.name if p.style is not None else "").lower()
    if style.startswith("list"):
        return True
    ppr = p._p.pPr
    return ppr is not None and ppr.numPr is not None


def extract_docx_lines(docx_bytes: bytes) -> List[Tuple[str, str]]:
    """
    Deterministically extract non-empty paragraphs from a DOCX.
    Returns list of (style_name, text); list paragraphs get style 'list'.
    """
    doc = Document(BytesIO(docx_bytes))
    out: List[Tuple[str, str]] = []
    for p in doc.paragraphs:
        t = (p.text or "").strip()
        if not t:
            continue
        if _is_list_paragraph(p):
            out.append(("list", t))
        else:
            out.append(((p.style.name if p.style is not None else "").lower(), t))
    return out


def _styled_markdown(lines: List[Tuple[str, str]]) -> Optional[str]:
    """Markdown from heading/list styles, or None when the document uses no heading styles."""
    if not any(style in HEADING_STYLES for style, _ in lines):
        return None
    out: List[str] = []
    for style, text in lines:
        if style == "list":
            out.append(f"- {text}")
            continue
        prefix = HEADING_STYLES.get(style)
        out.append(f"{prefix}{text}" if prefix else text)
        out.append("")
    return "\n".join(out).strip() + "\n"


def docx_to_markdown(docx_bytes: bytes, config: EngineConfig = DEFAULT_CONFIG) -> str:
    """
    Markdown for a DOCX upload.

    Word heading styles map to '#'/'##'/'###'; documents typed without heading
    styles fall back to the plain-text promotion rules.
    """
    lines = extract_docx_lines(docx_bytes)
    styled = _styled_markdown(lines)
    if styled is not None:
        return styled
    return plain_text_to_markdown([t for _, t in lines], config)
