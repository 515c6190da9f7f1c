"""
Section collection <-> text representations.

Parsing runs the shared pipeline

    tokenize -> assemble -> reconcile -> order

behind three front-ends (HTML, markdown, resume record). Rendering always
goes through order() first, so presentation order is never stored.
"""

import re
import logging
from typing import List, Optional

from resume_engine.core.assembler import assemble
from resume_engine.core.config import DEFAULT_CONFIG, EngineConfig
from resume_engine.core.markup import escape, html_to_markdown, unwrap_code_fence
from resume_engine.core.orderer import order
from resume_engine.core.reconciler import reconcile
from resume_engine.core.record import from_record, parse_json_content
from resume_engine.core.schemas import Anomaly, AnomalyKind, Block, Section, SectionKind, SectionsResponse
from resume_engine.core.tokenizer import tokenize, tokenize_markdown, tokenize_plain_text

logger = logging.getLogger(__name__)

HTML_HINT_RE = re.compile(r"<\s*(?:h[1-6]|p|div|ul|ol|li|section|article|body|html|br)\b", re.IGNORECASE)


def _heading_tag(section: Section) -> str:
    if section.kind == SectionKind.HEADER:
        return "h1"
    if section.kind == SectionKind.JOB_ROLE:
        return "h3"
    return "h2"


# ============================================================================
# Rendering
# ============================================================================

def to_markup(sections: List[Section]) -> str:
    """
    HTML in canonical order: h1 for the header, h2 per section, h3 per job
    role followed by its employer/date line and bullets.
    """
    parts: List[str] = []
    for s in order(sections):
        tag = _heading_tag(s)
        if s.title:
            parts.append(f"<{tag}>{escape(s.title)}</{tag}>")
        if s.body:
            parts.append(s.body)
    return "\n".join(parts)


def to_markdown_text(sections: List[Section]) -> str:
    blocks: List[str] = []
    for s in order(sections):
        level = int(_heading_tag(s)[1])
        if s.title:
            blocks.append(f"{'#' * level} {s.title}")
        body = html_to_markdown(s.body)
        if body:
            blocks.append(body)
    return "\n\n".join(blocks) + ("\n" if blocks else "")


# ============================================================================
# Parsing
# ============================================================================

def run_pipeline(
    blocks: List[Block],
    config: EngineConfig = DEFAULT_CONFIG,
    anomalies: Optional[List[Anomaly]] = None,
) -> List[Section]:
    sections = assemble(blocks, config, anomalies)
    sections = reconcile(sections, config, anomalies)
    return order(sections)


def from_markup(
    html: str,
    config: EngineConfig = DEFAULT_CONFIG,
    anomalies: Optional[List[Anomaly]] = None,
) -> List[Section]:
    return run_pipeline(tokenize(html, anomalies), config, anomalies)


def from_markdown_text(
    text: str,
    config: EngineConfig = DEFAULT_CONFIG,
    anomalies: Optional[List[Anomaly]] = None,
) -> List[Section]:
    return run_pipeline(tokenize_markdown(text, anomalies), config, anomalies)


def from_plain_text(
    text_or_lines,
    config: EngineConfig = DEFAULT_CONFIG,
    anomalies: Optional[List[Anomaly]] = None,
) -> List[Section]:
    """Extracted document text (DOCX/PDF/TXT) without markup."""
    return run_pipeline(tokenize_plain_text(text_or_lines, config, anomalies), config, anomalies)


def detect_format(content: str) -> str:
    """'record', 'html' or 'markdown' for raw content."""
    if parse_json_content(content) is not None:
        return "record"
    if HTML_HINT_RE.search(unwrap_code_fence(content or "")):
        return "html"
    return "markdown"


def parse_content(
    content: str,
    config: EngineConfig = DEFAULT_CONFIG,
    anomalies: Optional[List[Anomaly]] = None,
    source_format: str = "auto",
) -> List[Section]:
    """
    Sections from raw content of any supported shape.

    With source_format='auto' a JSON resume record is tried first, then HTML,
    then markdown. Never raises.
    """
    fmt = detect_format(content) if source_format == "auto" else source_format
    logger.debug(f"Parsing content as {fmt}")

    if fmt == "record":
        sections = from_record(content, config, anomalies)
        return order(reconcile(sections, config, anomalies))
    if fmt == "html":
        return from_markup(unwrap_code_fence(content), config, anomalies)
    if fmt == "text":
        return from_plain_text(content, config, anomalies)
    return from_markdown_text(content, config, anomalies)


# ============================================================================
# Service response
# ============================================================================

def assess_quality(sections: List[Section], anomalies: List[Anomaly]) -> str:
    """
    Overall parse quality:
      "high"   : header and experience found, no repairs needed
      "medium" : usable structure, but repairs were made or a core section is missing
      "low"    : nothing recognized beyond the header, or content was kept verbatim
    """
    kinds = {s.kind for s in sections}
    if not sections or any(a.kind == AnomalyKind.UNPARSABLE_FRAGMENT for a in anomalies):
        return "low"
    if not kinds - {SectionKind.HEADER, SectionKind.OTHER}:
        return "low"
    if SectionKind.HEADER not in kinds or SectionKind.EXPERIENCE not in kinds:
        return "medium"
    if any(a.kind == AnomalyKind.STRUCTURAL_ANOMALY for a in anomalies):
        return "medium"
    return "high"


def build_response(
    sections: List[Section],
    anomalies: List[Anomaly],
) -> SectionsResponse:
    warnings: List[str] = []
    kinds = {s.kind for s in sections}
    if SectionKind.HEADER not in kinds:
        warnings.append("No header found. Candidate name may need to be entered manually.")
    if SectionKind.EXPERIENCE not in kinds:
        warnings.append("No experience section found")
    for a in anomalies:
        if a.kind != AnomalyKind.CLASSIFICATION_AMBIGUOUS:
            warnings.append(a.message)

    return SectionsResponse(
        sections=sections,
        anomalies=anomalies,
        parse_quality=assess_quality(sections, anomalies),
        warnings=warnings,
    )


def parse_to_response(
    content: str,
    source_format: str = "auto",
    config: EngineConfig = DEFAULT_CONFIG,
) -> SectionsResponse:
    anomalies: List[Anomaly] = []
    sections = parse_content(content, config, anomalies, source_format=source_format)
    return build_response(sections, anomalies)
