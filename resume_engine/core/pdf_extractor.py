"""
PDF text-layer extraction for uploads.

pdfplumber word boxes are regrouped into visual lines; the plain-text
tokenizer does the rest. Scanned PDFs (no text layer) yield no lines.
"""

import re
from io import BytesIO
from typing import Any, Dict, List, Tuple

import pdfplumber

X_TOLERANCES = (1.5, 2, 2.5, 3)


def _add_spaces_to_glued_line(text: str) -> str:
    """
    Add spaces where PDF extraction glued a whole line together.

    Only lines with no spaces at all are touched, so brand names such as
    'GitHub' in normal lines survive.

    Examples:
    - "SeniorEngineer,AcmeCorp" -> "Senior Engineer, Acme Corp"
    - "January2024-Present" -> "January 2024-Present"
    """
    if " " in text or len(text) < 20:
        return text
    text = re.sub(r"([a-z])([A-Z])", r"\1 \2", text)
    text = re.sub(r"([a-zA-Z])(\d)", r"\1 \2", text)
    text = re.sub(r"([:,|])(\S)", r"\1 \2", text)
    return re.sub(r"\s+", " ", text)


def _page_lines(page: Any, x_tolerance: float, line_height: float = 3) -> List[str]:
    """Words bucketed by their rounded 'top' coordinate, left to right within a bucket."""
    words = page.extract_words(
        x_tolerance=x_tolerance,
        y_tolerance=2,
        keep_blank_chars=False,
        use_text_flow=True,
    )
    rows: Dict[int, List[Tuple[float, str]]] = {}
    for w in words:
        rows.setdefault(round(w["top"] / line_height), []).append((w["x0"], w["text"]))
    return [" ".join(text for _, text in sorted(rows[key])) for key in sorted(rows)]


def _artifact_score(lines: List[str]) -> float:
    """
    Lower is better. Glued words show up as very long alphabetic tokens,
    over-spaced words as a pile of one-letter tokens.
    """
    tokens = re.findall(r"[A-Za-z]+", " ".join(lines))
    if not tokens:
        return float("inf")
    glued = sum(1 for t in tokens if len(t) >= 18)
    singles = sum(1 for t in tokens if len(t) == 1)
    return glued * 10 + max(0, singles - 10) * 3


def _best_page_lines(page: Any) -> List[str]:
    """Try each x tolerance and keep the least garbled rendition (first wins ties)."""
    candidates = [_page_lines(page, xt) for xt in X_TOLERANCES]
    return min(candidates, key=_artifact_score)


def extract_pdf_lines(pdf_bytes: bytes) -> List[str]:
    """
    Deterministically extract text lines from a PDF, page by page.

    Lines keep reading order; bullet glyphs are left in place for the
    plain-text tokenizer to turn into list items.
    """
    out: List[str] = []
    with pdfplumber.open(BytesIO(pdf_bytes)) as pdf:
        for page in pdf.pages:
            for line in _best_page_lines(page):
                line = line.strip()
                if line:
                    out.append(_add_spaces_to_glued_line(line))
    return out
