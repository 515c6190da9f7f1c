import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from resume_engine.core.classifier import classify, is_bullet_like_heading
from resume_engine.core.config import DEFAULT_CONFIG, EngineConfig
from resume_engine.core.markup import element_text, escape, parse_fragment
from resume_engine.core.schemas import Anomaly, AnomalyKind, Block, Section, SectionKind
from resume_engine.core.text_normalization import looks_like_contact, slugify

logger = logging.getLogger(__name__)


class IdAllocator:
    """
    Deterministic, collision-free section ids.

    The first section of a kind gets the kind slug ('experience', 'skills');
    later ones and OTHER sections get '<kind>-<title slug>'; job roles are
    numbered 'job-role-N'.
    """

    def __init__(self, used: Iterable[str] = ()):
        self.used: Set[str] = set(used)
        self.jobs = 0

    def take(self, base: str) -> str:
        base = base or "section"
        candidate = base
        n = 2
        while candidate in self.used:
            candidate = f"{base}-{n}"
            n += 1
        self.used.add(candidate)
        return candidate

    def for_section(self, kind: SectionKind, title: str = "") -> str:
        kind_slug = kind.value.lower().replace("_", "-")
        if kind not in (SectionKind.OTHER, SectionKind.JOB_ROLE) and kind_slug not in self.used:
            return self.take(kind_slug)
        title_slug = slugify(title)
        return self.take(f"{kind_slug}-{title_slug}" if title_slug else kind_slug)

    def for_job_role(self) -> str:
        self.jobs += 1
        candidate = f"job-role-{self.jobs}"
        while candidate in self.used:
            self.jobs += 1
            candidate = f"job-role-{self.jobs}"
        self.used.add(candidate)
        return candidate


def _top_level_elements(html: str) -> List[Tuple[str, str]]:
    """(tag name or '#text', serialized html) for each top-level node of a fragment."""
    out: List[Tuple[str, str]] = []
    for child in parse_fragment(html).children:
        name = getattr(child, "name", None)
        if name:
            out.append((name, str(child)))
        elif str(child).strip():
            out.append(("#text", f"<p>{escape(str(child).strip())}</p>"))
    return out


def split_implicit_summary(content: str, config: EngineConfig = DEFAULT_CONFIG) -> Tuple[str, str]:
    """
    Split a title block's content into (header_body, summary_body).

    The summary starts at the first paragraph longer than
    config.summary_min_chars that is not contact information.
    """
    header_parts: List[str] = []
    summary_parts: List[str] = []
    for name, html in _top_level_elements(content):
        if summary_parts:
            summary_parts.append(html)
            continue
        if name in ("p", "#text"):
            text = element_text(parse_fragment(html))
            if len(text) > config.summary_min_chars and not looks_like_contact(text):
                summary_parts.append(html)
                continue
        header_parts.append(html)
    return "".join(header_parts), "".join(summary_parts)


def assemble(
    blocks: List[Block],
    config: EngineConfig = DEFAULT_CONFIG,
    anomalies: Optional[List[Anomaly]] = None,
) -> List[Section]:
    """
    Build the flat section collection from tokenized blocks.

    Experience sections adopt the level-3 blocks that follow them as JOB_ROLE
    sections (parent_ref = experience id). Sub-headings that read like
    achievement lines are still emitted as JOB_ROLE so reconcile() can fold
    them into the role they belong to.
    """
    ids = IdAllocator()
    rows: List[Dict] = []
    by_kind: Dict[SectionKind, Dict] = {}
    current: Optional[Dict] = None
    experience_id: Optional[str] = None

    def note(message: str, section_id: Optional[str] = None) -> None:
        logger.warning(message)
        if anomalies is not None:
            anomalies.append(Anomaly(kind=AnomalyKind.STRUCTURAL_ANOMALY, message=message, section_id=section_id))

    def add(kind: SectionKind, title: str, body: str, parent_ref: Optional[str] = None) -> Dict:
        # Only one HEADER and one SUMMARY per collection
        if kind in (SectionKind.HEADER, SectionKind.SUMMARY) and kind in by_kind:
            existing = by_kind[kind]
            existing["body"] += body
            note(f"Duplicate {kind.value} '{title}' merged into '{existing['id']}'", existing["id"])
            return existing
        if kind == SectionKind.JOB_ROLE:
            section_id = ids.for_job_role()
        else:
            section_id = ids.for_section(kind, title)
        row = {"id": section_id, "title": title, "kind": kind, "body": body, "parent_ref": parent_ref}
        rows.append(row)
        by_kind.setdefault(kind, row)
        return row

    for block in blocks:
        heading = (block.heading or "").strip()

        if block.level == 0 or (
            block.level == 1
            and SectionKind.HEADER not in by_kind
            and heading
            and classify(heading, config) == SectionKind.OTHER
        ):
            if block.implicit:
                header_body, summary_body = block.content, ""
            else:
                header_body, summary_body = split_implicit_summary(block.content, config)
            current = add(SectionKind.HEADER, heading or config.title_for(SectionKind.HEADER), header_body)
            experience_id = None
            if summary_body:
                logger.debug(f"Implicit summary found under title '{heading}'")
                add(SectionKind.SUMMARY, config.title_for(SectionKind.SUMMARY), summary_body)
            continue

        if block.level == 3 and current is not None:
            if experience_id is not None:
                if is_bullet_like_heading(heading, config):
                    logger.debug(f"Sub-heading '{heading}' looks like a bullet, queued for reconciliation")
                add(SectionKind.JOB_ROLE, heading, block.content, parent_ref=experience_id)
                continue
            if current["kind"] != SectionKind.HEADER or classify(heading, config) == SectionKind.OTHER:
                current["body"] += f"<h3>{escape(heading)}</h3>" + block.content
                continue

        kind = classify(heading, config, anomalies) if heading else SectionKind.OTHER
        if kind == SectionKind.HEADER:
            title = by_kind[kind]["title"] if kind in by_kind else config.title_for(kind)
            current = add(kind, title, block.content)
        else:
            # A top-level "Job Role" heading is left orphaned for reconcile()
            current = add(kind, heading or config.title_for(kind), block.content)
        experience_id = current["id"] if kind == SectionKind.EXPERIENCE else None

    sections = [Section(**row) for row in rows]
    logger.debug(f"Assembled {len(sections)} sections: {[(s.kind.value, s.title) for s in sections]}")
    return sections
