"""
Structural repair of an assembled section collection.

Generative output often promotes an achievement line ("Directed R&D:") to
the same heading level as the job titles around it. reconcile() folds those
fragments back into the role they describe, and fixes the collection-level
invariants on the way:

    1. ids are unique
    2. at most one HEADER and one SUMMARY
    3. every JOB_ROLE points at an EXPERIENCE section
    4. bullet-like JOB_ROLE fragments are merged into their real role

Every repair is logged at warning level and recorded as a STRUCTURAL_ANOMALY.
Running it twice gives the same result as running it once.
"""

import logging
from typing import Dict, List, Optional, Tuple

from resume_engine.core.assembler import IdAllocator
from resume_engine.core.classifier import is_bullet_like_heading
from resume_engine.core.config import DEFAULT_CONFIG, EngineConfig
from resume_engine.core.markup import (
    element_text,
    employer_line,
    find_employer_paragraph,
    first_paragraph_text,
    parse_fragment,
    strip_tags,
)
from resume_engine.core.schemas import Anomaly, AnomalyKind, Section, SectionKind
from resume_engine.core.text_normalization import normalize_colon_title, split_employer_line

logger = logging.getLogger(__name__)


def _record(anomalies: Optional[List[Anomaly]], message: str, section_id: Optional[str] = None) -> None:
    logger.warning(message)
    if anomalies is not None:
        anomalies.append(Anomaly(kind=AnomalyKind.STRUCTURAL_ANOMALY, message=message, section_id=section_id))


# ============================================================================
# Collection invariants
# ============================================================================

def _unique_ids(sections: List[Section], anomalies: Optional[List[Anomaly]]) -> List[Section]:
    ids = IdAllocator(s.id for s in sections if s.id)
    seen = set()
    out: List[Section] = []
    for s in sections:
        if s.id and s.id not in seen:
            seen.add(s.id)
            out.append(s)
            continue
        if s.kind == SectionKind.JOB_ROLE:
            new_id = ids.for_job_role()
        else:
            new_id = ids.for_section(s.kind, s.title)
        seen.add(new_id)
        _record(anomalies, f"Section id '{s.id}' is not unique, renamed to '{new_id}'", new_id)
        out.append(s.model_copy(update={"id": new_id}))
    return out


def _merge_singletons(sections: List[Section], anomalies: Optional[List[Anomaly]]) -> List[Section]:
    out: List[Section] = []
    first_index: Dict[SectionKind, int] = {}
    for s in sections:
        if s.kind not in (SectionKind.HEADER, SectionKind.SUMMARY):
            out.append(s)
            continue
        if s.kind not in first_index:
            first_index[s.kind] = len(out)
            out.append(s)
            continue
        idx = first_index[s.kind]
        keeper = out[idx]
        out[idx] = keeper.model_copy(update={"body": keeper.body + s.body})
        _record(anomalies, f"Second {s.kind.value} section '{s.id}' merged into '{keeper.id}'", keeper.id)
    return out


def _repair_orphans(
    sections: List[Section],
    config: EngineConfig,
    anomalies: Optional[List[Anomaly]],
) -> List[Section]:
    experience_ids = [s.id for s in sections if s.kind == SectionKind.EXPERIENCE]
    orphans = [
        i for i, s in enumerate(sections)
        if s.kind == SectionKind.JOB_ROLE and s.parent_ref not in experience_ids
    ]
    if not orphans:
        return sections

    out = list(sections)
    if experience_ids:
        parent_id = experience_ids[0]
    else:
        parent_id = IdAllocator(s.id for s in sections).for_section(SectionKind.EXPERIENCE)
        wrapper = Section(
            id=parent_id,
            title=config.title_for(SectionKind.EXPERIENCE),
            kind=SectionKind.EXPERIENCE,
        )
        out.insert(orphans[0], wrapper)
        orphans = [i + 1 for i in orphans]
        _record(anomalies, f"No experience section for job roles, created '{parent_id}'", parent_id)

    for i in orphans:
        role = out[i]
        _record(
            anomalies,
            f"Job role '{role.title}' had parent '{role.parent_ref or ''}', attached to '{parent_id}'",
            role.id,
        )
        out[i] = role.model_copy(update={"parent_ref": parent_id})
    return out


# ============================================================================
# Fragment merge
# ============================================================================

def _employer_and_dates(role: Section) -> Tuple[str, str]:
    line = employer_line(role.body)
    if not line:
        return "", ""
    return split_employer_line(line)


def _references(fragment: Section, parent: Section) -> bool:
    """True when the fragment's text mentions the parent's employer or date range."""
    text = strip_tags(fragment.body).casefold()
    if not text:
        return False
    employer, date_range = _employer_and_dates(parent)
    return any(needle and needle.casefold() in text for needle in (employer, date_range))


def _merge_into(parent: Section, fragment: Section) -> Section:
    """
    Append the fragment to the parent's first list as
    '<strong>Title:</strong> first paragraph', followed by the fragment's own
    list items. The list is created after the employer/date line if missing.
    """
    soup = parse_fragment(parent.body)
    target = soup.find(["ul", "ol"])
    if target is None:
        target = soup.new_tag("ul")
        anchor = find_employer_paragraph(soup)
        if anchor is not None:
            anchor.insert_after(target)
        else:
            soup.append(target)

    item = soup.new_tag("li")
    strong = soup.new_tag("strong")
    strong.string = f"{normalize_colon_title(fragment.title)}:"
    item.append(strong)
    description = first_paragraph_text(fragment.body)
    if description:
        item.append(f" {description}")
    target.append(item)

    fragment_soup = parse_fragment(fragment.body)
    for lst in fragment_soup.find_all(["ul", "ol"]):
        if lst.find_parent("li") is not None:
            continue
        for li in lst.find_all("li", recursive=False):
            if element_text(li):
                target.append(li.extract())

    return parent.model_copy(update={"body": str(soup)})


def _merge_fragments(
    sections: List[Section],
    config: EngineConfig,
    anomalies: Optional[List[Anomaly]],
) -> List[Section]:
    out: List[Section] = []
    for s in sections:
        if s.kind != SectionKind.JOB_ROLE or not is_bullet_like_heading(s.title, config):
            out.append(s)
            continue

        # Nearest surviving role under the same experience wins
        target_idx = None
        for idx in range(len(out) - 1, -1, -1):
            candidate = out[idx]
            if candidate.kind != SectionKind.JOB_ROLE or candidate.parent_ref != s.parent_ref:
                continue
            if _references(s, candidate):
                target_idx = idx
                break

        if target_idx is None:
            logger.debug(f"Bullet-like job role '{s.title}' matched no preceding role, kept")
            out.append(s)
            continue

        parent = out[target_idx]
        out[target_idx] = _merge_into(parent, s)
        _record(
            anomalies,
            f"Job role '{s.title}' looks like a bullet of '{parent.title}', merged as a list item",
            parent.id,
        )
    return out


def reconcile(
    sections: List[Section],
    config: EngineConfig = DEFAULT_CONFIG,
    anomalies: Optional[List[Anomaly]] = None,
) -> List[Section]:
    """Repair a section collection. Returns a new list; input sections are not modified."""
    out = _unique_ids(list(sections), anomalies)
    out = _merge_singletons(out, anomalies)
    out = _repair_orphans(out, config, anomalies)
    out = _merge_fragments(out, config, anomalies)
    return out
