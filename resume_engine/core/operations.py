"""
Whole-collection edit operations.

Editors never mutate a Section; every operation takes the current list and
returns a new one. Run reconcile() + order() afterwards when a canonical
collection is needed.
"""

import logging
from typing import Dict, List, Optional

from resume_engine.core.assembler import IdAllocator
from resume_engine.core.config import DEFAULT_CONFIG, EngineConfig
from resume_engine.core.markup import escape, find_employer_paragraph, parse_fragment
from resume_engine.core.schemas import Section, SectionKind

logger = logging.getLogger(__name__)


class SectionOperationError(ValueError):
    """An edit that cannot be applied (unknown id, protected section, wrong kind)."""


def _index_of(sections: List[Section], section_id: str) -> int:
    for idx, s in enumerate(sections):
        if s.id == section_id:
            return idx
    raise SectionOperationError(f"No section with id '{section_id}'")


def section_exists(sections: List[Section], kind: SectionKind) -> bool:
    return any(s.kind == kind for s in sections)


def build_hierarchy(sections: List[Section]) -> Dict[str, List[str]]:
    """Experience id -> ids of its job roles, in collection order."""
    hierarchy: Dict[str, List[str]] = {s.id: [] for s in sections if s.kind == SectionKind.EXPERIENCE}
    for s in sections:
        if s.kind == SectionKind.JOB_ROLE and s.parent_ref in hierarchy:
            hierarchy[s.parent_ref].append(s.id)
    return hierarchy


def add_section(
    sections: List[Section],
    kind: SectionKind = SectionKind.OTHER,
    title: Optional[str] = None,
    body: str = "",
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[Section]:
    """
    Add a section. A HEADER or SUMMARY that already exists is left as is;
    a new SUMMARY goes right after the header, anything else at the end.
    """
    if kind == SectionKind.JOB_ROLE:
        return add_job_role(sections, title=title or "New Job Role", body=body, config=config)
    if kind in (SectionKind.HEADER, SectionKind.SUMMARY) and section_exists(sections, kind):
        logger.debug(f"{kind.value} already present, not adding another")
        return list(sections)

    title = title if title is not None else config.title_for(kind)
    new = Section(
        id=IdAllocator(s.id for s in sections).for_section(kind, title),
        title=title,
        kind=kind,
        body=body,
    )
    out = list(sections)
    if kind == SectionKind.HEADER:
        out.insert(0, new)
    elif kind == SectionKind.SUMMARY:
        header_idx = next((i for i, s in enumerate(out) if s.kind == SectionKind.HEADER), -1)
        out.insert(header_idx + 1, new)
    else:
        out.append(new)
    return out


def add_job_role(
    sections: List[Section],
    title: str = "New Job Role",
    body: str = "",
    experience_id: Optional[str] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[Section]:
    """Add a job role under an experience section, creating the experience when none exists."""
    out = list(sections)
    ids = IdAllocator(s.id for s in out)

    if experience_id is None:
        experience = next((s for s in out if s.kind == SectionKind.EXPERIENCE), None)
        if experience is None:
            experience = Section(
                id=ids.for_section(SectionKind.EXPERIENCE),
                title=config.title_for(SectionKind.EXPERIENCE),
                kind=SectionKind.EXPERIENCE,
            )
            out.append(experience)
        experience_id = experience.id
    elif out[_index_of(out, experience_id)].kind != SectionKind.EXPERIENCE:
        raise SectionOperationError(f"Section '{experience_id}' is not an experience section")

    # After the last existing role of that experience, else right after the experience
    insert_at = _index_of(out, experience_id) + 1
    for idx, s in enumerate(out):
        if s.kind == SectionKind.JOB_ROLE and s.parent_ref == experience_id:
            insert_at = idx + 1

    out.insert(insert_at, Section(
        id=ids.for_job_role(),
        title=title,
        kind=SectionKind.JOB_ROLE,
        body=body,
        parent_ref=experience_id,
    ))
    return out


def edit_body(sections: List[Section], section_id: str, body: str) -> List[Section]:
    out = list(sections)
    idx = _index_of(out, section_id)
    out[idx] = out[idx].model_copy(update={"body": body})
    return out


def rename_section(sections: List[Section], section_id: str, title: str) -> List[Section]:
    out = list(sections)
    idx = _index_of(out, section_id)
    out[idx] = out[idx].model_copy(update={"title": title})
    return out


def delete_section(sections: List[Section], section_id: str) -> List[Section]:
    """Remove a section. Deleting an experience section removes its job roles too."""
    target = sections[_index_of(sections, section_id)]
    if target.kind == SectionKind.HEADER:
        raise SectionOperationError("The header section cannot be deleted")

    removed = {section_id}
    if target.kind == SectionKind.EXPERIENCE:
        removed.update(s.id for s in sections if s.kind == SectionKind.JOB_ROLE and s.parent_ref == section_id)
        logger.debug(f"Deleting experience '{section_id}' with {len(removed) - 1} job roles")
    return [s for s in sections if s.id not in removed]


def move_section(sections: List[Section], section_id: str, new_index: int) -> List[Section]:
    """Move a section to a new list position (clamped to the list bounds)."""
    out = list(sections)
    section = out.pop(_index_of(out, section_id))
    new_index = max(0, min(new_index, len(out)))
    out.insert(new_index, section)
    return out


def merge_sections(sections: List[Section], target_id: str, source_id: str) -> List[Section]:
    """
    Append the source's body to the target and drop the source. Job roles of
    a merged experience move to the target when it is an experience too.
    """
    if target_id == source_id:
        raise SectionOperationError("Cannot merge a section into itself")
    out = list(sections)
    target_idx = _index_of(out, target_id)
    source = out[_index_of(out, source_id)]
    target = out[target_idx]

    out[target_idx] = target.model_copy(update={"body": target.body + source.body})
    if source.kind == SectionKind.EXPERIENCE and target.kind == SectionKind.EXPERIENCE:
        out = [
            s.model_copy(update={"parent_ref": target_id}) if s.parent_ref == source_id else s
            for s in out
        ]
    return [s for s in out if s.id != source_id]


def replace_job_role_bullets(sections: List[Section], role_id: str, bullets: List[str]) -> List[Section]:
    """
    Swap a job role's bullet list, keeping its employer/date line and
    paragraphs. An empty list removes the bullets.
    """
    out = list(sections)
    idx = _index_of(out, role_id)
    role = out[idx]
    if role.kind != SectionKind.JOB_ROLE:
        raise SectionOperationError(f"Section '{role_id}' is not a job role")

    soup = parse_fragment(role.body)
    lists = [lst for lst in soup.find_all(["ul", "ol"]) if lst.find_parent("li") is None]
    anchor = lists[0] if lists else None
    new_list = parse_fragment(
        "<ul>" + "".join(f"<li>{escape(b)}</li>" for b in bullets if b.strip()) + "</ul>"
    ).ul

    if bullets and any(b.strip() for b in bullets):
        if anchor is not None:
            anchor.replace_with(new_list)
        else:
            employer = find_employer_paragraph(soup)
            if employer is not None:
                employer.insert_after(new_list)
            else:
                soup.append(new_list)
    elif anchor is not None:
        anchor.decompose()
    for extra in lists[1:]:
        extra.decompose()

    out[idx] = role.model_copy(update={"body": str(soup)})
    return out
