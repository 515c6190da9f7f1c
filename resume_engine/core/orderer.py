from typing import Dict, List

from resume_engine.core.schemas import Section, SectionKind


def order(sections: List[Section]) -> List[Section]:
    """
    Canonical presentation order.

    HEADER, SUMMARY, each EXPERIENCE followed by its JOB_ROLE children,
    EDUCATION, then everything else in original relative order. Job roles
    whose parent is missing follow the first EXPERIENCE (or fall into the
    remaining group when there is none). The output is always a permutation
    of the input; nothing is added or dropped.
    """
    sections = list(sections)
    placed = [False] * len(sections)
    result: List[Section] = []

    def take(idx: int) -> None:
        if not placed[idx]:
            placed[idx] = True
            result.append(sections[idx])

    def take_kind(kind: SectionKind) -> None:
        for idx, s in enumerate(sections):
            if s.kind == kind:
                take(idx)

    take_kind(SectionKind.HEADER)
    take_kind(SectionKind.SUMMARY)

    experiences = [idx for idx, s in enumerate(sections) if s.kind == SectionKind.EXPERIENCE]
    owner: Dict[str, int] = {}
    for idx in experiences:
        owner.setdefault(sections[idx].id, idx)

    roles_by_owner: Dict[int, List[int]] = {}
    orphans: List[int] = []
    for idx, s in enumerate(sections):
        if s.kind != SectionKind.JOB_ROLE:
            continue
        parent_idx = owner.get(s.parent_ref or "")
        if parent_idx is None:
            orphans.append(idx)
        else:
            roles_by_owner.setdefault(parent_idx, []).append(idx)

    for n, idx in enumerate(experiences):
        take(idx)
        for role_idx in roles_by_owner.get(idx, []):
            take(role_idx)
        if n == 0:
            for role_idx in orphans:
                take(role_idx)

    take_kind(SectionKind.EDUCATION)

    for idx in range(len(sections)):
        take(idx)

    return result
