"""
Resume record codec.

The record is the storage wire format:

    header.{name,email,phone,location}
    summary
    experience[].{id?,title,company,dateRange,description?,bullets[]}
    education[].{degree,institution,year}
    skills                       flat list, or category -> list
    certifications[].{name,issuer,year}
    sectionTitles                kind -> display title (only when not the default)
    additionalSections[]         PROJECTS/OTHER sections as markdown
    sectionLayout[]              only when the fields above cannot rebuild the
                                 collection: ids, titles, parents and the bodies
                                 that differ

The structured fields are lossy (styling is dropped). When rebuilding a
collection from them would not give back the same sections, to_record() adds
sectionLayout, so sections -> record -> sections returns the ordered
collection for any input.
"""

import re
import json
import logging
from typing import Dict, List, Optional, Set, Tuple, Union

from pydantic import ValidationError

from resume_engine.core.assembler import IdAllocator
from resume_engine.core.config import DEFAULT_CONFIG, EngineConfig
from resume_engine.core.markup import (
    element_text,
    employer_line,
    escape,
    extract_plain_text,
    html_to_markdown,
    list_items,
    markdown_to_html,
    normalize_body,
    paragraph_texts,
    parse_fragment,
)
from resume_engine.core.orderer import order
from resume_engine.core.schemas import (
    Anomaly,
    AnomalyKind,
    RecordCertification,
    RecordEducation,
    RecordExperience,
    RecordHeader,
    RecordLayoutEntry,
    RecordSection,
    ResumeRecord,
    Section,
    SectionKind,
    drop_null_values,
)
from resume_engine.core.text_normalization import (
    collapse_ws,
    is_bullet_line,
    join_contact,
    split_contact,
    split_csv,
    split_employer_line,
    strip_bullet,
)

logger = logging.getLogger(__name__)

JSON_FENCE_RE = re.compile(r"```json\s*\n(.*?)\n\s*```", re.DOTALL)
LABELED_ITEM_RE = re.compile(r"^([^:]{1,40}):\s*(.+)$")

# Kinds whose display title travels in sectionTitles
_TITLED_KINDS = (
    SectionKind.SUMMARY,
    SectionKind.EXPERIENCE,
    SectionKind.EDUCATION,
    SectionKind.SKILLS,
    SectionKind.CERTIFICATIONS,
)

MAX_REPAIR_ROUNDS = 5


def parse_json_content(content: Optional[str]) -> Optional[dict]:
    """
    Pull a JSON object out of raw model output.

    Accepts a ```json fenced block anywhere in the text, or text that is a
    bare JSON object. Returns None when neither parses.
    """
    if not content:
        return None
    text = content.strip()
    candidates = []
    m = JSON_FENCE_RE.search(text)
    if m:
        candidates.append(m.group(1).strip())
    if text.startswith("{") and text.endswith("}"):
        candidates.append(text)
    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except ValueError as e:
            logger.debug(f"JSON candidate did not parse: {e}")
            continue
        if isinstance(data, dict):
            return data
    return None


def text_to_body(text: str) -> str:
    """
    Plain text to a body fragment: blank lines separate paragraphs, lines
    starting with a bullet glyph become list items.
    """
    parts: List[str] = []
    items: List[str] = []
    para: List[str] = []

    def flush_para() -> None:
        if para:
            parts.append(f"<p>{escape(collapse_ws(' '.join(para)))}</p>")
            para.clear()

    def flush_items() -> None:
        if items:
            parts.append("<ul>" + "".join(f"<li>{escape(i)}</li>" for i in items) + "</ul>")
            items.clear()

    for raw in (text or "").splitlines():
        line = raw.strip()
        if not line:
            flush_para()
            flush_items()
        elif is_bullet_line(line):
            flush_para()
            items.append(strip_bullet(line))
        else:
            flush_items()
            para.append(line)
    flush_para()
    flush_items()
    return "".join(parts)


# ============================================================================
# sections -> record
# ============================================================================

def _header_fields(section: Section) -> RecordHeader:
    lines = paragraph_texts(section.body) + list_items(section.body)
    contact = split_contact("\n".join(lines))
    return RecordHeader(name=section.title, **contact)


def _experience_entry(role: Section) -> RecordExperience:
    line = employer_line(role.body)
    company, date_range = split_employer_line(line) if line else ("", "")
    paragraphs = paragraph_texts(role.body)
    if line and line in paragraphs:
        paragraphs.remove(line)
    return RecordExperience(
        id=role.id,
        title=role.title,
        company=company,
        date_range=date_range,
        description="\n\n".join(paragraphs) or None,
        bullets=list_items(role.body),
    )


def _education_entries(body: str) -> List[RecordEducation]:
    soup = parse_fragment(body)
    entries: List[RecordEducation] = []
    headings = soup.find_all("h3")
    if headings:
        for h in headings:
            institution, year = "", ""
            nxt = h.find_next_sibling()
            if nxt is not None and nxt.name == "p":
                parts = [p.strip() for p in element_text(nxt).split("|", 1)]
                institution = parts[0]
                year = parts[1] if len(parts) > 1 else ""
            entries.append(RecordEducation(degree=element_text(h), institution=institution, year=year))
        return entries

    # Free-form education: one entry per line, 'Degree | Institution | Year'
    for el in soup.find_all(["p", "li"]):
        parts = [p.strip() for p in element_text(el).split("|")]
        if not parts[0]:
            continue
        entries.append(RecordEducation(
            degree=parts[0],
            institution=parts[1] if len(parts) > 1 else "",
            year=parts[2] if len(parts) > 2 else "",
        ))
    return entries


def _skills_value(body: str) -> Union[Dict[str, List[str]], List[str]]:
    # An empty skills section is an empty category map; no section is an empty list
    if not extract_plain_text(body).strip():
        return {}

    soup = parse_fragment(body)
    headings = soup.find_all("h3")
    if headings:
        categories: Dict[str, List[str]] = {}
        for h in headings:
            values: List[str] = []
            nxt = h.find_next_sibling()
            if nxt is not None and nxt.name == "p":
                values = split_csv(element_text(nxt))
            elif nxt is not None and nxt.name in ("ul", "ol"):
                values = [element_text(li) for li in nxt.find_all("li") if element_text(li)]
            categories[element_text(h)] = values
        return categories

    # '**Languages:** Python, Go' lines are a category map too
    labeled: Dict[str, List[str]] = {}
    lines = [el for el in soup.find_all(["p", "li"]) if element_text(el)]
    for el in lines:
        first = next(iter(el.find_all(True, recursive=False)), None)
        m = LABELED_ITEM_RE.match(element_text(el))
        if first is None or first.name not in ("strong", "b") or not m:
            labeled = {}
            break
        labeled[m.group(1).strip()] = split_csv(m.group(2))
    if labeled:
        return labeled

    items = list_items(body)
    if items:
        return items
    flat: List[str] = []
    for text in paragraph_texts(body):
        flat.extend(split_csv(text))
    return flat


def _certification_entries(body: str) -> List[RecordCertification]:
    soup = parse_fragment(body)
    entries: List[RecordCertification] = []
    for el in soup.find_all(["p", "li"]):
        text = element_text(el)
        if not text:
            continue
        parts = [p.strip() for p in text.split("|")]
        entries.append(RecordCertification(
            name=parts[0],
            issuer=parts[1] if len(parts) > 1 else "",
            year=parts[2] if len(parts) > 2 else "",
        ))
    return entries


def _structured_record(ordered: List[Section], config: EngineConfig) -> ResumeRecord:
    record = ResumeRecord()
    skills_seen = False
    for s in ordered:
        if s.kind in _TITLED_KINDS and s.title and s.title != config.title_for(s.kind):
            record.section_titles.setdefault(s.kind.value, s.title)

        if s.kind == SectionKind.HEADER:
            record.header = _header_fields(s)
        elif s.kind == SectionKind.SUMMARY:
            record.summary = extract_plain_text(s.body)
        elif s.kind == SectionKind.JOB_ROLE:
            record.experience.append(_experience_entry(s))
        elif s.kind == SectionKind.EDUCATION:
            record.education.extend(_education_entries(s.body))
        elif s.kind == SectionKind.CERTIFICATIONS:
            record.certifications.extend(_certification_entries(s.body))
        elif s.kind == SectionKind.SKILLS and not skills_seen:
            skills_seen = True
            record.skills = _skills_value(s.body)
        elif s.kind in (SectionKind.PROJECTS, SectionKind.OTHER, SectionKind.SKILLS):
            record.additional_sections.append(RecordSection(
                title=s.title,
                kind=s.kind,
                content=html_to_markdown(s.body),
            ))
    return record


def _shape(s: Section) -> tuple:
    return (s.id, s.kind, s.title, s.parent_ref, normalize_body(s.body))


def _first_by_id(sections: List[Section]) -> Dict[str, Section]:
    by_id: Dict[str, Section] = {}
    for s in sections:
        by_id.setdefault(s.id, s)
    return by_id


def to_record(sections: List[Section], config: EngineConfig = DEFAULT_CONFIG) -> ResumeRecord:
    """Flatten a section collection into a resume record."""
    ordered = order(sections)
    record = _structured_record(ordered, config)

    rebuilt, _ = _build_sections(record, config)
    rebuilt = order(rebuilt)
    if [_shape(s) for s in rebuilt] == [_shape(s) for s in ordered]:
        return record

    by_id = _first_by_id(rebuilt)
    layout: List[RecordLayoutEntry] = []
    for s in ordered:
        source = by_id.get(s.id)
        same_body = source is not None and normalize_body(source.body) == normalize_body(s.body)
        layout.append(RecordLayoutEntry(
            id=s.id,
            kind=s.kind,
            title=s.title,
            parent_ref=s.parent_ref,
            body=None if same_body else s.body,
        ))
    record.section_layout = layout
    logger.debug(f"Record fields do not rebuild {len(ordered)} sections, added section layout")
    return record


# ============================================================================
# record -> sections
# ============================================================================

def _input_key(data: dict, loc) -> Optional[str]:
    """Map a validation error location back to the key used in the input (name or alias)."""
    if loc in data:
        return loc
    for name, field in ResumeRecord.model_fields.items():
        if loc in (name, field.alias):
            for key in (name, field.alias):
                if key in data:
                    return key
    return None


def _validate_by_field(data: dict, anomalies: Optional[List[Anomaly]]) -> Tuple[Optional[ResumeRecord], dict]:
    """
    Validate a record, dropping only what fails: the bad entry of a list
    field, otherwise the whole field. Returns the record and the dropped
    fragments keyed by field.
    """
    data = drop_null_values(data)
    dropped: dict = {}
    for _ in range(MAX_REPAIR_ROUNDS):
        try:
            return ResumeRecord.model_validate(data), dropped
        except ValidationError as e:
            bad_fields: Set[str] = set()
            bad_entries: Dict[str, Set[int]] = {}
            for err in e.errors():
                loc = err["loc"]
                key = _input_key(data, loc[0]) if loc else None
                if key is None:
                    continue
                if len(loc) > 1 and isinstance(loc[1], int) and isinstance(data[key], list):
                    bad_entries.setdefault(key, set()).add(loc[1])
                else:
                    bad_fields.add(key)
            if not bad_fields and not bad_entries:
                break

            for key in bad_fields:
                dropped[key] = data.pop(key)
            for key, indexes in bad_entries.items():
                if key in bad_fields:
                    continue
                values = data[key]
                dropped.setdefault(key, []).extend(v for i, v in enumerate(values) if i in indexes)
                data[key] = [v for i, v in enumerate(values) if i not in indexes]

            fields = ", ".join(sorted(set(bad_fields) | set(bad_entries)))
            logger.warning(f"Resume record failed validation in '{fields}' ({e.error_count()} errors), kept the rest")
            if anomalies is not None:
                anomalies.append(Anomaly(
                    kind=AnomalyKind.UNPARSABLE_FRAGMENT,
                    message=f"Resume record field(s) {fields} failed validation, kept as a separate section",
                ))
    return None, dropped


def _coerce_record(record, anomalies: Optional[List[Anomaly]]) -> Tuple[Optional[ResumeRecord], dict]:
    if isinstance(record, ResumeRecord):
        return record, {}
    data = record
    if isinstance(record, str):
        data = parse_json_content(record)
        if data is None:
            return None, {}
    if not isinstance(data, dict):
        return None, {}
    return _validate_by_field(data, anomalies)


def _employer_marker(company: str, date_range: str) -> str:
    # A one-sided line keeps its '|' so it still reads as the employer line
    company, date_range = company.strip(), date_range.strip()
    if company and date_range:
        return f"{company} | {date_range}"
    if company:
        return f"{company} |"
    return f"| {date_range}"


def _role_body(job: RecordExperience) -> str:
    parts: List[str] = []
    description = [
        f"<p>{escape(collapse_ws(p))}</p>"
        for p in (job.description or "").split("\n\n") if p.strip()
    ]
    bullets = ""
    if job.bullets:
        bullets = "<ul>" + "".join(f"<li>{escape(b)}</li>" for b in job.bullets) + "</ul>"

    if job.company.strip() or job.date_range.strip():
        parts.append(f"<p>{escape(_employer_marker(job.company, job.date_range))}</p>")
        parts.extend(description)
        parts.append(bullets)
    else:
        # No employer line: bullets lead so a short description is not read as one
        parts.append(bullets)
        parts.extend(description)
    return "".join(parts)


def _education_body(entries: List[RecordEducation]) -> str:
    parts: List[str] = []
    for edu in entries:
        parts.append(f"<h3>{escape(edu.degree)}</h3>")
        line = f"{edu.institution} | {edu.year}" if edu.year else edu.institution
        if line:
            parts.append(f"<p>{escape(line)}</p>")
    return "".join(parts)


def _skills_body(skills: Union[Dict[str, List[str]], List[str]]) -> str:
    if isinstance(skills, dict):
        parts: List[str] = []
        for category, values in skills.items():
            parts.append(f"<h3>{escape(category)}</h3>")
            if values:
                parts.append("<ul>" + "".join(f"<li>{escape(v)}</li>" for v in values) + "</ul>")
        return "".join(parts)
    return "<ul>" + "".join(f"<li>{escape(s)}</li>" for s in skills) + "</ul>"


def _certifications_body(entries: List[RecordCertification]) -> str:
    parts: List[str] = []
    for cert in entries:
        tail = f" | {escape(cert.issuer)}"
        if cert.year:
            tail += f" | {escape(cert.year)}"
        parts.append(f"<p><strong>{escape(cert.name)}</strong>{tail}</p>")
    return "".join(parts)


def _build_sections(parsed: ResumeRecord, config: EngineConfig) -> Tuple[List[Section], Set[str]]:
    """
    Sections from the structured fields alone. Also returns the ids of job
    roles whose record entry carried no id.
    """
    ids = IdAllocator()
    sections: List[Section] = []
    fresh_roles: Set[str] = set()
    # Generated role ids never reuse an id the record or its layout already names
    reserved = {job.id for job in parsed.experience if job.id}
    reserved.update(entry.id for entry in parsed.section_layout or [])
    role_ids = IdAllocator(reserved)

    def title(kind: SectionKind) -> str:
        return parsed.section_titles.get(kind.value) or config.title_for(kind)

    h = parsed.header
    if any((h.name, h.email, h.phone, h.location)):
        contact = join_contact(h.location, h.phone, h.email)
        sections.append(Section(
            id=ids.for_section(SectionKind.HEADER),
            title=h.name,
            kind=SectionKind.HEADER,
            body=f"<p>{escape(contact)}</p>" if contact else "",
        ))

    if parsed.summary.strip():
        sections.append(Section(
            id=ids.for_section(SectionKind.SUMMARY),
            title=title(SectionKind.SUMMARY),
            kind=SectionKind.SUMMARY,
            body=text_to_body(parsed.summary),
        ))

    if parsed.experience:
        experience_id = ids.for_section(SectionKind.EXPERIENCE)
        sections.append(Section(
            id=experience_id,
            title=title(SectionKind.EXPERIENCE),
            kind=SectionKind.EXPERIENCE,
        ))
        for job in parsed.experience:
            if job.id:
                job_id = ids.take(job.id)
            else:
                job_id = ids.take(role_ids.for_job_role())
                fresh_roles.add(job_id)
            sections.append(Section(
                id=job_id,
                title=job.title,
                kind=SectionKind.JOB_ROLE,
                body=_role_body(job),
                parent_ref=experience_id,
            ))

    if parsed.education:
        sections.append(Section(
            id=ids.for_section(SectionKind.EDUCATION),
            title=title(SectionKind.EDUCATION),
            kind=SectionKind.EDUCATION,
            body=_education_body(parsed.education),
        ))

    # {} is an empty skills section, [] is no section
    if parsed.skills or isinstance(parsed.skills, dict):
        sections.append(Section(
            id=ids.for_section(SectionKind.SKILLS),
            title=title(SectionKind.SKILLS),
            kind=SectionKind.SKILLS,
            body=_skills_body(parsed.skills),
        ))

    if parsed.certifications:
        sections.append(Section(
            id=ids.for_section(SectionKind.CERTIFICATIONS),
            title=title(SectionKind.CERTIFICATIONS),
            kind=SectionKind.CERTIFICATIONS,
            body=_certifications_body(parsed.certifications),
        ))

    for extra in parsed.additional_sections:
        sections.append(Section(
            id=ids.for_section(extra.kind, extra.title),
            title=extra.title,
            kind=extra.kind,
            body=markdown_to_html(extra.content),
        ))
    return sections, fresh_roles


def _apply_layout(layout: List[RecordLayoutEntry], built: List[Section], fresh_roles: Set[str]) -> List[Section]:
    """
    Arrange structured sections the way the layout lists them. An entry
    without a body takes it from the structured section with the same id, and
    is dropped when that section is gone (removed from the record since).
    Job roles added to the record without an id are appended.
    """
    by_id = _first_by_id(built)
    out: List[Section] = []
    for entry in layout:
        if entry.body is not None:
            body = entry.body
        elif entry.id in by_id:
            body = by_id[entry.id].body
        else:
            logger.debug(f"Layout entry '{entry.id}' has no record content, dropped")
            continue
        out.append(Section(
            id=entry.id,
            title=entry.title,
            kind=entry.kind,
            body=body,
            parent_ref=entry.parent_ref,
        ))

    experience_ids = [s.id for s in out if s.kind == SectionKind.EXPERIENCE]
    for s in built:
        if s.id not in fresh_roles:
            continue
        parent = s.parent_ref if s.parent_ref in experience_ids else next(iter(experience_ids), s.parent_ref)
        out.append(s.model_copy(update={"parent_ref": parent}))
    return out


def from_record(
    record,
    config: EngineConfig = DEFAULT_CONFIG,
    anomalies: Optional[List[Anomaly]] = None,
) -> List[Section]:
    """
    Sections from a resume record (model, dict, or JSON text with or without
    a ```json fence). Input that is not a record degrades to one OTHER
    section holding the raw text. Fields that fail validation are left out
    of the record and kept verbatim in an OTHER section.
    """
    parsed, dropped = _coerce_record(record, anomalies)
    if parsed is None:
        raw = record if isinstance(record, str) else json.dumps(record, default=str)
        logger.warning("Content is not a resume record, kept as a single section")
        if anomalies is not None:
            anomalies.append(Anomaly(kind=AnomalyKind.UNPARSABLE_FRAGMENT, message="Content is not a resume record"))
        if not raw or not raw.strip():
            return []
        return [Section(
            id=IdAllocator().for_section(SectionKind.OTHER, config.title_for(SectionKind.OTHER)),
            title=config.title_for(SectionKind.OTHER),
            kind=SectionKind.OTHER,
            body=f"<p>{escape(raw.strip())}</p>",
        )]

    sections, fresh_roles = _build_sections(parsed, config)
    if parsed.section_layout is not None:
        sections = _apply_layout(parsed.section_layout, sections, fresh_roles)

    if dropped:
        other_title = config.title_for(SectionKind.OTHER)
        sections.append(Section(
            id=IdAllocator(s.id for s in sections).for_section(SectionKind.OTHER, other_title),
            title=other_title,
            kind=SectionKind.OTHER,
            body=f"<p>{escape(json.dumps(dropped, default=str))}</p>",
        ))

    logger.debug(f"Built {len(sections)} sections from resume record")
    return sections
