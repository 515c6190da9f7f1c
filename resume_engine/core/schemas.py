from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


ParseQuality = Literal["high", "medium", "low"]


class SectionKind(str, Enum):
    HEADER = "HEADER"
    SUMMARY = "SUMMARY"
    EXPERIENCE = "EXPERIENCE"
    JOB_ROLE = "JOB_ROLE"
    EDUCATION = "EDUCATION"
    SKILLS = "SKILLS"
    CERTIFICATIONS = "CERTIFICATIONS"
    PROJECTS = "PROJECTS"
    OTHER = "OTHER"


class AnomalyKind(str, Enum):
    CLASSIFICATION_AMBIGUOUS = "CLASSIFICATION_AMBIGUOUS"
    STRUCTURAL_ANOMALY = "STRUCTURAL_ANOMALY"
    UNPARSABLE_FRAGMENT = "UNPARSABLE_FRAGMENT"


class Section(BaseModel):
    """One typed fragment of a resume. Collections are flat lists; job roles point at their experience by id."""
    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    kind: SectionKind = SectionKind.OTHER
    body: str = Field(default="", description="HTML fragment (headings, paragraphs, lists, emphasis)")
    parent_ref: Optional[str] = Field(default=None, description="Id of the owning EXPERIENCE section (JOB_ROLE only)")


@dataclass(frozen=True)
class Block:
    """A heading-delimited chunk of a document.

    level 0 is the leading title, 1/2 are section headings, 3 is a sub-heading.
    """
    level: int
    heading: str
    content: str
    implicit: bool = False


class Anomaly(BaseModel):
    kind: AnomalyKind
    message: str
    section_id: Optional[str] = None


# ============================================================================
# Resume record (storage wire format)
# ============================================================================

def drop_null_values(data: Any) -> Any:
    """A null field or list entry means 'absent': the field keeps its default."""
    if not isinstance(data, dict):
        return data
    cleaned = {}
    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, list):
            value = [v for v in value if v is not None]
        cleaned[key] = value
    return cleaned


class _RecordModel(BaseModel):
    # Stored records come from generative output: years arrive as numbers,
    # missing values as null.
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        return drop_null_values(data)


class RecordHeader(_RecordModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    location: str = ""


class RecordExperience(_RecordModel):
    id: Optional[str] = None
    title: str = ""
    company: str = ""
    date_range: str = Field(default="", alias="dateRange")
    description: Optional[str] = None
    bullets: List[str] = Field(default_factory=list)


class RecordEducation(_RecordModel):
    degree: str = ""
    institution: str = ""
    year: str = ""


class RecordCertification(_RecordModel):
    name: str = ""
    issuer: str = ""
    year: str = ""


class RecordSection(_RecordModel):
    """PROJECTS/OTHER sections carried through storage as markdown text."""
    title: str = ""
    kind: SectionKind = SectionKind.OTHER
    content: str = ""


class RecordLayoutEntry(_RecordModel):
    """
    One section of a collection the structured fields cannot reproduce alone
    (intro text under an experience heading, a second experience section,
    styling). body is omitted when the structured fields rebuild it.
    """
    id: str
    kind: SectionKind = SectionKind.OTHER
    title: str = ""
    parent_ref: Optional[str] = Field(default=None, alias="parentRef")
    body: Optional[str] = None


class ResumeRecord(_RecordModel):
    header: RecordHeader = Field(default_factory=RecordHeader)
    summary: str = ""
    experience: List[RecordExperience] = Field(default_factory=list)
    education: List[RecordEducation] = Field(default_factory=list)
    skills: Union[Dict[str, List[str]], List[str]] = Field(default_factory=list)
    certifications: List[RecordCertification] = Field(default_factory=list)
    section_titles: Dict[str, str] = Field(default_factory=dict, alias="sectionTitles")
    additional_sections: List[RecordSection] = Field(default_factory=list, alias="additionalSections")
    section_layout: Optional[List[RecordLayoutEntry]] = Field(default=None, alias="sectionLayout")

    @field_validator("skills", mode="before")
    @classmethod
    def drop_null_skills(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {
                str(k): [i for i in v if i is not None] if isinstance(v, list) else ([] if v is None else v)
                for k, v in value.items()
            }
        return value

    @field_validator("section_titles", mode="before")
    @classmethod
    def drop_null_titles(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {k: v for k, v in value.items() if v is not None}
        return value

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ============================================================================
# Service payloads
# ============================================================================

SourceFormat = Literal["auto", "markdown", "html", "record", "text"]
RenderFormat = Literal["markdown", "html", "record"]


class ParseTextRequest(BaseModel):
    content: str
    format: SourceFormat = "auto"


class RenderRequest(BaseModel):
    sections: List[Section]
    format: RenderFormat = "markdown"


class RenderResponse(BaseModel):
    format: RenderFormat
    content: Optional[str] = None
    record: Optional[dict] = None


class SectionsResponse(BaseModel):
    sections: List[Section]
    anomalies: List[Anomaly] = Field(default_factory=list)
    parse_quality: ParseQuality
    warnings: List[str] = Field(default_factory=list)
