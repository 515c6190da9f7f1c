"""
Engine configuration.

Keyword tables and heuristic thresholds live here as an immutable model that is
passed explicitly into every stage, so classification and reconciliation stay
pure functions of their inputs.
"""

from typing import Dict, Tuple

from pydantic import BaseModel, ConfigDict

from resume_engine.core.schemas import SectionKind


# Order matters: the first kind whose synonym appears in the heading wins.
DEFAULT_SYNONYMS: Tuple[Tuple[SectionKind, Tuple[str, ...]], ...] = (
    (SectionKind.SUMMARY, ("summary", "profile", "objective", "about me", "career summary")),
    (SectionKind.EXPERIENCE, ("experience", "employment", "work history", "career history")),
    (SectionKind.EDUCATION, ("education", "academic", "degree")),
    (SectionKind.SKILLS, ("skill", "competenc", "expertise", "proficienc")),
    (SectionKind.CERTIFICATIONS, ("certif", "license", "licence", "credential")),
    (SectionKind.PROJECTS, ("project", "portfolio")),
    (SectionKind.HEADER, ("contact information", "contact details", "personal information")),
)

# Past-tense verbs that open achievement bullets; matched as whole words.
DEFAULT_RESPONSIBILITY_KEYWORDS: Tuple[str, ...] = (
    "led", "managed", "directed", "established", "secured", "optimized",
    "implemented", "designed", "created", "built", "spearheaded", "oversaw",
    "mentored", "launched", "drove", "developed", "delivered", "coordinated",
)

# Default display titles for sections the engine synthesizes
DEFAULT_TITLES: Dict[SectionKind, str] = {
    SectionKind.HEADER: "Header",
    SectionKind.SUMMARY: "Professional Summary",
    SectionKind.EXPERIENCE: "Professional Experience",
    SectionKind.EDUCATION: "Education",
    SectionKind.SKILLS: "Skills",
    SectionKind.CERTIFICATIONS: "Certifications",
    SectionKind.PROJECTS: "Projects",
    SectionKind.OTHER: "Additional Information",
}


class EngineConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    synonyms: Tuple[Tuple[SectionKind, Tuple[str, ...]], ...] = DEFAULT_SYNONYMS
    responsibility_keywords: Tuple[str, ...] = DEFAULT_RESPONSIBILITY_KEYWORDS
    # Prose longer than this (and not contact info) under the title becomes an implicit summary.
    summary_min_chars: int = 100
    # Plain-text lines longer than this are never promoted to headings.
    heading_max_chars: int = 60

    def title_for(self, kind: SectionKind) -> str:
        return DEFAULT_TITLES.get(kind, kind.value.title())


DEFAULT_CONFIG = EngineConfig()
