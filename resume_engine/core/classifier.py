import re
import logging
from typing import List, Optional

from resume_engine.core.config import DEFAULT_CONFIG, EngineConfig
from resume_engine.core.schemas import Anomaly, AnomalyKind, SectionKind

logger = logging.getLogger(__name__)

_CANONICAL_NAMES = {kind.value.lower().replace("_", " "): kind for kind in SectionKind}


def normalize_heading(text: Optional[str]) -> str:
    """Trim, case-fold and collapse whitespace. Markdown/bullet decoration is dropped."""
    if not text:
        return ""
    t = re.sub(r"^[#\s•●*\->]+", "", str(text))
    t = t.strip().strip(":").strip()
    return re.sub(r"\s+", " ", t).casefold()


def classify(
    heading: Optional[str],
    config: EngineConfig = DEFAULT_CONFIG,
    anomalies: Optional[List[Anomaly]] = None,
) -> SectionKind:
    """
    Map arbitrary heading text to a canonical section kind.

    Checks exact kind names first ("experience", "job role", "job_role"),
    then the synonym table in order. Anything unmatched is OTHER.
    """
    key = normalize_heading(heading)
    if not key:
        return SectionKind.OTHER

    exact = _CANONICAL_NAMES.get(key.replace("_", " "))
    if exact is not None:
        return exact

    for kind, synonyms in config.synonyms:
        if any(s in key for s in synonyms):
            return kind

    logger.debug(f"No section kind for heading '{heading}', using OTHER")
    if anomalies is not None:
        anomalies.append(Anomaly(
            kind=AnomalyKind.CLASSIFICATION_AMBIGUOUS,
            message=f"Heading '{str(heading).strip()}' matched no known section; classified as OTHER",
        ))
    return SectionKind.OTHER


def is_bullet_like_heading(heading: Optional[str], config: EngineConfig = DEFAULT_CONFIG) -> bool:
    """
    True when a sub-heading reads like an achievement line rather than a job title.

    Examples:
      'Directed R&D:'            -> True  (trailing colon)
      'Led migration to AWS'     -> True  (responsibility verb)
      'Engineering Manager'      -> False
    """
    raw = (heading or "").strip()
    if not raw:
        return False
    if raw.endswith(":"):
        return True
    words = set(re.findall(r"[a-z]+", raw.casefold()))
    return any(k in words for k in config.responsibility_keywords)
