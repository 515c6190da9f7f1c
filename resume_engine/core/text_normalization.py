"""
Text-level helpers shared by the tokenizer, reconciler and record codec.

Everything here works on plain strings (already stripped of markup):
- contact detection (email / phone / links) for header lines
- employer + date-range lines under a job role ("Acme Co | 2020 - 2023")
- slugs for deterministic section ids
"""

import re
from typing import Dict, List, Optional, Tuple


# ============================================================================
# Patterns
# ============================================================================

EMAIL_RE = re.compile(r"\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b", re.IGNORECASE)
PHONE_RE = re.compile(r"(?<![\w@])\+?\(?\d[\d\s().-]{5,}\d(?![\w@])")
URL_RE = re.compile(r"\b(?:https?://|www\.)[^\s|)>\]]+|\b(?:linkedin|github)\.com/[^\s|)>\]]+", re.IGNORECASE)

_MONTH = r"(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Sept|Oct|Nov|Dec)[a-z]*\.?"
_DATE = rf"(?:{_MONTH}\s+\d{{4}}|\d{{1,2}}/\d{{2,4}}|\d{{4}})"

# Examples: "2020-2023", "January 2024 – Present", "01/2020 to 12/2021"
DATE_RANGE_RE = re.compile(rf"{_DATE}\s*(?:-|–|—|to)\s*(?:Present|Current|Now|{_DATE})", re.IGNORECASE)
SINGLE_DATE_RE = re.compile(rf"^(?:{_DATE}|Present|Current)$", re.IGNORECASE)
YEAR_RANGE_RE = re.compile(r"^\d{4}\s*[-–—]\s*\d{4}$")
YEAR_RE = re.compile(r"\b(?:19|20)\d{2}\b")

# Bullet glyphs that start a line in pasted or extracted text
BULLET_RE = re.compile(r"^\s*(?:[•●▪◦‣∙·]|[-*+](?=\s))\s*")

CONTACT_SEPARATORS_RE = re.compile(r"\s*(?:\||•|·|\n)\s*")


def collapse_ws(text: Optional[str]) -> str:
    return " ".join((text or "").split())


def slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (text or "").lower())
    return slug.strip("-")


def normalize_colon_title(title: str) -> str:
    """'Directed R&D:' and 'Directed R&D' both become 'Directed R&D'."""
    return collapse_ws(title).rstrip(":").rstrip()


# ============================================================================
# Contact info
# ============================================================================

def find_phone(text: str) -> Optional[str]:
    """
    First phone-looking token in text, ignoring year ranges.

    Examples:
      'jane@x.com | 555-1111'  -> '555-1111'
      'Acme | 2020-2023'       -> None
    """
    for m in PHONE_RE.finditer(text or ""):
        candidate = m.group(0).strip()
        digits = re.sub(r"\D", "", candidate)
        if not 7 <= len(digits) <= 15:
            continue
        if YEAR_RANGE_RE.match(candidate) or DATE_RANGE_RE.fullmatch(candidate):
            continue
        return candidate
    return None


def find_email(text: str) -> Optional[str]:
    m = EMAIL_RE.search(text or "")
    return m.group(0) if m else None


def looks_like_contact(text: str) -> bool:
    """Contact lines carry an email, a phone number or a profile link."""
    t = collapse_ws(text)
    if not t:
        return False
    return bool(find_email(t) or find_phone(t) or URL_RE.search(t))


def split_contact(text: str) -> Dict[str, str]:
    """
    Split a header contact line into email/phone/location.

    Parts are separated by '|', bullets or newlines; position does not matter.
    Links are skipped. The first remaining part is the location.
    """
    out = {"email": "", "phone": "", "location": ""}
    for part in CONTACT_SEPARATORS_RE.split(text or ""):
        part = part.strip()
        if not part:
            continue
        email = find_email(part)
        if email and not out["email"]:
            out["email"] = email
            continue
        phone = find_phone(part)
        if phone and not out["phone"]:
            out["phone"] = phone
            continue
        if URL_RE.search(part):
            continue
        if not out["location"]:
            out["location"] = part
    return out


def join_contact(location: str, phone: str, email: str) -> str:
    return " | ".join(p.strip() for p in (location, phone, email) if p and p.strip())


# ============================================================================
# Employer / date lines
# ============================================================================

def extract_date_range(text: str) -> Optional[str]:
    m = DATE_RANGE_RE.search(text or "")
    return m.group(0).strip() if m else None


def looks_like_employer_line(text: str) -> bool:
    t = collapse_ws(text)
    if not t or len(t) > 160:
        return False
    return "|" in t or extract_date_range(t) is not None


def split_employer_line(text: str) -> Tuple[str, str]:
    """
    Split a job role's employer/date line into (employer, date_range).

    Examples:
      'Acme Co | 2020-2023'               -> ('Acme Co', '2020-2023')
      'Acme Co, Austin TX | Jan 2020 - Present' -> ('Acme Co, Austin TX', 'Jan 2020 - Present')
      'Acme Co (2019 - 2021)'             -> ('Acme Co', '2019 - 2021')
      'Acme Co'                           -> ('Acme Co', '')
      'Acme Co |'                         -> ('Acme Co', '')
      '| Summer 2019'                     -> ('', 'Summer 2019')
    """
    t = collapse_ws(text)
    if not t:
        return "", ""

    if "|" in t:
        raw = [p.strip() for p in t.split("|")]
        parts = [p for p in raw if p]
        dates = [p for p in parts if DATE_RANGE_RE.search(p) or SINGLE_DATE_RE.match(p)]
        rest = [p for p in parts if p not in dates]
        if dates:
            return (rest[0] if rest else ""), dates[0]
        if len(parts) >= 2:
            return parts[0], parts[-1]
        # One-sided line: the empty side tells which half is missing
        if len(raw) == 2:
            return raw[0], raw[1]
        return (parts[0] if parts else ""), ""

    date_range = extract_date_range(t)
    if date_range:
        employer = t.replace(date_range, " ")
        employer = re.sub(r"\(\s*\)", " ", employer)
        employer = collapse_ws(employer).strip(" ,;:-–—|()")
        return employer, date_range

    if SINGLE_DATE_RE.match(t):
        return "", t
    return t, ""


# ============================================================================
# Plain text lines
# ============================================================================

def strip_bullet(text: str) -> str:
    return BULLET_RE.sub("", text or "", count=1).strip()


def is_bullet_line(text: str) -> bool:
    return bool(BULLET_RE.match(text or ""))


def split_csv(text: str) -> List[str]:
    return [p.strip() for p in re.split(r"\s*[,;]\s*", text or "") if p.strip()]
