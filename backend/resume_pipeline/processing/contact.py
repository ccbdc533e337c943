"""
Heuristic contact extraction from raw resume text
"""
import re
from typing import Dict, Optional

EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
PHONE_PATTERNS = [
    re.compile(r"\(\d{3}\)\s*\d{3}[-.]?\d{4}"),
    re.compile(r"\+?\d{1,2}[\s.-]\d{3}[\s.-]\d{3}[\s.-]\d{4}"),
    re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b"),
]
LINKEDIN_PATTERN = re.compile(r"linkedin\.com/in/[\w-]+", re.IGNORECASE)
GITHUB_PATTERN = re.compile(r"github\.com/[\w-]+", re.IGNORECASE)


def _first(pattern: re.Pattern, text: str) -> Optional[str]:
    match = pattern.search(text)
    return match.group(0) if match else None


def guess_name(text: str) -> Optional[str]:
    """First non-empty line that looks like a person's name"""
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        words = line.split()
        if (
            2 <= len(words) <= 4
            and len(line) < 50
            and "@" not in line
            and not any(ch.isdigit() for ch in line)
        ):
            return line
        # Only the opening line counts
        return None
    return None


def extract_contact_info(text: str) -> Dict[str, Optional[str]]:
    """Low-confidence contact fields, later refined by AI enrichment"""
    text = text or ""
    phone = None
    for pattern in PHONE_PATTERNS:
        phone = _first(pattern, text)
        if phone:
            break

    return {
        "name": guess_name(text),
        "email": _first(EMAIL_PATTERN, text),
        "phone": phone,
        "linkedin": _first(LINKEDIN_PATTERN, text),
        "github": _first(GITHUB_PATTERN, text),
        "source": "heuristic",
    }
