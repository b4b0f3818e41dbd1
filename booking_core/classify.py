from __future__ import annotations

from typing import Dict, List, Optional

from booking_core.constants import (
    COMMENT_THEMES,
    CORPORATE,
    GROUP_SALES,
    LOCAL_CATERING,
    LOST_REASON_THEMES,
    SOCIAL,
    SOCIAL_SEGMENTS,
    UNGRADED,
)


def segment_category(market_segment: Optional[str]) -> str:
    s = (market_segment or "").lower().strip()
    if s in SOCIAL_SEGMENTS:
        return SOCIAL
    return CORPORATE


def booking_category(booking_type: Optional[str]) -> str:
    t = (booking_type or "").lower().strip()
    if "event" in t:
        return LOCAL_CATERING
    return GROUP_SALES


def grade_label(grade: int) -> str:
    return UNGRADED if grade == 0 else f"Grade {grade}"


def _first_theme(text: Optional[str], table: Dict[str, List[str]]) -> Optional[str]:
    lowered = (text or "").lower()
    for theme, keywords in table.items():
        if any(kw in lowered for kw in keywords):
            return theme
    return None


def lost_reason_theme(reason: str) -> str:
    """Headline grouping for the lost table; unmatched reasons keep their own text."""
    theme = _first_theme(reason, LOST_REASON_THEMES)
    return theme if theme is not None else reason


def comment_theme(comment: Optional[str]) -> Optional[str]:
    """Fine-grained theme for free-text comments, or None when no keyword matches."""
    return _first_theme(comment, COMMENT_THEMES)
