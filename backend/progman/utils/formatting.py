from __future__ import annotations
import unicodedata
from datetime import date

from .dates import parse_iso

# ------- Display labels -------

def md(value: date | str | None) -> str:
    """Short 'M/D' label used in the schedule grid ('' if invalid)."""
    d = parse_iso(value)
    if not d:
        return ""
    return f"{d.month}/{d.day}"

def ymd(value: date | str | None) -> str:
    """'YYYY/M/D' label used on the milestone board ('' if invalid)."""
    d = parse_iso(value)
    if not d:
        return ""
    return f"{d.year}/{d.month}/{d.day}"

def delay_label(delay_days: int | None) -> str | None:
    """
    'N days late' / 'N days early'; None when on time or unknown.
    An exact match shows no text, only neutral styling.
    """
    if not delay_days:
        return None
    n = abs(delay_days)
    unit = "day" if n == 1 else "days"
    return f"{n} {unit} late" if delay_days > 0 else f"{n} {unit} early"

# ------- Progress helpers -------

def clamp_progress(value) -> int:
    """Coerce to an integer percentage in [0, 100]."""
    try:
        v = round(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, min(100, int(v)))

def round_to_step(value, step: int = 5) -> int:
    """Round a percentage to the nearest `step` (progress entry uses 5)."""
    v = clamp_progress(value)
    return min(100, int(v / step + 0.5) * step)

# ------- Section names -------

def normalize_section_name(name: str | None) -> str:
    """NFKC-normalize and trim a section/category label."""
    if not name:
        return ""
    return unicodedata.normalize("NFKC", name).strip()
