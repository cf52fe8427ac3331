"""Turn the free-form text returned by the vision model into ranking entries.

Expected payload, possibly wrapped in ```json fences or surrounded by prose:

    {"teams": [{"position": 1, "teamName": "EQUIPE1", "kills": 8}, ...]}

Rows are read one at a time: loose numbers ("3 kills") are coerced, and a row
without a usable position is skipped without losing the rest of the image.
ExtractionParseError is raised only when the payload itself is unreadable or
no row survives.
"""

import json
import re
from typing import Any

from pydantic import BaseModel, ValidationError as PydanticValidationError, field_validator

from .errors import ExtractionParseError
from .models import ExtractedEntry


DEFAULT_CONFIDENCE = 0.9
UNKNOWN_LABEL = 'UNKNOWN_TEAM'

_FENCE_RE = re.compile(r'```(?:json)?', re.IGNORECASE)
_LEADING_INT_RE = re.compile(r'^\s*(-?\d+)')


def _leading_int(value) -> int | None:
    """parseInt-style read: 7, 7.0, "7", "7 kills" -> 7; anything else -> None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    m = _LEADING_INT_RE.match(str(value))
    return int(m.group(1)) if m else None


class RawTeam(BaseModel):
    position: int
    teamName: str = UNKNOWN_LABEL
    kills: int = 0
    confidence: float | None = None

    @field_validator('position', mode='before')
    @classmethod
    def _position(cls, v):
        return _leading_int(v)

    @field_validator('teamName', mode='before')
    @classmethod
    def _label(cls, v):
        if v is None or not str(v).strip():
            return UNKNOWN_LABEL
        return str(v).strip()

    @field_validator('kills', mode='before')
    @classmethod
    def _kills(cls, v):
        kills = _leading_int(v)
        return 0 if kills is None else kills

    @field_validator('confidence', mode='before')
    @classmethod
    def _confidence(cls, v):
        try:
            return None if v is None else float(v)
        except (TypeError, ValueError):
            return None


class RawRanking(BaseModel):
    teams: list[Any]


def _strip_fences(text: str) -> str:
    cleaned = _FENCE_RE.sub('', text).strip()
    # Tolerate prose before/after the object
    start = cleaned.find('{')
    end = cleaned.rfind('}')
    if start == -1 or end < start:
        return cleaned
    return cleaned[start:end + 1]


def parse_extraction_response(text: str | None) -> list[ExtractedEntry]:
    """Parse a model response into ExtractedEntry objects (unordered, unvalidated positions)."""
    if not text or not text.strip():
        raise ExtractionParseError('Empty extraction response')

    try:
        payload = json.loads(_strip_fences(text))
    except json.JSONDecodeError as e:
        raise ExtractionParseError(f'Extraction response is not valid JSON: {e}') from e

    try:
        ranking = RawRanking.model_validate(payload)
    except PydanticValidationError as e:
        raise ExtractionParseError(f'Unexpected extraction payload: {e.error_count()} invalid field(s)') from e

    entries = []
    skipped = 0
    for row in ranking.teams:
        try:
            raw = RawTeam.model_validate(row)
        except PydanticValidationError:
            skipped += 1
            continue
        confidence = DEFAULT_CONFIDENCE if raw.confidence is None else min(1.0, max(0.0, raw.confidence))
        entries.append(ExtractedEntry(
            position=raw.position,
            team_label=raw.teamName,
            kills=max(0, raw.kills),
            confidence=confidence,
        ))

    if not entries:
        raise ExtractionParseError('No teams found in the extraction response')
    if skipped:
        print(f"  Warning: skipped {skipped} unreadable row(s) in the extraction response")
    return entries
