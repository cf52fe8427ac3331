"""Data models for the Battle Royale ranking engine."""

import os
from dataclasses import dataclass
from enum import Enum


class DuplicateTeamPolicy(str, Enum):
    """What correlation does when a second position resolves to a team already used."""
    TOLERATE = 'tolerate'     # keep both rows, later stages only drop exact (team, placement) repeats
    EXCLUSIVE = 'exclusive'   # first (lowest) position keeps the team, later ones become conflicts


@dataclass
class MatchConfig:
    """Run-scoped configuration for processing one match."""
    max_teams: int = 25                 # 25, 33, 50 or 100 depending on competition format
    inter_image_delay: float = 2.0      # seconds between two real extraction calls
    rate_limit_delay: float = 35.0      # wait used when a 429 carries no retry hint
    duplicate_team_policy: DuplicateTeamPolicy = DuplicateTeamPolicy.TOLERATE
    placeholder_labels: bool = False    # map "EQUIPE7"-style labels to the 7th roster team


@dataclass(frozen=True)
class RegisteredTeam:
    """Roster entry. Read-only to the engine."""
    id: str
    name: str
    tag: str = ''


@dataclass(frozen=True)
class ExtractedEntry:
    """One (position, label, kills) guess read from a screenshot."""
    position: int
    team_label: str
    kills: int
    confidence: float = 0.9
    source: str = 'extraction'   # 'extraction' or 'fallback'

    @property
    def is_fallback(self) -> bool:
        return self.source == 'fallback'


# After cross-image merge an entry is the single winner for its position.
ConsolidatedEntry = ExtractedEntry


@dataclass
class ScoredResult:
    """A team's scored result for one match.

    total_points is always placement_points + kill_points.
    """
    team_id: str
    team_name: str
    placement: int
    kills: int
    placement_points: int
    kill_points: int
    total_points: int
    confidence: float
    is_edited: bool = False
    source: str = 'extraction'   # 'extraction', 'fallback' or 'manual'


@dataclass
class ManualResult(ScoredResult):
    """Operator-entered result row."""
    confidence: float = 1.0
    source: str = 'manual'


@dataclass(frozen=True)
class ImageSource:
    """One uploaded ranking screenshot.

    Identity for caching is (name, size, modified); the bytes are read lazily
    from ``path`` unless ``data`` was given directly.
    """
    name: str
    size: int
    modified: float
    mime_type: str = 'image/png'
    path: str | None = None
    data: bytes | None = None

    @property
    def cache_key(self) -> tuple:
        return (self.name, self.size, self.modified)

    def read_bytes(self) -> bytes:
        if self.data is not None:
            return self.data
        with open(self.path, 'rb') as f:
            return f.read()

    @classmethod
    def from_path(cls, path: str) -> 'ImageSource':
        stat = os.stat(path)
        ext = os.path.splitext(path)[1].lower()
        return cls(
            name=os.path.basename(path),
            size=stat.st_size,
            modified=stat.st_mtime,
            mime_type=MIME_TYPES.get(ext, 'image/png'),
            path=path,
        )


MIME_TYPES = {
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.webp': 'image/webp',
    '.heic': 'image/heic',
}
