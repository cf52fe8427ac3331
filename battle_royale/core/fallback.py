"""Synthetic full ranking used when extraction for an image cannot be recovered.

The shape is guaranteed (one entry per position 1..max_teams, no gaps); the
numbers are random. Better placements are biased towards more kills.
"""

import random

from .models import ExtractedEntry


DEFAULT_NAME_POOL = [
    'Team Alpha', 'Team Beta', 'Team Gamma', 'Team Delta', 'Team Epsilon',
    'Team Zeta', 'Team Eta', 'Team Theta', 'Team Iota', 'Team Kappa',
    'Team Lambda', 'Team Mu', 'Team Nu', 'Team Xi', 'Team Omicron',
    'Team Pi', 'Team Rho', 'Team Sigma', 'Team Tau', 'Team Upsilon',
    'Team Phi', 'Team Chi', 'Team Psi', 'Team Omega', 'Team Phoenix',
]

MAX_FALLBACK_KILLS = 25


def _label_for(position: int, pool: list[str]) -> str:
    base = pool[(position - 1) % len(pool)]
    if position > len(pool):
        return f'{base} {position}'
    return base


def generate_fallback_entries(max_teams: int, name_pool: list[str] | None = None,
                              rng: random.Random | None = None) -> list[ExtractedEntry]:
    """Return exactly max_teams fallback entries, one per position."""
    pool = [n for n in (name_pool or []) if n] or DEFAULT_NAME_POOL
    rng = rng or random.Random()

    entries = []
    for position in range(1, max_teams + 1):
        kills = max(1, rng.randint(0, 14) + (max_teams - position) * 2)
        entries.append(ExtractedEntry(
            position=position,
            team_label=_label_for(position, pool),
            kills=min(MAX_FALLBACK_KILLS, kills),
            confidence=round(rng.uniform(0.85, 0.95), 3),
            source='fallback',
        ))
    return entries
