"""Placement and kill scoring.

Default ladder (generated for 1..max_teams):
    1st=25, 2nd=20, 3rd=18, 4th=16, 5th=14, 6th=12, 7th=10, 8th=8, 9th=6, 10th=4,
    11th-15th=2, 16th and below=1

Custom tables come from the scoring configuration and may use either the
external shape {"placementPoints": {"1": 25, ...}, "killPoints": 1} or the
stored championship shape {"posicao": {"1": 25, ...}, "kill": 1}.
Lookups that fall outside the table score 0; they never raise.
"""

import json


_LADDER = [25, 20, 18, 16, 14, 12, 10, 8, 6, 4]


def _default_points(placement: int) -> int:
    if placement <= len(_LADDER):
        return _LADDER[placement - 1]
    if placement <= 15:
        return 2
    return 1


def _to_int(value, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class ScoringTable:
    """Immutable placement->points table plus a per-kill multiplier."""

    def __init__(self, placement_points: dict[int, int], kill_points: int = 1):
        self._placement_points = dict(placement_points)
        self._kill_points = kill_points

    @classmethod
    def default(cls, max_teams: int, kill_points: int = 1) -> 'ScoringTable':
        points = {p: _default_points(p) for p in range(1, max_teams + 1)}
        return cls(points, kill_points)

    @classmethod
    def from_config(cls, config: dict | None, max_teams: int) -> 'ScoringTable':
        """Build a table from a scoring config dict, or the default ladder if absent."""
        if not config:
            return cls.default(max_teams)

        raw_points = config.get('placementPoints')
        if raw_points is None:
            raw_points = config.get('posicao')
        raw_kill = config.get('killPoints', config.get('kill', 1))

        if not raw_points:
            return cls.default(max_teams, kill_points=_to_int(raw_kill, 1))

        points = {}
        for placement, value in raw_points.items():
            p = _to_int(placement, default=-1)
            if p < 1:
                continue
            points[p] = _to_int(value)
        return cls(points, _to_int(raw_kill, 1))

    @property
    def kill_points(self) -> int:
        return self._kill_points

    def points_for_placement(self, placement: int) -> int:
        return self._placement_points.get(placement, 0)

    def points_for_kills(self, kills: int) -> int:
        return kills * self._kill_points

    def as_dict(self) -> dict:
        return {
            'placementPoints': {str(p): v for p, v in sorted(self._placement_points.items())},
            'killPoints': self._kill_points,
        }


def load_scoring_table(path: str | None, max_teams: int) -> ScoringTable:
    """Load a custom scoring table from JSON, falling back to the default ladder."""
    if not path:
        return ScoringTable.default(max_teams)
    try:
        with open(path, 'r') as f:
            config = json.load(f)
    except FileNotFoundError:
        print(f"Warning: Scoring file not found: {path} (using default ladder)")
        return ScoringTable.default(max_teams)
    except json.JSONDecodeError as e:
        print(f"Warning: Invalid JSON in scoring file: {e} (using default ladder)")
        return ScoringTable.default(max_teams)
    return ScoringTable.from_config(config, max_teams)
