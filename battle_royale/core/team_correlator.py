"""Resolve extracted team labels to registered roster teams.

Tiered matching, tried in strict priority order per entry (first match wins,
no backtracking):
  Tier 1, exact tag:             "A1" == tag "A1"
  Tier 2, case-insensitive tag:  "a1" ~ tag "A1"
  Tier 3, case-insensitive name: "los pibes" ~ name "Los Pibes"
  Tier 4, substring name:        "Pibes" in "Los Pibes" (either direction)
  Tier 5, placeholder index:     "EQUIPE7" -> 7th roster team (opt-in)

Within a tier, roster order decides. A label that hits Tier 1 for one team is
never considered against another team's Tier 4, whatever the roster order.

Unmatched labels are reported, together with close-but-not-matching roster
names (informational only, never auto-applied).
"""

import re
from dataclasses import dataclass, field
from difflib import SequenceMatcher
from typing import Callable

from .models import ConsolidatedEntry, DuplicateTeamPolicy, RegisteredTeam


_PLACEHOLDER_RE = re.compile(r'^(?:equipe|team|time)\s*0*(\d+)$')

SUGGESTION_RATIO = 0.80


def _key(text: str) -> str:
    """Lowercase, collapse whitespace."""
    return re.sub(r'\s+', ' ', (text or '').strip().lower())


def match_exact_tag(label: str, team: RegisteredTeam) -> bool:
    return bool(team.tag) and label == team.tag


def match_tag_ignore_case(label: str, team: RegisteredTeam) -> bool:
    return bool(team.tag) and _key(label) == _key(team.tag)


def match_name_ignore_case(label: str, team: RegisteredTeam) -> bool:
    return bool(team.name) and _key(label) == _key(team.name)


def match_name_substring(label: str, team: RegisteredTeam) -> bool:
    a, b = _key(label), _key(team.name)
    if not a or not b:
        return False
    return a in b or b in a


MATCHERS: list[tuple[str, Callable[[str, RegisteredTeam], bool]]] = [
    ('exact_tag', match_exact_tag),
    ('tag_ignore_case', match_tag_ignore_case),
    ('name_ignore_case', match_name_ignore_case),
    ('name_substring', match_name_substring),
]


def match_placeholder(label: str, roster: list[RegisteredTeam]) -> RegisteredTeam | None:
    """Map "EQUIPE<n>" / "TEAM<n>" to the n-th roster team (1-based)."""
    m = _PLACEHOLDER_RE.match(_key(label))
    if not m:
        return None
    index = int(m.group(1)) - 1
    if 0 <= index < len(roster):
        return roster[index]
    return None


def find_team(label: str, roster: list[RegisteredTeam],
              placeholder_labels: bool = False) -> tuple[RegisteredTeam | None, str | None]:
    """Return (team, tier name) for the first tier that matches, or (None, None)."""
    for tier, matcher in MATCHERS:
        for team in roster:
            if matcher(label, team):
                return team, tier
    if placeholder_labels:
        team = match_placeholder(label, roster)
        if team is not None:
            return team, 'placeholder'
    return None, None


@dataclass
class CorrelationResult:
    matched: list[tuple[ConsolidatedEntry, RegisteredTeam]] = field(default_factory=list)
    unmatched: list[ConsolidatedEntry] = field(default_factory=list)
    # Only filled under DuplicateTeamPolicy.EXCLUSIVE: team was already taken
    conflicts: list[tuple[ConsolidatedEntry, RegisteredTeam]] = field(default_factory=list)
    tier_counts: dict[str, int] = field(default_factory=dict)

    @property
    def unmatched_labels(self) -> list[str]:
        return [e.team_label for e in self.unmatched]


def correlate_teams(entries: list[ConsolidatedEntry], roster: list[RegisteredTeam],
                    policy: DuplicateTeamPolicy = DuplicateTeamPolicy.TOLERATE,
                    placeholder_labels: bool = False) -> CorrelationResult:
    """Partition consolidated entries into matched (entry, team) pairs and unmatched entries."""
    result = CorrelationResult()
    consumed: set[str] = set()

    for entry in sorted(entries, key=lambda e: e.position):
        # Synthetic labels never stand for a registered team
        if entry.is_fallback:
            result.unmatched.append(entry)
            continue
        team, tier = find_team(entry.team_label, roster, placeholder_labels)
        if team is None:
            result.unmatched.append(entry)
            continue

        if policy == DuplicateTeamPolicy.EXCLUSIVE and team.id in consumed:
            result.conflicts.append((entry, team))
            continue

        consumed.add(team.id)
        result.matched.append((entry, team))
        result.tier_counts[tier] = result.tier_counts.get(tier, 0) + 1

    return result


def suggest_matches(labels: list[str], roster: list[RegisteredTeam]) -> list[tuple[str, str, float]]:
    """Close roster names for labels nothing matched: (label, team name, ratio)."""
    suggestions = []
    for label in labels:
        best_name, best_ratio = None, 0.0
        for team in roster:
            for candidate in (team.name, team.tag):
                if not candidate:
                    continue
                ratio = SequenceMatcher(None, _key(label), _key(candidate)).ratio()
                if ratio > best_ratio:
                    best_name, best_ratio = team.name, ratio
        if best_name and best_ratio > SUGGESTION_RATIO:
            suggestions.append((label, best_name, round(best_ratio, 2)))
    return suggestions
