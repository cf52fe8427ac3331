"""Score correlated entries into result rows."""

from .models import ConsolidatedEntry, RegisteredTeam, ScoredResult
from .scoring import ScoringTable


def clamp_placement(placement: int, max_teams: int) -> int:
    return max(1, min(max_teams, placement))


def score_result(entry: ConsolidatedEntry, team: RegisteredTeam, table: ScoringTable,
                 max_teams: int) -> ScoredResult:
    placement = clamp_placement(entry.position, max_teams)
    kills = max(0, entry.kills)
    placement_points = table.points_for_placement(placement)
    kill_points = table.points_for_kills(kills)
    return ScoredResult(
        team_id=team.id,
        team_name=team.name,
        placement=placement,
        kills=kills,
        placement_points=placement_points,
        kill_points=kill_points,
        total_points=placement_points + kill_points,
        confidence=entry.confidence,
        is_edited=False,
        source=entry.source,
    )


def score_results(matched: list[tuple[ConsolidatedEntry, RegisteredTeam]],
                  table: ScoringTable, max_teams: int) -> list[ScoredResult]:
    return [score_result(entry, team, table, max_teams) for entry, team in matched]
