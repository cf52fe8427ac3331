"""Operator-entered results and their merge with the automatic set.

Automatic rows always take precedence: a manual row is accepted only when
neither its placement nor its team is already held by an accepted row.
Automatic rows pass the same check in placement order, so a team correlated
at several placements keeps only its best one. Rejected rows come back with
the reason; nothing is dropped silently.
"""

from dataclasses import dataclass, field

from .errors import ValidationError
from .models import ManualResult, RegisteredTeam, ScoredResult
from .scoring import ScoringTable


@dataclass
class MergeResult:
    results: list[ScoredResult]
    rejected: list[tuple[ScoredResult, str]] = field(default_factory=list)


def build_manual_result(team: RegisteredTeam, placement: int, kills: int,
                        table: ScoringTable, max_teams: int) -> ManualResult:
    """Validate operator input and score it. Raises ValidationError on bad ranges."""
    if not 1 <= placement <= max_teams:
        raise ValidationError(f'Placement must be between 1 and {max_teams}, got {placement}')
    if kills < 0:
        raise ValidationError(f'Kills cannot be negative, got {kills}')

    placement_points = table.points_for_placement(placement)
    kill_points = table.points_for_kills(kills)
    return ManualResult(
        team_id=team.id,
        team_name=team.name,
        placement=placement,
        kills=kills,
        placement_points=placement_points,
        kill_points=kill_points,
        total_points=placement_points + kill_points,
    )


def check_manual_result(row: ScoredResult, accepted: list[ScoredResult]) -> None:
    """Raise ValidationError if row collides on placement or team with an accepted row."""
    for other in accepted:
        if other.team_id == row.team_id:
            raise ValidationError(
                f'{row.team_name} already has a result (placement {other.placement})')
        if other.placement == row.placement:
            raise ValidationError(
                f'Placement {row.placement} is already held by {other.team_name}')


def merge_manual_results(automatic: list[ScoredResult],
                         manual: list[ScoredResult]) -> MergeResult:
    accepted = []
    rejected = []
    for row in sorted(automatic, key=lambda r: r.placement) + list(manual):
        try:
            check_manual_result(row, accepted)
        except ValidationError as e:
            rejected.append((row, str(e)))
            continue
        accepted.append(row)

    accepted.sort(key=lambda r: r.placement)
    return MergeResult(results=accepted, rejected=rejected)


def remove_manual_result(manual: list[ScoredResult], team_id: str) -> list[ScoredResult]:
    return [r for r in manual if r.team_id != team_id]
