"""Operator correction of a single result row."""

from dataclasses import replace

from .errors import PlacementConflictError, ValidationError
from .models import ScoredResult
from .scoring import ScoringTable


def edit_result(results: list[ScoredResult], index: int, new_placement: int, new_kills: int,
                table: ScoringTable, max_teams: int) -> list[ScoredResult]:
    """Return a new, placement-sorted result list with row ``index`` corrected.

    The placement must be free across the whole set (the edited row itself
    excepted). On any error the input list is left untouched.

    Raises:
        ValidationError: index, placement or kills out of range.
        PlacementConflictError: another row already holds new_placement.
    """
    if not 0 <= index < len(results):
        raise ValidationError(f'No result at index {index}')
    if not 1 <= new_placement <= max_teams:
        raise ValidationError(f'Placement must be between 1 and {max_teams}, got {new_placement}')
    if new_kills < 0:
        raise ValidationError(f'Kills cannot be negative, got {new_kills}')

    for i, other in enumerate(results):
        if i != index and other.placement == new_placement:
            raise PlacementConflictError(new_placement, other.team_name)

    placement_points = table.points_for_placement(new_placement)
    kill_points = table.points_for_kills(new_kills)
    edited = replace(
        results[index],
        placement=new_placement,
        kills=new_kills,
        placement_points=placement_points,
        kill_points=kill_points,
        total_points=placement_points + kill_points,
        is_edited=True,
    )

    updated = list(results)
    updated[index] = edited
    updated.sort(key=lambda r: r.placement)
    return updated
