"""Integrity check run on a final result set before it is saved."""

from .models import ScoredResult


def validate_final_results(results: list[ScoredResult]) -> list[str]:
    """Return a list of human-readable problems (empty when the set is clean)."""
    errors = []

    placements = [r.placement for r in results]
    dupes = sorted({p for p in placements if placements.count(p) > 1})
    if dupes:
        errors.append(f"Duplicate placements: {', '.join(str(p) for p in dupes)}")

    for expected, actual in enumerate(sorted(set(placements)), start=1):
        if actual != expected:
            errors.append('Placements are not sequential from 1')
            break

    team_ids = [r.team_id for r in results]
    if len(team_ids) != len(set(team_ids)):
        errors.append('Duplicate teams')

    for r in results:
        if r.kills < 0 or r.placement < 1 or r.total_points < 0:
            errors.append(f'Invalid values for team {r.team_name}')
        elif r.total_points != r.placement_points + r.kill_points:
            errors.append(f'Points do not add up for team {r.team_name}')

    return errors
