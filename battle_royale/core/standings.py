"""Championship standings aggregated over saved matches.

Ordering: total points (desc), then total kills (desc), then best placement
(asc), then team name.
"""

from dataclasses import dataclass

from .models import ScoredResult


@dataclass
class TeamStanding:
    team_id: str
    team_name: str
    total_points: int = 0
    total_kills: int = 0
    best_placement: int | None = None
    matches_played: int = 0

    @property
    def average_points(self) -> float:
        return self.total_points / self.matches_played if self.matches_played else 0.0


def build_standings(match_results: dict[str, list[ScoredResult]]) -> list[TeamStanding]:
    by_team: dict[str, TeamStanding] = {}
    for results in match_results.values():
        for r in results:
            s = by_team.get(r.team_id)
            if s is None:
                s = TeamStanding(team_id=r.team_id, team_name=r.team_name)
                by_team[r.team_id] = s
            s.total_points += r.total_points
            s.total_kills += r.kills
            s.matches_played += 1
            if s.best_placement is None or r.placement < s.best_placement:
                s.best_placement = r.placement

    return sorted(by_team.values(),
                  key=lambda s: (-s.total_points, -s.total_kills, s.best_placement, s.team_name))


def print_standings(standings: list[TeamStanding]) -> None:
    print(f"\nStandings ({len(standings)} teams):")
    print(f"{'#':>3}  {'Team':<30} {'Pts':>5} {'Kills':>5} {'Best':>4} {'MP':>3}")
    for i, s in enumerate(standings, start=1):
        print(f"{i:>3}  {s.team_name[:30]:<30} {s.total_points:>5} {s.total_kills:>5} "
              f"{s.best_placement:>4} {s.matches_played:>3}")
