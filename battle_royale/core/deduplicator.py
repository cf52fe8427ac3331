"""Drop result rows that repeat a (team, placement) pair. First occurrence wins."""

from dataclasses import dataclass

from .models import ScoredResult


@dataclass
class DedupResult:
    unique: list[ScoredResult]
    removed_count: int


def deduplicate_results(results: list[ScoredResult]) -> DedupResult:
    seen = set()
    unique = []
    for r in results:
        key = f'{r.team_id}-{r.placement}'
        if key in seen:
            continue
        seen.add(key)
        unique.append(r)
    return DedupResult(unique=unique, removed_count=len(results) - len(unique))
