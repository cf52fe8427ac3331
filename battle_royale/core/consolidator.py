"""Merge the entry lists of every image in a batch into one position-indexed ranking.

Rules:
  - entries with a position outside [1, max_teams] are dropped (and counted)
  - lists are processed in upload order
  - a position's held entry is replaced only by a strictly higher confidence;
    equal confidence keeps the earlier entry
  - output is sorted by position, one entry per position
"""

from dataclasses import dataclass, field

from .models import ConsolidatedEntry, ExtractedEntry


@dataclass
class ConsolidationResult:
    entries: list[ConsolidatedEntry]
    out_of_range: list[ExtractedEntry] = field(default_factory=list)
    replaced: int = 0      # times a held entry lost to a higher-confidence one
    superseded: int = 0    # entries that lost (or tied) against the held one


def consolidate_entries(entry_lists: list[list[ExtractedEntry]],
                        max_teams: int) -> ConsolidationResult:
    by_position: dict[int, ExtractedEntry] = {}
    out_of_range = []
    replaced = 0
    superseded = 0

    for entries in entry_lists:
        for entry in entries:
            if not 1 <= entry.position <= max_teams:
                out_of_range.append(entry)
                continue
            held = by_position.get(entry.position)
            if held is None:
                by_position[entry.position] = entry
            elif entry.confidence > held.confidence:
                by_position[entry.position] = entry
                replaced += 1
            else:
                superseded += 1

    merged = [by_position[p] for p in sorted(by_position)][:max_teams]
    return ConsolidationResult(
        entries=merged,
        out_of_range=out_of_range,
        replaced=replaced,
        superseded=superseded,
    )
