"""Process a batch of ranking screenshots into a scored, deduplicated result set.

Images are handled strictly one at a time in upload order:

    cache lookup -> (inter-image delay) -> extraction with retry/fallback
        -> consolidation -> correlation -> scoring -> dedup -> overflow cut

Recoverable failures (rate limits, unreadable responses) never stop the
batch; the image's rows are replaced by fallback data and flagged. A missing
configuration, an empty roster or zero correlated rows stop the batch before
anything is returned for saving.
"""

import asyncio
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from ..adapters.base import ExtractionClient
from .consolidator import ConsolidationResult, consolidate_entries
from .deduplicator import deduplicate_results
from .errors import BatchCancelled, CorrelationFailure, ValidationError
from .extraction_cache import ExtractionCache
from .extraction_parser import parse_extraction_response
from .models import ExtractedEntry, ImageSource, MatchConfig, RegisteredTeam, ScoredResult
from .result_scorer import score_results
from .retry_policy import ExtractionOutcome, ExtractionRetryPolicy, RetryState
from .scoring import ScoringTable
from .team_correlator import SUGGESTION_RATIO, CorrelationResult, correlate_teams, suggest_matches


@dataclass
class BatchReport:
    results: list[ScoredResult]
    outcomes: list[ExtractionOutcome] = field(default_factory=list)
    consolidation: ConsolidationResult | None = None
    correlation: CorrelationResult | None = None
    duplicates_removed: int = 0
    overflow_dropped: int = 0
    suggestions: list[tuple[str, str, float]] = field(default_factory=list)

    @property
    def fallback_images(self) -> list[str]:
        return [o.image_name for o in self.outcomes if o.used_fallback]

    @property
    def unmatched_labels(self) -> list[str]:
        return self.correlation.unmatched_labels if self.correlation else []


def cut_overflow(results: list[ScoredResult], limit: int) -> tuple[list[ScoredResult], int]:
    """Trim a placement-sorted result list to limit rows.

    Repeats of a team already placed higher are dropped first (worst placement
    first), then the lowest placements. Returns (kept, dropped count).
    """
    excess = len(results) - limit
    if excess <= 0:
        return results, 0

    seen = set()
    repeats = []
    for i, r in enumerate(results):
        if r.team_id in seen:
            repeats.append(i)
        seen.add(r.team_id)

    drop = set(repeats[::-1][:excess])
    kept = [r for i, r in enumerate(results) if i not in drop]
    return kept[:limit], excess


async def extract_entries(client: ExtractionClient, image: ImageSource,
                          max_teams: int) -> list[ExtractedEntry]:
    """One extraction call plus parsing; parse failures surface as ExtractionParseError."""
    text = await client.extract(image, max_teams)
    return parse_extraction_response(text)


async def process_batch(images: list[ImageSource], roster: list[RegisteredTeam],
                        client: ExtractionClient, table: ScoringTable,
                        config: MatchConfig | None = None,
                        cache: ExtractionCache | None = None,
                        sleep: Callable[[float], Awaitable] = asyncio.sleep,
                        cancel_event: asyncio.Event | None = None,
                        rng: random.Random | None = None) -> BatchReport:
    """Run the whole pipeline for one match.

    Args:
        images: screenshots in upload order.
        roster: registered teams of the competition.
        client: extraction service.
        table: scoring table for this run.
        config: run configuration (max_teams, delays, policies).
        cache: optional extraction cache keyed by (name, size, modified).
        sleep: awaitable sleep used for every engine-owned wait.
        cancel_event: when set, the batch stops before the next image.
        rng: random source for fallback generation.

    Raises:
        ConfigurationError: extraction service not usable.
        CorrelationFailure: empty roster or no entry matched any team.
        BatchCancelled: cancel_event was set between two images.
    """
    config = config or MatchConfig()
    if not roster:
        raise CorrelationFailure('No registered teams to correlate against')
    if not images:
        raise ValidationError('No images to process')

    max_teams = config.max_teams
    policy = ExtractionRetryPolicy(
        lambda image: extract_entries(client, image, max_teams),
        max_teams,
        default_delay=config.rate_limit_delay,
        sleep=sleep,
        rng=rng,
    )

    outcomes = []
    called = False
    for i, image in enumerate(images):
        if cancel_event is not None and cancel_event.is_set():
            raise BatchCancelled(f'Batch abandoned after {i} of {len(images)} images')

        print(f"Extracting {image.name} ({i + 1}/{len(images)})...")
        cached = cache.get(image.cache_key) if cache is not None else None
        if cached is not None:
            outcomes.append(ExtractionOutcome(
                image_name=image.name, entries=cached, state=RetryState.SUCCESS,
                from_cache=True, history=[RetryState.SUCCESS]))
            print(f"  -> {len(cached)} entries (cached)")
            continue

        if called and config.inter_image_delay > 0:
            await sleep(config.inter_image_delay)
        outcome = await policy.run(image)
        called = True

        if cache is not None and not outcome.used_fallback:
            cache.put(image.cache_key, outcome.entries)
        outcomes.append(outcome)
        if not outcome.used_fallback:
            print(f"  -> {len(outcome.entries)} entries")

    consolidation = consolidate_entries([o.entries for o in outcomes], max_teams)
    if consolidation.out_of_range:
        print(f"Warning: dropped {len(consolidation.out_of_range)} entries with a position "
              f"outside 1-{max_teams}")

    correlation = correlate_teams(
        consolidation.entries, roster,
        policy=config.duplicate_team_policy,
        placeholder_labels=config.placeholder_labels,
    )
    suggestions = suggest_matches(correlation.unmatched_labels, roster)
    if not correlation.matched:
        labels = correlation.unmatched_labels
        shown = ', '.join(labels[:5]) + (' ...' if len(labels) > 5 else '')
        raise CorrelationFailure(
            f'No extracted team matched a registered team ({len(labels)} unmatched: {shown})',
            unmatched_labels=labels,
        )

    scored = score_results(correlation.matched, table, max_teams)
    dedup = deduplicate_results(scored)
    results = sorted(dedup.unique, key=lambda r: r.placement)

    limit = min(max_teams, len(roster))
    total = len(results)
    results, overflow = cut_overflow(results, limit)
    if overflow:
        print(f"Warning: {total} rows exceed the limit of {limit}; dropped {overflow}")

    return BatchReport(
        results=results,
        outcomes=outcomes,
        consolidation=consolidation,
        correlation=correlation,
        duplicates_removed=dedup.removed_count,
        overflow_dropped=overflow,
        suggestions=suggestions,
    )


def print_batch_report(report: BatchReport) -> None:
    """Print a human-readable processing summary to stdout."""
    cached = sum(1 for o in report.outcomes if o.from_cache)
    fallback = report.fallback_images
    print(f"\nBatch: {len(report.outcomes)} images ({cached} cached, {len(fallback)} fallback), "
          f"{len(report.results)} results")

    if fallback:
        print("Fallback data substituted for:")
        for o in report.outcomes:
            if o.used_fallback:
                print(f"  {o.image_name}: {o.error}")

    if report.consolidation:
        c = report.consolidation
        if c.replaced or c.out_of_range:
            print(f"Consolidation: {c.replaced} replaced by higher confidence, "
                  f"{len(c.out_of_range)} out of range")

    if report.correlation:
        tiers = ', '.join(f'{k}={v}' for k, v in sorted(report.correlation.tier_counts.items()))
        print(f"Correlation: {len(report.correlation.matched)} matched ({tiers})")
        if report.correlation.unmatched:
            print(f"Unmatched labels ({len(report.correlation.unmatched)}):")
            for e in report.correlation.unmatched[:15]:
                print(f'  #{e.position} "{e.team_label}"')
            if len(report.correlation.unmatched) > 15:
                print(f"  ... and {len(report.correlation.unmatched) - 15} more")
        if report.correlation.conflicts:
            print("Team already placed (ignored):")
            for e, team in report.correlation.conflicts:
                print(f'  #{e.position} "{e.team_label}" -> {team.name}')

    if report.suggestions:
        print(f"Possible matches (>{int(SUGGESTION_RATIO * 100)}% similar, not applied):")
        for label, name, ratio in report.suggestions:
            print(f'  "{label}" / "{name}" ({int(ratio * 100)}% similar)')

    if report.duplicates_removed:
        print(f"Duplicates removed: {report.duplicates_removed}")
    if report.overflow_dropped:
        print(f"Overflow: {report.overflow_dropped} rows dropped")


def format_match_report(results: list[ScoredResult]) -> str:
    """Plain-text per-team breakdown of a final result set."""
    rows = sorted(results, key=lambda r: r.placement)
    lines = ['=== MATCH RESULTS ===', '']
    for r in rows:
        flags = []
        if r.is_edited:
            flags.append('edited')
        if r.source != 'extraction':
            flags.append(r.source)
        suffix = f" [{', '.join(flags)}]" if flags else ''
        lines.append(f'{r.placement}. {r.team_name}{suffix}')
        lines.append(f'   Kills: {r.kills}')
        lines.append(f'   Placement points: {r.placement_points}')
        lines.append(f'   Kill points: {r.kill_points}')
        lines.append(f'   Total: {r.total_points} points')
        lines.append(f'   Confidence: {r.confidence * 100:.1f}%')
        lines.append('')

    if rows:
        avg_conf = sum(r.confidence for r in rows) / len(rows)
        lines.append('=== TOTALS ===')
        lines.append(f'Total kills: {sum(r.kills for r in rows)}')
        lines.append(f'Total points: {sum(r.total_points for r in rows)}')
        lines.append(f'Average confidence: {avg_conf * 100:.1f}%')
        lines.append(f'Teams: {len(rows)}')
    return '\n'.join(lines)
