#!/usr/bin/env python3
"""CLI entry point for processing one Battle Royale match.

Usage:
    python process_match.py --images rank1.png rank2.png --roster teams.json \\
        --match-id "week3-match2" --max-teams 25 --scoring scoring.json \\
        --manual manual.json --db ./output/results.db --standings
"""

import argparse
import asyncio
import os
import sys

# Add parent directory to path for imports (skip when frozen by PyInstaller)
if not getattr(sys, 'frozen', False):
    sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from battle_royale.core.models import DuplicateTeamPolicy, ImageSource, MatchConfig
from battle_royale.core.errors import RankingError, ValidationError
from battle_royale.core.scoring import load_scoring_table
from battle_royale.core.extraction_cache import JsonFileCache
from battle_royale.core.batch_processor import (
    format_match_report, print_batch_report, process_batch
)
from battle_royale.core.team_correlator import find_team
from battle_royale.core.manual_merge import build_manual_result, merge_manual_results
from battle_royale.core.validation import validate_final_results
from battle_royale.core.results_db import load_match_results, save_match_results
from battle_royale.core.standings import build_standings, print_standings
from battle_royale.adapters.roster_adapter import ManualResultsAdapter, RosterAdapter
from battle_royale.adapters.gemini_adapter import GeminiExtractionClient


def _build_manual_rows(path, roster, table, max_teams):
    """Resolve operator rows against the roster; bad rows are reported and skipped."""
    rows = []
    by_id = {t.id: t for t in roster}
    for raw in ManualResultsAdapter().parse(path):
        team = by_id.get(raw['team']) or find_team(raw['team'], roster)[0]
        if team is None:
            print(f'  Rejected manual row "{raw["team"]}": not a registered team')
            continue
        if raw['placement'] is None:
            print(f'  Rejected manual row "{raw["team"]}": missing placement')
            continue
        try:
            rows.append(build_manual_result(team, raw['placement'], raw['kills'], table, max_teams))
        except ValidationError as e:
            print(f'  Rejected manual row "{raw["team"]}": {e}')
    return rows


def main():
    parser = argparse.ArgumentParser(description='Process a Battle Royale match ranking')
    parser.add_argument('--images', nargs='+', required=True,
                        help='Ranking screenshot(s), in upload order')
    parser.add_argument('--roster', required=True, help='Roster file (JSON or TSV)')
    parser.add_argument('--match-id', required=True, help='Identifier the results are saved under')
    parser.add_argument('--max-teams', type=int, default=25,
                        help='Maximum teams in the match format (e.g. 25, 33, 50, 100)')
    parser.add_argument('--scoring', default=None,
                        help='Path to a JSON scoring table (default: built-in ladder)')
    parser.add_argument('--manual', default=None,
                        help='Path to a JSON file of operator-entered results to merge')
    parser.add_argument('--cache', default=None,
                        help='Path to a JSON extraction cache reused across runs')
    parser.add_argument('--db', default=None,
                        help='Path to the SQLite results database (default: ./output/match_results.db)')
    parser.add_argument('--duplicate-team-policy', default='tolerate',
                        choices=[p.value for p in DuplicateTeamPolicy],
                        help='How to treat one team correlated at several placements')
    parser.add_argument('--placeholder-labels', action='store_true',
                        help='Map labels like EQUIPE7 to the 7th roster team')
    parser.add_argument('--inter-image-delay', type=float, default=2.0,
                        help='Seconds to wait between extraction calls (default 2)')
    parser.add_argument('--rate-limit-delay', type=float, default=35.0,
                        help='Wait before retrying a rate-limited call without a retry hint (default 35)')
    parser.add_argument('--model', default=None, help='Gemini model name')
    parser.add_argument('--dry-run', action='store_true', help='Do not save results')
    parser.add_argument('--standings', action='store_true',
                        help='Print championship standings from the database after saving')

    args = parser.parse_args()

    if args.max_teams < 1:
        print(f"Invalid --max-teams: {args.max_teams}")
        sys.exit(1)

    missing = [p for p in args.images + [args.roster] if not os.path.exists(p)]
    if missing:
        print(f"File not found: {', '.join(missing)}")
        sys.exit(1)

    config = MatchConfig(
        max_teams=args.max_teams,
        inter_image_delay=args.inter_image_delay,
        rate_limit_delay=args.rate_limit_delay,
        duplicate_team_policy=DuplicateTeamPolicy(args.duplicate_team_policy),
        placeholder_labels=args.placeholder_labels,
    )

    try:
        roster = RosterAdapter().parse(args.roster)
        print(f"Loaded {len(roster)} registered teams from {args.roster}")
        table = load_scoring_table(args.scoring, config.max_teams)
        images = [ImageSource.from_path(p) for p in args.images]
        cache = JsonFileCache(args.cache) if args.cache else None
        client = GeminiExtractionClient(model=args.model)

        report = asyncio.run(process_batch(images, roster, client, table, config, cache=cache))
        print_batch_report(report)
        results = report.results

        manual = []
        if args.manual:
            print(f"\nMerging manual results from {args.manual}...")
            manual = _build_manual_rows(args.manual, roster, table, config.max_teams)
        merged = merge_manual_results(results, manual)
        for row, reason in merged.rejected:
            kind = 'manual' if row.source == 'manual' else 'extracted'
            print(f'  Rejected {kind} row "{row.team_name}" #{row.placement}: {reason}')
        if args.manual:
            accepted = sum(1 for r in merged.results if r.source == 'manual')
            print(f"  {accepted} manual rows accepted")
        results = merged.results

        problems = validate_final_results(results)
        for problem in problems:
            print(f"Warning: {problem}")

        print()
        print(format_match_report(results))

        db_path = args.db if args.db else os.path.join('output', 'match_results.db')
        if args.dry_run:
            print("\nDry run: results not saved")
        else:
            saved = save_match_results(db_path, args.match_id, results)
            print(f"\nSaved {saved} results for match {args.match_id} to {db_path}")

        if args.standings:
            print_standings(build_standings(load_match_results(db_path)))
    except RankingError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print("\nDone!")


if __name__ == '__main__':
    main()
