"""SQLite store for final match results.

One table, match_results, one row per team per match. Saving a match
replaces whatever was stored for that match id before.
"""

import os
import sqlite3

from .errors import ValidationError
from .models import ScoredResult


def _create_table(cur):
    cur.execute('''CREATE TABLE IF NOT EXISTS match_results (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        match_id TEXT,
        team_id TEXT,
        team_name TEXT,
        placement INTEGER,
        kills INTEGER,
        placement_points INTEGER,
        kill_points INTEGER,
        total_points INTEGER,
        confidence REAL,
        is_edited INTEGER,
        source TEXT
    )''')


def save_match_results(db_path: str, match_id: str, results: list[ScoredResult]) -> int:
    """Replace the stored rows of match_id with results. Returns the row count.

    Raises ValidationError, before anything is written, if two rows share a
    team or a placement.
    """
    team_ids = [r.team_id for r in results]
    placements = [r.placement for r in results]
    if len(team_ids) != len(set(team_ids)):
        raise ValidationError(f'Refusing to save match {match_id}: duplicate teams')
    if len(placements) != len(set(placements)):
        raise ValidationError(f'Refusing to save match {match_id}: duplicate placements')

    db_dir = os.path.dirname(os.path.abspath(db_path))
    os.makedirs(db_dir, exist_ok=True)

    conn = sqlite3.connect(db_path)
    cur = conn.cursor()
    _create_table(cur)

    cur.execute('DELETE FROM match_results WHERE match_id = ?', (match_id,))
    for r in results:
        cur.execute('''INSERT INTO match_results
            (match_id, team_id, team_name, placement, kills, placement_points,
             kill_points, total_points, confidence, is_edited, source)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)''',
            (match_id, r.team_id, r.team_name, r.placement, r.kills, r.placement_points,
             r.kill_points, r.total_points, r.confidence, 1 if r.is_edited else 0, r.source))

    conn.commit()
    conn.close()
    return len(results)


def load_match_results(db_path: str) -> dict[str, list[ScoredResult]]:
    """Return {match_id: [ScoredResult, ...]} ordered by match id, then placement."""
    if not os.path.exists(db_path):
        return {}

    conn = sqlite3.connect(db_path)
    cur = conn.cursor()
    _create_table(cur)
    cur.execute('''SELECT match_id, team_id, team_name, placement, kills, placement_points,
                          kill_points, total_points, confidence, is_edited, source
                   FROM match_results
                   ORDER BY match_id, placement''')
    rows = cur.fetchall()
    conn.close()

    matches: dict[str, list[ScoredResult]] = {}
    for row in rows:
        matches.setdefault(row[0], []).append(ScoredResult(
            team_id=row[1],
            team_name=row[2],
            placement=row[3],
            kills=row[4],
            placement_points=row[5],
            kill_points=row[6],
            total_points=row[7],
            confidence=row[8],
            is_edited=bool(row[9]),
            source=row[10],
        ))
    return matches
