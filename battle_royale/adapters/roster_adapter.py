"""Adapter for roster files (registered teams) in JSON or TSV.

Handles two formats:
  - JSON: array of team objects, or an object wrapping it under "teams"
  - TSV: header row with column names, tab-separated values

Columns are matched by name (case-insensitive, spaces/underscores ignored).
Rows without an id or a name are skipped.
"""

import json

from ..core.models import RegisteredTeam
from .base import BaseAdapter


COLUMN_ALIASES = {
    'id': 'id',
    'teamid': 'id',
    'name': 'name',
    'team': 'name',
    'teamname': 'name',
    'nometime': 'name',
    'nome': 'name',
    'tag': 'tag',
    'teamtag': 'tag',
    'clantag': 'tag',
    'sigla': 'tag',
}


def _canonical(column: str) -> str | None:
    return COLUMN_ALIASES.get(column.lower().strip().replace(' ', '').replace('_', ''))


class RosterAdapter(BaseAdapter):
    """Parse a roster file into RegisteredTeam objects (file order preserved)."""

    def parse(self, data_path: str) -> list[RegisteredTeam]:
        with open(data_path, 'r', encoding='utf-8') as f:
            content = f.read().strip()

        if content.startswith('[') or content.startswith('{'):
            try:
                data = json.loads(content)
                if isinstance(data, dict):
                    data = data.get('teams', [data])
                return self._parse_json_array(data)
            except json.JSONDecodeError:
                pass

        return self._parse_tsv_content(content)

    def _parse_json_array(self, data: list) -> list[RegisteredTeam]:
        teams = []
        for row in data:
            if not isinstance(row, dict):
                continue
            mapped = {}
            for key, value in row.items():
                canonical = _canonical(str(key))
                if canonical and canonical not in mapped:
                    mapped[canonical] = value
            team = self._build_team(mapped)
            if team:
                teams.append(team)
        return teams

    def _parse_tsv_content(self, content: str) -> list[RegisteredTeam]:
        lines = content.split('\n')
        if len(lines) < 2:
            return []

        header = lines[0].strip().split('\t')
        col_map = {}
        for i, col in enumerate(header):
            canonical = _canonical(col)
            if canonical and canonical not in col_map:
                col_map[canonical] = i

        teams = []
        for line in lines[1:]:
            parts = line.rstrip('\r\n').split('\t')
            if not any(p.strip() for p in parts):
                continue
            mapped = {name: parts[idx] for name, idx in col_map.items() if idx < len(parts)}
            team = self._build_team(mapped)
            if team:
                teams.append(team)
        return teams

    @staticmethod
    def _build_team(mapped: dict) -> RegisteredTeam | None:
        team_id = str(mapped.get('id') or '').strip()
        name = str(mapped.get('name') or '').strip()
        if not team_id or not name:
            return None
        return RegisteredTeam(id=team_id, name=name, tag=str(mapped.get('tag') or '').strip())


class ManualResultsAdapter(BaseAdapter):
    """Parse operator-entered rows: JSON array of {"team", "placement", "kills"}.

    "team" may be a team id, tag or name; resolution happens against the roster.
    """

    def parse(self, data_path: str) -> list[dict]:
        with open(data_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if isinstance(data, dict):
            data = data.get('results', [])

        rows = []
        for row in data:
            if not isinstance(row, dict):
                continue
            team = row.get('team', row.get('teamId', row.get('team_id')))
            if team is None:
                continue
            rows.append({
                'team': str(team).strip(),
                'placement': self._parse_int(row.get('placement')),
                'kills': self._parse_int(row.get('kills'), default=0),
            })
        return rows

    @staticmethod
    def _parse_int(val, default=None):
        if val is None:
            return default
        try:
            return int(str(val).strip())
        except ValueError:
            return default
