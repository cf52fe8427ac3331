"""Tests for roster and manual-result file adapters and Gemini client configuration."""

import json
import os
import sys

import pytest

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from battle_royale.core.errors import ConfigurationError
from battle_royale.core.models import ImageSource, RegisteredTeam
from battle_royale.adapters.roster_adapter import ManualResultsAdapter, RosterAdapter
from battle_royale.adapters.gemini_adapter import build_prompt, resolve_api_key


# ─── Roster ─────────────────────────────────────────────────────────

class TestRosterAdapter:
    def test_json_array(self, tmp_path):
        path = tmp_path / 'teams.json'
        path.write_text(json.dumps([
            {'id': 't1', 'name': 'Los Pibes', 'tag': 'LP'},
            {'id': 't2', 'name': 'Fenix Squad'},
        ]))
        teams = RosterAdapter().parse(str(path))
        assert teams == [RegisteredTeam('t1', 'Los Pibes', 'LP'), RegisteredTeam('t2', 'Fenix Squad', '')]

    def test_json_wrapped_with_aliases(self, tmp_path):
        path = tmp_path / 'teams.json'
        path.write_text(json.dumps({'teams': [
            {'teamId': 7, 'nome_time': 'Os Brabos', 'sigla': 'BRB'},
            {'teamId': 8, 'nome_time': ''},
        ]}))
        teams = RosterAdapter().parse(str(path))
        assert teams == [RegisteredTeam('7', 'Os Brabos', 'BRB')]

    def test_tsv(self, tmp_path):
        path = tmp_path / 'teams.tsv'
        path.write_text('Team ID\tTeam Name\tClan Tag\n'
                        't1\tLos Pibes\tLP\n'
                        '\t\t\n'
                        't2\tFenix Squad\n'
                        '\tNo Id\tNI\n')
        teams = RosterAdapter().parse(str(path))
        assert [(t.id, t.name, t.tag) for t in teams] == [
            ('t1', 'Los Pibes', 'LP'), ('t2', 'Fenix Squad', '')]

    def test_header_only(self, tmp_path):
        path = tmp_path / 'teams.tsv'
        path.write_text('id\tname\ttag\n')
        assert RosterAdapter().parse(str(path)) == []


# ─── Manual results ─────────────────────────────────────────────────

class TestManualResultsAdapter:
    def test_rows(self, tmp_path):
        path = tmp_path / 'manual.json'
        path.write_text(json.dumps([
            {'team': 'GH', 'placement': 3, 'kills': 4},
            {'teamId': 't2', 'placement': '5'},
            {'team': 'LP', 'placement': 'first', 'kills': 'many'},
            {'placement': 9},
        ]))
        rows = ManualResultsAdapter().parse(str(path))
        assert rows == [
            {'team': 'GH', 'placement': 3, 'kills': 4},
            {'team': 't2', 'placement': 5, 'kills': 0},
            {'team': 'LP', 'placement': None, 'kills': 0},
        ]

    def test_wrapped(self, tmp_path):
        path = tmp_path / 'manual.json'
        path.write_text(json.dumps({'results': [{'team': 'GH', 'placement': 1, 'kills': 0}]}))
        assert len(ManualResultsAdapter().parse(str(path))) == 1


# ─── Gemini configuration ───────────────────────────────────────────

class TestGeminiConfig:
    def test_explicit_key(self, monkeypatch):
        monkeypatch.delenv('GEMINI_API_KEY', raising=False)
        assert resolve_api_key(' abc123 ') == 'abc123'

    def test_env_key(self, monkeypatch):
        monkeypatch.delenv('GEMINI_API_KEY', raising=False)
        monkeypatch.setenv('GOOGLE_API_KEY', 'from-google')
        assert resolve_api_key() == 'from-google'
        monkeypatch.setenv('GEMINI_API_KEY', 'from-gemini')
        assert resolve_api_key() == 'from-gemini'

    @pytest.mark.parametrize('value', ['', 'YOUR_GEMINI_API_KEY_HERE'])
    def test_missing_or_placeholder(self, monkeypatch, value):
        monkeypatch.setenv('GEMINI_API_KEY', value)
        monkeypatch.delenv('GOOGLE_API_KEY', raising=False)
        with pytest.raises(ConfigurationError):
            resolve_api_key()

    def test_prompt_mentions_format(self):
        prompt = build_prompt(50)
        assert 'up to 50 teams' in prompt
        assert '"teamName"' in prompt


class TestImageSource:
    def test_from_path(self, tmp_path):
        path = tmp_path / 'Rank1.JPG'
        path.write_bytes(b'\xff\xd8data')
        img = ImageSource.from_path(str(path))
        assert img.name == 'Rank1.JPG'
        assert img.size == 6
        assert img.mime_type == 'image/jpeg'
        assert img.read_bytes() == b'\xff\xd8data'
        assert img.cache_key == ('Rank1.JPG', 6, os.stat(path).st_mtime)
