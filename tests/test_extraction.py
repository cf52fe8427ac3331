"""Tests for response parsing, error classification, the retry policy and the extraction cache."""

import asyncio
import json
import os
import random
import sys

import pytest

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from battle_royale.core.models import ExtractedEntry, ImageSource
from battle_royale.core.errors import ConfigurationError, ExtractionParseError, RateLimitError
from battle_royale.core.extraction_parser import parse_extraction_response
from battle_royale.core.retry_policy import (
    ErrorKind, ExtractionRetryPolicy, RetryState, classify_error, parse_retry_delay
)
from battle_royale.core.extraction_cache import JsonFileCache, MemoryCache


IMAGE = ImageSource(name='rank1.png', size=1024, modified=1700000000.0, data=b'png')


class FakeSleep:
    """Records requested waits instead of sleeping."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


class FakeApiError(Exception):
    """Shaped like google-genai's APIError: code, status, details."""

    def __init__(self, code, status='', message='', details=None):
        super().__init__(f'{code} {status}. {message}')
        self.code = code
        self.status = status
        self.details = details


def scripted(*steps):
    """Extraction callable that raises or returns the given steps in order."""
    calls = []

    async def extract(image):
        step = steps[len(calls)]
        calls.append(image.name)
        if isinstance(step, BaseException):
            raise step
        return step

    extract.calls = calls
    return extract


ENTRIES = [ExtractedEntry(position=1, team_label='LP', kills=8),
           ExtractedEntry(position=2, team_label='FNX', kills=5)]


# ─── Parser ─────────────────────────────────────────────────────────

class TestParseExtractionResponse:
    def test_plain_json(self):
        text = json.dumps({'teams': [{'position': 1, 'teamName': 'EQUIPE1', 'kills': 8}]})
        entries = parse_extraction_response(text)
        assert entries == [ExtractedEntry(position=1, team_label='EQUIPE1', kills=8, confidence=0.9)]

    def test_fenced_with_prose(self):
        text = ('Here is the ranking:\n```json\n'
                '{"teams": [{"position": 2, "teamName": "FNX", "kills": 3, "confidence": 0.97}]}\n'
                '```\nLet me know if you need anything else.')
        entries = parse_extraction_response(text)
        assert entries[0].team_label == 'FNX'
        assert entries[0].confidence == 0.97

    def test_missing_values(self):
        text = '{"teams": [{"position": 3, "teamName": null, "kills": null}]}'
        entry = parse_extraction_response(text)[0]
        assert entry.team_label == 'UNKNOWN_TEAM'
        assert entry.kills == 0

    def test_values_clamped(self):
        text = '{"teams": [{"position": 1, "teamName": "A", "kills": -4, "confidence": 1.7}]}'
        entry = parse_extraction_response(text)[0]
        assert entry.kills == 0
        assert entry.confidence == 1.0

    def test_numeric_strings_coerced(self):
        text = '{"teams": [{"position": "4", "teamName": "A", "kills": "6"}]}'
        entry = parse_extraction_response(text)[0]
        assert (entry.position, entry.kills) == (4, 6)

    def test_bad_rows_skipped_good_rows_kept(self):
        text = json.dumps({'teams': [
            {'position': 1, 'teamName': 'A1', 'kills': 5},
            {'position': 2, 'teamName': 'A2', 'kills': '3 kills'},
            {'position': None, 'teamName': 'A3', 'kills': 1},
            'garbage',
        ]})
        entries = parse_extraction_response(text)
        assert [(e.position, e.team_label, e.kills) for e in entries] == [(1, 'A1', 5), (2, 'A2', 3)]

    def test_unreadable_kills_become_zero(self):
        text = '{"teams": [{"position": "3rd", "teamName": "A", "kills": "n/a", "confidence": "high"}]}'
        entry = parse_extraction_response(text)[0]
        assert (entry.position, entry.kills, entry.confidence) == (3, 0, 0.9)

    @pytest.mark.parametrize('text', [
        '',
        '   ',
        'The image is too blurry to read.',
        '{"teams": [}',
        '{"teams": []}',
        '{"ranking": [{"position": 1}]}',
        '{"teams": [{"teamName": "no position"}]}',
    ])
    def test_unreadable(self, text):
        with pytest.raises(ExtractionParseError):
            parse_extraction_response(text)


# ─── Classification ─────────────────────────────────────────────────

class TestClassifyError:
    def test_engine_errors(self):
        assert classify_error(RateLimitError('slow down')) == ErrorKind.RATE_LIMIT
        assert classify_error(ConfigurationError('no key')) == ErrorKind.CONFIGURATION
        assert classify_error(ExtractionParseError('junk')) == ErrorKind.PARSE

    def test_api_errors(self):
        assert classify_error(FakeApiError(429, 'RESOURCE_EXHAUSTED')) == ErrorKind.RATE_LIMIT
        assert classify_error(FakeApiError(403, 'PERMISSION_DENIED')) == ErrorKind.CONFIGURATION
        assert classify_error(FakeApiError(500, 'INTERNAL')) == ErrorKind.OTHER

    def test_message_hints(self):
        assert classify_error(RuntimeError('Quota exceeded for this project')) == ErrorKind.RATE_LIMIT
        assert classify_error(RuntimeError('API key not valid')) == ErrorKind.CONFIGURATION
        assert classify_error(RuntimeError('connection reset')) == ErrorKind.OTHER
        assert classify_error(RuntimeError('Order 4290 not found')) == ErrorKind.OTHER
        assert classify_error(RuntimeError('Image 429 of batch failed')) == ErrorKind.OTHER
        assert classify_error(RuntimeError('429 Too Many Requests')) == ErrorKind.RATE_LIMIT


class TestParseRetryDelay:
    def test_retry_after_attribute(self):
        assert parse_retry_delay(RateLimitError('x', retry_after=12)) == 12.0

    def test_retry_in_message(self):
        assert parse_retry_delay(RuntimeError('Please retry in 5s.')) == 5.0
        assert parse_retry_delay(RuntimeError('Please retry in 1500ms')) == 1.5
        assert parse_retry_delay(RuntimeError('Please retry in 7.25s')) == 7.25

    def test_retry_delay_in_details(self):
        details = {'error': {'code': 429, 'details': [
            {'@type': 'type.googleapis.com/google.rpc.RetryInfo', 'retryDelay': '35s'}]}}
        assert parse_retry_delay(FakeApiError(429, 'RESOURCE_EXHAUSTED', details=details)) == 35.0

    def test_no_hint(self):
        assert parse_retry_delay(RuntimeError('quota exceeded')) is None


# ─── Retry policy ───────────────────────────────────────────────────

class TestRetryPolicy:
    def test_success_first_try(self):
        sleep = FakeSleep()
        policy = ExtractionRetryPolicy(scripted(ENTRIES), 25, sleep=sleep)
        outcome = asyncio.run(policy.run(IMAGE))
        assert outcome.entries == ENTRIES
        assert outcome.state == RetryState.SUCCESS
        assert outcome.attempts == 1
        assert not outcome.used_fallback
        assert sleep.calls == []

    def test_rate_limited_twice_falls_back(self):
        sleep = FakeSleep()
        extract = scripted(RateLimitError('quota exceeded, retry in 5s'),
                           RateLimitError('quota exceeded, retry in 5s'))
        policy = ExtractionRetryPolicy(extract, 25, sleep=sleep, rng=random.Random(1))
        outcome = asyncio.run(policy.run(IMAGE))

        assert sleep.calls == [5.0]
        assert len(extract.calls) == 2
        assert outcome.used_fallback
        assert outcome.state == RetryState.FAILED
        assert [e.position for e in outcome.entries] == list(range(1, 26))
        assert all(e.is_fallback for e in outcome.entries)
        assert outcome.history == [
            RetryState.IDLE, RetryState.REQUESTING, RetryState.RATE_LIMITED,
            RetryState.WAITING, RetryState.REQUESTING, RetryState.FAILED]

    def test_rate_limited_then_success(self):
        sleep = FakeSleep()
        policy = ExtractionRetryPolicy(scripted(RateLimitError('busy'), ENTRIES), 25,
                                       default_delay=35.0, sleep=sleep)
        outcome = asyncio.run(policy.run(IMAGE))
        assert sleep.calls == [35.0]
        assert outcome.entries == ENTRIES
        assert outcome.attempts == 2
        assert not outcome.used_fallback

    def test_parse_error_falls_back_without_retry(self):
        sleep = FakeSleep()
        extract = scripted(ExtractionParseError('not json'))
        policy = ExtractionRetryPolicy(extract, 3, sleep=sleep, fallback_names=['LP', 'FNX', 'GH'])
        outcome = asyncio.run(policy.run(IMAGE))
        assert len(extract.calls) == 1
        assert sleep.calls == []
        assert [e.team_label for e in outcome.entries] == ['LP', 'FNX', 'GH']
        assert 'ExtractionParseError' in outcome.error

    def test_configuration_error_propagates(self):
        policy = ExtractionRetryPolicy(scripted(ConfigurationError('no key')), 25, sleep=FakeSleep())
        with pytest.raises(ConfigurationError):
            asyncio.run(policy.run(IMAGE))

    def test_configuration_error_on_retry_propagates(self):
        extract = scripted(RateLimitError('busy', retry_after=1), FakeApiError(401, 'UNAUTHENTICATED'))
        policy = ExtractionRetryPolicy(extract, 25, sleep=FakeSleep())
        with pytest.raises(FakeApiError):
            asyncio.run(policy.run(IMAGE))


# ─── Cache ──────────────────────────────────────────────────────────

class TestExtractionCache:
    def test_memory_cache(self):
        cache = MemoryCache()
        assert cache.get(IMAGE.cache_key) is None
        cache.put(IMAGE.cache_key, ENTRIES)
        assert cache.get(IMAGE.cache_key) == ENTRIES
        assert cache.get(('rank1.png', 1024, 1700000001.0)) is None
        assert len(cache) == 1

    def test_json_cache_persists(self, tmp_path):
        path = str(tmp_path / 'cache' / 'extractions.json')
        JsonFileCache(path).put(IMAGE.cache_key, ENTRIES)

        reopened = JsonFileCache(path)
        assert reopened.get(IMAGE.cache_key) == ENTRIES
        with open(path) as f:
            assert 'rank1.png|1024|1700000000.0' in json.load(f)

    def test_json_cache_ignores_corrupt_file(self, tmp_path):
        path = tmp_path / 'extractions.json'
        path.write_text('{broken')
        cache = JsonFileCache(str(path))
        assert len(cache) == 0
        assert cache.get(IMAGE.cache_key) is None
