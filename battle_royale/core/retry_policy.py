"""Bounded retry around a single image extraction.

State machine:

    IDLE -> REQUESTING -> SUCCESS
                       -> RATE_LIMITED -> WAITING -> REQUESTING (2nd) -> SUCCESS | FAILED
                       -> FAILED

Only a rate-limit signal earns the single wait-and-retry. Everything else,
or a second failure, ends in FAILED and the fallback generator fills in a
full synthetic ranking, so the caller always gets a usable entry list.
Configuration errors are the exception: they are re-raised untouched.
"""

import asyncio
import json
import random
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable

from .errors import ConfigurationError, ExtractionParseError, RateLimitError
from .fallback import generate_fallback_entries
from .models import ExtractedEntry, ImageSource


DEFAULT_RATE_LIMIT_DELAY = 35.0

_RETRY_IN_RE = re.compile(r'retry in\s+(\d+(?:\.\d+)?)\s*(ms|s)?', re.IGNORECASE)
_RETRY_DELAY_RE = re.compile(r'retry_?delay["\']?\s*[:=]\s*["\']?(\d+(?:\.\d+)?)\s*s', re.IGNORECASE)
_RATE_LIMIT_TEXT_RE = re.compile(r'\bquota\b|resource_exhausted|too many requests')


class RetryState(str, Enum):
    IDLE = 'idle'
    REQUESTING = 'requesting'
    RATE_LIMITED = 'rate_limited'
    WAITING = 'waiting'
    SUCCESS = 'success'
    FAILED = 'failed'


class ErrorKind(str, Enum):
    RATE_LIMIT = 'rate_limit'
    PARSE = 'parse'
    CONFIGURATION = 'configuration'
    OTHER = 'other'


def classify_error(error: BaseException) -> ErrorKind:
    """Decide which branch of the state machine an extraction error takes."""
    if isinstance(error, ConfigurationError):
        return ErrorKind.CONFIGURATION
    if isinstance(error, RateLimitError):
        return ErrorKind.RATE_LIMIT
    if isinstance(error, (ExtractionParseError, json.JSONDecodeError)):
        return ErrorKind.PARSE

    # google-genai APIError exposes .code / .status
    code = getattr(error, 'code', None)
    status = str(getattr(error, 'status', '') or '')
    message = str(error).lower()

    if code == 429 or status == 'RESOURCE_EXHAUSTED' or _RATE_LIMIT_TEXT_RE.search(message):
        return ErrorKind.RATE_LIMIT
    if code in (401, 403) or 'api key' in message or 'permission_denied' in message:
        return ErrorKind.CONFIGURATION
    return ErrorKind.OTHER


def parse_retry_delay(error: BaseException) -> float | None:
    """Read the server-suggested wait (seconds) out of a rate-limit error, if any."""
    retry_after = getattr(error, 'retry_after', None)
    if retry_after is not None:
        return float(retry_after)

    text = str(error)
    details = getattr(error, 'details', None)
    if details:
        text = f'{text} {json.dumps(details, default=str)}'

    m = _RETRY_IN_RE.search(text)
    if m:
        value = float(m.group(1))
        return value / 1000.0 if (m.group(2) or '').lower() == 'ms' else value
    m = _RETRY_DELAY_RE.search(text)
    if m:
        return float(m.group(1))
    return None


@dataclass
class ExtractionOutcome:
    """What happened to one image."""
    image_name: str
    entries: list[ExtractedEntry]
    state: RetryState
    attempts: int = 0
    used_fallback: bool = False
    from_cache: bool = False
    error: str | None = None
    history: list[RetryState] = field(default_factory=list)


class ExtractionRetryPolicy:
    """Run one extraction with a single rate-limit retry and fallback substitution.

    Args:
        extract: async callable image -> list[ExtractedEntry] (call + parse).
        max_teams: size of the fallback ranking.
        default_delay: wait used when a rate-limit error carries no retry hint.
        sleep: awaitable sleep, injectable for tests.
        fallback_names: label pool handed to the fallback generator.
        rng: random source for the fallback generator.
    """

    def __init__(self, extract: Callable[[ImageSource], Awaitable[list[ExtractedEntry]]],
                 max_teams: int, default_delay: float = DEFAULT_RATE_LIMIT_DELAY,
                 sleep: Callable[[float], Awaitable] = asyncio.sleep,
                 fallback_names: list[str] | None = None,
                 rng: random.Random | None = None):
        self._extract = extract
        self._max_teams = max_teams
        self._default_delay = default_delay
        self._sleep = sleep
        self._fallback_names = fallback_names
        self._rng = rng

    async def run(self, image: ImageSource) -> ExtractionOutcome:
        outcome = ExtractionOutcome(image_name=image.name, entries=[], state=RetryState.IDLE)
        outcome.history.append(RetryState.IDLE)

        error = await self._attempt(image, outcome)
        if error is None:
            return outcome

        kind = classify_error(error)
        if kind == ErrorKind.RATE_LIMIT:
            self._move(outcome, RetryState.RATE_LIMITED)
            delay = parse_retry_delay(error)
            if delay is None:
                delay = self._default_delay
            print(f"  Rate limited on {image.name}, retrying in {delay:.1f}s")
            self._move(outcome, RetryState.WAITING)
            await self._sleep(delay)

            error = await self._attempt(image, outcome)
            if error is None:
                return outcome
            if classify_error(error) == ErrorKind.CONFIGURATION:
                raise error

        return self._fail(image, outcome, error)

    async def _attempt(self, image: ImageSource, outcome: ExtractionOutcome) -> BaseException | None:
        self._move(outcome, RetryState.REQUESTING)
        outcome.attempts += 1
        try:
            entries = await self._extract(image)
        except Exception as e:
            if classify_error(e) == ErrorKind.CONFIGURATION:
                raise
            return e
        outcome.entries = list(entries)
        self._move(outcome, RetryState.SUCCESS)
        return None

    def _fail(self, image: ImageSource, outcome: ExtractionOutcome,
              error: BaseException) -> ExtractionOutcome:
        self._move(outcome, RetryState.FAILED)
        outcome.error = f'{type(error).__name__}: {error}'
        outcome.used_fallback = True
        outcome.entries = generate_fallback_entries(
            self._max_teams, name_pool=self._fallback_names, rng=self._rng)
        print(f"  Warning: extraction failed for {image.name} ({outcome.error}); "
              f"substituted {len(outcome.entries)} fallback rows")
        return outcome

    @staticmethod
    def _move(outcome: ExtractionOutcome, state: RetryState) -> None:
        outcome.state = state
        outcome.history.append(state)
