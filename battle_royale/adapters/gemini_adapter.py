"""Vision extraction through Google Gemini (google-genai SDK).

The API key is read from GEMINI_API_KEY (or GOOGLE_API_KEY). A missing or
placeholder key raises ConfigurationError when the client is built, so a
batch fails before any image is sent.
"""

import os

from google import genai
from google.genai import errors, types

from ..core.errors import ConfigurationError, RateLimitError
from ..core.retry_policy import parse_retry_delay
from .base import ExtractionClient


DEFAULT_MODEL = 'gemini-2.5-flash'
_PLACEHOLDER_KEYS = {'', 'YOUR_GEMINI_API_KEY_HERE'}


def build_prompt(max_teams: int) -> str:
    return f"""
Analyze this Battle Royale ranking screenshot and extract the data of EVERY visible team.

For each team, identify:
- Ranking position (1st, 2nd, 3rd, ...)
- Team name exactly as displayed (keep tags and original formatting)
- Number of kills/eliminations

IMPORTANT:
- Extract ALL visible teams (up to {max_teams} teams)
- If a value is not visible, use 0
- Positions must be integers from 1 to {max_teams}
- Answer ONLY with valid JSON, no extra text

Response format:
{{
  "teams": [
    {{"position": number, "teamName": "string", "kills": number}}
  ]
}}
"""


def resolve_api_key(api_key: str | None = None) -> str:
    key = api_key or os.environ.get('GEMINI_API_KEY') or os.environ.get('GOOGLE_API_KEY') or ''
    if key.strip() in _PLACEHOLDER_KEYS:
        raise ConfigurationError(
            'Gemini is not configured: set GEMINI_API_KEY (or GOOGLE_API_KEY). '
            'Get an API key at https://aistudio.google.com/apikey')
    return key.strip()


class GeminiExtractionClient(ExtractionClient):
    """Send one screenshot to Gemini and return the raw response text."""

    def __init__(self, api_key: str | None = None, model: str | None = None):
        self.model = model or os.environ.get('GEMINI_MODEL') or DEFAULT_MODEL
        self._client = genai.Client(api_key=resolve_api_key(api_key))

    async def extract(self, image, max_teams: int) -> str:
        part = types.Part.from_bytes(data=image.read_bytes(), mime_type=image.mime_type)
        try:
            response = await self._client.aio.models.generate_content(
                model=self.model,
                contents=[part, build_prompt(max_teams)],
                config=types.GenerateContentConfig(
                    response_mime_type='application/json',
                    temperature=0,
                ),
            )
        except errors.APIError as e:
            if e.code == 429:
                raise RateLimitError(str(e), retry_after=parse_retry_delay(e)) from e
            if e.code in (401, 403) or 'api key' in str(e).lower():
                raise ConfigurationError(f'Gemini rejected the credentials: {e}') from e
            raise
        return response.text or ''
