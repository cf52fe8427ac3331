"""Abstract base adapters for the engine's external collaborators."""

from abc import ABC, abstractmethod


class BaseAdapter(ABC):
    @abstractmethod
    def parse(self, data_path: str) -> list:
        """Parse an input file and return its rows.

        RosterAdapter returns RegisteredTeam objects; ManualResultsAdapter
        returns dicts with keys team, placement, kills.
        """
        pass


class ExtractionClient(ABC):
    """Vision extraction service: one image in, raw model text out."""

    @abstractmethod
    async def extract(self, image, max_teams: int) -> str:
        """Return the service's text response for one ImageSource.

        The text is expected to contain {"teams": [{"position", "teamName", "kills"}]}
        but nothing about ordering or uniqueness is guaranteed.
        """
        pass
