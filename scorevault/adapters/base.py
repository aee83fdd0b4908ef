"""Abstract base adapter for loading score data from files."""

from abc import ABC, abstractmethod


class BackupFormatError(ValueError):
    """Raised when a data file does not have the expected layout."""


class BaseAdapter(ABC):
    @abstractmethod
    def parse(self, data_path: str) -> dict:
        """Parse a data file and return backup-shaped data.

        The dict must have keys:
            gymnasts, meets, scores, teamPlacements

        each a list of dicts using the backup JSON field names
        (id, name, level, discipline, meetId, gymnastId, scores,
        placements, createdAt, ...). Timestamps are epoch milliseconds.
        """
        pass
