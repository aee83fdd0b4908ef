"""Data models for the gymnastics team scoring system."""

from dataclasses import dataclass, field


WOMENS = 'Womens'
MENS = 'Mens'
DISCIPLINES = (WOMENS, MENS)


@dataclass
class Gymnast:
    """A gymnast on the roster."""
    id: str
    name: str
    level: str                        # "Level 7", "Xcel Gold", "Elite"
    discipline: str                   # "Womens" or "Mens"
    date_of_birth: int | None = None  # epoch milliseconds
    usag_number: str | None = None
    is_hidden: bool = False
    created_at: int = 0               # epoch milliseconds


@dataclass
class Meet:
    """A single competition."""
    id: str
    name: str
    date: int                         # epoch milliseconds
    season: str                       # "2025-2026"
    location: str | None = None
    created_at: int = 0


@dataclass
class Score:
    """One gymnast's results at one meet.

    ``scores`` maps event key -> value (None when the apparatus was not
    competed) and always carries ``allAround``. ``placements`` maps the
    same keys to an optional integer place.
    """
    id: str
    meet_id: str
    gymnast_id: str
    level: str | None = None          # level at time of competition
    scores: dict = field(default_factory=dict)
    placements: dict = field(default_factory=dict)
    created_at: int = 0


@dataclass(frozen=True)
class CountingScore:
    """An individual score that was among the top N for its event."""
    gymnast_id: str
    event: str
    score: float


@dataclass
class TeamScoreResult:
    team_scores: dict                 # event -> team total for that event
    total_score: float
    counting_scores: list = field(default_factory=list)


@dataclass
class TeamPlacement:
    """Team placements for one level/discipline at one meet."""
    id: str
    meet_id: str
    level: str
    discipline: str
    placements: dict = field(default_factory=dict)  # event/allAround -> place
    created_at: int = 0


@dataclass
class StoreConfig:
    """Configuration for a command-line run."""
    db_path: str                      # "./scorevault.db"
    output_dir: str = '.'
    counting_count: int = 3           # 3, or 5 for lower levels at state meets
