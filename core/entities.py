from enum import Enum
from dataclasses import dataclass
from typing import Optional


class TournamentFormat(str, Enum):
    ROUND_ROBIN = "Round Robin"
    DOUBLE_ROUND_ROBIN = "Double Round Robin"
    SWISS = "Swiss"
    KNOCKOUT = "Knockout"
    LEAGUE = "League"

    @classmethod
    def parse(cls, value) -> Optional["TournamentFormat"]:
        """Accept the stored value, the member name or a slug like 'round-robin'."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None

        wanted = value.strip().lower().replace('-', ' ').replace('_', ' ')
        for fmt in cls:
            if wanted in (fmt.value.lower(), fmt.name.lower().replace('_', ' ')):
                return fmt
        return None


class MatchResult(str, Enum):
    WHITE_WINS = "1-0"
    BLACK_WINS = "0-1"
    DRAW = "1/2-1/2"

    @classmethod
    def is_valid(cls, value) -> bool:
        return value in [r.value for r in cls]


@dataclass(frozen=True)
class Player:
    id: str
    name: str
    lichess_username: Optional[str] = None
    email: Optional[str] = None


@dataclass(frozen=True)
class Pairing:
    """A scheduled game before it is persisted: no id, no result."""
    round: int
    white_player_id: str
    black_player_id: str
    white_player_name: str
    black_player_name: str

    def involves(self, player_id: str) -> bool:
        return player_id in (self.white_player_id, self.black_player_id)

    def to_insert(self, tournament_pk: int, match_id: str) -> dict:
        return {
            'match_id': match_id,
            'tournament_id': tournament_pk,
            'round': self.round,
            'white_player_id': self.white_player_id,
            'black_player_id': self.black_player_id,
            'white_player_name': self.white_player_name,
            'black_player_name': self.black_player_name,
            'result': None,
        }


@dataclass
class MatchRecord:
    white_player_id: str
    black_player_id: str
    result: Optional[str] = None
    round: int = 1
    match_id: Optional[str] = None
    white_player_name: str = ""
    black_player_name: str = ""
