import logging
from dataclasses import dataclass, asdict
from typing import Iterable, List, Optional

from .entities import MatchResult

logger = logging.getLogger(__name__)

WIN_POINTS = 1.0
DRAW_POINTS = 0.5


@dataclass
class StandingRow:
    player_id: str
    name: str
    played: int = 0
    wins: int = 0
    draws: int = 0
    losses: int = 0
    points: float = 0.0
    rank: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def _score(row: StandingRow, match, player_id: str):
    result = match.result
    is_white = match.white_player_id == player_id

    if result == MatchResult.WHITE_WINS.value:
        if is_white:
            row.wins += 1
        else:
            row.losses += 1
    elif result == MatchResult.BLACK_WINS.value:
        if is_white:
            row.losses += 1
        else:
            row.wins += 1
    elif result == MatchResult.DRAW.value:
        row.draws += 1
    else:
        logger.warning(
            f"Ignoring unrecognized result {result!r} for {match.white_player_id} vs {match.black_player_id}"
        )


def compute_standings(players: Iterable, matches: Iterable) -> List[StandingRow]:
    """
    Fold match results into ranked standings.

    Players need `id` and `name`; matches need `white_player_id`,
    `black_player_id` and `result` (ORM rows and MatchRecord both work).
    Matches without a result are pending and ignored. Players with no games
    are still listed with zeros.

    Ranking is points, then wins, then games played, all descending. Rows
    equal on all three keep their input order.
    """
    finished = [m for m in matches if m.result]

    standings = []
    for player in players:
        row = StandingRow(player_id=player.id, name=player.name)
        for match in finished:
            if player.id not in (match.white_player_id, match.black_player_id):
                continue
            row.played += 1
            _score(row, match, player.id)
        row.points = row.wins * WIN_POINTS + row.draws * DRAW_POINTS
        standings.append(row)

    standings.sort(key=lambda r: (r.points, r.wins, r.played), reverse=True)

    for i, row in enumerate(standings):
        row.rank = i + 1

    return standings


def current_leader(standings: List[StandingRow]) -> Optional[StandingRow]:
    """Top of the table once at least one game has been played."""
    for row in standings:
        if row.played > 0:
            return row
    return None
