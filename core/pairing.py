"""
Schedule generation for chess tournaments.

Every function here is pure: given a format and an ordered roster it returns
the rounds of pairings with white/black already assigned. Nothing is
persisted and no randomness is involved, so the same roster in the same
order always yields the same schedule.
"""
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from .entities import Pairing, Player, TournamentFormat
from .errors import InsufficientPlayers, InvalidConfiguration, Outcome, UnsupportedFormat

logger = logging.getLogger(__name__)

MIN_PLAYERS = 2

Round = List[Pairing]
ColorTally = Dict[str, Dict[str, int]]


def _new_tally(players: Sequence[Player]) -> ColorTally:
    return {p.id: {'white': 0, 'black': 0} for p in players}


def _first_is_white_on_tie(a: Player, b: Player, positions: Dict[str, int], reverse: bool) -> bool:
    """Alphabetical tie-break; equal names fall back to roster order."""
    first_is_smaller = (a.name.lower(), positions[a.id]) < (b.name.lower(), positions[b.id])
    return first_is_smaller != reverse


def _assign_colors(
    a: Player,
    b: Player,
    tally: ColorTally,
    positions: Dict[str, int],
    cycle: int = 0,
    compare_blacks: bool = True
) -> Tuple[Player, Player]:
    a_counts, b_counts = tally[a.id], tally[b.id]

    if a_counts['white'] != b_counts['white']:
        a_white = a_counts['white'] < b_counts['white']
    elif compare_blacks and a_counts['black'] != b_counts['black']:
        a_white = a_counts['black'] > b_counts['black']
    else:
        a_white = _first_is_white_on_tie(a, b, positions, reverse=cycle % 2 == 1)

    white, black = (a, b) if a_white else (b, a)
    tally[white.id]['white'] += 1
    tally[black.id]['black'] += 1
    return white, black


def _pairing(round_num: int, white: Player, black: Player) -> Pairing:
    return Pairing(
        round=round_num,
        white_player_id=white.id,
        black_player_id=black.id,
        white_player_name=white.name,
        black_player_name=black.name
    )


def _unique_pairs(players: Sequence[Player]) -> List[Tuple[Player, Player]]:
    return [
        (players[i], players[j])
        for i in range(len(players))
        for j in range(i + 1, len(players))
    ]


def single_round_robin(players: Sequence[Player]) -> List[Round]:
    """
    Circle method: the last seat stays fixed while the others rotate.

    Odd rosters get an empty seat (the bye); games against it are dropped,
    so a player's bye round simply has no match for them.
    """
    seats: List[Optional[Player]] = list(players)
    if len(seats) % 2 == 1:
        seats.append(None)

    seat_count = len(seats)
    rotating = seat_count - 1
    positions = {p.id: i for i, p in enumerate(players)}
    tally = _new_tally(players)

    games_by_round = []
    for round_idx in range(rotating):
        games = []
        for slot in range(seat_count // 2):
            if slot == 0:
                a = seats[seat_count - 1]
                b = seats[round_idx % rotating]
            else:
                a = seats[(round_idx + slot) % rotating]
                b = seats[(rotating - slot + round_idx) % rotating]

            if a is None or b is None:
                continue
            games.append(_assign_colors(a, b, tally, positions, compare_blacks=False))

        if games:
            games_by_round.append(games)

    return [
        [_pairing(round_num, white, black) for white, black in games]
        for round_num, games in enumerate(games_by_round, start=1)
    ]


def multi_cycle_round_robin(players: Sequence[Player], cycles: int) -> List[Round]:
    """Every unordered pair once per cycle; each cycle is numbered as one round."""
    positions = {p.id: i for i, p in enumerate(players)}
    tally = _new_tally(players)
    pairs = _unique_pairs(players)

    rounds = []
    for cycle in range(cycles):
        round_num = cycle + 1
        rounds.append([
            _pairing(round_num, *_assign_colors(a, b, tally, positions, cycle=cycle))
            for a, b in pairs
        ])
    return rounds


def double_round_robin(players: Sequence[Player]) -> List[Round]:
    """Two rounds over the same pairs; round 2 swaps every color from round 1."""
    positions = {p.id: i for i, p in enumerate(players)}

    first, second = [], []
    for a, b in _unique_pairs(players):
        white, black = (a, b) if _first_is_white_on_tie(a, b, positions, reverse=False) else (b, a)
        first.append(_pairing(1, white, black))
        second.append(_pairing(2, black, white))
    return [first, second]


def swiss_first_round(players: Sequence[Player]) -> List[Round]:
    """
    Round 1 seeding only, alphabetical as a stand-in for ratings.

    Consecutive players meet; the white side alternates every other board.
    An odd player out sits the round without a recorded match.
    """
    seeded = sorted(players, key=lambda p: p.name.lower())

    games = []
    for i in range(0, len(seeded) - 1, 2):
        if i % 4 == 0:
            white, black = seeded[i], seeded[i + 1]
        else:
            white, black = seeded[i + 1], seeded[i]
        games.append(_pairing(1, white, black))
    return [games]


def generate_schedule(
    tournament_format,
    players: Sequence[Player],
    total_rounds: Optional[int] = 1
) -> Outcome:
    """
    Build the full schedule for a tournament.

    Args:
        tournament_format: TournamentFormat or any string TournamentFormat.parse accepts
        players: Ordered roster; order decides pair enumeration and name ties
        total_rounds: Cycle count for Round Robin, ignored by other formats

    Returns:
        Outcome carrying a list of rounds (each a list of Pairing) or the
        TournamentError explaining why nothing was generated.
    """
    roster = list(players)

    if len(roster) < MIN_PLAYERS:
        return Outcome.failure(InsufficientPlayers(len(roster), MIN_PLAYERS))

    if len({p.id for p in roster}) != len(roster):
        return Outcome.failure(InvalidConfiguration("Roster contains the same player twice"))

    fmt = TournamentFormat.parse(tournament_format)

    if fmt == TournamentFormat.ROUND_ROBIN:
        cycles = 1 if total_rounds is None else total_rounds
        if not isinstance(cycles, int) or isinstance(cycles, bool) or cycles < 1:
            return Outcome.failure(
                InvalidConfiguration(f"Round Robin needs at least 1 cycle, got {total_rounds}")
            )
        if cycles == 1:
            rounds = single_round_robin(roster)
        else:
            rounds = multi_cycle_round_robin(roster, cycles)
    elif fmt == TournamentFormat.DOUBLE_ROUND_ROBIN:
        rounds = double_round_robin(roster)
    elif fmt == TournamentFormat.SWISS:
        rounds = swiss_first_round(roster)
    else:
        return Outcome.failure(UnsupportedFormat(tournament_format))

    logger.debug(
        f"Generated {sum(len(r) for r in rounds)} pairings in {len(rounds)} rounds "
        f"for {len(roster)} players ({fmt.value})"
    )
    return Outcome.success(rounds)


def flatten(rounds: Sequence[Round]) -> List[Pairing]:
    return [pairing for rnd in rounds for pairing in rnd]


def color_balance(pairings) -> ColorTally:
    """Count whites and blacks per player over pairings or persisted matches."""
    tally: ColorTally = {}
    for p in pairings:
        tally.setdefault(p.white_player_id, {'white': 0, 'black': 0})['white'] += 1
        tally.setdefault(p.black_player_id, {'white': 0, 'black': 0})['black'] += 1
    return tally


def recommend_format(player_count: int) -> Optional[TournamentFormat]:
    """Suggested format for a roster size, None when too few players to bother."""
    if player_count < 4:
        return None
    if player_count <= 8:
        return TournamentFormat.ROUND_ROBIN
    if player_count <= 16:
        return TournamentFormat.SWISS
    if player_count <= 32:
        return TournamentFormat.LEAGUE
    return TournamentFormat.KNOCKOUT
