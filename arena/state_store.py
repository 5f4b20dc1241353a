import logging
from typing import Callable, Dict, List, Optional

from core.entities import MatchRecord, Player
from core.pubsub import ALL_TABLES, ChangeFeed
from core.standings import StandingRow, compute_standings, current_leader

logger = logging.getLogger(__name__)


class TournamentStateStore:
    """
    Last-fetched snapshot of tournaments, players, registrations and matches.

    Built explicitly and handed to whatever needs it. Any change on the feed
    marks the snapshot stale; the next read reloads it through `loader`.
    Standings are computed once per snapshot and shared by every reader.
    """

    def __init__(self, loader: Callable[[], dict], feed: ChangeFeed = None):
        self.loader = loader
        self.tournaments: List[dict] = []
        self.players: List[Player] = []
        self.registrations: List[dict] = []
        self.matches: List[dict] = []
        self.is_loading = False
        self.error: Optional[str] = None
        self._stale = True
        self._version = 0
        self._standings: Dict[str, List[StandingRow]] = {}

        if feed is not None:
            feed.subscribe(ALL_TABLES, self.on_change)

    def on_change(self, table: str, event_type, row: dict):
        logger.debug(f"{table} {getattr(event_type, 'value', event_type)}; snapshot marked stale")
        self._version += 1
        self._stale = True
        self._standings = {}

    @property
    def is_stale(self) -> bool:
        return self._stale

    def refresh(self) -> bool:
        self.is_loading = True
        version = self._version
        try:
            snapshot = self.loader()
        except Exception as e:
            logger.exception("Failed to load tournament data")
            self.error = f"Failed to load tournament data: {e}"
            return False
        finally:
            self.is_loading = False

        self.tournaments = snapshot.get('tournaments', [])
        self.players = snapshot.get('players', [])
        self.registrations = snapshot.get('registrations', [])
        self.matches = snapshot.get('matches', [])
        self.error = None
        # A change that arrived while loading may not be in this snapshot
        self._stale = self._version != version
        self._standings = {}
        return True

    def _ensure_fresh(self):
        if self._stale:
            self.refresh()

    # ==================== Selectors ====================

    def get_tournament_by_id(self, tournament_id: str) -> Optional[dict]:
        self._ensure_fresh()
        for t in self.tournaments:
            if t['tournament_id'] == tournament_id:
                return t
        return None

    def players_by_tournament(self, tournament_id: str) -> List[Player]:
        self._ensure_fresh()
        registered = {r['player_id'] for r in self.registrations if r['tournament_id'] == tournament_id}
        return [p for p in self.players if p.id in registered]

    def matches_by_tournament(self, tournament_id: str) -> List[dict]:
        self._ensure_fresh()
        return [m for m in self.matches if m['tournament_id'] == tournament_id]

    def is_player_registered(self, tournament_id: str, player_id: str) -> bool:
        self._ensure_fresh()
        return any(
            r['tournament_id'] == tournament_id and r['player_id'] == player_id
            for r in self.registrations
        )

    def active_tournament(self) -> Optional[dict]:
        """First active tournament, else the most recent one."""
        self._ensure_fresh()
        for t in self.tournaments:
            if t['is_active']:
                return t
        return self.tournaments[0] if self.tournaments else None

    def standings(self, tournament_id: str) -> List[StandingRow]:
        self._ensure_fresh()
        cache = self._standings
        rows = cache.get(tournament_id)
        if rows is None:
            matches = [
                MatchRecord(
                    white_player_id=m['white_player_id'],
                    black_player_id=m['black_player_id'],
                    result=m['result'],
                    round=m['round'],
                    match_id=m['id']
                )
                for m in self.matches_by_tournament(tournament_id)
            ]
            rows = compute_standings(self.players_by_tournament(tournament_id), matches)
            cache[tournament_id] = rows
        return rows

    def leader(self, tournament_id: str) -> Optional[StandingRow]:
        return current_leader(self.standings(tournament_id))
