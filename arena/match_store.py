import logging
from typing import List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from core.entities import MatchResult, Pairing
from core.errors import MalformedResult, NotFound, Outcome, PersistenceFailure
from core.events import ChangeType, Table
from core.pubsub import ChangeFeed
from .models import db, Match, Player, Registration, Tournament
from .name_generator import generate_match_id

logger = logging.getLogger(__name__)


class MatchStore:
    """
    Persistence boundary for rosters and matches.

    Writes either fully commit or roll back; callers never see half a
    schedule. Every committed write is announced on the change feed.
    """

    def __init__(self, feed: ChangeFeed):
        self.feed = feed

    def fetch_roster(self, tournament: Tournament) -> List[Player]:
        return (
            Player.query
            .join(Registration, Registration.player_id == Player.id)
            .filter(Registration.tournament_id == tournament.id)
            .order_by(Player.name, Player.id)
            .all()
        )

    def list_matches(self, tournament: Tournament, status: str = None) -> List[Match]:
        query = Match.query.filter_by(tournament_id=tournament.id)

        if status == 'pending':
            query = query.filter(Match.result.is_(None))
        elif status == 'completed':
            query = query.filter(Match.result.isnot(None))

        return query.order_by(Match.round, Match.id).all()

    def count_matches(self, tournament: Tournament) -> int:
        return Match.query.filter_by(tournament_id=tournament.id).count()

    def get_match(self, tournament: Tournament, match_id: str) -> Optional[Match]:
        return Match.query.filter_by(tournament_id=tournament.id, match_id=match_id).first()

    def bulk_insert_matches(self, tournament: Tournament, rounds: Sequence[Sequence[Pairing]]) -> Outcome:
        created = []
        try:
            for rnd in rounds:
                for board, pairing in enumerate(rnd, start=1):
                    match = Match(**pairing.to_insert(tournament.id, generate_match_id(pairing.round, board)))
                    db.session.add(match)
                    created.append(match)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Bulk insert of {len(created)} matches for {tournament.tournament_id} failed: {e}")
            return Outcome.failure(PersistenceFailure(f"Failed to save schedule: {e}"))

        for match in created:
            self.feed.publish(Table.MATCHES, ChangeType.INSERT, match.to_dict(), tournament.tournament_id)

        logger.info(f"Inserted {len(created)} matches for {tournament.tournament_id}")
        return Outcome.success(created)

    def delete_matches(self, tournament: Tournament) -> Outcome:
        try:
            deleted = Match.query.filter_by(tournament_id=tournament.id).delete(synchronize_session=False)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Deleting matches for {tournament.tournament_id} failed: {e}")
            return Outcome.failure(PersistenceFailure(f"Failed to clear existing matches: {e}"))

        if deleted:
            self.feed.publish(
                Table.MATCHES, ChangeType.DELETE, {'deleted': deleted}, tournament.tournament_id
            )
        logger.info(f"Deleted {deleted} matches for {tournament.tournament_id}")
        return Outcome.success(deleted)

    def update_match_result(self, tournament: Tournament, match_id: str, result: str) -> Outcome:
        if not MatchResult.is_valid(result):
            return Outcome.failure(MalformedResult(result))

        match = self.get_match(tournament, match_id)
        if not match:
            return Outcome.failure(NotFound(f"Match {match_id} not found"))

        # Resubmission overwrites the earlier result
        match.result = result
        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Saving result for {match_id} in {tournament.tournament_id} failed: {e}")
            return Outcome.failure(PersistenceFailure(f"Failed to submit match result: {e}"))

        self.feed.publish(Table.MATCHES, ChangeType.UPDATE, match.to_dict(), tournament.tournament_id)
        return Outcome.success(match)
