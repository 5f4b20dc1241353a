import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.entities import TournamentFormat
from core.errors import (
    InvalidConfiguration,
    NotAllowed,
    NotFound,
    Outcome,
    PersistenceFailure,
    ScheduleBusy,
    TournamentError,
    UnsupportedFormat,
)
from core.events import ChangeType, Table
from core.pairing import color_balance, flatten, generate_schedule, recommend_format
from core.pubsub import ChangeFeed
from core.standings import compute_standings
from core.state_machine import TournamentStateMachine, TransitionError
from .locks import ScheduleLock
from .match_store import MatchStore
from .models import db, Match, Player, Registration, Tournament
from .name_generator import generate_short_id, generate_tournament_id

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ('name', 'rules', 'format', 'max_players', 'total_rounds', 'registration_open')


class TournamentRegistry:
    """
    Manages tournament lifecycle:
    - Create/update/delete tournament records
    - Player sign-up and registration
    - Schedule generation on activation and on demand
    - Result submission, schedule and standings views
    """

    def __init__(self, feed: ChangeFeed = None, lock: ScheduleLock = None,
                 default_max_players: int = 32, registration_wait: float = 5):
        self.feed = feed or ChangeFeed()
        self.lock = lock or ScheduleLock()
        self.store = MatchStore(self.feed)
        self.default_max_players = default_max_players
        self.registration_wait = registration_wait

    # ==================== Lookups ====================

    def get_tournament(self, tournament_id: str) -> Optional[Tournament]:
        """Get tournament by its public ID."""
        return Tournament.query.filter_by(tournament_id=tournament_id).first()

    def _require_tournament(self, tournament_id: str) -> Tournament:
        tournament = self.get_tournament(tournament_id)
        if not tournament:
            raise NotFound(f"Tournament {tournament_id} not found")
        return tournament

    def list_tournaments(self, active: bool = None, limit: int = 50, offset: int = 0) -> List[Tournament]:
        query = Tournament.query

        if active is not None:
            query = query.filter_by(is_active=active)

        query = query.order_by(Tournament.created_at.desc(), Tournament.id.desc())
        return query.offset(offset).limit(limit).all()

    def player_count(self, tournament: Tournament) -> int:
        return Registration.query.filter_by(tournament_id=tournament.id).count()

    def get_roster(self, tournament_id: str) -> Outcome:
        try:
            tournament = self._require_tournament(tournament_id)
        except TournamentError as e:
            return Outcome.failure(e)
        return Outcome.success(self.store.fetch_roster(tournament))

    # ==================== Tournament CRUD ====================

    def _validate_settings(self, fmt, max_players, total_rounds) -> Optional[TournamentError]:
        if TournamentFormat.parse(fmt) is None:
            return UnsupportedFormat(fmt)
        if not isinstance(max_players, int) or max_players < 2:
            return InvalidConfiguration("max_players must be an integer of at least 2")
        if not isinstance(total_rounds, int) or total_rounds < 1:
            return InvalidConfiguration("total_rounds must be an integer of at least 1")
        return None

    def _new_tournament_id(self) -> str:
        for _ in range(10):
            candidate = generate_tournament_id()
            if not self.get_tournament(candidate):
                return candidate
        return generate_short_id('t_')

    def create_tournament(
        self,
        name: str,
        tournament_format: str,
        created_by: str,
        max_players: int = None,
        total_rounds: int = 1,
        rules: str = None,
        registration_open: bool = True
    ) -> Outcome:
        """Create a new tournament with registration open."""
        if not name or not name.strip():
            return Outcome.failure(InvalidConfiguration("Tournament name is required"))

        if max_players is None:
            max_players = self.default_max_players

        error = self._validate_settings(tournament_format, max_players, total_rounds)
        if error:
            return Outcome.failure(error)

        tournament = Tournament(
            tournament_id=self._new_tournament_id(),
            name=name.strip(),
            format=TournamentFormat.parse(tournament_format).value,
            max_players=max_players,
            total_rounds=total_rounds,
            rules=rules,
            registration_open=registration_open,
            is_active=False,
            created_by=created_by
        )

        try:
            db.session.add(tournament)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Creating tournament {name!r} failed: {e}")
            return Outcome.failure(PersistenceFailure(f"Failed to create tournament: {e}"))

        logger.info(f"Created tournament {tournament.tournament_id} ({tournament.format})")
        self.feed.publish(Table.TOURNAMENTS, ChangeType.INSERT, tournament.to_dict(), tournament.tournament_id)
        return Outcome.success(tournament)

    def update_tournament(self, tournament_id: str, **changes) -> Outcome:
        try:
            tournament = self._require_tournament(tournament_id)
            TournamentStateMachine.for_tournament(tournament).require('edit')
        except TournamentError as e:
            return Outcome.failure(e)

        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            return Outcome.failure(InvalidConfiguration(f"Cannot update fields: {', '.join(sorted(unknown))}"))

        fmt = changes.get('format', tournament.format)
        error = self._validate_settings(
            fmt,
            changes.get('max_players', tournament.max_players),
            changes.get('total_rounds', tournament.total_rounds)
        )
        if error:
            return Outcome.failure(error)
        if 'format' in changes:
            changes['format'] = TournamentFormat.parse(fmt).value
        if 'name' in changes and not (changes['name'] or '').strip():
            return Outcome.failure(InvalidConfiguration("Tournament name is required"))

        for field, value in changes.items():
            setattr(tournament, field, value)

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            return Outcome.failure(PersistenceFailure(f"Failed to update tournament: {e}"))

        self.feed.publish(Table.TOURNAMENTS, ChangeType.UPDATE, tournament.to_dict(), tournament.tournament_id)
        return Outcome.success(tournament)

    def delete_tournament(self, tournament_id: str) -> Outcome:
        """Delete matches, then registrations, then the tournament itself."""
        tournament = self.get_tournament(tournament_id)
        if not tournament:
            return Outcome.failure(NotFound(f"Tournament {tournament_id} not found"))

        try:
            with self.lock.hold(tournament_id):
                ok, deleted = self.store.delete_matches(tournament)
                if not ok:
                    return Outcome.failure(deleted)

                try:
                    Registration.query.filter_by(tournament_id=tournament.id).delete(synchronize_session=False)
                    db.session.commit()
                    db.session.delete(tournament)
                    db.session.commit()
                except SQLAlchemyError as e:
                    db.session.rollback()
                    logger.error(f"Deleting tournament {tournament_id} failed: {e}")
                    return Outcome.failure(PersistenceFailure(f"Failed to delete tournament: {e}"))
        except ScheduleBusy as e:
            return Outcome.failure(e)

        logger.info(f"Deleted tournament {tournament_id} and {deleted} matches")
        self.feed.publish(Table.TOURNAMENTS, ChangeType.DELETE, {'tournament_id': tournament_id}, tournament_id)
        return Outcome.success({'tournament_id': tournament_id, 'deleted_matches': deleted})

    # ==================== Players & Registration ====================

    def upsert_player(self, identity, name: str = None, lichess_username: str = None) -> Outcome:
        """
        Create the player record for an identity on first use, or update the
        mutable profile fields (name, lichess username) afterwards.
        """
        player = db.session.get(Player, identity.id)
        created = player is None

        if created:
            display_name = (name or identity.display_name or identity.email or '').strip()
            if not display_name:
                return Outcome.failure(InvalidConfiguration("Player name is required"))
            player = Player(id=identity.id, name=display_name, email=identity.email)
            db.session.add(player)
        elif name is not None:
            if not name.strip():
                return Outcome.failure(InvalidConfiguration("Player name is required"))
            player.name = name.strip()

        if lichess_username is not None:
            player.lichess_username = lichess_username.strip() or None

        try:
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            return Outcome.failure(PersistenceFailure(f"Failed to save player: {e}"))

        self.feed.publish(Table.PLAYERS, ChangeType.INSERT if created else ChangeType.UPDATE, player.to_dict())
        return Outcome.success(player)

    def register_player(self, tournament_id: str, player_id: str) -> Outcome:
        try:
            with self.lock.hold(tournament_id, wait=self.registration_wait):
                return self._register_locked(tournament_id, player_id)
        except ScheduleBusy as e:
            return Outcome.failure(e)

    def _register_locked(self, tournament_id: str, player_id: str) -> Outcome:
        try:
            tournament = self._require_tournament(tournament_id)
            if not db.session.get(Player, player_id):
                raise NotFound(f"Player {player_id} not found")
            TournamentStateMachine.for_tournament(tournament).require('register')
        except TransitionError:
            reason = 'Tournament is active' if tournament.is_active else 'Registration is closed'
            return Outcome.failure(NotAllowed(reason))
        except TournamentError as e:
            return Outcome.failure(e)

        if Registration.query.filter_by(tournament_id=tournament.id, player_id=player_id).first():
            return Outcome.failure(InvalidConfiguration("Player is already registered for this tournament"))

        if self.player_count(tournament) >= tournament.max_players:
            return Outcome.failure(NotAllowed("Tournament is full"))

        registration = Registration(tournament_id=tournament.id, player_id=player_id)
        try:
            db.session.add(registration)
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            return Outcome.failure(InvalidConfiguration("Player is already registered for this tournament"))
        except SQLAlchemyError as e:
            db.session.rollback()
            return Outcome.failure(PersistenceFailure(f"Failed to register for tournament: {e}"))

        self.feed.publish(
            Table.REGISTRATIONS, ChangeType.INSERT, registration.to_dict(tournament_id), tournament_id
        )
        return Outcome.success(registration)

    def unregister_player(self, tournament_id: str, player_id: str) -> Outcome:
        try:
            with self.lock.hold(tournament_id, wait=self.registration_wait):
                return self._unregister_locked(tournament_id, player_id)
        except ScheduleBusy as e:
            return Outcome.failure(e)

    def _unregister_locked(self, tournament_id: str, player_id: str) -> Outcome:
        try:
            tournament = self._require_tournament(tournament_id)
            TournamentStateMachine.for_tournament(tournament).require('unregister')
        except TransitionError:
            return Outcome.failure(NotAllowed("Cannot unregister once the tournament is active"))
        except TournamentError as e:
            return Outcome.failure(e)

        registration = Registration.query.filter_by(tournament_id=tournament.id, player_id=player_id).first()
        if not registration:
            return Outcome.failure(NotFound("Player is not registered for this tournament"))

        try:
            db.session.delete(registration)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            return Outcome.failure(PersistenceFailure(f"Failed to unregister from tournament: {e}"))

        self.feed.publish(
            Table.REGISTRATIONS,
            ChangeType.DELETE,
            {'tournament_id': tournament_id, 'player_id': player_id},
            tournament_id
        )
        return Outcome.success(True)

    def is_player_registered(self, tournament_id: str, player_id: str) -> bool:
        tournament = self.get_tournament(tournament_id)
        if not tournament:
            return False
        return Registration.query.filter_by(tournament_id=tournament.id, player_id=player_id).count() > 0

    # ==================== Schedule ====================

    def _build_schedule(self, tournament: Tournament) -> Outcome:
        roster = [p.to_entity() for p in self.store.fetch_roster(tournament)]

        outcome = generate_schedule(tournament.format, roster, tournament.total_rounds)
        if not outcome.ok:
            logger.info(f"No schedule for {tournament.tournament_id}: {outcome.error}")
        return outcome

    def _generate_and_store(self, tournament: Tournament) -> Outcome:
        ok, rounds = self._build_schedule(tournament)
        if not ok:
            return Outcome.failure(rounds)
        return self.store.bulk_insert_matches(tournament, rounds)

    def _sync_schedule(self, tournament: Tournament) -> Outcome:
        """
        Make the stored matches match what the current roster, format and
        cycle count generate. An identical schedule is kept with its results;
        anything else is replaced. Returns the number of matches created.
        """
        ok, rounds = self._build_schedule(tournament)
        if not ok:
            return Outcome.failure(rounds)

        wanted = sorted((p.round, p.white_player_id, p.black_player_id) for p in flatten(rounds))
        stored = sorted((m.round, m.white_player_id, m.black_player_id) for m in self.store.list_matches(tournament))
        if wanted == stored:
            return Outcome.success(0)

        if stored:
            ok, deleted = self.store.delete_matches(tournament)
            if not ok:
                return Outcome.failure(deleted)
            logger.info(f"Schedule for {tournament.tournament_id} is out of date; discarded {deleted} matches")

        ok, matches = self.store.bulk_insert_matches(tournament, rounds)
        if not ok:
            return Outcome.failure(matches)
        return Outcome.success(len(matches))

    def activate_tournament(self, tournament_id: str) -> Outcome:
        """
        Toggle activation. Activating brings the schedule in line with the
        current roster and settings; if generation fails it stays inactive.
        """
        tournament = self.get_tournament(tournament_id)
        if not tournament:
            return Outcome.failure(NotFound(f"Tournament {tournament_id} not found"))

        sm = TournamentStateMachine.for_tournament(tournament)
        try:
            with self.lock.hold(tournament_id):
                created = 0
                if sm.can_perform('deactivate'):
                    sm.transition('deactivate')
                else:
                    ok, created = self._sync_schedule(tournament)
                    if not ok:
                        return Outcome.failure(created)
                    sm.transition('activate')

                tournament.is_active = sm.is_active
                db.session.commit()
        except TournamentError as e:
            return Outcome.failure(e)
        except SQLAlchemyError as e:
            db.session.rollback()
            return Outcome.failure(PersistenceFailure(f"Failed to update tournament: {e}"))

        logger.info(f"Tournament {tournament_id} is now {sm.phase.value} ({created} matches generated)")
        self.feed.publish(Table.TOURNAMENTS, ChangeType.UPDATE, tournament.to_dict(), tournament_id)
        return Outcome.success({'tournament': tournament, 'created': created})

    def regenerate_schedule(self, tournament_id: str) -> Outcome:
        """Discard every match (and result) for the tournament and generate afresh."""
        tournament = self.get_tournament(tournament_id)
        if not tournament:
            return Outcome.failure(NotFound(f"Tournament {tournament_id} not found"))

        try:
            TournamentStateMachine.for_tournament(tournament).require('regenerate')
            with self.lock.hold(tournament_id):
                ok, deleted = self.store.delete_matches(tournament)
                if not ok:
                    return Outcome.failure(deleted)

                ok, matches = self._generate_and_store(tournament)
                if not ok:
                    return Outcome.failure(matches)
        except TournamentError as e:
            return Outcome.failure(e)

        logger.info(f"Regenerated {tournament_id}: deleted {deleted}, created {len(matches)} matches")
        return Outcome.success({'deleted': deleted, 'created': len(matches)})

    def list_matches(self, tournament_id: str, status: str = None) -> Outcome:
        if status not in (None, 'pending', 'completed'):
            return Outcome.failure(InvalidConfiguration(f"Unknown match status '{status}'"))
        try:
            tournament = self._require_tournament(tournament_id)
        except TournamentError as e:
            return Outcome.failure(e)
        return Outcome.success(self.store.list_matches(tournament, status))

    def submit_result(self, tournament_id: str, match_id: str, result: str) -> Outcome:
        try:
            tournament = self._require_tournament(tournament_id)
            TournamentStateMachine.for_tournament(tournament).require('record_result')
        except TournamentError as e:
            return Outcome.failure(e)

        return self.store.update_match_result(tournament, match_id, result)

    def schedule(self, tournament_id: str) -> Outcome:
        """Matches grouped by round with completion counts."""
        try:
            tournament = self._require_tournament(tournament_id)
        except TournamentError as e:
            return Outcome.failure(e)

        matches = self.store.list_matches(tournament)
        rounds = {}
        for match in matches:
            rounds.setdefault(match.round, []).append(match)

        return Outcome.success({
            'tournament_id': tournament_id,
            'format': tournament.format,
            'rounds': [
                {
                    'round': round_num,
                    'completed': sum(1 for m in round_matches if m.result),
                    'total': len(round_matches),
                    'matches': [m.to_dict() for m in round_matches],
                }
                for round_num, round_matches in sorted(rounds.items())
            ],
            'color_balance': color_balance(matches),
        })

    def standings(self, tournament_id: str) -> Outcome:
        try:
            tournament = self._require_tournament(tournament_id)
        except TournamentError as e:
            return Outcome.failure(e)

        rows = compute_standings(self.store.fetch_roster(tournament), self.store.list_matches(tournament))
        return Outcome.success(rows)

    def recommended_format(self, tournament_id: str) -> Outcome:
        try:
            tournament = self._require_tournament(tournament_id)
        except TournamentError as e:
            return Outcome.failure(e)
        return Outcome.success(recommend_format(self.player_count(tournament)))

    # ==================== Snapshot ====================

    def load_snapshot(self) -> dict:
        """Everything the state store caches, keyed by public tournament id."""
        tournaments = Tournament.query.order_by(Tournament.created_at.desc(), Tournament.id.desc()).all()
        public_ids = {t.id: t.tournament_id for t in tournaments}

        return {
            'tournaments': [t.to_dict() for t in tournaments],
            'players': [p.to_entity() for p in Player.query.order_by(Player.name).all()],
            'registrations': [
                r.to_dict(public_ids.get(r.tournament_id)) for r in Registration.query.all()
            ],
            'matches': [
                dict(m.to_dict(), tournament_id=public_ids.get(m.tournament_id))
                for m in Match.query.order_by(Match.round, Match.id).all()
            ],
        }
