from datetime import datetime
from flask_sqlalchemy import SQLAlchemy

from core.entities import Player as PlayerEntity

db = SQLAlchemy()


class Player(db.Model):
    __tablename__ = 'players'

    # Subject identifier issued by the identity provider
    id = db.Column(db.String(100), primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    lichess_username = db.Column(db.String(100), nullable=True)
    email = db.Column(db.String(200), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_entity(self) -> PlayerEntity:
        return PlayerEntity(
            id=self.id,
            name=self.name,
            lichess_username=self.lichess_username,
            email=self.email
        )

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'lichess_username': self.lichess_username,
            'email': self.email,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class Tournament(db.Model):
    __tablename__ = 'tournaments'

    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.String(50), unique=True, nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    format = db.Column(db.String(50), nullable=False, default='Round Robin')
    max_players = db.Column(db.Integer, default=32)
    total_rounds = db.Column(db.Integer, default=1)
    registration_open = db.Column(db.Boolean, default=True)
    is_active = db.Column(db.Boolean, default=False)
    rules = db.Column(db.Text, nullable=True)
    created_by = db.Column(db.String(100), nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self, player_count: int = None):
        data = {
            'tournament_id': self.tournament_id,
            'name': self.name,
            'format': self.format,
            'max_players': self.max_players,
            'total_rounds': self.total_rounds,
            'registration_open': self.registration_open,
            'is_active': self.is_active,
            'rules': self.rules,
            'created_by': self.created_by,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
        if player_count is not None:
            data['player_count'] = player_count
        return data


class Registration(db.Model):
    __tablename__ = 'registrations'

    id = db.Column(db.Integer, primary_key=True)
    # The store does not cascade; children are removed before their tournament
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournaments.id'), nullable=False, index=True)
    player_id = db.Column(db.String(100), db.ForeignKey('players.id'), nullable=False, index=True)
    registered_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('tournament_id', 'player_id', name='unique_registration'),
    )

    def to_dict(self, public_tournament_id: str = None):
        return {
            'tournament_id': public_tournament_id or self.tournament_id,
            'player_id': self.player_id,
            'registered_at': self.registered_at.isoformat() if self.registered_at else None,
        }


class Match(db.Model):
    __tablename__ = 'matches'

    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.String(50), nullable=False, index=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournaments.id'), nullable=False, index=True)
    round = db.Column(db.Integer, nullable=False)

    white_player_id = db.Column(db.String(100), nullable=False)
    black_player_id = db.Column(db.String(100), nullable=False)
    # Snapshotted when the schedule is generated; renames do not propagate
    white_player_name = db.Column(db.String(100), nullable=False)
    black_player_name = db.Column(db.String(100), nullable=False)

    result = db.Column(db.String(10), nullable=True)  # '1-0', '0-1', '1/2-1/2'
    scheduled_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('match_id', 'tournament_id', name='unique_match_per_tournament'),
    )

    @property
    def status(self) -> str:
        return 'completed' if self.result else 'pending'

    def to_dict(self):
        return {
            'id': self.match_id,
            'round': self.round,
            'white_player_id': self.white_player_id,
            'black_player_id': self.black_player_id,
            'white_player_name': self.white_player_name,
            'black_player_name': self.black_player_name,
            'result': self.result,
            'status': self.status,
            'scheduled_at': self.scheduled_at.isoformat() if self.scheduled_at else None,
        }
