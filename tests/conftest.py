"""
Pytest configuration and fixtures for tournament service tests.
"""
import os
import sys
import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

# Set testing environment before importing app
os.environ['FLASK_ENV'] = 'testing'

from arena.app import create_app
from arena.models import db, Player, Registration
from core.entities import Player as PlayerEntity


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app('testing')

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.drop_all()


def _clear_tables(app):
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

    app.state_store.on_change('*', None, {})


@pytest.fixture(scope='function')
def client(app):
    """
    Test client over empty tables.

    No app context is held open here so each request gets its own, and
    with it a fresh current_user.
    """
    _clear_tables(app)
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """App context over empty tables for tests that use the ORM directly."""
    _clear_tables(app)

    with app.app_context():
        yield db.session

        db.session.rollback()


@pytest.fixture
def registry(app):
    return app.registry


@pytest.fixture
def sample_tournament(app, db_session, registry):
    """Create a sample round robin tournament for testing."""
    ok, tournament = registry.create_tournament(
        name='Club Championship',
        tournament_format='Round Robin',
        created_by='admin-1',
        max_players=8,
        total_rounds=1
    )
    assert ok
    return tournament


@pytest.fixture
def sample_players(app, db_session):
    """Create four players named so alphabetical order is Alice, Bob, Carol, Dave."""
    players = []
    for pid, name in [('p-alice', 'Alice'), ('p-bob', 'Bob'), ('p-carol', 'Carol'), ('p-dave', 'Dave')]:
        player = Player(id=pid, name=name, email=f'{pid}@example.com')
        db.session.add(player)
        players.append(player)

    db.session.commit()
    return players


@pytest.fixture
def registered_players(app, db_session, sample_tournament, sample_players):
    """Register every sample player for the sample tournament."""
    for player in sample_players:
        db.session.add(Registration(tournament_id=sample_tournament.id, player_id=player.id))
    db.session.commit()
    return sample_players


@pytest.fixture
def roster():
    """Plain roster for the pure pairing and standings functions."""
    return [
        PlayerEntity(id='a', name='Alice'),
        PlayerEntity(id='b', name='Bob'),
        PlayerEntity(id='c', name='Carol'),
        PlayerEntity(id='d', name='Dave'),
    ]


@pytest.fixture
def roster_of():
    """Factory for rosters of any size: p00 Player 00, p01 Player 01, ..."""
    def make(size: int):
        return [PlayerEntity(id=f"p{i:02d}", name=f"Player {i:02d}") for i in range(size)]
    return make
