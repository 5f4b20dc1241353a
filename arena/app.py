import os
import logging

import redis
from flask import Flask, Response, current_app, jsonify, request
from flask_login import current_user, login_required

from core.errors import InvalidConfiguration
from core.events import tournament_channel
from core.pubsub import ChangeFeed
from .auth import admin_required, login_manager
from .config import config
from .locks import ScheduleLock
from .models import db, Player
from .responses import error_response
from .state_store import TournamentStateStore
from .tournament_registry import EDITABLE_FIELDS, TournamentRegistry

logger = logging.getLogger(__name__)


def create_app(config_name: str = None) -> Flask:
    """Application factory for the tournament service."""
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config[config_name])

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)

    redis_client = None
    if app.config.get('REDIS_URL'):
        redis_client = redis.from_url(
            app.config['REDIS_URL'],
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5
        )

    # Initialize services
    feed = ChangeFeed(redis_client)
    lock = ScheduleLock(redis_client, timeout=app.config['SCHEDULE_LOCK_TIMEOUT'])
    registry = TournamentRegistry(
        feed, lock,
        default_max_players=app.config['DEFAULT_MAX_PLAYERS'],
        registration_wait=app.config['REGISTRATION_LOCK_WAIT']
    )
    state_store = TournamentStateStore(registry.load_snapshot, feed)

    # Create tables
    with app.app_context():
        db.create_all()

    # Store services on app for access in routes
    app.redis = redis_client
    app.feed = feed
    app.registry = registry
    app.state_store = state_store

    if redis_client is not None and not app.config.get('TESTING'):
        feed.start_listening()

    register_api_routes(app)

    from .routes import matches
    app.register_blueprint(matches.bp)

    return app


def _parse_bool(value):
    if value is None:
        return None
    return str(value).lower() in ('1', 'true', 'yes')


def register_api_routes(app: Flask):
    """Register API routes."""

    # ==================== Tournament CRUD ====================

    @app.route('/api/v1/tournaments', methods=['GET'])
    def api_list_tournaments():
        """List tournaments, newest first."""
        active = _parse_bool(request.args.get('active'))
        limit = request.args.get('limit', 50, type=int)
        offset = request.args.get('offset', 0, type=int)

        tournaments = app.registry.list_tournaments(active=active, limit=limit, offset=offset)

        return jsonify({
            'tournaments': [t.to_dict(app.registry.player_count(t)) for t in tournaments],
            'count': len(tournaments),
            'limit': limit,
            'offset': offset
        })

    @app.route('/api/v1/tournaments', methods=['POST'])
    @admin_required
    def api_create_tournament():
        """Create a new tournament."""
        data = request.get_json(silent=True) or {}

        name = data.get('name')
        if not name:
            return jsonify({'error': 'Tournament name is required', 'kind': 'invalid_configuration'}), 400

        ok, tournament = app.registry.create_tournament(
            name=name,
            tournament_format=data.get('format') or 'Round Robin',
            created_by=current_user.id,
            max_players=data.get('max_players'),
            total_rounds=data.get('total_rounds', 1),
            rules=data.get('rules'),
            registration_open=data.get('registration_open', True)
        )
        if not ok:
            return error_response(tournament)

        return jsonify(tournament.to_dict(player_count=0)), 201

    @app.route('/api/v1/tournaments/<tournament_id>', methods=['GET'])
    def api_get_tournament(tournament_id: str):
        """Get tournament details."""
        tournament = app.registry.get_tournament(tournament_id)
        if not tournament:
            return jsonify({'error': 'Tournament not found', 'kind': 'not_found'}), 404

        return jsonify(tournament.to_dict(app.registry.player_count(tournament)))

    @app.route('/api/v1/tournaments/<tournament_id>', methods=['PATCH'])
    @admin_required
    def api_update_tournament(tournament_id: str):
        data = request.get_json(silent=True) or {}
        changes = {k: v for k, v in data.items() if k in EDITABLE_FIELDS}
        if not changes:
            return error_response(InvalidConfiguration("Nothing to update"))

        ok, tournament = app.registry.update_tournament(tournament_id, **changes)
        if not ok:
            return error_response(tournament)
        return jsonify(tournament.to_dict(app.registry.player_count(tournament)))

    @app.route('/api/v1/tournaments/<tournament_id>', methods=['DELETE'])
    @admin_required
    def api_delete_tournament(tournament_id: str):
        """Delete a tournament with its registrations and matches."""
        ok, result = app.registry.delete_tournament(tournament_id)
        if not ok:
            return error_response(result)
        return jsonify({'message': 'Tournament deleted', **result})

    # ==================== Tournament Lifecycle ====================

    @app.route('/api/v1/tournaments/<tournament_id>/activate', methods=['POST'])
    @admin_required
    def api_activate_tournament(tournament_id: str):
        """Start (generating the schedule) or stop a tournament."""
        ok, result = app.registry.activate_tournament(tournament_id)
        if not ok:
            return error_response(result)

        tournament = result['tournament']
        return jsonify({
            'message': f"Tournament is now {'active' if tournament.is_active else 'inactive'}",
            'matches_created': result['created'],
            'tournament': tournament.to_dict()
        })

    @app.route('/api/v1/tournaments/<tournament_id>/regenerate', methods=['POST'])
    @admin_required
    def api_regenerate_schedule(tournament_id: str):
        """Delete every match and generate the schedule again."""
        ok, result = app.registry.regenerate_schedule(tournament_id)
        if not ok:
            return error_response(result)
        return jsonify({'message': 'Schedule regenerated', **result})

    # ==================== Players & Registration ====================

    @app.route('/api/v1/players', methods=['GET'])
    def api_list_players():
        players = Player.query.order_by(Player.name).all()
        return jsonify({'players': [p.to_dict() for p in players], 'count': len(players)})

    @app.route('/api/v1/players/me', methods=['GET'])
    @login_required
    def api_get_me():
        player = db.session.get(Player, current_user.id)
        return jsonify({
            'identity': current_user.to_dict(),
            'player': player.to_dict() if player else None
        })

    @app.route('/api/v1/players/me', methods=['PUT'])
    @login_required
    def api_update_me():
        data = request.get_json(silent=True) or {}
        ok, player = app.registry.upsert_player(
            current_user,
            name=data.get('name'),
            lichess_username=data.get('lichess_username')
        )
        if not ok:
            return error_response(player)
        return jsonify(player.to_dict())

    @app.route('/api/v1/tournaments/<tournament_id>/players', methods=['GET'])
    def api_list_tournament_players(tournament_id: str):
        ok, roster = app.registry.get_roster(tournament_id)
        if not ok:
            return error_response(roster)
        return jsonify({'players': [p.to_dict() for p in roster], 'count': len(roster)})

    @app.route('/api/v1/tournaments/<tournament_id>/registrations', methods=['POST'])
    @login_required
    def api_register(tournament_id: str):
        """Register the signed-in player, creating their player record on first use."""
        data = request.get_json(silent=True) or {}
        player = db.session.get(Player, current_user.id)
        if player is None:
            ok, player = app.registry.upsert_player(
                current_user,
                name=data.get('name'),
                lichess_username=data.get('lichess_username')
            )
            if not ok:
                return error_response(player)

        ok, registration = app.registry.register_player(tournament_id, player.id)
        if not ok:
            return error_response(registration)

        return jsonify({
            'message': 'Registered for tournament',
            'registration': registration.to_dict(tournament_id)
        }), 201

    @app.route('/api/v1/tournaments/<tournament_id>/registrations', methods=['DELETE'])
    @login_required
    def api_unregister(tournament_id: str):
        ok, result = app.registry.unregister_player(tournament_id, current_user.id)
        if not ok:
            return error_response(result)
        return jsonify({'message': 'Unregistered from tournament'})

    # ==================== Real-time Events (SSE) ====================

    @app.route('/api/v1/events/tournaments/<tournament_id>')
    def api_tournament_events(tournament_id: str):
        """SSE stream of row changes for one tournament."""
        if current_app.redis is None:
            return jsonify({'error': 'Live updates need Redis', 'kind': 'persistence_failure'}), 503

        redis_url = current_app.config['REDIS_URL']

        def generate():
            # Dedicated connection with no read timeout for the long-lived stream
            sse_redis = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_timeout=None,
                socket_connect_timeout=5
            )
            pubsub = sse_redis.pubsub(ignore_subscribe_messages=True)
            pubsub.subscribe(tournament_channel(tournament_id))

            yield f"data: {{\"type\":\"connected\",\"tournament_id\":\"{tournament_id}\"}}\n\n"

            try:
                while True:
                    message = pubsub.get_message(timeout=30)
                    if message and message['type'] == 'message':
                        yield f"data: {message['data']}\n\n"
                    else:
                        yield ": keepalive\n\n"
            finally:
                pubsub.close()

        return Response(generate(), mimetype='text/event-stream', headers={
            'Cache-Control': 'no-cache',
            'X-Accel-Buffering': 'no'
        })

    # ==================== Health Check ====================

    @app.route('/health')
    def health_check():
        """Health check endpoint."""
        redis_ok = None
        if app.redis is not None:
            try:
                app.redis.ping()
                redis_ok = True
            except redis.RedisError:
                redis_ok = False

        try:
            db.session.execute(db.text('SELECT 1'))
            db_ok = True
        except Exception:
            logger.exception("Database health check failed")
            db_ok = False

        healthy = db_ok and redis_ok is not False

        return jsonify({
            'status': 'healthy' if healthy else 'unhealthy',
            'redis': {None: 'disabled', True: 'connected', False: 'disconnected'}[redis_ok],
            'database': 'connected' if db_ok else 'disconnected'
        }), 200 if healthy else 503
