from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from core.errors import NotAllowed, NotFound
from arena.responses import error_response

bp = Blueprint('matches', __name__)


@bp.route('/api/v1/tournaments/<tournament_id>/matches', methods=['GET'])
def list_matches(tournament_id):
    ok, matches = current_app.registry.list_matches(tournament_id, request.args.get('status'))
    if not ok:
        return error_response(matches)

    return jsonify({
        'matches': [m.to_dict() for m in matches],
        'count': len(matches)
    })


@bp.route('/api/v1/tournaments/<tournament_id>/matches/<match_id>/result', methods=['POST'])
@login_required
def submit_result(tournament_id, match_id):
    """Record a result; only the two players or an administrator may do so."""
    registry = current_app.registry
    data = request.get_json(silent=True) or {}
    result = data.get('result')

    if not result:
        return jsonify({'error': 'Result is required', 'kind': 'malformed_result'}), 400

    tournament = registry.get_tournament(tournament_id)
    if tournament and not current_user.is_admin:
        match = registry.store.get_match(tournament, match_id)
        if match and current_user.id not in (match.white_player_id, match.black_player_id):
            return error_response(NotAllowed("Only the players in this match can submit its result"))

    ok, match = registry.submit_result(tournament_id, match_id, result)
    if not ok:
        return error_response(match)

    return jsonify({'message': 'Match result submitted', 'match': match.to_dict()})


@bp.route('/api/v1/tournaments/<tournament_id>/schedule', methods=['GET'])
def get_schedule(tournament_id):
    ok, schedule = current_app.registry.schedule(tournament_id)
    if not ok:
        return error_response(schedule)
    return jsonify(schedule)


@bp.route('/api/v1/tournaments/<tournament_id>/standings', methods=['GET'])
def get_standings(tournament_id):
    if not current_app.registry.get_tournament(tournament_id):
        return error_response(NotFound(f"Tournament {tournament_id} not found"))

    state = current_app.state_store
    rows = state.standings(tournament_id)
    leader = state.leader(tournament_id)
    return jsonify({
        'tournament_id': tournament_id,
        'standings': [r.to_dict() for r in rows],
        'leader': leader.to_dict() if leader else None
    })


@bp.route('/api/v1/tournaments/<tournament_id>/recommended-format', methods=['GET'])
def get_recommended_format(tournament_id):
    ok, fmt = current_app.registry.recommended_format(tournament_id)
    if not ok:
        return error_response(fmt)
    return jsonify({
        'tournament_id': tournament_id,
        'recommended_format': fmt.value if fmt else None
    })
