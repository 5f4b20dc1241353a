"""
Integration tests for API routes.
Tests the tournament, registration, match and standings endpoints end to end.
"""
import json

ADMIN_HEADERS = {'X-User-Id': 'admin-1', 'X-User-Email': 'admin@example.com', 'X-User-Name': 'Admin'}


def player_headers(player_id: str, name: str = None) -> dict:
    return {
        'X-User-Id': player_id,
        'X-User-Email': f'{player_id}@example.com',
        'X-User-Name': name or player_id.title(),
    }


def create(client, **overrides):
    payload = {'name': 'Club Championship', 'format': 'Round Robin', 'max_players': 8}
    payload.update(overrides)
    response = client.post('/api/v1/tournaments', json=payload, headers=ADMIN_HEADERS)
    assert response.status_code == 201, response.data
    return json.loads(response.data)['tournament_id']


def sign_up(client, tournament_id, *names):
    for name in names:
        response = client.post(
            f'/api/v1/tournaments/{tournament_id}/registrations',
            json={'name': name},
            headers=player_headers(f'p-{name.lower()}', name)
        )
        assert response.status_code == 201, response.data


def start(client, tournament_id):
    response = client.post(f'/api/v1/tournaments/{tournament_id}/activate', headers=ADMIN_HEADERS)
    assert response.status_code == 200, response.data
    return json.loads(response.data)


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    def test_health_check(self, client):
        response = client.get('/health')
        assert response.status_code == 200

        data = json.loads(response.data)
        assert data['status'] == 'healthy'
        assert data['database'] == 'connected'
        assert data['redis'] == 'disabled'


class TestTournamentCRUD:
    """Tests for tournament CRUD operations."""

    def test_create_tournament(self, client):
        response = client.post('/api/v1/tournaments', json={
            'name': 'Spring Swiss',
            'format': 'swiss',
            'max_players': 16
        }, headers=ADMIN_HEADERS)

        assert response.status_code == 201
        data = json.loads(response.data)
        assert data['name'] == 'Spring Swiss'
        assert data['format'] == 'Swiss'
        assert data['registration_open'] is True
        assert data['is_active'] is False
        assert data['player_count'] == 0
        assert data['created_by'] == 'admin-1'

    def test_create_defaults_to_round_robin(self, client):
        tid = create(client, format=None)

        data = json.loads(client.get(f'/api/v1/tournaments/{tid}').data)
        assert data['format'] == 'Round Robin'

    def test_create_requires_name(self, client):
        response = client.post('/api/v1/tournaments', json={'format': 'Swiss'}, headers=ADMIN_HEADERS)

        assert response.status_code == 400
        assert json.loads(response.data)['kind'] == 'invalid_configuration'

    def test_create_unknown_format(self, client):
        response = client.post('/api/v1/tournaments', json={'name': 'X', 'format': 'Bughouse'},
                               headers=ADMIN_HEADERS)

        assert response.status_code == 400
        assert json.loads(response.data)['kind'] == 'unsupported_format'

    def test_create_requires_login(self, client):
        response = client.post('/api/v1/tournaments', json={'name': 'X'})
        assert response.status_code == 401

    def test_create_requires_admin(self, client):
        response = client.post('/api/v1/tournaments', json={'name': 'X'}, headers=player_headers('p-alice'))
        assert response.status_code == 403

    def test_list_tournaments(self, client):
        create(client, name='One')
        create(client, name='Two')

        data = json.loads(client.get('/api/v1/tournaments').data)

        assert data['count'] == 2
        assert {t['name'] for t in data['tournaments']} == {'One', 'Two'}
        assert json.loads(client.get('/api/v1/tournaments?active=true').data)['count'] == 0

    def test_get_missing_tournament(self, client):
        response = client.get('/api/v1/tournaments/no-such-thing')

        assert response.status_code == 404
        assert json.loads(response.data)['kind'] == 'not_found'

    def test_update_tournament(self, client):
        tid = create(client)

        response = client.patch(f'/api/v1/tournaments/{tid}', json={'name': 'Renamed', 'total_rounds': 2},
                                headers=ADMIN_HEADERS)

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['name'] == 'Renamed'
        assert data['total_rounds'] == 2

    def test_update_with_nothing_editable(self, client):
        tid = create(client)

        response = client.patch(f'/api/v1/tournaments/{tid}', json={'is_active': True}, headers=ADMIN_HEADERS)

        assert response.status_code == 400

    def test_delete_tournament(self, client):
        tid = create(client)
        sign_up(client, tid, 'Alice', 'Bob')
        start(client, tid)

        response = client.delete(f'/api/v1/tournaments/{tid}', headers=ADMIN_HEADERS)

        assert response.status_code == 200
        assert json.loads(response.data)['deleted_matches'] == 1
        assert client.get(f'/api/v1/tournaments/{tid}').status_code == 404


class TestPlayersAndRegistration:
    """Tests for player profile and registration endpoints."""

    def test_me_without_profile(self, client):
        response = client.get('/api/v1/players/me', headers=player_headers('p-alice', 'Alice'))

        data = json.loads(response.data)
        assert data['identity']['id'] == 'p-alice'
        assert data['identity']['is_admin'] is False
        assert data['player'] is None

    def test_update_me(self, client):
        headers = player_headers('p-alice', 'Alice')

        response = client.put('/api/v1/players/me', json={'lichess_username': 'alice64'}, headers=headers)

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['name'] == 'Alice'
        assert data['lichess_username'] == 'alice64'

        players = json.loads(client.get('/api/v1/players').data)
        assert players['count'] == 1

    def test_register_creates_player(self, client):
        tid = create(client)
        sign_up(client, tid, 'Alice')

        data = json.loads(client.get(f'/api/v1/tournaments/{tid}/players').data)

        assert data['count'] == 1
        assert data['players'][0]['id'] == 'p-alice'
        assert json.loads(client.get(f'/api/v1/tournaments/{tid}').data)['player_count'] == 1

    def test_register_twice(self, client):
        tid = create(client)
        sign_up(client, tid, 'Alice')

        response = client.post(f'/api/v1/tournaments/{tid}/registrations',
                               headers=player_headers('p-alice', 'Alice'))

        assert response.status_code == 400

    def test_register_requires_login(self, client):
        tid = create(client)
        assert client.post(f'/api/v1/tournaments/{tid}/registrations').status_code == 401

    def test_register_for_missing_tournament(self, client):
        response = client.post('/api/v1/tournaments/no-such-thing/registrations',
                               json={'name': 'Alice'}, headers=player_headers('p-alice', 'Alice'))
        assert response.status_code == 404

    def test_register_when_full(self, client):
        tid = create(client, max_players=2)
        sign_up(client, tid, 'Alice', 'Bob')

        response = client.post(f'/api/v1/tournaments/{tid}/registrations',
                               json={'name': 'Carol'}, headers=player_headers('p-carol', 'Carol'))

        assert response.status_code == 403
        assert json.loads(response.data)['error'] == 'Tournament is full'

    def test_unregister(self, client):
        tid = create(client)
        sign_up(client, tid, 'Alice')

        response = client.delete(f'/api/v1/tournaments/{tid}/registrations',
                                 headers=player_headers('p-alice', 'Alice'))

        assert response.status_code == 200
        assert json.loads(client.get(f'/api/v1/tournaments/{tid}/players').data)['count'] == 0


class TestScheduleLifecycle:
    """Tests for activation, regeneration and result submission."""

    def test_activate_generates_matches(self, client):
        tid = create(client)
        sign_up(client, tid, 'Alice', 'Bob', 'Carol', 'Dave')

        data = start(client, tid)

        assert data['matches_created'] == 6
        assert data['tournament']['is_active'] is True

        matches = json.loads(client.get(f'/api/v1/tournaments/{tid}/matches').data)
        assert matches['count'] == 6
        assert matches['matches'][0]['id'] == 'r1_m1'
        assert matches['matches'][0]['status'] == 'pending'

    def test_activate_with_one_player(self, client):
        tid = create(client)
        sign_up(client, tid, 'Alice')

        response = client.post(f'/api/v1/tournaments/{tid}/activate', headers=ADMIN_HEADERS)

        assert response.status_code == 400
        assert json.loads(response.data)['kind'] == 'insufficient_players'

    def test_activate_knockout(self, client):
        tid = create(client, format='Knockout')
        sign_up(client, tid, 'Alice', 'Bob')

        response = client.post(f'/api/v1/tournaments/{tid}/activate', headers=ADMIN_HEADERS)

        assert response.status_code == 400
        assert json.loads(response.data)['kind'] == 'unsupported_format'

    def test_regenerate(self, client):
        tid = create(client, format='Double Round Robin')
        sign_up(client, tid, 'Alice', 'Bob', 'Carol')

        first = client.post(f'/api/v1/tournaments/{tid}/regenerate', headers=ADMIN_HEADERS)
        second = client.post(f'/api/v1/tournaments/{tid}/regenerate', headers=ADMIN_HEADERS)

        assert json.loads(first.data)['created'] == 6
        assert json.loads(second.data)['deleted'] == 6
        assert json.loads(second.data)['created'] == 6

    def test_player_submits_own_result(self, client):
        tid = create(client)
        sign_up(client, tid, 'Alice', 'Bob', 'Carol', 'Dave')
        start(client, tid)

        response = client.post(f'/api/v1/tournaments/{tid}/matches/r1_m1/result',
                               json={'result': '1-0'}, headers=player_headers('p-alice', 'Alice'))

        assert response.status_code == 200
        match = json.loads(response.data)['match']
        assert match['result'] == '1-0'
        assert match['status'] == 'completed'

    def test_other_player_cannot_submit(self, client):
        tid = create(client)
        sign_up(client, tid, 'Alice', 'Bob', 'Carol', 'Dave')
        start(client, tid)

        response = client.post(f'/api/v1/tournaments/{tid}/matches/r1_m1/result',
                               json={'result': '1-0'}, headers=player_headers('p-bob', 'Bob'))

        assert response.status_code == 403

    def test_malformed_result(self, client):
        tid = create(client)
        sign_up(client, tid, 'Alice', 'Bob')
        start(client, tid)

        response = client.post(f'/api/v1/tournaments/{tid}/matches/r1_m1/result',
                               json={'result': 'white'}, headers=ADMIN_HEADERS)

        assert response.status_code == 400
        assert json.loads(response.data)['kind'] == 'malformed_result'

    def test_missing_result(self, client):
        tid = create(client)
        response = client.post(f'/api/v1/tournaments/{tid}/matches/r1_m1/result',
                               json={}, headers=ADMIN_HEADERS)
        assert response.status_code == 400

    def test_unknown_match(self, client):
        tid = create(client)
        sign_up(client, tid, 'Alice', 'Bob')
        start(client, tid)

        response = client.post(f'/api/v1/tournaments/{tid}/matches/r5_m1/result',
                               json={'result': '1-0'}, headers=ADMIN_HEADERS)

        assert response.status_code == 404

    def test_filter_matches_by_status(self, client):
        tid = create(client)
        sign_up(client, tid, 'Alice', 'Bob', 'Carol', 'Dave')
        start(client, tid)
        client.post(f'/api/v1/tournaments/{tid}/matches/r1_m2/result',
                    json={'result': '0-1'}, headers=ADMIN_HEADERS)

        completed = json.loads(client.get(f'/api/v1/tournaments/{tid}/matches?status=completed').data)
        pending = json.loads(client.get(f'/api/v1/tournaments/{tid}/matches?status=pending').data)

        assert completed['count'] == 1
        assert pending['count'] == 5
        assert client.get(f'/api/v1/tournaments/{tid}/matches?status=lost').status_code == 400


class TestScheduleAndStandings:
    """Tests for schedule, standings and recommendation views."""

    def test_schedule(self, client):
        tid = create(client)
        sign_up(client, tid, 'Alice', 'Bob', 'Carol', 'Dave')
        start(client, tid)

        data = json.loads(client.get(f'/api/v1/tournaments/{tid}/schedule').data)

        assert data['format'] == 'Round Robin'
        assert [r['total'] for r in data['rounds']] == [2, 2, 2]
        assert data['color_balance']['p-dave'] == {'white': 1, 'black': 2}

    def test_standings_follow_results(self, client):
        tid = create(client)
        sign_up(client, tid, 'Alice', 'Bob', 'Carol', 'Dave')
        start(client, tid)

        before = json.loads(client.get(f'/api/v1/tournaments/{tid}/standings').data)
        assert before['leader'] is None
        assert [r['points'] for r in before['standings']] == [0, 0, 0, 0]

        client.post(f'/api/v1/tournaments/{tid}/matches/r1_m1/result',
                    json={'result': '0-1'}, headers=ADMIN_HEADERS)
        client.post(f'/api/v1/tournaments/{tid}/matches/r1_m2/result',
                    json={'result': '1/2-1/2'}, headers=ADMIN_HEADERS)

        after = json.loads(client.get(f'/api/v1/tournaments/{tid}/standings').data)

        assert after['leader']['player_id'] == 'p-dave'
        assert [r['name'] for r in after['standings']] == ['Dave', 'Bob', 'Carol', 'Alice']
        assert [r['rank'] for r in after['standings']] == [1, 2, 3, 4]

    def test_standings_missing_tournament(self, client):
        assert client.get('/api/v1/tournaments/no-such-thing/standings').status_code == 404

    def test_recommended_format(self, client):
        tid = create(client)
        sign_up(client, tid, 'Alice', 'Bob', 'Carol')

        data = json.loads(client.get(f'/api/v1/tournaments/{tid}/recommended-format').data)
        assert data['recommended_format'] is None

        sign_up(client, tid, 'Dave')
        data = json.loads(client.get(f'/api/v1/tournaments/{tid}/recommended-format').data)
        assert data['recommended_format'] == 'Round Robin'


class TestEventsEndpoint:
    """Tests for the SSE endpoint."""

    def test_events_need_redis(self, client):
        tid = create(client)
        assert client.get(f'/api/v1/events/tournaments/{tid}').status_code == 503
