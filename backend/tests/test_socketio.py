NS = '/ws'


def _names(sio):
    return [r['name'] for r in sio.get_received(NS)]


def _events(sio, name):
    return [r['args'][0] if r['args'] else None for r in sio.get_received(NS) if r['name'] == name]


def _create(flask_app, host='Alice', *guests):
    client = flask_app.test_client()
    code = client.post('/api/lobby/create', json={'username': host}).get_json()['code']
    for guest in guests:
        client.post('/api/lobby/join', json={'code': code, 'username': guest})
    return code


def _seat(sio_factory, code, username):
    sio = sio_factory()
    sio.emit('join-lobby', {'code': code, 'username': username}, namespace=NS)
    return sio


def test_connect_and_ping(sio_client):
    assert 'connected' in [r['name'] for r in sio_client.get_received(NS)]
    sio_client.emit('ping', {'n': 1}, namespace=NS)
    pongs = [r for r in sio_client.get_received(NS) if r['name'] == 'pong']
    assert pongs and pongs[0]['args'][0] == {'n': 1}


def test_join_lobby_broadcasts_roster(flask_app, sio_factory):
    code = _create(flask_app, 'Alice', 'Bob')
    host = _seat(sio_factory, code, 'Alice')
    host.get_received(NS)
    _seat(sio_factory, code, 'Bob')

    updates = _events(host, 'lobby-updated')
    assert updates
    assert [p['username'] for p in updates[-1]['participants']] == ['Alice', 'Bob']


def test_join_lobby_rejects_non_members_and_unknown_codes(flask_app, sio_factory):
    code = _create(flask_app, 'Alice')
    stranger = sio_factory()
    stranger.get_received(NS)
    stranger.emit('join-lobby', {'code': code, 'username': 'Mallory'}, namespace=NS)
    errors = _events(stranger, 'error')
    assert errors and errors[0]['kind'] == 'validation'

    stranger.emit('join-lobby', {'code': 'ZZZZZZ', 'username': 'Mallory'}, namespace=NS)
    errors = _events(stranger, 'error')
    assert errors and errors[0]['kind'] == 'not_found'


def test_only_host_can_start(flask_app, sio_factory):
    code = _create(flask_app, 'Alice', 'Bob')
    host = _seat(sio_factory, code, 'Alice')
    guest = _seat(sio_factory, code, 'Bob')
    host.get_received(NS)
    guest.get_received(NS)

    guest.emit('start-game', {}, namespace=NS)
    errors = _events(guest, 'error')
    assert errors and errors[0]['kind'] == 'forbidden'
    assert 'error' not in _names(host)
    assert flask_app.extensions['debate'].get_session(code).round is None


def test_start_game_draws_a_topic_after_the_delay(flask_app, scheduler, sio_factory):
    code = _create(flask_app, 'Alice', 'Bob')
    host = _seat(sio_factory, code, 'Alice')
    guest = _seat(sio_factory, code, 'Bob')
    host.get_received(NS)
    guest.get_received(NS)

    host.emit('start-game', {}, namespace=NS)
    assert 'game-started' in _names(guest)

    scheduler.advance(2)
    received = guest.get_received(NS)
    names = [r['name'] for r in received]
    assert 'topic-selected' in names
    phases = [r['args'][0]['phase'] for r in received if r['name'] == 'game-phase-update']
    assert phases == ['voting']
    ticks = [r['args'][0]['timeRemaining'] for r in received if r['name'] == 'game-timer']
    assert ticks[0] == 20


def test_unanimous_vote_settles_early(flask_app, scheduler, sio_factory):
    code = _create(flask_app, 'Alice', 'Bob')
    host = _seat(sio_factory, code, 'Alice')
    guest = _seat(sio_factory, code, 'Bob')
    host.emit('start-game', {}, namespace=NS)
    scheduler.advance(2)
    host.get_received(NS)

    host.emit('cast-vote', {'vote': 'agree'}, namespace=NS)
    guest.emit('cast-vote', {'vote': 'disagree'}, namespace=NS)
    scheduler.advance(1)

    results = _events(host, 'vote-results')
    assert results == [{'agree': 1, 'disagree': 1, 'abstain': 0}]


def test_invalid_vote_reports_error(flask_app, scheduler, sio_factory):
    code = _create(flask_app, 'Alice', 'Bob')
    host = _seat(sio_factory, code, 'Alice')
    _seat(sio_factory, code, 'Bob')
    host.emit('start-game', {}, namespace=NS)
    scheduler.advance(2)
    host.get_received(NS)

    host.emit('cast-vote', {'vote': 'maybe'}, namespace=NS)
    errors = _events(host, 'error')
    assert errors and errors[0]['kind'] == 'validation'


def test_request_sync_returns_snapshot(flask_app, scheduler, sio_factory):
    code = _create(flask_app, 'Alice', 'Bob')
    host = _seat(sio_factory, code, 'Alice')
    guest = _seat(sio_factory, code, 'Bob')
    host.emit('start-game', {}, namespace=NS)
    scheduler.advance(2)
    guest.emit('cast-vote', {'vote': 'agree'}, namespace=NS)
    guest.get_received(NS)
    host.get_received(NS)

    guest.emit('request-sync', {}, namespace=NS)
    syncs = _events(guest, 'sync-game-state')
    assert len(syncs) == 1
    assert syncs[0]['gameState']['phase'] == 'voting'
    assert syncs[0]['userVote'] == 'agree'
    assert 'sync-game-state' not in _names(host)


def test_late_joiner_is_welcomed(flask_app, scheduler, sio_factory):
    code = _create(flask_app, 'Alice', 'Bob')
    host = _seat(sio_factory, code, 'Alice')
    _seat(sio_factory, code, 'Bob')
    host.emit('start-game', {}, namespace=NS)
    scheduler.advance(2)

    flask_app.test_client().post('/api/lobby/join', json={'code': code, 'username': 'Cara'})
    late = _seat(sio_factory, code, 'Cara')
    names = _names(late)
    assert 'late-join-welcome' in names
    assert 'sync-game-state' in names


def test_host_disconnect_closes_lobby(flask_app, sio_factory):
    code = _create(flask_app, 'Alice', 'Bob')
    host = _seat(sio_factory, code, 'Alice')
    guest = _seat(sio_factory, code, 'Bob')
    guest.get_received(NS)

    host.disconnect(namespace=NS)
    assert 'lobby-closed' in _names(guest)
    assert flask_app.extensions['debate'].get_session(code) is None


def test_stale_socket_disconnect_is_ignored(flask_app, sio_factory):
    code = _create(flask_app, 'Alice', 'Bob')
    _seat(sio_factory, code, 'Alice')
    old = _seat(sio_factory, code, 'Bob')
    _seat(sio_factory, code, 'Bob')

    old.disconnect(namespace=NS)
    session = flask_app.extensions['debate'].get_session(code)
    assert session.lobby.identities() == ['Alice', 'Bob']
    assert session.lobby.find('Bob').connected is True


def test_leave_lobby_before_start_removes_participant(flask_app, sio_factory):
    code = _create(flask_app, 'Alice', 'Bob')
    host = _seat(sio_factory, code, 'Alice')
    guest = _seat(sio_factory, code, 'Bob')
    host.get_received(NS)

    guest.emit('leave-lobby', {}, namespace=NS)
    assert 'left' in _names(guest)
    updates = _events(host, 'lobby-updated')
    assert [p['username'] for p in updates[-1]['participants']] == ['Alice']
