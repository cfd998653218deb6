import functools

from flask import current_app, request
from flask_socketio import emit, join_room, leave_room

from debate import socketio, get_lobby_service
from debate.errors import LobbyError, ValidationError
from debate.services.lobbies.registry import normalize_code


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _resolve(data):
    """Pull (code, username) from the payload, defaulting to the socket's binding."""
    data = data or {}
    bound = get_lobby_service().gateway.context(_get_sid()) or (None, None)
    code = normalize_code(data.get('code')) or bound[0]
    identity = data.get('username') or bound[1]
    if isinstance(identity, str):
        identity = identity.strip()
    if not code or not identity:
        raise ValidationError('code and username are required')
    return code, identity


def _reports_errors(handler):
    """Turn domain errors into an ``error`` event for the requesting socket only."""
    @functools.wraps(handler)
    def wrapper(data=None):
        try:
            return handler(data)
        except LobbyError as exc:
            current_app.logger.info(f"[socket-reject] sid={_get_sid()} event={handler.__name__} kind={exc.kind} reason={exc.message}")
            emit('error', {'message': exc.message, 'kind': exc.kind})
    return wrapper


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(reason=None):
    # Only the socket currently bound to a participant counts; an older socket
    # replaced by a reconnect must not mark them offline
    ctx = get_lobby_service().gateway.unbind(_get_sid())
    if not ctx:
        return
    code, identity = ctx
    current_app.logger.info(f"[socket-disconnect] lobby={code} user={identity} reason={reason}")
    get_lobby_service().leave(code, identity)


@_reports_errors
def handle_join_lobby(data):
    code, identity = _resolve(data)
    service = get_lobby_service()
    service.require_session(code)
    room = service.gateway.room_for(code)
    join_room(room)
    service.gateway.bind(_get_sid(), code, identity)
    try:
        service.attach(code, identity)
    except LobbyError:
        service.gateway.unbind(_get_sid())
        leave_room(room)
        raise


@_reports_errors
def handle_leave_lobby(data):
    code, identity = _resolve(data)
    service = get_lobby_service()
    room = service.gateway.room_for(code)
    service.gateway.unbind(_get_sid())
    leave_room(room)
    service.leave(code, identity)
    emit('left', {'room': room})


@_reports_errors
def handle_start_game(data):
    code, identity = _resolve(data)
    get_lobby_service().start_game(code, identity)


@_reports_errors
def handle_cast_vote(data):
    code, identity = _resolve(data)
    get_lobby_service().cast_vote(code, identity, (data or {}).get('vote'))


@_reports_errors
def handle_cast_revote(data):
    code, identity = _resolve(data)
    get_lobby_service().cast_revote(code, identity, (data or {}).get('vote'))


@_reports_errors
def handle_request_sync(data):
    code, identity = _resolve(data)
    get_lobby_service().request_sync(code, identity)


@_reports_errors
def handle_restart_game(data):
    code, identity = _resolve(data)
    get_lobby_service().restart_game(code, identity)


def handle_ping(data=None):
    emit('pong', data or {})


def register_socketio_handlers(namespace: str = '/ws') -> None:
    """Register Socket.IO event handlers on ``namespace``."""
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('join-lobby', handle_join_lobby, namespace=namespace)
    socketio.on_event('leave-lobby', handle_leave_lobby, namespace=namespace)
    socketio.on_event('start-game', handle_start_game, namespace=namespace)
    socketio.on_event('cast-vote', handle_cast_vote, namespace=namespace)
    socketio.on_event('cast-revote', handle_cast_revote, namespace=namespace)
    socketio.on_event('request-sync', handle_request_sync, namespace=namespace)
    socketio.on_event('restart-game', handle_restart_game, namespace=namespace)
    socketio.on_event('ping', handle_ping, namespace=namespace)
