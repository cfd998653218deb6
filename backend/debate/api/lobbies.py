from flask import Blueprint, current_app, jsonify, request

from debate import get_lobby_service
from debate.errors import LobbyError

lobbies = Blueprint('lobbies', __name__)


@lobbies.errorhandler(LobbyError)
def handle_lobby_error(exc):
    current_app.logger.info(f"[api-reject] path={request.path} kind={exc.kind} reason={exc.message}")
    return jsonify(exc.to_dict()), exc.status_code


@lobbies.route('/create', methods=['POST'])
def create_lobby():
    """
    Creates a new lobby with the requesting username as its host.
    """
    data = request.get_json(silent=True) or {}
    created = get_lobby_service().create_lobby(data.get('username'))
    return jsonify(created), 201


@lobbies.route('/join', methods=['POST'])
def join_lobby():
    """
    Joins a lobby by code. Once the game has started, joining with a name
    already in the lobby reconnects that participant instead.
    """
    data = request.get_json(silent=True) or {}
    joined = get_lobby_service().join_lobby(data.get('code'), data.get('username'))
    return jsonify(joined), 200


@lobbies.route('/<string:code>', methods=['GET'])
def get_lobby(code):
    return jsonify(get_lobby_service().describe(code))
