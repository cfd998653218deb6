from flask import Blueprint, jsonify

from debate import get_lobby_service

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the debate lobby server!'})


@main.route('/health')
def health():
    return jsonify({'status': 'healthy', 'lobbies': len(get_lobby_service().registry)})
