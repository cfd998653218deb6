from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from config import Config

SOCKET_NAMESPACE = '/ws'

socketio = SocketIO(async_mode=None)


def get_lobby_service():
    from flask import current_app
    return current_app.extensions['debate']


def create_app(config_class=Config, scheduler=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or '*'
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Game core: registry, round engine and reaper behind one service
    from debate.services.broadcast import SocketIOGateway
    from debate.services.games.timers import BackgroundScheduler
    from debate.services.lobbies.service import build_lobby_service

    if scheduler is None:
        scheduler = BackgroundScheduler(socketio)
    gateway = SocketIOGateway(socketio, namespace=SOCKET_NAMESPACE)
    service = build_lobby_service(flask_app.config, scheduler, gateway)
    flask_app.extensions['debate'] = service

    from debate.main import main
    flask_app.register_blueprint(main)

    from debate.api.lobbies import lobbies
    flask_app.register_blueprint(lobbies, url_prefix='/api/lobby')

    # Importing here ensures the handlers bind to the initialized socketio instance
    from debate.socketio_events import register_socketio_handlers
    register_socketio_handlers(namespace=SOCKET_NAMESPACE)

    if flask_app.config.get('REAPER_ENABLED', True):
        service.start_reaper()

    @click.command('topics')
    def topics_command():
        """Lists the debate topics the server would load."""
        topics = list(service.engine.topics)
        for index, topic in enumerate(topics, start=1):
            click.echo(f"{index:>3}. {topic}")
        click.echo(f"{len(topics)} topics from {flask_app.config.get('TOPICS_FILE')}")

    flask_app.cli.add_command(topics_command)

    return flask_app
