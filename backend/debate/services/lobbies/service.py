import logging
from typing import Any, Dict, Optional

from debate.errors import NotFoundError, StaleReferenceError, ValidationError
from debate.services.games.reaper import DisconnectionReaper
from debate.services.games.rounds import PhaseDurations, RoundEngine
from .registry import LobbyRegistry, LobbySession, normalize_code
from .topics import load_topics

logger = logging.getLogger(__name__)


class LobbyService:
    """Entry point for everything the HTTP and socket layers can ask for.

    Owns the registry, the round engine and the reaper, and applies the
    membership policy: leaving before the game starts removes a participant,
    leaving mid-game only marks them disconnected until the reaper evicts
    them, and a leaving host closes the lobby outright.
    """

    def __init__(self, registry: LobbyRegistry, engine: RoundEngine, reaper: DisconnectionReaper,
                 gateway, min_identity_length: int = 2):
        self.registry = registry
        self.engine = engine
        self.reaper = reaper
        self.gateway = gateway
        self._min_identity_length = min_identity_length

    # ---- admission ----

    def validate_identity(self, identity) -> str:
        if not isinstance(identity, str) or not identity.strip():
            raise ValidationError('Username is required')
        identity = identity.strip()
        if len(identity) < self._min_identity_length:
            raise ValidationError(f'Username must be at least {self._min_identity_length} characters')
        return identity

    def create_lobby(self, identity) -> Dict[str, Any]:
        identity = self.validate_identity(identity)
        session = self.registry.create(identity)
        with session.lock:
            return {'code': session.code, 'lobby': session.lobby.to_dict()}

    def join_lobby(self, code, identity) -> Dict[str, Any]:
        if not normalize_code(code):
            raise ValidationError('Code and username are required')
        identity = self.validate_identity(identity)
        result = self.registry.join(code, identity)
        session = result.session
        with session.lock:
            if result.reconnection:
                self.reaper.forget(session.code, identity)
            return {'lobby': session.lobby.to_dict(), 'reconnection': result.reconnection}

    def get_session(self, code) -> Optional[LobbySession]:
        session = self.registry.get(code)
        if session is None or session.closed:
            return None
        return session

    def require_session(self, code) -> LobbySession:
        session = self.get_session(code)
        if session is None:
            raise NotFoundError('Lobby not found')
        return session

    def describe(self, code) -> Dict[str, Any]:
        session = self.require_session(code)
        with session.lock:
            return {
                'lobby': session.lobby.to_dict(),
                'gameState': session.round.snapshot() if session.round else None,
            }

    # ---- presence ----

    def attach(self, code, identity: str) -> LobbySession:
        """A participant's socket joined the lobby's broadcast group."""
        session = self.require_session(code)
        with session.lock:
            if session.closed:
                raise StaleReferenceError('Lobby was closed')
            participant = session.lobby.find(identity)
            if participant is None:
                raise ValidationError(f'{identity} is not in lobby {session.code}')
            participant.connected = True
            if self.reaper.forget(session.code, identity):
                logger.info(f"[reconnect] lobby={session.code} user={identity}")
            self.gateway.send_to_group(session.code, 'lobby-updated', session.lobby.to_dict())
            if session.round is not None:
                self.engine.welcome_late_joiner(session, identity)
                self.engine.sync(session, identity)
            return session

    def leave(self, code, identity: str) -> None:
        """Handle both an explicit leave and a dropped connection."""
        session = self.get_session(code)
        if session is None:
            return
        with session.lock:
            if session.closed:
                return
            lobby = session.lobby
            participant = lobby.find(identity)
            if participant is None:
                return
            if participant.is_host:
                logger.info(f"[host-left] lobby={session.code} host={identity}")
                self.close_lobby(session)
                return
            if lobby.game_started:
                participant.connected = False
                self.reaper.record(session.code, identity)
                self.gateway.send_to_group(session.code, 'lobby-updated', lobby.to_dict())
                self.engine.membership_changed(session)
                return
            lobby.remove(identity)
            logger.info(f"[lobby-leave] lobby={session.code} user={identity}")
            if not lobby.participants:
                self.close_lobby(session)
                return
            self.gateway.send_to_group(session.code, 'lobby-updated', lobby.to_dict())

    def close_lobby(self, session: LobbySession) -> None:
        with session.lock:
            if session.closed:
                return
            session.close()
            self.registry.remove(session.code)
            self.reaper.forget_lobby(session.code)
            logger.info(f"[lobby-closed] lobby={session.code}")
            self.gateway.send_to_group(session.code, 'lobby-closed')
            self.gateway.close_group(session.code)

    def evict(self, record) -> bool:
        """Reaper callback: drop a participant whose grace window ran out."""
        session = self.get_session(record.lobby_code)
        if session is None:
            return False
        with session.lock:
            if session.closed:
                return False
            participant = session.lobby.find(record.identity)
            if participant is None or participant.connected:
                return False
            session.lobby.remove(record.identity)
            logger.info(f"[reaper-evict] lobby={session.code} user={record.identity}")
            if not session.lobby.participants:
                self.close_lobby(session)
                return True
            self.gateway.send_to_group(session.code, 'lobby-updated', session.lobby.to_dict())
            self.engine.membership_changed(session)
            return True

    def start_reaper(self) -> None:
        self.reaper.start(self.evict)

    # ---- game actions ----

    def start_game(self, code, identity: str) -> None:
        self.engine.start_game(self.require_session(code), identity)

    def restart_game(self, code, identity: str) -> None:
        self.engine.restart_game(self.require_session(code), identity)

    def cast_vote(self, code, identity: str, choice) -> bool:
        return self.engine.cast_vote(self.require_session(code), identity, choice)

    def cast_revote(self, code, identity: str, choice) -> bool:
        return self.engine.cast_revote(self.require_session(code), identity, choice)

    def request_sync(self, code, identity: str) -> bool:
        return self.engine.sync(self.require_session(code), identity)


def build_lobby_service(config, scheduler, gateway, topics=None, rng=None) -> LobbyService:
    """Assemble a LobbyService from a Flask-style config mapping."""
    if topics is None:
        topics = load_topics(config.get('TOPICS_FILE', 'topics.txt'))
    engine = RoundEngine(
        gateway,
        scheduler,
        topics,
        durations=PhaseDurations.from_config(config),
        max_rounds=int(config.get('MAX_ROUNDS', 5)),
        min_players=int(config.get('MIN_PLAYERS', 2)),
        rng=rng,
    )
    reaper = DisconnectionReaper(
        scheduler,
        grace_period=int(config.get('DISCONNECT_GRACE_SEC', 300)),
        interval=int(config.get('REAPER_INTERVAL_SEC', 60)),
    )
    registry = LobbyRegistry(code_length=int(config.get('LOBBY_CODE_LENGTH', 6)))
    return LobbyService(
        registry,
        engine,
        reaper,
        gateway,
        min_identity_length=int(config.get('MIN_USERNAME_LENGTH', 2)),
    )
