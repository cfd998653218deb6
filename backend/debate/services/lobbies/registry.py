import logging
import random
import string
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from debate.errors import AlreadyPresentError, NotFoundError
from debate.models import Lobby, Participant, RoundState

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_lobby_code(length=6):
    """Generate a short lobby code; uniqueness is checked by the registry."""
    return ''.join(random.choices(CODE_ALPHABET, k=length))


def normalize_code(code) -> str:
    return (code or '').strip().upper() if isinstance(code, str) else ''


@dataclass
class LobbySession:
    """A lobby plus everything that must be mutated under its lock."""

    lobby: Lobby
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    round: Optional[RoundState] = None
    closed: bool = False

    @property
    def code(self) -> str:
        return self.lobby.code

    def admit(self, identity: str) -> Participant:
        participant = self.lobby.add(identity)
        if self.round is not None:
            # Mid-game joiners score from zero but are not eligible to speak
            self.round.scores[identity] = 0
        return participant

    def reconnect(self, participant: Participant) -> Participant:
        participant.connected = True
        return participant

    def close(self) -> None:
        if self.round is not None and self.round.timer is not None:
            self.round.timer.cancel()
        self.round = None
        self.lobby.game_started = False
        self.closed = True


@dataclass(frozen=True)
class JoinResult:
    session: LobbySession
    participant: Participant
    reconnection: bool


class LobbyRegistry:
    """Maps lobby codes to sessions.

    The registry lock only guards the mapping itself; lobby state is
    serialised by each session's own lock so unrelated games never contend.
    """

    def __init__(self, code_length: int = 6, code_factory: Optional[Callable[[int], str]] = None):
        self._sessions: Dict[str, LobbySession] = {}
        self._guard = threading.Lock()
        self._code_length = code_length
        self._code_factory = code_factory or generate_lobby_code

    def __len__(self):
        with self._guard:
            return len(self._sessions)

    def create(self, host_identity: str) -> LobbySession:
        with self._guard:
            while True:
                code = normalize_code(self._code_factory(self._code_length))
                if code and code not in self._sessions:
                    break
                logger.info(f"[lobby-code] collision on {code!r}, regenerating")
            lobby = Lobby(code=code, host=host_identity)
            lobby.add(host_identity, is_host=True)
            session = LobbySession(lobby=lobby)
            self._sessions[code] = session
        logger.info(f"[lobby-create] lobby={code} host={host_identity}")
        return session

    def get(self, code) -> Optional[LobbySession]:
        with self._guard:
            return self._sessions.get(normalize_code(code))

    def join(self, code, identity: str) -> JoinResult:
        """Admit ``identity`` or, once the game has started, reconnect it."""
        session = self.get(code)
        if session is None:
            raise NotFoundError('Lobby not found')
        with session.lock:
            if session.closed:
                raise NotFoundError('Lobby not found')
            existing = session.lobby.find(identity)
            if existing is None:
                participant = session.admit(identity)
                logger.info(f"[lobby-join] lobby={session.code} user={identity} mid_game={session.lobby.game_started}")
                return JoinResult(session, participant, reconnection=False)
            if session.lobby.game_started:
                session.reconnect(existing)
                logger.info(f"[lobby-reconnect] lobby={session.code} user={identity}")
                return JoinResult(session, existing, reconnection=True)
        raise AlreadyPresentError('Username already taken in this lobby')

    def remove(self, code) -> Optional[LobbySession]:
        with self._guard:
            session = self._sessions.pop(normalize_code(code), None)
        if session is not None:
            logger.info(f"[lobby-remove] lobby={session.code}")
        return session
