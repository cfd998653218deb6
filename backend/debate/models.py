from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

VOTE_AGREE = 'agree'
VOTE_DISAGREE = 'disagree'
VOTE_ABSTAIN = 'abstain'
VOTE_CHOICES = (VOTE_AGREE, VOTE_DISAGREE, VOTE_ABSTAIN)

# Round phases, in the order a normal round walks through them
PHASE_VOTING = 'voting'
PHASE_VOTE_RESULTS = 'vote-results'
PHASE_ROUND_SKIPPED = 'round-skipped'
PHASE_SOLO = 'solo'
PHASE_DISCUSSION = 'discussion'
PHASE_REVOTING = 'revoting'
PHASE_ROUND_RESULTS = 'round-results'
PHASE_SCOREBOARD = 'scoreboard'
PHASE_WAITING = 'waiting'
PHASE_ENDED = 'ended'


@dataclass
class Participant:
    identity: str
    is_host: bool = False
    connected: bool = True

    def to_dict(self):
        return {
            'username': self.identity,
            'isHost': self.is_host,
            'connected': self.connected,
        }


@dataclass
class Lobby:
    code: str
    host: str
    participants: List[Participant] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    game_started: bool = False

    def find(self, identity: str) -> Optional[Participant]:
        for participant in self.participants:
            if participant.identity == identity:
                return participant
        return None

    def add(self, identity: str, is_host: bool = False) -> Participant:
        participant = Participant(identity=identity, is_host=is_host)
        self.participants.append(participant)
        return participant

    def remove(self, identity: str) -> Optional[Participant]:
        participant = self.find(identity)
        if participant is not None:
            self.participants.remove(participant)
        return participant

    def is_host(self, identity: str) -> bool:
        return identity == self.host

    def identities(self) -> List[str]:
        return [p.identity for p in self.participants]

    def connected_identities(self) -> List[str]:
        return [p.identity for p in self.participants if p.connected]

    def to_dict(self):
        return {
            'code': self.code,
            'host': self.host,
            'participants': [p.to_dict() for p in self.participants],
            'createdAt': self.created_at.isoformat(),
            'gameStarted': self.game_started,
        }


@dataclass
class VoteTally:
    agree: int = 0
    disagree: int = 0
    abstain: int = 0

    @property
    def total(self) -> int:
        return self.agree + self.disagree + self.abstain

    def count(self, choice: str) -> int:
        return getattr(self, choice)

    def to_dict(self):
        return {'agree': self.agree, 'disagree': self.disagree, 'abstain': self.abstain}


@dataclass
class RoundState:
    """Per-lobby game state; exists only while the lobby's game is started."""

    phase: str = PHASE_VOTING
    round_number: int = 1
    current_topic: str = ''
    votes: Dict[str, str] = field(default_factory=dict)
    revotes: Dict[str, str] = field(default_factory=dict)
    scores: Dict[str, int] = field(default_factory=dict)
    used_topics: List[str] = field(default_factory=list)
    used_speakers: Set[str] = field(default_factory=set)
    # Who was in the lobby when the game (re)started; only they may be picked to speak
    starting_roster: List[str] = field(default_factory=list)
    timer_remaining: int = 0
    initial_vote_results: VoteTally = field(default_factory=VoteTally)
    final_vote_results: VoteTally = field(default_factory=VoteTally)
    current_speaker: Optional[str] = None
    speaker_position: Optional[str] = None
    # True once the all-voted fast path has armed its settle delay
    settling: bool = False
    timer: Any = field(default=None, repr=False, compare=False)

    def snapshot(self) -> Dict[str, Any]:
        return {
            'phase': self.phase,
            'roundNumber': self.round_number,
            'currentTopic': self.current_topic,
            'timer': self.timer_remaining,
            'scores': dict(self.scores),
            'initialVoteResults': self.initial_vote_results.to_dict(),
            'finalVoteResults': self.final_vote_results.to_dict(),
            'currentSpeaker': self.current_speaker,
            'speakerPosition': self.speaker_position,
        }


@dataclass
class DisconnectedPlayer:
    identity: str
    lobby_code: str
    disconnected_at: float

    @property
    def key(self):
        return (self.lobby_code, self.identity)
