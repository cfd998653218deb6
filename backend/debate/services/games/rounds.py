import logging
import random
from dataclasses import dataclass
from typing import Optional

from debate.errors import AuthorizationError, StaleReferenceError, ValidationError
from debate.models import (
    PHASE_DISCUSSION,
    PHASE_ENDED,
    PHASE_REVOTING,
    PHASE_ROUND_RESULTS,
    PHASE_ROUND_SKIPPED,
    PHASE_SCOREBOARD,
    PHASE_SOLO,
    PHASE_VOTE_RESULTS,
    PHASE_VOTING,
    PHASE_WAITING,
    VOTE_ABSTAIN,
    VOTE_CHOICES,
    RoundState,
    VoteTally,
)
from .scoring import apply_outcome, score_round, tally_ballots
from .timers import PhaseTimer

logger = logging.getLogger(__name__)

SKIP_MESSAGE = 'Round skipped - everyone voted the same way!'


@dataclass(frozen=True)
class PhaseDurations:
    voting: int = 20
    vote_results: int = 5
    skip_notice: int = 3
    skip_hold: int = 5
    solo: int = 60
    discussion: int = 180
    revoting: int = 20
    round_results: int = 8
    scoreboard: int = 5
    waiting: int = 3
    vote_settle: float = 1
    game_start: int = 2

    @classmethod
    def from_config(cls, config):
        return cls(
            voting=int(config.get('VOTING_DURATION_SEC', cls.voting)),
            vote_results=int(config.get('VOTE_RESULTS_DURATION_SEC', cls.vote_results)),
            skip_notice=int(config.get('SKIP_NOTICE_DELAY_SEC', cls.skip_notice)),
            skip_hold=int(config.get('SKIP_HOLD_SEC', cls.skip_hold)),
            solo=int(config.get('SOLO_DURATION_SEC', cls.solo)),
            discussion=int(config.get('DISCUSSION_DURATION_SEC', cls.discussion)),
            revoting=int(config.get('REVOTING_DURATION_SEC', cls.revoting)),
            round_results=int(config.get('ROUND_RESULTS_DURATION_SEC', cls.round_results)),
            scoreboard=int(config.get('SCOREBOARD_DURATION_SEC', cls.scoreboard)),
            waiting=int(config.get('WAITING_DURATION_SEC', cls.waiting)),
            vote_settle=float(config.get('VOTE_SETTLE_SEC', cls.vote_settle)),
            game_start=int(config.get('GAME_START_DELAY_SEC', cls.game_start)),
        )


class RoundEngine:
    """Drives a lobby's RoundState through its phases.

    Public methods take the session lock themselves. The ``_start_*`` style
    transitions run with the lock already held, either by a public method or
    by the PhaseTimer that fired them, and each one re-checks that the game
    still exists and is in the phase it expects before touching anything.
    """

    def __init__(self, gateway, scheduler, topics, durations: Optional[PhaseDurations] = None,
                 max_rounds: int = 5, min_players: int = 2, rng=None):
        self._gateway = gateway
        self._scheduler = scheduler
        self._topics = topics
        self._durations = durations or PhaseDurations()
        self._max_rounds = max_rounds
        self._min_players = min_players
        self._rng = rng or random.Random()

    @property
    def topics(self):
        return self._topics

    # ---- host actions ----

    def start_game(self, session, identity: str) -> RoundState:
        with session.lock:
            if session.closed:
                raise StaleReferenceError('Lobby was closed')
            lobby = session.lobby
            if not lobby.is_host(identity):
                raise AuthorizationError('Only the host can start the game')
            if lobby.game_started:
                raise ValidationError('Game has already started')
            if len(lobby.participants) < self._min_players:
                raise ValidationError(f'At least {self._min_players} players are required to start')

            state = RoundState(timer=PhaseTimer(self._scheduler, session.lock, label=session.code))
            self._reset(state, session)
            session.round = state
            lobby.game_started = True
            logger.info(f"[game-start] lobby={session.code} players={len(lobby.participants)}")
            self._begin(session, state)
            return state

    def restart_game(self, session, identity: str) -> RoundState:
        with session.lock:
            state = self._active(session)
            if state is None:
                raise ValidationError('No game to restart')
            if not session.lobby.is_host(identity):
                raise AuthorizationError('Only the host can restart the game')
            state.timer.cancel()
            self._reset(state, session)
            logger.info(f"[game-restart] lobby={session.code}")
            self._begin(session, state)
            return state

    # ---- player actions ----

    def cast_vote(self, session, identity: str, choice) -> bool:
        return self._record_ballot(session, identity, choice, PHASE_VOTING)

    def cast_revote(self, session, identity: str, choice) -> bool:
        return self._record_ballot(session, identity, choice, PHASE_REVOTING)

    def membership_changed(self, session) -> None:
        """Re-check the all-voted fast path after someone leaves or is evicted."""
        with session.lock:
            state = self._active(session)
            if state is not None:
                self._check_all_voted(session, state)

    def sync(self, session, identity: str) -> bool:
        """Send ``identity`` a full snapshot of the lobby and the game."""
        with session.lock:
            state = self._active(session)
            if state is None:
                return False
            self._gateway.send_to_member(session.code, identity, 'sync-game-state', {
                'gameState': state.snapshot(),
                'lobby': session.lobby.to_dict(),
                'userVote': state.votes.get(identity),
                'userRevote': state.revotes.get(identity),
            })
            return True

    def welcome_late_joiner(self, session, identity: str) -> bool:
        with session.lock:
            state = self._active(session)
            if state is None or identity in state.starting_roster:
                return False
            self._gateway.send_to_member(session.code, identity, 'late-join-welcome', {
                'roundNumber': state.round_number,
                'currentPhase': state.phase,
                'currentTopic': state.current_topic,
            })
            return True

    # ---- internals ----

    def _active(self, session) -> Optional[RoundState]:
        if session.closed or session.round is None:
            logger.debug(f"[stale] lobby={session.code} no active game")
            return None
        return session.round

    def _emit(self, session, event, payload=None):
        self._gateway.send_to_group(session.code, event, payload)

    def _emit_phase(self, session, phase, **extra):
        payload = {'phase': phase}
        payload.update(extra)
        logger.info(f"[phase] lobby={session.code} phase={phase} round={session.round.round_number}")
        self._emit(session, 'game-phase-update', payload)

    def _reset(self, state: RoundState, session) -> None:
        roster = session.lobby.identities()
        state.phase = PHASE_VOTING
        state.round_number = 1
        state.current_topic = ''
        state.votes = {}
        state.revotes = {}
        state.scores = {identity: 0 for identity in roster}
        state.used_topics = []
        state.used_speakers = set()
        state.starting_roster = roster
        state.timer_remaining = self._durations.voting
        state.initial_vote_results = VoteTally()
        state.final_vote_results = VoteTally()
        state.current_speaker = None
        state.speaker_position = None
        state.settling = False

    def _begin(self, session, state):
        self._emit(session, 'game-started', {
            'lobby': session.lobby.to_dict(),
            'gameState': state.snapshot(),
        })
        state.timer.delay(self._durations.game_start, lambda: self._start_voting(session))

    def _arm(self, session, state, seconds, next_step):
        def on_tick(remaining):
            state.timer_remaining = remaining
            self._emit(session, 'game-timer', {'timeRemaining': remaining})

        state.timer.arm(seconds, on_tick, lambda: next_step(session))

    def _hold(self, state, seconds, next_step, session):
        # Snapshots taken during a hold report its full length
        state.timer_remaining = int(seconds)
        state.timer.delay(seconds, lambda: next_step(session))

    def _record_ballot(self, session, identity, choice, phase) -> bool:
        if choice not in VOTE_CHOICES:
            raise ValidationError(f"Vote must be one of {', '.join(VOTE_CHOICES)}")
        with session.lock:
            state = self._active(session)
            # Before the first topic is drawn the phase already reads voting
            waiting_for_topic = phase == PHASE_VOTING and state is not None and not state.current_topic
            if state is None or state.phase != phase or waiting_for_topic:
                logger.debug(f"[ballot-ignored] lobby={session.code} user={identity} phase={state.phase if state else None}")
                return False
            if session.lobby.find(identity) is None:
                raise ValidationError(f'{identity} is not in lobby {session.code}')
            ballots = state.votes if phase == PHASE_VOTING else state.revotes
            ballots[identity] = choice
            self._check_all_voted(session, state)
            return True

    def _check_all_voted(self, session, state) -> None:
        if state.settling or state.phase not in (PHASE_VOTING, PHASE_REVOTING):
            return
        ballots = state.votes if state.phase == PHASE_VOTING else state.revotes
        connected = session.lobby.connected_identities()
        if not connected or any(identity not in ballots for identity in connected):
            return
        next_step = self._process_vote_results if state.phase == PHASE_VOTING else self._calculate_results
        logger.info(f"[all-voted] lobby={session.code} phase={state.phase} voters={len(connected)}")
        state.timer.cancel()
        state.settling = True
        self._hold(state, self._durations.vote_settle, next_step, session)

    def _start_voting(self, session):
        state = self._active(session)
        if state is None or state.phase not in (PHASE_VOTING, PHASE_WAITING):
            return
        state.timer.cancel()
        topic = self._topics.pick(state.used_topics, self._rng)
        if topic is None:
            logger.info(f"[topics-exhausted] lobby={session.code}")
            self._end_game(session)
            return
        state.current_topic = topic
        state.used_topics.append(topic)
        state.phase = PHASE_VOTING
        state.votes = {}
        state.settling = False
        self._emit(session, 'topic-selected', {'topic': topic})
        self._emit_phase(session, PHASE_VOTING, roundNumber=state.round_number)
        self._arm(session, state, self._durations.voting, self._process_vote_results)

    def _process_vote_results(self, session):
        state = self._active(session)
        if state is None or state.phase != PHASE_VOTING:
            return
        state.timer.cancel()
        tally = tally_ballots(state.votes, session.lobby.connected_identities())
        state.initial_vote_results = tally
        state.phase = PHASE_VOTE_RESULTS
        self._emit_phase(session, PHASE_VOTE_RESULTS)
        self._emit(session, 'vote-results', tally.to_dict())
        if tally.agree == 0 or tally.disagree == 0:
            logger.info(f"[round-skip] lobby={session.code} tally={tally.to_dict()}")
            state.phase = PHASE_ROUND_SKIPPED
            self._hold(state, self._durations.skip_notice, self._announce_skip, session)
            return
        self._hold(state, self._durations.vote_results, self._start_solo, session)

    def _announce_skip(self, session):
        state = self._active(session)
        if state is None or state.phase != PHASE_ROUND_SKIPPED:
            return
        state.timer.cancel()
        self._emit_phase(session, PHASE_ROUND_SKIPPED)
        self._emit(session, 'round-skipped', {
            'message': SKIP_MESSAGE,
            'initialVotes': state.initial_vote_results.to_dict(),
            'finalVotes': None,
        })
        self._hold(state, self._durations.skip_hold, self._show_scoreboard, session)

    def _start_solo(self, session):
        state = self._active(session)
        if state is None or state.phase != PHASE_VOTE_RESULTS:
            return
        state.timer.cancel()
        state.phase = PHASE_SOLO
        speaker = self._pick_speaker(session, state)
        state.current_speaker = speaker
        if speaker is None:
            state.speaker_position = None
            logger.info(f"[solo-skip] lobby={session.code} no connected speakers")
            self._start_discussion(session)
            return
        state.used_speakers.add(speaker)
        state.speaker_position = state.votes.get(speaker) or VOTE_ABSTAIN
        self._emit_phase(session, PHASE_SOLO, speaker=speaker)
        self._emit(session, 'speaker-selected', {'speaker': speaker, 'position': state.speaker_position})
        self._arm(session, state, self._durations.solo, self._start_discussion)

    def _pick_speaker(self, session, state) -> Optional[str]:
        connected = set(session.lobby.connected_identities())
        present = [i for i in state.starting_roster if i in connected]
        eligible = [i for i in present if i not in state.used_speakers]
        if not eligible:
            state.used_speakers = set()
            eligible = present
        if not eligible:
            return None
        return self._rng.choice(eligible)

    def _start_discussion(self, session):
        state = self._active(session)
        if state is None or state.phase != PHASE_SOLO:
            return
        state.timer.cancel()
        state.phase = PHASE_DISCUSSION
        self._emit_phase(session, PHASE_DISCUSSION)
        self._arm(session, state, self._durations.discussion, self._start_revoting)

    def _start_revoting(self, session):
        state = self._active(session)
        if state is None or state.phase != PHASE_DISCUSSION:
            return
        state.timer.cancel()
        state.phase = PHASE_REVOTING
        state.revotes = {}
        state.settling = False
        self._emit_phase(session, PHASE_REVOTING)
        self._arm(session, state, self._durations.revoting, self._calculate_results)

    def _calculate_results(self, session):
        state = self._active(session)
        if state is None or state.phase != PHASE_REVOTING:
            return
        state.timer.cancel()
        final = tally_ballots(state.revotes, session.lobby.connected_identities())
        state.final_vote_results = final
        outcome = score_round(state.initial_vote_results, final, state.revotes, session.lobby.participants)
        apply_outcome(state.scores, outcome)
        logger.info(
            f"[round-results] lobby={session.code} agree_change={outcome.agree_change} "
            f"disagree_change={outcome.disagree_change} winner={outcome.winning_side} "
            f"points={outcome.points_per_winner}"
        )
        state.phase = PHASE_ROUND_RESULTS
        self._emit_phase(session, PHASE_ROUND_RESULTS)
        self._emit(session, 'round-results', outcome.to_payload(state.initial_vote_results, final))
        self._hold(state, self._durations.round_results, self._show_scoreboard, session)

    def _show_scoreboard(self, session):
        state = self._active(session)
        if state is None or state.phase not in (PHASE_ROUND_RESULTS, PHASE_ROUND_SKIPPED):
            return
        state.timer.cancel()
        state.phase = PHASE_SCOREBOARD
        self._emit_phase(session, PHASE_SCOREBOARD)
        self._emit(session, 'scoreboard-update', {'scores': dict(state.scores)})
        self._hold(state, self._durations.scoreboard, self._finish_round, session)

    def _finish_round(self, session):
        state = self._active(session)
        if state is None or state.phase != PHASE_SCOREBOARD:
            return
        state.timer.cancel()
        state.round_number += 1
        if state.round_number > self._max_rounds or len(state.used_topics) >= len(self._topics):
            self._end_game(session)
            return
        state.phase = PHASE_WAITING
        self._emit_phase(session, PHASE_WAITING, roundNumber=state.round_number)
        self._hold(state, self._durations.waiting, self._start_voting, session)

    def _end_game(self, session):
        state = self._active(session)
        if state is None:
            return
        state.timer.cancel()
        state.phase = PHASE_ENDED
        state.timer_remaining = 0
        logger.info(f"[game-end] lobby={session.code} scores={state.scores}")
        self._emit_phase(session, PHASE_ENDED)
        self._emit(session, 'game-ended', {'finalScores': dict(state.scores)})
