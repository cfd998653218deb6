from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional

from debate.models import (
    VOTE_ABSTAIN,
    VOTE_AGREE,
    VOTE_DISAGREE,
    Participant,
    VoteTally,
)


def tally_ballots(ballots: Mapping[str, str], voters: Iterable[str]) -> VoteTally:
    """Count one ballot per voter; a voter without a ballot abstains.

    Only ``voters`` are counted, so disconnected participants fall out of both
    the tally and its total.
    """
    tally = VoteTally()
    for identity in voters:
        choice = ballots.get(identity) or VOTE_ABSTAIN
        setattr(tally, choice, tally.count(choice) + 1)
    return tally


@dataclass(frozen=True)
class RoundOutcome:
    agree_change: int
    disagree_change: int
    winning_side: Optional[str]
    points_per_winner: int
    score_deltas: Dict[str, int] = field(default_factory=dict)

    def to_payload(self, initial: VoteTally, final: VoteTally):
        return {
            'initialVotes': initial.to_dict(),
            'finalVotes': final.to_dict(),
            'winningTeam': [self.winning_side] if self.winning_side else [],
            'pointsPerWinner': self.points_per_winner,
            'agreeChange': self.agree_change,
            'disagreeChange': self.disagree_change,
        }


def score_round(
    initial: VoteTally,
    final: VoteTally,
    revotes: Mapping[str, str],
    participants: Iterable[Participant],
) -> RoundOutcome:
    """Work out who won the round and the resulting score changes.

    The side whose vote count grew more between the first vote and the
    revote wins; a tie (including no movement at all) has no winner. Every
    participant who revoted for the winning side gets the full net gain,
    and every connected participant who did not revote loses one point.
    This is a pure function of its arguments.
    """
    agree_change = final.agree - initial.agree
    disagree_change = final.disagree - initial.disagree

    winning_side = None
    points = 0
    if agree_change > disagree_change:
        winning_side, points = VOTE_AGREE, agree_change
    elif disagree_change > agree_change:
        winning_side, points = VOTE_DISAGREE, disagree_change

    participants = list(participants)
    deltas: Dict[str, int] = {}
    if winning_side and points > 0:
        for p in participants:
            if revotes.get(p.identity) == winning_side:
                deltas[p.identity] = deltas.get(p.identity, 0) + points
    for p in participants:
        if p.connected and not revotes.get(p.identity):
            deltas[p.identity] = deltas.get(p.identity, 0) - 1

    return RoundOutcome(
        agree_change=agree_change,
        disagree_change=disagree_change,
        winning_side=winning_side,
        points_per_winner=points,
        score_deltas=deltas,
    )


def apply_outcome(scores: Dict[str, int], outcome: RoundOutcome) -> None:
    for identity, delta in outcome.score_deltas.items():
        scores[identity] = scores.get(identity, 0) + delta
