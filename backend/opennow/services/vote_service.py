from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from ..errors import ValidationError
from ..models import Vote, VoteState, VoteType
from ..store import VOTES, DocumentStore
from .business_repository import BusinessRepository
from .time_service import epoch_millis, utcnow

logger = logging.getLogger(__name__)

# (current state, incoming vote) -> (next state, likes delta, dislikes delta)
TRANSITIONS: dict[tuple[VoteState, VoteType], tuple[VoteState, int, int]] = {
    (VoteState.NO_VOTE, VoteType.LIKE): (VoteState.LIKED, 1, 0),
    (VoteState.NO_VOTE, VoteType.DISLIKE): (VoteState.DISLIKED, 0, 1),
    (VoteState.LIKED, VoteType.LIKE): (VoteState.NO_VOTE, -1, 0),
    (VoteState.LIKED, VoteType.DISLIKE): (VoteState.DISLIKED, -1, 1),
    (VoteState.DISLIKED, VoteType.DISLIKE): (VoteState.NO_VOTE, 0, -1),
    (VoteState.DISLIKED, VoteType.LIKE): (VoteState.LIKED, 1, -1),
}


@dataclass
class VoteOutcome:
    state: VoteState
    likes: int
    dislikes: int


def parse_vote_type(raw: str | None) -> VoteType:
    try:
        return VoteType(raw)
    except ValueError:
        raise ValidationError(f"Invalid vote type {raw!r}; expected 'like' or 'dislike'") from None


def state_for(vote_type: VoteType | None) -> VoteState:
    if vote_type is VoteType.LIKE:
        return VoteState.LIKED
    if vote_type is VoteType.DISLIKE:
        return VoteState.DISLIKED
    return VoteState.NO_VOTE


def transition(state: VoteState, vote_type: VoteType) -> tuple[VoteState, int, int]:
    return TRANSITIONS[(state, vote_type)]


class VoteService:
    """Like/dislike toggling with denormalized counters on the business.

    The vote document and the counters are written separately without a
    transaction; concurrent votes from the same user can race.
    """

    def __init__(self, store: DocumentStore) -> None:
        self.votes = store.collection(VOTES)
        self.repository = BusinessRepository(store)

    async def current_state(self, business_id: str, user_id: str) -> VoteState:
        document = await self.votes.get(Vote.key_for(business_id, user_id))
        if document is None:
            return VoteState.NO_VOTE
        return state_for(Vote.model_validate(document).type)

    async def vote(
        self,
        business_id: str,
        user_id: str,
        vote_type: VoteType | str,
        now_utc: datetime | None = None,
    ) -> VoteOutcome:
        if not isinstance(vote_type, VoteType):
            vote_type = parse_vote_type(vote_type)
        business = await self.repository.require(business_id)
        stamp = epoch_millis(now_utc or utcnow())
        key = Vote.key_for(business_id, user_id)

        existing = await self.votes.get(key)
        state = VoteState.NO_VOTE if existing is None else state_for(Vote.model_validate(existing).type)
        next_state, likes_delta, dislikes_delta = transition(state, vote_type)

        if next_state is VoteState.NO_VOTE:
            await self.votes.delete(key)
        elif existing is None:
            vote = Vote(
                vote_id=key,
                business_id=business_id,
                user_id=user_id,
                type=vote_type,
                created_at=stamp,
                updated_at=stamp,
            )
            await self.votes.set(key, vote.model_dump(mode="json"))
        else:
            await self.votes.update(key, {"type": vote_type.value, "updated_at": stamp})

        likes = max(0, business.analytics.likes + likes_delta)
        dislikes = max(0, business.analytics.dislikes + dislikes_delta)
        await self.repository.update(
            business_id,
            {"analytics.likes": likes, "analytics.dislikes": dislikes},
        )
        logger.info(
            "Vote business=%s user=%s %s -> %s",
            business_id,
            user_id,
            state.value,
            next_state.value,
        )
        return VoteOutcome(state=next_state, likes=likes, dislikes=dislikes)
