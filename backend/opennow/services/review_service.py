from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from ..errors import NotFoundError, ValidationError
from ..models import Review, ReviewStatus
from ..store import REVIEWS, DocumentStore
from .business_repository import BusinessRepository
from .time_service import epoch_millis, utcnow

logger = logging.getLogger(__name__)

AUTO_APPROVE_MIN_RATING = 3
PUBLISHED_MESSAGE = "Avaliação publicada com sucesso!"
PENDING_MESSAGE = "Avaliação enviada para aprovação."


class ModerationAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


@dataclass
class ReviewSubmission:
    review: Review
    message: str


def initial_status(rating: int) -> ReviewStatus:
    return ReviewStatus.APPROVED if rating >= AUTO_APPROVE_MIN_RATING else ReviewStatus.PENDING


def _validate_rating(rating: object) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError("Rating must be an integer between 1 and 5")
    return rating


class ReviewService:
    def __init__(self, store: DocumentStore) -> None:
        self.reviews = store.collection(REVIEWS)
        self.repository = BusinessRepository(store)

    async def create_review(
        self,
        business_id: str,
        user_id: str,
        rating: int,
        comment: str = "",
        now_utc: datetime | None = None,
    ) -> ReviewSubmission:
        rating = _validate_rating(rating)
        await self.repository.require(business_id)
        status = initial_status(rating)
        review = Review(
            review_id="",
            business_id=business_id,
            user_id=user_id,
            rating=rating,
            comment=(comment or "").strip(),
            status=status,
            created_at=epoch_millis(now_utc or utcnow()),
        )
        payload = review.model_dump(mode="json", exclude={"review_id"})
        review.review_id = await self.reviews.add(payload, id_field="review_id")
        logger.info("Review %s for business %s stored as %s", review.review_id, business_id, status.value)

        if status is ReviewStatus.APPROVED:
            await self.recompute_rating(business_id)
            return ReviewSubmission(review=review, message=PUBLISHED_MESSAGE)
        return ReviewSubmission(review=review, message=PENDING_MESSAGE)

    async def list_public_reviews(self, business_id: str) -> list[Review]:
        documents = await (
            self.reviews.where("business_id", "==", business_id)
            .where("status", "==", ReviewStatus.APPROVED.value)
            .order_by("created_at", descending=True)
            .get()
        )
        return [Review.model_validate(document) for document in documents]

    async def list_reviews(self, status: ReviewStatus | None = None) -> list[Review]:
        query = self.reviews.query()
        if status is not None:
            query = query.where("status", "==", status.value)
        documents = await query.order_by("created_at", descending=True).get()
        return [Review.model_validate(document) for document in documents]

    async def moderate(self, review_id: str, action: ModerationAction | str) -> Review | None:
        try:
            action = ModerationAction(action)
        except ValueError:
            raise ValidationError(f"Invalid moderation action {action!r}") from None

        document = await self.reviews.get(review_id)
        if document is None:
            raise NotFoundError("Review not found")
        review = Review.model_validate(document)

        if action is ModerationAction.REJECT:
            await self.reviews.delete(review_id)
            logger.info("Review %s rejected and removed", review_id)
            if review.status is ReviewStatus.APPROVED:
                await self.recompute_rating(review.business_id)
            return None

        await self.reviews.update(review_id, {"status": ReviewStatus.APPROVED.value})
        review.status = ReviewStatus.APPROVED
        await self.recompute_rating(review.business_id)
        logger.info("Review %s approved", review_id)
        return review

    async def recompute_rating(self, business_id: str) -> tuple[float, int]:
        approved = await self.list_public_reviews(business_id)
        count = len(approved)
        average = sum(review.rating for review in approved) / count if count else 0.0
        try:
            await self.repository.update(business_id, {"rating": average, "review_count": count})
        except NotFoundError:
            logger.warning("Review business %s no longer exists; rating not updated", business_id)
        return average, count
