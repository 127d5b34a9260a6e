from __future__ import annotations

import pytest

from opennow.errors import NotFoundError, ValidationError
from opennow.models import ReviewStatus
from opennow.services.business_repository import BusinessRepository
from opennow.services.review_service import PENDING_MESSAGE, PUBLISHED_MESSAGE, ReviewService


async def test_rating_three_is_auto_approved(store, add_businesses, make_business, now) -> None:
    await add_businesses(make_business("b1"))
    submission = await ReviewService(store).create_review("b1", "u1", 3, "Bom", now)

    assert submission.review.status is ReviewStatus.APPROVED
    assert submission.message == PUBLISHED_MESSAGE
    business = await BusinessRepository(store).require("b1")
    assert (business.rating, business.review_count) == (3.0, 1)


async def test_low_rating_waits_for_approval(store, add_businesses, make_business, now) -> None:
    await add_businesses(make_business("b1"))
    service = ReviewService(store)
    await service.create_review("b1", "u1", 5, "Ótimo", now)
    pending = await service.create_review("b1", "u2", 2, "Demorado", now)

    assert pending.review.status is ReviewStatus.PENDING
    assert pending.message == PENDING_MESSAGE
    public = await service.list_public_reviews("b1")
    assert [review.rating for review in public] == [5]
    business = await BusinessRepository(store).require("b1")
    assert (business.rating, business.review_count) == (5.0, 1)

    await service.moderate(pending.review.review_id, "approve")
    business = await BusinessRepository(store).require("b1")
    assert (business.rating, business.review_count) == (3.5, 2)
    assert len(await service.list_public_reviews("b1")) == 2


async def test_reject_deletes_review(store, add_businesses, make_business, now) -> None:
    await add_businesses(make_business("b1"))
    service = ReviewService(store)
    pending = await service.create_review("b1", "u1", 1, "Ruim", now)

    assert await service.moderate(pending.review.review_id, "reject") is None
    assert await service.list_reviews() == []
    with pytest.raises(NotFoundError):
        await service.moderate(pending.review.review_id, "approve")


async def test_admin_listing_filters_by_status(store, add_businesses, make_business, now) -> None:
    await add_businesses(make_business("b1"))
    service = ReviewService(store)
    await service.create_review("b1", "u1", 4, "", now)
    await service.create_review("b1", "u2", 1, "", now)
    pending = await service.list_reviews(ReviewStatus.PENDING)
    assert [review.rating for review in pending] == [1]
    assert len(await service.list_reviews()) == 2


@pytest.mark.parametrize("rating", [0, 6, True, "5"])
async def test_invalid_rating_is_rejected(store, add_businesses, make_business, rating) -> None:
    await add_businesses(make_business("b1"))
    with pytest.raises(ValidationError):
        await ReviewService(store).create_review("b1", "u1", rating)


async def test_review_for_missing_business(store) -> None:
    with pytest.raises(NotFoundError):
        await ReviewService(store).create_review("missing", "u1", 4)


async def test_invalid_moderation_action(store) -> None:
    with pytest.raises(ValidationError):
        await ReviewService(store).moderate("r1", "ban")
