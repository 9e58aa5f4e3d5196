"""Reviews API router.

- POST   /reviews                 - Review a post
- GET    /reviews/post/{post_id}  - Reviews of a post (cached, paginated)
- PUT    /reviews/{review_id}     - Update own review
- DELETE /reviews/{review_id}     - Delete own review
"""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from momento.api.deps import (
    Pagination,
    configured_ttl,
    get_current_user_id,
    get_fanout,
    get_invalidator,
    get_pagination,
    resolved_pagination,
)
from momento.api.errors import ForbiddenError, NotFoundError
from momento.api.middleware.response_cache import ResponseCacheInterceptor
from momento.api.notify import notify
from momento.cache import InvalidationBus, Namespace, query_discriminator
from momento.core.models import (
    NotificationType,
    Review,
    ReviewCreate,
    ReviewPage,
    ReviewUpdate,
    StatusMessage,
)
from momento.persistence.db import get_session
from momento.persistence.repositories import PostRepository, ReviewRepository
from momento.persistence.tables import ReviewTable
from momento.realtime import RealtimeEvent, RealtimeFanout

router = APIRouter(prefix="/reviews", tags=["Reviews"])


def _post_reviews_key(request: Request) -> str:
    return query_discriminator(
        asdict(resolved_pagination(request)), prefix=request.path_params["post_id"]
    )


async def _get_own_review(session: AsyncSession, review_id: str, user_id: str) -> ReviewTable:
    row = await ReviewRepository(session).get(review_id)
    if row is None:
        raise NotFoundError("Review", review_id)
    if row.user_id != user_id:
        raise ForbiddenError("Only the author may modify this review")
    return row


@router.post("", status_code=201, response_model=Review)
async def create_review(
    body: ReviewCreate,
    current_user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    invalidator: InvalidationBus = Depends(get_invalidator),
    fanout: RealtimeFanout = Depends(get_fanout),
) -> Review:
    post = await PostRepository(session).get(body.post_id)
    if post is None:
        raise NotFoundError("Post", body.post_id)

    row = await ReviewRepository(session).create(
        user_id=current_user_id, post_id=body.post_id, review=body.review, rating=body.rating
    )
    await session.commit()

    invalidator.invalidate(Namespace.REVIEWS)
    review = Review.model_validate(row)

    await notify(
        session,
        fanout,
        recipient_id=post.creator_id,
        actor_id=current_user_id,
        type=NotificationType.REVIEW,
        post_id=body.post_id,
        review_id=review.id,
    )
    await fanout.broadcast(
        RealtimeEvent.NEW_REVIEW,
        {"postId": body.post_id, "review": review.model_dump(mode="json", by_alias=True)},
    )
    return review


@router.get("/post/{post_id}", response_model=ReviewPage)
@ResponseCacheInterceptor(
    Namespace.REVIEWS, key_fn=_post_reviews_key, ttl=configured_ttl("cache_ttl_reviews")
)
async def list_post_reviews(
    post_id: str,
    page: Pagination = Depends(get_pagination),
    session: AsyncSession = Depends(get_session),
) -> ReviewPage:
    rows = await ReviewRepository(session).list_for_post(post_id, page.limit, page.skip)
    return ReviewPage(documents=[Review.model_validate(row) for row in rows])


@router.put("/{review_id}", response_model=Review)
async def update_review(
    review_id: str,
    body: ReviewUpdate,
    current_user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    invalidator: InvalidationBus = Depends(get_invalidator),
) -> Review:
    row = await _get_own_review(session, review_id, current_user_id)
    # rating may be cleared with null; review text may not
    changes = body.model_dump(exclude_unset=True)
    if changes.get("review") is None:
        changes.pop("review", None)
    await ReviewRepository(session).update(row, changes)
    await session.commit()

    invalidator.invalidate(Namespace.REVIEWS)
    return Review.model_validate(row)


@router.delete("/{review_id}", response_model=StatusMessage)
async def delete_review(
    review_id: str,
    current_user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    invalidator: InvalidationBus = Depends(get_invalidator),
) -> StatusMessage:
    await _get_own_review(session, review_id, current_user_id)
    await ReviewRepository(session).delete(review_id)
    await session.commit()

    invalidator.invalidate(Namespace.REVIEWS)
    return StatusMessage(message="Review deleted successfully")
