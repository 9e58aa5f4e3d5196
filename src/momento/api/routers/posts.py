"""Posts API router.

- GET    /posts                      - List posts (cached, paginated, sortable)
- GET    /posts/search               - Search caption, location and tags (cached)
- GET    /posts/feed                 - Own and followed users' posts (cached per user)
- GET    /posts/user/{user_id}       - Posts by a creator (cached)
- GET    /posts/user/{user_id}/liked - Posts a user liked (cached)
- GET    /posts/{post_id}            - Get a post (cached)
- POST   /posts                      - Create a post
- PUT    /posts/{post_id}            - Update own post
- DELETE /posts/{post_id}            - Delete own post with its likes and reviews
- PUT    /posts/{post_id}/like       - Like or unlike as the acting user

Every list lives in the "posts" namespace so a single invalidation drops
all of them; the discriminator carries the scope and query shape.
"""

from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from momento.api.deps import (
    Pagination,
    acting_user_id,
    configured_ttl,
    get_current_user_id,
    get_fanout,
    get_invalidator,
    get_pagination,
    resolved_pagination,
)
from momento.api.errors import BadRequestError, ForbiddenError, NotFoundError
from momento.api.middleware.response_cache import ResponseCacheInterceptor
from momento.api.notify import notify
from momento.api.responses import build_post, build_posts
from momento.cache import InvalidationBus, Namespace, query_discriminator
from momento.core.models import (
    LikeRequest,
    NotificationType,
    Post,
    PostCreate,
    PostPage,
    PostSort,
    PostUpdate,
    StatusMessage,
)
from momento.persistence.db import get_session
from momento.persistence.repositories import FollowRepository, PostRepository
from momento.persistence.tables import PostTable
from momento.realtime import RealtimeEvent, RealtimeFanout

router = APIRouter(prefix="/posts", tags=["Posts"])


def _list_key(scope: str, sortable: bool = True):
    """Key function for a post list; scope may reference path params and the acting user.

    The discriminator holds the effective query (defaults applied, limit
    clamped), so "/posts" and "/posts?sort_by=latest&limit=20&skip=0" share
    an entry.
    """

    def key_fn(request: Request) -> str:
        prefix = scope.format(**request.path_params, current_user=acting_user_id(request))
        params = asdict(resolved_pagination(request))
        if sortable:
            params["sort_by"] = PostSort(request.query_params.get("sort_by", PostSort.LATEST))
        return query_discriminator(params, prefix=prefix)

    return key_fn


def _search_key(request: Request) -> str:
    params = asdict(resolved_pagination(request))
    params["search_term"] = request.query_params.get("search_term", "").strip()
    return query_discriminator(params, prefix="search")


async def _get_own_post(session: AsyncSession, post_id: str, user_id: str) -> PostTable:
    row = await PostRepository(session).get(post_id)
    if row is None:
        raise NotFoundError("Post", post_id)
    if row.creator_id != user_id:
        raise ForbiddenError("Only the creator may modify this post")
    return row


# -----------------------------------------------------------------------------
# Reads
# -----------------------------------------------------------------------------


@router.get("", response_model=PostPage)
@ResponseCacheInterceptor(
    Namespace.POSTS, key_fn=_list_key("all"), ttl=configured_ttl("cache_ttl_posts")
)
async def list_posts(
    sort_by: PostSort = Query(PostSort.LATEST),
    page: Pagination = Depends(get_pagination),
    session: AsyncSession = Depends(get_session),
) -> PostPage:
    rows = await PostRepository(session).list_page(page.limit, page.skip, sort_by)
    return PostPage(documents=await build_posts(session, rows))


@router.get("/search", response_model=PostPage)
@ResponseCacheInterceptor(
    Namespace.POSTS, key_fn=_search_key, ttl=configured_ttl("cache_ttl_posts")
)
async def search_posts(
    search_term: str = Query(""),
    page: Pagination = Depends(get_pagination),
    session: AsyncSession = Depends(get_session),
) -> PostPage:
    """Case-insensitive substring match on caption, location or tags."""
    term = search_term.strip()
    if not term:
        raise BadRequestError("Search term is required")

    rows = await PostRepository(session).search(term, page.limit, page.skip)
    return PostPage(documents=await build_posts(session, rows))


@router.get("/feed", response_model=PostPage)
@ResponseCacheInterceptor(
    Namespace.POSTS,
    key_fn=_list_key("feed:{current_user}"),
    ttl=configured_ttl("cache_ttl_posts"),
)
async def get_feed(
    sort_by: PostSort = Query(PostSort.LATEST),
    page: Pagination = Depends(get_pagination),
    current_user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> PostPage:
    """Posts by the acting user and everyone they follow."""
    following = await FollowRepository(session).following_ids(current_user_id)
    rows = await PostRepository(session).list_page(
        page.limit, page.skip, sort_by, creator_ids=[*following, current_user_id]
    )
    return PostPage(documents=await build_posts(session, rows))


@router.get("/user/{user_id}", response_model=PostPage)
@ResponseCacheInterceptor(
    Namespace.POSTS,
    key_fn=_list_key("user:{user_id}"),
    ttl=configured_ttl("cache_ttl_posts"),
)
async def list_user_posts(
    user_id: str,
    sort_by: PostSort = Query(PostSort.LATEST),
    page: Pagination = Depends(get_pagination),
    session: AsyncSession = Depends(get_session),
) -> PostPage:
    rows = await PostRepository(session).list_page(
        page.limit, page.skip, sort_by, creator_ids=[user_id]
    )
    return PostPage(documents=await build_posts(session, rows))


@router.get("/user/{user_id}/liked", response_model=PostPage)
@ResponseCacheInterceptor(
    Namespace.POSTS,
    key_fn=_list_key("liked:{user_id}", sortable=False),
    ttl=configured_ttl("cache_ttl_posts"),
)
async def list_liked_posts(
    user_id: str,
    page: Pagination = Depends(get_pagination),
    session: AsyncSession = Depends(get_session),
) -> PostPage:
    rows = await PostRepository(session).liked_by(user_id, page.limit, page.skip)
    return PostPage(documents=await build_posts(session, rows))


@router.get("/{post_id}", response_model=Post)
@ResponseCacheInterceptor(
    Namespace.POST,
    key_fn=lambda request: request.path_params["post_id"],
    ttl=configured_ttl("cache_ttl_post"),
)
async def get_post(
    post_id: str,
    session: AsyncSession = Depends(get_session),
) -> Post:
    row = await PostRepository(session).get(post_id)
    if row is None:
        raise NotFoundError("Post", post_id)
    return await build_post(session, row)


# -----------------------------------------------------------------------------
# Mutations: commit, then invalidate, then emit
# -----------------------------------------------------------------------------


@router.post("", status_code=201, response_model=Post)
async def create_post(
    body: PostCreate,
    current_user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    invalidator: InvalidationBus = Depends(get_invalidator),
) -> Post:
    row = await PostRepository(session).create(current_user_id, **body.model_dump())
    await session.commit()

    invalidator.invalidate(Namespace.POSTS)
    return await build_post(session, row)


@router.put("/{post_id}", response_model=Post)
async def update_post(
    post_id: str,
    body: PostUpdate,
    current_user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    invalidator: InvalidationBus = Depends(get_invalidator),
    fanout: RealtimeFanout = Depends(get_fanout),
) -> Post:
    row = await _get_own_post(session, post_id, current_user_id)
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    await PostRepository(session).update(row, changes)
    await session.commit()

    invalidator.invalidate_many((Namespace.POST, post_id), (Namespace.POSTS, None))
    post = await build_post(session, row)
    await fanout.broadcast(
        RealtimeEvent.POST_UPDATED, {"postId": post_id, "action": "update"}
    )
    return post


@router.delete("/{post_id}", response_model=StatusMessage)
async def delete_post(
    post_id: str,
    current_user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    invalidator: InvalidationBus = Depends(get_invalidator),
    fanout: RealtimeFanout = Depends(get_fanout),
) -> StatusMessage:
    await _get_own_post(session, post_id, current_user_id)
    await PostRepository(session).delete(post_id)
    await session.commit()

    invalidator.invalidate_many(
        (Namespace.POST, post_id), (Namespace.POSTS, None), (Namespace.REVIEWS, None)
    )
    await fanout.broadcast(
        RealtimeEvent.POST_UPDATED, {"postId": post_id, "action": "delete"}
    )
    return StatusMessage(message="Post deleted successfully")


@router.put("/{post_id}/like", response_model=Post)
async def like_post(
    post_id: str,
    body: LikeRequest = LikeRequest(),
    current_user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    invalidator: InvalidationBus = Depends(get_invalidator),
    fanout: RealtimeFanout = Depends(get_fanout),
) -> Post:
    """Add or remove the acting user's like.

    Each request changes only the acting user's own like, so concurrent
    likes from different users never overwrite each other.
    """
    repo = PostRepository(session)
    row = await repo.get(post_id)
    if row is None:
        raise NotFoundError("Post", post_id)

    if body.liked:
        changed = await repo.add_like(post_id, current_user_id)
    else:
        changed = await repo.remove_like(post_id, current_user_id)
    await session.commit()

    invalidator.invalidate_many((Namespace.POST, post_id), (Namespace.POSTS, None))

    # A lost insert race rolls the session back and expires the row
    row = await repo.get(post_id)
    if row is None:
        raise NotFoundError("Post", post_id)
    post = await build_post(session, row)

    if changed:
        await fanout.broadcast(
            RealtimeEvent.POST_UPDATED,
            {
                "postId": post_id,
                "action": "like" if body.liked else "unlike",
                "likeCount": post.like_count,
            },
        )
    if changed and body.liked:
        await notify(
            session,
            fanout,
            recipient_id=row.creator_id,
            actor_id=current_user_id,
            type=NotificationType.LIKE,
            post_id=post_id,
        )
    return post
