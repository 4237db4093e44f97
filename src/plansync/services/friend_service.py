"""Friend graph engine: requests, acceptance and the friends list.

Requests live in the top-level friend_requests collection. An accepted
friendship is stored twice, once in each user's friends collection keyed by
the other user's UID.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Optional, TypeVar

from plansync.adapters.sqlite import LocalStore
from plansync.exceptions import (
    AlreadyFriendsError,
    AuthorizationError,
    CannotAddSelfError,
    DocumentDecodeError,
    DocumentServiceError,
    FriendGraphError,
    InvalidEmailError,
    RequestAlreadyExistsError,
    RequestAlreadyResolvedError,
    RequestNotFoundError,
    ReverseRequestPendingError,
    UserNotFoundError,
)
from plansync.models import Friend, FriendRequest, UserLookup
from plansync.models.core import is_valid_email
from plansync.models.documents import (
    FRIEND_STATUS_ACTIVE,
    USERS,
    decode_friend,
    decode_friend_request,
    decode_user,
    encode_friend,
    encode_friend_request,
    friend_requests_path,
    friends_path,
    user_path,
)
from plansync.repositories import DocumentService
from plansync.services.identity import IdentityProvider, Session
from plansync.utils.logger import get_logger

logger = get_logger("friends")

T = TypeVar("T")


class FriendService:
    """Friend graph engine.

    Attributes:
        pending_requests: Unresolved requests addressed to the signed-in user
        friends: Cached friends of the signed-in user
    """

    def __init__(
        self,
        store: LocalStore,
        documents: DocumentService,
        identity: IdentityProvider,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.documents = documents
        self.identity = identity
        self.clock = clock or (lambda: datetime.now(UTC))
        self.pending_requests: list[FriendRequest] = []
        self.friends: list[Friend] = []

    async def _remote(self, phase: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except DocumentServiceError as e:
            raise FriendGraphError(
                f"Friend graph {phase} failed: {e}", entity="friend", phase=phase
            ) from e

    async def _lookup(self, session: Session, email: str) -> UserLookup | None:
        email = email.strip()
        if not is_valid_email(email):
            raise InvalidEmailError(f"Invalid email address: {email!r}")
        if email.lower() == session.email.lower():
            raise CannotAddSelfError("You cannot add yourself as a friend")

        docs = await self._remote(
            "lookup", self.documents.list(USERS, {"email": email.lower()}, limit=1)
        )
        if not docs:
            return None
        try:
            return decode_user(docs[0].id, docs[0].data)
        except DocumentDecodeError as e:
            logger.warning("Unreadable user document %s: %s", docs[0].id, e)
            return None

    async def find_user_by_email(self, email: str) -> UserLookup | None:
        """Look up a registered user by email (case-insensitive).

        Raises:
            InvalidEmailError: If the address is malformed
            CannotAddSelfError: If it is the caller's own address
            FriendGraphError: If the directory could not be queried
        """
        session = self.identity.require_session()
        return await self._lookup(session, email)

    async def _unresolved_between(self, from_uid: str, to_uid: str) -> bool:
        docs = await self._remote(
            "request_check",
            self.documents.list(
                friend_requests_path(), {"from_uid": from_uid, "to_uid": to_uid}
            ),
        )
        return any(not doc.data.get("resolved", False) for doc in docs)

    async def send_friend_request(self, email: str) -> FriendRequest:
        """Send a friend request to the user registered under email.

        Raises:
            InvalidEmailError, CannotAddSelfError: For an unusable address
            UserNotFoundError: If nobody is registered under the address
            AlreadyFriendsError: If the users are already friends
            RequestAlreadyExistsError: If an unresolved request is already out
            ReverseRequestPendingError: If the target already asked the caller
            FriendGraphError: If a remote call failed
        """
        session = self.identity.require_session()
        target = await self._lookup(session, email)
        if target is None:
            raise UserNotFoundError(f"No user registered under {email}")

        uid = session.user_id
        async with self.store.transaction() as tx:
            known = await tx.friends.get_by_uid(uid, target.uid)
        existing = await self._remote(
            "friend_check", self.documents.get(f"{friends_path(uid)}/{target.uid}")
        )
        if known is not None or existing is not None:
            raise AlreadyFriendsError(f"You are already friends with {target.email}")

        if await self._unresolved_between(uid, target.uid):
            raise RequestAlreadyExistsError(f"A request to {target.email} is already pending")
        if await self._unresolved_between(target.uid, uid):
            raise ReverseRequestPendingError(
                f"{target.email} already sent you a request; accept it instead"
            )

        request = FriendRequest(
            from_uid=uid,
            to_uid=target.uid,
            from_email=session.email,
            to_email=target.email,
            from_name=session.name,
            to_name=target.name,
            send_date=self.clock(),
        )
        request.remote_id = await self._remote(
            "send", self.documents.add(friend_requests_path(), encode_friend_request(request))
        )
        async with self.store.transaction() as tx:
            request = await tx.friend_requests.upsert(request)

        logger.info("Friend request %s sent to %s", request.remote_id, target.uid)
        return request

    async def fetch_pending_friend_requests(self) -> list[FriendRequest]:
        """Refresh the unresolved requests addressed to the caller."""
        session = self.identity.require_session()
        docs = await self._remote(
            "fetch_requests",
            self.documents.list(friend_requests_path(), {"to_uid": session.user_id}),
        )

        pending = []
        for doc in docs:
            try:
                request = decode_friend_request(doc.id, doc.data)
            except DocumentDecodeError as e:
                logger.warning("Skipping friend request %s: %s", doc.id, e)
                continue
            if not request.resolved:
                pending.append(request)

        async with self.store.transaction() as tx:
            await tx.friend_requests.replace_pending(session.user_id, pending)
            self.pending_requests = await tx.friend_requests.list_pending(session.user_id)

        logger.info("%d pending friend request(s)", len(self.pending_requests))
        return self.pending_requests

    async def _check_resolvable(self, session: Session, request: FriendRequest) -> str:
        if request.to_uid != session.user_id:
            raise AuthorizationError("Only the addressee can resolve a friend request")
        if request.resolved:
            raise RequestAlreadyResolvedError(f"Request {request.remote_id} is already resolved")
        if not request.remote_id:
            raise RequestNotFoundError(f"Request {request.id} has no remote counterpart")

        path = f"{friend_requests_path()}/{request.remote_id}"
        doc = await self._remote("resolve", self.documents.get(path))
        if doc is None:
            raise RequestNotFoundError(f"Request {request.remote_id} no longer exists")
        if doc.data.get("resolved", False):
            raise RequestAlreadyResolvedError(f"Request {request.remote_id} is already resolved")
        return path

    async def _store_resolved(self, request: FriendRequest, *, accepted: bool) -> FriendRequest:
        resolved = request.model_copy(
            update={"resolved": True, "accepted": accepted, "resolved_date": self.clock()}
        )
        async with self.store.transaction() as tx:
            resolved = await tx.friend_requests.upsert(resolved)
        self.pending_requests = [
            r for r in self.pending_requests if r.remote_id != request.remote_id
        ]
        return resolved

    async def accept_friend_request(self, request: FriendRequest) -> Friend:
        """Accept a request: resolve it and befriend both users in one batch.

        Raises:
            AuthorizationError: If the caller is not the addressee
            RequestAlreadyResolvedError: If the request was already resolved
            RequestNotFoundError: If the request has no remote document
            FriendGraphError: If the batch failed (nothing changes locally)
        """
        session = self.identity.require_session()
        path = await self._check_resolvable(session, request)
        uid = session.user_id

        batch = self.documents.batch()
        batch.update(path, {"resolved": True, "accepted": True, "resolved_date": self.clock()})
        batch.set(
            f"{friends_path(uid)}/{request.from_uid}",
            encode_friend(request.from_uid, request.from_email),
        )
        batch.set(f"{friends_path(request.from_uid)}/{uid}", encode_friend(uid, session.email))
        await self._remote("accept", batch.commit())

        friend = Friend(
            owner_uid=uid,
            friend_name=request.from_name or request.from_email,
            friend_uid=request.from_uid,
            friend_email=request.from_email,
        )
        async with self.store.transaction() as tx:
            friend = await tx.friends.upsert(friend)
        await self._store_resolved(request, accepted=True)

        self.friends = [f for f in self.friends if f.friend_uid != friend.friend_uid] + [friend]
        logger.info("Accepted friend request %s from %s", request.remote_id, request.from_uid)
        return friend

    async def decline_friend_request(self, request: FriendRequest) -> FriendRequest:
        """Resolve a request without befriending.

        Raises:
            AuthorizationError, RequestAlreadyResolvedError, RequestNotFoundError,
            FriendGraphError: As for accept_friend_request
        """
        session = self.identity.require_session()
        path = await self._check_resolvable(session, request)
        await self._remote(
            "decline",
            self.documents.update(
                path, {"resolved": True, "accepted": False, "resolved_date": self.clock()}
            ),
        )
        resolved = await self._store_resolved(request, accepted=False)
        logger.info("Declined friend request %s", request.remote_id)
        return resolved

    async def delete_friend(self, friend: Friend) -> None:
        """Remove the friendship on both sides, then the local record.

        Raises:
            FriendGraphError: If the batch failed (the local record is kept)
        """
        session = self.identity.require_session()
        uid = session.user_id
        batch = self.documents.batch()
        batch.delete(f"{friends_path(uid)}/{friend.friend_uid}")
        batch.delete(f"{friends_path(friend.friend_uid)}/{uid}")
        await self._remote("delete", batch.commit())

        async with self.store.transaction() as tx:
            await tx.friends.delete(uid, friend.friend_uid)
        self.friends = [f for f in self.friends if f.friend_uid != friend.friend_uid]
        logger.info("Removed friend %s", friend.friend_uid)

    async def fetch_friends(self) -> list[Friend]:
        """Mirror the caller's active remote friends locally."""
        session = self.identity.require_session()
        uid = session.user_id
        docs = await self._remote(
            "fetch_friends",
            self.documents.list(friends_path(uid), {"status": FRIEND_STATUS_ACTIVE}),
        )

        remote_friends: list[Friend] = []
        for doc in docs:
            try:
                friend_uid, email = decode_friend(doc.id, doc.data)
            except DocumentDecodeError as e:
                logger.warning("Skipping friend document %s: %s", doc.id, e)
                continue
            user_doc = await self._remote("fetch_friends", self.documents.get(user_path(friend_uid)))
            name = (user_doc.data.get("name") if user_doc else None) or email
            remote_friends.append(
                Friend(owner_uid=uid, friend_name=name, friend_uid=friend_uid, friend_email=email)
            )

        remote_uids = {f.friend_uid for f in remote_friends}
        async with self.store.transaction() as tx:
            for friend in remote_friends:
                await tx.friends.upsert(friend)
            for local in await tx.friends.list_all(uid):
                if local.friend_uid not in remote_uids:
                    await tx.friends.delete(uid, local.friend_uid)
                    logger.info("Friend %s removed remotely", local.friend_uid)
            self.friends = await tx.friends.list_all(uid)

        return self.friends
