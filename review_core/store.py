"""
Review store: the single writable projection of a review asset.

Every mutating command follows optimistic-update-then-reconcile. The
in-memory asset is changed immediately, then the persistence adapter is
called. If that call fails, only the change made by that command is
undone, the error is recorded on the store, and the command returns a
falsy value instead of raising.

Commands may have their persistence calls in flight at the same time.
Writes to a single field (a thread's state or shapes, the asset status) are
tracked in issue order: a confirmed write supersedes every earlier one, and
a failed write is only undone if it is still the newest write to that
field, in which case the field falls back to the newest remaining write.
Loading and share-token generation are serialized.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional, Dict, Any, List, Tuple, Callable, Awaitable

from . import domain
from .adapters.base import PersistenceAdapter
from .errors import (
    ReviewError, ThreadNotFound, AssetNotLoaded, PersistenceFailure, TokenGenerationFailed
)
from .logging_setup import log_exception
from .models import ReviewAsset, Thread, Comment, Shape, ThreadState, AssetStatus

logger = logging.getLogger("review_core")


@dataclass
class TentativeMutation:
    """An optimistic change to the asset and the undo scoped to it"""
    label: str
    apply: Callable[[ReviewAsset], ReviewAsset]
    revert: Callable[[ReviewAsset], ReviewAsset]
    confirm: Optional[Callable[[], None]] = None


class ReviewStore:
    """Owns the authoritative ReviewAsset and executes review commands against it"""

    def __init__(self, persistence: PersistenceAdapter):
        self.persistence = persistence
        self.asset: Optional[ReviewAsset] = None
        self.selected_thread_id: Optional[str] = None
        self.is_loading = False
        self.error: Optional[str] = None
        self.last_error: Optional[Exception] = None
        self._load_lock = asyncio.Lock()
        self._token_lock = asyncio.Lock()
        # (owner id, field) -> {'base': last confirmed value, 'pending': {seq: value}}
        self._writes: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self._write_seq = 0
        self.stats = {
            'commands_applied': 0,
            'commands_failed': 0,
            'rollbacks': 0,
            'start_time': datetime.now()
        }

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _fail(self, label: str, error: Exception) -> None:
        """Record a command failure on the store"""
        if not isinstance(error, ReviewError):
            error = PersistenceFailure(label, str(error))

        self.error = str(error)
        self.last_error = error
        self.stats['commands_failed'] += 1

        if isinstance(error, (PersistenceFailure, TokenGenerationFailed)):
            log_exception(logger, f"{label} failed: {error}")
        else:
            logger.warning(f"{label} rejected: {error}")

    def _require_asset(self, label: str) -> Optional[ReviewAsset]:
        if self.asset is None:
            self._fail(label, AssetNotLoaded())
        return self.asset

    def _require_thread(self, label: str, thread_id: str) -> Optional[Thread]:
        asset = self._require_asset(label)
        if asset is None:
            return None
        thread = asset.find_thread(thread_id)
        if thread is None:
            self._fail(label, ThreadNotFound(thread_id))
        return thread

    async def _commit(self, mutation: TentativeMutation, persist: Callable[[], Awaitable[Any]]) -> bool:
        """
        Apply a mutation, persist it, and undo it if persisting fails.

        Args:
            mutation: The optimistic change and its scoped undo
            persist: Coroutine factory performing the adapter call

        Returns:
            True if the change was persisted, False if it was rolled back
        """
        asset_id = self.asset.id
        self.asset = mutation.apply(self.asset)
        logger.debug(f"{mutation.label}: applied optimistically to asset {asset_id}")

        try:
            await persist()
        except Exception as e:
            # The asset may have been reloaded or replaced while persisting
            if self.asset is not None and self.asset.id == asset_id:
                self.asset = mutation.revert(self.asset)
                self.stats['rollbacks'] += 1
                logger.info(f"{mutation.label}: rolled back on asset {asset_id}")
            self._fail(mutation.label, e)
            return False

        if mutation.confirm:
            mutation.confirm()
        self.stats['commands_applied'] += 1
        return True

    def _has_pending_write(self, key: Tuple[str, str]) -> bool:
        return key in self._writes

    def _begin_write(self, key: Tuple[str, str], before: Any, after: Any) -> int:
        """Register an optimistic write to a field and return its sequence number"""
        self._write_seq += 1
        entry = self._writes.setdefault(key, {'base': before, 'pending': {}})
        entry['pending'][self._write_seq] = after
        return self._write_seq

    def _confirm_write(self, key: Tuple[str, str], seq: int) -> None:
        """A persisted write supersedes every write issued before it"""
        entry = self._writes.get(key)
        if entry is None or seq not in entry['pending']:
            return
        entry['base'] = entry['pending'][seq]
        entry['pending'] = {s: v for s, v in entry['pending'].items() if s > seq}
        if not entry['pending']:
            del self._writes[key]

    def _abandon_write(self, key: Tuple[str, str], seq: int) -> Tuple[bool, Any]:
        """
        Drop a failed write.

        Returns:
            (restore, value): restore is True when the failed write was the
            newest one to the field; value is what the field should show now
        """
        entry = self._writes.get(key)
        if entry is None or seq not in entry['pending']:
            return False, None

        newest = seq == max(entry['pending'])
        del entry['pending'][seq]
        if entry['pending']:
            value = entry['pending'][max(entry['pending'])]
        else:
            value = entry['base']
            del self._writes[key]
        return newest, value

    def _thread_change(
        self,
        label: str,
        thread_id: str,
        field_name: str,
        update: Callable[[Thread], Thread]
    ) -> TentativeMutation:
        """
        Mutation replacing one field of one thread.

        The undo only touches the field if this write is still the newest
        one to it, and then restores the newest remaining write (or the last
        confirmed value).
        """
        key = (thread_id, field_name)
        write: Dict[str, int] = {}

        def apply(asset: ReviewAsset) -> ReviewAsset:
            thread = asset.find_thread(thread_id)
            updated = update(thread)
            write['seq'] = self._begin_write(
                key, getattr(thread, field_name), getattr(updated, field_name)
            )
            return domain.with_thread_replaced(asset, updated)

        def revert(asset: ReviewAsset) -> ReviewAsset:
            restore, value = self._abandon_write(key, write['seq'])
            thread = asset.find_thread(thread_id)
            if not restore or thread is None:
                return asset
            restored = replace(thread, **{field_name: value})
            return domain.with_thread_replaced(asset, restored, bump_version=False)

        return TentativeMutation(
            label, apply, revert, confirm=lambda: self._confirm_write(key, write['seq'])
        )

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def set_asset(self, asset: ReviewAsset) -> None:
        """Install an asset the caller already holds"""
        if self.asset is None or self.asset.id != asset.id:
            self._writes.clear()
        self.asset = asset
        if self.selected_thread_id and asset.find_thread(self.selected_thread_id) is None:
            self.selected_thread_id = None

    async def _load(self, label: str, fetch: Callable[[], Awaitable[ReviewAsset]]) -> bool:
        async with self._load_lock:
            self.is_loading = True
            try:
                asset = await fetch()
            except Exception as e:
                # Keep the stale asset rather than blanking the view
                self._fail(label, e)
                return False
            finally:
                self.is_loading = False

            self.set_asset(asset)
            self.error = None
            self.last_error = None
            logger.info(f"Loaded asset {asset.id} (version {asset.version}, {len(asset.threads)} threads)")
            return True

    async def load_asset(self, asset_id: str) -> bool:
        return await self._load("load_asset", lambda: self.persistence.fetch_asset(asset_id))

    async def load_shared_asset(self, token: str) -> bool:
        return await self._load(
            "load_shared_asset", lambda: self.persistence.fetch_asset_by_share_token(token)
        )

    # ------------------------------------------------------------------
    # Threads
    # ------------------------------------------------------------------

    def select_thread(self, thread_id: Optional[str]) -> None:
        self.selected_thread_id = thread_id

    async def add_thread(
        self,
        t_start: float,
        shapes: List[Shape],
        t_end: Optional[float] = None
    ) -> Optional[Thread]:
        """
        Create a thread with the next chip, select it, and persist it.

        Returns:
            The new thread, or None if it was rejected or did not persist
        """
        asset = self._require_asset("add_thread")
        if asset is None:
            return None

        try:
            thread = domain.create_thread(
                shapes, t_start, t_end, chip=domain.next_chip(asset.threads)
            )
        except ReviewError as e:
            self._fail("add_thread", e)
            return None

        def revert(current: ReviewAsset) -> ReviewAsset:
            if self.selected_thread_id == thread.id:
                self.selected_thread_id = None
            return domain.with_thread_removed(current, thread.id)

        mutation = TentativeMutation(
            "add_thread",
            apply=lambda current: domain.with_thread_added(current, thread),
            revert=revert
        )
        self.selected_thread_id = thread.id

        ok = await self._commit(mutation, lambda: self.persistence.persist_thread(asset.id, thread))
        if ok:
            logger.info(f"Thread {thread.id} (chip {thread.chip}) added at {thread.t_start}s")
        return thread if ok else None

    async def _set_thread_state(self, label: str, thread_id: str, state: ThreadState) -> bool:
        thread = self._require_thread(label, thread_id)
        if thread is None:
            return False
        if thread.state == state and not self._has_pending_write((thread_id, "state")):
            # Already persisted in that state
            return True

        mutation = self._thread_change(
            label, thread_id, "state", lambda t: domain.transition(t, state)
        )
        return await self._commit(
            mutation, lambda: self.persistence.persist_thread_state(thread_id, state)
        )

    async def resolve_thread(self, thread_id: str) -> bool:
        return await self._set_thread_state("resolve_thread", thread_id, ThreadState.RESOLVED)

    async def reopen_thread(self, thread_id: str) -> bool:
        return await self._set_thread_state("reopen_thread", thread_id, ThreadState.OPEN)

    async def update_thread_shapes(self, thread_id: str, shapes: List[Shape]) -> bool:
        """Replace a thread's shapes wholesale"""
        thread = self._require_thread("update_thread_shapes", thread_id)
        if thread is None:
            return False

        try:
            domain.replace_shapes(thread, shapes)
        except ReviewError as e:
            self._fail("update_thread_shapes", e)
            return False

        mutation = self._thread_change(
            "update_thread_shapes", thread_id, "shapes", lambda t: domain.replace_shapes(t, shapes)
        )
        return await self._commit(
            mutation, lambda: self.persistence.persist_thread_shapes(thread_id, list(shapes))
        )

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    async def add_comment(
        self,
        thread_id: str,
        author_id: str,
        body: str,
        attachments: Optional[List[str]] = None
    ) -> Optional[Comment]:
        """
        Append a comment to a thread. Never changes the thread's state.

        Returns:
            The new comment, or None if the thread is unknown or the
            comment did not persist
        """
        if self._require_thread("add_comment", thread_id) is None:
            return None

        comment = domain.new_comment(author_id, body, attachments)

        def apply(asset: ReviewAsset) -> ReviewAsset:
            thread = asset.find_thread(thread_id)
            return domain.with_thread_replaced(asset, domain.append_comment(thread, comment))

        def revert(asset: ReviewAsset) -> ReviewAsset:
            thread = asset.find_thread(thread_id)
            if thread is None:
                return asset
            return domain.with_thread_replaced(
                asset, domain.remove_comment(thread, comment.id), bump_version=False
            )

        ok = await self._commit(
            TentativeMutation("add_comment", apply, revert),
            lambda: self.persistence.persist_comment(thread_id, comment)
        )
        return comment if ok else None

    # ------------------------------------------------------------------
    # Asset status and sharing
    # ------------------------------------------------------------------

    async def set_status(self, status: AssetStatus) -> bool:
        """
        Change the review status.

        On failure the previous status is restored only if no newer
        set_status has been issued since; otherwise the newer intent wins.
        """
        status = AssetStatus(status)
        asset = self._require_asset("set_status")
        if asset is None:
            return False

        key = (asset.id, "status")
        if asset.status == status and not self._has_pending_write(key):
            return True

        previous = asset.status
        write: Dict[str, int] = {}

        def apply(current: ReviewAsset) -> ReviewAsset:
            write['seq'] = self._begin_write(key, current.status, status)
            return replace(current, status=status, version=current.version + 1)

        def revert(current: ReviewAsset) -> ReviewAsset:
            restore, value = self._abandon_write(key, write['seq'])
            return replace(current, status=value) if restore else current

        mutation = TentativeMutation(
            "set_status", apply, revert, confirm=lambda: self._confirm_write(key, write['seq'])
        )
        ok = await self._commit(mutation, lambda: self.persistence.persist_status(asset.id, status))
        if ok:
            logger.info(f"Asset {asset.id} status: {previous.value} -> {status.value}")
        return ok

    async def generate_share_token(self) -> Optional[str]:
        """
        Return the asset's share token, creating it on first use.

        The token is only stored locally once the adapter confirmed it.
        """
        async with self._token_lock:
            asset = self.asset
            if asset is None:
                self._fail("generate_share_token", TokenGenerationFailed("no asset loaded"))
                return None
            if asset.share_token:
                return asset.share_token

            try:
                token = await self.persistence.create_share_token(asset.id)
            except Exception as e:
                self._fail("generate_share_token", TokenGenerationFailed(str(e)))
                return None

            if not token:
                self._fail("generate_share_token", TokenGenerationFailed("empty token returned"))
                return None

            if self.asset is not None and self.asset.id == asset.id:
                self.asset = replace(self.asset, share_token=token)
            self.stats['commands_applied'] += 1
            return token

    def clear_error(self) -> None:
        self.error = None
        self.last_error = None

    # ------------------------------------------------------------------
    # Selectors
    # ------------------------------------------------------------------

    def get_threads(self) -> List[Thread]:
        return list(self.asset.threads) if self.asset else []

    def get_open_threads(self) -> List[Thread]:
        return [t for t in self.get_threads() if t.state == ThreadState.OPEN]

    def get_resolved_threads(self) -> List[Thread]:
        return [t for t in self.get_threads() if t.state == ThreadState.RESOLVED]

    def get_selected_thread(self) -> Optional[Thread]:
        if self.asset is None or self.selected_thread_id is None:
            return None
        return self.asset.find_thread(self.selected_thread_id)

    def get_summary(self) -> Dict[str, Any]:
        """Derived view of the current review state"""
        open_threads = self.get_open_threads()
        resolved_threads = self.get_resolved_threads()
        return {
            'asset_id': self.asset.id if self.asset else None,
            'status': self.asset.status.value if self.asset else None,
            'version': self.asset.version if self.asset else None,
            'selected_thread_id': self.selected_thread_id,
            'is_loading': self.is_loading,
            'error': self.error,
            'thread_count': len(self.get_threads()),
            'open_thread_count': len(open_threads),
            'resolved_thread_count': len(resolved_threads),
            'has_open_threads': bool(open_threads),
            'has_resolved_threads': bool(resolved_threads),
        }

    def get_stats(self) -> Dict[str, Any]:
        """Get store statistics"""
        uptime = (datetime.now() - self.stats['start_time']).total_seconds()
        return {
            'commands_applied': self.stats['commands_applied'],
            'commands_failed': self.stats['commands_failed'],
            'rollbacks': self.stats['rollbacks'],
            'uptime_seconds': uptime
        }
