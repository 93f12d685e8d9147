"""
In-memory persistence adapter.

Keeps review assets as plain records (the same shape the Postgres and S3
adapters read and write) so the serialization path is exercised without
a database. Used for local development and tests.
"""

import copy
import logging
from typing import Dict, Any, List

from pydantic import ValidationError

from .base import PersistenceAdapter
from ..errors import PersistenceFailure
from ..models import ReviewAsset, Thread, Comment, Shape, ThreadState, AssetStatus
from ..schema import (
    asset_from_record, asset_to_record, thread_to_record, comment_to_record, shape_to_record
)
from ..util import generate_share_token, DEFAULT_SHARE_TOKEN_LENGTH

logger = logging.getLogger("review_core")


class InMemoryPersistenceAdapter(PersistenceAdapter):
    """In-memory implementation of persistence adapter"""

    def __init__(self, token_length: int = DEFAULT_SHARE_TOKEN_LENGTH):
        self.token_length = token_length
        self.assets: Dict[str, Dict[str, Any]] = {}
        self.thread_index: Dict[str, str] = {}
        self.share_tokens: Dict[str, str] = {}

    def add_asset(self, asset: ReviewAsset) -> None:
        """Seed an asset (the upload/review-request flow lives elsewhere)"""
        record = asset_to_record(asset)
        self.assets[asset.id] = record
        for thread in record["threads"]:
            self.thread_index[thread["id"]] = asset.id
        if asset.share_token:
            self.share_tokens[asset.share_token] = asset.id
        logger.debug(f"Seeded in-memory asset {asset.id} with {len(asset.threads)} threads")

    def get_record(self, asset_id: str) -> Dict[str, Any]:
        """Deep copy of the stored record, for inspection"""
        return copy.deepcopy(self._asset_record("get_record", asset_id))

    def _asset_record(self, operation: str, asset_id: str) -> Dict[str, Any]:
        record = self.assets.get(asset_id)
        if record is None:
            raise PersistenceFailure(operation, f"asset {asset_id} not found")
        return record

    def _thread_record(self, operation: str, thread_id: str) -> Dict[str, Any]:
        asset_id = self.thread_index.get(thread_id)
        if asset_id is None:
            raise PersistenceFailure(operation, f"thread {thread_id} not found")
        for thread in self._asset_record(operation, asset_id)["threads"]:
            if thread["id"] == thread_id:
                return thread
        raise PersistenceFailure(operation, f"thread {thread_id} not found")

    def _bump_version(self, asset_id: str) -> None:
        self.assets[asset_id]["version"] += 1

    async def fetch_asset(self, asset_id: str) -> ReviewAsset:
        record = self._asset_record("fetch_asset", asset_id)
        try:
            return asset_from_record(copy.deepcopy(record))
        except ValidationError as e:
            raise PersistenceFailure("fetch_asset", f"invalid record for asset {asset_id}: {e}") from e

    async def fetch_asset_by_share_token(self, token: str) -> ReviewAsset:
        asset_id = self.share_tokens.get(token)
        if asset_id is None:
            raise PersistenceFailure("fetch_asset_by_share_token", "unknown share token")
        return await self.fetch_asset(asset_id)

    async def persist_thread(self, asset_id: str, thread: Thread) -> None:
        record = self._asset_record("persist_thread", asset_id)
        if thread.id in self.thread_index:
            raise PersistenceFailure("persist_thread", f"thread {thread.id} already exists")
        record["threads"].append(thread_to_record(thread, asset_id))
        self.thread_index[thread.id] = asset_id
        self._bump_version(asset_id)
        logger.debug(f"Stored thread {thread.id} (chip {thread.chip}) for asset {asset_id}")

    async def persist_comment(self, thread_id: str, comment: Comment) -> None:
        thread = self._thread_record("persist_comment", thread_id)
        thread["comments"].append(comment_to_record(comment, thread_id))
        self._bump_version(self.thread_index[thread_id])

    async def persist_thread_state(self, thread_id: str, state: ThreadState) -> None:
        thread = self._thread_record("persist_thread_state", thread_id)
        thread["state"] = ThreadState(state).value
        self._bump_version(self.thread_index[thread_id])

    async def persist_thread_shapes(self, thread_id: str, shapes: List[Shape]) -> None:
        thread = self._thread_record("persist_thread_shapes", thread_id)
        thread["shapes"] = [shape_to_record(s) for s in shapes]
        self._bump_version(self.thread_index[thread_id])

    async def persist_status(self, asset_id: str, status: AssetStatus) -> None:
        record = self._asset_record("persist_status", asset_id)
        record["status"] = AssetStatus(status).value
        self._bump_version(asset_id)

    async def create_share_token(self, asset_id: str) -> str:
        record = self._asset_record("create_share_token", asset_id)
        token = generate_share_token(self.token_length)
        record["share_token"] = token
        self.share_tokens[token] = asset_id
        logger.info(f"Created share token for asset {asset_id}")
        return token
