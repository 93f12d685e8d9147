"""
AWS S3 adapter for review persistence.

Each asset is one JSON document ({prefix}assets/{asset_id}.json). Small
index objects map thread ids and share tokens back to their asset. boto3
is blocking, so calls run in a worker thread via asyncio.to_thread. Every
read-modify-write of an asset document holds a per-asset lock, so writes
issued concurrently from this process do not overwrite each other.
"""

import asyncio
import json
import logging
import threading
from typing import Dict, Any, List, Callable

import boto3
from botocore.exceptions import ClientError
from pydantic import ValidationError

from .base import PersistenceAdapter
from ..errors import PersistenceFailure
from ..models import ReviewAsset, Thread, Comment, Shape, ThreadState, AssetStatus
from ..schema import asset_from_record, thread_to_record, comment_to_record, shape_to_record
from ..util import generate_share_token, DEFAULT_SHARE_TOKEN_LENGTH

logger = logging.getLogger("review_core")


class S3PersistenceAdapter(PersistenceAdapter):
    """AWS S3 implementation of persistence adapter"""

    def __init__(self, bucket: str, region: str = "us-east-1", prefix: str = "review/",
                 token_length: int = DEFAULT_SHARE_TOKEN_LENGTH):
        self.bucket = bucket
        self.region = region
        self.prefix = prefix
        self.token_length = token_length
        self.s3 = None
        self._asset_locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    async def connect(self):
        """Initialize S3 client"""
        try:
            self.s3 = boto3.client('s3', region_name=self.region)
            logger.info(f"S3 persistence connected to bucket: {self.bucket}")
        except Exception as e:
            logger.error(f"Failed to connect to S3: {e}")
            raise

    def _asset_key(self, asset_id: str) -> str:
        return f"{self.prefix}assets/{asset_id}.json"

    def _thread_index_key(self, thread_id: str) -> str:
        return f"{self.prefix}thread-index/{thread_id}"

    def _token_key(self, token: str) -> str:
        return f"{self.prefix}share-tokens/{token}"

    def _get_json(self, key: str) -> Dict[str, Any]:
        response = self.s3.get_object(Bucket=self.bucket, Key=key)
        return json.loads(response['Body'].read())

    def _put_json(self, key: str, data: Dict[str, Any]) -> None:
        self.s3.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=json.dumps(data),
            ContentType='application/json'
        )

    async def _call(self, operation: str, func: Callable, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except ClientError as e:
            logger.error(f"S3 {operation} failed: {e}")
            raise PersistenceFailure(operation, str(e)) from e

    def _update_asset(self, asset_id: str, mutate: Callable[[Dict[str, Any]], None],
                      bump_version: bool = True) -> Dict[str, Any]:
        """Read-modify-write of the asset document under the asset's lock"""
        key = self._asset_key(asset_id)
        with self._asset_lock(asset_id):
            data = self._get_json(key)
            mutate(data)
            if bump_version:
                data["version"] = data.get("version", 1) + 1
            self._put_json(key, data)
        return data

    def _asset_lock(self, asset_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._asset_locks.setdefault(asset_id, threading.Lock())

    def _asset_id_for_thread(self, thread_id: str) -> str:
        return self._get_json(self._thread_index_key(thread_id))["asset_id"]

    def _update_thread(self, thread_id: str, mutate: Callable[[Dict[str, Any]], None]) -> None:
        asset_id = self._asset_id_for_thread(thread_id)

        def apply(data: Dict[str, Any]) -> None:
            for thread in data.get("threads", []):
                if thread["id"] == thread_id:
                    mutate(thread)
                    return
            raise PersistenceFailure("update_thread", f"thread {thread_id} missing from asset {asset_id}")

        self._update_asset(asset_id, apply)

    async def _load(self, operation: str, asset_id: str) -> ReviewAsset:
        data = await self._call(operation, self._get_json, self._asset_key(asset_id))
        try:
            asset = asset_from_record(data)
        except ValidationError as e:
            raise PersistenceFailure(operation, f"invalid asset document: {e}") from e
        logger.info(f"Loaded asset {asset.id} from S3 (version {asset.version})")
        return asset

    async def fetch_asset(self, asset_id: str) -> ReviewAsset:
        return await self._load("fetch_asset", asset_id)

    async def fetch_asset_by_share_token(self, token: str) -> ReviewAsset:
        index = await self._call("fetch_asset_by_share_token", self._get_json, self._token_key(token))
        return await self._load("fetch_asset_by_share_token", index["asset_id"])

    async def persist_thread(self, asset_id: str, thread: Thread) -> None:
        def write():
            self._update_asset(
                asset_id,
                lambda data: data.setdefault("threads", []).append(thread_to_record(thread, asset_id))
            )
            self._put_json(self._thread_index_key(thread.id), {"asset_id": asset_id})

        await self._call("persist_thread", write)
        logger.info(f"Stored thread {thread.id} for asset {asset_id} in S3")

    async def persist_comment(self, thread_id: str, comment: Comment) -> None:
        record = comment_to_record(comment, thread_id)
        await self._call(
            "persist_comment",
            self._update_thread, thread_id, lambda t: t.setdefault("comments", []).append(record)
        )

    async def persist_thread_state(self, thread_id: str, state: ThreadState) -> None:
        value = ThreadState(state).value
        await self._call(
            "persist_thread_state",
            self._update_thread, thread_id, lambda t: t.update(state=value)
        )

    async def persist_thread_shapes(self, thread_id: str, shapes: List[Shape]) -> None:
        records = [shape_to_record(s) for s in shapes]
        await self._call(
            "persist_thread_shapes",
            self._update_thread, thread_id, lambda t: t.update(shapes=records)
        )

    async def persist_status(self, asset_id: str, status: AssetStatus) -> None:
        value = AssetStatus(status).value
        await self._call(
            "persist_status",
            self._update_asset, asset_id, lambda data: data.update(status=value)
        )
        logger.info(f"Asset {asset_id} status set to {value} in S3")

    async def create_share_token(self, asset_id: str) -> str:
        token = generate_share_token(self.token_length)

        def write():
            self._update_asset(asset_id, lambda data: data.update(share_token=token), bump_version=False)
            self._put_json(self._token_key(token), {"asset_id": asset_id})

        await self._call("create_share_token", write)
        logger.info(f"Created share token for asset {asset_id} in S3")
        return token

    async def close(self):
        self.s3 = None
