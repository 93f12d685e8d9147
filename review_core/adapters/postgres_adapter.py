"""
Postgres persistence adapter.

Stores review assets in three tables (review_assets, threads,
thread_comments). Shapes and attachments live in JSONB columns. Every
structural write also bumps review_assets.version.
"""

import logging
from typing import Optional, Dict, Any, List

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb
from psycopg_pool import AsyncConnectionPool
from pydantic import ValidationError

from .base import PersistenceAdapter
from ..errors import PersistenceFailure
from ..logging_setup import log_exception
from ..models import ReviewAsset, Thread, Comment, Shape, ThreadState, AssetStatus
from ..schema import asset_from_record, shape_to_record
from ..util import generate_share_token, DEFAULT_SHARE_TOKEN_LENGTH

logger = logging.getLogger("review_core")

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS review_assets (
    id TEXT PRIMARY KEY,
    video_url TEXT NOT NULL,
    duration DOUBLE PRECISION NOT NULL DEFAULT 0,
    version INTEGER NOT NULL DEFAULT 1,
    status TEXT NOT NULL DEFAULT 'in_review',
    share_token TEXT UNIQUE
);
CREATE TABLE IF NOT EXISTS threads (
    id TEXT PRIMARY KEY,
    asset_id TEXT NOT NULL REFERENCES review_assets(id) ON DELETE CASCADE,
    chip INTEGER NOT NULL,
    t_start DOUBLE PRECISION NOT NULL,
    t_end DOUBLE PRECISION,
    shapes JSONB NOT NULL DEFAULT '[]'::jsonb,
    state TEXT NOT NULL DEFAULT 'open',
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    UNIQUE (asset_id, chip)
);
CREATE TABLE IF NOT EXISTS thread_comments (
    id TEXT PRIMARY KEY,
    thread_id TEXT NOT NULL REFERENCES threads(id) ON DELETE CASCADE,
    author_id TEXT NOT NULL,
    body TEXT NOT NULL,
    attachments JSONB NOT NULL DEFAULT '[]'::jsonb,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

BUMP_VERSION_BY_THREAD_SQL = """
    UPDATE review_assets SET version = version + 1
    WHERE id = (SELECT asset_id FROM threads WHERE id = %s)
"""


class PostgresPersistenceAdapter(PersistenceAdapter):
    """Postgres implementation of persistence adapter"""

    def __init__(self, database_url: str, pool_size: int = 5, timeout: int = 10,
                 token_length: int = DEFAULT_SHARE_TOKEN_LENGTH):
        self.database_url = database_url
        self.pool_size = pool_size
        self.timeout = timeout
        self.token_length = token_length
        self.pool: Optional[AsyncConnectionPool] = None

    async def connect(self):
        """Initialize connection pool"""
        try:
            self.pool = AsyncConnectionPool(
                self.database_url,
                min_size=1,
                max_size=self.pool_size,
                kwargs={
                    "connect_timeout": self.timeout,
                    "application_name": "review_core"
                },
                open=False
            )
            await self.pool.open()
            logger.info("Postgres persistence connection pool initialized")
            await self._bootstrap_schema()
        except Exception as e:
            log_exception(logger, f"Failed to connect to Postgres persistence: {e}")
            raise

    async def _bootstrap_schema(self):
        """Create review tables if they do not exist yet"""
        async with self.pool.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(SCHEMA_SQL)
            await conn.commit()
        logger.info("Postgres review schema validated")

    async def close(self):
        """Close connection pool"""
        if self.pool:
            await self.pool.close()
            logger.info("Postgres persistence connection pool closed")

    async def _write(self, operation: str, statements: List[tuple]) -> None:
        """
        Run write statements in one transaction.

        The first statement must touch exactly the target row; zero affected
        rows means the target does not exist.
        """
        try:
            async with self.pool.connection() as conn:
                async with conn.cursor() as cur:
                    for idx, (sql, params) in enumerate(statements):
                        await cur.execute(sql, params)
                        if idx == 0 and cur.rowcount == 0:
                            raise PersistenceFailure(operation, "target row not found")
                await conn.commit()
        except psycopg.Error as e:
            log_exception(logger, f"Postgres {operation} failed: {e}")
            raise PersistenceFailure(operation, str(e)) from e

    async def _fetch_record(self, where_sql: str, value: str) -> Optional[Dict[str, Any]]:
        async with self.pool.connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(f"""
                    SELECT id, video_url, duration, version, status, share_token
                    FROM review_assets WHERE {where_sql} = %s
                """, (value,))
                asset = await cur.fetchone()
                if not asset:
                    return None

                await cur.execute("""
                    SELECT id, asset_id, chip, t_start, t_end, shapes, state
                    FROM threads WHERE asset_id = %s
                    ORDER BY chip
                """, (asset["id"],))
                threads = await cur.fetchall()

                await cur.execute("""
                    SELECT c.id, c.thread_id, c.author_id, c.body, c.attachments, c.created_at
                    FROM thread_comments c
                    JOIN threads t ON t.id = c.thread_id
                    WHERE t.asset_id = %s
                    ORDER BY c.created_at, c.id
                """, (asset["id"],))
                comments = await cur.fetchall()

        by_thread: Dict[str, List[Dict[str, Any]]] = {}
        for comment in comments:
            by_thread.setdefault(comment["thread_id"], []).append(comment)

        record = dict(asset)
        record["threads"] = [
            dict(thread, comments=by_thread.get(thread["id"], []))
            for thread in threads
        ]
        return record

    async def _fetch(self, operation: str, where_sql: str, value: str) -> ReviewAsset:
        try:
            record = await self._fetch_record(where_sql, value)
        except psycopg.Error as e:
            log_exception(logger, f"Postgres {operation} failed: {e}")
            raise PersistenceFailure(operation, str(e)) from e

        if record is None:
            raise PersistenceFailure(operation, "asset not found")

        try:
            asset = asset_from_record(record)
        except ValidationError as e:
            raise PersistenceFailure(operation, f"invalid asset record: {e}") from e

        logger.info(f"Loaded asset {asset.id} (version {asset.version}, {len(asset.threads)} threads)")
        return asset

    async def fetch_asset(self, asset_id: str) -> ReviewAsset:
        return await self._fetch("fetch_asset", "id", asset_id)

    async def fetch_asset_by_share_token(self, token: str) -> ReviewAsset:
        return await self._fetch("fetch_asset_by_share_token", "share_token", token)

    async def persist_thread(self, asset_id: str, thread: Thread) -> None:
        await self._write("persist_thread", [
            ("""
                INSERT INTO threads (id, asset_id, chip, t_start, t_end, shapes, state)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
            """, (
                thread.id, asset_id, thread.chip, thread.t_start, thread.t_end,
                Jsonb([shape_to_record(s) for s in thread.shapes]), thread.state.value
            )),
            ("UPDATE review_assets SET version = version + 1 WHERE id = %s", (asset_id,)),
        ])
        logger.info(f"Thread {thread.id} (chip {thread.chip}) stored for asset {asset_id}")

    async def persist_comment(self, thread_id: str, comment: Comment) -> None:
        await self._write("persist_comment", [
            ("""
                INSERT INTO thread_comments (id, thread_id, author_id, body, attachments, created_at)
                VALUES (%s, %s, %s, %s, %s, %s)
            """, (
                comment.id, thread_id, comment.author_id, comment.body,
                Jsonb(list(comment.attachments)), comment.created_at
            )),
            (BUMP_VERSION_BY_THREAD_SQL, (thread_id,)),
        ])
        logger.info(f"Comment {comment.id} stored on thread {thread_id}")

    async def persist_thread_state(self, thread_id: str, state: ThreadState) -> None:
        await self._write("persist_thread_state", [
            ("UPDATE threads SET state = %s WHERE id = %s", (ThreadState(state).value, thread_id)),
            (BUMP_VERSION_BY_THREAD_SQL, (thread_id,)),
        ])
        logger.info(f"Thread {thread_id} state set to {ThreadState(state).value}")

    async def persist_thread_shapes(self, thread_id: str, shapes: List[Shape]) -> None:
        await self._write("persist_thread_shapes", [
            ("UPDATE threads SET shapes = %s WHERE id = %s",
             (Jsonb([shape_to_record(s) for s in shapes]), thread_id)),
            (BUMP_VERSION_BY_THREAD_SQL, (thread_id,)),
        ])

    async def persist_status(self, asset_id: str, status: AssetStatus) -> None:
        await self._write("persist_status", [
            ("UPDATE review_assets SET status = %s, version = version + 1 WHERE id = %s",
             (AssetStatus(status).value, asset_id)),
        ])
        logger.info(f"Asset {asset_id} status set to {AssetStatus(status).value}")

    async def create_share_token(self, asset_id: str) -> str:
        token = generate_share_token(self.token_length)
        await self._write("create_share_token", [
            ("UPDATE review_assets SET share_token = %s WHERE id = %s", (token, asset_id)),
        ])
        logger.info(f"Created share token for asset {asset_id}")
        return token
