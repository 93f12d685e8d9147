"""
Review service wiring.

Builds the persistence adapter selected by configuration, owns the review
store and its thread navigator, and runs the capture flow: raw shapes
from the drawing surface are normalized to unit space before they reach
the domain model and the store.
"""

import os
import sys
import signal
import asyncio
import logging
from typing import Optional, Dict, Any, List, Callable

from .config import ReviewConfig
from .adapters.base import PersistenceAdapter
from .adapters.memory_adapter import InMemoryPersistenceAdapter
from .adapters.postgres_adapter import PostgresPersistenceAdapter
from .adapters.s3_adapter import S3PersistenceAdapter
from .errors import InvalidDimensions
from .geometry.normalize import normalize_for_storage, restore_from_storage
from .geometry.shapes import shapes_from_drawing
from .http_server import start_inspection_server
from .logging_setup import setup_logging, log_exception
from .models import Thread
from .navigator import ThreadNavigator
from .store import ReviewStore
from .util import build_share_link

logger = logging.getLogger("review_core")


class ReviewService:
    """Review service with adapter-based persistence"""

    def __init__(self, config: Optional[ReviewConfig] = None,
                 on_seek: Optional[Callable[[float], Any]] = None):
        self.config = config or ReviewConfig.from_env()
        self.on_seek = on_seek
        self.persistence: Optional[PersistenceAdapter] = None
        self.store: Optional[ReviewStore] = None
        self.navigator: Optional[ThreadNavigator] = None
        self.inspection_server = None

    async def initialize(self, persistence: Optional[PersistenceAdapter] = None,
                         configure_logging: bool = True):
        """Initialize persistence, store and navigator based on configuration"""
        try:
            if configure_logging:
                setup_logging(self.config.LOG_LEVEL, self.config.DATA_DIR)

            self.config.validate()

            self.persistence = persistence or self._create_persistence_adapter()
            await self.persistence.connect()

            self.store = ReviewStore(self.persistence)
            self.navigator = ThreadNavigator(self.store, on_seek=self.on_seek)

            logger.info(f"Review service initialized with {self.config.STORAGE_TYPE} persistence")

        except Exception as e:
            log_exception(logger, f"Failed to initialize review service: {e}")
            raise

    def _create_persistence_adapter(self) -> PersistenceAdapter:
        """Create persistence adapter based on configuration"""
        config = self.config.STORAGE_CONFIG
        token_length = self.config.SHARE_TOKEN_LENGTH

        if self.config.STORAGE_TYPE == "memory":
            return InMemoryPersistenceAdapter(token_length=token_length)

        elif self.config.STORAGE_TYPE == "postgres":
            return PostgresPersistenceAdapter(
                database_url=config["database_url"],
                pool_size=config.get("connection_pool_size", 5),
                timeout=config.get("connection_timeout", 10),
                token_length=token_length
            )

        elif self.config.STORAGE_TYPE == "s3":
            return S3PersistenceAdapter(
                bucket=config["bucket"],
                region=config.get("region", "us-east-1"),
                prefix=config.get("prefix", "review/"),
                token_length=token_length
            )

        else:
            raise ValueError(f"Unsupported storage type: {self.config.STORAGE_TYPE}")

    async def submit_annotation(
        self,
        raw_shapes: List[Dict[str, Any]],
        width: float,
        height: float,
        t_start: float,
        t_end: Optional[float] = None
    ) -> Optional[Thread]:
        """
        Turn a drawing into a new thread.

        Args:
            raw_shapes: Shapes in pixels as delivered by the drawing surface
            width: Pixel width of the surface they were drawn on
            height: Pixel height of the surface they were drawn on
            t_start: Playback time the annotation starts at, in seconds
            t_end: Optional end of the annotated range

        Returns:
            The persisted thread, or None (see store.error)
        """
        try:
            shapes = shapes_from_drawing(raw_shapes, width, height)
        except InvalidDimensions as e:
            # Surface not measured yet; nothing usable to anchor the thread to
            logger.error(f"Annotation dropped: {e}")
            return None
        return await self.store.add_thread(t_start, shapes, t_end)

    def normalize_canvas(self, canvas_state: Dict[str, Any], width: float, height: float) -> Dict[str, Any]:
        """Normalize a raw canvas state to the configured reference space"""
        return normalize_for_storage(
            canvas_state,
            width,
            height,
            reference_width=self.config.REFERENCE_WIDTH,
            reference_height=self.config.REFERENCE_HEIGHT
        )

    def restore_canvas(self, canvas_state: Dict[str, Any], width: float, height: float) -> Dict[str, Any]:
        return restore_from_storage(canvas_state, width, height)

    async def share_link(self) -> Optional[str]:
        """Share link for the loaded asset, creating its token on first use"""
        token = await self.store.generate_share_token()
        if not token:
            return None
        return build_share_link(self.config.APP_URL, token)

    def start_inspection_server(self):
        self.inspection_server = start_inspection_server(self.store, self.config)
        return self.inspection_server

    async def stop(self):
        """Stop the review service"""
        if self.inspection_server:
            self.inspection_server.stop()

        if self.persistence:
            await self.persistence.close()

        logger.info("Review service stopped")

    def get_stats(self) -> Dict[str, Any]:
        """Get service statistics"""
        stats = {
            'config': {
                'storage_type': self.config.STORAGE_TYPE,
                'reference_size': f"{self.config.REFERENCE_WIDTH}x{self.config.REFERENCE_HEIGHT}",
            }
        }

        if self.store:
            stats['store'] = self.store.get_stats()
            stats['review'] = self.store.get_summary()

        return stats


def signal_handler(signum, frame):
    """Handle shutdown signals"""
    logger.info(f"Received signal {signum}, shutting down...")
    sys.exit(0)


async def _run(asset_id: str) -> int:
    service = ReviewService()
    try:
        await service.initialize()
        if not await service.store.load_asset(asset_id):
            logger.error(f"Could not load asset {asset_id}: {service.store.error}")
            return 1

        logger.info(f"Review state: {service.store.get_summary()}")

        if service.start_inspection_server():
            # Keep serving until interrupted
            await asyncio.Event().wait()
        return 0
    finally:
        await service.stop()


def main():
    """Main entry point"""
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    asset_id = sys.argv[1] if len(sys.argv) > 1 else os.getenv("REVIEW_ASSET_ID")
    if not asset_id:
        print("usage: review-core <asset_id>  (or set REVIEW_ASSET_ID)", file=sys.stderr)
        sys.exit(2)

    try:
        sys.exit(asyncio.run(_run(asset_id)))
    except Exception as e:
        log_exception(logger, f"Review service failed: {str(e)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
