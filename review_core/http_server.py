import logging
from typing import Optional
from threading import Thread

from fastapi import FastAPI, HTTPException
import uvicorn

from .config import ReviewConfig
from .navigator import sort_threads
from .store import ReviewStore
from .util import format_time

logger = logging.getLogger("review_core")


class ReviewInspectionServer:
    """Read-only HTTP view of a review store (dev only)"""

    def __init__(self, store: ReviewStore, port: int = 8000):
        self.store = store
        self.port = port
        self.app = FastAPI(title="Review Core Inspection API")
        self.setup_routes()
        self.server_thread = None
        self.running = False

    def setup_routes(self):
        """Setup API routes"""

        @self.app.get("/healthz")
        async def health_check():
            """Health check endpoint"""
            return {
                "ok": True,
                "status": "healthy",
                "asset_loaded": self.store.asset is not None,
                "stats": self.store.get_stats()
            }

        @self.app.get("/review/state")
        async def review_state():
            """Summary of the loaded review"""
            return self.store.get_summary()

        @self.app.get("/review/threads")
        async def review_threads():
            """Threads in playback order"""
            if self.store.asset is None:
                raise HTTPException(status_code=404, detail="No asset loaded")

            return {
                "asset_id": self.store.asset.id,
                "threads": [
                    {
                        "id": thread.id,
                        "chip": thread.chip,
                        "t_start": thread.t_start,
                        "t_end": thread.t_end,
                        "label": format_time(thread.t_start),
                        "state": thread.state.value,
                        "shapes": len(thread.shapes),
                        "comments": len(thread.comments),
                        "selected": thread.id == self.store.selected_thread_id
                    }
                    for thread in sort_threads(self.store.get_threads())
                ]
            }

    def start(self):
        """Start the HTTP server in a background thread"""
        if self.running:
            return

        def run_server():
            try:
                uvicorn.run(
                    self.app,
                    host="0.0.0.0",
                    port=self.port,
                    log_level="warning",  # Reduce uvicorn logging
                    access_log=False
                )
            except Exception as e:
                logger.error(f"HTTP server error: {str(e)}")

        self.server_thread = Thread(target=run_server, daemon=True)
        self.server_thread.start()
        self.running = True

        logger.info(f"Inspection server started on port {self.port}")

    def stop(self):
        """Stop the HTTP server"""
        self.running = False
        logger.info("Inspection server stopped")


def start_inspection_server(store: ReviewStore, config: ReviewConfig) -> Optional[ReviewInspectionServer]:
    """Start the inspection server if enabled"""
    if config.ENABLE_HTTP_SERVER:
        server = ReviewInspectionServer(store, config.HTTP_PORT)
        server.start()
        return server
    return None
