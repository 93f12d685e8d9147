"""
Abstract base class for persistence adapters.

Defines the interface the review store talks to, enabling easy swapping
between storage backends (in-memory, Postgres, S3). Every method either
completes normally or raises PersistenceFailure.
"""

from abc import ABC, abstractmethod
from typing import List

from ..models import ReviewAsset, Thread, Comment, Shape, ThreadState, AssetStatus


class PersistenceAdapter(ABC):
    """Abstract base class for persistence adapters"""

    async def connect(self) -> None:
        """Open connections / clients; no-op by default"""

    async def close(self) -> None:
        """Release connections / clients; no-op by default"""

    @abstractmethod
    async def fetch_asset(self, asset_id: str) -> ReviewAsset:
        """
        Load a review asset with all its threads and comments.

        Args:
            asset_id: ID of the asset

        Returns:
            The asset, threads ordered by chip
        """
        pass

    @abstractmethod
    async def fetch_asset_by_share_token(self, token: str) -> ReviewAsset:
        """
        Load the asset a share token points at.

        Args:
            token: Share token previously returned by create_share_token
        """
        pass

    @abstractmethod
    async def persist_thread(self, asset_id: str, thread: Thread) -> None:
        """
        Insert a new thread with its shapes.

        Args:
            asset_id: ID of the owning asset
            thread: Newly created thread
        """
        pass

    @abstractmethod
    async def persist_comment(self, thread_id: str, comment: Comment) -> None:
        """
        Append a comment to a thread.

        Args:
            thread_id: ID of the thread
            comment: Comment to insert
        """
        pass

    @abstractmethod
    async def persist_thread_state(self, thread_id: str, state: ThreadState) -> None:
        """Update a thread's open/resolved state"""
        pass

    @abstractmethod
    async def persist_thread_shapes(self, thread_id: str, shapes: List[Shape]) -> None:
        """Replace a thread's shapes"""
        pass

    @abstractmethod
    async def persist_status(self, asset_id: str, status: AssetStatus) -> None:
        """Update the asset's review status"""
        pass

    @abstractmethod
    async def create_share_token(self, asset_id: str) -> str:
        """
        Create and store a share token for the asset.

        Returns:
            The token, only once it has been stored
        """
        pass
