"""
Configuration management for the review core.

Centralizes all configuration loading from environment variables
and provides type-safe access to configuration values.
"""

import os
from typing import Dict, Any
from dataclasses import dataclass


@dataclass
class ReviewConfig:
    """Configuration for the review service"""

    # Storage settings
    STORAGE_TYPE: str = "memory"  # memory, postgres, s3
    STORAGE_CONFIG: Dict[str, Any] = None

    # Annotation reference space
    REFERENCE_WIDTH: int = 1280
    REFERENCE_HEIGHT: int = 720

    # Sharing
    SHARE_TOKEN_LENGTH: int = 8
    APP_URL: str = "http://localhost:8000"

    # Logging
    LOG_LEVEL: str = "INFO"

    # HTTP server
    ENABLE_HTTP_SERVER: bool = False
    HTTP_PORT: int = 8000

    # Data directory
    DATA_DIR: str = "/app/data"

    def __post_init__(self):
        if self.STORAGE_CONFIG is None:
            self.STORAGE_CONFIG = {}

    @classmethod
    def from_env(cls) -> 'ReviewConfig':
        """Load configuration from environment variables"""
        config = cls()

        # Storage configuration
        config.STORAGE_TYPE = os.getenv("STORAGE_TYPE", "memory")
        config.STORAGE_CONFIG = cls._parse_storage_config()

        # Reference space
        config.REFERENCE_WIDTH = int(os.getenv("REFERENCE_WIDTH", "1280"))
        config.REFERENCE_HEIGHT = int(os.getenv("REFERENCE_HEIGHT", "720"))

        # Sharing
        config.SHARE_TOKEN_LENGTH = int(os.getenv("SHARE_TOKEN_LENGTH", "8"))
        config.APP_URL = os.getenv("APP_URL", "http://localhost:8000").rstrip("/")

        # Logging
        config.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

        # HTTP server
        config.ENABLE_HTTP_SERVER = os.getenv("REVIEW_DEV_HTTP", "false").lower() == "true"
        config.HTTP_PORT = int(os.getenv("REVIEW_HTTP_PORT", "8000"))

        # Data directory
        config.DATA_DIR = os.getenv("DATA_DIR", "/app/data")

        return config

    @classmethod
    def _parse_storage_config(cls) -> Dict[str, Any]:
        """Parse storage specific configuration"""
        storage_type = os.getenv("STORAGE_TYPE", "memory")

        if storage_type == "postgres":
            return {
                "database_url": os.getenv("DATABASE_URL"),
                "connection_pool_size": int(os.getenv("POSTGRES_POOL_SIZE", "5")),
                "connection_timeout": int(os.getenv("POSTGRES_TIMEOUT", "10"))
            }
        elif storage_type == "s3":
            return {
                "bucket": os.getenv("AWS_S3_BUCKET"),
                "region": os.getenv("AWS_REGION", "us-east-1"),
                "prefix": os.getenv("S3_PREFIX", "review/")
            }
        else:
            return {}

    def validate(self) -> None:
        """Validate configuration and raise errors for missing required values"""
        required_vars = []

        if self.STORAGE_TYPE not in ("memory", "postgres", "s3"):
            raise ValueError(f"Unsupported storage type: {self.STORAGE_TYPE}")

        if self.STORAGE_TYPE == "postgres" and not self.STORAGE_CONFIG.get("database_url"):
            required_vars.append("DATABASE_URL")

        if self.STORAGE_TYPE == "s3" and not self.STORAGE_CONFIG.get("bucket"):
            required_vars.append("AWS_S3_BUCKET")

        if required_vars:
            raise ValueError(f"Missing required environment variables: {', '.join(required_vars)}")

        if self.REFERENCE_WIDTH <= 0 or self.REFERENCE_HEIGHT <= 0:
            raise ValueError(
                f"Reference size must be positive, got {self.REFERENCE_WIDTH}x{self.REFERENCE_HEIGHT}"
            )

        if not 1 <= self.SHARE_TOKEN_LENGTH <= 32:
            raise ValueError(f"SHARE_TOKEN_LENGTH must be between 1 and 32, got {self.SHARE_TOKEN_LENGTH}")

    def get_adapter_class_name(self) -> str:
        """Get the class name of the persistence adapter for the storage type"""
        storage_map = {
            "memory": "InMemoryPersistenceAdapter",
            "postgres": "PostgresPersistenceAdapter",
            "s3": "S3PersistenceAdapter"
        }

        return storage_map.get(self.STORAGE_TYPE, "InMemoryPersistenceAdapter")
