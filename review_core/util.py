import uuid
from datetime import datetime, timezone


DEFAULT_SHARE_TOKEN_LENGTH = 8


def new_id() -> str:
    """Generate a random identifier for threads, comments and shapes"""
    return str(uuid.uuid4())


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string"""
    return datetime.now(timezone.utc).isoformat()


def generate_share_token(length: int = DEFAULT_SHARE_TOKEN_LENGTH) -> str:
    """Short share token taken from a fresh UUID4 (first group by default)"""
    return uuid.uuid4().hex[:length]


def format_time(seconds: float) -> str:
    """Format seconds as m:ss"""
    seconds = max(0.0, float(seconds or 0))
    minutes = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{minutes}:{secs:02d}"


def build_share_link(app_url: str, token: str) -> str:
    return f"{app_url.rstrip('/')}/review/{token}"
