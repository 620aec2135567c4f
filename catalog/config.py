# catalog/config.py
"""Settings consumed from the environment (loaded through python-dotenv)."""
import os
import posixpath
from dataclasses import dataclass
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class IndexSettings:
    url: Optional[str]
    username: Optional[str] = None
    password: Optional[str] = None
    verify_certs: bool = True
    index_name: str = "resources"
    timeout: float = 5.0

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    @classmethod
    def from_env(cls) -> "IndexSettings":
        return cls(
            url=os.getenv("OPENSEARCH_URL") or os.getenv("OPENSEARCH_NODE") or None,
            username=os.getenv("OPENSEARCH_USERNAME") or os.getenv("OPENSEARCH_USER") or None,
            password=os.getenv("OPENSEARCH_PASSWORD") or os.getenv("OPENSEARCH_PASS") or None,
            verify_certs=os.getenv("OPENSEARCH_VERIFY_CERTS", "true").strip().lower() not in _FALSE,
            index_name=os.getenv("OPENSEARCH_RESOURCES_INDEX", "resources"),
            timeout=float(os.getenv("OPENSEARCH_TIMEOUT", "5")),
        )


SYNC_WORKERS = int(os.getenv("SYNC_WORKERS", "4"))
RESOURCE_UPLOADS_PATH = os.getenv("RESOURCE_UPLOADS_PATH", "/uploads/resources")


def resolve_upload_url(filename: str) -> str:
    """Public URL of a stored upload; absolute URLs pass through unchanged."""
    if "://" in filename or filename.startswith("/"):
        return filename
    return posixpath.join(RESOURCE_UPLOADS_PATH, posixpath.basename(filename))
