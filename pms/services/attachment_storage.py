"""Local-disk attachment storage: best-effort file removal for deleted comments."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

logger = logging.getLogger(__name__)


class AttachmentStorage:
    """Resolves attachment file_url values (e.g. /uploads/comments/images/x.png) under root."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def path_for(self, file_url: str) -> Path | None:
        """Absolute path for file_url, or None if it would escape the upload root."""
        candidate = (self.root / file_url.lstrip("/\\")).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            return None
        return candidate

    def delete(self, file_url: str) -> bool:
        """Delete one file. Never raises; returns True only if a file was removed."""
        path = self.path_for(file_url)
        if path is None:
            logger.warning("attachment_delete_skipped: outside upload root url=%s", file_url)
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            logger.info("attachment_delete_missing: path=%s", path)
            return False
        except OSError as exc:
            logger.error("attachment_delete_failed: path=%s error=%s", path, exc)
            return False
        logger.info("attachment_deleted: path=%s", path)
        return True

    def delete_all(self, file_urls: Iterable[str]) -> int:
        """Delete each file best-effort; returns the number removed."""
        return sum(1 for url in file_urls if self.delete(url))
