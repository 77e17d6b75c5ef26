"""
Scratch directories for intermediate media files.
"""

import logging
import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager

logger = logging.getLogger("dubsync")


class ScratchSpace:
    """Creates uniquely named temp directories and removes them again."""

    def __init__(self, base_dir: str | None = None) -> None:
        self.base_dir = base_dir
        self.created: list[str] = []

    def create_unique_dir(self, prefix: str = "dubsync-") -> str:
        path = tempfile.mkdtemp(prefix=prefix, dir=self.base_dir)
        self.created.append(path)
        logger.debug("Created scratch dir %s", path)
        return path

    def remove(self, path: str) -> None:
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove scratch dir %s: %s", path, e)
        else:
            logger.debug("Removed scratch dir %s", path)
        if path in self.created:
            self.created.remove(path)

    def release(self, path: str) -> None:
        """Stop tracking path; the directory stays on disk."""
        if path in self.created:
            self.created.remove(path)

    @contextmanager
    def scoped(self, prefix: str = "dubsync-") -> Iterator[str]:
        """Yield a fresh directory that is removed on every exit path."""
        path = self.create_unique_dir(prefix)
        try:
            yield path
        finally:
            self.remove(path)
