import os
import logging
from pathlib import Path
from typing import Optional

from ..settings import settings

logger = logging.getLogger("catering.media")

# Derived media written for a menu item, named {itemId}{ext}
DERIVED_EXTENSIONS = (".mp4", ".mov", ".m4v", ".webm", ".avi", ".mkv", ".png")


def media_root() -> Path:
    return Path(settings.media_root) if settings.media_root else (Path(os.getcwd()) / "media")


class LocalMedia:
    def __init__(self, root: Optional[Path] = None):
        self.root = root

    @property
    def base(self) -> Path:
        return self.root or media_root()

    def exists(self, key: str) -> bool:
        return (self.base / key).exists()

    def delete(self, key: str) -> bool:
        """
        Delete file from local disk.
        Returns True if deleted or didn't exist, False on error.
        """
        if not key or ".." in key or key.startswith(("/", "\\")):
            logger.warning(f"Invalid media key: {key}")
            return False

        file_path = self.base / key
        try:
            if file_path.exists():
                file_path.unlink()
                logger.info(f"Deleted media file {file_path}")
            return True
        except OSError as e:
            logger.error(f"Failed to delete {file_path}: {e}")
            return False

    def derived_keys(self, item_id: Optional[str], video_file: str = "", map_snapshot_file: str = "") -> list[str]:
        keys = []
        if item_id:
            keys.extend(f"{item_id}{ext}" for ext in DERIVED_EXTENSIONS)
        for explicit in (video_file, map_snapshot_file):
            name = os.path.basename(explicit or "")
            if name and name not in keys:
                keys.append(name)
        return keys

    def delete_item_media(self, item_id: Optional[str], video_file: str = "", map_snapshot_file: str = "") -> list[str]:
        """Remove every derived file of a menu item. Returns the keys actually deleted."""
        deleted = []
        for key in self.derived_keys(item_id, video_file, map_snapshot_file):
            if not self.exists(key):
                continue
            if self.delete(key):
                deleted.append(key)
        return deleted


# Singleton
media = LocalMedia()
