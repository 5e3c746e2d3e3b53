"""On-disk storage of accepted upload bytes, keyed by content hash."""

import os
from pathlib import Path

from shared.helper.HelperConfig import HelperConfig


class FileStore:
    def __init__(self, helper_config: HelperConfig) -> None:
        self.logging = helper_config.get_logger()
        default_dir = os.path.join(os.getenv("ROOT_DIR") or os.getcwd(), "uploads")
        self._root = Path(helper_config.get_string_val("UPLOAD_DIR", default=default_dir))

    def save(self, content_hash: str, original_name: str, content: bytes) -> str:
        """Write ``content`` once per hash and return its path. Rewrites are no-ops."""
        suffix = Path(original_name).suffix.lower()[:16]
        target = self._root / content_hash[:2] / f"{content_hash}{suffix}"
        if not target.exists():
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp = target.with_name(target.name + ".part")
            tmp.write_bytes(content)
            tmp.replace(target)
        return str(target)

    def read(self, storage_path: str) -> bytes:
        return Path(storage_path).read_bytes()

    def remove(self, storage_path: str) -> None:
        path = Path(storage_path)
        if path.exists():
            path.unlink()
            self.logging.debug("Removed stored file %s", storage_path)
