from pathlib import Path
import time

from oracyn.core.logging import get_logger

"""
Storage backends for uploaded file bytes.

- LocalStorage: an object store on disk, outside the codebase
- InlineStorage: keeps nothing; uploads are forwarded to the AI service
  in-memory (base64) and only their metadata is recorded

Both expose the same two calls, `save(key, data) -> locator` and
`delete(locator)`, so the upload orchestrator never branches on backend.
"""

LOGGER = get_logger(__name__)

INLINE_SCHEME = "inline://"


def build_object_key(user_id: int, chat_id: int, file_name: str) -> str:
    """
    Object key: <user_id>/<chat_id>/<unix_ms>_<basename>.

    Only the basename of the client-supplied name is kept so a crafted
    name cannot escape the user's prefix.
    """
    safe_name = Path(file_name.replace("\\", "/")).name or "upload"
    return f"{user_id}/{chat_id}/{int(time.time() * 1000)}_{safe_name}"


class LocalStorage:
    """
    Disk-backed object store rooted at `base_dir`.

    Directory structure:
      base_dir/
        └── <user_id>/
            └── <chat_id>/
                └── <unix_ms>_<file name>

    Locators are object keys relative to `base_dir`, so the host layout
    never reaches clients.
    """

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)

    def path_for(self, locator: str) -> Path:
        return self.base_dir / locator

    def save(self, key: str, data: bytes) -> str:
        destination = self.path_for(key)
        destination.parent.mkdir(parents=True, exist_ok=True)
        with destination.open("wb") as buffer:
            buffer.write(data)
        return key

    def delete(self, locator: str) -> None:
        """
        Delete a stored file.

        Missing files are ignored; filesystem errors are logged rather than
        raised because deletion always runs on cleanup paths.
        """
        path = self.path_for(locator)
        try:
            if path.exists():
                path.unlink()
        except OSError as e:
            LOGGER.error(f"Could not delete stored file {path}: {e}")


class InlineStorage:
    """No bytes are kept; the locator only records what was uploaded."""

    def save(self, key: str, data: bytes) -> str:
        return f"{INLINE_SCHEME}{key}"

    def delete(self, locator: str) -> None:
        return None


def build_storage(settings):
    if settings.STORAGE_BACKEND == "inline":
        return InlineStorage()
    return LocalStorage(settings.DATA_DIR)
