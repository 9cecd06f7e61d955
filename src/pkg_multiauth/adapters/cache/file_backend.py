import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

from ...domain.entities import StoredJWKS
from ...domain.ports import KeyCacheBackend

logger = logging.getLogger(__name__)


class FileCacheBackend(KeyCacheBackend):
    """
    Durable file-per-issuer JWKS store.

    Files live at `<cache_dir>/<cache_key>.json`. Writes go to a temp file
    in the same directory (unique per process and call) and are moved into
    place with `os.replace`, so readers in other workers only ever see a
    complete document. Concurrent writers: last one wins.
    """

    name = "file"

    def __init__(self, cache_dir: Union[str, Path, None] = None) -> None:
        self._cache_dir = Path(cache_dir) if cache_dir else Path(tempfile.gettempdir())

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def path_for(self, cache_key: str) -> Path:
        return self._cache_dir / f"{cache_key}.json"

    def try_read(self, cache_key: str) -> Optional[StoredJWKS]:
        path = self.path_for(cache_key)
        try:
            contents = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        return StoredJWKS.from_document(json.loads(contents))

    def write(self, cache_key: str, stored: StoredJWKS) -> None:
        self._cache_dir.mkdir(parents=True, exist_ok=True)
        target = self.path_for(cache_key)
        payload = json.dumps(stored.to_document(), separators=(",", ":"))

        fd, tmp_path = tempfile.mkstemp(
            dir=self._cache_dir,
            prefix=f"{cache_key}.",
            suffix=f".{os.getpid()}.tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_path, target)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise

        logger.debug("Wrote JWKS cache file %s", target)
