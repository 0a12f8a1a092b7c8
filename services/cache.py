"""
On-disk cache for site info results.

Entries are keyed by host only, so every URL on the same host shares one
file: ``{dir}/{host}_{hash}.txt`` where ``hash`` is 16 hex characters of an
HMAC-SHA256 of the host. The file's mtime is the entry's timestamp.
"""
import hashlib
import hmac
import logging
import os
import secrets
import tempfile
import time
from pathlib import Path
from typing import Optional, Union

from services.urls import extract_host

logger = logging.getLogger(__name__)

# entries whose content is the placeholder are re-checked after 12 hours
PLACEHOLDER_EXPIRE = 43200


class CacheDirectoryError(OSError):
    """The cache directory is missing and could not be created."""


def make_cache_dir(directory: Path) -> None:
    try:
        directory.mkdir(mode=0o755, parents=True, exist_ok=True)
    except OSError as exc:
        raise CacheDirectoryError(exc.errno, f"Failed to create cache directory: {exc}", str(directory)) from exc


def load_hash_key(path: Union[str, Path], env_value: Optional[str] = None) -> str:
    """
    Return the HMAC secret for cache file names.

    ``env_value`` wins when set. Otherwise the key stored at ``path`` is
    used, generating and persisting a new one on first run so that entries
    stay readable across restarts.
    """
    if env_value:
        return env_value

    path = Path(path)
    if path.is_file():
        key = path.read_text(encoding="utf-8").strip()
        if key:
            return key

    key = "secure_key_" + secrets.token_hex(8)
    make_cache_dir(path.parent)
    path.write_text(key, encoding="utf-8")
    os.chmod(path, 0o600)
    logger.info("Generated new cache hash key at %s", path)
    return key


class HostCache:
    def __init__(self, hash_key: str, directory: Union[str, Path] = "cache"):
        self.hash_key = hash_key
        self.dir = Path(directory)

    def path_for(self, key: str) -> Optional[Path]:
        host = extract_host(key)
        if not host:
            return None
        digest = hmac.new(self.hash_key.encode(), host.encode(), hashlib.sha256).hexdigest()
        return self.dir / f"{host}_{digest[8:24]}.txt"

    def get(self, key: str, default: str, expire: int) -> Optional[str]:
        """
        Cached value for ``key``'s host, or None when absent or older than
        ``expire`` seconds. ``default`` is the md5 hex digest of a
        placeholder value; such entries expire after 12 hours regardless.
        """
        path = self.path_for(key)
        if path is None or not path.is_file():
            return None

        data = path.read_text(encoding="utf-8")
        if hashlib.md5(data.encode("utf-8")).hexdigest() == default:
            expire = PLACEHOLDER_EXPIRE

        if time.time() - path.stat().st_mtime > expire:
            return None
        return data

    def set(self, key: str, value: str) -> None:
        self.ensure_dir()

        path = self.path_for(key)
        if path is None:
            return

        fd, tmp_name = tempfile.mkstemp(dir=self.dir, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def ensure_dir(self) -> None:
        make_cache_dir(self.dir)
