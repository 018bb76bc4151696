"""Encrypted, file-backed persistence of Garmin credential bundles.

One file per user under ``token_dir``, named by a truncated SHA-256 of the
lower-cased email so the directory listing does not leak addresses.  The
file body is a Fernet token over the JSON bundle.  Writes land in a temp
file that is ``os.replace``d into place, so a reader sees either the old
bundle or the new one and never a torn write.  A file that cannot be
decrypted or parsed is deleted on load, so ``exists`` never reports a
bundle that ``load`` cannot return.
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Protocol

from cryptography.fernet import Fernet, InvalidToken

from pulselogic.garmin.models import CredentialBundle

logger = logging.getLogger("pulselogic.garmin.token_store")

# Drop bundles whose refresh token dies within this window.
REFRESH_EXPIRY_BUFFER_SECONDS = 24 * 60 * 60


class TokenStore(Protocol):
    def save(self, user_id: str, bundle: CredentialBundle) -> bool: ...

    def load(self, user_id: str) -> CredentialBundle | None: ...

    def delete(self, user_id: str) -> bool: ...

    def exists(self, user_id: str) -> bool: ...


def fernet_from_secret(secret: str) -> Fernet:
    """Derive a Fernet key from an arbitrary-length secret."""
    digest = hashlib.sha256(secret.encode()).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def hash_user_id(user_id: str) -> str:
    return hashlib.sha256(user_id.strip().lower().encode()).hexdigest()[:32]


class FileTokenStore:
    """TokenStore writing one encrypted file per user."""

    def __init__(self, token_dir: str | Path, secret: str) -> None:
        self._dir = Path(token_dir)
        self._fernet = fernet_from_secret(secret)

    def _path(self, user_id: str) -> Path:
        return self._dir / f"{hash_user_id(user_id)}.json"

    def save(self, user_id: str, bundle: CredentialBundle) -> bool:
        if not bundle.is_complete():
            logger.error("Refusing to persist an incomplete credential bundle")
            return False

        payload = self._fernet.encrypt(json.dumps(bundle.to_dict(), default=str).encode())
        target = self._path(user_id)
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._dir, prefix=".tmp-", suffix=".json")
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(payload)
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            logger.error("Failed to persist Garmin tokens: %s", exc)
            return False

        logger.info("Tokens persisted for session restoration")
        return True

    def load(self, user_id: str) -> CredentialBundle | None:
        path = self._path(user_id)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Could not read stored Garmin tokens: %s", exc)
            return None

        try:
            bundle = CredentialBundle.from_dict(json.loads(self._fernet.decrypt(raw)))
        except (InvalidToken, ValueError, KeyError, TypeError) as exc:
            logger.warning("Discarding unreadable token file %s: %s", path.name, type(exc).__name__)
            self.delete(user_id)
            return None

        if not bundle.is_complete():
            logger.warning("Discarding incomplete token file %s", path.name)
            self.delete(user_id)
            return None

        expires_at = bundle.secondary.get("refresh_token_expires_at")
        if isinstance(expires_at, (int, float)) and expires_at < time.time() + REFRESH_EXPIRY_BUFFER_SECONDS:
            logger.info("Stored refresh token expired or expiring soon; deleting bundle")
            self.delete(user_id)
            return None

        return bundle

    def delete(self, user_id: str) -> bool:
        try:
            self._path(user_id).unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.error("Failed to delete Garmin tokens: %s", exc)
            return False
        return True

    def exists(self, user_id: str) -> bool:
        return self._path(user_id).is_file()
