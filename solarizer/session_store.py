"""Persistent Solar.web session cookie.

Solar.web authenticates with an ASP.NET session cookie and may rotate it on
any response (sliding session). The store keeps the live value and a durable
copy on disk in sync, so a restart picks up the latest token without a new
login.
"""

import logging
import os
import threading
from http.cookies import Morsel
from pathlib import Path
from typing import Mapping, Optional, Union
from urllib.parse import urlsplit

from .errors import SessionPersistenceError

logger = logging.getLogger(__name__)

AUTH_COOKIE_NAME = ".AspNet.Auth"
SOLAR_WEB_DOMAIN = "www.solarweb.com"


def head(value: str, length: int = 10) -> str:
    """First characters of a secret, for log lines."""
    return value[:length]


class SessionCredential:
    """The active auth cookie and the scope it is sent to."""

    def __init__(
        self,
        value: str = "",
        host: str = SOLAR_WEB_DOMAIN,
        path: str = "/",
        expires: Optional[str] = None,
    ):
        self.value = value
        self.host = host
        self.path = path
        self.expires = expires
        # Only ever sent over https and never exposed to scripts
        self.secure = True
        self.http_only = True

    def __bool__(self) -> bool:
        return bool(self.value)

    def __repr__(self):
        return (
            f"SessionCredential(host={self.host}, len={len(self.value)}, "
            f"value={head(self.value)}..., expires={self.expires})"
        )


class SessionStore:
    """Owns the session cookie and its durable copy.

    Attributes:
        path: Location of the cookie file
        cookie_name: Name of the auth cookie
        host: Host the cookie belongs to
    """

    def __init__(
        self,
        path: Union[str, Path],
        cookie_name: str = AUTH_COOKIE_NAME,
        host: str = SOLAR_WEB_DOMAIN,
    ):
        """Initialize the store from the cookie file.

        Args:
            path: Cookie file; parent directories are created if missing
            cookie_name: Name of the auth cookie
            host: Host the cookie is scoped to

        Raises:
            SessionPersistenceError: If the directory cannot be created or an
                existing cookie file cannot be read
        """
        self.path = Path(path)
        self.cookie_name = cookie_name
        self.host = host
        self._lock = threading.Lock()

        try:
            self.path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Unable to create directories {self.path.parent}: {e}")
            raise SessionPersistenceError(f"Unable to create {self.path.parent}: {e}") from e

        self._credential = self.load()
        self._last_seen = self._credential.value

    @property
    def credential(self) -> SessionCredential:
        """The active credential."""
        return self._credential

    @property
    def value(self) -> str:
        """The active cookie value, empty if none is known."""
        return self._credential.value

    def cookie_header(self) -> Optional[str]:
        """Value for the Cookie request header, or None without a credential."""
        credential = self._credential
        if not credential:
            return None
        return f"{self.cookie_name}={credential.value}"

    def load(self) -> SessionCredential:
        """Read the durable copy.

        A missing file yields an empty credential.

        Raises:
            SessionPersistenceError: If the file exists but cannot be read
        """
        try:
            data = self.path.read_bytes()
        except FileNotFoundError:
            logger.warning(f"Cookie file does not exist: {self.path}")
            return SessionCredential(host=self.host)
        except OSError as e:
            logger.error(f"Unable to read cookie file {self.path}: {e}")
            raise SessionPersistenceError(f"Unable to read {self.path}: {e}") from e

        try:
            value = data.decode("utf-8").rstrip("\r\n")
        except UnicodeDecodeError as e:
            logger.error(f"Cookie file {self.path} is not valid UTF-8")
            raise SessionPersistenceError(f"Unable to decode {self.path}: {e}") from e

        logger.info(f"Loaded auth cookie from {self.path} (len={len(value)})")
        return SessionCredential(value=value, host=self.host)

    def apply(self, value: str, expires: Optional[str] = None):
        """Install a new credential and overwrite the durable copy.

        A failed write is logged; the in-memory credential stays authoritative.
        """
        with self._lock:
            self._install(value, expires)
            logger.info(f"Auth cookie was set (len={len(value)}, value={head(value)}...)")
            self._persist(value)

    def observe(self, url: str, cookies: Mapping[str, Union[Morsel, str]]):
        """Reconcile cookies set by a response.

        Called by the transport after every response. A changed value for the
        auth cookie on our host is a rotation by the server and is persisted.
        """
        if urlsplit(url).hostname != self.host:
            return
        cookie = cookies.get(self.cookie_name)
        if cookie is None:
            return

        if isinstance(cookie, Morsel):
            value = cookie.value
            expires = cookie["expires"] or None
        else:
            value = cookie
            expires = None

        with self._lock:
            if value == self._last_seen:
                return
            self._install(value, expires)
            logger.info(
                f"Auth cookie was updated (exp={expires}, len={len(value)}, "
                f"value={head(value)}...)"
            )
            self._persist(value)

    def _install(self, value: str, expires: Optional[str]):
        self._credential = SessionCredential(value=value, host=self.host, expires=expires)
        self._last_seen = value

    def _persist(self, value: str):
        """Write the cookie file with owner-only permissions."""
        try:
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "wb") as f:
                f.write(value.encode("utf-8"))
            os.chmod(self.path, 0o600)
            logger.debug(f"Auth cookie saved to {self.path}")
        except OSError as e:
            # Session stays usable in memory
            logger.error(f"Unable to save cookie file {self.path}: {e}")
