"""Process-wide session state for the generation backend.

The backend is reached on the user's behalf with browser session cookies.
:class:`SessionState` caches those cookies for the lifetime of the process
and knows how to recover them:

- **Restore** reads the JSON cookie store written by a previous login
  (``PROMPTGRID_COOKIE_FILE``).  No interaction is involved.
- **Login** runs the configured external command
  (``PROMPTGRID_LOGIN_COMMAND``), which is expected to capture fresh cookies
  into the same store, and then reloads it.

Concurrency
-----------
One ``SessionState`` is shared by every request.  Restores follow a
check / restore / re-check pattern instead of a lock: if the session is
already usable the call is a no-op, and a freshly loaded cookie jar is only
swapped in (with a single assignment) when it is complete and nobody else
has restored in the meantime.  A failed restore never touches the previous
jar.

Cookie Store Format
-------------------
Either a flat mapping::

    {"__Secure-1PSID": "...", "__Secure-1PSIDTS": "..."}

or the list form exported by most browser cookie extensions::

    [{"name": "__Secure-1PSID", "value": "...", "domain": ".google.com"}]
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path

from promptgrid.core.config import PromptGridConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoginResult:
    """Outcome of an interactive login attempt."""

    success: bool
    error: str | None = None


def load_cookie_file(path: Path) -> dict[str, str]:
    """Read a cookie store from disk.

    Args:
        path: Location of the JSON cookie store.

    Returns:
        Mapping of cookie name to value.  Entries without a usable name or
        value are skipped.

    Raises:
        OSError: If the file cannot be read.
        ValueError: If the file is not valid JSON or has an unknown shape.
    """
    with open(path, encoding="utf-8") as f:
        raw = json.load(f)

    cookies: dict[str, str] = {}
    if isinstance(raw, dict):
        for name, value in raw.items():
            if isinstance(name, str) and isinstance(value, str) and value:
                cookies[name] = value
    elif isinstance(raw, list):
        for item in raw:
            if not isinstance(item, dict):
                continue
            name = item.get("name")
            value = item.get("value")
            if isinstance(name, str) and isinstance(value, str) and value:
                cookies[name] = value
    else:
        raise ValueError(f"Unsupported cookie store format: {type(raw).__name__}")
    return cookies


class SessionState:
    """Cached authentication state shared by all requests.

    Attributes:
        _config (PromptGridConfig):
            Application configuration (cookie store path, required cookie
            names, login command and timeout).
        _cookies (dict[str, str]):
            The current cookie jar.  Replaced wholesale, never mutated.
        _login_in_progress (bool):
            ``True`` while the external login command is running.
    """

    def __init__(self, config: PromptGridConfig, cookies: dict[str, str] | None = None) -> None:
        self._config = config
        self._cookies: dict[str, str] = dict(cookies or {})
        self._login_in_progress = False

    # -- Queries ------------------------------------------------------------

    @property
    def cookies(self) -> dict[str, str]:
        """A copy of the current cookie jar."""
        return dict(self._cookies)

    @property
    def login_in_progress(self) -> bool:
        return self._login_in_progress

    def has_session(self) -> bool:
        """Return ``True`` if the cached cookies make a usable session."""
        return self._is_usable(self._cookies)

    def _is_usable(self, cookies: dict[str, str]) -> bool:
        if not cookies:
            return False
        return all(cookies.get(name) for name in self._config.required_cookies)

    # -- Mutations ----------------------------------------------------------

    async def restore_session(self) -> bool:
        """Try to recover a session from the cookie store.

        Safe to call concurrently and repeatedly.

        Returns:
            ``True`` if a usable session exists after the call.
        """
        if self.has_session():
            return True

        cookies = await self._read_store()
        if cookies is None:
            return self.has_session()

        # Another request may have restored while we were reading.
        if self.has_session():
            logger.debug("Session restored concurrently; discarding duplicate read.")
            return True

        self._cookies = cookies
        logger.info("Session restored from %s (%d cookies).", self._config.cookie_file, len(cookies))
        return True

    def invalidate(self, expected: dict[str, str] | None = None) -> bool:
        """Forget the cached cookies (e.g. after the backend rejected them).

        Args:
            expected: The jar the rejected request was sent with.  When
                given, the cookies are only dropped if they are still that
                jar, so a login or restore that finished in the meantime is
                kept.

        Returns:
            ``True`` if the cookies were dropped.
        """
        if expected is not None and self._cookies != expected:
            logger.info("Session changed since the rejected request; keeping current cookies.")
            return False
        if self._cookies:
            logger.warning("Session invalidated; cookies will be reloaded on next request.")
        self._cookies = {}
        return True

    async def login(self) -> LoginResult:
        """Run the external interactive login command and reload the store.

        Only one login may run at a time.  Unlike :meth:`restore_session`,
        the store is re-read even if a session already exists, since the
        command is expected to have refreshed it.

        Returns:
            :class:`LoginResult` describing the outcome.
        """
        if self._login_in_progress:
            return LoginResult(success=False, error="Login already in progress")
        if not self._config.login_command:
            return LoginResult(success=False, error="Interactive login is not configured")

        self._login_in_progress = True
        logger.info("Starting interactive login: %s", self._config.login_command[0])
        try:
            error = await self._run_login_command()
            if error is not None:
                logger.warning("Interactive login failed: %s", error)
                return LoginResult(success=False, error=error)

            cookies = await self._read_store()
            if cookies is None:
                return LoginResult(success=False, error="Login finished but no usable session was saved")

            self._cookies = cookies
            logger.info("Interactive login succeeded.")
            return LoginResult(success=True)
        finally:
            self._login_in_progress = False

    # -- Internals ----------------------------------------------------------

    async def _read_store(self) -> dict[str, str] | None:
        """Load and validate the cookie store; ``None`` if unusable."""
        path = self._config.cookie_file
        try:
            cookies = await asyncio.to_thread(load_cookie_file, path)
        except FileNotFoundError:
            logger.info("No cookie store at %s.", path)
            return None
        except (OSError, ValueError) as e:
            logger.warning("Could not read cookie store %s: %s", path, e)
            return None

        if not self._is_usable(cookies):
            missing = [n for n in self._config.required_cookies if not cookies.get(n)]
            logger.warning("Cookie store %s is missing required cookies: %s", path, missing)
            return None
        return cookies

    async def _run_login_command(self) -> str | None:
        """Run the login command; return an error message or ``None``."""
        try:
            proc = await asyncio.create_subprocess_exec(
                *self._config.login_command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            return f"Could not start login command: {e}"

        try:
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._config.login_timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            return "Login timed out"

        if proc.returncode != 0:
            detail = (stderr or b"").decode("utf-8", errors="replace").strip()
            return detail or f"Login command exited with status {proc.returncode}"
        return None
