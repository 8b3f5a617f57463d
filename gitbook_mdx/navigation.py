"""Navigation with protocol and credential fallbacks."""

from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import quote, urlsplit, urlunsplit

from .config import BasicAuth
from .errors import NavigationError, NavigationErrorKind

logger = logging.getLogger("gitbook_mdx")

WAIT_UNTIL = "networkidle"

EMAIL_INPUT_SELECTOR = 'input[type="email"]'
PASSWORD_INPUT_SELECTOR = 'input[type="password"]'
SUBMIT_BUTTON_SELECTOR = 'button[type="submit"]'

_ERROR_PATTERNS = (
    (NavigationErrorKind.AUTH, re.compile(r"ERR_INVALID_AUTH_CREDENTIALS|401")),
    (NavigationErrorKind.CERTIFICATE, re.compile(r"ERR_SSL_PROTOCOL_ERROR|ERR_CERT")),
    (NavigationErrorKind.CONNECTION, re.compile(r"ERR_CONNECTION_REFUSED|ERR_CONNECTION_RESET")),
)
_HTTP_URL = re.compile(r"^https?://", re.IGNORECASE)


def classify_navigation_error(message: str) -> Optional[NavigationErrorKind]:
    """Return the retryable failure class of an engine error message, if any."""
    for kind, pattern in _ERROR_PATTERNS:
        if pattern.search(message or ""):
            return kind
    return None


def swap_protocol(url: str) -> str:
    """Swap ``https://`` for ``http://`` and vice versa."""
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    if scheme == "https":
        return urlunsplit(("http",) + tuple(parts[1:]))
    if scheme == "http":
        return urlunsplit(("https",) + tuple(parts[1:]))
    return url


def embed_credentials(url: str, auth: BasicAuth) -> str:
    """Put percent-encoded credentials in the authority component of ``url``."""
    parts = urlsplit(url)
    host = parts.netloc.rpartition("@")[2]
    userinfo = f"{quote(auth.username, safe='')}:{quote(auth.password, safe='')}"
    return urlunsplit((parts.scheme, f"{userinfo}@{host}", parts.path, parts.query, parts.fragment))


def redact_credentials(url: str) -> str:
    parts = urlsplit(url)
    if "@" not in parts.netloc:
        return url
    host = parts.netloc.rpartition("@")[2]
    return urlunsplit((parts.scheme, f"***@{host}", parts.path, parts.query, parts.fragment))


async def navigate_with_fallback(
    session,
    url: str,
    auth: Optional[BasicAuth] = None,
) -> str:
    """Load ``url`` in ``session`` and return the URL that actually succeeded.

    Auth, certificate and connection failures on ``http(s)`` URLs are retried
    once with the other protocol and, when credentials are available, once
    more with the credentials embedded in the URL. When every retry fails the
    first error is raised.
    """
    try:
        await session.goto(url, wait_until=WAIT_UNTIL)
        return url
    except NavigationError as exc:
        original = exc

    original.kind = classify_navigation_error(str(original))
    if original.kind is None or not _HTTP_URL.match(url):
        raise original

    alternate = swap_protocol(url)
    logger.info("Navigation to %s failed (%s); retrying at %s", redact_credentials(url), original.kind.value, redact_credentials(alternate))
    try:
        await session.goto(alternate, wait_until=WAIT_UNTIL)
        return alternate
    except NavigationError as exc:
        logger.debug("Protocol swap to %s failed: %s", redact_credentials(alternate), exc)

    if auth is None:
        raise original

    with_credentials = embed_credentials(url, auth)
    logger.info("Retrying %s with embedded credentials", redact_credentials(with_credentials))
    try:
        await session.goto(with_credentials, wait_until=WAIT_UNTIL)
        return with_credentials
    except NavigationError as exc:
        logger.debug("Credential retry for %s failed: %s", redact_credentials(url), exc)
    raise original


async def login_with_form(session, auth: BasicAuth, timeout: float = 10.0) -> bool:
    """Submit a login form when the loaded page shows one.

    Returns ``True`` when a form was found and submitted.
    """
    try:
        if not await session.wait_for_selector(EMAIL_INPUT_SELECTOR, timeout=timeout):
            logger.debug("No login form found on %s", session.url)
            return False
        logger.info("Login form detected on %s; submitting credentials", session.url)
        await session.fill(EMAIL_INPUT_SELECTOR, auth.username)
        await session.fill(PASSWORD_INPUT_SELECTOR, auth.password)
        await session.click(SUBMIT_BUTTON_SELECTOR)
        await session.wait_for_load_state(WAIT_UNTIL)
    except Exception as exc:  # pylint: disable=broad-except
        logger.warning("Form login on %s failed: %s", session.url, exc)
        return False
    return True
