"""Credential handling for Git remote URLs and log output."""

import re
from urllib.parse import quote, urlsplit, urlunsplit

REDACTED = '***'

# scheme://user:secret@  (the user part may be empty)
_CREDENTIALS_PATTERN = re.compile(r'(?P<scheme>[A-Za-z][A-Za-z0-9+.-]*://)(?P<user>[^:/@\s]*):[^@/\s]+@')


def with_credentials(url: str, token: str, user: str = 'user') -> str:
    """Embed ``user:token`` into an http(s) URL.

    Any credentials already present in the URL are replaced.
    """
    parts = urlsplit(url)
    host = parts.netloc.rsplit('@', 1)[-1]
    netloc = f'{quote(user, safe="")}:{quote(token, safe="")}@{host}'
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def redact_url(url: str) -> str:
    """Replace the secret part of ``user:secret@`` credentials with ``***``.

    URLs without a password are returned unchanged.
    """
    if not url:
        return url
    return _CREDENTIALS_PATTERN.sub(
        lambda m: f'{m.group("scheme")}{m.group("user")}:{REDACTED}@', url
    )


def sanitize_for_logging(message: str) -> str:
    """Redact every credential-bearing URL found in free text."""
    if not message:
        return message
    return redact_url(message)
