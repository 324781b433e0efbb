"""Uniform access to the request fields APIAuth signs.

Clients sign ``httpx.Request`` objects; servers verify FastAPI/Starlette
requests. Both expose a method and case-insensitive headers, but they keep
the request target in different places.
"""

import urllib.parse

import httpx
from fastapi import Request

AnyRequest = httpx.Request | Request

# Sub-delimiters and ":" "@" stay literal in a path, as httpx sends them
_PATH_SAFE = "/:@!$&'()*+,;="


def header_value(request: AnyRequest, name: str) -> str:
    """Return a header value, or "" when the header is missing."""
    return request.headers.get(name, "")


def request_target(request: AnyRequest) -> tuple[str, str]:
    """Return the escaped path and raw query string of a request.

    Args:
        request: An httpx request or an ASGI (FastAPI/Starlette) request.

    Returns:
        A ``(path, query)`` tuple. Either may be empty.
    """
    if isinstance(request, httpx.Request):
        path, _, query = request.url.raw_path.decode("ascii").partition("?")
        return path, query

    scope = request.scope
    raw_path = scope.get("raw_path")
    if raw_path:
        # Some transports put the query string into raw_path as well
        path = raw_path.decode("latin-1").partition("?")[0]
    else:
        path = urllib.parse.quote(scope.get("path", ""), safe=_PATH_SAFE)
    query = scope.get("query_string", b"").decode("latin-1")
    return path, query


def has_body(request: AnyRequest) -> bool:
    """Return True if the request declares a non-empty body.

    A body is declared by ``Transfer-Encoding`` or by a positive
    ``Content-Length``.
    """
    if header_value(request, "Transfer-Encoding"):
        return True
    try:
        return int(header_value(request, "Content-Length") or 0) > 0
    except ValueError:
        return False
