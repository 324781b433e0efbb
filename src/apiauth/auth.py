"""APIAuth HMAC-SHA1 request signing and verification.

A request is signed by computing a canonical string from its Content-Type,
Content-MD5, URI and Date (and, in the method-bound scheme, its HTTP method),
keying an HMAC-SHA1 over it with the shared secret, and sending the base64
result as ``Authorization: APIAuth <access_id>:<signature>``.

The legacy canonical string omits the method, so a signature for one verb
can be replayed with another verb on the same path. Verification accepts
both schemes until every signer has moved to the method-bound one.
"""

import base64
import hashlib
import hmac
import logging
from enum import Enum

from apiauth.errors import (
    AuthorizationAlreadyPresent,
    AuthorizationMissing,
    MalformedHeader,
    MissingContentMD5,
    MissingContentType,
    MissingDate,
    SignatureMismatch,
)
from apiauth.request import AnyRequest, has_body, header_value, request_target

logger = logging.getLogger(__name__)

# Constants
AUTH_SCHEME = "APIAuth"
AUTH_PREFIX = AUTH_SCHEME + " "


class Scheme(str, Enum):
    """Canonical string variant a signature was computed over."""

    LEGACY = "legacy"
    METHOD = "method"


# -- Header sufficiency --------------------------------------------------------


def sufficient_headers(request: AnyRequest) -> None:
    """Check that a request carries every header the signature covers.

    Args:
        request: The request to inspect.

    Raises:
        MissingDate: If there is no Date header.
        MissingContentType: If the request has a body but no Content-Type.
        MissingContentMD5: If the request has a body but no Content-MD5.
    """
    if not header_value(request, "Date"):
        raise MissingDate()

    if has_body(request):
        if not header_value(request, "Content-Type"):
            raise MissingContentType()
        if not header_value(request, "Content-MD5"):
            raise MissingContentMD5()


# -- Canonical string construction ---------------------------------------------


def canonical_string(request: AnyRequest) -> str:
    """Build the legacy canonical string: Content-Type,Content-MD5,URI,Date.

    Absent headers contribute empty fields, so their commas remain.

    Args:
        request: The request to canonicalize.

    Returns:
        The comma-joined canonical string.
    """
    path, query = request_target(request)
    uri = path or "/"
    if query:
        uri = f"{uri}?{query}"

    return ",".join(
        [
            header_value(request, "Content-Type"),
            header_value(request, "Content-MD5"),
            uri,
            header_value(request, "Date"),
        ]
    )


def canonical_string_with_method(request: AnyRequest) -> str:
    """Build the method-bound canonical string: METHOD followed by the legacy fields."""
    return ",".join([request.method.upper(), canonical_string(request)])


# -- Signature computation -----------------------------------------------------


def compute(canonical: str, secret_key: str) -> str:
    """Compute the base64 HMAC-SHA1 signature of a canonical string.

    Args:
        canonical: The canonical string.
        secret_key: The shared secret.

    Returns:
        Standard, padded base64 of the 20-byte digest.
    """
    digest = hmac.new(secret_key.encode("utf-8"), canonical.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(signature: str, canonical: str, secret_key: str) -> bool:
    """Return True if ``signature`` is the signature of ``canonical`` under ``secret_key``."""
    expected = compute(canonical, secret_key)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


def content_md5(body: bytes) -> str:
    """Return the Content-MD5 header value (base64 MD5 digest) for a body."""
    return base64.b64encode(hashlib.md5(body).digest()).decode("ascii")


# -- Authorization header ------------------------------------------------------


def format_authorization(access_id: str, signature: str) -> str:
    """Build an Authorization header value."""
    return f"{AUTH_PREFIX}{access_id}:{signature}"


def parse_authorization(header: str) -> tuple[str, str]:
    """Split an Authorization header value into access ID and signature.

    Args:
        header: The raw Authorization header value.

    Returns:
        An ``(access_id, signature)`` tuple.

    Raises:
        MalformedHeader: Unless the value is exactly ``APIAuth <id>:<sig>``
            with both parts non-empty.
    """
    if not header.startswith(AUTH_PREFIX):
        raise MalformedHeader(header)

    tokens = header[len(AUTH_PREFIX):].split(":")
    if len(tokens) != 2 or not tokens[0] or not tokens[1]:
        raise MalformedHeader(header)

    return tokens[0], tokens[1]


# -- Signing -------------------------------------------------------------------


def _sign(request: AnyRequest, access_id: str, secret_key: str, canonical: str) -> None:
    signature = compute(canonical, secret_key)
    request.headers["Authorization"] = format_authorization(access_id, signature)


def _check_signable(request: AnyRequest) -> None:
    sufficient_headers(request)
    if header_value(request, "Authorization"):
        raise AuthorizationAlreadyPresent()


def sign(request: AnyRequest, access_id: str, secret_key: str) -> None:
    """Sign a request with the legacy canonical string.

    Sets the request's Authorization header; nothing else is modified.

    Args:
        request: A request with mutable headers (e.g. ``httpx.Request``).
        access_id: The public access identifier.
        secret_key: The shared secret.

    Raises:
        MissingDate, MissingContentType, MissingContentMD5: If the headers
            the signature covers are absent.
        AuthorizationAlreadyPresent: If the request is already signed.
    """
    _check_signable(request)
    _sign(request, access_id, secret_key, canonical_string(request))


def sign_with_method(request: AnyRequest, access_id: str, secret_key: str) -> None:
    """Sign a request as in :func:`sign`, with the HTTP method in the canonical string."""
    _check_signable(request)
    _sign(request, access_id, secret_key, canonical_string_with_method(request))


# -- Verification --------------------------------------------------------------


def verify(request: AnyRequest, secret_key: str, *, accept_legacy: bool = True) -> Scheme:
    """Verify a signed request against a single secret key.

    The access ID in the header is not consulted; callers that hold one
    secret per access ID resolve it first (see ``Authenticator``).

    Args:
        request: The signed request.
        secret_key: The shared secret to check against.
        accept_legacy: Also accept signatures over the legacy canonical string.

    Returns:
        The scheme whose canonical string the signature matched.

    Raises:
        MissingDate, MissingContentType, MissingContentMD5: If the headers
            the signature covers are absent.
        AuthorizationMissing: If there is no Authorization header.
        MalformedHeader: If the Authorization header cannot be parsed.
        SignatureMismatch: If the signature matches no accepted scheme.
    """
    sufficient_headers(request)

    header = header_value(request, "Authorization")
    if not header:
        raise AuthorizationMissing()

    _, signature = parse_authorization(header)

    if verify_signature(signature, canonical_string_with_method(request), secret_key):
        return Scheme.METHOD
    if accept_legacy and verify_signature(signature, canonical_string(request), secret_key):
        return Scheme.LEGACY

    raise SignatureMismatch()
