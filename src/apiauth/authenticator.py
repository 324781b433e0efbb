"""Server-side verification with per-access-ID secret lookup."""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from apiauth.auth import Scheme, parse_authorization, sufficient_headers, verify
from apiauth.errors import AuthorizationMissing, SignatureMismatch, UnknownAccessId
from apiauth.request import AnyRequest, header_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthResult:
    """Identity of a verified caller."""

    access_id: str
    scheme: Scheme


class Authenticator:
    """Verifies APIAuth signed requests against a secret store.

    Attributes:
        secret_lookup: Returns the secret for an access ID, or None if unknown.
        accept_legacy: Whether signatures without the HTTP method are accepted.
    """

    def __init__(
        self,
        secret_lookup: Callable[[str], str | None],
        accept_legacy: bool = True,
    ) -> None:
        self.secret_lookup = secret_lookup
        self.accept_legacy = accept_legacy

    def authenticate(self, request: AnyRequest) -> AuthResult:
        """Resolve the caller's secret and verify the request signature.

        Args:
            request: The incoming request.

        Returns:
            The verified access ID and the scheme it signed with.

        Raises:
            APIAuthError subclass: Missing headers, a missing or malformed
                Authorization header, an unknown access ID, or a mismatch.
        """
        sufficient_headers(request)

        header = header_value(request, "Authorization")
        if not header:
            raise AuthorizationMissing()
        access_id, _ = parse_authorization(header)

        secret_key = self.secret_lookup(access_id)
        if not secret_key:
            raise UnknownAccessId(access_id)

        try:
            scheme = verify(request, secret_key, accept_legacy=self.accept_legacy)
        except SignatureMismatch:
            logger.debug("Signature mismatch for access_id=%s", access_id)
            raise

        if scheme is Scheme.LEGACY:
            logger.debug("Accepted legacy signature for access_id=%s", access_id)
        return AuthResult(access_id=access_id, scheme=scheme)
