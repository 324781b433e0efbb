"""httpx integration: sign outgoing requests with APIAuth."""

from collections.abc import Generator

import httpx

from apiauth.auth import content_md5, sign, sign_with_method
from apiauth.dates import http_date
from apiauth.request import has_body, header_value


class APIAuth(httpx.Auth):
    """httpx auth that adds Date, Content-MD5 and Authorization headers.

    Usage::

        client = httpx.Client(auth=APIAuth("me", "secret"))

    Attributes:
        access_id: The public access identifier.
        secret_key: The shared secret.
        include_method: Sign the method-bound canonical string (default).
            Set to False only for verifiers that predate it.
    """

    requires_request_body = True

    def __init__(self, access_id: str, secret_key: str, include_method: bool = True) -> None:
        self.access_id = access_id
        self.secret_key = secret_key
        self.include_method = include_method

    def sign_request(self, request: httpx.Request) -> httpx.Request:
        """Fill in the headers the signature covers, then sign the request in place."""
        if not header_value(request, "Date"):
            request.headers["Date"] = http_date()
        if has_body(request) and not header_value(request, "Content-MD5"):
            request.headers["Content-MD5"] = content_md5(request.content)

        signer = sign_with_method if self.include_method else sign
        signer(request, self.access_id, self.secret_key)
        return request

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        yield self.sign_request(request)
