"""Error definitions for APIAuth signing and verification."""


class APIAuthError(Exception):
    """A signing or verification failure with a stable code and HTTP status.

    Attributes:
        code: The error code string (e.g. "MissingDate", "SignatureMismatch").
        message: Human-readable error description.
        http_status: The HTTP status a server should answer with.
    """

    def __init__(self, code: str, message: str, http_status: int = 401) -> None:
        """Initialize the error.

        Args:
            code: Error code.
            message: Error description.
            http_status: HTTP status code (default 401).
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status


# -- Header sufficiency --------------------------------------------------------


class MissingDate(APIAuthError):
    """The request has no Date header."""

    def __init__(self) -> None:
        super().__init__(code="MissingDate", message="No Date header present", http_status=400)


class MissingContentType(APIAuthError):
    """The request has a body but no Content-Type header."""

    def __init__(self) -> None:
        super().__init__(
            code="MissingContentType",
            message="No Content-Type header present",
            http_status=400,
        )


class MissingContentMD5(APIAuthError):
    """The request has a body but no Content-MD5 header."""

    def __init__(self) -> None:
        super().__init__(
            code="MissingContentMD5",
            message="No Content-MD5 header present",
            http_status=400,
        )


# -- Signing -------------------------------------------------------------------


class AuthorizationAlreadyPresent(APIAuthError):
    """The request is already signed."""

    def __init__(self) -> None:
        super().__init__(
            code="AuthorizationAlreadyPresent",
            message="Authorization header already present",
            http_status=400,
        )


# -- Verification --------------------------------------------------------------


class AuthorizationMissing(APIAuthError):
    """There is no Authorization header to verify."""

    def __init__(self) -> None:
        super().__init__(code="AuthorizationMissing", message="Authorization header not set")


class MalformedHeader(APIAuthError):
    """The Authorization header does not match `APIAuth access_id:signature`."""

    def __init__(self, header: str = "") -> None:
        super().__init__(code="MalformedHeader", message=f"Malformed header: {header}")
        self.header = header


class SignatureMismatch(APIAuthError):
    """The signature matches no accepted canonical string."""

    def __init__(self) -> None:
        super().__init__(code="SignatureMismatch", message="Signature mismatch")


class UnknownAccessId(APIAuthError):
    """No secret key is known for the access ID in the Authorization header."""

    def __init__(self, access_id: str = "") -> None:
        super().__init__(code="UnknownAccessId", message=f"Unknown access ID: {access_id}")
        self.access_id = access_id
