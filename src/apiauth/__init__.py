"""APIAuth: HMAC-SHA1 signing and verification of HTTP requests."""

__version__ = "0.1.0"
