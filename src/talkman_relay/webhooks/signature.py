"""
HMAC signature verification for GitHub webhook deliveries.

GitHub signs the raw request body with the shared webhook secret and
sends the digest as ``X-Hub-Signature-256: sha256=<hex>``. Verification
must run on the raw bytes before any JSON decoding.
"""

import hashlib
import hmac
import string

SIGNATURE_PREFIX = 'sha256='
DIGEST_LENGTH = hashlib.sha256().digest_size * 2

_HEX_DIGITS = frozenset(string.hexdigits)


def sign(raw_body: bytes, secret: str) -> str:
    """
    Compute the signature header value for a payload.

    Args:
        raw_body: Request body bytes
        secret: Shared webhook secret

    Returns:
        Header value in ``sha256=<hex>`` form
    """
    digest = hmac.new(secret.encode(), raw_body, hashlib.sha256).hexdigest()
    return SIGNATURE_PREFIX + digest


def verify(raw_body: bytes, signature_header: str, secret: str) -> bool:
    """
    Verify webhook signature using HMAC-SHA256.

    Malformed headers (missing prefix, non-hex digest, wrong length)
    yield False instead of raising.

    Args:
        raw_body: Request body bytes
        signature_header: X-Hub-Signature-256 header value
        secret: Shared webhook secret

    Returns:
        True if signature is valid
    """
    if not secret or not isinstance(signature_header, str):
        return False
    if not signature_header.startswith(SIGNATURE_PREFIX):
        return False

    received = signature_header[len(SIGNATURE_PREFIX):].lower()
    if len(received) != DIGEST_LENGTH or not _HEX_DIGITS.issuperset(received):
        return False

    expected = sign(raw_body, secret)[len(SIGNATURE_PREFIX):]

    # Use constant-time comparison to prevent timing attacks
    return hmac.compare_digest(expected, received)
