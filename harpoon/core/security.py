import hmac
import hashlib
from typing import Optional, Tuple

# Header value is "<algorithm>=<hexdigest>", e.g. "sha1=3f2a..."
SUPPORTED_ALGORITHMS = {
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
}


def split_signature(signature: Optional[str]) -> Optional[Tuple[str, str]]:
    """Return (algorithm, hexdigest) from a signature header, or None if malformed."""
    if not signature:
        return None
    # maxsplit=1 so a stray "=" in the digest part is kept in the digest
    parts = signature.split("=", 1)
    if len(parts) != 2:
        return None
    algorithm, digest = parts
    if algorithm not in SUPPORTED_ALGORITHMS or not digest:
        return None
    return algorithm, digest


def compute_signature(secret: str, payload: bytes, algorithm: str = "sha1") -> str:
    mac = hmac.new(
        secret.encode(),
        msg=payload,
        digestmod=SUPPORTED_ALGORITHMS[algorithm],
    )
    return mac.hexdigest()


def verify_signature(secret: str, payload: bytes, signature: Optional[str]) -> bool:
    """
    Check the payload against the signature header sent by GitHub.

    WARNING: an empty secret disables verification entirely and every
    payload is accepted. This is the documented opt-out for deployments
    without GITHUB_HOOK_SECRET_TOKEN set.
    """
    if not secret:
        return True

    parsed = split_signature(signature)
    if parsed is None:
        return False

    algorithm, received = parsed
    expected = compute_signature(secret, payload, algorithm)

    # compare bytes: compare_digest refuses non-ASCII str
    return hmac.compare_digest(expected.encode(), received.encode("utf-8", errors="replace"))
