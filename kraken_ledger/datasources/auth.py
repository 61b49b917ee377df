"""Request authentication helpers for Kraken's private REST endpoints."""

import base64
import hashlib
import hmac
import random
import threading
import time
import urllib.parse
from typing import Callable, Mapping, Optional


def get_kraken_signature(url_path: str, data: Mapping[str, object], secret: str) -> str:
    """
    Compute the API-Sign header value.

    HMAC-SHA512 of (URI path + SHA256(nonce + POST data)), keyed with the
    base64-decoded private key, returned base64-encoded.

    Args:
        url_path: Path starting with /0/private, e.g. "/0/private/TradesHistory"
        data: Form payload, must contain "nonce"
        secret: Base64 private key

    Returns:
        Base64 signature
    """
    if "nonce" not in data:
        raise ValueError("Payload is missing a nonce")

    postdata = urllib.parse.urlencode(data)
    encoded = (str(data["nonce"]) + postdata).encode()
    message = url_path.encode() + hashlib.sha256(encoded).digest()

    mac = hmac.new(base64.b64decode(secret), message, hashlib.sha512)
    return base64.b64encode(mac.digest()).decode()


class NonceGenerator:
    """
    Strictly increasing nonces for one API key.

    Millisecond clock scaled to microseconds plus a per-process salt; if the
    clock has not moved since the last call the previous value is bumped by one.
    """

    def __init__(self, clock: Callable[[], float] = time.time, salt: Optional[int] = None):
        self._clock = clock
        self._salt = random.randint(0, 999) if salt is None else salt
        self._last = 0
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            now = int(self._clock() * 1000) * 1000 + self._salt
            self._last = now if now > self._last else self._last + 1
            return self._last
