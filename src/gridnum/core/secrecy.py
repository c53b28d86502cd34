from __future__ import annotations

import base64
import hashlib
import hmac
import os

DEFAULT_SEAL_KEY = "gridnum-local-seal"
SEAL_KEY_ENV = "GRIDNUM_SEAL_KEY"


class SealError(ValueError):
    pass


class SecrecyCodec:
    """Keeps the defensive number opaque until the offense has committed.

    Tokens are keyed by the play id, so a token copied onto another play will
    not open. This is a fairness control, not a security boundary.
    """

    def __init__(self, secret: str | bytes = DEFAULT_SEAL_KEY) -> None:
        self._secret = secret.encode("utf-8") if isinstance(secret, str) else secret

    @classmethod
    def from_env(cls) -> SecrecyCodec:
        return cls(os.environ.get(SEAL_KEY_ENV, DEFAULT_SEAL_KEY))

    def seal(self, number: int, play_id: str) -> str:
        plain = str(int(number)).encode("ascii")
        body = bytes(a ^ b for a, b in zip(plain, self._keystream(play_id, len(plain))))
        return f"{base64.urlsafe_b64encode(body).decode('ascii')}.{self._tag(body, play_id)}"

    def open(self, token: str, play_id: str) -> int:
        try:
            encoded, tag = token.rsplit(".", 1)
            body = base64.urlsafe_b64decode(encoded.encode("ascii"))
        except ValueError as exc:
            raise SealError("malformed sealed number") from exc
        if not hmac.compare_digest(tag, self._tag(body, play_id)):
            raise SealError(f"sealed number does not belong to play {play_id}")
        plain = bytes(a ^ b for a, b in zip(body, self._keystream(play_id, len(body))))
        return int(plain.decode("ascii"))

    def _keystream(self, play_id: str, length: int) -> bytes:
        stream = b""
        counter = 0
        while len(stream) < length:
            stream += hashlib.sha256(self._secret + play_id.encode("utf-8") + counter.to_bytes(4, "big")).digest()
            counter += 1
        return stream[:length]

    def _tag(self, body: bytes, play_id: str) -> str:
        return hmac.new(self._secret, play_id.encode("utf-8") + b":" + body, hashlib.sha256).hexdigest()[:16]
