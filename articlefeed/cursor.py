"""
Opaque pagination cursors.

A token is ``<payload>.<signature>``, both base64url without padding.
The payload is compact JSON::

    {"t": "<created_at ISO-8601>", "i": <id>, "d": "after"|"before",
     "o": "<order signature>", "s": "<scope digest>"}

The scope names the listing and its filter values (``"author:7"``,
``"feed:3"``...).  Only a keyed digest of it travels in the token, so a
client can neither read which filter produced a cursor nor replay it
against another one.  The format is an implementation detail; clients
must treat tokens as opaque strings.
"""
import base64
import binascii
import hashlib
import hmac
import json
import logging
from datetime import datetime

from articlefeed.config import settings
from articlefeed.errors import InvalidCursor
from articlefeed.ordering import AFTER, BEFORE, ORDER_SIGNATURE, Position

logger = logging.getLogger(__name__)

_DIRECTIONS = frozenset({AFTER, BEFORE})


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    padded = text + "=" * (-len(text) % 4)
    return base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)


class CursorCodec:
    """Encode and verify cursor tokens with an HMAC keyed by *secret*."""

    def __init__(self, secret: str, signature_bytes: int = 16) -> None:
        self._key = secret.encode("utf-8")
        self._signature_bytes = signature_bytes

    def _sign(self, payload: bytes) -> bytes:
        digest = hmac.new(self._key, payload, hashlib.sha256).digest()
        return digest[: self._signature_bytes]

    def _scope_digest(self, scope: str) -> str:
        digest = hmac.new(self._key, b"scope:" + scope.encode("utf-8"), hashlib.sha256).digest()
        return _b64encode(digest[:12])

    def encode(self, position: Position, scope: str) -> str:
        body = {
            "t": position.created_at.isoformat(),
            "i": position.id,
            "d": position.direction,
            "o": ORDER_SIGNATURE,
            "s": self._scope_digest(scope),
        }
        payload = json.dumps(body, separators=(",", ":"), sort_keys=True).encode("utf-8")
        return f"{_b64encode(payload)}.{_b64encode(self._sign(payload))}"

    def decode(self, token: str, scope: str) -> Position:
        """
        Return the position *token* points at.

        Raises ``InvalidCursor`` for anything other than an intact token
        minted by this codec for the same order and *scope*.
        """
        try:
            return self._decode(token, scope)
        except InvalidCursor as exc:
            logger.info("Rejected cursor for scope=%r: %s", scope, exc.details.get("reason"))
            raise

    def _decode(self, token: str, scope: str) -> Position:
        if not token or token.count(".") != 1:
            raise InvalidCursor("malformed")
        payload_part, signature_part = token.split(".")
        try:
            payload = _b64decode(payload_part)
            signature = _b64decode(signature_part)
        except (binascii.Error, ValueError):
            raise InvalidCursor("malformed")

        if not hmac.compare_digest(signature, self._sign(payload)):
            raise InvalidCursor("bad signature")

        try:
            body = json.loads(payload)
        except ValueError:
            raise InvalidCursor("malformed")
        if not isinstance(body, dict):
            raise InvalidCursor("malformed")

        if body.get("o") != ORDER_SIGNATURE:
            raise InvalidCursor("order mismatch")
        if body.get("s") != self._scope_digest(scope):
            raise InvalidCursor("filter mismatch")

        direction = body.get("d")
        ident = body.get("i")
        raw_ts = body.get("t")
        if direction not in _DIRECTIONS:
            raise InvalidCursor("unknown direction")
        if not isinstance(ident, int) or isinstance(ident, bool):
            raise InvalidCursor("bad identity")
        if not isinstance(raw_ts, str):
            raise InvalidCursor("bad timestamp")
        try:
            created_at = datetime.fromisoformat(raw_ts)
        except ValueError:
            raise InvalidCursor("bad timestamp")

        return Position(created_at=created_at, id=ident, direction=direction)


# Module-level singleton shared across all request handlers.
codec = CursorCodec(settings.SECRET_KEY, settings.CURSOR_SIGNATURE_BYTES)
