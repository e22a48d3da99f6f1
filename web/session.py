from __future__ import annotations

import base64
import binascii
import hashlib
import hmac

TAG_LEN = 32


def derive_session_key(secret: str) -> bytes:
    return hashlib.sha256((secret or "").encode("utf-8")).digest()


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64decode(text: str) -> bytes:
    padded = text + "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def seal_value(key: bytes, value: str) -> str:
    """MAC the value and pack it with its tag. Readable by the holder, not forgeable."""
    msg = value.encode("utf-8")
    tag = hmac.new(key, msg, hashlib.sha256).digest()
    return _b64encode(msg + tag)


def open_value(key: bytes, sealed: str | None) -> str | None:
    if not sealed:
        return None
    try:
        data = _b64decode(sealed)
    except (binascii.Error, ValueError, UnicodeEncodeError):
        return None
    if len(data) < TAG_LEN:
        return None
    msg, tag = data[:-TAG_LEN], data[-TAG_LEN:]
    expected = hmac.new(key, msg, hashlib.sha256).digest()
    if not hmac.compare_digest(tag, expected):
        return None
    try:
        return msg.decode("utf-8")
    except UnicodeDecodeError:
        return None
