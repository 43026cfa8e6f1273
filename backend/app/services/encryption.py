"""AES-256-GCM cipher engine for data at rest.

Two encodings are produced and they are NOT interchangeable:

* :meth:`CipherEngine.encrypt_json` returns a JSON object string
  ``{"iv": ..., "tag": ..., "ciphertext": ...}`` with base64 fields. Used for
  profiles, email columns and record payloads stored as text.
* :meth:`CipherEngine.encrypt_buffer` returns ``iv || tag || ciphertext`` as one
  binary blob. Used for uploaded file contents.

The engine holds a single 256-bit key for the lifetime of the process. Build
it once with :func:`get_cipher_engine` (or inject a key explicitly in tests).
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
import logging
import os
import re
from collections.abc import Mapping
from functools import lru_cache
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from app.config import settings

logger = logging.getLogger(__name__)

KEY_LENGTH = 32
IV_LENGTH = 12  # Recommended nonce length for GCM
TAG_LENGTH = 16

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")
_BASE64_RE = re.compile(r"^[A-Za-z0-9+/=]+$")


class CipherError(Exception):
    """Base class for encryption failures."""


class MalformedCiphertext(CipherError):
    """Envelope is missing fields, undecodable, or too short."""


class AuthenticationFailure(CipherError):
    """Authentication tag did not verify (tampered data or wrong key)."""


def derive_aes_key(raw_key: str) -> bytes:
    """Derive the 32-byte AES key from the configured secret.

    Accepts 32 bytes encoded as hex or base64. Anything else is hashed with
    SHA-256, which only preserves the entropy of the original secret.
    """
    trimmed = raw_key.strip()

    if _HEX_RE.match(trimmed) and len(trimmed) % 2 == 0:
        key = bytes.fromhex(trimmed)
        if len(key) == KEY_LENGTH:
            return key

    if _BASE64_RE.match(trimmed):
        try:
            # Unpadded base64 is accepted
            key = base64.b64decode(trimmed + "=" * (-len(trimmed) % 4))
        except binascii.Error:
            key = b""
        if len(key) == KEY_LENGTH:
            return key

    logger.warning(
        "AES_KEY is not 32 bytes in hex or base64 form. Deriving key using SHA-256 hash."
    )
    return hashlib.sha256(trimmed.encode("utf-8")).digest()


def is_envelope(value: Any) -> bool:
    """Return True if ``value`` carries all three envelope fields."""
    return (
        isinstance(value, Mapping)
        and bool(value.get("iv"))
        and bool(value.get("tag"))
        # Empty plaintext encrypts to an empty ciphertext
        and isinstance(value.get("ciphertext"), str)
    )


def _b64decode(value: Any) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except (binascii.Error, TypeError, ValueError) as e:
        raise MalformedCiphertext("Envelope field is not valid base64") from e


class CipherEngine:
    """Authenticated encryption for JSON values and binary blobs."""

    def __init__(self, key: bytes):
        if len(key) != KEY_LENGTH:
            raise ValueError(f"AES key must be {KEY_LENGTH} bytes, got {len(key)}")
        self._aesgcm = AESGCM(key)

    def _seal(self, plaintext: bytes) -> tuple[bytes, bytes, bytes]:
        iv = os.urandom(IV_LENGTH)
        # AESGCM appends the 16-byte tag to the ciphertext
        sealed = self._aesgcm.encrypt(iv, plaintext, None)
        return iv, sealed[-TAG_LENGTH:], sealed[:-TAG_LENGTH]

    def _open(self, iv: bytes, tag: bytes, ciphertext: bytes) -> bytes:
        if len(iv) != IV_LENGTH or len(tag) != TAG_LENGTH:
            raise MalformedCiphertext("Invalid IV or tag length")
        try:
            return self._aesgcm.decrypt(iv, ciphertext + tag, None)
        except InvalidTag as e:
            raise AuthenticationFailure("Encrypted payload failed authentication") from e

    def encrypt_json(self, data: Any) -> str:
        """Encrypt a value into a serialized JSON envelope.

        Strings are encrypted as-is; anything else is JSON-serialized first.
        """
        plaintext = data if isinstance(data, str) else json.dumps(data)
        iv, tag, ciphertext = self._seal(plaintext.encode("utf-8"))
        return json.dumps(
            {
                "iv": base64.b64encode(iv).decode("ascii"),
                "tag": base64.b64encode(tag).decode("ascii"),
                "ciphertext": base64.b64encode(ciphertext).decode("ascii"),
            }
        )

    def decrypt_json(self, serialized: str | bytes | Mapping[str, Any]) -> Any:
        """Decrypt an envelope produced by :meth:`encrypt_json`.

        Returns the parsed JSON value, or the raw text when the plaintext
        is not JSON.

        Raises:
            MalformedCiphertext: Container unparseable or fields missing.
            AuthenticationFailure: Tag verification failed.
        """
        if isinstance(serialized, (str, bytes)):
            try:
                payload = json.loads(serialized)
            except (ValueError, RecursionError) as e:
                raise MalformedCiphertext("Encrypted payload is not valid JSON") from e
        else:
            payload = serialized

        if not is_envelope(payload):
            raise MalformedCiphertext("Invalid encrypted payload")

        plaintext = self._open(
            _b64decode(payload["iv"]),
            _b64decode(payload["tag"]),
            _b64decode(payload["ciphertext"]),
        )
        text = plaintext.decode("utf-8")
        try:
            return json.loads(text)
        except (ValueError, RecursionError):
            return text

    def encrypt_buffer(self, data: bytes) -> bytes:
        """Encrypt binary content into ``iv || tag || ciphertext``."""
        iv, tag, ciphertext = self._seal(bytes(data))
        return iv + tag + ciphertext

    def decrypt_buffer(self, blob: bytes | None) -> bytes:
        """Decrypt a blob produced by :meth:`encrypt_buffer`.

        Empty or missing input yields ``b""`` so optional file content can be
        passed straight through.
        """
        if not blob:
            return b""
        blob = bytes(blob)
        if len(blob) < IV_LENGTH + TAG_LENGTH:
            raise MalformedCiphertext("Encrypted blob is too short")
        iv = blob[:IV_LENGTH]
        tag = blob[IV_LENGTH : IV_LENGTH + TAG_LENGTH]
        return self._open(iv, tag, blob[IV_LENGTH + TAG_LENGTH :])


@lru_cache(maxsize=1)
def get_cipher_engine() -> CipherEngine:
    """Return the process-wide engine keyed from ``settings.aes_key``."""
    return CipherEngine(derive_aes_key(settings.aes_key))
