"""
steam_codes.py — Steam Guard code generator and mobile-confirmation signer.

Both helpers are pure functions (secret + time in, string out) so that the
CLI, the HTTP API and the confirmation client can call them directly.

- generate_code: 5-character login code, HMAC-SHA1 over a 30 s counter,
  RFC4226 dynamic truncation, then five base-26 digits over Steam's alphabet.
- sign_confirmation: base64 HMAC-SHA1 over (8-byte time || tag), used as the
  `k` parameter of every /mobileconf request.

Security note:
- Secrets are base64 strings straight out of the .maFile; never log them.
"""

from dataclasses import dataclass
import base64
import binascii
import hashlib
import hmac
import struct
import time

from guard_core.errors import InvalidSecret

# --- Config / constants ----------------------------------------------------
TIME_STEP = 30              # Steam Guard window (seconds)
CODE_LENGTH = 5
CODE_ALPHABET = "23456789BCDFGHJKMNPQRTVWXY"   # 26 symbols, no vowels/ambiguous chars


@dataclass(frozen=True)
class CodeResult:
    code: str
    fraction_remaining: float


# --- RFC helpers -----------------------------------------------------------
def int_to_bytes(i: int) -> bytes:
    """
    Convert an integer (counter or unix time) to 8-byte big-endian, signed
    (two's complement) so times before the epoch still pack.

    Example: int_to_bytes(1) -> b'\\x00\\x00\\x00\\x00\\x00\\x00\\x00\\x01'
    """
    return struct.pack(">q", i)


def decode_secret(secret_b64: str) -> bytes:
    """
    Base64-decode a shared/identity secret.

    Raises:
        InvalidSecret: if the value is not a string or not valid base64
    """
    if not isinstance(secret_b64, str):
        raise InvalidSecret("Secret must be a base64 string")
    try:
        return base64.b64decode(secret_b64, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidSecret("Invalid base64 secret") from e


def dynamic_truncate(hmac_digest: bytes) -> int:
    """
    Dynamic truncation as in RFC4226.

    - offset = low 4 bits of byte 19 (last byte of a SHA1 digest)
    - take 4 bytes from offset, clear the MSB of the first one (0x7F)
    - return the resulting 31-bit unsigned integer
    """
    offset = hmac_digest[19] & 0x0F
    return (
        ((hmac_digest[offset] & 0x7F) << 24)
        | ((hmac_digest[offset + 1] & 0xFF) << 16)
        | ((hmac_digest[offset + 2] & 0xFF) << 8)
        | (hmac_digest[offset + 3] & 0xFF)
    )


# --- Login codes -------------------------------------------------------------
def generate_code(shared_secret: str, unix_time: int) -> CodeResult:
    """
    Compute the Steam Guard login code for a given unix time.

    Steps:
    1. Base64-decode shared_secret -> key bytes
    2. Message = 8-byte big-endian counter, counter = floor(unix_time / 30)
    3. HMAC-SHA1(key, message) -> dynamic truncate -> v
    4. Five times: emit CODE_ALPHABET[v % 26], v //= 26
       (least significant digit comes out first)

    Arguments:
        shared_secret: base64 shared secret from the account file
        unix_time: epoch seconds to compute the code for

    Returns:
        CodeResult(code, fraction_remaining) where fraction_remaining is
        (30 - unix_time % 30) / 30, the share of the window still left.

    Raises:
        InvalidSecret: if shared_secret is not valid base64
    """
    key = decode_secret(shared_secret)
    counter = unix_time // TIME_STEP
    digest = hmac.new(key, int_to_bytes(counter), hashlib.sha1).digest()

    value = dynamic_truncate(digest)
    chars = []
    for _ in range(CODE_LENGTH):
        chars.append(CODE_ALPHABET[value % len(CODE_ALPHABET)])
        value //= len(CODE_ALPHABET)

    remaining = TIME_STEP - (unix_time % TIME_STEP)
    return CodeResult(code="".join(chars), fraction_remaining=remaining / TIME_STEP)


def current_code(shared_secret: str) -> CodeResult:
    """Code for the current wall-clock second (called ~1 Hz by the UI)."""
    return generate_code(shared_secret, int(time.time()))


# --- Confirmation signing --------------------------------------------------
def sign_confirmation(identity_secret: str, unix_time: int, tag: str) -> str:
    """
    Sign a mobile-confirmation request.

    HMAC-SHA1(key=identity_secret, msg=be64(unix_time) || utf8(tag)), full
    digest, base64-encoded. No truncation and no alphabet mapping.

    Raises:
        InvalidSecret: if identity_secret is not valid base64
    """
    key = decode_secret(identity_secret)
    msg = int_to_bytes(unix_time) + tag.encode("utf-8")
    digest = hmac.new(key, msg, hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")
