"""
Chat memo wire format.

A chat message travels in the memo field of a shielded transfer as

    {text}//f//{sender_identity}//t//{unix_timestamp}//{signature}

hex encoded. The signature covers everything before the final `//`.
"""

import binascii
from typing import Optional

from verus_chat.models import ChatMemo
from verus_chat.utils.custom_types import MAX_UNIX_TIMESTAMP

FROM_MARKER = "//f//"
TIME_MARKER = "//t//"
SIGNATURE_SEPARATOR = "//"

MEMO_LIMIT_BYTES = 512

# Fixed overhead used when sizing the message input
SEPARATORS_LENGTH = len(FROM_MARKER) + len(TIME_MARKER) + len(SIGNATURE_SEPARATOR)
TIMESTAMP_LENGTH = 10
SIGNATURE_ALLOWANCE = 100
SAFETY_MARGIN = 5
FALLBACK_MESSAGE_LENGTH = 350

MAX_TIMESTAMP_DIGITS = len(str(MAX_UNIX_TIMESTAMP))


def is_valid_identity(name: str) -> bool:
    """Whether `name` looks like an identity: `@`-suffixed, more than just `@`."""
    return len(name) > 1 and name.endswith("@")


def signing_payload(text: str, sender: str, timestamp: int) -> str:
    """The exact string the sender signs, and the verifier checks."""
    return f"{text}{FROM_MARKER}{sender}{TIME_MARKER}{timestamp}"


def encode_memo(memo: ChatMemo) -> str:
    return (
        f"{signing_payload(memo.text, memo.sender, memo.timestamp)}"
        f"{SIGNATURE_SEPARATOR}{memo.signature}"
    )


def memo_to_hex(memo: str) -> str:
    return memo.encode("utf-8").hex()


def memo_from_hex(memo_hex: str) -> Optional[str]:
    """
    Decodes a hex memo as returned by the daemon.

    Shielded memos are zero padded to their full size; the padding is dropped.
    Returns None for anything that is not hex encoded UTF-8.
    """
    try:
        raw = binascii.unhexlify(memo_hex.strip())
    except (binascii.Error, ValueError):
        return None
    raw = raw.rstrip(b"\x00")
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return None


def parse_memo(raw: str) -> Optional[ChatMemo]:
    """
    Splits a memo into its parts.

    The markers are located in order: the first `//f//`, then the first `//t//`
    after it, then the first `//` after that. A missing marker, a timestamp that
    is not an unsigned integer or an empty signature all mean the memo is not
    chat data, and None is returned. So is a timestamp past the unsigned 64-bit
    range.
    """
    from_pos = raw.find(FROM_MARKER)
    if from_pos < 0:
        return None
    text = raw[:from_pos]
    rest = raw[from_pos + len(FROM_MARKER):]

    time_pos = rest.find(TIME_MARKER)
    if time_pos < 0:
        return None
    sender = rest[:time_pos]
    rest = rest[time_pos + len(TIME_MARKER):]

    sig_pos = rest.find(SIGNATURE_SEPARATOR)
    if sig_pos < 0:
        return None
    timestamp = rest[:sig_pos]
    signature = rest[sig_pos + len(SIGNATURE_SEPARATOR):]

    if not (timestamp.isascii() and timestamp.isdigit()) or not signature:
        return None
    digits = timestamp.lstrip("0")
    if len(digits) > MAX_TIMESTAMP_DIGITS or int(digits or "0") > MAX_UNIX_TIMESTAMP:
        return None

    return ChatMemo(
        text=text,
        sender=sender,
        timestamp=int(digits or "0"),
        signature=signature,
    )


def max_message_length(sender: str) -> int:
    """Longest message text that still fits the memo field for `sender`."""
    if not sender:
        return FALLBACK_MESSAGE_LENGTH
    return (
        MEMO_LIMIT_BYTES
        - SEPARATORS_LENGTH
        - TIMESTAMP_LENGTH
        - SIGNATURE_ALLOWANCE
        - SAFETY_MARGIN
        - len(sender)
    )
