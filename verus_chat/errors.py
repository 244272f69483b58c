"""
Error types for the chat backend.

Each layer has its own family: transport (RpcError), config discovery
(ConfigError), messaging (MessagingError) and identity lookups
(IdentityError). Mapping between layers happens in explicit functions
rather than by catching a shared base class.
"""

from pathlib import Path
from typing import Optional

# Daemon RPC codes callers branch on
RPC_IN_WARMUP = -28
RPC_INVALID_ADDRESS_OR_KEY = -5
RPC_INVALID_PARAMETER = -8
HTTP_UNAUTHORIZED = 401


class RpcError(Exception):
    """Base class for every failure raised by RPCClient.call."""


class RpcNetworkError(RpcError):
    """Connection or DNS failure, or a non-2xx status with no usable body."""


class RpcTimeoutError(RpcError):
    """The call exceeded its deadline."""

    def __init__(self, message: str = "RPC call timed out") -> None:
        super().__init__(message)


class RpcResponseError(RpcError):
    """The daemon returned a structured error; the code is kept verbatim."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message


class RpcParseError(RpcError):
    """The payload did not deserialize, or a 5xx carried an opaque body."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class RpcFormatError(RpcError):
    """The response carried neither a non-null `result` nor an `error`."""

    def __init__(
        self,
        message: str = "RPC response format error: missing result and error fields",
    ) -> None:
        super().__init__(message)


class ConfigError(Exception):
    """Base class for config discovery failures."""

    def __init__(self, message: str, path: Optional[Path] = None) -> None:
        super().__init__(message)
        self.path = path


class ConfigNotFoundError(ConfigError):
    """No config file exists at any candidate location."""


class ConfigParseError(ConfigError):
    """A config file exists but the RPC credentials cannot be extracted."""


class ConfigPermissionError(ConfigError):
    """A config file exists but may not be read."""


class ConfigIOError(ConfigError):
    """Reading a config file failed for another OS-level reason."""


class MessagingError(Exception):
    """Base class for send-side messaging failures."""


class SigningError(MessagingError):
    """The daemon did not produce a signature; nothing was sent."""


class MemoFormatError(MessagingError):
    """The message text or sender cannot be carried in the memo format."""


class MemoTooLongError(MessagingError):
    """The encoded memo exceeds the shielded memo field."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"Memo is {size} bytes, limit is {limit}")
        self.size = size
        self.limit = limit


class IdentityError(Exception):
    """Base class for identity lookup failures."""


class IdentityFormatError(IdentityError):
    """The name is not a syntactically valid identity."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Invalid VerusID format: {name!r}")
        self.name = name


class IdentityNotFoundError(IdentityError):
    """The identity does not exist or cannot receive private messages."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f"Identity {name} not found or cannot receive private messages"
        )
        self.name = name


class NoChatIdentitiesError(IdentityError):
    """The wallet holds no identity with a private address."""

    def __init__(self) -> None:
        super().__init__("No VerusIDs with private addresses found in your wallet.")


def is_not_found(exc: RpcError) -> bool:
    """Whether an identity lookup failure means the identity does not exist."""
    if isinstance(exc, RpcResponseError):
        return exc.code in (RPC_INVALID_ADDRESS_OR_KEY, RPC_INVALID_PARAMETER)
    if isinstance(exc, RpcParseError):
        return exc.status == 500
    return False


def user_message(exc: Exception) -> str:
    """Map any backend error to the text shown to the user."""
    if isinstance(exc, RpcResponseError):
        if exc.code == RPC_IN_WARMUP:
            return "The daemon is still syncing. Please wait and try again."
        if exc.code == HTTP_UNAUTHORIZED:
            return "Authentication failed. Please check your RPC credentials."
        return f"The daemon rejected the request: {exc.message}"
    if isinstance(exc, (RpcNetworkError, RpcTimeoutError)):
        return "The daemon is unreachable. Make sure it is running."
    if isinstance(exc, RpcError):
        return "The daemon returned an unexpected response."
    if isinstance(exc, ConfigNotFoundError):
        return "No daemon configuration file was found."
    if isinstance(exc, ConfigError):
        return f"The daemon configuration could not be read: {exc}"
    return str(exc)
