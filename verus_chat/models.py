# verus_chat/models.py
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from yarl import URL

from verus_chat.utils.custom_types import HexString, RpcPort, UnixTimestamp


class Credentials(BaseModel):
    """
    RPC credentials as read from a daemon config file.

    Attributes:
        rpc_user (str): Value of `rpcuser`.
        rpc_pass (str): Value of `rpcpassword`.
        rpc_port (int): Value of `rpcport`. Never defaulted.
    """

    model_config = ConfigDict(frozen=True)

    rpc_user: str
    rpc_pass: str
    rpc_port: RpcPort

    def __repr__(self) -> str:
        return f"Credentials(rpc_user={self.rpc_user!r}, rpc_port={self.rpc_port})"


class RpcEndpoint(BaseModel):
    """
    Where and how to reach a daemon's JSON-RPC interface.

    Attributes:
        host (str): Host name or address, usually the loopback address.
        port (int): The daemon's RPC port.
        rpc_user (str): Basic auth user.
        rpc_password (str): Basic auth password.
    """

    model_config = ConfigDict(frozen=True)

    host: str
    port: RpcPort
    rpc_user: str
    rpc_password: str

    @property
    def url(self) -> URL:
        """
        Assemble the RPC URL from the endpoint.

        :return: RPC URL.
        """
        return URL.build(scheme="http", host=self.host, port=self.port, path="/")

    @classmethod
    def from_credentials(cls, host: str, credentials: Credentials) -> "RpcEndpoint":
        return cls(
            host=host,
            port=credentials.rpc_port,
            rpc_user=credentials.rpc_user,
            rpc_password=credentials.rpc_pass,
        )

    def __repr__(self) -> str:
        return f"RpcEndpoint(host={self.host!r}, port={self.port})"


class ChainKind(str, Enum):
    PRIMARY = "primary"
    PBAAS = "pbaas"
    TESTNET = "testnet"


class BlockchainDescriptor(BaseModel):
    """
    Static description of a chain the app can talk to.

    Attributes:
        id (str): Stable identifier, e.g. "verus".
        name (str): Display name.
        kind (ChainKind): Decides which config path convention applies.
        chain_hex (Optional[str]): PBaaS chain-string, hex encoded.
        config_name (str): File name of the daemon config.
        currency_symbol (str): Native currency ticker.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    kind: ChainKind
    chain_hex: Optional[HexString] = None
    config_name: str
    currency_symbol: str


class DetectionStatus(str, Enum):
    AVAILABLE = "Available"
    LOADING = "Loading"
    ERROR = "Error"
    NOT_FOUND = "NotFound"
    TIMEOUT = "Timeout"
    PARSE_ERROR = "ParseError"


class DetectionOutcome(BaseModel):
    """
    Result of probing one catalog entry for a usable local daemon.

    Attributes:
        blockchain_id (str): Descriptor id.
        blockchain_name (str): Descriptor display name.
        status (DetectionStatus): Terminal state of the probe.
        credentials (Optional[Credentials]): Parsed credentials, when a config
                                             was read successfully.
        config_path (Optional[str]): Config file that was used.
        error_message (Optional[str]): Failure detail, if any.
        block_height (Optional[int]): Height reported by the daemon.
    """

    model_config = ConfigDict(frozen=True)

    blockchain_id: str
    blockchain_name: str
    status: DetectionStatus
    credentials: Optional[Credentials] = None
    config_path: Optional[str] = None
    error_message: Optional[str] = None
    block_height: Optional[int] = None


class ParallelDetectionResult(BaseModel):
    """
    Aggregate of one detection run.

    Attributes:
        blockchains (List[DetectionOutcome]): One outcome per catalog entry, in
                                              catalog order.
        total_detected (int): Number of `Available` outcomes.
        detection_duration_ms (int): Wall-clock duration of the run.
    """

    model_config = ConfigDict(frozen=True)

    blockchains: List[DetectionOutcome]
    total_detected: int
    detection_duration_ms: int

    def get(self, blockchain_id: str) -> Optional[DetectionOutcome]:
        for outcome in self.blockchains:
            if outcome.blockchain_id == blockchain_id:
                return outcome
        return None


class ChatMemo(BaseModel):
    """Decoded memo payload. Untrusted until its signature is verified."""

    model_config = ConfigDict(frozen=True)

    text: str
    sender: str
    timestamp: UnixTimestamp
    signature: str


class ChatMessage(BaseModel):
    """
    Verified, display-ready chat message.

    Attributes:
        id (str): Transaction id carrying the memo.
        sender (str): Identity that signed the memo.
        text (str): Message text, possibly empty for gifts.
        timestamp (int): Unix seconds recovered from the memo.
        amount (float): Amount transferred with the memo.
        confirmations (int): Confirmations at the time of the poll.
        direction (str): "received" or "sent".
    """

    model_config = ConfigDict(frozen=True)

    id: str
    sender: str
    text: str
    timestamp: UnixTimestamp
    amount: float
    confirmations: int
    direction: Literal["received", "sent"] = "received"


class ReceivedTransaction(BaseModel):
    """One entry of a `z_listreceivedbyaddress` reply."""

    txid: str
    amount: float = 0.0
    confirmations: int = 0
    memostr: Optional[str] = None
    memo: Optional[str] = None  # Hex encoded


class SignedMessage(BaseModel):
    """Reply of `signmessage`."""

    hash: Optional[str] = None
    signature: str = Field(min_length=1)


class FormattedIdentity(BaseModel):
    """
    Identity usable as a chat account.

    Attributes:
        formatted_name (str): Display name, `name@` or `name.parent@`.
        i_address (str): The identity's i-address.
        private_address (Optional[str]): Its z-address, if any.
    """

    formatted_name: str
    i_address: str
    private_address: Optional[str] = None
