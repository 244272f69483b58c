import asyncio
import base64
import itertools
import json
from types import TracebackType
from typing import Any, Dict, List, Optional, Type

import aiohttp
from loguru import logger

from verus_chat.config import settings
from verus_chat.errors import (
    HTTP_UNAUTHORIZED,
    RpcFormatError,
    RpcNetworkError,
    RpcParseError,
    RpcResponseError,
    RpcTimeoutError,
)
from verus_chat.models import RpcEndpoint, SignedMessage

class RPCClient:
    """RPCClient is an asynchronous JSON-RPC 1.0 client for a Verus-family daemon."""

    def __init__(
        self,
        endpoint: RpcEndpoint,
        timeout: float = settings.rpc_timeout,
    ) -> None:
        """
        Initialize the RPC client.

        Args:
            endpoint (RpcEndpoint): Host, port and basic auth credentials of the
                                    daemon.
            timeout (float): Default deadline, in seconds, for each call.

        Attributes:
            endpoint (RpcEndpoint): The daemon to talk to.
            timeout (float): Default per-call deadline.
            headers (Dict[str, str]): JSON content type and basic auth header
                                      sent with every request.
            _session (Optional[aiohttp.ClientSession]): Lazily created http
                                                        session.
            _id_counter (itertools.count): Counter for generating request IDs.
        """
        self.endpoint = endpoint
        self.timeout = timeout
        token = base64.b64encode(
            f"{endpoint.rpc_user}:{endpoint.rpc_password}".encode("utf-8")
        ).decode("ascii")
        self.headers = {
            "Content-Type": "application/json",
            "Authorization": f"Basic {token}",
        }
        self._session: Optional[aiohttp.ClientSession] = None
        self._id_counter = itertools.count(1)

    async def __aenter__(self) -> "RPCClient":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        await self.close()

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        """
        Asynchronously closes the session.

        This method should be called to properly close the session and release any
        resources associated with it. It is safe to call more than once.
        """
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _generate_request_id(self, method: str) -> str:
        return f"{settings.request_id_prefix}-{method}-{next(self._id_counter)}"

    async def call(
        self,
        method: str,
        params: Optional[List[Any]] = None,
        *,
        timeout: Optional[float] = None,
        tolerate_server_error: bool = False,
    ) -> Any:
        """
        Makes one asynchronous JSON-RPC call. Never retries.

        Args:
            method (str): The name of the RPC method to call.
            params (Optional[List[Any]]): The parameters to pass to the RPC method.
                                          Defaults to an empty list.
            timeout (Optional[float]): Deadline for this call in seconds. Defaults
                                       to the client's timeout.
            tolerate_server_error (bool): Parse the body of an HTTP 500 reply
                                          instead of failing on the status. Used
                                          by liveness probes, since a loading
                                          daemon reports its state that way.

        Returns:
            Any: The `result` field of the response.

        Raises:
            RpcNetworkError: Connection failure or an unexpected HTTP status.
            RpcTimeoutError: The deadline was exceeded.
            RpcResponseError: The daemon returned an error object, or HTTP 401.
            RpcParseError: The body was not a JSON-RPC envelope, or a 5xx status
                           was returned.
            RpcFormatError: The envelope had neither a non-null `result` nor an
                            `error`.
        """
        request_id = self._generate_request_id(method)
        payload = {
            "jsonrpc": "1.0",
            "id": request_id,
            "method": method,
            "params": params or [],
        }
        deadline = self.timeout if timeout is None else timeout

        logger.debug(f"Making RPC call {request_id} to {self.endpoint.port}")

        try:
            async with self.session.post(
                self.endpoint.url,
                json=payload,
                headers=self.headers,
                timeout=aiohttp.ClientTimeout(total=deadline),
            ) as response:
                status = response.status
                body = await response.read()
        except asyncio.TimeoutError as exc:
            raise RpcTimeoutError(
                f"RPC call {method} timed out after {deadline}s"
            ) from exc
        except aiohttp.ClientError as exc:
            raise RpcNetworkError(f"Network error calling {method}: {exc}") from exc

        if status == HTTP_UNAUTHORIZED:
            raise RpcResponseError(HTTP_UNAUTHORIZED, "Authentication failed.")

        if not 200 <= status < 300 and not (tolerate_server_error and status == 500):
            if status >= 500:
                snippet = body[:200].decode("utf-8", errors="replace")
                raise RpcParseError(
                    f"HTTP {status} from daemon for {method}: {snippet}",
                    status=status,
                )
            raise RpcNetworkError(f"HTTP {status} from daemon for {method}")

        data = self._decode_body(method, body, status)

        # Check for JSON-RPC errors
        error = data.get("error")
        if error is not None:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message") if isinstance(error, dict) else None
            if isinstance(code, bool) or not isinstance(code, int) or not isinstance(message, str):
                raise RpcParseError(
                    f"Malformed error object in response for {method}: {error!r}",
                    status=status if status >= 500 else None,
                )
            raise RpcResponseError(code, message)

        # A null result without an error is as empty as a missing one
        if data.get("result") is None:
            raise RpcFormatError()
        return data["result"]

    @staticmethod
    def _decode_body(method: str, body: bytes, status: int) -> Dict[str, Any]:
        parse_status = status if status >= 500 else None
        try:
            data = json.loads(body.decode("utf-8"))
        except UnicodeDecodeError as exc:
            raise RpcParseError(
                f"Response for {method} is not valid UTF-8: {exc}",
                status=parse_status,
            ) from exc
        except ValueError as exc:
            raise RpcParseError(
                f"Failed to parse response for {method}: {exc}",
                status=parse_status,
            ) from exc
        if not isinstance(data, dict):
            raise RpcParseError(f"Response for {method} is not a JSON object")
        return data

    async def get_block_count(self, **kwargs: Any) -> int:
        """
        Asynchronously retrieves the current block height.

        Keyword arguments are passed through to `call`, which lets liveness probes
        set their own deadline and server error tolerance.

        Returns:
            int: The block height.
        """
        result = await self.call("getblockcount", **kwargs)
        if not isinstance(result, int):
            raise RpcParseError(f"getblockcount returned {result!r}")
        return result

    async def list_identities(
        self,
        verbose: bool = True,
        watchonly: bool = True,
        privatedata: bool = True,
    ) -> List[Dict[str, Any]]:
        return await self.call("listidentities", [verbose, watchonly, privatedata])

    async def get_identity(self, name_or_address: str) -> Dict[str, Any]:
        return await self.call("getidentity", [name_or_address])

    async def z_get_balance(self, address: str, minconf: Optional[int] = None) -> float:
        params: List[Any] = [address]
        if minconf is not None:
            params.append(minconf)
        return await self.call("z_getbalance", params)

    async def z_list_received_by_address(
        self,
        address: str,
        minconf: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Asynchronously lists the shielded outputs received by an address.

        Args:
            address (str): The z-address to inspect.
            minconf (Optional[int]): Minimum confirmations; 0 includes unconfirmed
                                     outputs. The daemon default applies if None.

        Returns:
            List[Dict[str, Any]]: Raw entries, each with txid, amount,
                                  confirmations and memo fields.
        """
        params: List[Any] = [address]
        if minconf is not None:
            params.append(minconf)
        return await self.call("z_listreceivedbyaddress", params)

    async def z_list_unspent(
        self,
        minconf: int = 1,
        maxconf: int = 9999999,
        watchonly: bool = False,
        addresses: Optional[List[str]] = None,
    ) -> List[Dict[str, Any]]:
        params: List[Any] = [minconf, maxconf, watchonly]
        if addresses is not None:
            params.append(addresses)
        return await self.call("z_listunspent", params)

    async def z_send_many(
        self,
        from_address: str,
        outputs: List[Dict[str, Any]],
        minconf: Optional[int] = None,
    ) -> str:
        """
        Asynchronously submits a shielded transfer.

        Args:
            from_address (str): Funding address.
            outputs (List[Dict[str, Any]]): Each with address, amount and an
                                            optional hex memo.
            minconf (Optional[int]): Minimum confirmations of the spent funds.

        Returns:
            str: The id returned by the daemon for the transfer.
        """
        params: List[Any] = [from_address, outputs]
        if minconf is not None:
            params.append(minconf)
        return await self.call("z_sendmany", params)

    async def sign_message(self, identity: str, message: str) -> SignedMessage:
        result = await self.call("signmessage", [identity, message])
        if not isinstance(result, dict):
            raise RpcParseError(f"signmessage returned {result!r}")
        return SignedMessage.model_validate(result)

    async def verify_message(self, identity: str, signature: str, message: str) -> bool:
        result = await self.call("verifymessage", [identity, signature, message])
        return result is True
