import asyncio
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from loguru import logger
from pydantic import ValidationError

from verus_chat.config import settings
from verus_chat.errors import (
    RPC_INVALID_PARAMETER,
    MemoFormatError,
    MemoTooLongError,
    RpcError,
    RpcResponseError,
    SigningError,
)
from verus_chat.memo import (
    FROM_MARKER,
    TIME_MARKER,
    encode_memo,
    is_valid_identity,
    memo_from_hex,
    memo_to_hex,
    parse_memo,
    signing_payload,
)
from verus_chat.models import ChatMemo, ChatMessage, ReceivedTransaction
from verus_chat.rpc_client import RPCClient


class MessagingService:
    """
    Sends and receives signed chat messages carried in shielded memos.

    Nothing is shown unless the daemon confirms the memo's signature against
    the identity it claims to come from. Memos that do not parse, fail
    verification, or whose verification call errors are dropped without
    raising; they are indistinguishable from non-chat transfers.

    Attributes:
        client (RPCClient): Client for the logged-in user's daemon.
        clock (Callable[[], float]): Source of the current UTC unix time.
        memo_limit (int): Maximum encoded memo size in bytes.
    """

    def __init__(
        self,
        client: RPCClient,
        *,
        clock: Callable[[], float] = time.time,
        memo_limit: int = settings.memo_limit_bytes,
    ) -> None:
        self.client = client
        self.clock = clock
        self.memo_limit = memo_limit

    async def send_message(
        self,
        sender_address: str,
        recipient_address: str,
        text: str,
        sender_identity: str,
        amount: float = 0.0,
    ) -> str:
        """
        Signs a message and sends it, with an optional gift amount.

        The memo is signed before anything is submitted. If signing fails the
        transfer is never attempted: no unsigned message is ever sent.

        Args:
            sender_address (str): The sender's z-address, funding the transfer.
            recipient_address (str): The recipient's z-address.
            text (str): Message text; may be empty for a gift.
            sender_identity (str): The sender's identity, e.g. "alice@".
            amount (float): Amount to send with the message.

        Returns:
            str: The transaction id.

        Raises:
            MemoFormatError: The identity is invalid or the text contains a memo
                             marker.
            SigningError: The daemon did not sign the memo.
            MemoTooLongError: The encoded memo does not fit the memo field.
            RpcError: Submitting the transfer failed.
        """
        if not is_valid_identity(sender_identity):
            raise MemoFormatError(f"Invalid sender identity: {sender_identity!r}")
        if FROM_MARKER in text or TIME_MARKER in text:
            raise MemoFormatError("Message text may not contain memo markers")

        timestamp = int(self.clock())
        payload = signing_payload(text, sender_identity, timestamp)

        logger.info(f"Signing message from {sender_identity} at {timestamp}")
        try:
            signed = await self.client.sign_message(sender_identity, payload)
        except (RpcError, ValidationError) as exc:
            logger.error(f"Signing failed for {sender_identity}: {exc}")
            raise SigningError(f"Failed to sign message as {sender_identity}: {exc}") from exc

        memo = encode_memo(
            ChatMemo(
                text=text,
                sender=sender_identity,
                timestamp=timestamp,
                signature=signed.signature,
            )
        )
        size = len(memo.encode("utf-8"))
        if size > self.memo_limit:
            raise MemoTooLongError(size, self.memo_limit)

        outputs = [
            {
                "address": recipient_address,
                "amount": amount,
                "memo": memo_to_hex(memo),
            },
        ]
        logger.info(
            f"Executing z_sendmany to {recipient_address}, amount={amount}",
        )
        try:
            txid = await self.client.z_send_many(
                sender_address, outputs, settings.send_minconf
            )
        except RpcError as exc:
            logger.error(f"z_sendmany failed: {exc}")
            raise

        logger.info(f"z_sendmany successful, txid: {txid}")
        return txid

    async def verify_memo(self, memo: ChatMemo) -> bool:
        """
        Asks the daemon whether `memo` was signed by the identity it names.

        Transport failures count as a failed verification; they are logged and
        never raised.
        """
        try:
            return await self.client.verify_message(
                memo.sender,
                memo.signature,
                signing_payload(memo.text, memo.sender, memo.timestamp),
            )
        except RpcError as exc:
            logger.warning(f"Verification call failed for memo from {memo.sender}: {exc}")
            return False

    async def get_new_messages(self, own_address: str) -> List[ChatMessage]:
        """
        Polls for messages from any sender, including unconfirmed ones.

        A memo is accepted only if its sender is a valid identity, it carries
        text or a positive amount, and its signature verifies.

        Args:
            own_address (str): The logged-in user's z-address.

        Returns:
            List[ChatMessage]: Verified messages, oldest first.
        """
        logger.info(f"Polling for new received messages for {own_address}")
        try:
            entries = await self.client.z_list_received_by_address(
                own_address, settings.poll_minconf
            )
        except RpcResponseError as exc:
            if exc.code != RPC_INVALID_PARAMETER:
                raise
            # The daemon answers -8 for an address that never received anything
            logger.warning(
                f"z_listreceivedbyaddress returned {exc.code} for {own_address}, "
                "treating as no transactions",
            )
            return []

        candidates = [
            (tx, memo)
            for tx, memo in self._parse_entries(entries)
            if is_valid_identity(memo.sender) and (memo.text or tx.amount > 0.0)
        ]
        messages = await self._verified(candidates)
        logger.info(f"Accepted {len(messages)} verified messages from polling")
        return messages

    async def get_chat_history(
        self,
        target_identity: str,
        own_address: str,
    ) -> List[ChatMessage]:
        """
        Fetches the verified messages a known identity has sent us.

        Args:
            target_identity (str): The identity whose messages are wanted.
            own_address (str): The logged-in user's z-address.

        Returns:
            List[ChatMessage]: Verified messages from `target_identity`, oldest
                               first.
        """
        logger.info(f"Fetching chat history from {target_identity} for {own_address}")
        entries = await self.client.z_list_received_by_address(own_address)

        candidates = [
            (tx, memo)
            for tx, memo in self._parse_entries(entries)
            if memo.sender == target_identity
        ]
        messages = await self._verified(candidates)
        logger.info(f"Found {len(messages)} historical messages from {target_identity}")
        return messages

    def _parse_entries(
        self,
        entries: List[Dict[str, Any]],
    ) -> List[Tuple[ReceivedTransaction, ChatMemo]]:
        parsed = []
        for entry in entries or []:
            try:
                tx = ReceivedTransaction.model_validate(entry)
            except ValidationError as exc:
                logger.debug(f"Skipping malformed listing entry: {exc}")
                continue

            raw = self._memo_text(tx)
            if raw is None:
                continue
            memo = parse_memo(raw)
            if memo is None:
                logger.trace(f"Skipping memo in tx {tx.txid}: not a signed chat memo")
                continue
            parsed.append((tx, memo))
        return parsed

    @staticmethod
    def _memo_text(tx: ReceivedTransaction) -> Optional[str]:
        if tx.memostr:
            return tx.memostr
        if tx.memo:
            return memo_from_hex(tx.memo)
        return None

    async def _verified(
        self,
        candidates: List[Tuple[ReceivedTransaction, ChatMemo]],
    ) -> List[ChatMessage]:
        results = await asyncio.gather(
            *(self.verify_memo(memo) for _, memo in candidates),
        )

        messages = []
        for (tx, memo), verified in zip(candidates, results):
            if not verified:
                logger.debug(f"Dropping memo in tx {tx.txid}: signature not verified")
                continue
            messages.append(
                ChatMessage(
                    id=tx.txid,
                    sender=memo.sender,
                    text=memo.text,
                    timestamp=memo.timestamp,
                    amount=tx.amount,
                    confirmations=tx.confirmations,
                    direction="received",
                )
            )

        messages.sort(key=lambda message: message.timestamp)
        return messages
