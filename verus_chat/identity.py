from typing import Any, Dict, List, Optional

from loguru import logger

from verus_chat.errors import (
    IdentityFormatError,
    IdentityNotFoundError,
    NoChatIdentitiesError,
    RpcError,
    is_not_found,
)
from verus_chat.memo import is_valid_identity
from verus_chat.models import FormattedIdentity
from verus_chat.rpc_client import RPCClient


async def get_block_height(client: RPCClient) -> int:
    logger.info("Attempting to connect to the daemon...")
    return await client.get_block_count()


async def get_private_balance(client: RPCClient, address: str) -> float:
    logger.info(f"Fetching private balance for address: {address}")
    return await client.z_get_balance(address)


def _private_address(details: Dict[str, Any]) -> Optional[str]:
    address = details.get("privateaddress")
    if isinstance(address, str) and address:
        return address
    return None


async def _formatted_name(client: RPCClient, details: Dict[str, Any]) -> str:
    """
    Display name of an identity: `name@`, or `name.parent@` for a sub-ID.

    Falls back to `name@` if the parent cannot be resolved.
    """
    name = details["name"]
    parent_id = details["parent"]
    if parent_id == details["systemid"]:
        return f"{name}@"

    logger.debug(f"Identity {name!r} is a sub-ID, fetching parent {parent_id}")
    try:
        parent = await client.get_identity(parent_id)
    except RpcError as exc:
        logger.error(f"getidentity({parent_id}) failed: {exc}. Using default format.")
        return f"{name}@"

    parent_name = (parent or {}).get("identity", {}).get("name")
    if not parent_name:
        logger.error(f"No parent name for {name!r} in {parent_id}. Using default format.")
        return f"{name}@"
    return f"{name}.{parent_name}@"


def _has_required_fields(details: Dict[str, Any]) -> bool:
    return all(
        isinstance(details.get(key), str)
        for key in ("name", "identityaddress", "parent", "systemid")
    )


async def get_login_identities(client: RPCClient) -> List[FormattedIdentity]:
    """
    Lists the wallet's identities that can be used as chat accounts.

    Only identities with a private address qualify.

    Args:
        client (RPCClient): Client for the user's daemon.

    Returns:
        List[FormattedIdentity]: Usable identities, in listing order.

    Raises:
        NoChatIdentitiesError: The wallet holds no qualifying identity.
        RpcError: Listing the identities failed.
    """
    logger.info("Fetching identities for login selection...")
    raw_identities = await client.list_identities(True, True, True)
    logger.info(f"Received {len(raw_identities)} raw identity entries")

    identities: List[FormattedIdentity] = []
    for entry in raw_identities:
        details = entry.get("identity") if isinstance(entry, dict) else None
        if not isinstance(details, dict):
            logger.warning("Skipping identity entry without an 'identity' object")
            continue

        private_address = _private_address(details)
        if private_address is None:
            logger.debug(f"Skipping {details.get('name', 'unknown')}: no private address")
            continue
        if not _has_required_fields(details):
            logger.warning("Identity has a private address but is missing fields")
            continue

        identities.append(
            FormattedIdentity(
                formatted_name=await _formatted_name(client, details),
                i_address=details["identityaddress"],
                private_address=private_address,
            )
        )

    logger.info(f"Found {len(identities)} identities with private addresses")
    if not identities:
        raise NoChatIdentitiesError()
    return identities


async def check_identity_eligibility(
    client: RPCClient,
    name: str,
) -> FormattedIdentity:
    """
    Checks that an identity exists and can receive private messages.

    Args:
        client (RPCClient): Client for the user's daemon.
        name (str): Identity to check, e.g. "bob@".

    Returns:
        FormattedIdentity: The identity with its private address.

    Raises:
        IdentityFormatError: `name` is not a valid identity.
        IdentityNotFoundError: The identity does not exist or has no private
                               address.
        RpcError: Any other lookup failure.
    """
    logger.info(f"Checking eligibility for identity: {name}")
    if not is_valid_identity(name):
        raise IdentityFormatError(name)

    try:
        result = await client.get_identity(name)
    except RpcError as exc:
        if is_not_found(exc):
            logger.warning(f"getidentity indicates {name} was not found: {exc}")
            raise IdentityNotFoundError(name) from exc
        raise

    details = result.get("identity") if isinstance(result, dict) else None
    if not isinstance(details, dict):
        raise IdentityNotFoundError(name)

    private_address = _private_address(details)
    if private_address is None or not _has_required_fields(details):
        logger.warning(f"Identity {name} cannot receive private messages")
        raise IdentityNotFoundError(name)

    identity = FormattedIdentity(
        formatted_name=await _formatted_name(client, details),
        i_address=details["identityaddress"],
        private_address=private_address,
    )
    logger.info(f"Identity {name} is eligible as {identity.formatted_name}")
    return identity
