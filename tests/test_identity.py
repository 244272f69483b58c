"""
Unit tests for identity lookups.

Tests follow the Given/When/Then pattern for clarity.
"""

import pytest

from verus_chat.errors import (
    IdentityFormatError,
    IdentityNotFoundError,
    NoChatIdentitiesError,
    RpcNetworkError,
    RpcParseError,
    RpcResponseError,
)
from verus_chat.identity import (
    check_identity_eligibility,
    get_block_height,
    get_login_identities,
    get_private_balance,
)

SYSTEM_ID = "iJhCezBExJHvtyH3fGhNnt2NhU4Ztkf2yq"


def identity_entry(name, parent=SYSTEM_ID, private_address="zs1priv", i_address=None):
    details = {
        "name": name,
        "identityaddress": i_address or f"i{name}Address",
        "parent": parent,
        "systemid": SYSTEM_ID,
    }
    if private_address is not None:
        details["privateaddress"] = private_address
    return {"identity": details}


class TestLoginIdentities:
    """Tests for listing identities usable as chat accounts."""

    @pytest.mark.asyncio
    async def test_only_identities_with_private_address_are_listed(self, mock_rpc_client):
        """
        Given a wallet with one shielded and one transparent-only identity
        When listing login identities
        Then only the shielded identity is returned, formatted as name@
        """
        # Given
        mock_rpc_client.list_identities.return_value = [
            identity_entry("alice", private_address="zs1alice"),
            identity_entry("bob", private_address=None),
        ]

        # When
        identities = await get_login_identities(mock_rpc_client)

        # Then
        assert len(identities) == 1
        assert identities[0].formatted_name == "alice@"
        assert identities[0].private_address == "zs1alice"
        mock_rpc_client.list_identities.assert_awaited_once_with(True, True, True)

    @pytest.mark.asyncio
    async def test_sub_identity_is_formatted_with_parent_name(self, mock_rpc_client):
        # Given
        mock_rpc_client.list_identities.return_value = [
            identity_entry("alice", parent="iParentAddress")
        ]
        mock_rpc_client.get_identity.return_value = {"identity": {"name": "bitcoins"}}

        # When
        identities = await get_login_identities(mock_rpc_client)

        # Then
        assert identities[0].formatted_name == "alice.bitcoins@"
        mock_rpc_client.get_identity.assert_awaited_once_with("iParentAddress")

    @pytest.mark.asyncio
    async def test_unresolvable_parent_falls_back_to_plain_name(self, mock_rpc_client):
        # Given
        mock_rpc_client.list_identities.return_value = [
            identity_entry("alice", parent="iParentAddress")
        ]
        mock_rpc_client.get_identity.side_effect = RpcResponseError(-5, "not found")

        # When
        identities = await get_login_identities(mock_rpc_client)

        # Then
        assert identities[0].formatted_name == "alice@"

    @pytest.mark.asyncio
    async def test_empty_wallet_raises(self, mock_rpc_client):
        # Given
        mock_rpc_client.list_identities.return_value = [
            identity_entry("bob", private_address=None),
            {"unexpected": True},
        ]

        # When / Then
        with pytest.raises(NoChatIdentitiesError):
            await get_login_identities(mock_rpc_client)


class TestIdentityEligibility:
    """Tests for checking a prospective chat partner."""

    @pytest.mark.asyncio
    async def test_eligible_identity_is_returned(self, mock_rpc_client):
        # Given
        mock_rpc_client.get_identity.return_value = identity_entry("bob", private_address="zs1bob")

        # When
        identity = await check_identity_eligibility(mock_rpc_client, "bob@")

        # Then
        assert identity.formatted_name == "bob@"
        assert identity.private_address == "zs1bob"

    @pytest.mark.asyncio
    async def test_malformed_name_is_rejected_without_lookup(self, mock_rpc_client):
        with pytest.raises(IdentityFormatError):
            await check_identity_eligibility(mock_rpc_client, "bob")
        mock_rpc_client.get_identity.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            RpcResponseError(-5, "Identity not found"),
            RpcResponseError(-8, "Invalid identity"),
            RpcParseError("HTTP 500", status=500),
        ],
    )
    async def test_lookup_failures_meaning_absent_are_not_found(self, mock_rpc_client, error):
        """
        Given a daemon answering -5, -8 or an opaque HTTP 500 for the lookup
        When checking eligibility
        Then IdentityNotFoundError is raised
        """
        # Given
        mock_rpc_client.get_identity.side_effect = error

        # When / Then
        with pytest.raises(IdentityNotFoundError):
            await check_identity_eligibility(mock_rpc_client, "ghost@")

    @pytest.mark.asyncio
    async def test_other_lookup_failures_propagate(self, mock_rpc_client):
        # Given
        mock_rpc_client.get_identity.side_effect = RpcNetworkError("down")

        # When / Then
        with pytest.raises(RpcNetworkError):
            await check_identity_eligibility(mock_rpc_client, "bob@")

    @pytest.mark.asyncio
    async def test_identity_without_private_address_is_not_found(self, mock_rpc_client):
        # Given
        mock_rpc_client.get_identity.return_value = identity_entry("bob", private_address=None)

        # When / Then
        with pytest.raises(IdentityNotFoundError):
            await check_identity_eligibility(mock_rpc_client, "bob@")


class TestWalletQueries:
    @pytest.mark.asyncio
    async def test_block_height(self, mock_rpc_client):
        # Given
        mock_rpc_client.get_block_count.return_value = 3100000

        # When / Then
        assert await get_block_height(mock_rpc_client) == 3100000

    @pytest.mark.asyncio
    async def test_private_balance(self, mock_rpc_client, sample_z_address):
        # Given
        mock_rpc_client.z_get_balance.return_value = 12.5

        # When
        balance = await get_private_balance(mock_rpc_client, sample_z_address)

        # Then
        assert balance == 12.5
        mock_rpc_client.z_get_balance.assert_awaited_once_with(sample_z_address)
