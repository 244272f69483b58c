from typing import Optional, Tuple

from verus_chat.models import BlockchainDescriptor, ChainKind

# Order is the canonical output order of detection results:
# primary chain, PBaaS chains, testnet.
BLOCKCHAINS: Tuple[BlockchainDescriptor, ...] = (
    BlockchainDescriptor(
        id="verus",
        name="Verus",
        kind=ChainKind.PRIMARY,
        config_name="VRSC.conf",
        currency_symbol="VRSC",
    ),
    BlockchainDescriptor(
        id="vdex",
        name="vDEX",
        kind=ChainKind.PBAAS,
        chain_hex="53fe39eea8c06bba32f1a4e20db67e5524f0309d",
        config_name="53fe39eea8c06bba32f1a4e20db67e5524f0309d.conf",
        currency_symbol="VDEX",
    ),
    BlockchainDescriptor(
        id="chips",
        name="CHIPS",
        kind=ChainKind.PBAAS,
        chain_hex="f315367528394674d45277e369629605a1c3ce9f",
        config_name="f315367528394674d45277e369629605a1c3ce9f.conf",
        currency_symbol="CHIPS",
    ),
    BlockchainDescriptor(
        id="varrr",
        name="vARRR",
        kind=ChainKind.PBAAS,
        chain_hex="e9e10955b7d16031e3d6f55d9c908a038e3ae47d",
        config_name="e9e10955b7d16031e3d6f55d9c908a038e3ae47d.conf",
        currency_symbol="VARRR",
    ),
    BlockchainDescriptor(
        id="verus-testnet",
        name="Verus Testnet",
        kind=ChainKind.TESTNET,
        config_name="vrsctest.conf",
        currency_symbol="VRSC",
    ),
)

DEFAULT_CURRENCY_SYMBOL = "VRSC"


def get_blockchain(blockchain_id: str) -> Optional[BlockchainDescriptor]:
    for descriptor in BLOCKCHAINS:
        if descriptor.id == blockchain_id:
            return descriptor
    return None


def currency_symbol(blockchain_id: Optional[str]) -> str:
    """Ticker shown for amounts on a chain; unknown chains fall back to VRSC."""
    if not blockchain_id:
        return DEFAULT_CURRENCY_SYMBOL
    descriptor = get_blockchain(blockchain_id.lower())
    return descriptor.currency_symbol if descriptor else DEFAULT_CURRENCY_SYMBOL
