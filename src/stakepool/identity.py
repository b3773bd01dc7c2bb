"""Account identities: patrons, owners and the pool account.

Identities are opaque strings to the accounting core. At the edges
(service, CLI) hex addresses are normalized to their EIP-55 checksum
form so "0xabc..." and "0xABC..." can never open two ledger records,
and a caller may be derived from a private key.
"""

from __future__ import annotations

from web3 import Web3


def normalize_identity(value: str) -> str:
    """Return the canonical form of an account identity.

    Hex addresses are checksummed; any other non-empty label is kept
    as-is (stripped) for local accounts such as the pool itself.
    """
    if value is None or not value.strip():
        raise ValueError("Account identity must not be empty")
    value = value.strip()
    if value.lower().startswith("0x"):
        if not Web3.is_address(value):
            raise ValueError(f"Malformed address: {value}")
        return Web3.to_checksum_address(value)
    return value


def identity_from_key(private_key: str) -> str:
    """Derive the checksummed address controlled by a private key."""
    from eth_account import Account

    return Account.from_key(private_key).address
