"""Wallet name resolution."""

from chainhopper.naming.address_book import AddressBookResolver
from chainhopper.naming.base import NameResolver, ResolvedWallet, resolve_wallet

__all__ = [
    "AddressBookResolver",
    "NameResolver",
    "ResolvedWallet",
    "resolve_wallet",
]
