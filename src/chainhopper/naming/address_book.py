"""Name resolution from the `wallets` section of the config."""

from typing import Mapping, Optional

from chainhopper.naming.base import NameResolver


class AddressBookResolver(NameResolver):
    """Resolves names from a static name -> address mapping.

    Lookups are case-insensitive. When several names point at one address,
    reverse resolution returns the first one listed.
    """

    def __init__(self, wallets: Mapping[str, str]):
        self._by_name = {name.lower(): address for name, address in wallets.items()}
        self._by_address: dict[str, str] = {}
        for name, address in wallets.items():
            self._by_address.setdefault(address.lower(), name)

    def resolve(self, name: str) -> Optional[str]:
        return self._by_name.get(name.strip().lower())

    def reverse_resolve(self, address: str) -> Optional[str]:
        return self._by_address.get(address.lower())
