"""
Address to account id index.
"""
from data_restore.errors import DuplicateAddress


class AddressIndex:
    """
    Keeps addresses and account ids in one-to-one correspondence.

    Both directions are stored so that binding a second address to an id
    that already has one is caught as well.
    """

    def __init__(self):
        self._by_address: dict[bytes, int] = {}
        self._by_id: dict[int, bytes] = {}

    def resolve(self, address: bytes) -> int | None:
        return self._by_address.get(address)

    def address_of(self, account_id: int) -> bytes | None:
        return self._by_id.get(account_id)

    def bind(self, address: bytes, account_id: int):
        """Bind an address to an id. Rebinding the same pair is a no-op."""
        bound_id = self._by_address.get(address)
        if bound_id is not None and bound_id != account_id:
            raise DuplicateAddress(address, bound_id, account_id)

        bound_address = self._by_id.get(account_id)
        if bound_address is not None and bound_address != address:
            raise DuplicateAddress(bound_address, account_id, account_id)

        self._by_address[address] = account_id
        self._by_id[account_id] = address

    def unbind(self, address: bytes) -> int | None:
        """Remove an address binding, returning the id it pointed to."""
        account_id = self._by_address.pop(address, None)
        if account_id is not None:
            self._by_id.pop(account_id, None)
        return account_id

    def items(self):
        return self._by_address.items()

    def __contains__(self, address: bytes) -> bool:
        return address in self._by_address

    def __len__(self) -> int:
        return len(self._by_address)
