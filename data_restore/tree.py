"""
A fixed-depth sparse Merkle tree of accounts, keyed by account id.
"""
import heapq
from typing import Iterator
from data_restore.account import Account, EMPTY_LEAF_HASH, leaf_hash_of
from data_restore.crypto import hash_pair
from data_restore.errors import CapacityExceeded

DEFAULT_TREE_DEPTH = 24

_default_hashes_cache: dict[int, tuple[bytes, ...]] = {}


def default_hashes(depth: int) -> tuple[bytes, ...]:
    """
    Hashes of fully empty subtrees, indexed by level.
    Level 0 is the root, level `depth` is a single empty leaf.
    """
    cached = _default_hashes_cache.get(depth)
    if cached is not None:
        return cached

    hashes = [b''] * (depth + 1)
    hashes[depth] = EMPTY_LEAF_HASH
    for level in range(depth - 1, -1, -1):
        child = hashes[level + 1]
        hashes[level] = hash_pair(child, child)

    result = tuple(hashes)
    _default_hashes_cache[depth] = result
    return result


class AccountStateTree:
    def __init__(self, depth: int = DEFAULT_TREE_DEPTH, accounts: dict[int, Account] = None):
        if depth <= 0:
            raise ValueError("Tree depth must be positive")
        self.depth = depth
        self.capacity = 1 << depth
        self._defaults = default_hashes(depth)
        # {(level, index): hash}, only subtrees that are not empty
        self._nodes: dict[tuple[int, int], bytes] = {}
        self._leaves: dict[int, Account] = {}
        # Empty ids below _next_fresh; may hold stale entries for ids reused since
        self._free_ids: list[int] = []
        self._next_fresh = 0

        for account_id, account in sorted((accounts or {}).items()):
            self.set(account_id, account)

    def _check_id(self, account_id: int):
        if account_id < 0 or account_id >= self.capacity:
            raise CapacityExceeded(account_id, self.capacity)

    def get(self, account_id: int) -> Account | None:
        """Get the account in a slot, or None if the slot is empty."""
        self._check_id(account_id)
        return self._leaves.get(account_id)

    def set(self, account_id: int, account: Account | None):
        """
        Store an account in a slot (None empties it) and rehash its path.
        Touches exactly `depth` inner nodes.
        """
        self._check_id(account_id)

        if account is None:
            if self._leaves.pop(account_id, None) is not None:
                heapq.heappush(self._free_ids, account_id)
        else:
            if account_id >= self._next_fresh:
                for gap_id in range(self._next_fresh, account_id):
                    heapq.heappush(self._free_ids, gap_id)
                self._next_fresh = account_id + 1
            self._leaves[account_id] = account

        node_hash = leaf_hash_of(account)
        index = account_id
        for level in range(self.depth, 0, -1):
            self._put_node(level, index, node_hash)
            sibling = self._node(level, index ^ 1)
            if index & 1:
                node_hash = hash_pair(sibling, node_hash)
            else:
                node_hash = hash_pair(node_hash, sibling)
            index >>= 1
        self._put_node(0, 0, node_hash)

    def remove(self, account_id: int):
        self.set(account_id, None)

    def next_free_id(self) -> int:
        """Smallest id that does not hold a live account."""
        while self._free_ids and self._free_ids[0] in self._leaves:
            heapq.heappop(self._free_ids)
        account_id = self._free_ids[0] if self._free_ids else self._next_fresh
        if account_id >= self.capacity:
            raise CapacityExceeded(account_id, self.capacity)
        return account_id

    def root_hash(self) -> bytes:
        return self._node(0, 0)

    def get_proof(self, account_id: int) -> list[bytes]:
        """Sibling hashes on the path from the leaf up to the root."""
        self._check_id(account_id)
        proof = []
        index = account_id
        for level in range(self.depth, 0, -1):
            proof.append(self._node(level, index ^ 1))
            index >>= 1
        return proof

    def items(self) -> Iterator[tuple[int, Account]]:
        """Live (id, account) pairs in id order."""
        for account_id in sorted(self._leaves):
            yield account_id, self._leaves[account_id]

    def ids(self) -> list[int]:
        return sorted(self._leaves)

    def __contains__(self, account_id: int) -> bool:
        return account_id in self._leaves

    def __len__(self) -> int:
        return len(self._leaves)

    def _node(self, level: int, index: int) -> bytes:
        return self._nodes.get((level, index), self._defaults[level])

    def _put_node(self, level: int, index: int, node_hash: bytes):
        if node_hash == self._defaults[level]:
            self._nodes.pop((level, index), None)
        else:
            self._nodes[(level, index)] = node_hash


def verify_proof(root_hash: bytes, account_id: int, account: Account | None,
                 proof: list[bytes]) -> bool:
    """Check that `account` sits at `account_id` in the tree committed to by `root_hash`."""
    depth = len(proof)
    if account_id < 0 or account_id >= (1 << depth):
        return False

    node_hash = leaf_hash_of(account)
    index = account_id
    for sibling in proof:
        if index & 1:
            node_hash = hash_pair(sibling, node_hash)
        else:
            node_hash = hash_pair(node_hash, sibling)
        index >>= 1
    return node_hash == root_hash
