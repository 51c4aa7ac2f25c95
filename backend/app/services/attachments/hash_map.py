"""Chained hash map used by the attachment index.

Buckets are singly linked chains. The table doubles when the load factor
reaches the threshold and halves (down to the configured floor) when it
drops below a quarter of it. Resizes rehash every entry synchronously.
"""
import json
from typing import Any, Callable, Generic, Iterator, Optional, TypeVar

K = TypeVar("K")
V = TypeVar("V")

MIN_CAPACITY = 16

_MISSING = object()


class _Node:
    __slots__ = ("key", "value", "next")

    def __init__(self, key, value, next=None):
        self.key = key
        self.value = value
        self.next = next


def default_hash_function(key: Any) -> str:
    """Turn a key into the string that gets hashed."""
    if isinstance(key, str):
        return key
    if isinstance(key, bool):
        return "true" if key else "false"
    if isinstance(key, float) and key.is_integer():
        # 1 == 1.0, so both must land in the same bucket
        return str(int(key))
    if isinstance(key, (int, float)):
        return str(key)
    if isinstance(key, (dict, list, tuple)):
        return json.dumps(key, sort_keys=True, separators=(",", ":"), default=str)
    return str(key)


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _utf16_units(text: str) -> Iterator[int]:
    for ch in text:
        code = ord(ch)
        if code > 0xFFFF:
            code -= 0x10000
            yield 0xD800 | (code >> 10)
            yield 0xDC00 | (code & 0x3FF)
        else:
            yield code


def djb2_xor(text: str) -> int:
    """DJB2 variant with XOR mixing, wrapped to a signed 32-bit integer each step."""
    h = 0
    for unit in _utf16_units(text):
        h = _to_int32(h * 33) ^ unit
    return h


class HashMap(Generic[K, V]):
    """Key -> value store with chained buckets and grow/shrink resizing."""

    def __init__(
        self,
        capacity: int = 32,
        load_factor_threshold: float = 0.75,
        hash_function: Optional[Callable[[K], str]] = None,
    ):
        self._capacity = max(capacity, MIN_CAPACITY)
        self._min_capacity = self._capacity
        self._load_factor_threshold = load_factor_threshold
        self._hash_function = hash_function or default_hash_function
        self._buckets: list[Optional[_Node]] = [None] * self._capacity
        self._size = 0

    # ── Hashing / resizing ─────────────────────────────────────────

    def _index(self, key: K) -> int:
        return abs(djb2_xor(self._hash_function(key))) % self._capacity

    def _put(self, key: K, value: V) -> bool:
        """Insert or replace without resizing. Returns True when a node was added."""
        index = self._index(key)
        node = self._buckets[index]
        if node is None:
            self._buckets[index] = _Node(key, value)
            self._size += 1
            return True

        while True:
            if node.key == key:
                node.value = value
                return False
            if node.next is None:
                break
            node = node.next

        node.next = _Node(key, value)
        self._size += 1
        return True

    def _resize(self, new_capacity: int) -> None:
        old_buckets = self._buckets
        self._capacity = new_capacity
        self._buckets = [None] * new_capacity
        self._size = 0

        for node in old_buckets:
            while node is not None:
                self._put(node.key, node.value)
                node = node.next

    # ── Public API ────────────────────────────────────────────────

    def set(self, key: K, value: V) -> None:
        if self._put(key, value) and self._size / self._capacity >= self._load_factor_threshold:
            self._resize(self._capacity * 2)

    def get(self, key: K, default: Any = None) -> Any:
        node = self._buckets[self._index(key)]
        while node is not None:
            if node.key == key:
                return node.value
            node = node.next
        return default

    def has(self, key: K) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def delete(self, key: K) -> bool:
        index = self._index(key)
        node = self._buckets[index]
        prev = None

        while node is not None:
            if node.key == key:
                if prev is None:
                    self._buckets[index] = node.next
                else:
                    prev.next = node.next
                self._size -= 1

                if (
                    self._size / self._capacity < self._load_factor_threshold / 4
                    and self._capacity > self._min_capacity
                ):
                    self._resize(max(self._capacity // 2, self._min_capacity))
                return True
            prev = node
            node = node.next

        return False

    def clear(self) -> None:
        """Drop every entry and go back to the configured capacity."""
        self._capacity = self._min_capacity
        self._buckets = [None] * self._capacity
        self._size = 0

    def keys(self) -> list[K]:
        return [key for key, _ in self]

    def values(self) -> list[V]:
        return [value for _, value in self]

    def entries(self) -> list[tuple[K, V]]:
        return list(self)

    @property
    def size(self) -> int:
        return self._size

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def min_capacity(self) -> int:
        return self._min_capacity

    @property
    def load_factor(self) -> float:
        return self._size / self._capacity

    def __iter__(self) -> Iterator[tuple[K, V]]:
        for node in self._buckets:
            while node is not None:
                yield node.key, node.value
                node = node.next

    def __len__(self) -> int:
        return self._size

    def __contains__(self, key: object) -> bool:
        return self.has(key)

    def __repr__(self) -> str:
        body = ", ".join(f"{k!r}: {v!r}" for k, v in self)
        return f"HashMap({self._size}) {{{body}}}"
