from __future__ import annotations

from typing import Dict, Generic, Hashable, Iterator, List, TypeVar

K = TypeVar("K", bound=Hashable)


class OrderedKeySet(Generic[K]):
    """Insertion-ordered set with O(1) membership and dense enumeration.

    Removal compacts the backing list so survivors keep their relative
    order and no tombstones are ever visible to readers.
    """

    def __init__(self) -> None:
        self._items: List[K] = []
        self._index: Dict[K, int] = {}

    def add(self, key: K) -> bool:
        if key in self._index:
            return False
        self._index[key] = len(self._items)
        self._items.append(key)
        return True

    def remove(self, key: K) -> bool:
        position = self._index.pop(key, None)
        if position is None:
            return False
        del self._items[position]
        for i in range(position, len(self._items)):
            self._index[self._items[i]] = i
        return True

    def position(self, key: K) -> int:
        return self._index[key]

    def to_list(self) -> List[K]:
        return list(self._items)

    def __contains__(self, key: object) -> bool:
        return key in self._index

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[K]:
        return iter(list(self._items))
