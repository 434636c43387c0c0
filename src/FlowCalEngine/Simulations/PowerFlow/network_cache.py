# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Hashable, Tuple, Union, Iterator

# {bus id: (v p.u., angle rad)}
StateSnapshot = Dict[str, Tuple[float, float]]


@dataclass
class CacheEntry:
    """
    Solved states of a grid variant, one per connected component
    """
    variant: str = ""
    states: Dict[str, StateSnapshot] = field(default_factory=dict)
    solve_count: int = 0

    def get_snapshot(self, component_key: str) -> Union[StateSnapshot, None]:
        return self.states.get(component_key, None)

    def set_snapshot(self, component_key: str, snapshot: StateSnapshot):
        self.states[component_key] = snapshot


class NetworkCache:
    """
    Thread safe store of previous solutions used to warm start the next calculations.
    Each key has its own lock so that at most one solve per key runs at a time.
    """

    def __init__(self):
        self._entries: Dict[Hashable, CacheEntry] = dict()
        self._locks: Dict[Hashable, threading.Lock] = dict()
        self._guard = threading.Lock()

    def _get_lock(self, key: Hashable) -> threading.Lock:
        with self._guard:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    @contextmanager
    def lock(self, key: Hashable) -> Iterator[None]:
        """
        Hold the key for the duration of a solve
        :param key: cache key
        """
        key_lock = self._get_lock(key)
        with key_lock:
            yield

    def get(self, key: Hashable) -> Union[CacheEntry, None]:
        with self._guard:
            return self._entries.get(key, None)

    def put(self, key: Hashable, entry: CacheEntry):
        with self._guard:
            self._entries[key] = entry

    def invalidate(self, key: Hashable):
        with self._guard:
            self._entries.pop(key, None)

    def clear(self):
        with self._guard:
            self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        with self._guard:
            return key in self._entries

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)
