# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import threading
from FlowCalEngine.api import *
from grids import two_bus_grid


def cache_options() -> PowerFlowOptions:
    return PowerFlowOptions(distributed_slack=False,
                            slack_bus_selection_mode=SlackBusSelectionMode.NAME)


def test_warm_start_from_cache():
    """
    Solving the same grid again starts from the cached solution and needs no iteration
    """
    cache = NetworkCache()
    grid = two_bus_grid()

    results = power_flow(grid, cache_options(), cache=cache)
    assert results.converged
    assert results.iterations > 0
    assert grid.name in cache
    assert cache.get(grid.name).solve_count == 1

    results = power_flow(grid, cache_options(), cache=cache)
    assert results.converged
    assert results.iterations == 0
    assert cache.get(grid.name).solve_count == 2


def test_structural_change_invalidates():
    """
    A new bus makes the cached state useless
    """
    cache = NetworkCache()
    grid = two_bus_grid()
    power_flow(grid, cache_options(), cache=cache)

    b3 = grid.add_bus(BusDevice(name='B3', nominal_v=100.0))
    grid.add_branch(BranchDevice(name='L23', bus_from=grid.get_element('B2'), bus_to=b3, r=1.0, x=10.0))

    results = power_flow(grid, cache_options(), cache=cache)

    assert results.converged
    assert results.iterations > 0
    assert "Structural change, cached state discarded" in results.logger.messages()
    assert cache.get(grid.name).solve_count == 1


def test_non_converged_solution_not_cached():
    """
    Only converged states are stored
    """
    cache = NetworkCache()
    grid = two_bus_grid()
    results = power_flow(grid, PowerFlowOptions(max_iterations=1, distributed_slack=False), cache=cache)

    assert not results.converged
    assert len(cache) == 0


def test_cache_operations():
    """
    Entries can be put, read, invalidated and cleared, and each key can be locked
    """
    cache = NetworkCache()
    cache.put('a', CacheEntry(variant='base', states={'B1': {'B1': (1.0, 0.0)}}, solve_count=1))
    cache.put('b', CacheEntry(variant='base'))

    assert len(cache) == 2
    assert 'a' in cache
    assert cache.get('a').get_snapshot('B1') == {'B1': (1.0, 0.0)}
    assert cache.get('a').get_snapshot('B7') is None

    cache.invalidate('a')
    assert 'a' not in cache
    assert cache.get('a') is None

    # invalidating twice is harmless
    cache.invalidate('a')

    cache.clear()
    assert len(cache) == 0


def test_cache_lock_serializes_solves():
    """
    Two threads solving the same key never hold the lock at the same time
    """
    cache = NetworkCache()
    inside = list()
    overlaps = list()

    def work():
        with cache.lock('grid'):
            inside.append(1)
            overlaps.append(len(inside))
            inside.pop()

    threads = [threading.Thread(target=work) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert overlaps == [1] * 8


if __name__ == '__main__':
    test_warm_start_from_cache()
