# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import pytest
from FlowCalEngine.enumerations import ConnectivityMode
from FlowCalEngine.Topology.connectivity import (create_connectivity, GraphConnectivity,
                                                 NaiveGraphConnectivity, DecrementalGraphConnectivity)


def make_graph(connectivity: GraphConnectivity) -> GraphConnectivity:
    """
    0 - 1 - 2 - 3 with the chord 0 - 2
    """
    for v in range(4):
        connectivity.add_vertex(v)
    connectivity.add_edge(0, 1, 'a')
    connectivity.add_edge(1, 2, 'b')
    connectivity.add_edge(0, 2, 'c')
    connectivity.add_edge(2, 3, 'd')
    return connectivity


def test_removing_a_chord_needs_no_reset():
    """
    The chord is not part of the spanning forest, removing it cannot split the graph
    """
    connectivity = make_graph(DecrementalGraphConnectivity())
    assert connectivity.get_nb_connected_components() == 1

    connectivity.remove_edge('c')
    assert connectivity.get_nb_connected_components() == 1
    assert connectivity.nb_resets == 0


def test_removing_a_bridge_splits():
    """
    Once the chord is gone, removing 1 - 2 splits the graph in two
    """
    connectivity = make_graph(DecrementalGraphConnectivity())
    connectivity.remove_edge('c')
    connectivity.remove_edge('b')

    assert connectivity.get_connected_components() == [{0, 1}, {2, 3}]
    assert connectivity.nb_resets == 1
    assert connectivity.is_connected(2, 3)
    assert not connectivity.is_connected(1, 2)
    assert connectivity.get_component_number(3) == 1
    assert connectivity.get_connected_component(0) == {0, 1}


@pytest.mark.parametrize("mode", [ConnectivityMode.NAIVE, ConnectivityMode.DECREMENTAL])
def test_temporary_changes(mode):
    """
    The removed edges are reported and put back by the undo
    """
    connectivity = make_graph(create_connectivity(mode))

    connectivity.start_temporary_changes()
    connectivity.remove_edge('d')

    assert connectivity.get_edges_removed() == ['d']
    assert connectivity.get_connected_components() == [{0, 1, 2}, {3}]

    connectivity.undo_temporary_changes()

    assert connectivity.has_edge('d')
    assert connectivity.get_edges_removed() == []
    assert connectivity.get_connected_components() == [{0, 1, 2, 3}]


def test_nested_temporary_changes():
    """
    Each undo only reverts its own level
    """
    connectivity = make_graph(DecrementalGraphConnectivity())

    connectivity.start_temporary_changes()
    connectivity.remove_edge('d')
    connectivity.start_temporary_changes()
    connectivity.add_vertex(4)
    connectivity.add_edge(3, 4, 'e')

    assert connectivity.get_nb_connected_components() == 2
    assert connectivity.get_connected_components()[1] == {3, 4}

    connectivity.undo_temporary_changes()
    assert not connectivity.has_edge('e')
    assert connectivity.get_connected_components() == [{0, 1, 2}, {3}]

    connectivity.undo_temporary_changes()
    assert connectivity.get_nb_connected_components() == 1


def test_naive_and_decremental_agree():
    """
    Both analysers find the same components along a sequence of removals
    """
    naive = make_graph(NaiveGraphConnectivity())
    decremental = make_graph(DecrementalGraphConnectivity())

    for e in ['c', 'a', 'd', 'b']:
        naive.remove_edge(e)
        decremental.remove_edge(e)
        assert naive.get_connected_components() == decremental.get_connected_components()

    assert naive.get_nb_connected_components() == 4


def test_invalid_operations():
    """
    Duplicated handles and unbalanced undo are rejected
    """
    connectivity = make_graph(DecrementalGraphConnectivity())

    with pytest.raises(ValueError):
        connectivity.add_vertex(0)

    with pytest.raises(ValueError):
        connectivity.add_edge(0, 3, 'a')

    with pytest.raises(ValueError):
        connectivity.undo_temporary_changes()


if __name__ == '__main__':
    test_removing_a_bridge_splits()
