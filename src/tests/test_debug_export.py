# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import os
import json
import networkx as nx
from FlowCalEngine.api import *
from FlowCalEngine.IO.debug_export import get_network_graph
from grids import ring_grid, two_islands_grid, build_network


def test_debug_dumps(tmp_path):
    """
    One equation system dump and one graph per component
    """
    options = PowerFlowOptions(debug_dir=str(tmp_path))
    results = power_flow(two_islands_grid(), options)
    assert results.converged

    for num, n_buses in [(0, 3), (1, 2)]:
        with open(os.path.join(tmp_path, f"equation_system_{num}.json")) as f:
            data = json.load(f)
        assert set(data.keys()) == {'variables', 'equations'}
        assert len(data['variables']) == 2 * n_buses

        graph = nx.read_graphml(os.path.join(tmp_path, f"network_{num}.graphml"))
        assert graph.number_of_nodes() == n_buses


def test_network_graph():
    """
    The graph keeps the bus and branch attributes
    """
    network = build_network(ring_grid())
    graph = get_network_graph(network)

    assert set(graph.nodes) == {'B1', 'B2', 'B3'}
    assert graph.number_of_edges() == 3
    assert graph.nodes['B1']['reference']
    assert graph.nodes['B1']['voltage_controlled']
    assert not graph.nodes['B3']['voltage_controlled']
    assert graph.edges['B1', 'B2', 'L12']['x'] > 0


def test_equation_system_json(tmp_path):
    """
    The json dump can be written for a stand alone network
    """
    network = build_network(ring_grid())
    engine = AcLoadFlowEngine(network, PowerFlowOptions())
    engine.run()

    path = os.path.join(tmp_path, "es.json")
    export_equation_system_json(engine.equation_system, path)

    with open(path) as f:
        data = json.load(f)

    types = {v['type'] for v in data['variables']}
    assert types == {'BUS_V', 'BUS_PHI'}
    assert all(isinstance(v['value'], float) for v in data['variables'])


if __name__ == '__main__':
    test_network_graph()
