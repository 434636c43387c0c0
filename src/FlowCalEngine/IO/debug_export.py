# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
"""
Write-only debug dumps of the internal structures of a component
"""
import json
import numpy as np
import networkx as nx
from FlowCalEngine.DataStructures.network import Network
from FlowCalEngine.Simulations.PowerFlow.Equations.equation_system import EquationSystem


class NpEncoder(json.JSONEncoder):
    """
    JSON encoder aware of the numpy types
    """

    def default(self, obj):
        if isinstance(obj, np.integer):
            return int(obj)
        elif isinstance(obj, np.floating):
            return float(obj)
        elif isinstance(obj, np.bool_):
            return bool(obj)
        elif isinstance(obj, np.ndarray):
            return obj.tolist()
        elif isinstance(obj, complex):
            return str(obj)
        return super(NpEncoder, self).default(obj)


def export_equation_system_json(equation_system: EquationSystem, path: str):
    """
    Dump the variables, equations and terms of an equation system
    :param equation_system: EquationSystem
    :param path: json file name
    """
    with open(path, 'w') as f:
        json.dump(equation_system.to_dict(), f, indent=2, cls=NpEncoder)


def get_network_graph(network: Network) -> nx.MultiGraph:
    """
    Graph of the network with the bus and branch attributes
    :param network: Network
    :return: networkx MultiGraph (parallel branches are kept)
    """
    graph = nx.MultiGraph(name=f"component {network.num}")

    for bus in network.buses:
        graph.add_node(bus.idtag,
                       num=bus.num,
                       nominal_v=float(bus.nominal_v),
                       v=float(bus.v),
                       angle=float(np.rad2deg(bus.angle)),
                       slack=bus.slack,
                       reference=bus.reference,
                       disabled=bus.disabled,
                       voltage_controlled=bus.is_voltage_controlled())

    for branch in network.branches:
        if branch.bus1 is None or branch.bus2 is None:
            continue
        graph.add_edge(branch.bus1.idtag, branch.bus2.idtag, key=branch.idtag,
                       num=branch.num,
                       r=float(branch.z.real),
                       x=float(branch.z.imag),
                       r1=float(branch.r1),
                       a1=float(np.rad2deg(branch.a1)),
                       connected1=branch.connected1,
                       connected2=branch.connected2,
                       disabled=branch.disabled,
                       p1=float(branch.p1),
                       p2=float(branch.p2))

    return graph


def export_network_graph(network: Network, path: str):
    """
    Write the network graph as GraphML
    :param network: Network
    :param path: graphml file name
    """
    nx.write_graphml(get_network_graph(network), path)
