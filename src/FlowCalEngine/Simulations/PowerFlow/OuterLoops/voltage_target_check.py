# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import List, Tuple, Dict
import networkx as nx
from FlowCalEngine.DataStructures.bus import Bus, GeneratorVoltageControl
from FlowCalEngine.DataStructures.network import Network
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.outer_loop import OuterLoop, OuterLoopContext, OuterLoopResult


def get_impedance_graph(network: Network) -> nx.Graph:
    """
    Graph of the closed branches weighted by the modulus of their series impedance
    (the smallest one is kept for parallel branches)
    :param network: Network
    :return: networkx Graph of buses
    """
    graph = nx.Graph()
    for bus in network.get_enabled_buses():
        graph.add_node(bus)
    for branch in network.branches:
        if branch.is_closed() and branch.bus1 is not branch.bus2:
            z = abs(branch.z)
            if graph.has_edge(branch.bus1, branch.bus2):
                z = min(z, graph[branch.bus1][branch.bus2]['z'])
            graph.add_edge(branch.bus1, branch.bus2, z=z)
    return graph


class VoltageTargetCheckOuterLoop(OuterLoop):
    """
    Fixes implausible voltage targets on the first check:
    close controlled buses with very different targets, and remote controllers
    whose local voltage goes out of the realistic range
    """
    name = "VoltageTargetCheck"

    def __init__(self, plausibility_threshold: float = 2.0, exploration_depth: int = 2,
                 min_realistic_voltage: float = 0.5, max_realistic_voltage: float = 1.5):
        """

        :param plausibility_threshold: maximum |dV| / |z| between two controlled buses
        :param exploration_depth: number of branches explored around each controlled bus
        :param min_realistic_voltage: minimum realistic voltage (p.u.)
        :param max_realistic_voltage: maximum realistic voltage (p.u.)
        """
        self.plausibility_threshold = plausibility_threshold
        self.exploration_depth = exploration_depth
        self.min_realistic_voltage = min_realistic_voltage
        self.max_realistic_voltage = max_realistic_voltage

    def get_incompatible_pairs(self, network: Network,
                               graph: nx.Graph) -> List[Tuple[GeneratorVoltageControl, GeneratorVoltageControl]]:
        """
        Pairs of enabled voltage controls whose targets cannot hold together
        :param network: Network
        :param graph: impedance graph
        :return: list of pairs
        """
        controls: Dict[Bus, GeneratorVoltageControl] = {vc.controlled_bus: vc for vc in network.voltage_controls
                                                         if vc.is_enabled()}
        pairs = list()
        for bus, vc in controls.items():
            paths = nx.single_source_shortest_path(graph, bus, cutoff=self.exploration_depth)
            for other, path in paths.items():
                other_vc = controls.get(other, None)
                if other_vc is None or other_vc is vc or other.num < bus.num:
                    continue
                z = sum(graph[a][b]['z'] for a, b in zip(path[:-1], path[1:]))
                dv = abs(vc.target_v - other_vc.target_v)
                if z > 0 and dv / z > self.plausibility_threshold:
                    pairs.append((vc, other_vc))
        return pairs

    def fix_incompatible_targets(self, context: OuterLoopContext) -> bool:
        """
        Disable the controls appearing in the most incompatible pairs until none is left
        :param context: OuterLoopContext
        :return: anything changed?
        """
        graph = get_impedance_graph(context.network)
        changed = False
        pairs = self.get_incompatible_pairs(context.network, graph)
        while len(pairs):
            count: Dict[GeneratorVoltageControl, int] = dict()
            for a, b in pairs:
                count[a] = count.get(a, 0) + 1
                count[b] = count.get(b, 0) + 1
            worst = max(count.keys(), key=lambda vc: count[vc])
            worst.disable()
            context.logger.add_warning("Incompatible voltage target, control disabled",
                                       device=worst.controlled_bus.idtag, value=worst.target_v,
                                       expected_value=count[worst])
            changed = True
            pairs = self.get_incompatible_pairs(context.network, graph)
        return changed

    def fix_unrealistic_remote_controls(self, context: OuterLoopContext) -> bool:
        """
        Remote controllers with an unrealistic local voltage leave the control
        :param context: OuterLoopContext
        :return: anything changed?
        """
        changed = False
        for vc in context.network.voltage_controls:
            for bus in vc.get_enabled_controller_buses():
                if bus is vc.controlled_bus:
                    continue
                if not (self.min_realistic_voltage <= bus.v <= self.max_realistic_voltage):
                    bus.set_voltage_control_enabled(False)
                    context.logger.add_warning("Unrealistic remote voltage control, control disabled",
                                               device=bus.idtag, value=bus.v,
                                               expected_value=vc.controlled_bus.idtag)
                    changed = True
        return changed

    def check(self, context: OuterLoopContext) -> OuterLoopResult:
        data = context.get_data(self.name)
        if data.get('checked', False):
            return OuterLoopResult.stable()
        data['checked'] = True

        changed = self.fix_incompatible_targets(context)
        changed |= self.fix_unrealistic_remote_controls(context)

        return OuterLoopResult.unstable() if changed else OuterLoopResult.stable()
