# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import os
import copy
from concurrent.futures import ThreadPoolExecutor
from typing import List, Union, Hashable, Tuple, Set
import numpy as np
from FlowCalEngine.enumerations import VoltageInitMode
from FlowCalEngine.Devices.multi_circuit import MultiCircuit
from FlowCalEngine.DataStructures.network import Network
from FlowCalEngine.DataStructures.network_builder import NetworkBuilder, get_current_base
from FlowCalEngine.IO.debug_export import export_equation_system_json, export_network_graph
from FlowCalEngine.Simulations.driver_template import DriverTemplate
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Simulations.PowerFlow.power_flow_results import PowerFlowResults, ComponentResult
from FlowCalEngine.Simulations.PowerFlow.ac_load_flow_engine import AcLoadFlowEngine
from FlowCalEngine.Simulations.PowerFlow.network_cache import NetworkCache, CacheEntry


def get_component_key(network: Network) -> str:
    """
    Identifier of a component that survives a rebuild of the networks
    :param network: Network
    :return: smallest bus id of the component
    """
    return min(bus.idtag for bus in network.buses) if len(network.buses) else str(network.num)


class PowerFlowDriver(DriverTemplate):
    """
    Power flow of a MultiCircuit: every connected component is solved independently
    and the results are written back into the grid devices
    """
    name = 'Power Flow'

    def __init__(self, grid: MultiCircuit,
                 options: Union[PowerFlowOptions, None] = None,
                 cache: Union[NetworkCache, None] = None,
                 cache_key: Hashable = None,
                 cache_variant: str = ""):
        """
        PowerFlowDriver class constructor
        :param grid: MultiCircuit instance
        :param options: PowerFlowOptions instance (optional)
        :param cache: NetworkCache used to warm start from a previous solution (optional)
        :param cache_key: key of this grid in the cache
        :param cache_variant: variant name stored in the cache entry
        """
        DriverTemplate.__init__(self, grid=grid)

        self.options: PowerFlowOptions = PowerFlowOptions() if options is None else options

        self.cache = cache
        self.cache_key = cache_key if cache_key is not None else grid.name
        self.cache_variant = cache_variant

        self.networks: List[Network] = list()

        self.results: PowerFlowResults = PowerFlowResults()

    def get_steps(self) -> List[str]:
        return [f"component {n.num}" for n in self.networks]

    @staticmethod
    def get_bus_ids(networks: List[Network]) -> Set[str]:
        return {bus.idtag for network in networks for bus in network.buses}

    def get_cache_entry(self, networks: List[Network]) -> Union[CacheEntry, None]:
        """
        Cached entry of this grid, invalidated when the set of buses changed
        :param networks: freshly built networks
        :return: CacheEntry or None
        """
        if self.cache is None:
            return None

        entry = self.cache.get(self.cache_key)
        if entry is None:
            return None

        cached_ids = {idtag for states in entry.states.values() for idtag in states.keys()}
        if cached_ids != self.get_bus_ids(networks):
            self.logger.add_info("Structural change, cached state discarded", device=str(self.cache_key))
            self.cache.invalidate(self.cache_key)
            return None

        return entry

    def solve_component(self, network: Network, options: PowerFlowOptions,
                        entry: Union[CacheEntry, None]) -> Tuple[Network, ComponentResult]:
        """
        Run the load flow engine over a component
        :param network: Network
        :param options: PowerFlowOptions
        :param entry: CacheEntry to warm start from (optional)
        :return: network, ComponentResult
        """
        snapshot = entry.get_snapshot(get_component_key(network)) if entry is not None else None

        engine = AcLoadFlowEngine(network=network, options=options, snapshot=snapshot)
        result = engine.run()

        if options.debug_dir is not None:
            os.makedirs(options.debug_dir, exist_ok=True)
            if engine.equation_system is not None:
                export_equation_system_json(engine.equation_system,
                                            os.path.join(options.debug_dir, f"equation_system_{network.num}.json"))
            export_network_graph(network, os.path.join(options.debug_dir, f"network_{network.num}.graphml"))

        return network, result

    def solve_components(self, networks: List[Network]) -> PowerFlowResults:
        """
        Solve all the components, in parallel if several threads are configured
        :param networks: list of Network
        :return: PowerFlowResults
        """
        entry = self.get_cache_entry(networks)

        options = self.options
        if entry is not None:
            # warm start from the cached solution
            options = copy.copy(self.options)
            options.voltage_init_mode = VoltageInitMode.PREVIOUS_VALUES

        if options.threads > 1 and len(networks) > 1:
            with ThreadPoolExecutor(max_workers=options.threads) as executor:
                solved = list(executor.map(lambda nw: self.solve_component(nw, options, entry), networks))
        else:
            solved = [self.solve_component(nw, options, entry) for nw in networks]

        results = PowerFlowResults()
        results.logger += self.logger
        for i, (network, result) in enumerate(solved):
            results.add_component(network, result, method=options.solver_type)
            self.report_progress2(i, len(solved))

        if self.cache is not None and results.converged:
            previous = entry.solve_count if entry is not None else 0
            self.cache.put(self.cache_key,
                           CacheEntry(variant=self.cache_variant,
                                      states={get_component_key(nw): nw.get_state_snapshot() for nw in networks},
                                      solve_count=previous + 1))
        return results

    def write_back(self, networks: List[Network], results: PowerFlowResults):
        """
        Store the results of the converged components into the grid devices
        :param networks: list of Network
        :param results: PowerFlowResults
        """
        grid = self.grid
        for network in networks:
            component = results.get_component_result(network.num)
            if component is None or not component.converged:
                continue

            sb = network.Sbase
            for bus in network.buses:
                if bus.disabled:
                    continue
                dev = grid.get_element(bus.idtag)
                dev.v = bus.v * bus.nominal_v
                dev.angle = float(np.rad2deg(bus.angle))

            for branch in network.branches:
                dev = grid.get_element(branch.idtag)
                dev.p_from = branch.p1 * sb
                dev.q_from = branch.q1 * sb
                dev.p_to = branch.p2 * sb
                dev.q_to = branch.q2 * sb
                dev.i_from = branch.i1 * get_current_base(sb, branch.bus1.nominal_v) if branch.bus1 else 0.0
                dev.i_to = branch.i2 * get_current_base(sb, branch.bus2.nominal_v) if branch.bus2 else 0.0
                dev.ratio = branch.r1
                dev.phase = float(np.rad2deg(branch.a1))

            for gen in network.generators:
                dev = grid.get_element(gen.idtag)
                dev.p_result = gen.p * sb
                dev.q_result = gen.q * sb

            for load in network.loads:
                dev = grid.get_element(load.idtag)
                dev.p_result = load.target_p * sb

            for shunt in network.shunts:
                dev = grid.get_element(shunt.idtag)
                dev.section_result = shunt.section
                dev.q_result = shunt.b * shunt.bus.v * shunt.bus.v * sb

            for area in network.areas:
                dev = grid.get_element(area.idtag)
                dev.interchange = area.get_interchange() * sb

    def run(self) -> None:
        """
        Run the power flow
        """
        self.tic()

        # configuration errors are raised before solving anything
        self.options.validate(self.grid)

        builder = NetworkBuilder(self.grid, self.options, self.logger)
        self.networks = builder.build()

        if self.cache is not None:
            with self.cache.lock(self.cache_key):
                self.results = self.solve_components(self.networks)
        else:
            self.results = self.solve_components(self.networks)

        self.write_back(self.networks, self.results)

        self.toc()
        self.report_done()
