# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from __future__ import annotations

from typing import List, Dict, Set, Union
import numpy as np
from FlowCalEngine.basic_structures import Logger, Vec
from FlowCalEngine.enumerations import ConnectivityMode, BranchSide
from FlowCalEngine.DataStructures.bus import Bus, GeneratorVoltageControl
from FlowCalEngine.DataStructures.branch import Branch, PhaseControl, TransformerVoltageControl
from FlowCalEngine.DataStructures.injections import Generator, Load, Shunt, ShuntVoltageControl
from FlowCalEngine.DataStructures.area import Area, OverloadManagementSystem, SecondaryVoltageControlZone
from FlowCalEngine.Topology.connectivity import GraphConnectivity, create_connectivity


class Network:
    """
    Per unit graph of one connected component.
    Buses, branches and injections are arena indexed by their "num" attribute.
    """

    def __init__(self, num: int = 0, Sbase: float = 100.0,
                 connectivity_mode: ConnectivityMode = ConnectivityMode.DECREMENTAL,
                 logger: Union[Logger, None] = None):
        """

        :param num: connected component number
        :param Sbase: base power (MVA)
        :param connectivity_mode: ConnectivityMode
        :param logger: Logger
        """
        self.num = num
        self.Sbase = Sbase
        self.connectivity_mode = connectivity_mode
        self.logger = logger if logger is not None else Logger(component=num)

        self.buses: List[Bus] = list()
        self.branches: List[Branch] = list()
        self.generators: List[Generator] = list()
        self.loads: List[Load] = list()
        self.shunts: List[Shunt] = list()
        self.areas: List[Area] = list()

        self.voltage_controls: List[GeneratorVoltageControl] = list()
        self.transformer_voltage_controls: List[TransformerVoltageControl] = list()
        self.phase_controls: List[PhaseControl] = list()
        self.overload_management_systems: List[OverloadManagementSystem] = list()
        self.secondary_voltage_control_zones: List[SecondaryVoltageControlZone] = list()
        self.shunt_voltage_controls: List[ShuntVoltageControl] = list()

        self._bus_by_id: Dict[str, Bus] = dict()
        self._branch_by_id: Dict[str, Branch] = dict()

        self._connectivity: Union[GraphConnectivity, None] = None

    def __repr__(self):
        return f"Network {self.num} ({len(self.buses)} buses)"

    # ---------------------------------------------------------------------------------------------------------------
    # construction
    # ---------------------------------------------------------------------------------------------------------------

    def add_bus(self, bus: Bus) -> Bus:
        bus.num = len(self.buses)
        self.buses.append(bus)
        self._bus_by_id[bus.idtag] = bus
        return bus

    def add_branch(self, branch: Branch) -> Branch:
        branch.num = len(self.branches)
        self.branches.append(branch)
        self._branch_by_id[branch.idtag] = branch
        if branch.bus1 is not None:
            branch.bus1.branches.append((branch, BranchSide.ONE))
        if branch.bus2 is not None:
            branch.bus2.branches.append((branch, BranchSide.TWO))
        return branch

    def add_generator(self, gen: Generator) -> Generator:
        gen.num = len(self.generators)
        self.generators.append(gen)
        gen.bus.generators.append(gen)
        return gen

    def add_load(self, load: Load) -> Load:
        load.num = len(self.loads)
        self.loads.append(load)
        load.bus.loads.append(load)
        return load

    def add_shunt(self, shunt: Shunt) -> Shunt:
        shunt.num = len(self.shunts)
        self.shunts.append(shunt)
        shunt.bus.shunts.append(shunt)
        return shunt

    def get_bus_by_id(self, idtag: str) -> Union[Bus, None]:
        return self._bus_by_id.get(idtag, None)

    def get_branch_by_id(self, idtag: str) -> Union[Branch, None]:
        return self._branch_by_id.get(idtag, None)

    # ---------------------------------------------------------------------------------------------------------------
    # slack and reference
    # ---------------------------------------------------------------------------------------------------------------

    def set_slack_buses(self, buses: List[Bus]):
        """
        Set the slack buses, the first one being the angle reference
        :param buses: list of Bus
        """
        for bus in self.buses:
            bus.slack = False
            bus.reference = False
        for bus in buses:
            bus.slack = True
        if len(buses):
            buses[0].reference = True

    def get_slack_buses(self) -> List[Bus]:
        return [bus for bus in self.buses if bus.slack and not bus.disabled]

    def get_reference_bus(self) -> Union[Bus, None]:
        for bus in self.buses:
            if bus.reference and not bus.disabled:
                return bus
        return None

    def has_voltage_control(self) -> bool:
        """
        Is there any enabled voltage control left?
        :return: bool
        """
        return (any(vc.is_enabled() for vc in self.voltage_controls)
                or any(tc.is_continuous() for tc in self.transformer_voltage_controls))

    def get_enabled_buses(self) -> List[Bus]:
        return [bus for bus in self.buses if not bus.disabled]

    # ---------------------------------------------------------------------------------------------------------------
    # connectivity
    # ---------------------------------------------------------------------------------------------------------------

    @property
    def connectivity(self) -> GraphConnectivity:
        """
        Connectivity analyser over the closed branches, created on first use
        :return: GraphConnectivity
        """
        if self._connectivity is None:
            self._connectivity = create_connectivity(self.connectivity_mode)
            for bus in self.buses:
                self._connectivity.add_vertex(bus)
            for branch in self.branches:
                if branch.bus1 is not None and branch.bus2 is not None and branch.connected1 and branch.connected2:
                    self._connectivity.add_edge(branch.bus1, branch.bus2, branch)
        return self._connectivity

    def get_connected_components(self) -> List[Set[Bus]]:
        return self.connectivity.get_connected_components()

    def switch_branch(self, branch: Branch, closed: bool):
        """
        Open or close both sides of a branch (breaker operation) and update the connectivity
        :param branch: Branch
        :param closed: new status
        """
        branch.connected1 = closed and branch.bus1 is not None
        branch.connected2 = closed and branch.bus2 is not None

        edge_in_graph = self.connectivity.has_edge(branch)
        if closed and not edge_in_graph and branch.bus1 is not None and branch.bus2 is not None:
            self.connectivity.add_edge(branch.bus1, branch.bus2, branch)
        elif not closed and edge_in_graph:
            self.connectivity.remove_edge(branch)

    def set_branch_side_connected(self, branch: Branch, side: BranchSide, connected: bool):
        """
        Open or close one side of a branch whose disconnection is allowed.
        The branch keeps its equation terms, the open side ones are deactivated
        :param branch: Branch
        :param side: BranchSide
        :param connected: new status of the side
        """
        branch.set_connected(side, connected)

        closed = branch.connected1 and branch.connected2
        edge_in_graph = self.connectivity.has_edge(branch)
        if closed and not edge_in_graph:
            self.connectivity.add_edge(branch.bus1, branch.bus2, branch)
        elif not closed and edge_in_graph:
            self.connectivity.remove_edge(branch)

        self.logger.add_info("Branch side " + ("connected" if connected else "disconnected"),
                             device=branch.idtag, value=side.value)

    def update_connectivity(self) -> List[Bus]:
        """
        Disable the buses that are no longer connected to the reference bus
        and enable back those that are
        :return: list of buses whose status changed
        """
        reference = None
        for bus in self.buses:
            if bus.reference:
                reference = bus
        if reference is None:
            return list()

        main_component = self.connectivity.get_connected_component(reference)
        changed = list()
        for bus in self.buses:
            disabled = bus not in main_component
            if disabled != bus.disabled:
                bus.disabled = disabled
                changed.append(bus)
                self.logger.add_info("Bus status changed after a topology change", device=bus.idtag,
                                     value="disabled" if disabled else "enabled")
        for branch in self.branches:
            branch.disabled = ((branch.bus1 is not None and branch.bus1.disabled)
                               or (branch.bus2 is not None and branch.bus2.disabled))
        return changed

    # ---------------------------------------------------------------------------------------------------------------
    # state
    # ---------------------------------------------------------------------------------------------------------------

    def get_voltages(self) -> Vec:
        return np.array([bus.v for bus in self.buses])

    def get_angles(self) -> Vec:
        return np.array([bus.angle for bus in self.buses])

    def get_state_snapshot(self) -> Dict[str, tuple]:
        """
        Voltage snapshot used to warm start later calculations
        :return: {bus id: (v, angle)}
        """
        return {bus.idtag: (bus.v, bus.angle) for bus in self.buses}
