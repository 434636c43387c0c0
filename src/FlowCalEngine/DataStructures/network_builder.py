# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
"""
Conversion of the MultiCircuit (physical units) into one per-unit Network per connected component
"""
from __future__ import annotations

from typing import List, Dict, Set, Union, TYPE_CHECKING
import numpy as np
from FlowCalEngine.basic_structures import Logger
from FlowCalEngine.enumerations import SlackBusSelectionMode, InjectionControlMode, BranchSide
from FlowCalEngine.Devices.multi_circuit import MultiCircuit
from FlowCalEngine.Devices.elements import BusDevice, BranchDevice, GeneratorDevice, ConverterDevice
from FlowCalEngine.DataStructures.bus import Bus, GeneratorVoltageControl
from FlowCalEngine.DataStructures.branch import Branch, PhaseControl, TransformerVoltageControl
from FlowCalEngine.DataStructures.injections import (Generator, Converter, Load, Shunt, ShuntVoltageControl,
                                                     StandbyAutomaton)
from FlowCalEngine.DataStructures.area import Area, OverloadManagementSystem, SecondaryVoltageControlZone
from FlowCalEngine.DataStructures.network import Network
from FlowCalEngine.Topology.connectivity import create_connectivity

if TYPE_CHECKING:
    from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions


def get_current_base(Sbase: float, nominal_v: float) -> float:
    """
    Base current
    :param Sbase: base power (MVA)
    :param nominal_v: nominal voltage (kV)
    :return: base current (A)
    """
    return Sbase * 1e3 / (np.sqrt(3) * nominal_v)


class NetworkBuilder:
    """
    Builds the per unit networks of the connected components of a MultiCircuit
    """

    def __init__(self, grid: MultiCircuit, options: "PowerFlowOptions", logger: Union[Logger, None] = None):
        """

        :param grid: MultiCircuit
        :param options: PowerFlowOptions
        :param logger: Logger for the messages that do not belong to a single component
        """
        self.grid = grid
        self.options = options
        self.logger = logger if logger is not None else Logger()
        self.Sbase = grid.Sbase

    @staticmethod
    def is_closed(branch: BranchDevice) -> bool:
        return (branch.bus_from is not None and branch.bus_to is not None
                and branch.connected_from and branch.connected_to
                and branch.bus_from.active and branch.bus_to.active)

    def build(self) -> List[Network]:
        """
        Split the grid into connected components and build their networks
        :return: list of Network, the largest first
        """
        buses = [bus for bus in self.grid.buses if bus.active]
        bus_order = {bus: i for i, bus in enumerate(buses)}

        connectivity = create_connectivity(self.options.connectivity_mode)
        for bus in buses:
            connectivity.add_vertex(bus)
        for branch in self.grid.branches:
            if self.is_closed(branch):
                connectivity.add_edge(branch.bus_from, branch.bus_to, branch)

        components = connectivity.get_connected_components()
        component_of: Dict[BusDevice, int] = dict()
        for c, component in enumerate(components):
            for bus in component:
                component_of[bus] = c

        # every branch belongs to exactly one component
        branches_of: List[List[BranchDevice]] = [list() for _ in components]
        for branch in self.grid.branches:
            c = self._get_branch_component(branch, component_of)
            if c is not None:
                branches_of[c].append(branch)
            else:
                self.logger.add_warning("Branch disconnected at both sides, skipped", device=branch.name)

        networks = list()
        for c, component in enumerate(components):
            network = Network(num=c,
                              Sbase=self.Sbase,
                              connectivity_mode=self.options.connectivity_mode,
                              logger=Logger(component=c))
            self._build_component(network, sorted(component, key=lambda b: bus_order[b]), branches_of[c])
            networks.append(network)

        self.logger.add_info("Connected components", value=len(networks))
        return networks

    @staticmethod
    def _get_branch_component(branch: BranchDevice, component_of: Dict[BusDevice, int]) -> Union[int, None]:
        c_from = component_of.get(branch.bus_from, None) if branch.bus_from is not None else None
        c_to = component_of.get(branch.bus_to, None) if branch.bus_to is not None else None
        if c_from is not None and branch.connected_from:
            return c_from
        if c_to is not None and branch.connected_to:
            return c_to
        if c_from is not None and c_from == c_to:
            return c_from
        return None

    def _build_component(self, network: Network, bus_devices: List[BusDevice], branch_devices: List[BranchDevice]):
        """
        Fill a network
        :param network: Network to fill
        :param bus_devices: buses of the component
        :param branch_devices: branches of the component
        """
        SB = self.Sbase
        logger = network.logger

        bus_map: Dict[BusDevice, Bus] = dict()
        for dev in bus_devices:
            v = dev.v / dev.nominal_v if dev.v is not None else 1.0
            bus = network.add_bus(Bus(num=0, idtag=dev.name, nominal_v=dev.nominal_v, v=v,
                                      angle=np.deg2rad(dev.angle)))
            bus_map[dev] = bus

        branch_map: Dict[BranchDevice, Branch] = dict()
        for dev in branch_devices:
            branch_map[dev] = network.add_branch(self._create_branch(dev, bus_map, logger))

        self._create_branch_controls(network, branch_map, bus_map)
        self._create_injections(network, bus_map)
        self._create_voltage_controls(network)
        self._set_standby_generators(network)
        self._create_shunt_voltage_controls(network, bus_map)
        self._create_areas(network, bus_map)
        self._create_automation_systems(network, branch_map)
        self._create_secondary_voltage_control(network, bus_map)
        self._select_slack_buses(network, bus_map)

    def _create_branch(self, dev: BranchDevice, bus_map: Dict[BusDevice, Bus], logger: Logger) -> Branch:
        bus1 = bus_map.get(dev.bus_from, None)
        bus2 = bus_map.get(dev.bus_to, None)

        ref_bus = dev.bus_to if dev.bus_to is not None else dev.bus_from
        zbase = ref_bus.nominal_v * ref_bus.nominal_v / self.Sbase

        z = complex(dev.r, dev.x) / zbase
        if abs(z) < self.options.low_impedance_threshold:
            logger.add_warning("Low impedance branch replaced by the minimum impedance", device=dev.name,
                               value=abs(z), expected_value=self.options.low_impedance_threshold)
            z = complex(0.0, self.options.low_impedance_threshold)

        return Branch(num=0,
                      idtag=dev.name,
                      bus1=bus1,
                      bus2=bus2,
                      z=z,
                      y1=complex(dev.g_from, dev.b_from) * zbase,
                      y2=complex(dev.g_to, dev.b_to) * zbase,
                      r1=dev.ratio,
                      a1=np.deg2rad(dev.phase),
                      connected1=dev.connected_from and bus1 is not None,
                      connected2=dev.connected_to and bus2 is not None,
                      disconnection_allowed1=dev.disconnection_allowed_from,
                      disconnection_allowed2=dev.disconnection_allowed_to)

    def _create_branch_controls(self, network: Network, branch_map: Dict[BranchDevice, Branch],
                                bus_map: Dict[BusDevice, Bus]):
        for dev, branch in branch_map.items():

            if dev.phase_control is not None and self.options.phase_control:
                if branch.connected1 and branch.connected2:
                    pc = dev.phase_control
                    branch.phase_control = PhaseControl(branch=branch,
                                                        target_p=pc.target_p / self.Sbase,
                                                        side=pc.side,
                                                        taps=np.deg2rad(pc.taps),
                                                        mode=pc.mode)
                    network.phase_controls.append(branch.phase_control)
                else:
                    network.logger.add_warning("Phase control of an open branch discarded", device=dev.name)

            if dev.voltage_control is not None and self.options.transformer_voltage_control:
                vc = dev.voltage_control
                controlled = bus_map.get(vc.regulated_bus, None)
                if controlled is None:
                    network.logger.add_warning("Transformer regulating a bus of another component, control discarded",
                                               device=dev.name)
                elif controlled.transformer_voltage_control is not None:
                    network.logger.add_warning("Bus already regulated by another transformer, control discarded",
                                               device=dev.name)
                else:
                    branch.voltage_control = TransformerVoltageControl(branch=branch,
                                                                       controlled_bus=controlled,
                                                                       target_v=vc.target_v / controlled.nominal_v,
                                                                       taps=vc.taps,
                                                                       mode=vc.mode)
                    controlled.transformer_voltage_control = branch.voltage_control
                    network.transformer_voltage_controls.append(branch.voltage_control)

    def _create_injections(self, network: Network, bus_map: Dict[BusDevice, Bus]):
        SB = self.Sbase

        for dev in self.grid.get_injection_devices():
            if not dev.active or dev.bus not in bus_map:
                continue

            bus = bus_map[dev.bus]
            kwargs = dict(num=0,
                          idtag=dev.name,
                          bus=bus,
                          target_p=dev.p / SB,
                          min_p=dev.p_min / SB,
                          max_p=dev.p_max / SB,
                          target_q=dev.q / SB,
                          min_q=dev.q_min / SB,
                          max_q=dev.q_max / SB,
                          q_curve=[(p / SB, qmin / SB, qmax / SB) for p, qmin, qmax in dev.q_curve],
                          participation_factor=dev.participation_factor,
                          participating=dev.participate,
                          control_mode=(InjectionControlMode.VOLTAGE if dev.voltage_regulation
                                        else InjectionControlMode.REACTIVE_POWER))

            if isinstance(dev, ConverterDevice):
                gen = Converter(loss_factor=dev.loss_factor / 100.0, **kwargs)
            else:
                gen = Generator(**kwargs)

            if gen.is_voltage_controller():
                regulated = dev.regulated_bus if dev.regulated_bus is not None else dev.bus
                controlled = bus_map.get(regulated, None)
                if controlled is None:
                    network.logger.add_warning("Regulated bus out of the component, local regulation used",
                                               device=dev.name)
                    controlled = bus
                gen.target_v = (dev.v_set / controlled.nominal_v) if dev.v_set is not None else 1.0
                gen.regulated_bus = controlled
                if dev.standby_automaton is not None and self.options.svc_voltage_monitoring:
                    sa = dev.standby_automaton
                    vn = controlled.nominal_v
                    gen.standby_automaton = StandbyAutomaton(low_voltage_threshold=sa.low_voltage_threshold / vn,
                                                             high_voltage_threshold=sa.high_voltage_threshold / vn,
                                                             low_target_v=sa.low_target_v / vn,
                                                             high_target_v=sa.high_target_v / vn)
            else:
                gen.regulated_bus = None

            network.add_generator(gen)

        for dev in self.grid.loads:
            if dev.active and dev.bus in bus_map:
                network.add_load(Load(num=0, idtag=dev.name, bus=bus_map[dev.bus],
                                      target_p=dev.p / SB, target_q=dev.q / SB,
                                      conform_fraction=dev.conform_fraction, participating=dev.participate))

        for dev in self.grid.shunts:
            if dev.active and dev.bus in bus_map:
                bus = bus_map[dev.bus]
                ybase = bus.nominal_v * bus.nominal_v / SB
                network.add_shunt(Shunt(num=0, idtag=dev.name, bus=bus, g=dev.g * ybase, b=dev.b * ybase,
                                        b_per_section=dev.b_per_section * ybase,
                                        section=dev.section, max_section=dev.max_section))

    @staticmethod
    def _create_voltage_controls(network: Network):
        """
        Group the regulating generators into voltage controls (local, remote and shared)
        """
        logger = network.logger
        controls: Dict[Bus, GeneratorVoltageControl] = dict()

        for gen in network.generators:
            if not gen.is_voltage_controller():
                continue

            bus = gen.bus
            if bus.controller_voltage_control is not None:
                vc = bus.controller_voltage_control
                if vc.controlled_bus is not gen.regulated_bus:
                    logger.add_warning("Generators of the same bus regulating different buses, "
                                       "the first regulated bus is kept", device=gen.idtag,
                                       value=gen.regulated_bus.idtag, expected_value=vc.controlled_bus.idtag)
                gen.control_group = vc
                continue

            vc = controls.get(gen.regulated_bus, None)
            if vc is None:
                vc = GeneratorVoltageControl(controlled_bus=gen.regulated_bus, target_v=gen.target_v)
                controls[gen.regulated_bus] = vc
            elif abs(vc.target_v - gen.target_v) > 1e-6:
                logger.add_warning("Inconsistent voltage targets for the same bus, the first one is kept",
                                   device=gen.idtag, value=gen.target_v, expected_value=vc.target_v)
            vc.add_controller_bus(bus)
            gen.control_group = vc

        # a bus controlled by a control cannot be a remote controller of another bus
        for vc in controls.values():
            vc.controlled_bus.voltage_control = vc

        for vc in list(controls.values()):
            for bus in list(vc.controller_buses):
                if bus is not vc.controlled_bus and bus.voltage_control is not None:
                    logger.add_warning("Remote voltage control of a bus that is itself voltage controlled, "
                                       "control discarded", device=bus.idtag)
                    for gen in bus.get_controller_generators():
                        gen.switch_to_reactive_power(gen.initial_target_q)
                        gen.control_group = None
                    vc.controller_buses.remove(bus)
                    bus.controller_voltage_control = None

            if len(vc.controller_buses) == 0:
                vc.controlled_bus.voltage_control = None
                del controls[vc.controlled_bus]

        for vc in controls.values():
            bus = vc.controlled_bus
            if bus.transformer_voltage_control is not None:
                logger.add_warning("Bus regulated by generators and by a transformer, the transformer control "
                                   "is discarded", device=bus.idtag)
                tc = bus.transformer_voltage_control
                tc.branch.voltage_control = None
                network.transformer_voltage_controls.remove(tc)
                bus.transformer_voltage_control = None

            network.voltage_controls.append(vc)

    @staticmethod
    def _set_standby_generators(network: Network):
        """
        Generators with a stand by automaton start at zero reactive power, their voltage
        control being started later by the voltage monitoring
        """
        for gen in network.generators:
            if gen.standby_automaton is None:
                continue
            if gen.control_group is None:
                network.logger.add_warning("Stand by automaton of a generator without voltage control, discarded",
                                           device=gen.idtag)
                gen.standby_automaton = None
                continue
            gen.switch_to_reactive_power(0.0)
            network.logger.add_info("Generator in stand by", device=gen.idtag,
                                    value=gen.standby_automaton.low_voltage_threshold,
                                    expected_value=gen.standby_automaton.high_voltage_threshold)

    def _create_shunt_voltage_controls(self, network: Network, bus_map: Dict[BusDevice, Bus]):
        """
        Group the regulating shunts into voltage controls, generators and transformers keep the priority
        """
        if not self.options.shunt_voltage_control:
            return

        logger = network.logger
        shunt_map = {shunt.idtag: shunt for shunt in network.shunts}
        controls: Dict[Bus, ShuntVoltageControl] = dict()

        for dev in self.grid.shunts:
            shunt = shunt_map.get(dev.name, None)
            if shunt is None or dev.voltage_control is None:
                continue

            vc = dev.voltage_control
            controlled = bus_map.get(vc.regulated_bus, None)
            if controlled is None:
                logger.add_warning("Shunt regulating a bus of another component, control discarded", device=dev.name)
                continue

            if not shunt.has_sections():
                logger.add_warning("Shunt voltage control without sections, control discarded", device=dev.name)
                continue

            if controlled.voltage_control is not None or controlled.transformer_voltage_control is not None:
                logger.add_warning("Bus already voltage controlled, shunt control discarded", device=dev.name,
                                   value=controlled.idtag)
                continue

            control = controls.get(controlled, None)
            if control is None:
                deadband = vc.target_deadband / controlled.nominal_v if vc.target_deadband is not None else None
                control = ShuntVoltageControl(controlled_bus=controlled,
                                              target_v=vc.target_v / controlled.nominal_v,
                                              target_deadband=deadband)
                controls[controlled] = control
                network.shunt_voltage_controls.append(control)
            elif abs(control.target_v - vc.target_v / controlled.nominal_v) > 1e-6:
                logger.add_warning("Inconsistent voltage targets for the same bus, the first one is kept",
                                   device=dev.name, value=vc.target_v / controlled.nominal_v,
                                   expected_value=control.target_v)
            control.add_controller(shunt)

    def _create_areas(self, network: Network, bus_map: Dict[BusDevice, Bus]):
        area_map = dict()
        for dev, bus in bus_map.items():
            if dev.area is None:
                continue
            area = area_map.get(dev.area, None)
            if area is None:
                target = dev.area.interchange_target
                area = Area(num=len(network.areas), idtag=dev.area.name,
                            interchange_target=target / self.Sbase if target is not None else None)
                area_map[dev.area] = area
                network.areas.append(area)
            area.buses.append(bus)
            bus.area = area

        for branch in network.branches:
            for side in (BranchSide.ONE, BranchSide.TWO):
                bus = branch.get_bus(side)
                other = branch.get_bus(side.other())
                if bus is not None and bus.area is not None and (other is None or other.area is not bus.area):
                    bus.area.boundaries.append((branch, side))

    def _create_automation_systems(self, network: Network, branch_map: Dict[BranchDevice, Branch]):
        for dev in self.grid.overload_management_systems:
            if not dev.active:
                continue
            monitored = branch_map.get(dev.monitored_branch, None)
            operated = branch_map.get(dev.operated_branch, None)
            if monitored is None or operated is None:
                continue
            side_bus = monitored.get_bus(dev.monitored_side)
            if side_bus is None:
                network.logger.add_warning("Overload management system monitoring a dangling side, discarded",
                                           device=dev.name)
                continue
            i_base = get_current_base(self.Sbase, side_bus.nominal_v)
            network.overload_management_systems.append(
                OverloadManagementSystem(idtag=dev.name,
                                         monitored_branch=monitored,
                                         monitored_side=dev.monitored_side,
                                         threshold=dev.threshold / i_base,
                                         operated_branch=operated,
                                         open_branch=dev.open))

    def _create_secondary_voltage_control(self, network: Network, bus_map: Dict[BusDevice, Bus]):
        gen_map = {gen.idtag: gen for gen in network.generators}
        for dev in self.grid.secondary_voltage_control_zones:
            pilot = bus_map.get(dev.pilot_bus, None)
            if pilot is None:
                continue
            generators = [gen_map[g.name] for g in dev.generators if g.name in gen_map]
            if len(generators) == 0:
                network.logger.add_warning("Secondary voltage control zone without generators", device=dev.name)
                continue
            network.secondary_voltage_control_zones.append(
                SecondaryVoltageControlZone(idtag=dev.name,
                                            pilot_bus=pilot,
                                            target_v=dev.target_v / pilot.nominal_v,
                                            generators=generators))

    def _select_slack_buses(self, network: Network, bus_map: Dict[BusDevice, Bus]):
        """
        Pick the slack buses of the network, the first one is the angle reference
        """
        mode = self.options.slack_bus_selection_mode

        if mode == SlackBusSelectionMode.NAME:
            slack = [bus for dev, bus in bus_map.items() if dev.is_slack]

        elif mode == SlackBusSelectionMode.MOST_MESHED:
            def n_closed(bus: Bus) -> int:
                return sum(1 for br, _ in bus.branches if br.connected1 and br.connected2)

            slack = sorted(network.buses, key=lambda b: (-n_closed(b), -b.nominal_v, b.idtag))[:1]

        elif mode == SlackBusSelectionMode.LARGEST_GENERATOR:
            candidates = [bus for bus in network.buses if len(bus.generators)]
            slack = sorted(candidates, key=lambda b: (-sum(g.max_p for g in b.generators), b.idtag))[:1]

        else:
            raise ValueError(f"Unknown slack bus selection mode {mode}")

        if len(slack) == 0:
            network.logger.add_error("No slack bus could be selected", value=str(mode))
        else:
            network.logger.add_info("Slack bus selected", device=", ".join(b.idtag for b in slack),
                                    value=str(mode))

        network.set_slack_buses(slack)
