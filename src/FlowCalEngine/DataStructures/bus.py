# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from __future__ import annotations

from typing import List, Tuple, Union, TYPE_CHECKING
from FlowCalEngine.enumerations import BranchSide, ReactiveLimitType
from FlowCalEngine.DataStructures.injections import Generator, Load, Shunt

if TYPE_CHECKING:
    from FlowCalEngine.DataStructures.branch import Branch, TransformerVoltageControl
    from FlowCalEngine.DataStructures.area import Area


class GeneratorVoltageControl:
    """
    Voltage control of one bus by the generators of one or several buses (local, remote or shared control)
    """

    def __init__(self, controlled_bus: "Bus", target_v: float):
        """

        :param controlled_bus: Bus whose voltage is regulated
        :param target_v: target voltage (p.u.)
        """
        self.controlled_bus = controlled_bus
        self.target_v = target_v
        self.controller_buses: List[Bus] = list()
        self.disabled = False

    def add_controller_bus(self, bus: "Bus"):
        self.controller_buses.append(bus)
        bus.controller_voltage_control = self

    def is_local(self) -> bool:
        return len(self.controller_buses) == 1 and self.controller_buses[0] is self.controlled_bus

    def get_enabled_controller_buses(self) -> List["Bus"]:
        """
        Controller buses still controlling the voltage
        :return: list of buses
        """
        if self.disabled or self.controlled_bus.disabled:
            return list()
        return [b for b in self.controller_buses if not b.disabled and b.is_voltage_controller_enabled()]

    def is_enabled(self) -> bool:
        return len(self.get_enabled_controller_buses()) > 0

    def disable(self):
        """
        Disable the control, the generators go back to their reactive power set point
        """
        self.disabled = True
        for bus in self.controller_buses:
            for gen in bus.get_controller_generators():
                gen.switch_to_reactive_power(gen.initial_target_q)


class Bus:
    """
    Network bus, all values in p.u.
    """

    def __init__(self, num: int, idtag: str, nominal_v: float, v: float = 1.0, angle: float = 0.0):
        """

        :param num: index in the network
        :param idtag: identifier of the original device
        :param nominal_v: nominal voltage (kV)
        :param v: voltage magnitude (p.u.)
        :param angle: voltage angle (rad)
        """
        self.num = num
        self.idtag = idtag
        self.nominal_v = nominal_v

        self.v = v
        self.angle = angle

        self.slack = False
        self.reference = False
        self.disabled = False

        self.area: Union["Area", None] = None

        self.generators: List[Generator] = list()
        self.loads: List[Load] = list()
        self.shunts: List[Shunt] = list()
        self.branches: List[Tuple["Branch", BranchSide]] = list()

        # control this bus is regulated by
        self.voltage_control: Union[GeneratorVoltageControl, None] = None
        self.transformer_voltage_control: Union["TransformerVoltageControl", None] = None

        # control this bus takes part in as a controller
        self.controller_voltage_control: Union[GeneratorVoltageControl, None] = None

        # number of PQ -> PV switches done by the reactive limits outer loop
        self.pq_pv_switch_count = 0

        # results
        self.p = 0.0
        self.q = 0.0

    def __repr__(self):
        return self.idtag

    def get_target_p(self) -> float:
        """
        Specified active power injection
        :return: float
        """
        return sum(g.target_p for g in self.generators) - sum(l.target_p for l in self.loads)

    def get_load_target_q(self) -> float:
        return sum(l.target_q for l in self.loads)

    def get_fixed_generation_target_q(self) -> float:
        """
        Reactive power of the generators that do not control the voltage
        :return: float
        """
        return sum(g.target_q for g in self.generators if not g.is_voltage_controller())

    def get_target_q(self) -> float:
        """
        Specified reactive power injection
        :return: float
        """
        return self.get_fixed_generation_target_q() - self.get_load_target_q()

    def get_controller_generators(self) -> List[Generator]:
        """
        Generators taking part in the voltage control this bus is a controller of
        :return: list of generators
        """
        if self.controller_voltage_control is None:
            return list()
        return [g for g in self.generators if g.control_group is self.controller_voltage_control]

    def is_voltage_controller_enabled(self) -> bool:
        """
        Is any of the generators of this bus controlling the voltage?
        :return: bool
        """
        return any(g.is_voltage_controller() for g in self.get_controller_generators())

    def get_q_limit_type(self) -> Union[ReactiveLimitType, None]:
        for g in self.get_controller_generators():
            if g.q_limit_type is not None:
                return g.q_limit_type
        return None

    def get_min_q(self) -> float:
        return sum(g.get_min_q() for g in self.get_controller_generators())

    def get_max_q(self) -> float:
        return sum(g.get_max_q() for g in self.get_controller_generators())

    def set_voltage_control_enabled(self, enabled: bool, limit_type: Union[ReactiveLimitType, None] = None):
        """
        Explicit transition of the controller generators of this bus
        between voltage control and reactive power at limit
        :param enabled: voltage control?
        :param limit_type: limit being hit when disabling
        """
        for g in self.get_controller_generators():
            if enabled:
                g.switch_to_voltage()
            elif limit_type == ReactiveLimitType.MAX_Q:
                g.switch_to_reactive_power(g.get_max_q(), limit_type)
            elif limit_type == ReactiveLimitType.MIN_Q:
                g.switch_to_reactive_power(g.get_min_q(), limit_type)
            else:
                g.switch_to_reactive_power(g.initial_target_q)

    def is_voltage_controlled(self) -> bool:
        """
        Is this bus voltage held by a generator or by a transformer?
        :return: bool
        """
        if self.voltage_control is not None and self.voltage_control.is_enabled():
            return True
        if self.transformer_voltage_control is not None and self.transformer_voltage_control.is_continuous():
            return True
        return False

    def get_target_v(self) -> float:
        """
        Voltage target, generator controls have the priority
        :return: float
        """
        if self.voltage_control is not None and self.voltage_control.is_enabled():
            return self.voltage_control.target_v
        if self.transformer_voltage_control is not None:
            return self.transformer_voltage_control.target_v
        return self.v
