# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from __future__ import annotations

from typing import List, Tuple, Union, TYPE_CHECKING
import numpy as np
from FlowCalEngine.enumerations import InjectionControlMode, ReactiveLimitType, SectionDirection

if TYPE_CHECKING:
    from FlowCalEngine.DataStructures.bus import Bus


class Generator:
    """
    Generator injection, all values in p.u.
    """

    def __init__(self,
                 num: int,
                 idtag: str,
                 bus: "Bus",
                 target_p: float = 0.0,
                 min_p: float = -99.0,
                 max_p: float = 99.0,
                 target_q: float = 0.0,
                 min_q: float = -99.0,
                 max_q: float = 99.0,
                 q_curve: Union[List[Tuple[float, float, float]], None] = None,
                 target_v: float = 1.0,
                 participation_factor: float = 0.0,
                 participating: bool = True,
                 control_mode: InjectionControlMode = InjectionControlMode.REACTIVE_POWER):
        """

        :param num: index in the network
        :param idtag: identifier of the original device
        :param bus: Bus where the generator is connected
        :param target_p: active power set point
        :param min_p: minimum active power
        :param max_p: maximum active power
        :param target_q: reactive power set point (used when not controlling the voltage)
        :param min_q: minimum reactive power
        :param max_q: maximum reactive power
        :param q_curve: reactive capability curve [(p, q_min, q_max), ...] sorted by p
        :param target_v: voltage set point
        :param participation_factor: weight for the slack distribution
        :param participating: does it take part in the slack distribution?
        :param control_mode: InjectionControlMode
        """
        self.num = num
        self.idtag = idtag
        self.bus = bus

        self.target_p = target_p
        self.initial_target_p = target_p
        self.min_p = min_p
        self.max_p = max_p

        self.target_q = target_q
        self.initial_target_q = target_q
        self.min_q = min_q
        self.max_q = max_q
        self.q_curve = np.array(q_curve if q_curve is not None else [], dtype=float).reshape(-1, 3)

        self.target_v = target_v
        self.regulated_bus: Union["Bus", None] = None

        self.participation_factor = participation_factor
        self.participating = participating

        self.control_mode = control_mode

        # voltage control this generator takes part in (set by the builder)
        self.control_group = None

        # limit that forced the switch to reactive power control, if any
        self.q_limit_type: Union[ReactiveLimitType, None] = None

        # voltage band starting the control of a stand by generator
        self.standby_automaton: Union[StandbyAutomaton, None] = None

        # results
        self.p = 0.0
        self.q = 0.0

    def __repr__(self):
        return self.idtag

    def get_min_q(self) -> float:
        """
        Minimum reactive power at the current active power set point
        :return: float
        """
        if len(self.q_curve):
            return float(np.interp(self.target_p, self.q_curve[:, 0], self.q_curve[:, 1]))
        return self.min_q

    def get_max_q(self) -> float:
        """
        Maximum reactive power at the current active power set point
        :return: float
        """
        if len(self.q_curve):
            return float(np.interp(self.target_p, self.q_curve[:, 0], self.q_curve[:, 2]))
        return self.max_q

    def is_voltage_controller(self) -> bool:
        return self.control_mode == InjectionControlMode.VOLTAGE

    def switch_to_reactive_power(self, target_q: float, limit_type: Union[ReactiveLimitType, None] = None):
        """
        Leave the voltage control and fix the reactive power
        :param target_q: reactive power to hold
        :param limit_type: limit that was hit, None if the control was removed for another reason
        """
        self.control_mode = InjectionControlMode.REACTIVE_POWER
        self.target_q = target_q
        self.q_limit_type = limit_type

    def switch_to_voltage(self):
        """
        Go back to voltage control
        """
        self.control_mode = InjectionControlMode.VOLTAGE
        self.q_limit_type = None

    def reset_target_p(self):
        self.target_p = self.initial_target_p

    def get_p_range(self) -> Tuple[float, float]:
        return self.min_p, self.max_p

    def is_plausible_participant(self) -> bool:
        """
        Generators with a meaningless active power range cannot take part in the slack distribution
        :return: bool
        """
        return self.participating and self.max_p > self.min_p and self.min_p <= self.target_p <= self.max_p


class Converter(Generator):
    """
    HVDC converter station seen from the AC side
    """

    def __init__(self, loss_factor: float = 0.0, **kwargs):
        """

        :param loss_factor: losses as a fraction of the transmitted power
        :param kwargs: Generator arguments
        """
        Generator.__init__(self, **kwargs)
        self.loss_factor = loss_factor

        # the power injected into the AC grid is reduced by the converter losses
        if self.target_p > 0:
            self.target_p *= (1.0 - loss_factor)
            self.initial_target_p = self.target_p


class Load:
    """
    Load, all values in p.u.
    """

    def __init__(self, num: int, idtag: str, bus: "Bus", target_p: float = 0.0, target_q: float = 0.0,
                 conform_fraction: float = 1.0, participating: bool = True):
        self.num = num
        self.idtag = idtag
        self.bus = bus
        self.target_p = target_p
        self.initial_target_p = target_p
        self.target_q = target_q
        self.conform_fraction = conform_fraction
        self.participating = participating

    def __repr__(self):
        return self.idtag

    def reset_target_p(self):
        self.target_p = self.initial_target_p

    def get_conform_p(self) -> float:
        return self.initial_target_p * self.conform_fraction


class Shunt:
    """
    Shunt admittance in p.u. (consumes P = g v², Q = -b v²).
    The susceptance is made of a fixed part plus a number of identical sections.
    """

    def __init__(self, num: int, idtag: str, bus: "Bus", g: float = 0.0, b: float = 0.0,
                 b_per_section: float = 0.0, section: int = 0, max_section: int = 0):
        """

        :param num: index in the network
        :param idtag: identifier of the original device
        :param bus: Bus where the shunt is connected
        :param g: conductance
        :param b: fixed susceptance
        :param b_per_section: susceptance of one section
        :param section: number of sections in service
        :param max_section: number of available sections
        """
        self.num = num
        self.idtag = idtag
        self.bus = bus
        self.g = g
        self.b_fixed = b
        self.b_per_section = b_per_section
        self.max_section = max_section
        self.section = min(max(section, 0), max_section)
        self.b = self.get_section_b(self.section)

        # voltage control this shunt takes part in (set by the builder)
        self.voltage_control: Union["ShuntVoltageControl", None] = None

    def __repr__(self):
        return self.idtag

    def has_sections(self) -> bool:
        return self.max_section > 0 and self.b_per_section != 0.0

    def get_section_b(self, section: int) -> float:
        return self.b_fixed + section * self.b_per_section

    def set_section(self, section: int):
        self.section = section
        self.b = self.get_section_b(section)

    def update_section_b(self, delta_b: float,
                         allowed_direction: Union[SectionDirection, None] = None) -> Union[SectionDirection, None]:
        """
        Move one section towards the susceptance b + delta_b
        :param delta_b: wished susceptance change
        :param allowed_direction: only move in this direction (both if None)
        :return: direction of the move, None if the section did not change
        """
        if not self.has_sections():
            return None

        closest = int(round((self.b + delta_b - self.b_fixed) / self.b_per_section))
        closest = min(max(closest, 0), self.max_section)

        if closest > self.section:
            direction = SectionDirection.INCREASE
            new_section = self.section + 1
        elif closest < self.section:
            direction = SectionDirection.DECREASE
            new_section = self.section - 1
        else:
            return None

        if allowed_direction is not None and allowed_direction != direction:
            return None

        self.set_section(new_section)
        return direction


class ShuntVoltageControl:
    """
    Voltage control of one bus by the sections of one or several shunts
    """

    def __init__(self, controlled_bus: "Bus", target_v: float, target_deadband: Union[float, None] = None):
        """

        :param controlled_bus: Bus whose voltage is regulated
        :param target_v: target voltage (p.u.)
        :param target_deadband: width of the band around the target (p.u.), None for the default one
        """
        self.controlled_bus = controlled_bus
        self.target_v = target_v
        self.target_deadband = target_deadband
        self.controllers: List[Shunt] = list()

    def add_controller(self, shunt: Shunt):
        self.controllers.append(shunt)
        shunt.voltage_control = self

    def get_enabled_controllers(self) -> List[Shunt]:
        if self.controlled_bus.disabled:
            return list()
        return [sh for sh in self.controllers if not sh.bus.disabled]


class StandbyAutomaton:
    """
    Voltage band of a generator kept in stand by, all values in p.u.
    """

    def __init__(self, low_voltage_threshold: float, high_voltage_threshold: float,
                 low_target_v: float, high_target_v: float):
        self.low_voltage_threshold = low_voltage_threshold
        self.high_voltage_threshold = high_voltage_threshold
        self.low_target_v = low_target_v
        self.high_target_v = high_target_v
