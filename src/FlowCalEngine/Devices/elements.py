# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
"""
Grid devices in physical units (kV, MW, MVAr, ohm, S, A, deg).
These are the only objects a user builds; the numerical layer works on
per-unit copies made by the NetworkBuilder.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple, Union
from FlowCalEngine.enumerations import BranchSide, TapControlMode


@dataclass(eq=False)
class AreaDevice:
    """
    Area with an optional interchange target (MW, positive when exporting)
    """
    name: str
    interchange_target: Union[float, None] = None

    # results
    interchange: float = 0.0


@dataclass(eq=False)
class BusDevice:
    """
    Bus
    """
    name: str
    nominal_v: float = 400.0  # kV
    v: Union[float, None] = None  # kV, warm start / result
    angle: float = 0.0  # deg, warm start / result
    is_slack: bool = False
    area: Union[AreaDevice, None] = None
    active: bool = True


@dataclass(eq=False)
class PhaseControlDevice:
    """
    Phase shifter controlling the active power flowing through its own branch
    """
    target_p: float  # MW
    side: BranchSide = BranchSide.ONE
    taps: List[float] = field(default_factory=list)  # deg, sorted
    mode: TapControlMode = TapControlMode.CONTINUOUS


@dataclass(eq=False)
class TransformerVoltageControlDevice:
    """
    Ratio tap changer regulating a bus voltage
    """
    regulated_bus: BusDevice
    target_v: float  # kV
    taps: List[float] = field(default_factory=list)  # p.u. ratios, sorted
    mode: TapControlMode = TapControlMode.CONTINUOUS


@dataclass(eq=False)
class BranchDevice:
    """
    Line or two windings transformer, pi model with the ideal transformer on the "from" side
    """
    name: str
    bus_from: Union[BusDevice, None]
    bus_to: Union[BusDevice, None]
    r: float = 0.0  # ohm, referred to the "to" side nominal voltage
    x: float = 0.0  # ohm
    g_from: float = 0.0  # S
    b_from: float = 0.0  # S
    g_to: float = 0.0  # S
    b_to: float = 0.0  # S
    ratio: float = 1.0  # p.u.
    phase: float = 0.0  # deg
    connected_from: bool = True
    connected_to: bool = True
    disconnection_allowed_from: bool = False
    disconnection_allowed_to: bool = False
    phase_control: Union[PhaseControlDevice, None] = None
    voltage_control: Union[TransformerVoltageControlDevice, None] = None

    # results
    p_from: float = 0.0
    q_from: float = 0.0
    p_to: float = 0.0
    q_to: float = 0.0
    i_from: float = 0.0
    i_to: float = 0.0


@dataclass(eq=False)
class StandbyAutomatonDevice:
    """
    Stand by automaton of a static var compensator: the voltage control starts
    only when the regulated voltage leaves the thresholds band
    """
    low_voltage_threshold: float  # kV
    high_voltage_threshold: float  # kV
    low_target_v: float  # kV
    high_target_v: float  # kV


@dataclass(eq=False)
class GeneratorDevice:
    """
    Generator
    """
    name: str
    bus: BusDevice
    p: float = 0.0  # MW
    p_min: float = -9999.0
    p_max: float = 9999.0
    q: float = 0.0  # MVAr, used when not regulating voltage
    q_min: float = -9999.0
    q_max: float = 9999.0
    q_curve: List[Tuple[float, float, float]] = field(default_factory=list)  # (p, q_min, q_max)
    voltage_regulation: bool = True
    v_set: Union[float, None] = None  # kV
    regulated_bus: Union[BusDevice, None] = None
    participation_factor: float = 0.0
    participate: bool = True
    active: bool = True
    standby_automaton: Union[StandbyAutomatonDevice, None] = None

    # results
    p_result: float = 0.0
    q_result: float = 0.0


@dataclass(eq=False)
class ConverterDevice(GeneratorDevice):
    """
    HVDC converter station, seen by the AC network as an injection
    """
    loss_factor: float = 0.0  # % of the transmitted power


@dataclass(eq=False)
class LoadDevice:
    """
    Load
    """
    name: str
    bus: BusDevice
    p: float = 0.0  # MW
    q: float = 0.0  # MVAr
    conform_fraction: float = 1.0
    participate: bool = True
    active: bool = True

    # results
    p_result: float = 0.0


@dataclass(eq=False)
class ShuntVoltageControlDevice:
    """
    Voltage regulation by the sections of a shunt
    """
    regulated_bus: BusDevice
    target_v: float  # kV
    target_deadband: Union[float, None] = None  # kV, full band width


@dataclass(eq=False)
class ShuntDevice:
    """
    Shunt admittance at nominal voltage, optionally made of switchable sections
    """
    name: str
    bus: BusDevice
    g: float = 0.0  # S
    b: float = 0.0  # S, fixed part
    b_per_section: float = 0.0  # S
    section: int = 0
    max_section: int = 0
    voltage_control: Union[ShuntVoltageControlDevice, None] = None
    active: bool = True

    # results
    section_result: int = 0
    q_result: float = 0.0  # MVAr, injected


@dataclass(eq=False)
class OverloadManagementSystemDevice:
    """
    Automation system that switches a branch when a monitored current goes above a threshold
    """
    name: str
    monitored_branch: BranchDevice
    threshold: float  # A
    operated_branch: BranchDevice
    open: bool = True
    monitored_side: BranchSide = BranchSide.ONE
    active: bool = True


@dataclass(eq=False)
class SecondaryVoltageControlZoneDevice:
    """
    Pilot point voltage control zone
    """
    name: str
    pilot_bus: BusDevice
    target_v: float  # kV
    generators: List[GeneratorDevice] = field(default_factory=list)
