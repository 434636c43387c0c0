# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
"""
Small grids built in code, shared by the tests
"""
import numpy as np
from FlowCalEngine.api import *

# tan(phi) = 2 phi: starting point where the undamped Newton iterations of sin(phi) = 0 cycle
CYCLE_ANGLE = 1.16556118520721141


def two_bus_grid(p_max: float = 9999.0) -> MultiCircuit:
    """
    Generator regulating 102 kV at B1, 50 MW + 20 MVAr load at B2, 1 + 10j ohm line (100 kV)
    :param p_max: generator maximum active power (MW)
    """
    grid = MultiCircuit(name='two bus', Sbase=100.0)
    b1 = grid.add_bus(BusDevice(name='B1', nominal_v=100.0, is_slack=True))
    b2 = grid.add_bus(BusDevice(name='B2', nominal_v=100.0))
    grid.add_branch(BranchDevice(name='L12', bus_from=b1, bus_to=b2, r=1.0, x=10.0))
    grid.add_generator(GeneratorDevice(name='G1', bus=b1, p=0.0, p_min=0.0, p_max=p_max, v_set=102.0))
    grid.add_load(LoadDevice(name='LD2', bus=b2, p=50.0, q=20.0))
    return grid


def two_bus_solution(v1: float = 1.02, p: float = 0.5, q: float = 0.2, r: float = 0.01, x: float = 0.1):
    """
    Closed form voltage at the load bus of a two bus grid
    :return: magnitude (p.u.), angle (rad)
    """
    a = r * p + x * q
    b = x * p - r * q
    # u^4 + (2a - v1^2) u^2 + a^2 + b^2 = 0, the high voltage root is the operating point
    roots = np.roots([1.0, 2 * a - v1 * v1, a * a + b * b])
    u = np.sqrt(np.max(roots.real))
    angle = -np.arctan2(b / u, u + a / u)
    return u, angle


def angle_grid(angle: float, p2: float = 0.0) -> MultiCircuit:
    """
    Two voltage controlled buses joined by a 1 p.u. reactance (10 kV, 1 ohm),
    the active power balance at B2 reads sin(phi2) = p2
    :param angle: starting angle of B2 (rad)
    :param p2: generation at B2 (p.u.)
    """
    grid = MultiCircuit(name='angle', Sbase=100.0)
    b1 = grid.add_bus(BusDevice(name='B1', nominal_v=10.0, is_slack=True))
    b2 = grid.add_bus(BusDevice(name='B2', nominal_v=10.0, angle=float(np.rad2deg(angle))))
    grid.add_branch(BranchDevice(name='L12', bus_from=b1, bus_to=b2, r=0.0, x=1.0))
    grid.add_generator(GeneratorDevice(name='G1', bus=b1, p=0.0, v_set=10.0))
    grid.add_generator(GeneratorDevice(name='G2', bus=b2, p=p2 * 100.0, v_set=10.0))
    return grid


def ring_grid() -> MultiCircuit:
    """
    Three 132 kV buses in a ring: slack generator at B1, generator at B2, load at B3
    """
    grid = MultiCircuit(name='ring', Sbase=100.0)
    b1 = grid.add_bus(BusDevice(name='B1', nominal_v=132.0, is_slack=True))
    b2 = grid.add_bus(BusDevice(name='B2', nominal_v=132.0))
    b3 = grid.add_bus(BusDevice(name='B3', nominal_v=132.0))
    grid.add_branch(BranchDevice(name='L12', bus_from=b1, bus_to=b2, r=2.0, x=20.0, b_from=5e-5, b_to=5e-5))
    grid.add_branch(BranchDevice(name='L23', bus_from=b2, bus_to=b3, r=2.0, x=20.0, b_from=5e-5, b_to=5e-5))
    grid.add_branch(BranchDevice(name='L13', bus_from=b1, bus_to=b3, r=2.0, x=20.0, b_from=5e-5, b_to=5e-5))
    grid.add_generator(GeneratorDevice(name='G1', bus=b1, p=100.0, p_min=0.0, p_max=300.0, v_set=134.0))
    grid.add_generator(GeneratorDevice(name='G2', bus=b2, p=50.0, p_min=0.0, p_max=100.0, v_set=133.0))
    grid.add_load(LoadDevice(name='LD3', bus=b3, p=200.0, q=50.0))
    grid.add_shunt(ShuntDevice(name='SH3', bus=b3, g=0.0, b=1e-4))
    return grid


def two_islands_grid() -> MultiCircuit:
    """
    The ring grid plus a second island made of a generator bus feeding a load bus
    """
    grid = ring_grid()
    grid.name = 'two islands'
    b4 = grid.add_bus(BusDevice(name='B4', nominal_v=20.0))
    b5 = grid.add_bus(BusDevice(name='B5', nominal_v=20.0))
    grid.add_branch(BranchDevice(name='L45', bus_from=b4, bus_to=b5, r=0.1, x=0.4))
    grid.add_generator(GeneratorDevice(name='G4', bus=b4, p=0.0, p_min=0.0, p_max=50.0, v_set=20.5))
    grid.add_load(LoadDevice(name='LD5', bus=b5, p=10.0, q=3.0))
    return grid


def areas_grid(target_a: float = 30.0) -> MultiCircuit:
    """
    Two areas joined by a tie line, each one with a generator and a load
    :param target_a: interchange target of area A (MW), area B gets the opposite
    """
    grid = MultiCircuit(name='areas', Sbase=100.0)
    area_a = grid.add_area(AreaDevice(name='A', interchange_target=target_a))
    area_b = grid.add_area(AreaDevice(name='B', interchange_target=-target_a))
    a1 = grid.add_bus(BusDevice(name='A1', nominal_v=132.0, is_slack=True, area=area_a))
    a2 = grid.add_bus(BusDevice(name='A2', nominal_v=132.0, area=area_a))
    b1 = grid.add_bus(BusDevice(name='B1', nominal_v=132.0, area=area_b))
    b2 = grid.add_bus(BusDevice(name='B2', nominal_v=132.0, area=area_b))
    grid.add_branch(BranchDevice(name='LA', bus_from=a1, bus_to=a2, r=1.0, x=10.0))
    grid.add_branch(BranchDevice(name='LB', bus_from=b1, bus_to=b2, r=1.0, x=10.0))
    grid.add_branch(BranchDevice(name='TIE', bus_from=a2, bus_to=b1, r=1.0, x=10.0))
    grid.add_generator(GeneratorDevice(name='GA', bus=a1, p=60.0, p_min=0.0, p_max=200.0, v_set=132.0))
    grid.add_generator(GeneratorDevice(name='GB', bus=b2, p=60.0, p_min=0.0, p_max=200.0, v_set=132.0))
    grid.add_load(LoadDevice(name='LDA', bus=a2, p=60.0, q=10.0))
    grid.add_load(LoadDevice(name='LDB', bus=b1, p=60.0, q=10.0))
    return grid


def overload_grid(threshold: float = 100.0) -> MultiCircuit:
    """
    Two parallel lines B1-B2 feeding a load, and a feeder B2-B3 that an automation
    system opens when the current of the first line goes above the threshold
    :param threshold: current threshold (A)
    """
    grid = MultiCircuit(name='overload', Sbase=100.0)
    b1 = grid.add_bus(BusDevice(name='B1', nominal_v=132.0, is_slack=True))
    b2 = grid.add_bus(BusDevice(name='B2', nominal_v=132.0))
    b3 = grid.add_bus(BusDevice(name='B3', nominal_v=132.0))
    l1 = grid.add_branch(BranchDevice(name='L1', bus_from=b1, bus_to=b2, r=1.0, x=10.0))
    grid.add_branch(BranchDevice(name='L2', bus_from=b1, bus_to=b2, r=1.0, x=10.0))
    l3 = grid.add_branch(BranchDevice(name='L3', bus_from=b2, bus_to=b3, r=1.0, x=10.0))
    grid.add_generator(GeneratorDevice(name='G1', bus=b1, p=0.0, p_min=0.0, p_max=500.0, v_set=132.0))
    grid.add_load(LoadDevice(name='LD2', bus=b2, p=100.0, q=20.0))
    grid.add_load(LoadDevice(name='LD3', bus=b3, p=20.0, q=5.0))
    grid.add_overload_management_system(OverloadManagementSystemDevice(name='OMS1',
                                                                       monitored_branch=l1,
                                                                       threshold=threshold,
                                                                       operated_branch=l3,
                                                                       open=True))
    return grid


def phase_shifter_grid(taps=None, target_p: float = 40.0) -> MultiCircuit:
    """
    A line in parallel with a phase shifter controlling its own active power
    :param taps: phase taps (deg), empty for a continuous control
    :param target_p: active power target of the phase shifter (MW)
    """
    grid = MultiCircuit(name='phase shifter', Sbase=100.0)
    b1 = grid.add_bus(BusDevice(name='B1', nominal_v=132.0, is_slack=True))
    b2 = grid.add_bus(BusDevice(name='B2', nominal_v=132.0))
    grid.add_branch(BranchDevice(name='L12', bus_from=b1, bus_to=b2, r=1.0, x=15.0))
    grid.add_branch(BranchDevice(name='PS12', bus_from=b1, bus_to=b2, r=0.5, x=15.0,
                                 phase_control=PhaseControlDevice(target_p=target_p,
                                                                  taps=list(taps) if taps is not None else [])))
    grid.add_generator(GeneratorDevice(name='G1', bus=b1, p=0.0, p_min=0.0, p_max=500.0, v_set=132.0))
    grid.add_load(LoadDevice(name='LD2', bus=b2, p=100.0, q=20.0))
    return grid


def tap_changer_grid(taps=None, target_v: float = 132.0) -> MultiCircuit:
    """
    A transformer whose ratio regulates the voltage of the load bus
    :param taps: ratio taps (p.u.), empty for a continuous control
    :param target_v: voltage target of the load bus (kV)
    """
    grid = MultiCircuit(name='tap changer', Sbase=100.0)
    b1 = grid.add_bus(BusDevice(name='B1', nominal_v=132.0, is_slack=True))
    b2 = grid.add_bus(BusDevice(name='B2', nominal_v=132.0))
    grid.add_branch(BranchDevice(name='T12', bus_from=b1, bus_to=b2, r=0.5, x=12.0,
                                 voltage_control=TransformerVoltageControlDevice(
                                     regulated_bus=b2,
                                     target_v=target_v,
                                     taps=list(taps) if taps is not None else [])))
    grid.add_generator(GeneratorDevice(name='G1', bus=b1, p=0.0, p_min=0.0, p_max=500.0, v_set=132.0))
    grid.add_load(LoadDevice(name='LD2', bus=b2, p=80.0, q=40.0))
    return grid


def pilot_grid(pilot_target: float = 132.0) -> MultiCircuit:
    """
    Load bus B3 between the slack B1 and a generator B2, B3 being the pilot bus of a
    secondary voltage control zone driving G2
    :param pilot_target: voltage target of the pilot bus (kV)
    """
    grid = MultiCircuit(name='pilot', Sbase=100.0)
    b1 = grid.add_bus(BusDevice(name='B1', nominal_v=132.0, is_slack=True))
    b2 = grid.add_bus(BusDevice(name='B2', nominal_v=132.0))
    b3 = grid.add_bus(BusDevice(name='B3', nominal_v=132.0))
    grid.add_branch(BranchDevice(name='L13', bus_from=b1, bus_to=b3, r=2.0, x=20.0))
    grid.add_branch(BranchDevice(name='L23', bus_from=b2, bus_to=b3, r=2.0, x=20.0))
    grid.add_generator(GeneratorDevice(name='G1', bus=b1, p=0.0, p_min=0.0, p_max=500.0, v_set=132.0))
    g2 = grid.add_generator(GeneratorDevice(name='G2', bus=b2, p=50.0, p_min=0.0, p_max=500.0, v_set=132.0))
    grid.add_load(LoadDevice(name='LD3', bus=b3, p=100.0, q=50.0))
    grid.add_secondary_voltage_control_zone(SecondaryVoltageControlZoneDevice(name='Z1',
                                                                              pilot_bus=b3,
                                                                              target_v=pilot_target,
                                                                              generators=[g2]))
    return grid


def weak_feeder_grid(load_p: float = 80.0, load_q: float = 40.0) -> MultiCircuit:
    """
    Slack generator holding 132 kV at B1 feeding a load at B2 through a 2 + 40j ohm line,
    about 119 kV at B2 at full load
    :param load_p: load active power (MW)
    :param load_q: load reactive power (MVAr)
    """
    grid = MultiCircuit(name='weak feeder', Sbase=100.0)
    b1 = grid.add_bus(BusDevice(name='B1', nominal_v=132.0, is_slack=True))
    b2 = grid.add_bus(BusDevice(name='B2', nominal_v=132.0))
    grid.add_branch(BranchDevice(name='L12', bus_from=b1, bus_to=b2, r=2.0, x=40.0))
    grid.add_generator(GeneratorDevice(name='G1', bus=b1, p=0.0, p_min=0.0, p_max=300.0, v_set=132.0))
    grid.add_load(LoadDevice(name='LD2', bus=b2, p=load_p, q=load_q))
    return grid


def shunt_grid(target_v: float = 130.0, max_section: int = 10) -> MultiCircuit:
    """
    Weak feeder with a sectioned capacitor bank regulating the load bus,
    one section being about 0.02 p.u. of voltage
    :param target_v: regulated voltage (kV)
    :param max_section: number of sections
    """
    grid = weak_feeder_grid()
    b2 = grid.get_element('B2')
    grid.add_shunt(ShuntDevice(name='SH2', bus=b2, b_per_section=6e-4, section=0, max_section=max_section,
                               voltage_control=ShuntVoltageControlDevice(regulated_bus=b2, target_v=target_v)))
    return grid


def standby_grid(load_p: float = 80.0, load_q: float = 40.0) -> MultiCircuit:
    """
    Weak feeder with a static var compensator in stand by at the load bus,
    started below 125 kV (target 128 kV) or above 140 kV (target 136 kV)
    """
    grid = weak_feeder_grid(load_p=load_p, load_q=load_q)
    b2 = grid.get_element('B2')
    automaton = StandbyAutomatonDevice(low_voltage_threshold=125.0, high_voltage_threshold=140.0,
                                       low_target_v=128.0, high_target_v=136.0)
    grid.add_generator(GeneratorDevice(name='SVC2', bus=b2, p=0.0, p_min=0.0, p_max=0.0, participate=False,
                                       v_set=132.0, standby_automaton=automaton))
    return grid


def build_network(grid: MultiCircuit, options: PowerFlowOptions = None, num: int = 0) -> Network:
    """
    Per unit network of one component of a grid
    """
    options = PowerFlowOptions() if options is None else options
    return NetworkBuilder(grid, options).build()[num]
