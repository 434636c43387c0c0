# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
"""
Transfer of the solved state into the network and computation of the derived results
"""
from typing import Tuple
import numpy as np
from FlowCalEngine.enumerations import VariableType, BranchSide
from FlowCalEngine.DataStructures.bus import Bus
from FlowCalEngine.DataStructures.branch import Branch
from FlowCalEngine.DataStructures.network import Network
from FlowCalEngine.Simulations.PowerFlow.Equations.equation_system import EquationSystem
from FlowCalEngine.Simulations.PowerFlow.Equations.terms import closed_branch_flow, open_branch_admittance


def compute_branch_flows(branch: Branch) -> Tuple[float, float, float, float]:
    """
    Powers leaving the buses into the branch
    :param branch: Branch
    :return: p1, q1, p2, q2
    """
    if branch.disabled:
        return 0.0, 0.0, 0.0, 0.0

    if branch.is_closed():
        b1 = branch.bus1
        b2 = branch.bus2
        args = (branch.G, branch.B, branch.y1.real, branch.y1.imag, branch.y2.real, branch.y2.imag,
                b1.v, b1.angle, b2.v, b2.angle, branch.r1, branch.a1)
        return (closed_branch_flow(1, False, *args)[0], closed_branch_flow(1, True, *args)[0],
                closed_branch_flow(2, False, *args)[0], closed_branch_flow(2, True, *args)[0])

    flows = [0.0, 0.0, 0.0, 0.0]
    for i, side in enumerate((BranchSide.ONE, BranchSide.TWO)):
        bus = branch.get_bus(side)
        if branch.is_connected(side) and bus is not None and not bus.disabled:
            y = open_branch_admittance(branch, side)
            k = bus.v * bus.v
            if side == BranchSide.ONE:
                k *= branch.r1 * branch.r1
            flows[2 * i] = y.real * k
            flows[2 * i + 1] = -y.imag * k
    return flows[0], flows[1], flows[2], flows[3]


def get_controller_bus_q(bus: Bus) -> float:
    """
    Reactive power produced by the voltage controlling generators of a bus
    :param bus: Bus
    :return: reactive power (p.u.)
    """
    return bus.q + bus.get_load_target_q() - bus.get_fixed_generation_target_q()


def get_slack_bus_active_power_mismatch(network: Network) -> float:
    """
    Sum over the slack buses of the specified minus the computed injection
    :param network: Network
    :return: mismatch (p.u.)
    """
    return sum(bus.get_target_p() - bus.p for bus in network.get_slack_buses())


def compute_network_results(network: Network):
    """
    Compute the branch flows and currents, the bus injections and the generators output
    from the bus voltages stored in the network
    :param network: Network
    """
    for bus in network.buses:
        if bus.disabled:
            bus.p = 0.0
            bus.q = 0.0
        else:
            bus.p = sum(sh.g * bus.v * bus.v for sh in bus.shunts)
            bus.q = sum(-sh.b * bus.v * bus.v for sh in bus.shunts)

    for branch in network.branches:
        branch.p1, branch.q1, branch.p2, branch.q2 = compute_branch_flows(branch)

        v1 = branch.bus1.v if branch.bus1 is not None else 0.0
        v2 = branch.bus2.v if branch.bus2 is not None else 0.0
        branch.i1 = np.sqrt(branch.p1 ** 2 + branch.q1 ** 2) / v1 if v1 > 0 else 0.0
        branch.i2 = np.sqrt(branch.p2 ** 2 + branch.q2 ** 2) / v2 if v2 > 0 else 0.0

        if branch.bus1 is not None and not branch.bus1.disabled:
            branch.bus1.p += branch.p1
            branch.bus1.q += branch.q1
        if branch.bus2 is not None and not branch.bus2.disabled:
            branch.bus2.p += branch.p2
            branch.bus2.q += branch.q2

    for bus in network.buses:
        # the slack buses generators take the active power that was not specified
        slack_excess = bus.p - bus.get_target_p() if bus.slack and not bus.disabled else 0.0
        n_gen = len(bus.generators)
        for gen in bus.generators:
            gen.p = gen.target_p + (slack_excess / n_gen if n_gen else 0.0)

        controllers = bus.get_controller_generators() if bus.is_voltage_controller_enabled() else list()
        controllers = [g for g in controllers if g.is_voltage_controller()]
        q_controlled = get_controller_bus_q(bus) if len(controllers) else 0.0
        ranges = np.array([max(g.get_max_q() - g.get_min_q(), 0.0) for g in controllers])
        total_range = ranges.sum()
        for gen in bus.generators:
            if gen.is_voltage_controller() and gen in controllers:
                if total_range > 0:
                    gen.q = q_controlled * ranges[controllers.index(gen)] / total_range
                else:
                    gen.q = q_controlled / len(controllers)
            else:
                gen.q = gen.target_q


def update_network_state(network: Network, equation_system: EquationSystem):
    """
    Copy the state vector values into the network elements and compute the results
    :param network: Network
    :param equation_system: EquationSystem
    """
    x = equation_system.state_vector.get()
    for var in equation_system.active_variables:
        val = float(x[var.row])
        if var.type == VariableType.BUS_V:
            network.buses[var.num].v = val
        elif var.type == VariableType.BUS_PHI:
            network.buses[var.num].angle = val
        elif var.type == VariableType.BRANCH_RHO1:
            network.branches[var.num].r1 = val
        elif var.type == VariableType.BRANCH_ALPHA1:
            network.branches[var.num].a1 = val

    compute_network_results(network)
