# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
from FlowCalEngine.basic_structures import Vec
from FlowCalEngine.enumerations import EquationType
from FlowCalEngine.DataStructures.bus import Bus
from FlowCalEngine.DataStructures.network import Network
from FlowCalEngine.Simulations.PowerFlow.Equations.equation import Equation
from FlowCalEngine.Simulations.PowerFlow.Equations.equation_system import EquationSystem


def _reactive_offset(bus: Bus) -> float:
    # reactive power the controller generators must produce besides the flows
    return bus.get_load_target_q() - bus.get_fixed_generation_target_q()


def get_equation_target(network: Network, eq: Equation) -> float:
    """
    Target of an equation computed from the current network state
    :param network: Network
    :param eq: Equation
    :return: target value
    """
    if eq.type == EquationType.BUS_TARGET_P:
        return network.buses[eq.num].get_target_p()

    elif eq.type == EquationType.BUS_TARGET_Q:
        return network.buses[eq.num].get_target_q()

    elif eq.type == EquationType.BUS_TARGET_V:
        return network.buses[eq.num].get_target_v()

    elif eq.type == EquationType.BUS_TARGET_PHI:
        return 0.0

    elif eq.type == EquationType.BUS_DISTR_SLACK_P:
        pivot: Bus = eq.data["pivot"]
        return network.buses[eq.num].get_target_p() - pivot.get_target_p()

    elif eq.type == EquationType.BUS_DISTR_Q:
        pivot: Bus = eq.data["pivot"]
        bus = network.buses[eq.num]
        return _reactive_offset(pivot) / eq.data["k_pivot"] - _reactive_offset(bus) / eq.data["k"]

    elif eq.type == EquationType.BRANCH_TARGET_P:
        return network.branches[eq.num].phase_control.target_p

    elif eq.type == EquationType.BRANCH_TARGET_ALPHA1:
        return network.branches[eq.num].a1

    elif eq.type == EquationType.BRANCH_TARGET_RHO1:
        return network.branches[eq.num].r1

    else:
        raise ValueError(f"Unknown equation type {eq.type}")


def target_vector(network: Network, equation_system: EquationSystem) -> Vec:
    """
    Targets of the active equations, ordered by equation column
    :param network: Network
    :param equation_system: EquationSystem
    :return: vector
    """
    return np.array([get_equation_target(network, eq) for eq in equation_system.active_equations], dtype=float)
