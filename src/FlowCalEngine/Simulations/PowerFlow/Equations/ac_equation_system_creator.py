# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import List
import numpy as np
from FlowCalEngine.enumerations import VariableType, EquationType, BranchSide, FlowQuantity
from FlowCalEngine.exceptions import SlackError
from FlowCalEngine.DataStructures.bus import Bus
from FlowCalEngine.DataStructures.branch import Branch
from FlowCalEngine.DataStructures.network import Network
from FlowCalEngine.Simulations.PowerFlow.Equations.variables import Variable
from FlowCalEngine.Simulations.PowerFlow.Equations.terms import (Term, VariableTerm, ClosedBranchFlowTerm,
                                                                 OpenBranchFlowTerm, ShuntTerm)
from FlowCalEngine.Simulations.PowerFlow.Equations.equation import Equation
from FlowCalEngine.Simulations.PowerFlow.Equations.equation_system import EquationSystem


def get_reactive_key(bus: Bus) -> float:
    """
    Reactive power sharing key of a controller bus: its reactive range, 1 when it has none
    :param bus: controller Bus
    :return: key
    """
    k = bus.get_max_q() - bus.get_min_q()
    if np.isfinite(k) and k > 1e-6:
        return k
    return 1.0


def is_enabled_controller(bus: Bus) -> bool:
    vc = bus.controller_voltage_control
    return vc is not None and bus in vc.get_enabled_controller_buses()


class AcEquationSystemCreator:
    """
    Creates the AC equation system of a network
    """

    def __init__(self, network: Network):
        self.network = network

    def get_initial_value(self, var: Variable) -> float:
        """
        Value of a variable taken from the network
        :param var: Variable
        :return: value
        """
        if var.type == VariableType.BUS_V:
            return self.network.buses[var.num].v
        elif var.type == VariableType.BUS_PHI:
            return self.network.buses[var.num].angle
        elif var.type == VariableType.BRANCH_RHO1:
            return self.network.branches[var.num].r1
        elif var.type == VariableType.BRANCH_ALPHA1:
            return self.network.branches[var.num].a1
        else:
            raise ValueError(f"Unknown variable type {var.type}")

    def create(self, update: bool = True) -> EquationSystem:
        """
        Create all the equations, terms and variables
        :param update: activate, index and check the system
        :return: EquationSystem
        """
        es = EquationSystem(default_value=self.get_initial_value)

        for bus in self.network.buses:
            self._create_bus_equations(es, bus)

        for branch in self.network.branches:
            self._create_branch_equations(es, branch)

        if update:
            AcEquationSystemUpdater(self.network, es).update()

        return es

    @staticmethod
    def _create_bus_equations(es: EquationSystem, bus: Bus):
        v = es.get_variable(bus.num, VariableType.BUS_V)
        ph = es.get_variable(bus.num, VariableType.BUS_PHI)

        es.create_equation(bus.num, EquationType.BUS_TARGET_V).add_term(VariableTerm(v))
        es.create_equation(bus.num, EquationType.BUS_TARGET_PHI).add_term(VariableTerm(ph))

        eq_p = es.create_equation(bus.num, EquationType.BUS_TARGET_P)
        eq_q = es.create_equation(bus.num, EquationType.BUS_TARGET_Q)
        for shunt in bus.shunts:
            eq_p.add_term(ShuntTerm(shunt, FlowQuantity.P, v))
            eq_q.add_term(ShuntTerm(shunt, FlowQuantity.Q, v))

        if bus.slack:
            es.create_equation(bus.num, EquationType.BUS_DISTR_SLACK_P)

        if bus.controller_voltage_control is not None and len(bus.controller_voltage_control.controller_buses) > 1:
            es.create_equation(bus.num, EquationType.BUS_DISTR_Q)

    @staticmethod
    def _create_branch_equations(es: EquationSystem, branch: Branch):
        r1 = None
        a1 = None
        if branch.voltage_control is not None:
            r1 = es.get_variable(branch.num, VariableType.BRANCH_RHO1)
            es.create_equation(branch.num, EquationType.BRANCH_TARGET_RHO1).add_term(VariableTerm(r1))

        if branch.phase_control is not None:
            a1 = es.get_variable(branch.num, VariableType.BRANCH_ALPHA1)
            es.create_equation(branch.num, EquationType.BRANCH_TARGET_ALPHA1).add_term(VariableTerm(a1))

        if branch.bus1 is not None and branch.bus2 is not None:
            v1 = es.get_variable(branch.bus1.num, VariableType.BUS_V)
            ph1 = es.get_variable(branch.bus1.num, VariableType.BUS_PHI)
            v2 = es.get_variable(branch.bus2.num, VariableType.BUS_V)
            ph2 = es.get_variable(branch.bus2.num, VariableType.BUS_PHI)

            for side, bus in ((BranchSide.ONE, branch.bus1), (BranchSide.TWO, branch.bus2)):
                for quantity, eq_type in ((FlowQuantity.P, EquationType.BUS_TARGET_P),
                                          (FlowQuantity.Q, EquationType.BUS_TARGET_Q)):
                    es.create_equation(bus.num, eq_type).add_term(
                        ClosedBranchFlowTerm(branch, side, quantity, v1, ph1, v2, ph2, r1, a1))

            if branch.phase_control is not None:
                pc = branch.phase_control
                es.create_equation(branch.num, EquationType.BRANCH_TARGET_P).add_term(
                    ClosedBranchFlowTerm(branch, pc.side, FlowQuantity.P, v1, ph1, v2, ph2, r1, a1))

        # flows at the connected side when the other side is open
        for side in (BranchSide.ONE, BranchSide.TWO):
            bus = branch.get_bus(side)
            if bus is not None:
                v = es.get_variable(bus.num, VariableType.BUS_V)
                for quantity, eq_type in ((FlowQuantity.P, EquationType.BUS_TARGET_P),
                                          (FlowQuantity.Q, EquationType.BUS_TARGET_Q)):
                    es.create_equation(bus.num, eq_type).add_term(OpenBranchFlowTerm(branch, side, quantity, v))


class AcEquationSystemUpdater:
    """
    Re-derives the activation of every equation and term from the network state
    """

    def __init__(self, network: Network, equation_system: EquationSystem):
        self.network = network
        self.equation_system = equation_system

    def _set_active(self, num: int, tpe: EquationType, active: bool):
        eq = self.equation_system.get_equation(num, tpe)
        if eq is not None:
            eq.active = active
        elif active:
            self.equation_system.create_equation(num, tpe).active = True

    def _copy_terms(self, bus: Bus, tpe: EquationType, coefficient: float) -> List[Term]:
        eq = self.equation_system.get_equation(bus.num, tpe)
        return [t.copy(coefficient) for t in eq.terms]

    def _update_distributed_slack(self, bus: Bus, reference: Bus):
        eq: Equation = self.equation_system.create_equation(bus.num, EquationType.BUS_DISTR_SLACK_P)
        eq.clear_terms()
        for t in self._copy_terms(bus, EquationType.BUS_TARGET_P, 1.0):
            eq.add_term(t)
        for t in self._copy_terms(reference, EquationType.BUS_TARGET_P, -1.0):
            eq.add_term(t)
        eq.data = {"pivot": reference}

    def _update_distributed_q(self, bus: Bus, pivot: Bus):
        eq: Equation = self.equation_system.create_equation(bus.num, EquationType.BUS_DISTR_Q)
        eq.clear_terms()
        k = get_reactive_key(bus)
        k_pivot = get_reactive_key(pivot)
        for t in self._copy_terms(bus, EquationType.BUS_TARGET_Q, 1.0 / k):
            eq.add_term(t)
        for t in self._copy_terms(pivot, EquationType.BUS_TARGET_Q, -1.0 / k_pivot):
            eq.add_term(t)
        eq.data = {"pivot": pivot, "k": k, "k_pivot": k_pivot}

    def update(self):
        """
        Activate the equations and terms, then index and check the size of the system
        """
        network = self.network
        es = self.equation_system

        reference = network.get_reference_bus()
        if reference is None:
            raise SlackError(f"No reference bus in component {network.num}")

        for eq in es.equations.values():
            if eq.type in (EquationType.BUS_DISTR_SLACK_P, EquationType.BUS_DISTR_Q):
                eq.active = False

        for bus in network.buses:
            enabled = not bus.disabled
            controller = is_enabled_controller(bus)
            self._set_active(bus.num, EquationType.BUS_TARGET_P, enabled and not bus.slack)
            self._set_active(bus.num, EquationType.BUS_TARGET_Q, enabled and not controller)
            self._set_active(bus.num, EquationType.BUS_TARGET_V, enabled and bus.is_voltage_controlled())
            self._set_active(bus.num, EquationType.BUS_TARGET_PHI, enabled and bus.reference)

            if enabled and bus.slack and not bus.reference:
                self._update_distributed_slack(bus, reference)
                self._set_active(bus.num, EquationType.BUS_DISTR_SLACK_P, True)

        for vc in network.voltage_controls:
            controllers = vc.get_enabled_controller_buses()
            for bus in controllers[1:]:
                self._update_distributed_q(bus, controllers[0])
                self._set_active(bus.num, EquationType.BUS_DISTR_Q, True)

        for branch in network.branches:
            closed = branch.is_closed()
            if branch.phase_control is not None:
                continuous = branch.phase_control.is_continuous()
                self._set_active(branch.num, EquationType.BRANCH_TARGET_P, continuous)
                self._set_active(branch.num, EquationType.BRANCH_TARGET_ALPHA1, closed and not continuous)
            if branch.voltage_control is not None:
                continuous = branch.voltage_control.is_continuous()
                self._set_active(branch.num, EquationType.BRANCH_TARGET_RHO1, closed and not continuous)

        for eq in es.equations.values():
            for term in eq.terms:
                term.update_active()

        es.index()
        es.check_size()
