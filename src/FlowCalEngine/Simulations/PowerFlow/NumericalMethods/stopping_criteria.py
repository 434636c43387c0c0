# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from abc import ABC, abstractmethod
from typing import Tuple, Dict
import numpy as np
from FlowCalEngine.basic_structures import Vec
from FlowCalEngine.enumerations import EquationType, NewtonRaphsonStoppingCriteriaType
from FlowCalEngine.Utils.NumericalMethods.common import norm
from FlowCalEngine.Simulations.PowerFlow.Equations.equation_system import EquationSystem
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions


class StoppingCriteria(ABC):
    """
    Convergence test of the Newton iterations
    """

    @abstractmethod
    def test(self, f: Vec, equation_system: EquationSystem) -> Tuple[bool, float]:
        """
        Test the residual
        :param f: residual vector
        :param equation_system: EquationSystem (provides the equation types)
        :return: converged?, norm of the residual
        """
        pass


class UniformStoppingCriteria(StoppingCriteria):
    """
    ||f||2 < sqrt(n) · eps
    """

    def __init__(self, conv_eps_per_eq: float = 1e-4):
        self.conv_eps_per_eq = conv_eps_per_eq

    def test(self, f: Vec, equation_system: EquationSystem) -> Tuple[bool, float]:
        f_norm = norm(f)
        return bool(f_norm < np.sqrt(len(f)) * self.conv_eps_per_eq), f_norm


class PerEquationTypeStoppingCriteria(StoppingCriteria):
    """
    Every residual below the bound of its equation type
    """

    def __init__(self, max_active_power_mismatch: float, max_reactive_power_mismatch: float,
                 max_voltage_mismatch: float, max_angle_mismatch: float, max_ratio_mismatch: float,
                 max_distributed_q_mismatch: float):
        """

        :param max_active_power_mismatch: (p.u.)
        :param max_reactive_power_mismatch: (p.u.)
        :param max_voltage_mismatch: (p.u.)
        :param max_angle_mismatch: (rad)
        :param max_ratio_mismatch: (p.u.)
        :param max_distributed_q_mismatch: (p.u.)
        """
        self.bounds: Dict[EquationType, float] = {
            EquationType.BUS_TARGET_P: max_active_power_mismatch,
            EquationType.BUS_DISTR_SLACK_P: max_active_power_mismatch,
            EquationType.BRANCH_TARGET_P: max_active_power_mismatch,
            EquationType.BUS_TARGET_Q: max_reactive_power_mismatch,
            EquationType.BUS_DISTR_Q: max_distributed_q_mismatch,
            EquationType.BUS_TARGET_V: max_voltage_mismatch,
            EquationType.BUS_TARGET_PHI: max_angle_mismatch,
            EquationType.BRANCH_TARGET_ALPHA1: max_angle_mismatch,
            EquationType.BRANCH_TARGET_RHO1: max_ratio_mismatch,
        }

    def test(self, f: Vec, equation_system: EquationSystem) -> Tuple[bool, float]:
        bounds = np.array([self.bounds[eq.type] for eq in equation_system.active_equations])
        converged = bool(np.all(np.abs(f) < bounds)) if len(f) else True
        return converged, norm(f)


def create_stopping_criteria(options: PowerFlowOptions, Sbase: float) -> StoppingCriteria:
    """
    Stopping criteria from the options, the power bounds are given in MW and MVAr
    :param options: PowerFlowOptions
    :param Sbase: base power (MVA)
    :return: StoppingCriteria
    """
    if options.stopping_criteria_type == NewtonRaphsonStoppingCriteriaType.UNIFORM_CRITERIA:
        return UniformStoppingCriteria(conv_eps_per_eq=options.conv_eps_per_eq)

    elif options.stopping_criteria_type == NewtonRaphsonStoppingCriteriaType.PER_EQUATION_TYPE_CRITERIA:
        return PerEquationTypeStoppingCriteria(max_active_power_mismatch=options.max_active_power_mismatch / Sbase,
                                               max_reactive_power_mismatch=options.max_reactive_power_mismatch / Sbase,
                                               max_voltage_mismatch=options.max_voltage_mismatch,
                                               max_angle_mismatch=options.max_angle_mismatch,
                                               max_ratio_mismatch=options.max_ratio_mismatch,
                                               max_distributed_q_mismatch=options.max_distributed_q_mismatch)
    else:
        raise ValueError(f"Unknown stopping criteria {options.stopping_criteria_type}")
