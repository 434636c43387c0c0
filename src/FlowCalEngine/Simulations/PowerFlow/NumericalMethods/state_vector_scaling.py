# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import Callable, Tuple
import numpy as np
from FlowCalEngine.basic_structures import Vec, Logger
from FlowCalEngine.enumerations import StateVectorScalingMode, VariableType
from FlowCalEngine.Utils.NumericalMethods.common import norm, max_abs
from FlowCalEngine.Simulations.PowerFlow.Equations.equation_system import EquationSystem
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions


class StateVectorScaling:
    """
    No scaling: the Newton step is applied as it is
    """
    mode = StateVectorScalingMode.NONE

    def apply(self, dx: Vec, equation_system: EquationSystem) -> Vec:
        """
        Scale the Newton step before the state update
        :param dx: Newton step
        :param equation_system: EquationSystem
        :return: scaled step
        """
        return dx

    def apply_after_update(self, fun: Callable[[Vec], Vec], x_prev: Vec, dx: Vec, x: Vec, f: Vec,
                           norm_prev: float, logger: Logger) -> Tuple[Vec, Vec, float]:
        """
        Correct the updated state once the new residual is known
        :param fun: residual function
        :param x_prev: state before the update
        :param dx: applied step
        :param x: updated state
        :param f: residual at x
        :param norm_prev: residual norm at x_prev
        :param logger: Logger
        :return: state, residual, residual norm
        """
        return x, f, norm(f)


class MaxVoltageChangeStateVectorScaling(StateVectorScaling):
    """
    Scale the whole step so that no voltage magnitude moves more than max_dv
    and no angle more than max_dphi
    """
    mode = StateVectorScalingMode.MAX_VOLTAGE_CHANGE

    def __init__(self, max_dv: float = 0.1, max_dphi: float = np.deg2rad(10.0)):
        """

        :param max_dv: maximum voltage magnitude change (p.u.)
        :param max_dphi: maximum angle change (rad)
        """
        self.max_dv = max_dv
        self.max_dphi = max_dphi

    def apply(self, dx: Vec, equation_system: EquationSystem) -> Vec:
        v_rows = np.array([var.row for var in equation_system.get_variables_of_type(VariableType.BUS_V)], dtype=int)
        ph_rows = np.array([var.row for var in equation_system.get_variables_of_type(VariableType.BUS_PHI)],
                           dtype=int)
        scale = 1.0
        if len(v_rows):
            dv = max_abs(dx[v_rows])
            if dv > self.max_dv:
                scale = min(scale, self.max_dv / dv)
        if len(ph_rows):
            dphi = max_abs(dx[ph_rows])
            if dphi > self.max_dphi:
                scale = min(scale, self.max_dphi / dphi)
        return dx * scale


class LineSearchStateVectorScaling(StateVectorScaling):
    """
    Shrink the step while the residual norm increases
    """
    mode = StateVectorScalingMode.LINE_SEARCH

    def __init__(self, step_fold: float = 4.0 / 3.0, max_iterations: int = 10):
        """

        :param step_fold: step length divisor
        :param max_iterations: maximum number of step reductions
        """
        self.step_fold = step_fold
        self.max_iterations = max_iterations

    def apply_after_update(self, fun: Callable[[Vec], Vec], x_prev: Vec, dx: Vec, x: Vec, f: Vec,
                           norm_prev: float, logger: Logger) -> Tuple[Vec, Vec, float]:
        f_norm = norm(f)
        mu = 1.0
        it = 0
        while (not np.isfinite(f_norm) or f_norm > norm_prev) and it < self.max_iterations:
            mu /= self.step_fold
            x = x_prev + mu * dx
            f = fun(x)
            f_norm = norm(f)
            it += 1

        if it > 0:
            logger.add_info("Line search step reduction", value=mu, expected_value=1.0)

        return x, f, f_norm


def create_state_vector_scaling(options: PowerFlowOptions) -> StateVectorScaling:
    """
    State vector scaling from the options
    :param options: PowerFlowOptions
    :return: StateVectorScaling
    """
    if options.state_vector_scaling_mode == StateVectorScalingMode.NONE:
        return StateVectorScaling()

    elif options.state_vector_scaling_mode == StateVectorScalingMode.MAX_VOLTAGE_CHANGE:
        return MaxVoltageChangeStateVectorScaling(max_dv=options.max_dv, max_dphi=np.deg2rad(options.max_dphi))

    elif options.state_vector_scaling_mode == StateVectorScalingMode.LINE_SEARCH:
        return LineSearchStateVectorScaling(step_fold=options.line_search_step_fold,
                                            max_iterations=options.line_search_max_iterations)
    else:
        raise ValueError(f"Unknown state vector scaling {options.state_vector_scaling_mode}")
