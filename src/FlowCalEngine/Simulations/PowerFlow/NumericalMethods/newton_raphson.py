# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import Callable, Union
from FlowCalEngine.basic_structures import Vec, Logger
from FlowCalEngine.enumerations import AcSolverType
from FlowCalEngine.DataStructures.network import Network
from FlowCalEngine.Utils.NumericalMethods.sparse_solve import get_linear_solver
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Simulations.PowerFlow.Equations.equation_system import EquationSystem
from FlowCalEngine.Simulations.PowerFlow.NumericalMethods.ac_solver import NewtonAcSolver


class NewtonRaphson(NewtonAcSolver):
    """
    Newton-Raphson with the sparse jacobian of the equation system:

        J(x) · dx = -f(x)
        x = x + dx
    """
    solver_type = AcSolverType.NEWTON_RAPHSON

    def __init__(self, network: Network, equation_system: EquationSystem, options: PowerFlowOptions,
                 logger: Union[Logger, None] = None):
        NewtonAcSolver.__init__(self, network, equation_system, options, logger)
        self.linear_solver = get_linear_solver(options.linear_solver)

    def compute_step(self, fun: Callable[[Vec], Vec], x: Vec, f: Vec) -> Vec:
        J = self.equation_system.jacobian(x)
        return self.linear_solver(J, -f)
