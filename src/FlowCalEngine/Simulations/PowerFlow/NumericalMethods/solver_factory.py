# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import Union
from FlowCalEngine.basic_structures import Logger
from FlowCalEngine.enumerations import AcSolverType
from FlowCalEngine.DataStructures.network import Network
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Simulations.PowerFlow.Equations.equation_system import EquationSystem
from FlowCalEngine.Simulations.PowerFlow.NumericalMethods.ac_solver import AcSolver
from FlowCalEngine.Simulations.PowerFlow.NumericalMethods.newton_raphson import NewtonRaphson
from FlowCalEngine.Simulations.PowerFlow.NumericalMethods.newton_krylov import NewtonKrylov
from FlowCalEngine.Simulations.PowerFlow.NumericalMethods.bounded_nlp import BoundedNlpSolver


def create_ac_solver(network: Network, equation_system: EquationSystem, options: PowerFlowOptions,
                     logger: Union[Logger, None] = None) -> AcSolver:
    """
    Non linear solver factory
    :param network: Network
    :param equation_system: EquationSystem
    :param options: PowerFlowOptions (solver_type selects the solver)
    :param logger: Logger
    :return: AcSolver
    """
    if options.solver_type == AcSolverType.NEWTON_RAPHSON:
        return NewtonRaphson(network, equation_system, options, logger)

    elif options.solver_type == AcSolverType.NEWTON_KRYLOV:
        return NewtonKrylov(network, equation_system, options, logger)

    elif options.solver_type == AcSolverType.BOUNDED_NLP:
        return BoundedNlpSolver(network, equation_system, options, logger)

    else:
        raise ValueError(f"Unknown solver type {options.solver_type}")
