# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Union, Callable, Tuple
import time
import numpy as np
from matplotlib import pyplot as plt
from FlowCalEngine.basic_structures import Logger, Vec
from FlowCalEngine.enumerations import AcSolverStatus, VariableType, AcSolverType
from FlowCalEngine.exceptions import LinearSolverError
from FlowCalEngine.DataStructures.network import Network
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Simulations.PowerFlow.Equations.equation_system import EquationSystem
from FlowCalEngine.Simulations.PowerFlow.Equations.target_vector import target_vector
from FlowCalEngine.Simulations.PowerFlow.Equations.network_state import (update_network_state,
                                                                        get_slack_bus_active_power_mismatch)
from FlowCalEngine.Simulations.PowerFlow.Initializers.voltage_initializers import VoltageInitializer
from FlowCalEngine.Simulations.PowerFlow.NumericalMethods.stopping_criteria import (StoppingCriteria,
                                                                                   create_stopping_criteria)
from FlowCalEngine.Simulations.PowerFlow.NumericalMethods.state_vector_scaling import (StateVectorScaling,
                                                                                      create_state_vector_scaling)


@dataclass
class AcSolverResult:
    """
    Result of a non linear solver run
    """
    status: AcSolverStatus
    iterations: int
    slack_bus_active_power_mismatch: float  # p.u.
    norm: float
    elapsed: float = 0.0
    error_evolution: List[float] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return self.status == AcSolverStatus.CONVERGED

    def plot_error(self) -> None:
        """
        Plot the residual norm evolution
        """
        plt.figure()
        plt.plot(self.error_evolution, )
        plt.xlabel("Iterations")
        plt.ylabel("Error")
        plt.yscale('log')
        plt.show()

    def print_info(self):
        """
        Print information about the AcSolverResult
        :return:
        """
        print("Status:\t", self.status)
        print("Iterations:\t", self.iterations)
        print("Error:\t", self.norm)
        print("Elapsed:\t", self.elapsed, 's')


def initialize_state(network: Network, equation_system: EquationSystem, initializer: VoltageInitializer):
    """
    Fill the state vector from a voltage initializer, the branch variables take the branch values
    :param network: Network
    :param equation_system: EquationSystem
    :param initializer: VoltageInitializer
    """
    initializer.prepare(network)
    x = equation_system.state_vector.get().copy()
    for var in equation_system.active_variables:
        if var.type == VariableType.BUS_V:
            x[var.row] = initializer.get_magnitude(network.buses[var.num])
        elif var.type == VariableType.BUS_PHI:
            x[var.row] = initializer.get_angle(network.buses[var.num])
        elif var.type == VariableType.BRANCH_RHO1:
            x[var.row] = network.branches[var.num].r1
        elif var.type == VariableType.BRANCH_ALPHA1:
            x[var.row] = network.branches[var.num].a1
    equation_system.state_vector.set(x)


class AcSolver(ABC):
    """
    Solver of the equation system: f(x) = equations(x) - targets = 0
    """
    solver_type: AcSolverType = None

    def __init__(self, network: Network, equation_system: EquationSystem, options: PowerFlowOptions,
                 logger: Union[Logger, None] = None):
        """

        :param network: Network
        :param equation_system: EquationSystem
        :param options: PowerFlowOptions
        :param logger: Logger
        """
        self.network = network
        self.equation_system = equation_system
        self.options = options
        self.logger = logger if logger is not None else network.logger

        self.stopping_criteria: StoppingCriteria = create_stopping_criteria(options, network.Sbase)

    @property
    def max_iterations(self) -> int:
        return self.options.max_iterations

    def get_residual_function(self) -> Callable[[Vec], Vec]:
        """
        Residual with the targets frozen at their current value
        :return: function f(x)
        """
        targets = target_vector(self.network, self.equation_system)
        es = self.equation_system
        return lambda x: es.evaluate(x) - targets

    def check_realistic_state(self) -> bool:
        """
        Log the buses outside the realistic voltage range
        :return: all voltages realistic?
        """
        ok = True
        for bus in self.network.buses:
            if not bus.disabled and not (self.options.min_realistic_voltage <= bus.v
                                         <= self.options.max_realistic_voltage):
                self.logger.add_error("Unrealistic voltage", device=bus.idtag, value=bus.v,
                                      expected_value=f"[{self.options.min_realistic_voltage}, "
                                                     f"{self.options.max_realistic_voltage}]")
                ok = False
        return ok

    @abstractmethod
    def solve(self, fun: Callable[[Vec], Vec], x: Vec,
              min_iterations: int = 0) -> Tuple[AcSolverStatus, int, Vec, List[float]]:
        """
        Drive the residual to zero
        :param fun: residual function
        :param x: initial state
        :param min_iterations: iterations done even if the initial state already converges
        :return: status, iterations, final state, residual norm evolution
        """
        pass

    def run(self, initializer: Union[VoltageInitializer, None] = None, min_iterations: int = 0) -> AcSolverResult:
        """
        Run the solver
        :param initializer: VoltageInitializer, None to start from the current state
        :param min_iterations: iterations done even if the initial state already converges
        :return: AcSolverResult
        """
        tic = time.time()

        if initializer is not None:
            initialize_state(self.network, self.equation_system, initializer)

        fun = self.get_residual_function()
        x0 = self.equation_system.state_vector.get().copy()
        status, iterations, x, evolution = self.solve(fun, x0, min_iterations)

        # the state is always stored back
        self.equation_system.state_vector.set(x)
        update_network_state(self.network, self.equation_system)

        if status == AcSolverStatus.CONVERGED and not self.check_realistic_state():
            status = AcSolverStatus.UNREALISTIC_STATE

        return AcSolverResult(status=status,
                              iterations=iterations,
                              slack_bus_active_power_mismatch=get_slack_bus_active_power_mismatch(self.network),
                              norm=evolution[-1] if len(evolution) else 0.0,
                              elapsed=time.time() - tic,
                              error_evolution=evolution)


class NewtonAcSolver(AcSolver):
    """
    Newton iterations x = x + dx with a pluggable step computation and the state vector scaling
    """

    def __init__(self, network: Network, equation_system: EquationSystem, options: PowerFlowOptions,
                 logger: Union[Logger, None] = None):
        AcSolver.__init__(self, network, equation_system, options, logger)
        self.scaling: StateVectorScaling = create_state_vector_scaling(options)

    @abstractmethod
    def compute_step(self, fun: Callable[[Vec], Vec], x: Vec, f: Vec) -> Vec:
        """
        Newton step dx solving J dx = -f
        :param fun: residual function
        :param x: state
        :param f: residual at x
        :return: dx
        """
        pass

    def post_update(self, fun: Callable[[Vec], Vec], x_prev: Vec, dx: Vec, x: Vec, f: Vec,
                    norm_prev: float) -> Tuple[Vec, Vec, float]:
        return self.scaling.apply_after_update(fun, x_prev, dx, x, f, norm_prev, self.logger)

    def solve(self, fun: Callable[[Vec], Vec], x: Vec,
              min_iterations: int = 0) -> Tuple[AcSolverStatus, int, Vec, List[float]]:
        """
        Newton loop
        :param fun: residual function
        :param x: initial state
        :param min_iterations: iterations done even if the initial state already converges
        :return: status, iterations, final state, residual norm evolution
        """
        es = self.equation_system
        f = fun(x)
        converged, f_norm = self.stopping_criteria.test(f, es)
        evolution = [f_norm]

        if converged and min_iterations <= 0:
            return AcSolverStatus.CONVERGED, 0, x, evolution

        iteration = 0
        while iteration < max(self.max_iterations, min_iterations):
            iteration += 1

            try:
                dx = self.compute_step(fun, x, f)
            except LinearSolverError as e:
                self.logger.add_error("Singular jacobian", value=iteration, expected_value=e.message)
                return AcSolverStatus.SOLVER_FAILED, iteration, x, evolution

            if not np.all(np.isfinite(dx)):
                self.logger.add_error("Non finite Newton step", value=iteration)
                return AcSolverStatus.SOLVER_FAILED, iteration, x, evolution

            dx = self.scaling.apply(dx, es)
            x_prev = x
            x = x_prev + dx
            f = fun(x)
            x, f, _ = self.post_update(fun, x_prev, dx, x, f, f_norm)

            if not np.all(np.isfinite(f)):
                self.logger.add_error("Non finite residual", value=iteration)
                return AcSolverStatus.SOLVER_FAILED, iteration, x_prev, evolution

            converged, f_norm = self.stopping_criteria.test(f, es)
            evolution.append(f_norm)

            if converged and iteration >= min_iterations:
                return AcSolverStatus.CONVERGED, iteration, x, evolution

        self.logger.add_divergence("Maximum number of iterations reached", value=f_norm,
                                   expected_value=self.max_iterations)
        return AcSolverStatus.MAX_ITERATION_REACHED, iteration, x, evolution
