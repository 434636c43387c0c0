# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import time
from typing import Callable, Dict, List, Tuple, Union
from FlowCalEngine.basic_structures import Logger
from FlowCalEngine.enumerations import LoadFlowStatus, AcSolverStatus, OuterLoopStatus, BranchSide
from FlowCalEngine.exceptions import StructuralError, SlackError
from FlowCalEngine.DataStructures.network import Network
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Simulations.PowerFlow.power_flow_results import ComponentResult
from FlowCalEngine.Simulations.PowerFlow.Equations.equation_system import EquationSystem
from FlowCalEngine.Simulations.PowerFlow.Equations.ac_equation_system_creator import (AcEquationSystemCreator,
                                                                                      AcEquationSystemUpdater)
from FlowCalEngine.Simulations.PowerFlow.Initializers.voltage_initializers import create_voltage_initializer
from FlowCalEngine.Simulations.PowerFlow.NumericalMethods.ac_solver import AcSolver, AcSolverResult
from FlowCalEngine.Simulations.PowerFlow.NumericalMethods.solver_factory import create_ac_solver
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.outer_loop import OuterLoop, OuterLoopContext
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.outer_loop_factory import create_outer_loops

SOLVER_TO_LOAD_FLOW_STATUS = {
    AcSolverStatus.CONVERGED: LoadFlowStatus.CONVERGED,
    AcSolverStatus.MAX_ITERATION_REACHED: LoadFlowStatus.MAX_ITERATION_REACHED,
    AcSolverStatus.SOLVER_FAILED: LoadFlowStatus.SOLVER_FAILED,
    AcSolverStatus.UNREALISTIC_STATE: LoadFlowStatus.UNREALISTIC_STATE,
    AcSolverStatus.NO_CALCULATION: LoadFlowStatus.NO_CALCULATION,
}

MAX_OUTER_LOOP_ITERATIONS_REASON = "Maximum number of outer loop iterations reached"


class AcLoadFlowEngine:
    """
    Solve one connected component: Newton solution followed by the outer loops,
    re-solving from the current state each time a loop modifies the network
    """

    def __init__(self, network: Network, options: PowerFlowOptions,
                 snapshot: Union[Dict[str, Tuple[float, float]], None] = None,
                 outer_loops: Union[List[OuterLoop], None] = None,
                 solver_factory: Callable[..., AcSolver] = create_ac_solver):
        """

        :param network: Network of the component
        :param options: PowerFlowOptions
        :param snapshot: previous solution {bus id: (v, angle)} for the previous values initialization
        :param outer_loops: outer loops to run (created from the options if None)
        :param solver_factory: function (network, equation_system, options, logger) -> AcSolver
        """
        self.network = network
        self.options = options
        self.snapshot = snapshot
        self.outer_loops = outer_loops
        self.solver_factory = solver_factory
        self.logger: Logger = network.logger

        self.equation_system: Union[EquationSystem, None] = None

    def _failed(self, result: ComponentResult, reason: str, tic: float) -> ComponentResult:
        self.logger.add_error(reason)
        result.status = LoadFlowStatus.FAILED
        result.reason = reason
        result.elapsed = time.time() - tic
        return result

    def _fill_from_solver(self, result: ComponentResult, solver_result: AcSolverResult):
        result.solver_status = solver_result.status
        result.status = SOLVER_TO_LOAD_FLOW_STATUS[solver_result.status]
        result.iterations += solver_result.iterations
        result.error = solver_result.norm
        result.error_evolution += solver_result.error_evolution
        result.slack_bus_active_power_mismatch = solver_result.slack_bus_active_power_mismatch * self.network.Sbase

    def set_branch_side_connected(self, branch_id: str, side: BranchSide, connected: bool):
        """
        Open or close a side of a branch whose disconnection is allowed. When the equation
        system already exists, it is updated in place so that it can be solved again
        :param branch_id: branch identifier
        :param side: BranchSide
        :param connected: new status of the side
        """
        branch = self.network.get_branch_by_id(branch_id)
        if branch is None:
            raise ValueError(f"Unknown branch {branch_id}")

        self.network.set_branch_side_connected(branch, side, connected)
        self.network.update_connectivity()

        if self.equation_system is not None:
            AcEquationSystemUpdater(self.network, self.equation_system).update()

    def run(self) -> ComponentResult:
        """
        Run the load flow of the component
        :return: ComponentResult
        """
        tic = time.time()
        network = self.network
        options = self.options
        result = ComponentResult(component_num=network.num)

        try:
            if network.get_reference_bus() is None:
                raise SlackError(f"No slack bus in component {network.num}")
            self.equation_system = AcEquationSystemCreator(network).create()
        except StructuralError as e:
            return self._failed(result, e.message, tic)

        if not network.has_voltage_control():
            self.logger.add_warning("Component without voltage control, not calculated", value=network.num)
            result.status = LoadFlowStatus.NO_CALCULATION
            result.elapsed = time.time() - tic
            return result

        es = self.equation_system
        updater = AcEquationSystemUpdater(network, es)

        initializer = create_voltage_initializer(mode=options.voltage_init_mode,
                                                 network=network,
                                                 phase_shifter_dc_init_threshold=options.phase_shifter_dc_init_threshold,
                                                 linear_solver=options.linear_solver,
                                                 snapshot=self.snapshot,
                                                 logger=self.logger)

        solver = self.solver_factory(network, es, options, self.logger)
        solver_result = solver.run(initializer)
        self._fill_from_solver(result, solver_result)

        if not solver_result.converged:
            result.elapsed = time.time() - tic
            return result

        loops = self.outer_loops if self.outer_loops is not None else create_outer_loops(options, network)
        context = OuterLoopContext(network=network, equation_system=es, options=options, logger=self.logger)
        context.solver_result = solver_result

        for loop in loops:
            loop.initialize(context)

        result.outer_loop_status = OuterLoopStatus.STABLE
        finished = len(loops) == 0
        while not finished:
            unstable = False

            for loop in loops:
                loop_result = loop.check(context)

                if loop_result.status == OuterLoopStatus.FAILED:
                    result.outer_loop_status = OuterLoopStatus.FAILED
                    self._failed(result, loop_result.reason, tic)
                    finished = True
                    break

                if loop_result.status == OuterLoopStatus.UNSTABLE:
                    unstable = True
                    context.iteration += 1
                    result.outer_loop_iterations = context.iteration

                    if context.iteration > options.max_outer_loop_iterations:
                        result.outer_loop_status = OuterLoopStatus.UNSTABLE
                        self._failed(result, MAX_OUTER_LOOP_ITERATIONS_REASON, tic)
                        finished = True
                        break

                    try:
                        updater.update()
                    except StructuralError as e:
                        result.outer_loop_status = OuterLoopStatus.FAILED
                        self._failed(result, e.message, tic)
                        finished = True
                        break

                    # the targets or the model changed, the previous state cannot be accepted as is
                    solver_result = solver.run(min_iterations=1)
                    context.solver_result = solver_result
                    self._fill_from_solver(result, solver_result)

                    if not solver_result.converged:
                        self.logger.add_error("Re-solve after outer loop did not converge", device=loop.name,
                                              value=solver_result.status.value)
                        finished = True
                        break

            if not unstable:
                finished = True

        for loop in loops:
            loop.cleanup(context)

        result.distributed_active_power = context.distributed_active_power * network.Sbase
        result.elapsed = time.time() - tic
        return result
