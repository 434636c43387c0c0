# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
import pytest
from scipy.sparse import csc_matrix
from FlowCalEngine.api import *
from FlowCalEngine.Utils.NumericalMethods.sparse_solve import get_linear_solver
from FlowCalEngine.Simulations.PowerFlow.NumericalMethods.newton_raphson import NewtonRaphson
from FlowCalEngine.Simulations.PowerFlow.NumericalMethods.solver_factory import create_ac_solver
from grids import two_bus_grid, two_bus_solution, ring_grid, build_network


@pytest.mark.parametrize("solver_type", [AcSolverType.NEWTON_RAPHSON,
                                         AcSolverType.NEWTON_KRYLOV,
                                         AcSolverType.BOUNDED_NLP])
def test_solvers_agree_on_two_bus(solver_type):
    """
    All the non linear solvers find the analytical solution of the two bus grid
    """
    options = PowerFlowOptions(solver_type=solver_type,
                               distributed_slack=False,
                               slack_bus_selection_mode=SlackBusSelectionMode.NAME)
    results = power_flow(two_bus_grid(), options)

    assert results.converged

    u, angle = two_bus_solution()
    df = results.get_bus_df()
    assert np.isclose(df.loc['B2', 'Vm'], u, atol=1e-4)
    assert np.isclose(np.deg2rad(df.loc['B2', 'Va']), angle, atol=1e-4)


def test_newton_krylov_with_line_search():
    """
    The halving line search of the Newton-Krylov solver keeps the solution
    """
    options = PowerFlowOptions(solver_type=AcSolverType.NEWTON_KRYLOV,
                               krylov_line_search=True)
    results = power_flow(ring_grid(), options)

    assert results.converged

    reference = power_flow(ring_grid(), PowerFlowOptions())
    assert np.allclose(results.get_bus_df()['Vm'], reference.get_bus_df()['Vm'], atol=1e-4)


@pytest.mark.parametrize("linear_solver", [LinearSolverType.SuperLU,
                                           LinearSolverType.UMFPACK,
                                           LinearSolverType.GMRES])
def test_linear_solvers(linear_solver):
    """
    The Newton-Raphson converges with any of the linear solvers
    """
    results = power_flow(ring_grid(), PowerFlowOptions(linear_solver=linear_solver))
    assert results.converged


def test_singular_matrix():
    """
    A singular matrix is reported as a LinearSolverError
    """
    A = csc_matrix(np.array([[1.0, 1.0], [1.0, 1.0]]))
    solve = get_linear_solver(LinearSolverType.SuperLU)

    with pytest.raises(LinearSolverError):
        solve(A, np.array([1.0, 2.0]))


class FailingNewtonRaphson(NewtonRaphson):
    """
    Newton-Raphson whose linear solver always fails
    """

    def compute_step(self, fun, x, f):
        raise LinearSolverError("Factor is exactly singular")


def test_solver_failure_status():
    """
    A linear solver failure stops the iterations with the SOLVER_FAILED status
    """
    network = build_network(two_bus_grid())
    engine = AcLoadFlowEngine(network=network,
                              options=PowerFlowOptions(),
                              solver_factory=lambda nw, es, options, logger: FailingNewtonRaphson(nw, es, options,
                                                                                                 logger))
    result = engine.run()

    assert result.status == LoadFlowStatus.SOLVER_FAILED
    assert result.solver_status == AcSolverStatus.SOLVER_FAILED
    assert result.iterations == 1
    assert "Singular jacobian" in network.logger.messages(LogSeverity.Error)


def test_unrealistic_state():
    """
    A converged state with voltages out of the realistic range is not accepted
    """
    options = PowerFlowOptions(min_realistic_voltage=1.05, max_realistic_voltage=1.5)
    results = power_flow(two_bus_grid(), options)

    assert not results.converged
    assert results.components[0].status == LoadFlowStatus.UNREALISTIC_STATE
    assert "Unrealistic voltage" in results.logger.messages()


def test_solver_factory():
    """
    The factory builds the solver selected in the options
    """
    network = build_network(two_bus_grid())
    from FlowCalEngine.Simulations.PowerFlow.Equations import AcEquationSystemCreator
    es = AcEquationSystemCreator(network).create()

    for solver_type in AcSolverType:
        solver = create_ac_solver(network, es, PowerFlowOptions(solver_type=solver_type))
        assert solver.solver_type == solver_type


if __name__ == '__main__':
    test_solvers_agree_on_two_bus(AcSolverType.NEWTON_KRYLOV)
