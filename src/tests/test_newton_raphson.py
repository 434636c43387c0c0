# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
from FlowCalEngine.api import *
from FlowCalEngine.Simulations.PowerFlow.Equations import AcEquationSystemCreator
from FlowCalEngine.Simulations.PowerFlow.NumericalMethods.newton_raphson import NewtonRaphson
from FlowCalEngine.Simulations.PowerFlow.NumericalMethods.state_vector_scaling import (
    MaxVoltageChangeStateVectorScaling, LineSearchStateVectorScaling)
from FlowCalEngine.Simulations.PowerFlow.NumericalMethods.stopping_criteria import (
    UniformStoppingCriteria, PerEquationTypeStoppingCriteria)
from FlowCalEngine.Simulations.PowerFlow.Initializers.voltage_initializers import UniformValueVoltageInitializer
from grids import angle_grid, two_bus_grid, CYCLE_ANGLE, build_network


def angle_options(**kwargs) -> PowerFlowOptions:
    """
    Options solving the angle grid from the angle stored in the buses
    """
    return PowerFlowOptions(voltage_init_mode=VoltageInitMode.PREVIOUS_VALUES,
                            distributed_slack=False,
                            use_reactive_limits=False,
                            slack_bus_selection_mode=SlackBusSelectionMode.NAME,
                            **kwargs)


def test_undamped_newton_cycles():
    """
    Without scaling, the iterations of sin(phi) = 0 started at tan(phi) = 2 phi
    jump between phi and -phi and never converge
    """
    grid = angle_grid(angle=CYCLE_ANGLE)
    results = power_flow(grid, angle_options(max_iterations=12))

    assert not results.converged
    assert results.components[0].status == LoadFlowStatus.MAX_ITERATION_REACHED
    assert results.components[0].iterations == 12

    assert "Maximum number of iterations reached" in results.logger.messages(LogSeverity.Divergence)


def test_max_voltage_change_breaks_the_cycle():
    """
    Limiting the angle step to 10 degrees lets the iterations reach sin(phi) = 0
    """
    grid = angle_grid(angle=CYCLE_ANGLE)
    results = power_flow(grid, angle_options(max_iterations=12,
                                             state_vector_scaling_mode=StateVectorScalingMode.MAX_VOLTAGE_CHANGE,
                                             max_dphi=10.0))

    assert results.converged
    assert results.iterations < 12
    assert np.isclose(results.get_bus_df().loc['B2', 'Va'], 0.0, atol=1e-3)


def test_line_search_keeps_the_closest_solution():
    """
    sin(phi) = 0.5 started at 1.45 rad: the full Newton step jumps to the -210 deg solution
    while the line search stays on the 30 deg one
    """
    grid = angle_grid(angle=1.45, p2=0.5)
    results = power_flow(grid, angle_options())
    assert results.converged
    phi = np.deg2rad(results.get_bus_df().loc['B2', 'Va'])
    assert np.isclose(phi, -7.0 * np.pi / 6.0, atol=1e-3)

    grid = angle_grid(angle=1.45, p2=0.5)
    results = power_flow(grid, angle_options(state_vector_scaling_mode=StateVectorScalingMode.LINE_SEARCH))
    assert results.converged
    phi = np.deg2rad(results.get_bus_df().loc['B2', 'Va'])
    assert np.isclose(phi, np.pi / 6.0, atol=1e-3)
    assert "Line search step reduction" in results.logger.messages()


def test_already_converged_state():
    """
    A state that already satisfies the stopping criteria takes no iteration
    """
    grid = angle_grid(angle=0.0)
    results = power_flow(grid, angle_options())

    assert results.converged
    assert results.iterations == 0


def test_minimum_iterations_on_converged_state():
    """
    The requested minimum of iterations is done even when the starting state already converges
    """
    options = angle_options()
    network = build_network(angle_grid(angle=0.0), options)
    es = AcEquationSystemCreator(network).create()
    solver = NewtonRaphson(network, es, options)

    result = solver.run(min_iterations=1)
    assert result.converged
    assert result.iterations == 1
    assert np.isclose(network.get_bus_by_id('B2').angle, 0.0, atol=1e-9)

    result = solver.run()
    assert result.converged
    assert result.iterations == 0


def test_per_equation_type_criteria():
    """
    The per equation type criteria converge as well, the power bounds being given in MW
    """
    options = PowerFlowOptions(stopping_criteria_type=NewtonRaphsonStoppingCriteriaType.PER_EQUATION_TYPE_CRITERIA,
                               distributed_slack=False)
    results = power_flow(two_bus_grid(), options)
    assert results.converged

    network = build_network(two_bus_grid(), options)
    es = AcEquationSystemCreator(network).create()
    criteria = PerEquationTypeStoppingCriteria(max_active_power_mismatch=1e-4,
                                               max_reactive_power_mismatch=1e-4,
                                               max_voltage_mismatch=1e-4,
                                               max_angle_mismatch=1e-5,
                                               max_ratio_mismatch=1e-5,
                                               max_distributed_q_mismatch=1e-4)

    # V, PHI, P, Q
    converged, _ = criteria.test(np.array([0.0, 0.0, 5e-5, 5e-5]), es)
    assert converged
    converged, _ = criteria.test(np.array([0.0, 0.0, 5e-5, 5e-4]), es)
    assert not converged


def test_uniform_criteria():
    """
    ||f|| < sqrt(n) eps
    """
    network = build_network(two_bus_grid())
    es = AcEquationSystemCreator(network).create()
    criteria = UniformStoppingCriteria(conv_eps_per_eq=1e-4)

    converged, f_norm = criteria.test(np.full(4, 0.9e-4), es)
    assert converged
    assert np.isclose(f_norm, 1.8e-4)

    converged, _ = criteria.test(np.full(4, 1.1e-4), es)
    assert not converged


def test_max_voltage_change_scaling():
    """
    The whole step is scaled by the most limiting of the voltage and angle ratios
    """
    network = build_network(two_bus_grid())
    es = AcEquationSystemCreator(network).create()
    scaling = MaxVoltageChangeStateVectorScaling(max_dv=0.1, max_dphi=np.deg2rad(10.0))

    # v1, phi1, v2, phi2
    dx = np.array([0.0, 0.0, 0.2, 0.05])
    assert np.allclose(scaling.apply(dx, es), dx * 0.5)

    dx = np.array([0.0, 0.0, 0.01, np.deg2rad(40.0)])
    assert np.allclose(scaling.apply(dx, es), dx * 0.25)

    dx = np.array([0.0, 0.0, 0.01, 0.01])
    assert np.allclose(scaling.apply(dx, es), dx)


def test_line_search_scaling():
    """
    The step is divided by the fold until the residual norm decreases
    """
    scaling = LineSearchStateVectorScaling(step_fold=2.0, max_iterations=10)
    logger = Logger()

    def fun(x):
        return x - 1.0

    x_prev = np.array([0.5])
    dx = np.array([2.2])
    x, f, f_norm = scaling.apply_after_update(fun, x_prev, dx, x_prev + dx, fun(x_prev + dx), 0.5, logger)

    # |0.5 + 2.2 mu - 1| <= 0.5 first holds for mu = 0.25
    assert np.allclose(x, [1.05])
    assert np.isclose(f_norm, 0.05)
    assert len(logger) == 1


def test_newton_raphson_solver_run():
    """
    The solver can be used on its own over an equation system
    """
    network = build_network(two_bus_grid())
    es = AcEquationSystemCreator(network).create()
    solver = NewtonRaphson(network, es, PowerFlowOptions())
    result = solver.run(UniformValueVoltageInitializer())

    assert result.converged
    assert 0 < result.iterations < 10
    assert result.error_evolution[-1] == result.norm
    # decreasing residual
    assert result.error_evolution[-1] < result.error_evolution[0]
    assert np.isclose(network.get_bus_by_id('B1').v, 1.02)


if __name__ == '__main__':
    test_line_search_keeps_the_closest_solution()
