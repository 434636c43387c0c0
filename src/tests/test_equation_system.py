# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
import pytest
from FlowCalEngine.api import *
from FlowCalEngine.Simulations.PowerFlow.Equations import (EquationSystem, VariableTerm, AcEquationSystemCreator,
                                                           AcEquationSystemUpdater, target_vector)
from grids import two_bus_grid, ring_grid, phase_shifter_grid, tap_changer_grid, build_network


def numerical_jacobian(es: EquationSystem, x: np.ndarray, h: float = 1e-6) -> np.ndarray:
    """
    Central differences jacobian of the active equations
    """
    n = len(x)
    J = np.zeros((len(es.active_equations), n))
    for j in range(n):
        dx = np.zeros(n)
        dx[j] = h
        J[:, j] = (es.evaluate(x + dx) - es.evaluate(x - dx)) / (2 * h)
    return J


def test_two_bus_equations():
    """
    Slack bus: voltage and angle targets, load bus: active and reactive power targets
    """
    network = build_network(two_bus_grid())
    es = AcEquationSystemCreator(network).create()

    eqs = [(eq.num, eq.type) for eq in es.active_equations]
    assert eqs == [(0, EquationType.BUS_TARGET_V),
                   (0, EquationType.BUS_TARGET_PHI),
                   (1, EquationType.BUS_TARGET_P),
                   (1, EquationType.BUS_TARGET_Q)]

    variables = [(var.num, var.type) for var in es.active_variables]
    assert variables == [(0, VariableType.BUS_V),
                         (0, VariableType.BUS_PHI),
                         (1, VariableType.BUS_V),
                         (1, VariableType.BUS_PHI)]

    # the columns follow the sort order
    assert [eq.column for eq in es.active_equations] == [0, 1, 2, 3]
    assert [es.get_column(eq) for eq in es.active_equations] == [0, 1, 2, 3]
    assert [es.get_row(var) for var in es.active_variables] == [0, 1, 2, 3]

    targets = target_vector(network, es)
    assert np.allclose(targets, [1.02, 0.0, -0.5, -0.2])


def test_jacobian_against_finite_differences():
    """
    The analytical jacobian matches central differences away from the flat start
    """
    network = build_network(ring_grid())
    es = AcEquationSystemCreator(network).create()

    rng = np.random.default_rng(12)
    x = es.state_vector.get() + rng.uniform(-0.05, 0.05, len(es.active_variables))

    J = es.jacobian(x).toarray()
    J_num = numerical_jacobian(es, x)

    assert J.shape == (len(es.active_equations), len(es.active_variables))
    assert np.allclose(J, J_num, atol=1e-5)


@pytest.mark.parametrize("grid_factory", [phase_shifter_grid, tap_changer_grid])
def test_jacobian_with_branch_variables(grid_factory):
    """
    The ratio and phase shift derivatives match central differences as well
    """
    network = build_network(grid_factory())
    es = AcEquationSystemCreator(network).create()

    types = {var.type for var in es.active_variables}
    assert types & {VariableType.BRANCH_RHO1, VariableType.BRANCH_ALPHA1}

    rng = np.random.default_rng(7)
    x = es.state_vector.get() + rng.uniform(-0.02, 0.02, len(es.active_variables))

    assert np.allclose(es.jacobian(x).toarray(), numerical_jacobian(es, x), atol=1e-5)


def test_updater_follows_pv_pq_switch():
    """
    A controller bus leaving the voltage control trades its voltage equation for a reactive power one
    """
    network = build_network(two_bus_grid())
    es = AcEquationSystemCreator(network).create()

    slack = network.get_bus_by_id('B1')
    slack.set_voltage_control_enabled(False, ReactiveLimitType.MAX_Q)
    AcEquationSystemUpdater(network, es).update()

    types = {eq.type for eq in es.active_equations if eq.num == slack.num}
    assert types == {EquationType.BUS_TARGET_PHI, EquationType.BUS_TARGET_Q}

    # the generator holds its maximum reactive power
    assert network.generators[0].target_q == network.generators[0].get_max_q()

    slack.set_voltage_control_enabled(True)
    AcEquationSystemUpdater(network, es).update()

    types = {eq.type for eq in es.active_equations if eq.num == slack.num}
    assert types == {EquationType.BUS_TARGET_PHI, EquationType.BUS_TARGET_V}


def test_index_keeps_state_values():
    """
    Re-indexing keeps the values of the variables that stay active
    """
    network = build_network(two_bus_grid())
    es = AcEquationSystemCreator(network).create()

    x = es.state_vector.get().copy()
    x[:] = [1.01, 0.0, 0.97, -0.1]
    es.state_vector.set(x)

    es.index()

    assert np.allclose(es.state_vector.get(), [1.01, 0.0, 0.97, -0.1])


def test_non_square_system_detected():
    """
    An equation referencing more variables than there are equations is reported
    """
    es = EquationSystem()
    v = es.get_variable(0, VariableType.BUS_V)
    phi = es.get_variable(0, VariableType.BUS_PHI)
    eq = es.create_equation(0, EquationType.BUS_TARGET_V)
    eq.add_term(VariableTerm(v))
    eq.add_term(VariableTerm(phi))

    es.index()

    with pytest.raises(EquationCountMismatchError) as e:
        es.check_size()

    assert e.value.rows == 1
    assert e.value.columns == 2


def test_variables_are_unique():
    """
    Asking twice for the same variable returns the same object
    """
    es = EquationSystem()
    assert es.get_variable(3, VariableType.BUS_V) is es.get_variable(3, VariableType.BUS_V)
    assert es.get_variable(3, VariableType.BUS_V) is not es.get_variable(3, VariableType.BUS_PHI)
    assert es.create_equation(1, EquationType.BUS_TARGET_P) is es.create_equation(1, EquationType.BUS_TARGET_P)


if __name__ == '__main__':
    test_jacobian_against_finite_differences()
