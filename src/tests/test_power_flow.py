# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
import pytest
from FlowCalEngine.api import *
from FlowCalEngine.Simulations.PowerFlow.NumericalMethods.newton_raphson import NewtonRaphson
from grids import two_bus_grid, two_bus_solution, ring_grid, two_islands_grid, build_network


def test_two_bus_closed_form():
    """
    The load bus voltage of a two bus grid matches the analytical solution
    """
    grid = two_bus_grid()
    options = PowerFlowOptions(distributed_slack=False,
                               slack_bus_selection_mode=SlackBusSelectionMode.NAME)
    results = power_flow(grid, options)

    assert results.converged

    u, angle = two_bus_solution()
    df = results.get_bus_df()

    assert np.isclose(df.loc['B1', 'Vm'], 1.02, atol=1e-6)
    assert np.isclose(df.loc['B1', 'Va'], 0.0, atol=1e-9)
    assert np.isclose(df.loc['B2', 'Vm'], u, atol=1e-4)
    assert np.isclose(np.deg2rad(df.loc['B2', 'Va']), angle, atol=1e-4)

    # the results are written back in physical units
    b2 = grid.get_element('B2')
    assert np.isclose(b2.v, u * 100.0, atol=1e-2)


def test_two_bus_branch_flows():
    """
    The branch losses are r |I|^2 and the load side receives the load
    """
    grid = two_bus_grid()
    options = PowerFlowOptions(distributed_slack=False,
                               slack_bus_selection_mode=SlackBusSelectionMode.NAME)
    results = power_flow(grid, options)

    u, _ = two_bus_solution()
    losses = 0.01 * (0.5 ** 2 + 0.2 ** 2) / (u * u) * 100.0

    line = grid.get_element('L12')
    assert np.isclose(line.p_to, -50.0, atol=5e-2)
    assert np.isclose(line.q_to, -20.0, atol=5e-2)
    assert np.isclose(line.p_from + line.p_to, losses, atol=1e-2)

    # current at the load side in A
    i_expected = np.sqrt(50.0 ** 2 + 20.0 ** 2) * 1e3 / (np.sqrt(3) * u * 100.0)
    assert np.isclose(line.i_to, i_expected, rtol=1e-3)

    df = results.get_branch_df()
    assert np.isclose(df.loc['L12', 'Ploss'], losses, atol=1e-2)


def test_two_bus_slack_takes_losses():
    """
    With the distributed slack, the only generator ends up producing the load plus the losses
    """
    grid = two_bus_grid()
    options = PowerFlowOptions(distributed_slack=True,
                               slack_bus_selection_mode=SlackBusSelectionMode.NAME)
    results = power_flow(grid, options)

    assert results.converged

    u, _ = two_bus_solution()
    losses = 0.01 * (0.5 ** 2 + 0.2 ** 2) / (u * u) * 100.0
    g1 = grid.get_element('G1')
    assert np.isclose(g1.p_result, 50.0 + losses, atol=1e-2)

    # distributed, not picked up by the slack bus
    component = results.components[0]
    assert abs(component.slack_bus_active_power_mismatch) <= options.slack_bus_p_max_mismatch
    assert component.distributed_active_power > 0.0


def test_open_line_charging_raises_voltage():
    """
    A line open at its far side still injects its charging reactive power at the connected side
    """
    options = PowerFlowOptions(distributed_slack=False,
                               slack_bus_selection_mode=SlackBusSelectionMode.NAME)

    grid1 = two_bus_grid()
    results1 = power_flow(grid1, options)

    grid2 = two_bus_grid()
    b2 = grid2.get_element('B2')
    grid2.add_branch(BranchDevice(name='OPEN', bus_from=b2, bus_to=None, r=1.0, x=20.0, b_from=2e-3))
    results2 = power_flow(grid2, options)

    assert results1.converged
    assert results2.converged

    v_without = results1.get_bus_df().loc['B2', 'Vm']
    v_with = results2.get_bus_df().loc['B2', 'Vm']
    assert v_with > v_without

    # the open line only carries reactive power
    assert abs(grid2.get_element('OPEN').p_from) < 1e-6


def side_opening_options() -> PowerFlowOptions:
    return PowerFlowOptions(distributed_slack=False,
                            use_reactive_limits=False,
                            slack_bus_selection_mode=SlackBusSelectionMode.NAME)


def ring_with_parallel_line() -> MultiCircuit:
    """
    Ring grid plus a line without shunts in parallel with L23, whose B3 side can be opened
    """
    grid = ring_grid()
    grid.add_branch(BranchDevice(name='L23B', bus_from=grid.get_element('B2'), bus_to=grid.get_element('B3'),
                                 r=1.0, x=10.0, disconnection_allowed_to=True))
    return grid


def test_open_branch_side_equals_removal():
    """
    Opening the allowed side of a branch gives the same solution as not having the branch:
    same flows on the other branches, same jacobian rank and same number of iterations
    """
    options = side_opening_options()

    network_ref = build_network(ring_grid(), options)
    engine_ref = AcLoadFlowEngine(network_ref, options)
    result_ref = engine_ref.run()

    network = build_network(ring_with_parallel_line(), options)
    engine = AcLoadFlowEngine(network, options)
    engine.set_branch_side_connected('L23B', BranchSide.TWO, False)
    result = engine.run()

    assert result_ref.converged
    assert result.converged
    assert result.iterations == result_ref.iterations

    rank_ref = np.linalg.matrix_rank(engine_ref.equation_system.jacobian().toarray())
    rank = np.linalg.matrix_rank(engine.equation_system.jacobian().toarray())
    assert rank == rank_ref
    assert len(engine.equation_system.active_equations) == len(engine_ref.equation_system.active_equations)

    for name in ['L12', 'L23', 'L13']:
        br_ref = network_ref.get_branch_by_id(name)
        br = network.get_branch_by_id(name)
        assert np.allclose([br.p1, br.q1, br.p2, br.q2], [br_ref.p1, br_ref.q1, br_ref.p2, br_ref.q2], atol=1e-8)

    opened = network.get_branch_by_id('L23B')
    assert not opened.is_closed()
    assert np.allclose([opened.p1, opened.q1, opened.p2, opened.q2], 0.0)


def test_open_branch_side_after_solving():
    """
    The side of a branch can be opened on a solved network, the equation system is
    updated in place and solved again from the previous state
    """
    options = side_opening_options()

    network_ref = build_network(ring_grid(), options)
    assert AcLoadFlowEngine(network_ref, options).run().converged

    network = build_network(ring_with_parallel_line(), options)
    engine = AcLoadFlowEngine(network, options)
    assert engine.run().converged
    p_closed = network.get_branch_by_id('L23').p1

    engine.set_branch_side_connected('L23B', BranchSide.TWO, False)
    solver_result = NewtonRaphson(network, engine.equation_system, options).run(min_iterations=1)

    assert solver_result.converged
    assert "Branch side disconnected" in network.logger.messages()

    # the parallel path is gone, L23 carries more
    p_open = network.get_branch_by_id('L23').p1
    assert abs(p_open) > abs(p_closed)
    assert np.isclose(p_open, network_ref.get_branch_by_id('L23').p1, atol=1e-3)

    # sides without allowed disconnection stay closed
    with pytest.raises(ValueError):
        engine.set_branch_side_connected('L12', BranchSide.ONE, False)


def test_ring_grid_balance():
    """
    The bus injections of a solved grid add up to the branch losses
    """
    grid = ring_grid()
    results = power_flow(grid, PowerFlowOptions())

    assert results.converged

    bus_df = results.get_bus_df()
    branch_df = results.get_branch_df()
    assert np.isclose(bus_df['P'].sum(), branch_df['Ploss'].sum(), atol=1e-6)

    p_gen = sum(gen.p_result for gen in grid.generators)
    p_load = sum(load.p for load in grid.loads)
    assert np.isclose(p_gen - p_load, branch_df['Ploss'].sum(), atol=5e-2)


def test_two_islands():
    """
    Each island is solved on its own, sequentially or with several threads
    """
    for threads in (1, 2):
        grid = two_islands_grid()
        results = power_flow(grid, PowerFlowOptions(threads=threads))

        assert len(results.components) == 2
        assert results.converged

        df = results.get_bus_df()
        assert set(df.loc[['B1', 'B2', 'B3'], 'component']) == {0}
        assert set(df.loc[['B4', 'B5'], 'component']) == {1}

        # the small island generator holds its own voltage
        assert np.isclose(df.loc['B4', 'V (kV)'], 20.5, atol=1e-4)


def test_island_without_voltage_control_not_calculated():
    """
    A component without any voltage control is reported and skipped
    """
    grid = two_bus_grid()
    b3 = grid.add_bus(BusDevice(name='B3', nominal_v=20.0))
    b4 = grid.add_bus(BusDevice(name='B4', nominal_v=20.0))
    grid.add_branch(BranchDevice(name='L34', bus_from=b3, bus_to=b4, r=0.1, x=0.4))
    grid.add_load(LoadDevice(name='LD4', bus=b4, p=1.0, q=0.5))

    results = power_flow(grid, PowerFlowOptions(distributed_slack=False))

    assert len(results.components) == 2
    assert results.components[0].converged
    assert results.components[1].status == LoadFlowStatus.NO_CALCULATION

    # the calculated components converged
    assert results.converged


def test_most_meshed_slack_selection():
    """
    The automatic slack selection picks the bus with most closed branches
    """
    grid = ring_grid()
    b4 = grid.add_bus(BusDevice(name='B4', nominal_v=132.0))
    grid.add_branch(BranchDevice(name='L34', bus_from=grid.get_element('B3'), bus_to=b4, r=2.0, x=20.0))
    grid.add_load(LoadDevice(name='LD4', bus=b4, p=10.0, q=2.0))

    options = PowerFlowOptions(slack_bus_selection_mode=SlackBusSelectionMode.MOST_MESHED)
    network = NetworkBuilder(grid, options).build()[0]

    assert network.get_reference_bus().idtag == 'B3'


def test_component_results_frame():
    """
    The component frame reports one row per component
    """
    grid = two_islands_grid()
    results = power_flow(grid)

    df = results.get_component_df()
    assert len(df) == 2
    assert list(df['status']) == [LoadFlowStatus.CONVERGED.value] * 2
    assert len(results.convergence_report) == 2

    report = results.convergence_report.to_dataframe()
    assert list(report['Component']) == [0, 1]
    assert (report['Iterations'] > 0).all()

    logs = results.logger.to_df()
    assert len(logs) == len(results.logger)
    assert 'Message' in logs.columns


if __name__ == '__main__':
    test_two_bus_closed_form()
