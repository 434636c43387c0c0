# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
import pytest
from FlowCalEngine.api import *
from FlowCalEngine.Simulations.PowerFlow.Initializers.voltage_initializers import (
    create_voltage_initializer, UniformValueVoltageInitializer, DcValueVoltageInitializer,
    VoltageMagnitudeInitializer, FullVoltageInitializer, PreviousValueVoltageInitializer)
from grids import two_bus_grid, ring_grid, build_network


def test_dc_angles():
    """
    Single line: theta2 = -P2 x
    """
    network = build_network(two_bus_grid())
    initializer = DcValueVoltageInitializer()
    initializer.prepare(network)

    b1 = network.get_bus_by_id('B1')
    b2 = network.get_bus_by_id('B2')
    assert initializer.get_angle(b1) == 0.0
    assert np.isclose(initializer.get_angle(b2), -0.5 * 0.1)
    assert initializer.get_magnitude(b2) == 1.0


def test_voltage_magnitudes():
    """
    The controlled buses start at their target, the others in between
    """
    network = build_network(ring_grid())
    initializer = VoltageMagnitudeInitializer()
    initializer.prepare(network)

    assert np.isclose(initializer.get_magnitude(network.get_bus_by_id('B1')), 134.0 / 132.0)
    assert np.isclose(initializer.get_magnitude(network.get_bus_by_id('B2')), 133.0 / 132.0)

    # same susceptance to both controlled buses
    assert np.isclose(initializer.get_magnitude(network.get_bus_by_id('B3')), (134.0 + 133.0) / (2 * 132.0))
    assert initializer.get_angle(network.get_bus_by_id('B3')) == 0.0


def test_full_voltage():
    """
    The full initialization combines the magnitudes and the DC angles
    """
    network = build_network(ring_grid())
    initializer = FullVoltageInitializer()
    initializer.prepare(network)

    b3 = network.get_bus_by_id('B3')
    assert np.isclose(initializer.get_magnitude(b3), (134.0 + 133.0) / (2 * 132.0))
    assert initializer.get_angle(b3) < 0.0


def test_previous_values():
    """
    The snapshot values take precedence over the bus values
    """
    network = build_network(two_bus_grid())
    b1 = network.get_bus_by_id('B1')
    b2 = network.get_bus_by_id('B2')
    b2.v = 0.95
    b2.angle = -0.1

    initializer = PreviousValueVoltageInitializer(snapshot={'B1': (1.01, 0.02)})
    initializer.prepare(network)

    assert initializer.get_magnitude(b1) == 1.01
    assert initializer.get_angle(b1) == 0.02
    assert initializer.get_magnitude(b2) == 0.95
    assert initializer.get_angle(b2) == -0.1


def test_large_phase_shift_switches_to_dc():
    """
    The flat start is replaced by the DC angles when a phase shift goes above the threshold
    """
    grid = two_bus_grid()
    grid.get_element('L12').phase = 20.0
    network = build_network(grid)
    logger = Logger()

    initializer = create_voltage_initializer(VoltageInitMode.UNIFORM_VALUES, network,
                                             phase_shifter_dc_init_threshold=10.0, logger=logger)
    assert isinstance(initializer, DcValueVoltageInitializer)
    assert len(logger) == 1

    initializer = create_voltage_initializer(VoltageInitMode.UNIFORM_VALUES, network,
                                             phase_shifter_dc_init_threshold=30.0)
    assert isinstance(initializer, UniformValueVoltageInitializer)


@pytest.mark.parametrize("mode", [VoltageInitMode.UNIFORM_VALUES,
                                  VoltageInitMode.DC_VALUES,
                                  VoltageInitMode.VOLTAGE_MAGNITUDE,
                                  VoltageInitMode.FULL_VOLTAGE])
def test_all_initializers_converge(mode):
    """
    The power flow converges to the same state whatever the starting point
    """
    reference = power_flow(ring_grid(), PowerFlowOptions())
    results = power_flow(ring_grid(), PowerFlowOptions(voltage_init_mode=mode))

    assert results.converged
    assert np.allclose(results.get_bus_df()['Vm'], reference.get_bus_df()['Vm'], atol=1e-4)
    assert np.allclose(results.get_bus_df()['Va'], reference.get_bus_df()['Va'], atol=1e-3)


if __name__ == '__main__':
    test_voltage_magnitudes()
