# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import pytest
from FlowCalEngine.api import *
from grids import two_bus_grid


def test_default_options_are_valid():
    """
    The defaults pass the validation
    """
    PowerFlowOptions().validate()


@pytest.mark.parametrize("kwargs", [dict(threads=0),
                                    dict(max_iterations=0),
                                    dict(conv_eps_per_eq=-1e-4),
                                    dict(line_search_step_fold=1.0),
                                    dict(min_realistic_voltage=1.5, max_realistic_voltage=1.2),
                                    dict(phase_shifter_dc_init_threshold=400.0),
                                    dict(max_iterations=2.5),
                                    dict(distributed_slack="yes")])
def test_invalid_options(kwargs):
    """
    Out of range or wrongly typed values are reported with their key
    """
    with pytest.raises(ConfigurationError) as e:
        PowerFlowOptions(**kwargs)

    assert e.value.key in kwargs

    # values changed after the construction are checked as well
    options = PowerFlowOptions()
    for key, value in kwargs.items():
        setattr(options, key, value)

    with pytest.raises(ConfigurationError):
        options.validate()


def test_load_balance_without_loads():
    """
    A load based balance needs at least one load
    """
    grid = MultiCircuit(name='no loads')
    b1 = grid.add_bus(BusDevice(name='B1', nominal_v=20.0))
    grid.add_generator(GeneratorDevice(name='G1', bus=b1, v_set=20.0))

    options = PowerFlowOptions(balance_type=BalanceType.PROPORTIONAL_TO_LOAD)

    with pytest.raises(ConfigurationError):
        options.validate(grid)

    # raised before anything is solved
    with pytest.raises(ConfigurationError):
        power_flow(grid, options)

    # fine when there is a load
    options.validate(two_bus_grid())


def test_dict_round_trip():
    """
    The options survive a conversion to a plain dictionary
    """
    options = PowerFlowOptions(solver_type=AcSolverType.NEWTON_KRYLOV,
                               max_iterations=30,
                               state_vector_scaling_mode=StateVectorScalingMode.LINE_SEARCH,
                               balance_type=BalanceType.PROPORTIONAL_TO_LOAD,
                               threads=4)
    data = options.to_dict()

    assert data['solver_type'] == 'NEWTON_KRYLOV'
    assert data['threads'] == 4

    options2 = PowerFlowOptions.from_dict(data)
    assert options2.to_dict() == data
    assert options2.solver_type == AcSolverType.NEWTON_KRYLOV
    assert options2.balance_type == BalanceType.PROPORTIONAL_TO_LOAD


def test_unknown_key():
    """
    Unknown keys are rejected
    """
    with pytest.raises(KeyError):
        PowerFlowOptions.from_dict({'max_iteration': 10})


if __name__ == '__main__':
    test_dict_round_trip()
