# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import Union
from FlowCalEngine.basic_structures import Logger, ConvergenceReport
from FlowCalEngine.enumerations import *
from FlowCalEngine.exceptions import (PowerFlowError, ConfigurationError, StructuralError, SlackError,
                                      EquationCountMismatchError, LinearSolverError)
from FlowCalEngine.Devices import *
from FlowCalEngine.DataStructures import *
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Simulations.PowerFlow.power_flow_results import PowerFlowResults, ComponentResult
from FlowCalEngine.Simulations.PowerFlow.power_flow_driver import PowerFlowDriver
from FlowCalEngine.Simulations.PowerFlow.ac_load_flow_engine import AcLoadFlowEngine
from FlowCalEngine.Simulations.PowerFlow.network_cache import NetworkCache, CacheEntry
from FlowCalEngine.IO.debug_export import export_equation_system_json, export_network_graph


def power_flow(grid: MultiCircuit,
               options: Union[PowerFlowOptions, None] = None,
               cache: Union[NetworkCache, None] = None) -> PowerFlowResults:
    """
    Run a power flow
    :param grid: MultiCircuit instance
    :param options: PowerFlowOptions instance (optional)
    :param cache: NetworkCache to warm start from previous solutions (optional)
    :return: PowerFlowResults instance
    """
    driver = PowerFlowDriver(grid=grid, options=options, cache=cache)
    driver.run()
    return driver.results
