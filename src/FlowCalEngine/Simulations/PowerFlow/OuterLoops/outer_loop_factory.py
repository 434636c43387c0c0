# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import List
from FlowCalEngine.DataStructures.network import Network
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.outer_loop import OuterLoop
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.active_power_distribution import ActivePowerDistribution
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.distributed_slack import DistributedSlackOuterLoop
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.reactive_limits import ReactiveLimitsOuterLoop
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.voltage_target_check import VoltageTargetCheckOuterLoop
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.area_interchange import AreaInterchangeControlOuterLoop
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.automation_system import AutomationSystemOuterLoop
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.tap_discretization import (PhaseControlOuterLoop,
                                                                               TransformerVoltageControlOuterLoop)
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.secondary_voltage_control import SecondaryVoltageControlOuterLoop
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.shunt_voltage_control import IncrementalShuntVoltageControlOuterLoop
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.voltage_monitoring import MonitoringVoltageOuterLoop


def create_outer_loops(options: PowerFlowOptions, network: Network) -> List[OuterLoop]:
    """
    Ordered list of the outer loops enabled by the options
    :param options: PowerFlowOptions
    :param network: Network (the tap loops are only created when there is something to round)
    :return: list of OuterLoop
    """
    loops: List[OuterLoop] = list()

    distributed_slack = DistributedSlackOuterLoop(
        distribution=ActivePowerDistribution(options.balance_type),
        slack_bus_p_max_mismatch=options.slack_bus_p_max_mismatch,
        failure_behavior=options.slack_distribution_failure_behavior
    )

    if options.distributed_slack and not options.area_interchange_control:
        loops.append(distributed_slack)

    if options.svc_voltage_monitoring and any(gen.standby_automaton is not None for gen in network.generators):
        loops.append(MonitoringVoltageOuterLoop())

    if options.use_reactive_limits:
        loops.append(ReactiveLimitsOuterLoop(max_pq_pv_switch=options.max_pq_pv_switch))

    if options.voltage_target_check:
        loops.append(VoltageTargetCheckOuterLoop(plausibility_threshold=options.target_voltage_plausibility_threshold,
                                                 min_realistic_voltage=options.min_realistic_voltage,
                                                 max_realistic_voltage=options.max_realistic_voltage))

    if options.area_interchange_control:
        loops.append(AreaInterchangeControlOuterLoop(
            distribution=ActivePowerDistribution(options.balance_type),
            fallback=distributed_slack,
            slack_bus_p_max_mismatch=options.slack_bus_p_max_mismatch,
            area_interchange_p_max_mismatch=options.area_interchange_p_max_mismatch
        ))

    if options.simulate_automation_systems:
        loops.append(AutomationSystemOuterLoop())

    if options.phase_control and any(pc.is_continuous() for pc in network.phase_controls):
        loops.append(PhaseControlOuterLoop())

    if options.transformer_voltage_control and any(tc.is_continuous()
                                                   for tc in network.transformer_voltage_controls):
        loops.append(TransformerVoltageControlOuterLoop())

    if options.shunt_voltage_control and len(network.shunt_voltage_controls):
        loops.append(IncrementalShuntVoltageControlOuterLoop(linear_solver_type=options.linear_solver))

    if options.secondary_voltage_control:
        loops.append(SecondaryVoltageControlOuterLoop(linear_solver_type=options.linear_solver))

    return loops
