# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from FlowCalEngine.Simulations.PowerFlow.OuterLoops.outer_loop import OuterLoop, OuterLoopContext, OuterLoopResult
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.active_power_distribution import (ActivePowerDistribution,
                                                                                      DistributionResult)
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
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.outer_loop_factory import create_outer_loops
