# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from FlowCalEngine.enumerations import SlackDistributionFailureBehavior
from FlowCalEngine.Simulations.PowerFlow.Equations.network_state import get_slack_bus_active_power_mismatch
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.outer_loop import OuterLoop, OuterLoopContext, OuterLoopResult
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.active_power_distribution import (ActivePowerDistribution,
                                                                                      P_RESIDUE_EPS)


class DistributedSlackOuterLoop(OuterLoop):
    """
    Moves the active power picked up by the slack bus(es) to the participating injections
    """
    name = "DistributedSlack"

    def __init__(self, distribution: ActivePowerDistribution, slack_bus_p_max_mismatch: float,
                 failure_behavior: SlackDistributionFailureBehavior):
        """

        :param distribution: ActivePowerDistribution
        :param slack_bus_p_max_mismatch: admissible slack mismatch (MW)
        :param failure_behavior: what to do with the power that cannot be distributed
        """
        self.distribution = distribution
        self.slack_bus_p_max_mismatch = slack_bus_p_max_mismatch
        self.failure_behavior = failure_behavior

    def check(self, context: OuterLoopContext) -> OuterLoopResult:
        network = context.network
        mismatch = get_slack_bus_active_power_mismatch(network)

        if abs(mismatch) * network.Sbase <= self.slack_bus_p_max_mismatch:
            return OuterLoopResult.stable()

        result = self.distribution.run(network, -mismatch)
        context.distributed_active_power += result.distributed

        if abs(result.remaining) > P_RESIDUE_EPS:

            remaining_mw = result.remaining * network.Sbase

            if self.failure_behavior == SlackDistributionFailureBehavior.FAIL:
                reason = f"Failed to distribute slack bus active power mismatch, {remaining_mw:.6f} MW remains"
                context.logger.add_error(reason, value=remaining_mw)
                return OuterLoopResult.failed(reason)

            context.logger.add_warning("Slack bus active power mismatch left on the slack bus",
                                       value=remaining_mw)

            if not result.moved:
                # nothing else can move
                return OuterLoopResult.stable()

        context.logger.add_info("Slack bus active power distributed",
                                value=result.distributed * network.Sbase,
                                expected_value=-mismatch * network.Sbase)

        return OuterLoopResult.unstable()
