# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import Dict
from FlowCalEngine.DataStructures.area import Area
from FlowCalEngine.Simulations.PowerFlow.Equations.network_state import get_slack_bus_active_power_mismatch
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.outer_loop import OuterLoop, OuterLoopContext, OuterLoopResult
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.active_power_distribution import (ActivePowerDistribution,
                                                                                      P_RESIDUE_EPS)
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.distributed_slack import DistributedSlackOuterLoop


class AreaInterchangeControlOuterLoop(OuterLoop):
    """
    Moves the generation of each area so that the active power leaving it
    through its boundaries matches its interchange target.

    The power picked up by the slack buses is charged to the areas hosting them.
    Without any area holding a target, the loop behaves as the distributed slack.
    """
    name = "AreaInterchangeControl"

    def __init__(self, distribution: ActivePowerDistribution, fallback: DistributedSlackOuterLoop,
                 slack_bus_p_max_mismatch: float, area_interchange_p_max_mismatch: float):
        """

        :param distribution: ActivePowerDistribution used inside each area
        :param fallback: distributed slack loop used when no area has a target
        :param slack_bus_p_max_mismatch: admissible slack mismatch (MW)
        :param area_interchange_p_max_mismatch: admissible interchange mismatch (MW)
        """
        self.distribution = distribution
        self.fallback = fallback
        self.slack_bus_p_max_mismatch = slack_bus_p_max_mismatch
        self.area_interchange_p_max_mismatch = area_interchange_p_max_mismatch

    @staticmethod
    def get_slack_share(context: OuterLoopContext, areas) -> Dict[Area, float]:
        """
        Slack bus injection excess charged to each area (p.u.)
        :param context: OuterLoopContext
        :param areas: controlled areas
        :return: {area: excess}
        """
        network = context.network
        slack_buses = network.get_slack_buses()
        mismatch = get_slack_bus_active_power_mismatch(network)
        share = {area: 0.0 for area in areas}
        if len(slack_buses) == 0:
            return share
        per_bus = -mismatch / len(slack_buses)
        for bus in slack_buses:
            # slack buses outside the controlled areas keep their part
            if bus.area in share:
                share[bus.area] += per_bus
        return share

    def check(self, context: OuterLoopContext) -> OuterLoopResult:
        network = context.network
        sb = network.Sbase
        areas = [area for area in network.areas if area.interchange_target is not None]

        if len(areas) == 0:
            return self.fallback.check(context)

        slack_share = self.get_slack_share(context, areas)

        moves = dict()
        stable = abs(sum(slack_share.values())) * sb <= self.slack_bus_p_max_mismatch
        for area in areas:
            interchange_mismatch = area.get_interchange() - area.interchange_target
            if abs(interchange_mismatch) * sb > self.area_interchange_p_max_mismatch:
                stable = False
            moves[area] = -interchange_mismatch + slack_share[area]

        if stable:
            return OuterLoopResult.stable()

        moved = False
        for area in areas:
            amount = moves[area]
            if abs(amount) <= P_RESIDUE_EPS:
                continue

            result = self.distribution.run(network, amount, buses=area.buses)
            context.distributed_active_power += result.distributed
            moved = moved or result.moved

            if abs(result.remaining) > P_RESIDUE_EPS:
                reason = f"Interchange target of area {area.idtag} infeasible"
                context.logger.add_error(reason, device=area.idtag, value=result.remaining * sb,
                                         expected_value=0.0)
                return OuterLoopResult.failed(reason)

            context.logger.add_info("Area generation moved", device=area.idtag,
                                    value=result.distributed * sb,
                                    expected_value=area.interchange_target * sb)

        if not moved:
            # below the distribution resolution, nothing left to do
            context.logger.add_info("Area interchange mismatch below the distribution resolution")
            return OuterLoopResult.stable()

        return OuterLoopResult.unstable()
