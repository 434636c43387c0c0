# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.outer_loop import OuterLoop, OuterLoopContext, OuterLoopResult


class AutomationSystemOuterLoop(OuterLoop):
    """
    Overload management systems: switch a branch when a monitored current exceeds its threshold
    """
    name = "AutomationSystem"

    def check(self, context: OuterLoopContext) -> OuterLoopResult:
        network = context.network
        switched = False

        for oms in network.overload_management_systems:
            monitored = oms.monitored_branch
            if monitored.disabled:
                continue

            current = monitored.get_current(oms.monitored_side)
            if current <= oms.threshold:
                continue

            operated = oms.operated_branch
            closed = operated.connected1 and operated.connected2
            if closed != oms.open_branch:
                # already in the requested state
                continue

            network.switch_branch(operated, closed=not oms.open_branch)
            context.logger.add_info("Automation system switched branch " + ("open" if oms.open_branch else "closed"),
                                    device=operated.idtag, value=current, expected_value=oms.threshold)
            switched = True

        if switched:
            network.update_connectivity()
            return OuterLoopResult.unstable()

        return OuterLoopResult.stable()
