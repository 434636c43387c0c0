# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import List, Tuple
from FlowCalEngine.enumerations import ReactiveLimitType
from FlowCalEngine.DataStructures.bus import Bus
from FlowCalEngine.DataStructures.network import Network
from FlowCalEngine.Simulations.PowerFlow.Equations.network_state import get_controller_bus_q
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.outer_loop import OuterLoop, OuterLoopContext, OuterLoopResult

Q_EPS = 1e-5


class ReactiveLimitsOuterLoop(OuterLoop):
    """
    PV -> PQ switching of the controller buses violating their reactive power limits,
    and PQ -> PV switching back when the controlled voltage allows it
    """
    name = "ReactiveLimits"

    def __init__(self, max_pq_pv_switch: int = 3):
        """

        :param max_pq_pv_switch: maximum number of PQ -> PV switches per bus
        """
        self.max_pq_pv_switch = max_pq_pv_switch

    @staticmethod
    def get_pv_to_pq_candidates(network: Network) -> List[Tuple[Bus, ReactiveLimitType, float, float]]:
        """
        Controller buses whose reactive power is out of limits
        :param network: Network
        :return: [(bus, violated limit type, limit, q)]
        """
        candidates = list()
        for vc in network.voltage_controls:
            if not vc.is_enabled():
                continue
            for bus in vc.get_enabled_controller_buses():
                q = get_controller_bus_q(bus)
                q_min = bus.get_min_q()
                q_max = bus.get_max_q()
                if q > q_max + Q_EPS:
                    candidates.append((bus, ReactiveLimitType.MAX_Q, q_max, q))
                elif q < q_min - Q_EPS:
                    candidates.append((bus, ReactiveLimitType.MIN_Q, q_min, q))
        return candidates

    def get_pq_to_pv_candidates(self, network: Network) -> List[Bus]:
        """
        Buses switched to PQ earlier whose controlled voltage asks for the control back
        :param network: Network
        :return: list of buses
        """
        candidates = list()
        for bus in network.buses:
            vc = bus.controller_voltage_control
            if vc is None or vc.disabled or bus.disabled or bus.is_voltage_controller_enabled():
                continue

            limit_type = bus.get_q_limit_type()
            if limit_type is None or bus.pq_pv_switch_count >= self.max_pq_pv_switch:
                continue

            v = vc.controlled_bus.v
            if limit_type == ReactiveLimitType.MAX_Q and v > vc.target_v:
                candidates.append(bus)
            elif limit_type == ReactiveLimitType.MIN_Q and v < vc.target_v:
                candidates.append(bus)
        return candidates

    def check(self, context: OuterLoopContext) -> OuterLoopResult:
        network = context.network
        sb = network.Sbase

        pv_to_pq = self.get_pv_to_pq_candidates(network)
        pq_to_pv = self.get_pq_to_pv_candidates(network)

        for bus, limit_type, limit, q in pv_to_pq:
            bus.set_voltage_control_enabled(False, limit_type)
            context.logger.add_info(f"PV -> PQ switch ({limit_type.value})", device=bus.idtag,
                                    value=q * sb, expected_value=limit * sb)

        for bus in pq_to_pv:
            bus.set_voltage_control_enabled(True)
            bus.pq_pv_switch_count += 1
            context.logger.add_info("PQ -> PV switch", device=bus.idtag,
                                    value=bus.controller_voltage_control.controlled_bus.v,
                                    expected_value=bus.controller_voltage_control.target_v)

        if len(pv_to_pq) and not network.has_voltage_control():
            reason = "No more voltage-controlled bus remains after reactive limit enforcement"
            context.logger.add_error(reason)
            return OuterLoopResult.failed(reason)

        if len(pv_to_pq) or len(pq_to_pv):
            return OuterLoopResult.unstable()

        return OuterLoopResult.stable()
