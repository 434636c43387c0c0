# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import List, Tuple, Union
from FlowCalEngine.DataStructures.injections import Generator
from FlowCalEngine.DataStructures.network import Network
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.outer_loop import OuterLoop, OuterLoopContext, OuterLoopResult


class MonitoringVoltageOuterLoop(OuterLoop):
    """
    Generators in stand by start controlling the voltage once the regulated voltage
    leaves their thresholds band, with the target of the violated side
    """
    name = "VoltageMonitoring"

    @staticmethod
    def get_standby_generator(bus) -> Union[Generator, None]:
        for gen in bus.get_controller_generators():
            if gen.standby_automaton is not None:
                return gen
        return None

    def get_pq_to_pv_candidates(self, network: Network) -> List[Tuple[Generator, float]]:
        """
        Stand by generators whose regulated voltage is out of the band
        :param network: Network
        :return: [(generator, new target voltage)]
        """
        candidates = list()
        for vc in network.voltage_controls:
            if vc.disabled or vc.controlled_bus.disabled:
                continue
            for bus in vc.controller_buses:
                if bus.disabled or bus.is_voltage_controller_enabled():
                    continue
                gen = self.get_standby_generator(bus)
                if gen is None:
                    continue
                automaton = gen.standby_automaton
                v = vc.controlled_bus.v
                if v > automaton.high_voltage_threshold:
                    candidates.append((gen, automaton.high_target_v))
                elif v < automaton.low_voltage_threshold:
                    candidates.append((gen, automaton.low_target_v))
        return candidates

    def check(self, context: OuterLoopContext) -> OuterLoopResult:
        candidates = self.get_pq_to_pv_candidates(context.network)

        for gen, target_v in candidates:
            vc = gen.control_group
            context.logger.add_info("Stand by automaton activation", device=gen.idtag,
                                    value=vc.controlled_bus.v, expected_value=target_v)
            vc.target_v = target_v
            # once started, the generator is an ordinary voltage controller
            gen.standby_automaton = None
            gen.switch_to_voltage()

        return OuterLoopResult.unstable() if len(candidates) else OuterLoopResult.stable()
