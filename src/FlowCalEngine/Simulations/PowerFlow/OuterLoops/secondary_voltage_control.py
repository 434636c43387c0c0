# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import List
import numpy as np
from FlowCalEngine.basic_structures import Vec
from FlowCalEngine.enumerations import EquationType, VariableType, LinearSolverType
from FlowCalEngine.exceptions import LinearSolverError
from FlowCalEngine.DataStructures.area import SecondaryVoltageControlZone
from FlowCalEngine.DataStructures.bus import GeneratorVoltageControl
from FlowCalEngine.Utils.NumericalMethods.sparse_solve import get_linear_solver
from FlowCalEngine.Simulations.PowerFlow.Equations.equation_system import EquationSystem
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.outer_loop import OuterLoop, OuterLoopContext, OuterLoopResult

PILOT_V_EPS = 1e-4
MIN_TARGET_V = 0.8
MAX_TARGET_V = 1.2


class SecondaryVoltageControlOuterLoop(OuterLoop):
    """
    Pilot point control: the voltage targets of the generators of a zone are shifted together
    using the sensitivity of the pilot bus voltage to each target
    """
    name = "SecondaryVoltageControl"

    def __init__(self, linear_solver_type: LinearSolverType = LinearSolverType.SuperLU):
        self.linear_solver = get_linear_solver(linear_solver_type)

    def get_sensitivities(self, es: EquationSystem, zone: SecondaryVoltageControlZone,
                          controls: List[GeneratorVoltageControl]) -> Vec:
        """
        d v_pilot / d target_k for each voltage control of the zone,
        obtained by solving J x = e_k at the current state
        :param es: EquationSystem
        :param zone: SecondaryVoltageControlZone
        :param controls: enabled voltage controls of the zone
        :return: sensitivities
        """
        J = es.jacobian()
        pilot_row = es.get_variable(zone.pilot_bus.num, VariableType.BUS_V).row

        s = np.zeros(len(controls))
        for k, vc in enumerate(controls):
            eq = es.get_equation(vc.controlled_bus.num, EquationType.BUS_TARGET_V)
            e_k = np.zeros(len(es.active_equations))
            e_k[eq.column] = 1.0
            s[k] = self.linear_solver(J, e_k)[pilot_row]
        return s

    def check(self, context: OuterLoopContext) -> OuterLoopResult:
        es = context.equation_system
        changed = False

        for zone in context.network.secondary_voltage_control_zones:
            pilot = zone.pilot_bus
            if pilot.disabled:
                continue

            dv = zone.target_v - pilot.v
            if abs(dv) <= PILOT_V_EPS:
                continue

            controls = zone.get_voltage_controls()
            if len(controls) == 0:
                context.logger.add_warning("Secondary voltage control zone without active control",
                                           device=zone.idtag)
                continue

            try:
                s = self.get_sensitivities(es, zone, controls)
            except LinearSolverError as e:
                context.logger.add_error("Pilot bus sensitivity failed", device=zone.idtag, value=e.message)
                continue

            s_sum = float(np.sum(s))
            if abs(s_sum) < 1e-9:
                context.logger.add_warning("Pilot bus voltage insensitive to the zone targets", device=zone.idtag)
                continue

            shift = dv / s_sum
            zone_changed = False
            for vc in controls:
                new_target = min(max(vc.target_v + shift, MIN_TARGET_V), MAX_TARGET_V)
                if abs(new_target - vc.target_v) > 1e-9:
                    vc.target_v = new_target
                    zone_changed = True

            if zone_changed:
                context.logger.add_info("Secondary voltage control targets shifted", device=zone.idtag,
                                        value=shift, expected_value=zone.target_v)
                changed = True
            else:
                context.logger.add_warning("Secondary voltage control targets at their limits", device=zone.idtag,
                                           value=pilot.v, expected_value=zone.target_v)

        return OuterLoopResult.unstable() if changed else OuterLoopResult.stable()
