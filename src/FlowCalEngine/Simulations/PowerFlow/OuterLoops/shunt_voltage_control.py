# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import Dict, List, Union
import numpy as np
from FlowCalEngine.enumerations import EquationType, VariableType, LinearSolverType, SectionDirection
from FlowCalEngine.exceptions import LinearSolverError
from FlowCalEngine.DataStructures.bus import Bus
from FlowCalEngine.DataStructures.injections import Shunt, ShuntVoltageControl
from FlowCalEngine.Utils.NumericalMethods.sparse_solve import get_linear_solver
from FlowCalEngine.Simulations.PowerFlow.Equations.equation_system import EquationSystem
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.outer_loop import OuterLoop, OuterLoopContext, OuterLoopResult

# number of direction inversions allowed to each shunt
MAX_DIRECTION_CHANGE = 2

# deadband used when the control does not give one
MIN_TARGET_DEADBAND_KV = 0.1

SENSITIVITY_EPS = 1e-9


class ShuntControllerContext:
    """
    Moves done so far by one shunt
    """

    def __init__(self):
        self.direction_change_count = 0
        self.allowed_direction: Union[SectionDirection, None] = None

    def update_allowed_direction(self, direction: SectionDirection):
        """
        Record a move. Past the maximum number of inversions, the shunt can only
        keep going in its last direction
        :param direction: SectionDirection of the move
        """
        if self.direction_change_count <= MAX_DIRECTION_CHANGE:
            if self.allowed_direction != direction:
                self.direction_change_count += 1
            self.allowed_direction = direction


def get_half_target_deadband(control: ShuntVoltageControl) -> float:
    if control.target_deadband is not None:
        return control.target_deadband / 2.0
    return MIN_TARGET_DEADBAND_KV / control.controlled_bus.nominal_v / 2.0


class IncrementalShuntVoltageControlOuterLoop(OuterLoop):
    """
    Voltage control by shunt sections.

    The sensitivity of the controlled voltage to the susceptance of each shunt is
    computed at the converged state. The shunts, the largest sections first, then move
    one section at a time until the expected voltage falls inside the deadband.
    """
    name = "IncrementalShuntVoltageControl"

    def __init__(self, linear_solver_type: LinearSolverType = LinearSolverType.SuperLU):
        self.linear_solver = get_linear_solver(linear_solver_type)

    def initialize(self, context: OuterLoopContext):
        contexts: Dict[str, ShuntControllerContext] = dict()
        for control in context.network.shunt_voltage_controls:
            for shunt in control.controllers:
                contexts[shunt.idtag] = ShuntControllerContext()
        context.get_data(self.name)["controllers"] = contexts

    def get_sensitivities(self, es: EquationSystem, shunts: List[Shunt], controlled_bus: Bus) -> Dict[Shunt, float]:
        """
        d v_controlled / d b_k for each shunt: the shunt consumes -b v² in the reactive power
        equation of its bus, so the sensitivity is v² times the solution of J x = e_q
        :param es: EquationSystem
        :param shunts: controller shunts
        :param controlled_bus: Bus whose voltage is regulated
        :return: {shunt: sensitivity}
        """
        J = es.jacobian()
        v_row = es.get_variable(controlled_bus.num, VariableType.BUS_V).row

        sensitivities = dict()
        by_bus: Dict[Bus, float] = dict()
        for shunt in shunts:
            bus = shunt.bus
            if bus not in by_bus:
                eq = es.get_equation(bus.num, EquationType.BUS_TARGET_Q)
                if eq is None or eq.column < 0 or v_row < 0:
                    # the voltage of a voltage controlled bus does not move
                    by_bus[bus] = 0.0
                else:
                    e_q = np.zeros(len(es.active_equations))
                    e_q[eq.column] = 1.0
                    by_bus[bus] = float(self.linear_solver(J, e_q)[v_row])
            sensitivities[shunt] = bus.v * bus.v * by_bus[bus]
        return sensitivities

    def adjust_sections(self, control: ShuntVoltageControl, shunts: List[Shunt], sensitivities: Dict[Shunt, float],
                        contexts: Dict[str, ShuntControllerContext], context: OuterLoopContext) -> int:
        """
        Move the sections of the shunts of one control until the expected voltage is in the deadband
        :return: number of section changes
        """
        half_deadband = get_half_target_deadband(control)
        remaining_dv = control.target_v - control.controlled_bus.v
        n_changes = 0

        changed = True
        while changed:
            changed = False
            for shunt in shunts:
                sensitivity = sensitivities[shunt]
                if abs(remaining_dv) <= half_deadband or abs(sensitivity) < SENSITIVITY_EPS:
                    continue

                controller = contexts[shunt.idtag]
                previous_b = shunt.b
                direction = shunt.update_section_b(remaining_dv / sensitivity, controller.allowed_direction)
                if direction is None:
                    continue

                controller.update_allowed_direction(direction)
                remaining_dv -= (shunt.b - previous_b) * sensitivity
                changed = True
                n_changes += 1
                context.logger.add_info("Shunt section changed", device=shunt.idtag,
                                        value=shunt.section, expected_value=direction.value)
        return n_changes

    def check(self, context: OuterLoopContext) -> OuterLoopResult:
        contexts = context.get_data(self.name)["controllers"]
        n_changes = 0

        for control in context.network.shunt_voltage_controls:
            shunts = control.get_enabled_controllers()
            if len(shunts) == 0:
                continue

            if abs(control.target_v - control.controlled_bus.v) <= get_half_target_deadband(control):
                continue

            try:
                sensitivities = self.get_sensitivities(context.equation_system, shunts, control.controlled_bus)
            except LinearSolverError as e:
                context.logger.add_error("Shunt sensitivity failed", device=control.controlled_bus.idtag,
                                         value=e.message)
                continue

            shunts = sorted(shunts, key=lambda sh: abs(sh.b_per_section), reverse=True)
            n_changes += self.adjust_sections(control, shunts, sensitivities, contexts, context)

        return OuterLoopResult.unstable() if n_changes else OuterLoopResult.stable()
