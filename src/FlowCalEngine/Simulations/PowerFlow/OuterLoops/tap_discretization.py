# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from FlowCalEngine.enumerations import TapControlMode, VariableType
from FlowCalEngine.Utils.NumericalMethods.common import find_closest_number
from FlowCalEngine.Simulations.PowerFlow.OuterLoops.outer_loop import OuterLoop, OuterLoopContext, OuterLoopResult


class PhaseControlOuterLoop(OuterLoop):
    """
    Rounds the continuous phase shifter angles to their closest tap
    """
    name = "PhaseControl"

    def check(self, context: OuterLoopContext) -> OuterLoopResult:
        changed = False
        for control in context.network.phase_controls:
            if not control.is_continuous() or len(control.taps) == 0:
                continue

            branch = control.branch
            _, alpha = find_closest_number(control.taps, branch.a1)
            context.logger.add_info("Phase shifter angle rounded to tap", device=branch.idtag,
                                    value=alpha, expected_value=branch.a1)
            branch.a1 = alpha

            # the state vector must hold the rounded angle too
            context.equation_system.set_variable_value(branch.num, VariableType.BRANCH_ALPHA1, alpha)
            control.mode = TapControlMode.FIXED
            changed = True

        return OuterLoopResult.unstable() if changed else OuterLoopResult.stable()


class TransformerVoltageControlOuterLoop(OuterLoop):
    """
    Rounds the continuous transformer ratios to their closest tap
    """
    name = "TransformerVoltageControl"

    def check(self, context: OuterLoopContext) -> OuterLoopResult:
        changed = False
        for control in context.network.transformer_voltage_controls:
            if not control.is_continuous() or len(control.taps) == 0:
                continue

            branch = control.branch
            _, rho = find_closest_number(control.taps, branch.r1)
            context.logger.add_info("Transformer ratio rounded to tap", device=branch.idtag,
                                    value=rho, expected_value=branch.r1)
            branch.r1 = rho
            context.equation_system.set_variable_value(branch.num, VariableType.BRANCH_RHO1, rho)
            control.mode = TapControlMode.FIXED
            changed = True

        return OuterLoopResult.unstable() if changed else OuterLoopResult.stable()
