# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from enum import Enum


class LogSeverity(Enum):
    """
    Enumeration of logs severities
    """
    Error = 'Error'
    Warning = 'Warning'
    Information = 'Information'
    Divergence = 'Divergence'

    def __str__(self):
        return self.value

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return LogSeverity[s]
        except KeyError:
            return s


class AcSolverType(Enum):
    """
    Non linear solver used to drive the AC equation system to zero
    """
    NEWTON_RAPHSON = 'Newton-Raphson'
    NEWTON_KRYLOV = 'Newton-Krylov'
    BOUNDED_NLP = 'Bounded non linear program'

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return AcSolverType[s]
        except KeyError:
            return s


class LinearSolverType(Enum):
    """
    Sparse linear solvers
    """
    SuperLU = 'SuperLU'
    UMFPACK = 'UMFPACK'
    ILU = 'ILU'
    GMRES = 'GMRES'
    Pardiso = 'Pardiso'

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return LinearSolverType[s]
        except KeyError:
            return s


class AcSolverStatus(Enum):
    """
    Terminal state of a non linear solve
    """
    CONVERGED = 'Converged'
    MAX_ITERATION_REACHED = 'Max iteration reached'
    SOLVER_FAILED = 'Solver failed'
    UNREALISTIC_STATE = 'Unrealistic state'
    NO_CALCULATION = 'No calculation'

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return AcSolverStatus[s]
        except KeyError:
            return s


class OuterLoopStatus(Enum):
    """
    Status reported by an outer loop check
    """
    STABLE = 'Stable'
    UNSTABLE = 'Unstable'
    FAILED = 'Failed'

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return OuterLoopStatus[s]
        except KeyError:
            return s


class LoadFlowStatus(Enum):
    """
    Final status of a connected component
    """
    CONVERGED = 'Converged'
    MAX_ITERATION_REACHED = 'Max iteration reached'
    SOLVER_FAILED = 'Solver failed'
    UNREALISTIC_STATE = 'Unrealistic state'
    NO_CALCULATION = 'No calculation'
    FAILED = 'Failed'

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self):
        return str(self)

    @staticmethod
    def from_solver_status(status: AcSolverStatus) -> "LoadFlowStatus":
        """
        Map a solver terminal state into a component status
        :param status: AcSolverStatus
        :return: LoadFlowStatus
        """
        return LoadFlowStatus[status.name]

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return LoadFlowStatus[s]
        except KeyError:
            return s


class StateVectorScalingMode(Enum):
    """
    Step control applied to the Newton increment
    """
    NONE = 'None'
    MAX_VOLTAGE_CHANGE = 'Max voltage change'
    LINE_SEARCH = 'Line search'

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return StateVectorScalingMode[s]
        except KeyError:
            return s


class NewtonRaphsonStoppingCriteriaType(Enum):
    """
    Convergence test flavours
    """
    UNIFORM_CRITERIA = 'Uniform'
    PER_EQUATION_TYPE_CRITERIA = 'Per equation type'

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return NewtonRaphsonStoppingCriteriaType[s]
        except KeyError:
            return s


class VoltageInitMode(Enum):
    """
    Initial voltage guess
    """
    UNIFORM_VALUES = 'Uniform values'
    DC_VALUES = 'DC values'
    VOLTAGE_MAGNITUDE = 'Voltage magnitude'
    FULL_VOLTAGE = 'Full voltage'
    PREVIOUS_VALUES = 'Previous values'

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return VoltageInitMode[s]
        except KeyError:
            return s


class BalanceType(Enum):
    """
    Basis used to share an active power imbalance
    """
    PROPORTIONAL_TO_GENERATION_P = 'Generation P'
    PROPORTIONAL_TO_GENERATION_P_MAX = 'Generation P max'
    PROPORTIONAL_TO_GENERATION_PARTICIPATION_FACTOR = 'Generation participation factor'
    PROPORTIONAL_TO_GENERATION_REMAINING_MARGIN = 'Generation remaining margin'
    PROPORTIONAL_TO_LOAD = 'Load'
    PROPORTIONAL_TO_CONFORM_LOAD = 'Conform load'

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self):
        return str(self)

    def is_load(self) -> bool:
        """
        Is this a load based balance?
        :return: bool
        """
        return self in (BalanceType.PROPORTIONAL_TO_LOAD, BalanceType.PROPORTIONAL_TO_CONFORM_LOAD)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return BalanceType[s]
        except KeyError:
            return s


class SlackDistributionFailureBehavior(Enum):
    """
    What to do when the slack mismatch cannot be fully distributed
    """
    FAIL = 'Fail'
    LEAVE_ON_SLACK_BUS = 'Leave on slack bus'

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return SlackDistributionFailureBehavior[s]
        except KeyError:
            return s


class SlackBusSelectionMode(Enum):
    """
    How the slack bus of each component is picked
    """
    NAME = 'Name'
    MOST_MESHED = 'Most meshed'
    LARGEST_GENERATOR = 'Largest generator'

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return SlackBusSelectionMode[s]
        except KeyError:
            return s


class ConnectivityMode(Enum):
    """
    Connectivity analysis strategy
    """
    NAIVE = 'Naive'
    DECREMENTAL = 'Decremental'

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return ConnectivityMode[s]
        except KeyError:
            return s


class InjectionControlMode(Enum):
    """
    Control mode of a generator or converter
    """
    VOLTAGE = 'Voltage'
    REACTIVE_POWER = 'Reactive power'

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return InjectionControlMode[s]
        except KeyError:
            return s


class ReactiveLimitType(Enum):
    """
    Reactive limit that forced a bus into reactive power control
    """
    MIN_Q = 'Min Q'
    MAX_Q = 'Max Q'

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self):
        return str(self)


class TapControlMode(Enum):
    """
    State of a ratio or phase controller
    """
    FIXED = 'Fixed'
    CONTINUOUS = 'Continuous'

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self):
        return str(self)

    @staticmethod
    def argparse(s):
        """

        :param s:
        :return:
        """
        try:
            return TapControlMode[s]
        except KeyError:
            return s


class SectionDirection(Enum):
    """
    Direction of a shunt section change
    """
    INCREASE = 'Increase'
    DECREASE = 'Decrease'

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self):
        return str(self)


class BranchSide(Enum):
    """
    Branch terminal
    """
    ONE = 1
    TWO = 2

    def __str__(self) -> str:
        return str(self.name)

    def __repr__(self):
        return str(self)

    def other(self) -> "BranchSide":
        """
        The opposite side
        :return: BranchSide
        """
        return BranchSide.TWO if self == BranchSide.ONE else BranchSide.ONE


class FlowQuantity(Enum):
    """
    Power quantity carried by a flow term
    """
    P = 'P'
    Q = 'Q'

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self):
        return str(self)


class VariableType(Enum):
    """
    Kind of state variable
    """
    BUS_V = 'v'
    BUS_PHI = 'phi'
    BRANCH_RHO1 = 'rho1'
    BRANCH_ALPHA1 = 'alpha1'

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self):
        return str(self)

    def is_bus(self) -> bool:
        """
        Is this variable attached to a bus?
        :return: bool
        """
        return self in (VariableType.BUS_V, VariableType.BUS_PHI)


class EquationType(Enum):
    """
    Kind of equation
    """
    BUS_TARGET_P = 'bus_target_p'
    BUS_TARGET_Q = 'bus_target_q'
    BUS_TARGET_V = 'bus_target_v'
    BUS_TARGET_PHI = 'bus_target_phi'
    BUS_DISTR_Q = 'bus_distr_q'
    BUS_DISTR_SLACK_P = 'bus_distr_slack_p'
    BRANCH_TARGET_P = 'branch_target_p'
    BRANCH_TARGET_ALPHA1 = 'branch_target_alpha1'
    BRANCH_TARGET_RHO1 = 'branch_target_rho1'

    def __str__(self) -> str:
        return str(self.value)

    def __repr__(self):
        return str(self)

    def is_bus(self) -> bool:
        """
        Is this equation attached to a bus?
        :return: bool
        """
        return self.name.startswith('BUS_')
