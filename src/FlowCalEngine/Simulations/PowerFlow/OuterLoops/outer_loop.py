# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Union
from FlowCalEngine.basic_structures import Logger
from FlowCalEngine.enumerations import OuterLoopStatus
from FlowCalEngine.DataStructures.network import Network
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Simulations.PowerFlow.Equations.equation_system import EquationSystem
from FlowCalEngine.Simulations.PowerFlow.NumericalMethods.ac_solver import AcSolverResult


@dataclass
class OuterLoopResult:
    """
    Verdict of an outer loop check
    """
    status: OuterLoopStatus
    reason: str = ""

    @staticmethod
    def stable() -> "OuterLoopResult":
        return OuterLoopResult(OuterLoopStatus.STABLE)

    @staticmethod
    def unstable() -> "OuterLoopResult":
        return OuterLoopResult(OuterLoopStatus.UNSTABLE)

    @staticmethod
    def failed(reason: str) -> "OuterLoopResult":
        return OuterLoopResult(OuterLoopStatus.FAILED, reason)


class OuterLoopContext:
    """
    Everything an outer loop may read or modify during a load flow run
    """

    def __init__(self, network: Network, equation_system: EquationSystem, options: PowerFlowOptions,
                 logger: Union[Logger, None] = None):
        """

        :param network: Network of the component
        :param equation_system: EquationSystem built over the network
        :param options: PowerFlowOptions
        :param logger: Logger (the network logger if None)
        """
        self.network = network
        self.equation_system = equation_system
        self.options = options
        self.logger = logger if logger is not None else network.logger

        self.solver_result: Union[AcSolverResult, None] = None

        # number of outer loop iterations done so far (re-solves)
        self.iteration = 0

        # active power moved by the slack distribution (p.u.)
        self.distributed_active_power = 0.0

        self._data: Dict[str, Dict[str, Any]] = dict()

    def get_data(self, loop_name: str) -> Dict[str, Any]:
        """
        Private storage of a loop
        :param loop_name: OuterLoop.name
        :return: dictionary
        """
        if loop_name not in self._data:
            self._data[loop_name] = dict()
        return self._data[loop_name]


class OuterLoop(ABC):
    """
    Discrete control checked after each converged Newton solution
    """
    name = "OuterLoop"

    def initialize(self, context: OuterLoopContext):
        pass

    @abstractmethod
    def check(self, context: OuterLoopContext) -> OuterLoopResult:
        """
        Inspect the converged state and modify the network if needed
        :param context: OuterLoopContext
        :return: OuterLoopResult
        """
        pass

    def cleanup(self, context: OuterLoopContext):
        pass

    def __repr__(self):
        return self.name
