# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from dataclasses import dataclass, field
from typing import List, Union, Dict, Any
import numpy as np
import pandas as pd
from FlowCalEngine.basic_structures import Logger, ConvergenceReport
from FlowCalEngine.enumerations import LoadFlowStatus, AcSolverStatus, OuterLoopStatus
from FlowCalEngine.DataStructures.network import Network


@dataclass
class ComponentResult:
    """
    Load flow result of a connected component
    """
    component_num: int
    status: LoadFlowStatus = LoadFlowStatus.NO_CALCULATION
    solver_status: Union[AcSolverStatus, None] = None
    outer_loop_status: Union[OuterLoopStatus, None] = None
    reason: str = ""
    iterations: int = 0
    outer_loop_iterations: int = 0
    slack_bus_active_power_mismatch: float = 0.0  # MW
    distributed_active_power: float = 0.0  # MW
    elapsed: float = 0.0
    error: float = 0.0
    error_evolution: List[float] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return self.status == LoadFlowStatus.CONVERGED

    def to_dict(self) -> Dict[str, Any]:
        return {'component': self.component_num,
                'status': self.status.value,
                'solver status': self.solver_status.value if self.solver_status is not None else None,
                'outer loop status': (self.outer_loop_status.value
                                      if self.outer_loop_status is not None else None),
                'reason': self.reason,
                'iterations': self.iterations,
                'outer loop iterations': self.outer_loop_iterations,
                'slack mismatch (MW)': self.slack_bus_active_power_mismatch,
                'distributed (MW)': self.distributed_active_power,
                'elapsed (s)': self.elapsed}


class PowerFlowResults:
    """
    Results of a power flow over all the components of a grid
    """

    def __init__(self):
        self.components: List[ComponentResult] = list()

        self.logger = Logger()

        self.convergence_report = ConvergenceReport()

        self._bus_records: List[Dict[str, Any]] = list()
        self._branch_records: List[Dict[str, Any]] = list()

    @property
    def converged(self) -> bool:
        """
        Did every calculated component converge?
        :return: bool
        """
        calculated = [c for c in self.components if c.status != LoadFlowStatus.NO_CALCULATION]
        return len(calculated) > 0 and all(c.converged for c in calculated)

    @property
    def iterations(self) -> int:
        return max([c.iterations for c in self.components], default=0)

    @property
    def elapsed(self) -> float:
        return sum(c.elapsed for c in self.components)

    def get_component_result(self, component_num: int) -> Union[ComponentResult, None]:
        for c in self.components:
            if c.component_num == component_num:
                return c
        return None

    def add_component(self, network: Network, result: ComponentResult, method: str):
        """
        Register the result of a component with its bus and branch values
        :param network: Network that was solved
        :param result: ComponentResult
        :param method: name of the non linear solver
        """
        self.components.append(result)
        self.convergence_report.add(component=result.component_num,
                                    method=method,
                                    status=result.status,
                                    error=result.error,
                                    elapsed=result.elapsed,
                                    iterations=result.iterations)
        self.logger += network.logger

        sb = network.Sbase
        for bus in network.buses:
            self._bus_records.append({'name': bus.idtag,
                                      'component': network.num,
                                      'Vm': bus.v,
                                      'V (kV)': bus.v * bus.nominal_v,
                                      'Va': np.rad2deg(bus.angle),
                                      'P': bus.p * sb,
                                      'Q': bus.q * sb,
                                      'disabled': bus.disabled})

        for branch in network.branches:
            self._branch_records.append({'name': branch.idtag,
                                         'component': network.num,
                                         'Pf': branch.p1 * sb,
                                         'Qf': branch.q1 * sb,
                                         'Pt': branch.p2 * sb,
                                         'Qt': branch.q2 * sb,
                                         'If': branch.i1,
                                         'It': branch.i2,
                                         'Ploss': (branch.p1 + branch.p2) * sb,
                                         'Qloss': (branch.q1 + branch.q2) * sb,
                                         'ratio': branch.r1,
                                         'phase': np.rad2deg(branch.a1)})

    def get_component_df(self) -> pd.DataFrame:
        """
        Get a DataFrame with the component results
        :return: DataFrame
        """
        return pd.DataFrame(data=[c.to_dict() for c in self.components])

    def get_bus_df(self) -> pd.DataFrame:
        """
        Get a DataFrame with the buses results (Vm in p.u., Va in deg, P in MW, Q in MVAr)
        :return: DataFrame
        """
        if len(self._bus_records) == 0:
            return pd.DataFrame()
        return pd.DataFrame(data=self._bus_records).set_index('name')

    def get_branch_df(self) -> pd.DataFrame:
        """
        Get a DataFrame with the branches results (flows in MW and MVAr, currents in p.u.)
        :return: DataFrame
        """
        if len(self._branch_records) == 0:
            return pd.DataFrame()
        return pd.DataFrame(data=self._branch_records).set_index('name')
