# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import Callable, Tuple, List
import numpy as np
from scipy.optimize import least_squares
from FlowCalEngine.basic_structures import Vec
from FlowCalEngine.enumerations import AcSolverType, AcSolverStatus, VariableType
from FlowCalEngine.Simulations.PowerFlow.NumericalMethods.ac_solver import AcSolver


class BoundedNlpSolver(AcSolver):
    """
    Non linear least squares with the voltage magnitudes bounded by the realistic voltage range
    (scipy trust region reflective method)
    """
    solver_type = AcSolverType.BOUNDED_NLP

    def get_bounds(self) -> Tuple[Vec, Vec]:
        n = len(self.equation_system.active_variables)
        lb = np.full(n, -np.inf)
        ub = np.full(n, np.inf)
        for var in self.equation_system.get_variables_of_type(VariableType.BUS_V):
            lb[var.row] = self.options.min_realistic_voltage
            ub[var.row] = self.options.max_realistic_voltage
        return lb, ub

    def solve(self, fun: Callable[[Vec], Vec], x: Vec,
              min_iterations: int = 0) -> Tuple[AcSolverStatus, int, Vec, List[float]]:
        es = self.equation_system
        f = fun(x)
        converged, f_norm = self.stopping_criteria.test(f, es)
        if converged and min_iterations <= 0:
            return AcSolverStatus.CONVERGED, 0, x, [f_norm]

        lb, ub = self.get_bounds()
        # the starting point must be feasible
        x0 = np.clip(x, lb + 1e-9, ub - 1e-9)

        evolution = [f_norm]

        def residual(xx):
            ff = fun(xx)
            evolution.append(float(np.linalg.norm(ff)))
            return ff

        res = least_squares(fun=residual,
                            x0=x0,
                            jac=lambda xx: es.jacobian(xx),
                            bounds=(lb, ub),
                            method='trf',
                            ftol=1e-12,
                            xtol=1e-12,
                            gtol=1e-12,
                            max_nfev=self.options.max_iterations * 10)

        f = fun(res.x)
        converged, f_norm = self.stopping_criteria.test(f, es)
        evolution.append(f_norm)

        if converged:
            return AcSolverStatus.CONVERGED, res.nfev, res.x, evolution

        if not np.all(np.isfinite(res.x)):
            return AcSolverStatus.SOLVER_FAILED, res.nfev, x, evolution

        self.logger.add_divergence("Bounded NLP did not reach the tolerance", value=f_norm, expected_value=0.0)
        return AcSolverStatus.MAX_ITERATION_REACHED, res.nfev, res.x, evolution
