# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import Callable, Union, Tuple
import numpy as np
from scipy.sparse.linalg import LinearOperator, gmres
from FlowCalEngine.basic_structures import Vec, Logger
from FlowCalEngine.enumerations import AcSolverType
from FlowCalEngine.exceptions import LinearSolverError
from FlowCalEngine.DataStructures.network import Network
from FlowCalEngine.Utils.NumericalMethods.common import norm
from FlowCalEngine.Simulations.PowerFlow.power_flow_options import PowerFlowOptions
from FlowCalEngine.Simulations.PowerFlow.Equations.equation_system import EquationSystem
from FlowCalEngine.Simulations.PowerFlow.NumericalMethods.ac_solver import NewtonAcSolver

SQRT_EPS = np.sqrt(np.finfo(float).eps)


class NewtonKrylov(NewtonAcSolver):
    """
    Jacobian free Newton-Krylov: the Newton steps are solved with GMRES
    using finite difference directional derivatives of the residual
    """
    solver_type = AcSolverType.NEWTON_KRYLOV

    def __init__(self, network: Network, equation_system: EquationSystem, options: PowerFlowOptions,
                 logger: Union[Logger, None] = None, gmres_rtol: float = 1e-8, gmres_restart: int = 50):
        """

        :param network: Network
        :param equation_system: EquationSystem
        :param options: PowerFlowOptions
        :param logger: Logger
        :param gmres_rtol: relative tolerance of the inner GMRES
        :param gmres_restart: GMRES restart
        """
        NewtonAcSolver.__init__(self, network, equation_system, options, logger)
        self.gmres_rtol = gmres_rtol
        self.gmres_restart = gmres_restart

    @property
    def max_iterations(self) -> int:
        return self.options.krylov_max_iterations

    def compute_step(self, fun: Callable[[Vec], Vec], x: Vec, f: Vec) -> Vec:
        n = len(x)
        x_norm = norm(x)

        def matvec(v):
            v = np.asarray(v, dtype=float).ravel()
            v_norm = norm(v)
            if v_norm == 0.0:
                return np.zeros(n)
            eps = SQRT_EPS * (1.0 + x_norm) / v_norm
            return (fun(x + eps * v) - f) / eps

        J = LinearOperator(shape=(n, n), matvec=matvec, dtype=float)
        dx, info = gmres(J, -f, rtol=self.gmres_rtol, atol=0.0, restart=self.gmres_restart)

        if info < 0:
            raise LinearSolverError(f"GMRES breakdown ({info})")
        elif info > 0:
            self.logger.add_warning("GMRES did not reach its tolerance", value=info)

        return dx

    def post_update(self, fun: Callable[[Vec], Vec], x_prev: Vec, dx: Vec, x: Vec, f: Vec,
                    norm_prev: float) -> Tuple[Vec, Vec, float]:
        x, f, f_norm = NewtonAcSolver.post_update(self, fun, x_prev, dx, x, f, norm_prev)

        if self.options.krylov_line_search:
            # halve the step until the residual decreases
            mu = 1.0
            it = 0
            while (not np.isfinite(f_norm) or f_norm >= norm_prev) and it < self.options.line_search_max_iterations:
                mu *= 0.5
                x = x_prev + mu * dx
                f = fun(x)
                f_norm = norm(f)
                it += 1

        return x, f, f_norm
