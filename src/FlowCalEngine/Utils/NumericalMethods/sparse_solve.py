# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import numpy as np
from typing import Union
from collections.abc import Callable
from scipy.sparse import csc_matrix
from scipy.sparse.linalg import spsolve as scipy_spsolve, splu, spilu, gmres
from FlowCalEngine.basic_structures import Vec, Mat
from FlowCalEngine.enumerations import LinearSolverType
from FlowCalEngine.exceptions import LinearSolverError


# list of available linear algebra frameworks
available_sparse_solvers = [LinearSolverType.SuperLU,
                            LinearSolverType.UMFPACK,
                            LinearSolverType.ILU,
                            LinearSolverType.GMRES]

try:
    from pypardiso import spsolve as pardiso_spsolve

    available_sparse_solvers.append(LinearSolverType.Pardiso)
except ImportError:
    pass


preferred_type = LinearSolverType.SuperLU


def super_lu_linsolver(A: csc_matrix, b: Union[Vec, Mat]) -> Union[Vec, Mat]:
    """
    SuperLU wrapper function for linear system solve A x = b
    :param A: System matrix
    :param b: right hand side
    :return: solution
    """
    try:
        return splu(A).solve(b)
    except RuntimeError as e:
        raise LinearSolverError(str(e))


def umfpack_linsolver(A: csc_matrix, b: Union[Vec, Mat]) -> Union[Vec, Mat]:
    """
    scipy spsolve wrapper function, it warns instead of failing on singular matrices
    :param A: System matrix
    :param b: right hand side
    :return: solution
    """
    x = scipy_spsolve(A, b)
    if not np.all(np.isfinite(x)):
        raise LinearSolverError("Singular matrix")
    return x


def ilu_linsolver(A: csc_matrix, b: Union[Vec, Mat]) -> Union[Vec, Mat]:
    """
    ILU wrapper function for linear system solve A x = b
    :param A: System matrix
    :param b: right hand side
    :return: solution
    """
    try:
        return spilu(A).solve(b)
    except RuntimeError as e:
        raise LinearSolverError(str(e))


def gmres_linsolve(A: csc_matrix, b: Union[Vec, Mat]) -> Union[Vec, Mat]:
    """

    :param A:
    :param b:
    :return:
    """
    x, info = gmres(A, b, rtol=1e-10)
    if info < 0:
        raise LinearSolverError(f"GMRES breakdown ({info})")
    return x


def get_linear_solver(solver_type: LinearSolverType = preferred_type) -> Callable[[csc_matrix, Union[Vec, Mat]],
                                                                                   Union[Vec, Mat]]:
    """
    Provide the chosen linear solver function pointer to
    solve linear systems of the type A x = b, with x = f(A,b)
    :param solver_type: LinearSolverType option
    :return: function pointer f(A, b)
    """
    if solver_type in available_sparse_solvers:

        if solver_type == LinearSolverType.UMFPACK:
            return umfpack_linsolver

        elif solver_type == LinearSolverType.SuperLU:
            return super_lu_linsolver

        elif solver_type == LinearSolverType.Pardiso:
            return pardiso_spsolve

        elif solver_type == LinearSolverType.ILU:
            return ilu_linsolver

        elif solver_type == LinearSolverType.GMRES:
            return gmres_linsolve

        else:
            raise Exception('Unrecognized linear solver')

    else:
        return super_lu_linsolver
