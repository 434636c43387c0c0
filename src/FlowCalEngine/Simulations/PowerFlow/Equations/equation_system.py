# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import Dict, Tuple, List, Union, Callable, Any
import numpy as np
from scipy.sparse import coo_matrix
from FlowCalEngine.basic_structures import Vec, CscMat
from FlowCalEngine.enumerations import EquationType, VariableType
from FlowCalEngine.exceptions import EquationCountMismatchError
from FlowCalEngine.Simulations.PowerFlow.Equations.variables import Variable, VariableSet, AcStateVector
from FlowCalEngine.Simulations.PowerFlow.Equations.equation import Equation


class EquationSystem:
    """
    Set of equations and variables with the state vector of the active variables

    The active equations are the ones flagged as active, the active variables
    are the ones referenced by the active terms of the active equations.
    Both are sorted by (element number, type).
    """

    def __init__(self, default_value: Union[Callable[[Variable], float], None] = None):
        """

        :param default_value: function providing the value of a variable entering the state vector
        """
        self.variable_set = VariableSet()
        self.equations: Dict[Tuple[int, EquationType], Equation] = dict()
        self.state_vector = AcStateVector()

        self.active_equations: List[Equation] = list()
        self.active_variables: List[Variable] = list()

        self.default_value = default_value if default_value is not None else (lambda var: 0.0)

    def __repr__(self):
        return f"EquationSystem({len(self.active_equations)} equations, {len(self.active_variables)} variables)"

    def create_equation(self, num: int, tpe: EquationType) -> Equation:
        """
        Get the equation, creating it on first use
        :param num: element number
        :param tpe: EquationType
        :return: Equation
        """
        key = (num, tpe)
        eq = self.equations.get(key, None)
        if eq is None:
            eq = Equation(num=num, tpe=tpe)
            self.equations[key] = eq
        return eq

    def get_equation(self, num: int, tpe: EquationType) -> Union[Equation, None]:
        return self.equations.get((num, tpe), None)

    def get_variable(self, num: int, tpe: VariableType) -> Variable:
        return self.variable_set.get_variable(num, tpe)

    def set_variable_value(self, num: int, tpe: VariableType, value: float) -> bool:
        """
        Overwrite the state vector value of an active variable
        :param num: element number
        :param tpe: VariableType
        :param value: new value
        :return: was the variable active?
        """
        var = self.variable_set.get_variable(num, tpe)
        if not var.is_active():
            return False
        x = self.state_vector.get().copy()
        x[var.row] = value
        self.state_vector.set(x)
        return True

    def get_row(self, variable: Variable) -> int:
        return variable.row

    def get_column(self, equation: Equation) -> int:
        return equation.column

    def index(self):
        """
        Order the active equations and variables, the values of the variables
        that stay active are kept in the state vector
        """
        x_prev = self.state_vector.get()
        previous = {var: x_prev[var.row] for var in self.active_variables if 0 <= var.row < len(x_prev)}

        for eq in self.equations.values():
            eq.column = -1
        self.active_equations = sorted([eq for eq in self.equations.values() if eq.active],
                                       key=lambda e: e.sort_key())
        for i, eq in enumerate(self.active_equations):
            eq.column = i

        referenced = dict()
        for eq in self.active_equations:
            for term in eq.terms:
                if term.active:
                    for var in term.variables:
                        referenced[id(var)] = var

        for var in self.variable_set.get_variables():
            var.row = -1
        self.active_variables = sorted(referenced.values(), key=lambda v: v.sort_key())
        for i, var in enumerate(self.active_variables):
            var.row = i

        x = np.empty(len(self.active_variables))
        for i, var in enumerate(self.active_variables):
            x[i] = previous[var] if var in previous else self.default_value(var)
        self.state_vector.set(x)

    def check_size(self):
        """
        The jacobian must be square
        """
        n_eq = len(self.active_equations)
        n_var = len(self.active_variables)
        if n_eq != n_var:
            raise EquationCountMismatchError(rows=n_eq, columns=n_var)

    def evaluate(self, x: Union[Vec, None] = None) -> Vec:
        """
        Values of the active equations
        :param x: state vector (the current one if None)
        :return: vector ordered by equation column
        """
        if x is None:
            x = self.state_vector.get()
        f = np.empty(len(self.active_equations))
        for i, eq in enumerate(self.active_equations):
            f[i] = eq.eval(x)
        return f

    def jacobian(self, x: Union[Vec, None] = None) -> CscMat:
        """
        Sparse jacobian, rows are the equations and columns the variables
        :param x: state vector (the current one if None)
        :return: csc_matrix
        """
        if x is None:
            x = self.state_vector.get()

        rows = list()
        cols = list()
        data = list()
        for eq in self.active_equations:
            for term in eq.terms:
                if term.active:
                    for var, d in term.get_derivatives(x):
                        rows.append(eq.column)
                        cols.append(var.row)
                        data.append(d)

        n = len(self.active_equations)
        m = len(self.active_variables)

        # duplicated entries are summed by the conversion
        return coo_matrix((np.array(data, dtype=float), (np.array(rows, dtype=int), np.array(cols, dtype=int))),
                          shape=(n, m)).tocsc()

    def get_variables_of_type(self, tpe: VariableType) -> List[Variable]:
        return [var for var in self.active_variables if var.type == tpe]

    def get_equations_of_type(self, tpe: EquationType) -> List[Equation]:
        return [eq for eq in self.active_equations if eq.type == tpe]

    def to_dict(self) -> Dict[str, Any]:
        """
        Dictionary representation used by the debug exports
        :return: dict
        """
        x = self.state_vector.get()
        return {"variables": [{"num": var.num, "type": var.type.name, "row": var.row, "value": float(x[var.row])}
                              for var in self.active_variables],
                "equations": [eq.to_dict() for eq in sorted(self.equations.values(), key=lambda e: e.sort_key())]}
