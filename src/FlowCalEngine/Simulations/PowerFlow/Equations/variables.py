# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import Dict, Tuple, List
import numpy as np
from FlowCalEngine.basic_structures import Vec
from FlowCalEngine.enumerations import VariableType

_VARIABLE_TYPE_ORDER = {tpe: i for i, tpe in enumerate(VariableType)}


class Variable:
    """
    Unknown of the equation system, identified by the element number and its type
    """

    def __init__(self, num: int, tpe: VariableType):
        """

        :param num: number of the element (bus or branch) in its network
        :param tpe: VariableType
        """
        self.num = num
        self.type = tpe

        # position in the state vector, -1 when the variable is not active
        self.row = -1

    def __repr__(self):
        return f"Variable({self.num}, {self.type})"

    def is_active(self) -> bool:
        return self.row >= 0

    def sort_key(self) -> Tuple[int, int]:
        return self.num, _VARIABLE_TYPE_ORDER[self.type]


class VariableSet:
    """
    Idempotent store of variables
    """

    def __init__(self):
        self._variables: Dict[Tuple[int, VariableType], Variable] = dict()

    def get_variable(self, num: int, tpe: VariableType) -> Variable:
        """
        Get the variable, creating it on first use
        :param num: element number
        :param tpe: VariableType
        :return: Variable
        """
        key = (num, tpe)
        var = self._variables.get(key, None)
        if var is None:
            var = Variable(num=num, tpe=tpe)
            self._variables[key] = var
        return var

    def get_variables(self) -> List[Variable]:
        return list(self._variables.values())

    def __len__(self):
        return len(self._variables)


class AcStateVector:
    """
    Values of the active variables, ordered by their row
    """

    def __init__(self):
        self.array: Vec = np.zeros(0)

    def get(self) -> Vec:
        return self.array

    def set(self, x: Vec):
        self.array = np.array(x, dtype=float)

    def __len__(self):
        return len(self.array)
