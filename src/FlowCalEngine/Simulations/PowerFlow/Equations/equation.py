# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from typing import List, Tuple, Dict, Any
from FlowCalEngine.basic_structures import Vec
from FlowCalEngine.enumerations import EquationType
from FlowCalEngine.Simulations.PowerFlow.Equations.terms import Term

_EQUATION_TYPE_ORDER = {tpe: i for i, tpe in enumerate(EquationType)}


class Equation:
    """
    Sum of terms, identified by the element number and its type
    """

    def __init__(self, num: int, tpe: EquationType):
        """

        :param num: number of the element (bus or branch) in its network
        :param tpe: EquationType
        """
        self.num = num
        self.type = tpe
        self.active = True

        # position in the residual vector, -1 when the equation is not active
        self.column = -1

        self.terms: List[Term] = list()

        # constants of the equation (used by the sharing equations)
        self.data: Dict[str, Any] = dict()

    def __repr__(self):
        return f"Equation({self.num}, {self.type})"

    def sort_key(self) -> Tuple[int, int]:
        return self.num, _EQUATION_TYPE_ORDER[self.type]

    def add_term(self, term: Term) -> Term:
        self.terms.append(term)
        return term

    def clear_terms(self):
        self.terms.clear()

    def get_active_terms(self) -> List[Term]:
        return [t for t in self.terms if t.active]

    def eval(self, x: Vec) -> float:
        """
        Sum of the active terms
        :param x: state vector
        :return: value
        """
        val = 0.0
        for term in self.terms:
            if term.active:
                val += term.eval(x)
        return val

    def to_dict(self) -> Dict[str, Any]:
        return {"num": self.num,
                "type": self.type.name,
                "active": self.active,
                "column": self.column,
                "terms": [t.to_dict() for t in self.terms]}
