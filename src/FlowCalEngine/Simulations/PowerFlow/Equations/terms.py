# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
"""
Equation terms of the AC power flow

The branch model is a pi model with an ideal transformer (ratio r1, phase shift a1) at side 1:

    U1 = r1 · e^(j·a1) · V1

With y = G + jB the series admittance, y1 = g1 + jb1 and y2 = g2 + jb2 the shunt admittances
and theta = phi1 - phi2 + a1, the powers leaving the buses into the branch are:

    P1 = (g1 + G)·r1²·v1² - r1·v1·v2·(G·cos(theta) + B·sin(theta))
    Q1 = -(b1 + B)·r1²·v1² - r1·v1·v2·(G·sin(theta) - B·cos(theta))
    P2 = (g2 + G)·v2² - r1·v1·v2·(G·cos(theta) - B·sin(theta))
    Q2 = -(b2 + B)·v2² + r1·v1·v2·(G·sin(theta) + B·cos(theta))
"""
from __future__ import annotations

from typing import List, Tuple, Union, Dict, Any
import numpy as np
import numba as nb
from FlowCalEngine.basic_structures import Vec
from FlowCalEngine.enumerations import BranchSide, FlowQuantity
from FlowCalEngine.DataStructures.branch import Branch
from FlowCalEngine.DataStructures.injections import Shunt
from FlowCalEngine.Simulations.PowerFlow.Equations.variables import Variable


@nb.njit(cache=True)
def closed_branch_flow(side: int, is_q: bool, G: float, B: float, g1: float, b1: float, g2: float, b2: float,
                       v1: float, ph1: float, v2: float, ph2: float, r1: float, a1: float):
    """
    Flow at one side of a closed branch and its partial derivatives
    :param side: 1 or 2
    :param is_q: reactive power (True) or active power (False)
    :param G: series conductance
    :param B: series susceptance
    :param g1: side 1 shunt conductance
    :param b1: side 1 shunt susceptance
    :param g2: side 2 shunt conductance
    :param b2: side 2 shunt susceptance
    :param v1: side 1 voltage magnitude
    :param ph1: side 1 voltage angle
    :param v2: side 2 voltage magnitude
    :param ph2: side 2 voltage angle
    :param r1: ratio
    :param a1: phase shift
    :return: value, d/dv1, d/dph1, d/dv2, d/dph2, d/dr1, d/da1
    """
    theta = ph1 - ph2 + a1
    c = np.cos(theta)
    s = np.sin(theta)

    if side == 1:
        if not is_q:
            k = G * c + B * s
            val = (g1 + G) * r1 * r1 * v1 * v1 - r1 * v1 * v2 * k
            dv1 = 2.0 * (g1 + G) * r1 * r1 * v1 - r1 * v2 * k
            dv2 = -r1 * v1 * k
            dth = -r1 * v1 * v2 * (-G * s + B * c)
            dr1 = 2.0 * (g1 + G) * r1 * v1 * v1 - v1 * v2 * k
        else:
            k = G * s - B * c
            val = -(b1 + B) * r1 * r1 * v1 * v1 - r1 * v1 * v2 * k
            dv1 = -2.0 * (b1 + B) * r1 * r1 * v1 - r1 * v2 * k
            dv2 = -r1 * v1 * k
            dth = -r1 * v1 * v2 * (G * c + B * s)
            dr1 = -2.0 * (b1 + B) * r1 * v1 * v1 - v1 * v2 * k
    else:
        if not is_q:
            k = G * c - B * s
            val = (g2 + G) * v2 * v2 - r1 * v1 * v2 * k
            dv1 = -r1 * v2 * k
            dv2 = 2.0 * (g2 + G) * v2 - r1 * v1 * k
            dth = r1 * v1 * v2 * (G * s + B * c)
            dr1 = -v1 * v2 * k
        else:
            k = G * s + B * c
            val = -(b2 + B) * v2 * v2 + r1 * v1 * v2 * k
            dv1 = r1 * v2 * k
            dv2 = -2.0 * (b2 + B) * v2 + r1 * v1 * k
            dth = r1 * v1 * v2 * (G * c - B * s)
            dr1 = v1 * v2 * k

    return val, dv1, dth, dv2, -dth, dr1, dth


def open_branch_admittance(branch: Branch, side: BranchSide) -> complex:
    """
    Shunt equivalent seen from the connected side of a branch whose other side is open
    :param branch: Branch
    :param side: connected side
    :return: admittance
    """
    y = branch.y
    y_other = branch.get_shunt(side.other())
    y_side = branch.get_shunt(side)
    denominator = y + y_other
    if abs(denominator) < 1e-20:
        return y_side
    return y_side + y * y_other / denominator


class Term:
    """
    Additive part of an equation
    """

    def __init__(self):
        self.variables: List[Variable] = list()
        self.active = True
        self.coefficient = 1.0

    def update_active(self):
        """
        Re-derive the activation from the network state
        """
        pass

    def _eval(self, x: Vec) -> float:
        raise NotImplementedError()

    def _derivatives(self, x: Vec) -> List[Tuple[Variable, float]]:
        raise NotImplementedError()

    def eval(self, x: Vec) -> float:
        return self.coefficient * self._eval(x)

    def get_derivatives(self, x: Vec) -> List[Tuple[Variable, float]]:
        """
        Derivatives with respect to the active variables of the term
        :param x: state vector
        :return: [(variable, value), ...]
        """
        return [(var, self.coefficient * d) for var, d in self._derivatives(x) if var.row >= 0]

    def der(self, variable: Variable, x: Vec) -> float:
        val = 0.0
        for var, d in self.get_derivatives(x):
            if var is variable:
                val += d
        return val

    def copy(self, coefficient: float = 1.0) -> "Term":
        raise NotImplementedError()

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.__class__.__name__,
                "active": self.active,
                "coefficient": self.coefficient,
                "variables": [[var.num, var.type.name] for var in self.variables]}


class VariableTerm(Term):
    """
    Identity on a variable
    """

    def __init__(self, variable: Variable):
        Term.__init__(self)
        self.variable = variable
        self.variables = [variable]

    def _eval(self, x: Vec) -> float:
        return x[self.variable.row]

    def _derivatives(self, x: Vec) -> List[Tuple[Variable, float]]:
        return [(self.variable, 1.0)]


class ClosedBranchFlowTerm(Term):
    """
    Active or reactive power at one side of a closed branch
    """

    def __init__(self, branch: Branch, side: BranchSide, quantity: FlowQuantity,
                 v1: Variable, ph1: Variable, v2: Variable, ph2: Variable,
                 r1: Union[Variable, None] = None, a1: Union[Variable, None] = None):
        """

        :param branch: Branch
        :param side: side where the flow is measured
        :param quantity: FlowQuantity
        :param v1: side 1 voltage magnitude variable
        :param ph1: side 1 voltage angle variable
        :param v2: side 2 voltage magnitude variable
        :param ph2: side 2 voltage angle variable
        :param r1: ratio variable (None when the ratio is a parameter)
        :param a1: phase shift variable (None when the phase shift is a parameter)
        """
        Term.__init__(self)
        self.branch = branch
        self.side = side
        self.quantity = quantity
        self.v1 = v1
        self.ph1 = ph1
        self.v2 = v2
        self.ph2 = ph2
        self.r1 = r1
        self.a1 = a1
        self.variables = [var for var in (v1, ph1, v2, ph2, r1, a1) if var is not None]

    def __repr__(self):
        return f"{self.quantity}{self.side.value}({self.branch.idtag})"

    def update_active(self):
        self.active = self.branch.is_closed()

    def copy(self, coefficient: float = 1.0) -> "ClosedBranchFlowTerm":
        term = ClosedBranchFlowTerm(self.branch, self.side, self.quantity,
                                    self.v1, self.ph1, self.v2, self.ph2, self.r1, self.a1)
        term.coefficient = coefficient
        return term

    def _values(self, x: Vec) -> Tuple[float, float, float, float, float, float]:
        br = self.branch
        v1 = x[self.v1.row] if self.v1.row >= 0 else br.bus1.v
        ph1 = x[self.ph1.row] if self.ph1.row >= 0 else br.bus1.angle
        v2 = x[self.v2.row] if self.v2.row >= 0 else br.bus2.v
        ph2 = x[self.ph2.row] if self.ph2.row >= 0 else br.bus2.angle
        r1 = x[self.r1.row] if self.r1 is not None and self.r1.row >= 0 else br.r1
        a1 = x[self.a1.row] if self.a1 is not None and self.a1.row >= 0 else br.a1
        return v1, ph1, v2, ph2, r1, a1

    def _flow(self, x: Vec):
        br = self.branch
        v1, ph1, v2, ph2, r1, a1 = self._values(x)
        return closed_branch_flow(self.side.value, self.quantity == FlowQuantity.Q, br.G, br.B,
                                  br.y1.real, br.y1.imag, br.y2.real, br.y2.imag,
                                  v1, ph1, v2, ph2, r1, a1)

    def _eval(self, x: Vec) -> float:
        return self._flow(x)[0]

    def _derivatives(self, x: Vec) -> List[Tuple[Variable, float]]:
        val, dv1, dph1, dv2, dph2, dr1, da1 = self._flow(x)
        ders = [(self.v1, dv1), (self.ph1, dph1), (self.v2, dv2), (self.ph2, dph2)]
        if self.r1 is not None:
            ders.append((self.r1, dr1))
        if self.a1 is not None:
            ders.append((self.a1, da1))
        return ders


class OpenBranchFlowTerm(Term):
    """
    Active or reactive power at the connected side of a branch whose other side is open
    """

    def __init__(self, branch: Branch, side: BranchSide, quantity: FlowQuantity, v: Variable):
        """

        :param branch: Branch
        :param side: connected side
        :param quantity: FlowQuantity
        :param v: voltage magnitude variable of the connected side
        """
        Term.__init__(self)
        self.branch = branch
        self.side = side
        self.quantity = quantity
        self.v = v
        self.variables = [v]

    def __repr__(self):
        return f"{self.quantity}{self.side.value}open({self.branch.idtag})"

    def update_active(self):
        br = self.branch
        bus = br.get_bus(self.side)
        self.active = (not br.disabled
                       and bus is not None and not bus.disabled
                       and br.is_connected(self.side)
                       and not br.is_connected(self.side.other()))

    def copy(self, coefficient: float = 1.0) -> "OpenBranchFlowTerm":
        term = OpenBranchFlowTerm(self.branch, self.side, self.quantity, self.v)
        term.coefficient = coefficient
        return term

    def _admittance_factor(self) -> float:
        y = open_branch_admittance(self.branch, self.side)
        k = y.real if self.quantity == FlowQuantity.P else -y.imag
        if self.side == BranchSide.ONE:
            k *= self.branch.r1 * self.branch.r1
        return k

    def _eval(self, x: Vec) -> float:
        v = x[self.v.row] if self.v.row >= 0 else self.branch.get_bus(self.side).v
        return self._admittance_factor() * v * v

    def _derivatives(self, x: Vec) -> List[Tuple[Variable, float]]:
        v = x[self.v.row] if self.v.row >= 0 else self.branch.get_bus(self.side).v
        return [(self.v, 2.0 * self._admittance_factor() * v)]


class ShuntTerm(Term):
    """
    Power consumed by a shunt: P = g·v², Q = -b·v²
    """

    def __init__(self, shunt: Shunt, quantity: FlowQuantity, v: Variable):
        Term.__init__(self)
        self.shunt = shunt
        self.quantity = quantity
        self.v = v
        self.variables = [v]

    def __repr__(self):
        return f"{self.quantity}({self.shunt.idtag})"

    def update_active(self):
        self.active = not self.shunt.bus.disabled

    def copy(self, coefficient: float = 1.0) -> "ShuntTerm":
        term = ShuntTerm(self.shunt, self.quantity, self.v)
        term.coefficient = coefficient
        return term

    def _factor(self) -> float:
        return self.shunt.g if self.quantity == FlowQuantity.P else -self.shunt.b

    def _eval(self, x: Vec) -> float:
        v = x[self.v.row] if self.v.row >= 0 else self.shunt.bus.v
        return self._factor() * v * v

    def _derivatives(self, x: Vec) -> List[Tuple[Variable, float]]:
        v = x[self.v.row] if self.v.row >= 0 else self.shunt.bus.v
        return [(self.v, 2.0 * self._factor() * v)]
