# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from FlowCalEngine.Simulations.PowerFlow.Equations.variables import Variable, VariableSet, AcStateVector
from FlowCalEngine.Simulations.PowerFlow.Equations.terms import (Term, VariableTerm, ClosedBranchFlowTerm,
                                                                 OpenBranchFlowTerm, ShuntTerm)
from FlowCalEngine.Simulations.PowerFlow.Equations.equation import Equation
from FlowCalEngine.Simulations.PowerFlow.Equations.equation_system import EquationSystem
from FlowCalEngine.Simulations.PowerFlow.Equations.ac_equation_system_creator import (AcEquationSystemCreator,
                                                                                      AcEquationSystemUpdater)
from FlowCalEngine.Simulations.PowerFlow.Equations.target_vector import target_vector
from FlowCalEngine.Simulations.PowerFlow.Equations.network_state import update_network_state
