# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0

from FlowCalEngine.DataStructures.bus import Bus, GeneratorVoltageControl
from FlowCalEngine.DataStructures.branch import Branch, PhaseControl, TransformerVoltageControl
from FlowCalEngine.DataStructures.injections import (Generator, Converter, Load, Shunt, ShuntVoltageControl,
                                                     StandbyAutomaton)
from FlowCalEngine.DataStructures.area import Area, OverloadManagementSystem, SecondaryVoltageControlZone
from FlowCalEngine.DataStructures.network import Network
from FlowCalEngine.DataStructures.network_builder import NetworkBuilder
