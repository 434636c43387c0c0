# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from __future__ import annotations

from typing import List, Tuple, Union, TYPE_CHECKING
from FlowCalEngine.enumerations import BranchSide

if TYPE_CHECKING:
    from FlowCalEngine.DataStructures.bus import Bus
    from FlowCalEngine.DataStructures.branch import Branch
    from FlowCalEngine.DataStructures.injections import Generator


class Area:
    """
    Group of buses with an active power interchange target
    """

    def __init__(self, num: int, idtag: str, interchange_target: Union[float, None]):
        """

        :param num: index in the network
        :param idtag: identifier of the original device
        :param interchange_target: exported power target (p.u.), None if not controlled
        """
        self.num = num
        self.idtag = idtag
        self.interchange_target = interchange_target
        self.buses: List["Bus"] = list()

        # branch ends sitting inside the area whose other end is outside
        self.boundaries: List[Tuple["Branch", BranchSide]] = list()

    def __repr__(self):
        return self.idtag

    def get_interchange(self) -> float:
        """
        Active power leaving the area through its boundaries (p.u.)
        :return: float
        """
        return sum(branch.get_p(side) for branch, side in self.boundaries
                   if branch.is_connected(side) and not branch.disabled)


class OverloadManagementSystem:
    """
    Switches a branch when the current of a monitored branch goes above a threshold
    """

    def __init__(self, idtag: str, monitored_branch: "Branch", monitored_side: BranchSide, threshold: float,
                 operated_branch: "Branch", open_branch: bool):
        """

        :param idtag: identifier of the original device
        :param monitored_branch: Branch whose current is watched
        :param monitored_side: side of the watched current
        :param threshold: current threshold (p.u.)
        :param operated_branch: Branch to switch
        :param open_branch: open (True) or close (False) the operated branch
        """
        self.idtag = idtag
        self.monitored_branch = monitored_branch
        self.monitored_side = monitored_side
        self.threshold = threshold
        self.operated_branch = operated_branch
        self.open_branch = open_branch

    def __repr__(self):
        return self.idtag


class SecondaryVoltageControlZone:
    """
    Pilot point voltage control: the targets of the participating generators
    are moved together so that the pilot bus reaches its own target
    """

    def __init__(self, idtag: str, pilot_bus: "Bus", target_v: float, generators: List["Generator"]):
        self.idtag = idtag
        self.pilot_bus = pilot_bus
        self.target_v = target_v
        self.generators = generators

    def __repr__(self):
        return self.idtag

    def get_voltage_controls(self):
        """
        Enabled generator voltage controls driven by this zone (without repetitions)
        :return: list of GeneratorVoltageControl
        """
        controls = list()
        for gen in self.generators:
            vc = gen.control_group
            if vc is not None and vc.is_enabled() and vc not in controls:
                controls.append(vc)
        return controls
