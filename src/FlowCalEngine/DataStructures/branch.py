# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from __future__ import annotations

from typing import Union, TYPE_CHECKING
import numpy as np
from FlowCalEngine.basic_structures import Vec
from FlowCalEngine.enumerations import BranchSide, TapControlMode

if TYPE_CHECKING:
    from FlowCalEngine.DataStructures.bus import Bus


class PhaseControl:
    """
    Phase shifter regulating the active power through its own branch
    """

    def __init__(self, branch: "Branch", target_p: float, side: BranchSide, taps: Vec,
                 mode: TapControlMode = TapControlMode.CONTINUOUS):
        """

        :param branch: controller branch
        :param target_p: active power target (p.u.) at the controlled side
        :param side: controlled side
        :param taps: sorted phase shift taps (rad)
        :param mode: TapControlMode
        """
        self.branch = branch
        self.target_p = target_p
        self.side = side
        self.taps = np.unique(np.array(taps, dtype=float))
        self.mode = mode

    def is_continuous(self) -> bool:
        return self.mode == TapControlMode.CONTINUOUS and self.branch.is_closed()


class TransformerVoltageControl:
    """
    Ratio tap changer regulating a bus voltage
    """

    def __init__(self, branch: "Branch", controlled_bus: "Bus", target_v: float, taps: Vec,
                 mode: TapControlMode = TapControlMode.CONTINUOUS):
        """

        :param branch: controller branch
        :param controlled_bus: regulated bus
        :param target_v: target voltage (p.u.)
        :param taps: sorted ratios (p.u.)
        :param mode: TapControlMode
        """
        self.branch = branch
        self.controlled_bus = controlled_bus
        self.target_v = target_v
        self.taps = np.unique(np.array(taps, dtype=float))
        self.mode = mode

    def is_continuous(self) -> bool:
        return (self.mode == TapControlMode.CONTINUOUS
                and self.branch.is_closed()
                and not self.controlled_bus.disabled)


class Branch:
    """
    Pi model branch with an ideal transformer (ratio r1, phase a1) on side 1.
    All values in p.u.
    """

    def __init__(self,
                 num: int,
                 idtag: str,
                 bus1: Union["Bus", None],
                 bus2: Union["Bus", None],
                 z: complex,
                 y1: complex = 0j,
                 y2: complex = 0j,
                 r1: float = 1.0,
                 a1: float = 0.0,
                 connected1: bool = True,
                 connected2: bool = True,
                 disconnection_allowed1: bool = False,
                 disconnection_allowed2: bool = False):
        """

        :param num: index in the network
        :param idtag: identifier of the original device
        :param bus1: bus at side 1 (None for a dangling element)
        :param bus2: bus at side 2 (None for a dangling element)
        :param z: series impedance
        :param y1: shunt admittance at side 1
        :param y2: shunt admittance at side 2
        :param r1: ratio
        :param a1: phase shift (rad)
        :param connected1: is side 1 connected?
        :param connected2: is side 2 connected?
        :param disconnection_allowed1: can side 1 be opened during the calculation?
        :param disconnection_allowed2: can side 2 be opened during the calculation?
        """
        self.num = num
        self.idtag = idtag
        self.bus1 = bus1
        self.bus2 = bus2

        self.z = z
        self.y = 1.0 / z
        self.y1 = y1
        self.y2 = y2

        self.r1 = r1
        self.a1 = a1

        self.connected1 = connected1 and bus1 is not None
        self.connected2 = connected2 and bus2 is not None
        self.disconnection_allowed1 = disconnection_allowed1
        self.disconnection_allowed2 = disconnection_allowed2

        self.disabled = False

        self.phase_control: Union[PhaseControl, None] = None
        self.voltage_control: Union[TransformerVoltageControl, None] = None

        # results
        self.p1 = 0.0
        self.q1 = 0.0
        self.p2 = 0.0
        self.q2 = 0.0
        self.i1 = 0.0
        self.i2 = 0.0

    def __repr__(self):
        return self.idtag

    @property
    def G(self) -> float:
        return self.y.real

    @property
    def B(self) -> float:
        return self.y.imag

    def get_bus(self, side: BranchSide) -> Union["Bus", None]:
        return self.bus1 if side == BranchSide.ONE else self.bus2

    def get_shunt(self, side: BranchSide) -> complex:
        return self.y1 if side == BranchSide.ONE else self.y2

    def is_connected(self, side: BranchSide) -> bool:
        return self.connected1 if side == BranchSide.ONE else self.connected2

    def is_disconnection_allowed(self, side: BranchSide) -> bool:
        return self.disconnection_allowed1 if side == BranchSide.ONE else self.disconnection_allowed2

    def set_connected(self, side: BranchSide, connected: bool):
        """
        Connect or disconnect one side without removing the branch from the equation system
        :param side: BranchSide
        :param connected: new status
        """
        if not connected and not self.is_disconnection_allowed(side):
            raise ValueError(f"Disconnection of side {side} of branch {self.idtag} is not allowed")
        if connected and self.get_bus(side) is None:
            raise ValueError(f"Branch {self.idtag} has no bus at side {side}")
        if side == BranchSide.ONE:
            self.connected1 = connected
        else:
            self.connected2 = connected

    def is_closed(self) -> bool:
        """
        Are both sides connected to an enabled bus?
        :return: bool
        """
        return (self.connected1 and self.connected2
                and not self.disabled
                and not self.bus1.disabled and not self.bus2.disabled)

    def get_current(self, side: BranchSide) -> float:
        return self.i1 if side == BranchSide.ONE else self.i2

    def get_p(self, side: BranchSide) -> float:
        return self.p1 if side == BranchSide.ONE else self.p2
