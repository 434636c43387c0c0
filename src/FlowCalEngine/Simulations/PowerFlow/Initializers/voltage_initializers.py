# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from abc import ABC, abstractmethod
from typing import Dict, Tuple, Union, List
import numpy as np
from scipy.sparse import coo_matrix
from FlowCalEngine.basic_structures import Logger, Vec
from FlowCalEngine.enumerations import VoltageInitMode, LinearSolverType
from FlowCalEngine.DataStructures.bus import Bus
from FlowCalEngine.DataStructures.branch import Branch
from FlowCalEngine.DataStructures.network import Network
from FlowCalEngine.Utils.NumericalMethods.sparse_solve import get_linear_solver


def get_branch_susceptance(branch: Branch) -> float:
    """
    DC susceptance of a branch
    :param branch: Branch
    :return: 1/x (1/|z| for resistive branches)
    """
    x = branch.z.imag
    if abs(x) < 1e-12:
        return 1.0 / max(abs(branch.z), 1e-12)
    return 1.0 / x


class VoltageInitializer(ABC):
    """
    Provides the starting point of the non linear solvers.
    prepare() must be called before reading the values, the network is never modified.
    """

    @abstractmethod
    def prepare(self, network: Network):
        pass

    @abstractmethod
    def get_magnitude(self, bus: Bus) -> float:
        pass

    @abstractmethod
    def get_angle(self, bus: Bus) -> float:
        pass


class UniformValueVoltageInitializer(VoltageInitializer):
    """
    Flat start
    """

    def prepare(self, network: Network):
        pass

    def get_magnitude(self, bus: Bus) -> float:
        return 1.0

    def get_angle(self, bus: Bus) -> float:
        return 0.0


class DcValueVoltageInitializer(VoltageInitializer):
    """
    Angles of the DC power flow: B' · theta = P - Pshift, the reference bus angle being 0
    """

    def __init__(self, linear_solver: LinearSolverType = LinearSolverType.SuperLU):
        self.linear_solver = get_linear_solver(linear_solver)
        self.angles: Dict[int, float] = dict()

    def prepare(self, network: Network):
        buses = network.get_enabled_buses()
        reference = network.get_reference_bus()
        idx = {bus.num: i for i, bus in enumerate(buses)}
        n = len(buses)

        rows = list()
        cols = list()
        data = list()
        p = np.array([bus.get_target_p() for bus in buses])

        for branch in network.branches:
            if not branch.is_closed():
                continue
            b = get_branch_susceptance(branch)
            i = idx[branch.bus1.num]
            j = idx[branch.bus2.num]
            rows += [i, i, j, j]
            cols += [i, j, i, j]
            data += [b, -b, -b, b]

            # the phase shift acts as a fixed injection pair
            p[i] -= b * branch.a1
            p[j] += b * branch.a1

        B = coo_matrix((data, (rows, cols)), shape=(n, n)).tocsc()

        self.angles = {bus.num: 0.0 for bus in buses}
        if reference is None or n < 2:
            return

        ref = idx[reference.num]
        pqpv = np.array([i for i in range(n) if i != ref], dtype=int)
        B_red = B[pqpv, :][:, pqpv].tocsc()
        theta = self.linear_solver(B_red, p[pqpv])
        for k, i in enumerate(pqpv):
            self.angles[buses[i].num] = float(theta[k])

    def get_magnitude(self, bus: Bus) -> float:
        return 1.0

    def get_angle(self, bus: Bus) -> float:
        return self.angles.get(bus.num, 0.0)


class VoltageMagnitudeInitializer(VoltageInitializer):
    """
    Voltage magnitudes propagated from the voltage targets:
    every bus without target takes the susceptance weighted mean of its neighbours
    (seen through the transformers ratio)
    """

    def __init__(self, linear_solver: LinearSolverType = LinearSolverType.SuperLU):
        self.linear_solver = get_linear_solver(linear_solver)
        self.magnitudes: Dict[int, float] = dict()

    def prepare(self, network: Network):
        buses = network.get_enabled_buses()
        n = len(buses)
        idx = {bus.num: i for i, bus in enumerate(buses)}

        fixed = np.array([bus.is_voltage_controlled() for bus in buses], dtype=bool)
        self.magnitudes = {bus.num: (bus.get_target_v() if fixed[i] else 1.0) for i, bus in enumerate(buses)}
        if not fixed.any() or fixed.all():
            return

        rows: List[int] = list()
        cols: List[int] = list()
        data: List[float] = list()
        for branch in network.branches:
            if not branch.is_closed():
                continue
            b = abs(get_branch_susceptance(branch))
            i = idx[branch.bus1.num]
            j = idx[branch.bus2.num]
            # v_i ~ v_j / r1 and v_j ~ r1 v_i
            rows += [i, i, j, j]
            cols += [i, j, j, i]
            data += [b, -b / branch.r1, b, -b * branch.r1]

        A = coo_matrix((data, (rows, cols)), shape=(n, n)).tocsc()

        free = np.where(~fixed)[0]
        fix = np.where(fixed)[0]
        v_fix = np.array([buses[i].get_target_v() for i in fix])
        rhs = -A[free, :][:, fix] @ v_fix
        v_free = self.linear_solver(A[free, :][:, free].tocsc(), rhs)
        for k, i in enumerate(free):
            self.magnitudes[buses[i].num] = float(v_free[k])

    def get_magnitude(self, bus: Bus) -> float:
        return self.magnitudes.get(bus.num, 1.0)

    def get_angle(self, bus: Bus) -> float:
        return 0.0


class FullVoltageInitializer(VoltageInitializer):
    """
    Magnitudes from VoltageMagnitudeInitializer and angles from DcValueVoltageInitializer
    """

    def __init__(self, linear_solver: LinearSolverType = LinearSolverType.SuperLU):
        self.magnitude_initializer = VoltageMagnitudeInitializer(linear_solver)
        self.angle_initializer = DcValueVoltageInitializer(linear_solver)

    def prepare(self, network: Network):
        self.magnitude_initializer.prepare(network)
        self.angle_initializer.prepare(network)

    def get_magnitude(self, bus: Bus) -> float:
        return self.magnitude_initializer.get_magnitude(bus)

    def get_angle(self, bus: Bus) -> float:
        return self.angle_initializer.get_angle(bus)


class PreviousValueVoltageInitializer(VoltageInitializer):
    """
    Carry over of a previous solution, from a snapshot {bus id: (v, angle)} or from the bus values
    """

    def __init__(self, snapshot: Union[Dict[str, Tuple[float, float]], None] = None):
        self.snapshot = snapshot if snapshot is not None else dict()

    def prepare(self, network: Network):
        pass

    def get_magnitude(self, bus: Bus) -> float:
        if bus.idtag in self.snapshot:
            return self.snapshot[bus.idtag][0]
        return bus.v

    def get_angle(self, bus: Bus) -> float:
        if bus.idtag in self.snapshot:
            return self.snapshot[bus.idtag][1]
        return bus.angle


def create_voltage_initializer(mode: VoltageInitMode,
                               network: Network,
                               phase_shifter_dc_init_threshold: float = 10.0,
                               linear_solver: LinearSolverType = LinearSolverType.SuperLU,
                               snapshot: Union[Dict[str, Tuple[float, float]], None] = None,
                               logger: Union[Logger, None] = None) -> VoltageInitializer:
    """
    Voltage initializer factory
    :param mode: VoltageInitMode
    :param network: Network (used to decide the automatic switch to DC values)
    :param phase_shifter_dc_init_threshold: phase shift above which the flat start is replaced by DC values (deg)
    :param linear_solver: LinearSolverType
    :param snapshot: previous solution for PREVIOUS_VALUES
    :param logger: Logger
    :return: VoltageInitializer
    """
    if mode == VoltageInitMode.UNIFORM_VALUES:
        threshold = np.deg2rad(phase_shifter_dc_init_threshold)
        shifts = [abs(br.a1) for br in network.branches if br.is_closed()]
        if len(shifts) and max(shifts) > threshold:
            if logger is not None:
                logger.add_info("Large phase shift found, DC values used to initialize the voltages",
                                value=np.rad2deg(max(shifts)), expected_value=phase_shifter_dc_init_threshold)
            return DcValueVoltageInitializer(linear_solver)
        return UniformValueVoltageInitializer()

    elif mode == VoltageInitMode.DC_VALUES:
        return DcValueVoltageInitializer(linear_solver)

    elif mode == VoltageInitMode.VOLTAGE_MAGNITUDE:
        return VoltageMagnitudeInitializer(linear_solver)

    elif mode == VoltageInitMode.FULL_VOLTAGE:
        return FullVoltageInitializer(linear_solver)

    elif mode == VoltageInitMode.PREVIOUS_VALUES:
        return PreviousValueVoltageInitializer(snapshot)

    else:
        raise ValueError(f"Unknown voltage initialization mode {mode}")
