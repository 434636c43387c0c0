# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from __future__ import annotations

from typing import List, Dict, Union
from FlowCalEngine.Devices.elements import (AreaDevice, BusDevice, BranchDevice, GeneratorDevice, ConverterDevice,
                                            LoadDevice, ShuntDevice, OverloadManagementSystemDevice,
                                            SecondaryVoltageControlZoneDevice)


class MultiCircuit:
    """
    The grid as the user describes it.
    It is the read only input of the power flow and the place where the solved state is written back.
    """

    def __init__(self, name: str = '', Sbase: float = 100.0):
        """

        :param name: name of the grid
        :param Sbase: base power (MVA)
        """
        self.name = name

        self.Sbase = Sbase

        self.areas: List[AreaDevice] = list()
        self.buses: List[BusDevice] = list()
        self.branches: List[BranchDevice] = list()
        self.generators: List[GeneratorDevice] = list()
        self.converters: List[ConverterDevice] = list()
        self.loads: List[LoadDevice] = list()
        self.shunts: List[ShuntDevice] = list()
        self.overload_management_systems: List[OverloadManagementSystemDevice] = list()
        self.secondary_voltage_control_zones: List[SecondaryVoltageControlZoneDevice] = list()

        self._names: Dict[str, object] = dict()

    def _register(self, elm, lst: List):
        if elm.name in self._names:
            raise ValueError(f"Duplicated device name {elm.name}")
        self._names[elm.name] = elm
        lst.append(elm)
        return elm

    def add_area(self, obj: AreaDevice) -> AreaDevice:
        return self._register(obj, self.areas)

    def add_bus(self, obj: BusDevice) -> BusDevice:
        return self._register(obj, self.buses)

    def add_branch(self, obj: BranchDevice) -> BranchDevice:
        return self._register(obj, self.branches)

    def add_generator(self, obj: GeneratorDevice) -> GeneratorDevice:
        if isinstance(obj, ConverterDevice):
            return self._register(obj, self.converters)
        return self._register(obj, self.generators)

    def add_load(self, obj: LoadDevice) -> LoadDevice:
        return self._register(obj, self.loads)

    def add_shunt(self, obj: ShuntDevice) -> ShuntDevice:
        return self._register(obj, self.shunts)

    def add_overload_management_system(self, obj: OverloadManagementSystemDevice) -> OverloadManagementSystemDevice:
        return self._register(obj, self.overload_management_systems)

    def add_secondary_voltage_control_zone(self, obj: SecondaryVoltageControlZoneDevice):
        return self._register(obj, self.secondary_voltage_control_zones)

    def get_element(self, name: str) -> Union[object, None]:
        """
        Get any device by name
        :param name: device name
        :return: device or None
        """
        return self._names.get(name, None)

    def get_injection_devices(self) -> List[GeneratorDevice]:
        """
        Generators followed by converters
        :return: list
        """
        return self.generators + self.converters

    def get_bus_number(self) -> int:
        return len(self.buses)

    def get_branch_number(self) -> int:
        return len(self.branches)
