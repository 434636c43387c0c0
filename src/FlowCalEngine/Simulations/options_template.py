# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from enum import Enum
from typing import Dict, List, Any, Type, Union


class OptionProp:
    """
    Registered option property
    """

    def __init__(self, key: str, tpe: Type, units: str = "", definition: str = ""):
        """

        :param key: name of the attribute
        :param tpe: data type (int, float, bool, str or an Enum class)
        :param units: units of the property
        :param definition: definition of the property
        """
        self.name = key
        self.tpe = tpe
        self.units = units
        self.definition = definition

    def __repr__(self):
        return self.name


class OptionsTemplate:
    """
    Options template
    """

    def __init__(self, name: str):
        """

        :param name: name of the options set
        """
        self.name = name
        self.registered_properties: Dict[str, OptionProp] = dict()

    def register(self, key: str, tpe: Type, units: str = "", definition: str = ""):
        """
        Register property
        The property must exist
        :param key: key
        :param tpe: type of the attribute
        :param units: units
        :param definition: Definition of the property
        """
        assert (hasattr(self, key))  # the property must exist, this avoids bugs when registering

        if key in self.registered_properties.keys():
            raise Exception(f"Property {key} already registered!")

        self.registered_properties[key] = OptionProp(key=key, tpe=tpe, units=units, definition=definition)

    def get_properties(self) -> List[OptionProp]:
        return list(self.registered_properties.values())

    def to_dict(self) -> Dict[str, Any]:
        """
        Get a dictionary of the registered values (enumerations as their names)
        :return: dict
        """
        data = dict()
        for key, prop in self.registered_properties.items():
            value = getattr(self, key)
            data[key] = value.name if isinstance(value, Enum) else value
        return data

    def apply_dict(self, data: Dict[str, Any]):
        """
        Set the values of a dictionary, converting enumeration names
        :param data: dictionary as produced by to_dict
        """
        for key, value in data.items():
            prop: Union[OptionProp, None] = self.registered_properties.get(key, None)
            if prop is None:
                raise KeyError(f"Unknown option {key}")

            if isinstance(prop.tpe, type) and issubclass(prop.tpe, Enum) and isinstance(value, str):
                value = prop.tpe[value]

            setattr(self, key, value)
