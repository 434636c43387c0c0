# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0


class PowerFlowError(Exception):
    """Base class for exceptions in this module."""

    def __init__(self, message="Power flow error"):
        self.message = message
        super().__init__(self.message)


class ConfigurationError(PowerFlowError):
    """Exception raised when an option holds a value out of its valid range."""

    def __init__(self, key, value, message="Invalid option value"):
        self.key = key
        self.value = value
        self.message = f"{message}: {key}={value}"
        super().__init__(self.message)


class StructuralError(PowerFlowError):
    """Exception raised when a component cannot be turned into a well posed equation system."""
    pass


class SlackError(StructuralError):
    """Exception raised when there is a problem with the slack bus in a power flow study."""

    def __init__(self, message="Invalid or undefined slack bus configuration"):
        super().__init__(message)


class EquationCountMismatchError(StructuralError):
    """Exception raised when the number of active equations and variables differ (non square Jacobian)."""

    def __init__(self, rows, columns, message="Jacobian matrix must be square"):
        self.rows = rows
        self.columns = columns
        super().__init__(f"{message}: found {rows}x{columns}")


class LinearSolverError(PowerFlowError):
    """Exception raised when the sparse linear system cannot be solved."""
    pass
