# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from __future__ import annotations

import datetime
from typing import List, Any, Dict, Union
import pandas as pd
import numpy as np
import numpy.typing as npt
from scipy.sparse import csc_matrix
from FlowCalEngine.enumerations import LogSeverity

IntList = List[int]
Numeric = Union[int, float, bool, complex]
IntVec = npt.NDArray[np.int_]
BoolVec = npt.NDArray[np.bool_]
Vec = npt.NDArray[np.float64]
CxVec = npt.NDArray[np.complex128]
Mat = npt.NDArray[np.float64]
CscMat = csc_matrix


class LogEntry:
    """
    Logger entry
    """

    def __init__(self,
                 msg: str,
                 severity: LogSeverity = LogSeverity.Error,
                 device: str = "",
                 value: Any = "",
                 expected_value: Any = "",
                 device_class: str = "",
                 component: Union[int, str] = "",
                 time: Union[str, None] = None):
        """
        Constructor
        :param msg: message
        :param severity: LogSeverity
        :param device: device identifier
        :param value: value that produced the entry
        :param expected_value: value that was expected
        :param device_class: class of the device
        :param component: connected component number
        :param time: time stamp (generated if None)
        """
        self.time = "{date:%H:%M:%S}".format(date=datetime.datetime.now()) if time is None else time
        self.msg = str(msg)
        self.severity = severity
        self.device = device
        self.value = value
        self.expected_value = expected_value
        self.device_class = device_class
        self.component = component

    def to_list(self) -> List[Any]:
        """
        Get list representation of this entry
        :return:
        """
        return [self.time, self.severity.value, self.msg, self.component,
                self.device_class, self.device, self.value, self.expected_value]

    def __str__(self):
        return "{0} {1}: {2} {3} {4} {5}".format(self.time,
                                                 self.severity.value,
                                                 self.msg,
                                                 self.device,
                                                 self.value,
                                                 self.expected_value)


class Logger:
    """
    Logger class.
    Entries are accumulated and handed over to the results,
    nothing is printed unless asked for
    """

    def __init__(self, component: Union[int, str] = "") -> None:
        """

        :param component: component number stamped into every entry
        """
        self.component = component

        self.entries: List[LogEntry] = list()

    def add(self, msg: str, severity: LogSeverity = LogSeverity.Error, device="", value="", expected_value="",
            device_class=''):
        """
        Add general entry
        :param msg: message
        :param severity: LogSeverity
        :param device: device identifier
        :param value: value
        :param expected_value: expected value
        :param device_class: class of the device
        """
        self.entries.append(LogEntry(msg=msg,
                                     severity=severity,
                                     device=str(device),
                                     value=value,
                                     expected_value=expected_value,
                                     device_class=str(device_class),
                                     component=self.component))

    def add_info(self, msg: str, device="", value="", expected_value="", device_class=''):
        """
        Add info entry
        :param msg:
        :param device:
        :param value:
        :param expected_value:
        :param device_class:
        """
        self.add(msg, LogSeverity.Information, device, value, expected_value, device_class)

    def add_warning(self, msg: str, device="", value="", expected_value="", device_class=''):
        """
        Add warning entry
        :param msg:
        :param device:
        :param value:
        :param expected_value:
        :param device_class:
        """
        self.add(msg, LogSeverity.Warning, device, value, expected_value, device_class)

    def add_error(self, msg: str, device="", value="", expected_value="", device_class=''):
        """
        Add error entry
        :param msg:
        :param device:
        :param value:
        :param expected_value:
        :param device_class:
        """
        self.add(msg, LogSeverity.Error, device, value, expected_value, device_class)

    def add_divergence(self, msg, device="", value=0.0, expected_value=0.0, tol=1e-6):
        """
        Add divergence entry, only if the value differs from the expected one
        :param msg:
        :param device:
        :param value:
        :param expected_value:
        :param tol: tolerance under which nothing is recorded
        """
        if abs(value - expected_value) > tol:
            self.add(msg, LogSeverity.Divergence, device, value, expected_value)

    def to_df(self) -> pd.DataFrame:
        """
        Get DataFrame
        :return: DataFrame
        """
        data = [e.to_list() for e in self.entries]
        df = pd.DataFrame(data=data, columns=['Time', 'Severity', 'Message', 'Component', 'Class',
                                              'Device', 'Value', 'Expected value'])
        df.set_index('Time', inplace=True)
        return df

    def messages(self, severity: Union[LogSeverity, None] = None) -> List[str]:
        """
        Get the messages, optionally filtered by severity
        :param severity: LogSeverity or None for all
        :return: list of messages
        """
        return [e.msg for e in self.entries if severity is None or e.severity == severity]

    def __str__(self):
        return '\n'.join(str(e) for e in self.entries)

    def __iadd__(self, other: "Logger"):
        """
        += implementation
        :param other:
        :return:
        """
        if other is not None:
            self.entries += other.entries
        return self

    def __len__(self) -> int:
        return len(self.entries)


class ConvergenceReport:
    """
    Convergence report, one row per solver run
    """

    def __init__(self) -> None:
        """
        Constructor
        """
        self.components_ = list()
        self.methods_ = list()
        self.status_ = list()
        self.error_ = list()
        self.elapsed_ = list()
        self.iterations_ = list()

    def add(self, component: int, method, status, error: float, elapsed: float, iterations: int):
        """

        :param component: component number
        :param method: AcSolverType
        :param status: AcSolverStatus
        :param error: final residual norm
        :param elapsed: time in seconds
        :param iterations: number of iterations
        """
        self.components_.append(component)
        self.methods_.append(method)
        self.status_.append(status)
        self.error_.append(error)
        self.elapsed_.append(elapsed)
        self.iterations_.append(iterations)

    def __len__(self) -> int:
        return len(self.methods_)

    def to_dataframe(self) -> pd.DataFrame:
        """

        :return:
        """
        data: Dict[str, List[Any]] = {'Component': self.components_,
                                      'Method': [str(m) for m in self.methods_],
                                      'Status': [str(s) for s in self.status_],
                                      'Error': self.error_,
                                      'Elapsed (s)': self.elapsed_,
                                      'Iterations': self.iterations_}

        return pd.DataFrame(data)
