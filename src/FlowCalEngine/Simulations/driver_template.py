# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import time
from typing import Union, List, Callable
from FlowCalEngine.basic_structures import Logger
from FlowCalEngine.Devices.multi_circuit import MultiCircuit


class DummySignal:
    """
    Progress signal that forwards the emitted values to the connected callbacks
    """

    def __init__(self, tpe: type = float) -> None:
        self.tpe = tpe
        self.callbacks: List[Callable] = list()

    def emit(self, val: Union[str, float, None] = None) -> None:
        for callback in self.callbacks:
            if val is None:
                callback()
            else:
                callback(self.tpe(val))

    def connect(self, callback: Callable):
        """
        Register a callback
        :param callback: function receiving the emitted value
        """
        self.callbacks.append(callback)


class DriverTemplate:
    """
    Base of the simulation drivers: grid, logger, timing and progress reporting
    """
    name = 'Template'

    def __init__(self, grid: MultiCircuit):
        """

        :param grid: MultiCircuit instance
        """
        self.progress_signal = DummySignal(float)
        self.progress_text = DummySignal(str)
        self.done_signal = DummySignal()

        self.grid: MultiCircuit = grid

        self.results = None

        self.elapsed = 0.0

        self.logger = Logger()

        self.__start = time.time()

    def tic(self):
        self.__start = time.time()

    def toc(self):
        """
        Register the elapsed time since the last tic
        """
        self.elapsed = time.time() - self.__start
        self.logger.add_info(msg="Elapsed (s)", device=self.name, value=self.elapsed)

    def get_steps(self) -> List[str]:
        return list()

    def run(self):
        raise NotImplementedError()

    def report_progress2(self, current: int, total: int):
        """
        Report the progress as a percentage
        :param current: current step (zero based)
        :param total: number of steps
        """
        self.progress_signal.emit(((current + 1) / total) * 100.0)

    def report_done(self, txt: str = "done!"):
        self.progress_text.emit(txt)
        self.done_signal.emit()
