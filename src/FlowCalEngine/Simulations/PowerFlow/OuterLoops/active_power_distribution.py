# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from dataclasses import dataclass
from typing import List, Union, Tuple, Iterable
from FlowCalEngine.enumerations import BalanceType
from FlowCalEngine.DataStructures.bus import Bus
from FlowCalEngine.DataStructures.injections import Generator, Load
from FlowCalEngine.DataStructures.network import Network

P_RESIDUE_EPS = 1e-5

LOAD_BALANCE_TYPES = (BalanceType.PROPORTIONAL_TO_LOAD, BalanceType.PROPORTIONAL_TO_CONFORM_LOAD)


@dataclass
class DistributionResult:
    """
    Outcome of an active power distribution (p.u.)
    """
    distributed: float
    remaining: float
    iterations: int

    @property
    def moved(self) -> bool:
        return abs(self.distributed) > 0.0


class ActivePowerDistribution:
    """
    Spread an active power amount over the generators or the loads of a network.

    The amount is expressed as an injection change: a positive amount raises the
    generation (or lowers the consumption). Participants are weighted by a factor that
    depends on the BalanceType, clamped to their limits and dropped once clamped,
    the remainder being distributed again among the others.
    """

    def __init__(self, balance_type: BalanceType):
        """

        :param balance_type: BalanceType
        """
        self.balance_type = balance_type

    def is_load_based(self) -> bool:
        return self.balance_type in LOAD_BALANCE_TYPES

    def get_participants(self, network: Network,
                         buses: Union[Iterable[Bus], None] = None) -> List[Union[Generator, Load]]:
        """
        Elements that may take part in the distribution
        :param network: Network
        :param buses: restrict the participants to these buses (all the network if None)
        :return: list of generators or loads
        """
        allowed = set(buses) if buses is not None else None

        if self.is_load_based():
            elements = [load for load in network.loads if load.participating]
        else:
            elements = [gen for gen in network.generators if gen.is_plausible_participant()]

        return [e for e in elements
                if not e.bus.disabled and (allowed is None or e.bus in allowed)]

    def get_factor(self, element: Union[Generator, Load], amount: float) -> float:
        """
        Weight of an element in the distribution
        :param element: Generator or Load
        :param amount: amount still to distribute (its sign matters for the remaining margin)
        :return: factor (non positive factors do not participate)
        """
        if self.balance_type == BalanceType.PROPORTIONAL_TO_GENERATION_P:
            return element.target_p

        elif self.balance_type == BalanceType.PROPORTIONAL_TO_GENERATION_P_MAX:
            return element.max_p

        elif self.balance_type == BalanceType.PROPORTIONAL_TO_GENERATION_PARTICIPATION_FACTOR:
            return element.participation_factor

        elif self.balance_type == BalanceType.PROPORTIONAL_TO_GENERATION_REMAINING_MARGIN:
            if amount > 0:
                return element.max_p - element.target_p
            else:
                return element.target_p - element.min_p

        elif self.balance_type == BalanceType.PROPORTIONAL_TO_LOAD:
            return abs(element.target_p)

        elif self.balance_type == BalanceType.PROPORTIONAL_TO_CONFORM_LOAD:
            return abs(element.get_conform_p())

        else:
            raise ValueError(f"Unknown balance type {self.balance_type}")

    def get_limits(self, element: Union[Generator, Load]) -> Tuple[float, float]:
        """
        Admissible range of the element set point
        :param element: Generator or Load
        :return: minimum, maximum
        """
        if isinstance(element, Generator):
            return element.min_p, element.max_p

        # loads keep their sign, only the conform part may move in the conform mode
        if self.balance_type == BalanceType.PROPORTIONAL_TO_CONFORM_LOAD:
            fixed = element.initial_target_p - element.get_conform_p()
        else:
            fixed = 0.0

        if element.initial_target_p >= 0:
            return fixed, float('inf')
        else:
            return -float('inf'), fixed

    def apply(self, element: Union[Generator, Load], injection_delta: float) -> Tuple[float, bool]:
        """
        Move the set point of an element
        :param element: Generator or Load
        :param injection_delta: wished injection change
        :return: applied injection change, has it been clamped?
        """
        p_min, p_max = self.get_limits(element)
        sign = 1.0 if isinstance(element, Generator) else -1.0
        wished = element.target_p + sign * injection_delta
        new_p = min(max(wished, p_min), p_max)
        applied = sign * (new_p - element.target_p)
        element.target_p = new_p
        return applied, new_p != wished

    def is_at_limit(self, element: Union[Generator, Load], amount: float) -> bool:
        """
        Is the element already unable to move in the needed direction?
        :param element: Generator or Load
        :param amount: injection change to distribute
        :return: bool
        """
        p_min, p_max = self.get_limits(element)
        sign = 1.0 if isinstance(element, Generator) else -1.0
        if sign * amount > 0:
            return element.target_p >= p_max
        else:
            return element.target_p <= p_min

    def run(self, network: Network, amount: float, buses: Union[Iterable[Bus], None] = None) -> DistributionResult:
        """
        Distribute an injection change
        :param network: Network
        :param amount: injection change to distribute (p.u.)
        :param buses: restrict the participants to these buses
        :return: DistributionResult
        """
        participants = [e for e in self.get_participants(network, buses) if not self.is_at_limit(e, amount)]

        remaining = amount
        distributed = 0.0
        iterations = 0

        while len(participants) and abs(remaining) > P_RESIDUE_EPS:

            factors = [self.get_factor(e, remaining) for e in participants]
            pairs = [(e, f) for e, f in zip(participants, factors) if f > 0.0]
            total = sum(f for _, f in pairs)
            if total <= 0.0:
                break

            done = 0.0
            still_free = list()
            for element, factor in pairs:
                applied, clamped = self.apply(element, remaining * factor / total)
                done += applied
                if not clamped:
                    still_free.append(element)

            remaining -= done
            distributed += done
            participants = still_free
            iterations += 1

        return DistributionResult(distributed=distributed, remaining=remaining, iterations=iterations)
