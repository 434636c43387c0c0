# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
from __future__ import annotations

from typing import Dict, Any, Union, TYPE_CHECKING
from FlowCalEngine.enumerations import (AcSolverType, LinearSolverType, NewtonRaphsonStoppingCriteriaType,
                                        StateVectorScalingMode, VoltageInitMode, BalanceType,
                                        SlackDistributionFailureBehavior, SlackBusSelectionMode, ConnectivityMode)
from FlowCalEngine.exceptions import ConfigurationError
from FlowCalEngine.Simulations.options_template import OptionsTemplate

if TYPE_CHECKING:
    from FlowCalEngine.Devices.multi_circuit import MultiCircuit


class PowerFlowOptions(OptionsTemplate):
    """
    Power flow options
    """

    def __init__(self,
                 solver_type: AcSolverType = AcSolverType.NEWTON_RAPHSON,
                 linear_solver: LinearSolverType = LinearSolverType.SuperLU,
                 max_iterations: int = 15,
                 stopping_criteria_type: NewtonRaphsonStoppingCriteriaType = NewtonRaphsonStoppingCriteriaType.UNIFORM_CRITERIA,
                 conv_eps_per_eq: float = 1e-4,
                 max_active_power_mismatch: float = 1e-2,
                 max_reactive_power_mismatch: float = 1e-2,
                 max_voltage_mismatch: float = 1e-4,
                 max_angle_mismatch: float = 1e-5,
                 max_ratio_mismatch: float = 1e-5,
                 max_distributed_q_mismatch: float = 1e-4,
                 state_vector_scaling_mode: StateVectorScalingMode = StateVectorScalingMode.NONE,
                 max_dv: float = 0.1,
                 max_dphi: float = 10.0,
                 line_search_step_fold: float = 4.0 / 3.0,
                 line_search_max_iterations: int = 10,
                 krylov_max_iterations: int = 100,
                 krylov_line_search: bool = False,
                 voltage_init_mode: VoltageInitMode = VoltageInitMode.UNIFORM_VALUES,
                 phase_shifter_dc_init_threshold: float = 10.0,
                 balance_type: BalanceType = BalanceType.PROPORTIONAL_TO_GENERATION_P_MAX,
                 slack_distribution_failure_behavior: SlackDistributionFailureBehavior = SlackDistributionFailureBehavior.FAIL,
                 distributed_slack: bool = True,
                 slack_bus_p_max_mismatch: float = 1.0,
                 use_reactive_limits: bool = True,
                 max_pq_pv_switch: int = 3,
                 voltage_target_check: bool = False,
                 target_voltage_plausibility_threshold: float = 2.0,
                 area_interchange_control: bool = False,
                 area_interchange_p_max_mismatch: float = 2.0,
                 simulate_automation_systems: bool = False,
                 secondary_voltage_control: bool = False,
                 phase_control: bool = True,
                 transformer_voltage_control: bool = True,
                 shunt_voltage_control: bool = False,
                 svc_voltage_monitoring: bool = False,
                 max_outer_loop_iterations: int = 20,
                 min_realistic_voltage: float = 0.5,
                 max_realistic_voltage: float = 1.5,
                 slack_bus_selection_mode: SlackBusSelectionMode = SlackBusSelectionMode.MOST_MESHED,
                 connectivity_mode: ConnectivityMode = ConnectivityMode.DECREMENTAL,
                 low_impedance_threshold: float = 1e-8,
                 threads: int = 1,
                 debug_dir: Union[str, None] = None):
        """
        Power flow options class
        :param solver_type: non linear solver (AcSolverType)
        :param linear_solver: sparse linear solver used by the Newton steps
        :param max_iterations: maximum number of iterations of the non linear solver
        :param stopping_criteria_type: NewtonRaphsonStoppingCriteriaType
        :param conv_eps_per_eq: uniform criteria tolerance per equation
        :param max_active_power_mismatch: per equation type criteria, active power (MW)
        :param max_reactive_power_mismatch: per equation type criteria, reactive power (MVAr)
        :param max_voltage_mismatch: per equation type criteria, voltage (p.u.)
        :param max_angle_mismatch: per equation type criteria, angle (rad)
        :param max_ratio_mismatch: per equation type criteria, ratio (p.u.)
        :param max_distributed_q_mismatch: per equation type criteria, reactive power sharing (p.u.)
        :param state_vector_scaling_mode: StateVectorScalingMode
        :param max_dv: maximum voltage magnitude step (p.u.)
        :param max_dphi: maximum voltage angle step (deg)
        :param line_search_step_fold: step reduction factor of the line search
        :param line_search_max_iterations: maximum number of step reductions
        :param krylov_max_iterations: maximum number of iterations of the Newton-Krylov solver
        :param krylov_line_search: use the halving line search in Newton-Krylov?
        :param voltage_init_mode: VoltageInitMode
        :param phase_shifter_dc_init_threshold: phase shift above which the DC initialization is used (deg)
        :param balance_type: BalanceType of the slack distribution
        :param slack_distribution_failure_behavior: SlackDistributionFailureBehavior
        :param distributed_slack: distribute the slack active power?
        :param slack_bus_p_max_mismatch: acceptable slack active power mismatch (MW)
        :param use_reactive_limits: enforce the generators reactive limits?
        :param max_pq_pv_switch: maximum PQ to PV switches per bus
        :param voltage_target_check: check the feasibility of the voltage targets?
        :param target_voltage_plausibility_threshold: dV/|z| threshold for incompatible targets
        :param area_interchange_control: control the areas interchange (replaces the distributed slack)
        :param area_interchange_p_max_mismatch: acceptable interchange mismatch (MW)
        :param simulate_automation_systems: simulate the overload management systems?
        :param secondary_voltage_control: simulate the secondary voltage control zones?
        :param phase_control: simulate the phase shifters active power control?
        :param transformer_voltage_control: simulate the transformers voltage control?
        :param shunt_voltage_control: simulate the voltage control by shunt sections?
        :param svc_voltage_monitoring: start the stand by generators when their voltage band is left?
        :param max_outer_loop_iterations: maximum number of outer loop iterations
        :param min_realistic_voltage: minimum realistic voltage (p.u.)
        :param max_realistic_voltage: maximum realistic voltage (p.u.)
        :param slack_bus_selection_mode: SlackBusSelectionMode
        :param connectivity_mode: ConnectivityMode
        :param low_impedance_threshold: minimum branch impedance (p.u.)
        :param threads: number of threads used to solve the components
        :param debug_dir: folder where the debug files are written (None to disable)
        """
        OptionsTemplate.__init__(self, name='PowerFlowOptions')

        self.solver_type = solver_type
        self.linear_solver = linear_solver
        self.max_iterations = max_iterations

        self.stopping_criteria_type = stopping_criteria_type
        self.conv_eps_per_eq = conv_eps_per_eq
        self.max_active_power_mismatch = max_active_power_mismatch
        self.max_reactive_power_mismatch = max_reactive_power_mismatch
        self.max_voltage_mismatch = max_voltage_mismatch
        self.max_angle_mismatch = max_angle_mismatch
        self.max_ratio_mismatch = max_ratio_mismatch
        self.max_distributed_q_mismatch = max_distributed_q_mismatch

        self.state_vector_scaling_mode = state_vector_scaling_mode
        self.max_dv = max_dv
        self.max_dphi = max_dphi
        self.line_search_step_fold = line_search_step_fold
        self.line_search_max_iterations = line_search_max_iterations

        self.krylov_max_iterations = krylov_max_iterations
        self.krylov_line_search = krylov_line_search

        self.voltage_init_mode = voltage_init_mode
        self.phase_shifter_dc_init_threshold = phase_shifter_dc_init_threshold

        self.balance_type = balance_type
        self.slack_distribution_failure_behavior = slack_distribution_failure_behavior
        self.distributed_slack = distributed_slack
        self.slack_bus_p_max_mismatch = slack_bus_p_max_mismatch

        self.use_reactive_limits = use_reactive_limits
        self.max_pq_pv_switch = max_pq_pv_switch

        self.voltage_target_check = voltage_target_check
        self.target_voltage_plausibility_threshold = target_voltage_plausibility_threshold

        self.area_interchange_control = area_interchange_control
        self.area_interchange_p_max_mismatch = area_interchange_p_max_mismatch

        self.simulate_automation_systems = simulate_automation_systems
        self.secondary_voltage_control = secondary_voltage_control
        self.phase_control = phase_control
        self.transformer_voltage_control = transformer_voltage_control
        self.shunt_voltage_control = shunt_voltage_control
        self.svc_voltage_monitoring = svc_voltage_monitoring

        self.max_outer_loop_iterations = max_outer_loop_iterations

        self.min_realistic_voltage = min_realistic_voltage
        self.max_realistic_voltage = max_realistic_voltage

        self.slack_bus_selection_mode = slack_bus_selection_mode
        self.connectivity_mode = connectivity_mode
        self.low_impedance_threshold = low_impedance_threshold

        self.threads = threads
        self.debug_dir = debug_dir

        self.register(key="solver_type", tpe=AcSolverType)
        self.register(key="linear_solver", tpe=LinearSolverType)
        self.register(key="max_iterations", tpe=int)
        self.register(key="stopping_criteria_type", tpe=NewtonRaphsonStoppingCriteriaType)
        self.register(key="conv_eps_per_eq", tpe=float)
        self.register(key="max_active_power_mismatch", tpe=float, units="MW")
        self.register(key="max_reactive_power_mismatch", tpe=float, units="MVAr")
        self.register(key="max_voltage_mismatch", tpe=float, units="p.u.")
        self.register(key="max_angle_mismatch", tpe=float, units="rad")
        self.register(key="max_ratio_mismatch", tpe=float, units="p.u.")
        self.register(key="max_distributed_q_mismatch", tpe=float, units="p.u.")
        self.register(key="state_vector_scaling_mode", tpe=StateVectorScalingMode)
        self.register(key="max_dv", tpe=float, units="p.u.")
        self.register(key="max_dphi", tpe=float, units="deg")
        self.register(key="line_search_step_fold", tpe=float)
        self.register(key="line_search_max_iterations", tpe=int)
        self.register(key="krylov_max_iterations", tpe=int)
        self.register(key="krylov_line_search", tpe=bool)
        self.register(key="voltage_init_mode", tpe=VoltageInitMode)
        self.register(key="phase_shifter_dc_init_threshold", tpe=float, units="deg")
        self.register(key="balance_type", tpe=BalanceType)
        self.register(key="slack_distribution_failure_behavior", tpe=SlackDistributionFailureBehavior)
        self.register(key="distributed_slack", tpe=bool)
        self.register(key="slack_bus_p_max_mismatch", tpe=float, units="MW")
        self.register(key="use_reactive_limits", tpe=bool)
        self.register(key="max_pq_pv_switch", tpe=int)
        self.register(key="voltage_target_check", tpe=bool)
        self.register(key="target_voltage_plausibility_threshold", tpe=float)
        self.register(key="area_interchange_control", tpe=bool)
        self.register(key="area_interchange_p_max_mismatch", tpe=float, units="MW")
        self.register(key="simulate_automation_systems", tpe=bool)
        self.register(key="secondary_voltage_control", tpe=bool)
        self.register(key="phase_control", tpe=bool)
        self.register(key="transformer_voltage_control", tpe=bool)
        self.register(key="shunt_voltage_control", tpe=bool)
        self.register(key="svc_voltage_monitoring", tpe=bool)
        self.register(key="max_outer_loop_iterations", tpe=int)
        self.register(key="min_realistic_voltage", tpe=float, units="p.u.")
        self.register(key="max_realistic_voltage", tpe=float, units="p.u.")
        self.register(key="slack_bus_selection_mode", tpe=SlackBusSelectionMode)
        self.register(key="connectivity_mode", tpe=ConnectivityMode)
        self.register(key="low_impedance_threshold", tpe=float, units="p.u.")
        self.register(key="threads", tpe=int)
        self.register(key="debug_dir", tpe=str)

        self.validate()

    def __str__(self):
        return f"PowerFlowOptions({self.solver_type}, {self.state_vector_scaling_mode}, {self.voltage_init_mode})"

    def validate(self, grid: Union["MultiCircuit", None] = None):
        """
        Check the consistency of the options, raise ConfigurationError on the first problem found
        :param grid: MultiCircuit to check the grid dependent options against (optional)
        """
        for key, prop in self.registered_properties.items():
            value = getattr(self, key)
            if key == "debug_dir" and value is None:
                continue
            if prop.tpe is float:
                ok = isinstance(value, (int, float)) and not isinstance(value, bool)
            elif prop.tpe is int:
                ok = isinstance(value, int) and not isinstance(value, bool)
            else:
                ok = isinstance(value, prop.tpe)
            if not ok:
                raise ConfigurationError(key, value, f"Expected a value of type {prop.tpe.__name__}")

        for key in ("max_iterations", "line_search_max_iterations", "krylov_max_iterations",
                    "max_outer_loop_iterations", "threads"):
            if getattr(self, key) <= 0:
                raise ConfigurationError(key, getattr(self, key), "Must be strictly positive")

        if self.max_pq_pv_switch < 0:
            raise ConfigurationError("max_pq_pv_switch", self.max_pq_pv_switch, "Must be positive")

        for key in ("conv_eps_per_eq", "max_active_power_mismatch", "max_reactive_power_mismatch",
                    "max_voltage_mismatch", "max_angle_mismatch", "max_ratio_mismatch",
                    "max_distributed_q_mismatch", "slack_bus_p_max_mismatch", "area_interchange_p_max_mismatch",
                    "target_voltage_plausibility_threshold", "low_impedance_threshold"):
            if getattr(self, key) <= 0:
                raise ConfigurationError(key, getattr(self, key), "Tolerance must be strictly positive")

        if self.max_dv <= 0:
            raise ConfigurationError("max_dv", self.max_dv, "Must be strictly positive")

        if self.max_dphi <= 0:
            raise ConfigurationError("max_dphi", self.max_dphi, "Must be strictly positive")

        if self.line_search_step_fold <= 1:
            raise ConfigurationError("line_search_step_fold", self.line_search_step_fold, "Must be greater than 1")

        if not (0 <= self.phase_shifter_dc_init_threshold < 360):
            raise ConfigurationError("phase_shifter_dc_init_threshold", self.phase_shifter_dc_init_threshold,
                                     "Must be within [0, 360)")

        if self.min_realistic_voltage <= 0:
            raise ConfigurationError("min_realistic_voltage", self.min_realistic_voltage, "Must be strictly positive")

        if self.min_realistic_voltage >= self.max_realistic_voltage:
            raise ConfigurationError("min_realistic_voltage", self.min_realistic_voltage,
                                     f"Must be lower than max_realistic_voltage ({self.max_realistic_voltage})")

        if grid is not None and self.balance_type.is_load():
            if not any(load.active for load in grid.loads):
                raise ConfigurationError("balance_type", self.balance_type,
                                         "Load based balance without any load in the grid")

    def to_dict(self) -> Dict[str, Any]:
        return OptionsTemplate.to_dict(self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "PowerFlowOptions":
        """
        Build the options from a dictionary produced by to_dict
        :param data: dict
        :return: PowerFlowOptions
        """
        options = PowerFlowOptions()
        options.apply_dict(data)
        options.validate()
        return options
