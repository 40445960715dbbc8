"""Simulation subsystem: detection model, rule engine, tick orchestrator."""
from .detection import detect, detect_all, detection_probability
from .engine import SimulationEngine
from .models import Actor, ActorType, Alert, AlertLevel, GpsMode, SensorEvent, SensorType, Weather
from .orchestrator import RunConfig, RunState, SimulationRun, TickResult, Verdict
from .prng import PRNG
from .rule_engine import DetectionState, evaluate
from .rules import (
    DetectionRule,
    GroupSighting,
    HighConfidenceSighting,
    PersistentSighting,
    apply_patch,
    parse_rule,
    parse_rules,
)
from .scenario import Scenario, Sensor, builtin_scenarios, find_scenario, load_scenario
