"""Red Team / Blue Team exercise loop.

One iteration:
  1. Seed the PRNG with the master seed.
  2. Spawn civilians on random POI-to-POI paths.
  3. Ask the path planner for the adversary route and spawn ``adv-1``.
  4. Run the simulation to a verdict.
  5. On BYPASSED, ask for a patch, apply it and request a debrief.

``run()`` repeats iterations against the patched rule set until the
adversary is detected or the iteration budget is spent.  Every iteration
reseeds with the same master seed so the only thing that changes between
iterations is the rule set.
"""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from adversim.collaborators.contracts import (
    NarrativeGenerator,
    PatchGenerator,
    PatchSuggestion,
    PathPlanner,
    PlannedPath,
    request_analysis,
    request_patch,
    request_path,
)
from adversim.config import Settings, settings as default_settings
from adversim.simulation.models import Actor, ActorType, Alert, GpsMode
from adversim.simulation.orchestrator import RunConfig, RunState, SimulationRun, Verdict
from adversim.simulation.prng import PRNG
from adversim.simulation.rules import GROUP, PERSISTENT, DetectionRule, apply_patch
from adversim.simulation.scenario import Scenario

ADVERSARY_ID = "adv-1"


@dataclass(frozen=True)
class ActionLogEntry:
    """One line of the exercise narrative (who did what)."""

    message: str
    team: str = "info"  # info | red | blue | green
    details: str = ""


@dataclass(frozen=True)
class IterationResult:
    iteration: int
    verdict: Verdict | None
    rules_in_effect: tuple[DetectionRule, ...]
    adversary_strategy: str
    ticks: int
    alerts: tuple[Alert, ...] = ()
    patch_suggestion: PatchSuggestion | None = None
    analysis: str | None = None
    plan: PlannedPath | None = None

    @property
    def detected(self) -> bool:
        return self.verdict is Verdict.DETECTED

    def to_dict(self) -> dict:
        return {
            "iteration": self.iteration,
            "verdict": self.verdict.value if self.verdict else None,
            "rules_in_effect": [r.rule_id for r in self.rules_in_effect],
            "adversary_strategy": self.adversary_strategy,
            "ticks": self.ticks,
            "alerts": [a.to_dict() for a in self.alerts],
            "patch_suggestion": self.patch_suggestion.to_dict() if self.patch_suggestion else None,
            "analysis": self.analysis,
        }


def baseline_rules(rules: list[DetectionRule] | tuple[DetectionRule, ...]) -> list[DetectionRule]:
    """Drop persistent and group rules, leaving a deliberately weak rule set."""
    return [r for r in rules if r.type not in (PERSISTENT, GROUP)]


def spawn_civilians(
    prng: PRNG,
    points_of_interest: dict,
    count: int,
    speed: float = 10.0,
) -> list[Actor]:
    """Create ``count`` civilians, each walking between two distinct POIs.

    Two draws per civilian: the start POI, then the end POI chosen from the
    remaining names.
    """
    names = list(points_of_interest)
    civilians = []
    for i in range(count):
        start = names[prng.choice_index(len(names))]
        others = [n for n in names if n != start] or names
        end = others[prng.choice_index(len(others))]
        start_pos = points_of_interest[start]
        civilians.append(Actor(
            actor_id=f"civ-{i}",
            actor_type=ActorType.CIVILIAN,
            pos=start_pos,
            path=(start_pos, points_of_interest[end]),
            speed=speed,
            gps_mode=GpsMode.ON,
        ))
    return civilians


class Exercise:
    """Drives repeated runs of one scenario, patching rules after each bypass."""

    def __init__(
        self,
        scenario: Scenario,
        planner: PathPlanner,
        patcher: PatchGenerator | None = None,
        analyst: NarrativeGenerator | None = None,
        config: Settings | None = None,
        seed: int | None = None,
    ) -> None:
        self.scenario = scenario
        self._planner = planner
        self._patcher = patcher
        self._analyst = analyst
        self._settings = config or default_settings
        self.seed = self._settings.default_seed if seed is None else seed
        self._prng = PRNG(self.seed)

        rules = list(scenario.rules)
        if self._settings.baseline_only:
            rules = baseline_rules(rules)
        self.rules: list[DetectionRule] = rules
        self.results: list[IterationResult] = []
        self.log: list[ActionLogEntry] = []

    def _log(self, message: str, team: str = "info", details: str = "") -> None:
        self.log.append(ActionLogEntry(message, team, details))
        logger.info(f"[{team}] {message}" + (f" {details}" if details else ""))

    def build_run(self, plan: PlannedPath) -> SimulationRun:
        """Reseed, spawn actors around ``plan`` and return an IDLE run."""
        self._prng.reseed(self.seed)
        pois = self.scenario.points_of_interest
        civilians = spawn_civilians(self._prng, pois, self._settings.civilian_count,
                                    self._settings.civilian_speed)
        adversary = Actor(
            actor_id=ADVERSARY_ID,
            actor_type=ActorType.ADVERSARY,
            pos=plan.path[0],
            path=plan.path,
            speed=self._settings.adversary_speed,
            gps_mode=plan.gps_mode,
        )
        config = RunConfig(
            sensors=self.scenario.sensors,
            rules=self.rules,
            points_of_interest=pois,
            weather=self._settings.weather,
            tick_interval_ms=self._settings.tick_interval_ms,
        )
        return SimulationRun([adversary, *civilians], config, self._prng)

    def plan_adversary(self) -> PlannedPath:
        start = self._settings.adversary_start_poi
        end = self._settings.adversary_end_poi
        # Validates both names against the scenario
        self.scenario.poi(start)
        self.scenario.poi(end)
        return request_path(
            self._planner,
            start,
            end,
            self.scenario.points_of_interest,
            self.scenario.sensors,
            self.rules,
            self._settings.weather,
            self.seed,
        )

    def run_iteration(self) -> IterationResult:
        iteration = len(self.results) + 1
        self._log(f'Iteration {iteration}: scenario "{self.scenario.name}"', details=f"Seed: {self.seed}")
        rules_in_effect = tuple(self.rules)

        self._log("Red Team is generating an adversary route...", "red")
        plan = self.plan_adversary()
        self._log("Red Team plan:", "red", f"Strategy: {plan.strategy}")

        run = self.build_run(plan)
        state = run.run_to_verdict(max_ticks=self._settings.max_ticks)
        if state is RunState.RUNNING:
            run.cancel()
            logger.warning(f"Run hit max_ticks={self._settings.max_ticks} without a verdict")
        verdict = run.verdict
        verdict_name = verdict.value if verdict else "UNRESOLVED"
        self._log(f"Verdict: {verdict_name}", "red" if verdict is Verdict.BYPASSED else "green",
                  f"Resolved after {run.tick} ticks.")

        patch = None
        analysis = None
        if verdict is Verdict.BYPASSED and self._patcher is not None:
            self._log("Bypass detected. Blue Team is generating a patch...", "blue")
            patch = request_patch(self._patcher, plan, self.rules, self.seed)
            self.rules = apply_patch(self.rules, patch.rule)
            self._log("Blue Team patch applied:", "blue",
                      f'Rule "{patch.rule.rule_id}" added. {patch.explanation}')
            if self._analyst is not None:
                analysis = request_analysis(self._analyst, plan, patch)
                self._log("Post-incident analysis complete.", "green")

        result = IterationResult(
            iteration=iteration,
            verdict=verdict,
            rules_in_effect=rules_in_effect,
            adversary_strategy=plan.strategy,
            ticks=run.tick,
            alerts=tuple(run.alerts),
            patch_suggestion=patch,
            analysis=analysis,
            plan=plan,
        )
        self.results.append(result)
        return result

    def run(self, max_iterations: int | None = None) -> list[IterationResult]:
        """Iterate until DETECTED or ``max_iterations`` runs.  Returns this call's results."""
        budget = self._settings.max_iterations if max_iterations is None else max_iterations
        results: list[IterationResult] = []
        for _ in range(max(budget, 0)):
            result = self.run_iteration()
            results.append(result)
            if result.detected:
                break
        return results
