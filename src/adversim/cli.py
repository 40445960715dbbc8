"""adversim command line.

Usage:
    adversim scenarios
    adversim run [--scenario NAME] [--seed N] [--iterations N] [--weather fog] [--offline]
    adversim watch [--scenario NAME] [--seed N] [--tick-ms 250]
    adversim sweep [--scenario NAME] [--seeds 50] [--first-seed 1]

Without ``--offline`` the Red Team, Blue Team and analyst are Ollama-backed;
if the server is unreachable the offline planner and fallbacks are used.
"""

from __future__ import annotations

import argparse
import queue
import sys

from loguru import logger

from adversim.collaborators import (
    OllamaAnalyst,
    OllamaClient,
    OllamaPatchGenerator,
    OllamaPathPlanner,
    StraightLinePlanner,
    TemplateAnalyst,
)
from adversim.collaborators.contracts import PatchSuggestion, fallback_patch
from adversim.comms.event_bus import EventBus
from adversim.config import Settings, settings
from adversim.errors import AdversimError
from adversim.simulation.engine import SimulationEngine
from adversim.simulation.exercise import Exercise, IterationResult
from adversim.simulation.models import Weather
from adversim.simulation.orchestrator import Verdict
from adversim.simulation.scenario import Scenario, builtin_scenarios, find_scenario
from adversim.simulation.sweep import sweep
from adversim.tactical.geo import init_reference, latlng_to_local


class _FallbackPatcher:
    """Offline Blue Team: always proposes the fallback rule."""

    def suggest(self, plan, rules, seed) -> PatchSuggestion:
        return fallback_patch()


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper(),
               format="<green>{time:HH:mm:ss}</green> | <level>{level: <7}</level> | {message}")


def _settings_from_args(args: argparse.Namespace) -> Settings:
    update = {}
    if getattr(args, "weather", None):
        update["weather"] = Weather(args.weather)
    if getattr(args, "iterations", None) is not None:
        update["max_iterations"] = args.iterations
    if getattr(args, "tick_ms", None) is not None:
        update["tick_interval_ms"] = args.tick_ms
    if getattr(args, "civilians", None) is not None:
        update["civilian_count"] = args.civilians
    if getattr(args, "full_rules", False):
        update["baseline_only"] = False
    if getattr(args, "offline", False):
        update["llm_enabled"] = False
    return settings.model_copy(update=update)


def _collaborators(config: Settings):
    """Return (planner, patcher, analyst) for the configured mode."""
    offline = (StraightLinePlanner(jitter_deg=0.0004), _FallbackPatcher(), TemplateAnalyst())
    if not config.llm_enabled:
        return offline
    client = OllamaClient(config.ollama_host, config.ollama_model, config.llm_timeout)
    if not client.available():
        logger.warning(f"Ollama not reachable at {client.host}; running offline")
        return offline
    return (
        OllamaPathPlanner(client, config.planner_temperature),
        OllamaPatchGenerator(client, config.patch_temperature),
        OllamaAnalyst(client, config.analysis_temperature),
    )


def _print_iteration(result: IterationResult) -> None:
    verdict = result.verdict.value if result.verdict else "UNRESOLVED"
    print(f"\n{'='*60}")
    print(f"  ITERATION {result.iteration}: {verdict} after {result.ticks} ticks")
    print(f"{'='*60}")
    print(f"  Strategy: {result.adversary_strategy}")
    print(f"  Rules: {', '.join(r.rule_id for r in result.rules_in_effect) or '(none)'}")
    critical = [a for a in result.alerts if a.is_critical]
    print(f"  Alerts: {len(result.alerts)} ({len(critical)} critical)")
    for alert in critical[:3]:
        print(f"    [{alert.timestamp}ms] {alert.message}")
    if result.patch_suggestion:
        patch = result.patch_suggestion
        print(f"\n  Patch: {patch.rule.rule_id} ({patch.rule.type})")
        print(f"    {patch.explanation}")
    if result.analysis:
        print("\n  --- Post-incident analysis ---")
        for line in result.analysis.splitlines():
            print(f"  {line}")


def cmd_scenarios(args: argparse.Namespace) -> int:
    for i, scenario in enumerate(builtin_scenarios(), start=1):
        print(f"{i}. {scenario.name}: {scenario.description}")
        if scenario.map_center:
            init_reference(*scenario.map_center)
        for sensor in scenario.sensors:
            x, y = latlng_to_local(sensor.pos)
            print(f"     {sensor.sensor_id:<4} {sensor.sensor_type.value:<8} "
                  f"range {sensor.range_m:>5.0f}m  p={sensor.base_p:.2f}  "
                  f"at ({x:+.0f}m E, {y:+.0f}m N)")
        rules = ", ".join(f"{r.rule_id}[{r.type}]" for r in scenario.rules)
        print(f"     rules: {rules or '(none)'}")
    return 0


def _load(args: argparse.Namespace) -> Scenario:
    return find_scenario(args.scenario)


def cmd_run(args: argparse.Namespace) -> int:
    config = _settings_from_args(args)
    scenario = _load(args)
    planner, patcher, analyst = _collaborators(config)
    seed = config.default_seed if args.seed is None else args.seed
    exercise = Exercise(scenario, planner, patcher, analyst, config=config, seed=seed)

    print(f"Scenario: {scenario.name}  seed={seed}  weather={config.weather.value}")
    results = exercise.run()
    for result in results:
        _print_iteration(result)
    return 0 if results and results[-1].detected else 1


def cmd_watch(args: argparse.Namespace) -> int:
    config = _settings_from_args(args)
    scenario = _load(args)
    planner, _, _ = _collaborators(config)
    seed = config.default_seed if args.seed is None else args.seed
    exercise = Exercise(scenario, planner, config=config, seed=seed)

    bus = EventBus()
    events = bus.subscribe()
    engine = SimulationEngine(bus, tick_interval=config.tick_interval_ms / 1000.0)
    engine.start(exercise.build_run(exercise.plan_adversary()))
    try:
        while True:
            try:
                msg = events.get(timeout=1.0)
            except queue.Empty:
                if not engine.running:
                    break
                continue
            data = msg.get("data", {})
            if msg["type"] == "sim_tick":
                adversary = next((a for a in data["actors"] if a["type"] == "adversary"), None)
                if adversary:
                    print(f"tick {data['tick']:>4}  adv at {adversary['lat']:.5f},{adversary['lng']:.5f}"
                          f"  events={len(data['events'])}")
            elif msg["type"] == "sim_alert":
                print(f"  ALERT {data['level']}: {data['message']}")
            elif msg["type"] == "sim_verdict":
                print(f"Verdict: {data['verdict'] or data['state']} at tick {data['tick']}")
                break
    except KeyboardInterrupt:
        engine.stop()
    verdict = engine.wait(timeout=2.0)
    return 0 if verdict is Verdict.DETECTED else 1


def cmd_sweep(args: argparse.Namespace) -> int:
    config = _settings_from_args(args)
    scenario = _load(args)
    planner, _, _ = _collaborators(config)
    seeds = range(args.first_seed, args.first_seed + args.seeds)
    summary = sweep(scenario, seeds, planner, config)

    print(f"Scenario: {scenario.name}  weather={config.weather.value}")
    print(f"  Runs:            {summary.runs}")
    print(f"  Detected:        {summary.detected}")
    print(f"  Bypassed:        {summary.bypassed}")
    print(f"  Detection rate:  {summary.detection_rate:.1%}")
    if summary.mean_ticks_to_detection is not None:
        print(f"  Ticks to detect: mean {summary.mean_ticks_to_detection:.1f}, "
              f"median {summary.median_ticks_to_detection:.1f}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="adversim",
                                     description="Adversarial detection simulation")
    parser.add_argument("--log-level", default=None, help="Log level (default from settings)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("scenarios", help="List built-in scenarios").set_defaults(func=cmd_scenarios)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--scenario", default="1", help="Scenario name or 1-based index")
    common.add_argument("--weather", choices=[w.value for w in Weather], default=None)
    common.add_argument("--civilians", type=int, default=None, help="Civilian count")
    common.add_argument("--full-rules", action="store_true",
                        help="Keep persistent and group rules instead of the weak baseline")
    common.add_argument("--offline", action="store_true", help="Do not contact Ollama")

    run = sub.add_parser("run", parents=[common], help="Run a Red/Blue exercise")
    run.add_argument("--seed", type=int, default=None)
    run.add_argument("--iterations", type=int, default=None,
                     help="Re-run against patched rules until detected (default 1)")
    run.set_defaults(func=cmd_run)

    watch = sub.add_parser("watch", parents=[common], help="Run one iteration in real time")
    watch.add_argument("--seed", type=int, default=None)
    watch.add_argument("--tick-ms", type=int, default=None, help="Wall-clock ms per tick")
    watch.set_defaults(func=cmd_watch)

    sw = sub.add_parser("sweep", parents=[common], help="Detection rate over many seeds")
    sw.add_argument("--seeds", type=int, default=50, help="Number of seeds")
    sw.add_argument("--first-seed", type=int, default=1)
    sw.set_defaults(func=cmd_sweep)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level or settings.log_level)
    try:
        return args.func(args)
    except (AdversimError, ValueError) as e:
        logger.error(str(e))
        return 2


if __name__ == "__main__":
    sys.exit(main())
