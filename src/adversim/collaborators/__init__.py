"""External collaborators: path planner, patch generator, narrative generator."""
from .blue_team import OllamaPatchGenerator
from .contracts import (
    FALLBACK_ANALYSIS,
    FALLBACK_STRATEGY,
    NarrativeGenerator,
    PatchGenerator,
    PatchSuggestion,
    PathPlanner,
    PlannedPath,
    clamp_path,
    fallback_patch,
    request_analysis,
    request_patch,
    request_path,
)
from .narrative import OllamaAnalyst, TemplateAnalyst
from .ollama import OllamaClient
from .red_team import OllamaPathPlanner, StraightLinePlanner
