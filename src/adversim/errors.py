"""Exception hierarchy for adversim."""


class AdversimError(Exception):
    """Base class for all adversim errors."""


class RuleParseError(AdversimError):
    """A detection rule of a known type has missing or malformed params."""


class ScenarioError(AdversimError):
    """A scenario definition could not be loaded or is inconsistent."""


class SimulationStateError(AdversimError):
    """An operation was attempted in a state that does not allow it."""


class CollaboratorError(AdversimError):
    """An external collaborator returned nothing usable.

    Raised inside collaborator adapters and always converted to the
    adapter's fallback value before reaching the simulation.
    """
