"""Communication layer: in-process event bus for simulation telemetry."""
from .event_bus import EventBus
