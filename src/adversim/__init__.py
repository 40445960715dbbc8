"""adversim: adversarial detection simulation with Red/Blue Team rule patching."""

__version__ = "0.1.0"
