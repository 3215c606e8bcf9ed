"""CivicDesk: SLA, priority scoring and officer escalation for civic incidents."""

__version__ = "0.1.0"
