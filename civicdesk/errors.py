# Domain error kinds raised by the priority & escalation engine.
# The HTTP layer maps ``kind`` to a status code; nothing here knows about HTTP.


class EngineError(Exception):
    kind = "engine_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"detail": self.message, "kind": self.kind}


class NotFound(EngineError):
    kind = "not_found"


class Unauthorized(EngineError):
    kind = "unauthorized"


class ValidationFailed(EngineError):
    kind = "validation_failed"


class Conflict(EngineError):
    kind = "conflict"


class InfrastructureError(EngineError):
    """Persistence failure; distinct from the domain kinds above."""
    kind = "infrastructure"
