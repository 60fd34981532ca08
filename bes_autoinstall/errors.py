from __future__ import annotations


class PlanError(RuntimeError):
    """Base class for failures that abort plan generation."""


class InputUnavailableError(PlanError):
    """A required source file is missing or unreadable."""

    def __init__(self, name: str, path: str, reason: str = "") -> None:
        self.name = name
        self.path = path
        msg = f"Input '{name}' unavailable: {path}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class ArchitectureError(PlanError, ValueError):
    pass


class DelimiterCollisionError(PlanError):
    pass


class LayoutError(PlanError):
    """Storage layout violates its own reference ordering.

    Raised while the plan is being built; a plan that fails here must never
    reach the renderer.
    """


class PlanConfigError(PlanError, ValueError):
    pass
