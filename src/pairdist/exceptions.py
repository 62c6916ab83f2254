class PairdistError(Exception):
    """Base class for pairdist errors."""


class ConfigurationError(PairdistError, ValueError):
    """Unrecognized metric tag or invalid configuration value."""


class AllocationError(PairdistError, MemoryError):
    """Input, output or workspace memory could not be acquired."""


class ComputationError(PairdistError, RuntimeError):
    """A kernel launch failed on the device."""

    def __init__(self, message, metric=None, shape=None):
        super().__init__(message)
        self.metric = metric
        self.shape = shape


class WorkspaceError(PairdistError, ValueError):
    """The provided workspace is smaller than the adapter requires."""

    def __init__(self, required: int, provided: int):
        super().__init__(
            f"workspace too small: {provided} bytes provided, {required} required"
        )
        self.required = required
        self.provided = provided


class HarnessStateError(PairdistError, RuntimeError):
    """A harness transition was requested out of order."""


class ToleranceViolation(PairdistError, AssertionError):
    """
    Reference and under-test matrices disagree beyond tolerance.

    mismatches holds (i, j, expected, actual) tuples for the first offending
    elements; total counts all of them.
    """

    max_reported = 10

    def __init__(self, mismatches, tolerance, metric=None, shape=None, total=None):
        self.mismatches = list(mismatches)
        self.total = len(self.mismatches) if total is None else total
        self.tolerance = tolerance
        self.metric = metric
        self.shape = shape
        super().__init__(self._format())

    def _format(self) -> str:
        name = getattr(self.metric, "name", self.metric)
        head = (
            f"{self.total} element(s) differ by more than {self.tolerance:g}"
            f" (metric={name}, shape={self.shape})"
        )
        lines = [head]
        for i, j, expected, actual in self.mismatches[: self.max_reported]:
            lines.append(f"  [{i}, {j}]: expected={expected!r} actual={actual!r}")
        shown = min(len(self.mismatches), self.max_reported)
        if self.total > shown:
            lines.append(f"  ... {self.total - shown} more")
        return "\n".join(lines)
