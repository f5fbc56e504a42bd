"""
Harness Error Taxonomy

Every fatal condition raised by the orchestration engine derives from
HarnessError and names:
- the step that failed
- the target identifier (workload, host, node, namespace)
- the underlying command/query error
"""

from typing import List, Optional, Sequence


class HarnessError(Exception):
    """Base class for fatal scenario errors."""

    def __init__(self, step: str, target: str, cause: Optional[object] = None):
        self.step = step
        self.target = target
        self.cause = cause
        super().__init__(self._render())

    def _render(self) -> str:
        message = f"{self.step} failed for {self.target}"
        if self.cause is not None and str(self.cause):
            message += f": {self.cause}"
        return message


class ResourceCreationError(HarnessError):
    """A workload, namespace or gateway host could not be created."""


class SchedulingTimeout(HarnessError):
    """A workload never left the Pending phase within its budget."""


class AddressResolutionTimeout(HarnessError):
    """No valid address was observed within the retry budget."""

    def __init__(self, target: str, attempts: int, last_seen: Optional[str] = None):
        self.attempts = attempts
        self.last_seen = last_seen
        cause = f"no valid address after {attempts} attempts"
        if last_seen:
            cause += f" (last value {last_seen!r})"
        super().__init__("address resolution", target, cause)


class ProbeFailure(HarnessError):
    """A probe workload exited with failure."""

    def __init__(self, step: str, target: str, cause: Optional[object] = None, logs: Optional[str] = None):
        self.logs = logs
        super().__init__(step, target, cause)


class FaultTargetNotFound(HarnessError):
    """No candidate matched the fault-injection predicate."""


class ExternalCommandError(HarnessError):
    """A host-runtime or in-workload command returned non-zero or malformed output."""

    def __init__(
        self,
        step: str,
        target: str,
        argv: Optional[Sequence[str]] = None,
        exit_code: Optional[int] = None,
        output: str = "",
        cause: Optional[object] = None,
    ):
        self.argv = list(argv) if argv else []
        self.exit_code = exit_code
        self.output = output
        if cause is None:
            cause = f"{' '.join(self.argv)!r} exited {exit_code}"
            if output.strip():
                cause += f" ({output.strip()})"
        super().__init__(step, target, cause)


class PreflightError(HarnessError):
    """The test environment itself has no internet egress."""


class TopologyDiscoveryError(HarnessError):
    """Neither the single control-plane nor the HA node set matched."""


class UnexpectedTrafficPath(HarnessError):
    """Flow counters show traffic on a path that must stay untouched."""


class TeardownError(HarnessError):
    """One or more cleanup steps failed; every step was still attempted."""

    def __init__(self, target: str, failures: List[BaseException]):
        self.failures = list(failures)
        summary = "; ".join(str(f) for f in self.failures)
        super().__init__("teardown", target, f"{len(self.failures)} cleanup step(s) failed: {summary}")
