"""
Lifecycle Waiter

Blocks the calling task until a workload leaves Pending, or until it
reaches a terminal phase. Polls through the injectable clock using a
RetryBudget; exhausting the budget yields a TimedOut outcome.
"""

import logging
from typing import Optional

from ovn_e2e.cluster.client import ClusterClient
from ovn_e2e.cluster.models import (
    LifecycleOutcome,
    LifecycleState,
    Workload,
    WorkloadPhase,
    WorkloadSpec,
)
from ovn_e2e.errors import ExternalCommandError, ResourceCreationError, SchedulingTimeout
from ovn_e2e.metrics import METRICS
from ovn_e2e.retry import DEFAULT_CLOCK, Clock, RetryBudget

logger = logging.getLogger(__name__)


class LifecycleWaiter:
    def __init__(self, cluster: ClusterClient, budget: RetryBudget, clock: Clock = DEFAULT_CLOCK):
        self.cluster = cluster
        self.budget = budget
        self.clock = clock

    async def launch(self, namespace: str, spec: WorkloadSpec) -> Workload:
        """Create a long-lived workload and wait until it is scheduled."""
        await self.cluster.create_workload(namespace, spec)
        outcome = await self.wait_not_pending(namespace, spec.name, spec.container_name)
        target = f"{namespace}/{spec.name}"
        if outcome.state == LifecycleState.TIMED_OUT:
            raise SchedulingTimeout("wait for workload scheduling", target, outcome.reason)
        if outcome.state == LifecycleState.FAILED:
            raise ResourceCreationError("start workload", target, outcome.reason)
        return outcome.workload

    async def wait_not_pending(
        self, namespace: str, name: str, container: Optional[str] = None
    ) -> LifecycleOutcome:
        """
        Wait for the workload to leave Pending.

        A workload that already finished is reported with its terminal
        outcome rather than as running.
        """
        last: Optional[Workload] = None
        for attempt in range(1, self.budget.max_attempts + 1):
            METRICS["poll_attempts"].labels(loop="not_pending").inc()
            last = await self._observe(namespace, name, attempt)
            if last is not None and last.phase != WorkloadPhase.PENDING:
                if last.phase.is_terminal:
                    return await self._terminal_outcome(last, container)
                return LifecycleOutcome(LifecycleState.SCHEDULED_RUNNING, workload=last)
            if attempt < self.budget.max_attempts:
                await self.clock.sleep(self.budget.interval)

        return LifecycleOutcome(
            LifecycleState.TIMED_OUT,
            workload=last,
            reason=f"still pending after {self.budget.max_attempts} checks",
        )

    async def wait_for_success(
        self, namespace: str, name: str, container: Optional[str] = None
    ) -> LifecycleOutcome:
        """Wait for the workload to reach Succeeded or Failed."""
        last: Optional[Workload] = None
        for attempt in range(1, self.budget.max_attempts + 1):
            METRICS["poll_attempts"].labels(loop="terminal").inc()
            last = await self._observe(namespace, name, attempt)
            if last is not None and last.phase.is_terminal:
                return await self._terminal_outcome(last, container)
            if attempt < self.budget.max_attempts:
                await self.clock.sleep(self.budget.interval)

        phase = last.phase.value if last else "unobserved"
        return LifecycleOutcome(
            LifecycleState.TIMED_OUT,
            workload=last,
            reason=f"not terminal after {self.budget.max_attempts} checks (phase {phase})",
        )

    async def _observe(self, namespace: str, name: str, attempt: int) -> Optional[Workload]:
        try:
            return await self.cluster.get_workload(namespace, name)
        except ExternalCommandError as e:
            logger.warning(f"Attempt {attempt}: unable to query workload {namespace}/{name}: {e}")
            return None

    async def _terminal_outcome(self, workload: Workload, container: Optional[str]) -> LifecycleOutcome:
        if workload.phase == WorkloadPhase.SUCCEEDED:
            return LifecycleOutcome(LifecycleState.SUCCEEDED, workload=workload)

        logs = await self.collect_logs(workload.namespace, workload.name, container)
        return LifecycleOutcome(
            LifecycleState.FAILED,
            workload=workload,
            reason=workload.message or f"workload {workload.name} failed",
            logs=logs,
        )

    async def collect_logs(self, namespace: str, name: str, container: Optional[str] = None) -> Optional[str]:
        """Fetch logs for diagnostics; a failure here is only a warning."""
        try:
            logs = await self.cluster.fetch_logs(namespace, name, container)
        except ExternalCommandError as e:
            logger.warning(f"Failed to get logs from workload {namespace}/{name}: {e}")
            return None
        logger.info(f"workload {namespace}/{name} logs:\n{logs}")
        return logs
