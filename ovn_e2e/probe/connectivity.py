#!/usr/bin/env python3
"""
Connectivity Probe

Runs a bounded reachability loop inside a workload as an independent
asyncio task and publishes two signals, strictly in this order:

1. target observable - the workload left Pending; carries its descriptor
   (so the caller knows which node it landed on before injecting a fault)
2. result - exactly one ProbeResult once the workload is terminal

Also provides the one-shot ping check used by the inter-node and external
gateway scenarios.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from ovn_e2e.cluster.client import ClusterClient
from ovn_e2e.cluster.lifecycle import LifecycleWaiter
from ovn_e2e.cluster.models import LifecycleOutcome, LifecycleState, Workload, WorkloadSpec
from ovn_e2e.errors import ProbeFailure, SchedulingTimeout
from ovn_e2e.metrics import METRICS
from ovn_e2e.probe.commands import PingCommand, continuous_connect_command, ping_args

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProbeResult:
    success: bool
    error: Optional[BaseException] = None
    logs: Optional[str] = None


class ProbeHandle:
    """Two-signal handle returned by ConnectivityProbe.start()."""

    def __init__(self, name: str, observable: asyncio.Future, result: asyncio.Future):
        self.name = name
        self._observable = observable
        self._result = result
        self._task: Optional[asyncio.Task] = None

    def attach(self, task: asyncio.Task):
        self._task = task

    async def wait_observable(self, timeout: float) -> Workload:
        try:
            return await asyncio.wait_for(asyncio.shield(self._observable), timeout)
        except asyncio.TimeoutError as e:
            raise SchedulingTimeout(
                "await probe target", self.name, f"not observable within {timeout}s"
            ) from e

    async def wait_result(self, timeout: float) -> ProbeResult:
        try:
            return await asyncio.wait_for(asyncio.shield(self._result), timeout)
        except asyncio.TimeoutError as e:
            raise ProbeFailure(
                "await probe verdict", self.name, f"no verdict within {timeout}s"
            ) from e

    @property
    def done(self) -> bool:
        return self._result.done()

    async def cancel(self):
        """Stop the probe task if it is still running and wait for it to unwind."""
        if self._task is None or self._task.done():
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            logger.info(f"Probe {self.name} cancelled")


class ConnectivityProbe:
    def __init__(
        self,
        cluster: ClusterClient,
        waiter: LifecycleWaiter,
        image: str,
        attempts: int = 10,
        timeout: int = 30,
        delay: int = 2,
    ):
        self.cluster = cluster
        self.waiter = waiter
        self.image = image
        self.attempts = attempts
        self.timeout = timeout
        self.delay = delay

    def start(
        self,
        namespace: str,
        name: str,
        host: str,
        port: int,
        node_name: Optional[str] = None,
    ) -> ProbeHandle:
        """Launch the continuous reachability probe in the background."""
        spec = WorkloadSpec(
            name=name,
            command=continuous_connect_command(host, port, self.attempts, self.timeout, self.delay),
            node_name=node_name,
            image=self.image,
        )
        loop = asyncio.get_running_loop()
        handle = ProbeHandle(f"{namespace}/{name}", loop.create_future(), loop.create_future())
        handle.attach(asyncio.create_task(self._run(handle, namespace, spec)))
        logger.info(f"Started connectivity probe {name} -> {host}:{port}")
        return handle

    async def _run(self, handle: ProbeHandle, namespace: str, spec: WorkloadSpec):
        observable, result = handle._observable, handle._result
        target = f"{namespace}/{spec.name}"
        try:
            await self.cluster.create_workload(namespace, spec)
            outcome = await self.waiter.wait_not_pending(namespace, spec.name, spec.container_name)
            if outcome.state == LifecycleState.TIMED_OUT:
                raise SchedulingTimeout("wait for probe workload", target, outcome.reason)

            observable.set_result(outcome.workload)

            if outcome.state == LifecycleState.SCHEDULED_RUNNING:
                outcome = await self.waiter.wait_for_success(namespace, spec.name, spec.container_name)
            verdict = self._verdict(target, outcome)
        except asyncio.CancelledError:
            for future in (observable, result):
                if not future.done():
                    future.cancel()
            raise
        except Exception as e:
            # delivered through both signals, in order
            if not observable.done():
                observable.set_exception(e)
            verdict = ProbeResult(success=False, error=e)

        METRICS["probe_results"].labels(
            kind="continuous", outcome="success" if verdict.success else "failure"
        ).inc()
        result.set_result(verdict)

    def _verdict(self, target: str, outcome: LifecycleOutcome) -> ProbeResult:
        if outcome.succeeded:
            logger.info(f"Probe {target} completed every attempt successfully")
            return ProbeResult(success=True)
        error = ProbeFailure("connectivity probe", target, outcome.reason, logs=outcome.logs)
        return ProbeResult(success=False, error=error, logs=outcome.logs)

    async def check_ping(
        self,
        namespace: str,
        name: str,
        host: str,
        node_name: Optional[str],
        ping: PingCommand = PingCommand.IPV4,
        timeout: int = 30,
        warmup: int = 20,
    ):
        """Run a single ping workload on `node_name` and require it to succeed."""
        spec = WorkloadSpec(
            name=name,
            command=["/bin/sh", "-c"],
            args=ping_args(host, ping, timeout, warmup),
            node_name=node_name,
            image=self.image,
        )
        await self.cluster.create_workload(namespace, spec)
        outcome = await self.waiter.wait_for_success(namespace, name, spec.container_name)

        METRICS["probe_results"].labels(
            kind="ping", outcome="success" if outcome.succeeded else "failure"
        ).inc()
        if not outcome.succeeded:
            raise ProbeFailure(
                "ping check", f"{namespace}/{name} -> {host}", outcome.reason, logs=outcome.logs
            )
        logger.info(f"Workload {name} on {node_name} reached {host}")
