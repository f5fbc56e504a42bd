#!/usr/bin/env python3
"""
Scenario Orchestrator

Runs one scenario end to end:
1. pre-flight internet egress check
2. topology discovery (single control plane or HA)
3. per-scenario namespace
4. scenario body
5. ScenarioResult + metrics
6. teardown: cancel probes, remove gateway hosts, delete the namespace

Teardown always runs, attempts every step and accumulates its failures.
"""

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from ovn_e2e.chaos.injector import ChaosInjector
from ovn_e2e.cluster.client import ClusterClient
from ovn_e2e.cluster.lifecycle import LifecycleWaiter
from ovn_e2e.cluster.resolver import AddressResolver
from ovn_e2e.config import HarnessConfig
from ovn_e2e.diagnostic_logger import DiagnosticLogger
from ovn_e2e.errors import HarnessError, TeardownError
from ovn_e2e.gateway.flows import FlowInspector
from ovn_e2e.gateway.runtime import HostRuntime
from ovn_e2e.gateway.simulator import GatewaySimulator
from ovn_e2e.metrics import METRICS
from ovn_e2e.probe.connectivity import ConnectivityProbe, ProbeHandle
from ovn_e2e.retry import DEFAULT_CLOCK, Clock
from ovn_e2e.scenarios.preflight import check_internet_egress
from ovn_e2e.scenarios.topology import Topology, discover_topology

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScenarioContext:
    """Everything a scenario body needs. Bound once per run."""

    config: HarnessConfig
    namespace: str
    topology: Topology
    cluster: ClusterClient
    waiter: LifecycleWaiter
    resolver: AddressResolver
    probe: ConnectivityProbe
    gateways: GatewaySimulator
    flows: FlowInspector
    diagnostics: DiagnosticLogger
    clock: Clock
    probes: List[ProbeHandle] = field(default_factory=list)

    def start_probe(self, name: str, host: str, port: int, node_name: Optional[str] = None) -> ProbeHandle:
        handle = self.probe.start(self.namespace, name, host, port, node_name=node_name)
        self.probes.append(handle)
        return handle

    def chaos(self) -> ChaosInjector:
        return ChaosInjector(self.cluster, self.config.ovn_namespace)


@dataclass(frozen=True)
class Scenario:
    name: str
    description: str
    body: Callable[[ScenarioContext], Awaitable[None]]


@dataclass
class ScenarioResult:
    name: str
    success: bool
    error: Optional[BaseException] = None
    duration_seconds: float = 0.0
    topology_mode: Optional[str] = None
    warnings: List[dict] = field(default_factory=list)
    errors: List[dict] = field(default_factory=list)


Preflight = Callable[[str, float], Awaitable[None]]


class ScenarioOrchestrator:
    def __init__(
        self,
        cluster: ClusterClient,
        runtime: HostRuntime,
        config: Optional[HarnessConfig] = None,
        clock: Clock = DEFAULT_CLOCK,
        preflight: Preflight = check_internet_egress,
    ):
        self.cluster = cluster
        self.runtime = runtime
        self.config = config or HarnessConfig()
        self.clock = clock
        self.preflight = preflight

    def _context(self, namespace: str, topology: Topology, gateways: GatewaySimulator, diagnostics: DiagnosticLogger) -> ScenarioContext:
        cfg = self.config
        waiter = LifecycleWaiter(self.cluster, cfg.lifecycle_budget, self.clock)
        return ScenarioContext(
            config=cfg,
            namespace=namespace,
            topology=topology,
            cluster=self.cluster,
            waiter=waiter,
            resolver=AddressResolver(self.cluster, cfg.address_budget, self.clock),
            probe=ConnectivityProbe(
                self.cluster,
                waiter,
                image=cfg.workload_image,
                attempts=cfg.probe_attempts,
                timeout=cfg.probe_timeout,
                delay=cfg.probe_delay,
            ),
            gateways=gateways,
            flows=FlowInspector(self.cluster, cfg.ovn_namespace, cfg.node_agent_role, cfg.node_agent_container),
            diagnostics=diagnostics,
            clock=self.clock,
        )

    async def run(self, scenario: Scenario) -> ScenarioResult:
        diagnostics = DiagnosticLogger(scenario.name)
        gateways = GatewaySimulator(self.runtime, self.cluster, self.config)
        started = self.clock.monotonic()
        namespace: Optional[str] = None
        topology: Optional[Topology] = None
        context: Optional[ScenarioContext] = None
        error: Optional[BaseException] = None

        logger.info(f"Running scenario {scenario.name}: {scenario.description}")
        try:
            await self.preflight(self.config.preflight_url, self.config.preflight_timeout)
            topology = await discover_topology(self.cluster, self.config)
            namespace = await self.cluster.create_namespace(scenario.name)
            context = self._context(namespace, topology, gateways, diagnostics)
            await scenario.body(context)
        except HarnessError as e:
            error = e
            diagnostics.log_error(str(e), {"step": e.step, "target": e.target})
        except Exception as e:
            error = e
            diagnostics.log_error(f"{type(e).__name__}: {e}")
        finally:
            failures = await self._teardown(context, gateways, namespace, diagnostics)

        if error is None and failures:
            error = TeardownError(namespace or scenario.name, failures)

        duration = self.clock.monotonic() - started
        outcome = "success" if error is None else "failure"
        METRICS["scenarios_total"].labels(scenario=scenario.name, outcome=outcome).inc()
        METRICS["scenario_duration"].labels(scenario=scenario.name).observe(duration)
        if error is None:
            diagnostics.log_success(f"completed in {duration:.1f}s")

        report = diagnostics.generate_report()
        return ScenarioResult(
            name=scenario.name,
            success=error is None,
            error=error,
            duration_seconds=duration,
            topology_mode=topology.mode.value if topology else None,
            warnings=report["warnings"],
            errors=report["errors"],
        )

    async def _teardown(
        self,
        context: Optional[ScenarioContext],
        gateways: GatewaySimulator,
        namespace: Optional[str],
        diagnostics: DiagnosticLogger,
    ) -> List[BaseException]:
        failures: List[BaseException] = []

        if context is not None:
            for handle in context.probes:
                try:
                    await handle.cancel()
                except Exception as e:
                    METRICS["teardown_failures"].labels(step="cancel_probe").inc()
                    failures.append(e)

        try:
            await gateways.teardown()
        except TeardownError as e:
            failures.extend(e.failures)
        except Exception as e:
            METRICS["teardown_failures"].labels(step="remove_host").inc()
            failures.append(e)

        if namespace is not None:
            try:
                await self.cluster.delete_namespace(namespace)
            except Exception as e:
                METRICS["teardown_failures"].labels(step="delete_namespace").inc()
                failures.append(e)

        for failure in failures:
            diagnostics.log_warning(f"teardown: {failure}")
        return failures

    async def run_all(self, scenarios: List[Scenario]) -> List[ScenarioResult]:
        """Run scenarios one after another; a failure does not stop the rest."""
        results = []
        for scenario in scenarios:
            results.append(await self.run(scenario))
        return results
