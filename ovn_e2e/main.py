#!/usr/bin/env python3
"""
OVN E2E Harness - Main Entry Point

Runs the connectivity scenarios against the current KIND cluster:
- Loads configuration (E2E_CONFIG_FILE YAML, then E2E_* environment)
- Connects to the cluster API and the local docker daemon
- Runs the selected scenarios (E2E_SCENARIOS, comma separated) in order
- Prints a summary; exits non-zero if any scenario failed
"""

import asyncio
import os
import sys
from typing import List

from prometheus_client import start_http_server

from ovn_e2e.cluster.client import KubernetesClusterClient
from ovn_e2e.config import load_config
from ovn_e2e.diagnostic_logger import configure_logging
from ovn_e2e.gateway.runtime import DockerHostRuntime
from ovn_e2e.scenarios.catalog import select_scenarios
from ovn_e2e.scenarios.orchestrator import ScenarioOrchestrator, ScenarioResult


def print_summary(results: List[ScenarioResult]):
    print("\n" + "=" * 60)
    print("  Scenario Summary")
    print("=" * 60)
    for result in results:
        mark = "✓" if result.success else "✗"
        mode = result.topology_mode or "unknown topology"
        print(f"  {mark} {result.name} ({mode}, {result.duration_seconds:.1f}s)")
        if result.error is not None:
            print(f"      {result.error}")
        for warning in result.warnings:
            print(f"      ! {warning['warning']}")
    passed = sum(1 for r in results if r.success)
    print(f"\n  {passed}/{len(results)} scenarios passed")


def main() -> int:
    print("=" * 60)
    print("  OVN-Kubernetes E2E Connectivity Harness")
    print("=" * 60)

    config = load_config(os.getenv("E2E_CONFIG_FILE"))
    configure_logging(config.log_level, config.log_file)

    metrics_port = os.getenv("METRICS_PORT")
    if metrics_port:
        start_http_server(int(metrics_port))
        print(f"  ✓ Metrics exposed on port {metrics_port}")

    names = [n.strip() for n in os.getenv("E2E_SCENARIOS", "").split(",") if n.strip()]
    scenarios = select_scenarios(names)

    print("\nInitializing clients...")
    cluster = KubernetesClusterClient.from_kubeconfig()
    print("  ✓ Cluster client ready")
    runtime = DockerHostRuntime()
    print("  ✓ Docker runtime ready")

    orchestrator = ScenarioOrchestrator(cluster, runtime, config)
    print(f"\nRunning {len(scenarios)} scenario(s)...")
    results = asyncio.run(orchestrator.run_all(scenarios))

    print_summary(results)
    return 0 if all(r.success for r in results) else 1


if __name__ == "__main__":
    sys.exit(main())
