# File: metrics.py

from prometheus_client import Counter, Gauge, Histogram

METRICS = {
    "scenarios_total": Counter(
        "ovn_e2e_scenarios_total",
        "Scenario runs by outcome",
        ["scenario", "outcome"],
    ),
    "scenario_duration": Histogram(
        "ovn_e2e_scenario_duration_seconds",
        "Wall time of a scenario including teardown",
        ["scenario"],
        buckets=(10, 30, 60, 120, 300, 600, 900),
    ),
    "probe_results": Counter(
        "ovn_e2e_probe_results_total",
        "Connectivity probe verdicts",
        ["kind", "outcome"],
    ),
    "poll_attempts": Counter(
        "ovn_e2e_poll_attempts_total",
        "Polling attempts issued by wait loops",
        ["loop"],
    ),
    "faults_injected": Counter(
        "ovn_e2e_faults_injected_total",
        "Control-plane workloads deleted by the chaos injector",
        ["role"],
    ),
    "gateway_hosts_active": Gauge(
        "ovn_e2e_gateway_hosts_active",
        "Simulated external gateway hosts currently alive",
    ),
    "teardown_failures": Counter(
        "ovn_e2e_teardown_failures_total",
        "Cleanup steps that failed during teardown",
        ["step"],
    ),
}
