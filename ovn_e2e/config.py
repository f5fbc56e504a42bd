#!/usr/bin/env python3
"""
Harness Configuration

Literal per-scenario constants of the e2e suite. Every field can be
overridden from the environment (E2E_<FIELD_NAME>) or from a YAML file:

- Cluster topology (namespaces, node names, node agent roles)
- Workload and gateway images
- Retry budgets, per-attempt timeouts and settle delays
- Tunnel identifier, encapsulation port and gateway addresses
"""

import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Optional, Tuple

import yaml

from ovn_e2e.retry import RetryBudget

ENV_PREFIX = "E2E_"


@dataclass(frozen=True)
class HarnessConfig:
    # Control plane under test
    ovn_namespace: str = "ovn-kubernetes"
    node_agent_role: str = "ovnkube-node"
    master_role: str = "ovnkube-master"
    node_agent_container: str = "ovnkube-node"

    # KIND node naming (single control-plane vs HA)
    worker_node: str = "ovn-worker"
    worker_node2: str = "ovn-worker2"
    ha_worker_node2: str = "ovn-control-plane2"
    ha_worker_node3: str = "ovn-control-plane3"

    # Images
    workload_image: str = "registry.k8s.io/e2e-test-images/agnhost:2.39"
    gateway_image: str = "centos"

    # Pre-flight
    preflight_url: str = "http://google.com"
    preflight_timeout: float = 10.0

    # Polling budgets
    address_attempts: int = 20
    address_interval: float = 3.0
    lifecycle_timeout: float = 300.0
    lifecycle_interval: float = 2.0
    rendezvous_timeout: float = 900.0

    # Continuous connectivity probe
    probe_host: str = "8.8.8.8"
    probe_port: int = 53
    probe_attempts: int = 10
    probe_timeout: int = 30
    probe_delay: int = 2
    fault_settle_delay: float = 5.0

    # One-shot ping check
    ping_timeout: int = 30
    ping_warmup: int = 20

    # Gateway simulation
    tunnel_id: int = 4097
    encapsulation_port: int = 4789
    tunnel_device: str = "vxlan0"
    underlay_device: str = "eth0"
    gateway_prefix_len: int = 24
    hybrid_overlay_target: str = "172.17.0.250"
    external_gateway: str = "10.249.0.1"
    hot_swap_gateways: Tuple[str, ...] = ("10.249.1.1", "10.249.2.1")
    tunnel_settle_delay: float = 10.0
    hot_swap_initial_settle: float = 15.0
    hot_swap_settle: float = 40.0
    exec_ping_deadline: int = 40
    flow_bridge: str = "br-ext"

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def address_budget(self) -> RetryBudget:
        return RetryBudget(self.address_attempts, self.address_interval)

    @property
    def lifecycle_budget(self) -> RetryBudget:
        return RetryBudget.from_deadline(self.lifecycle_timeout, self.lifecycle_interval)

    def with_overrides(self, overrides: Dict[str, Any]) -> "HarnessConfig":
        """Return a copy with known fields replaced; unknown keys land in `extra`."""
        known = {f.name: f for f in fields(self) if f.name != "extra"}
        changes: Dict[str, Any] = {}
        extra = dict(self.extra)
        for key, value in overrides.items():
            if key in known:
                changes[key] = _coerce(getattr(self, key), value)
            else:
                extra[key] = value
        return replace(self, extra=extra, **changes)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "HarnessConfig":
        return cls().with_overrides(env_overrides(environ))

    @classmethod
    def from_yaml(cls, path: str) -> "HarnessConfig":
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a mapping at the top level")
        return cls().with_overrides(data)


def _coerce(current: Any, value: Any) -> Any:
    """Convert a string/YAML value to the type of the current default."""
    if isinstance(current, bool):
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes")
        return bool(value)
    if isinstance(current, int):
        return int(value)
    if isinstance(current, float):
        return float(value)
    if isinstance(current, tuple):
        if isinstance(value, str):
            return tuple(v.strip() for v in value.split(",") if v.strip())
        return tuple(value)
    if current is None and isinstance(value, str) and value == "":
        return None
    return value


def env_overrides(environ: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Collect E2E_<FIELD> variables that name a known field."""
    environ = os.environ if environ is None else environ
    overrides = {}
    for f in fields(HarnessConfig):
        if f.name == "extra":
            continue
        value = environ.get(ENV_PREFIX + f.name.upper())
        if value is not None:
            overrides[f.name] = value
    return overrides


def load_config(path: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> HarnessConfig:
    """YAML file (if any) first, then the environment on top."""
    base = HarnessConfig.from_yaml(path) if path else HarnessConfig()
    return base.with_overrides(env_overrides(environ))
