# file: models.py

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

EXTERNAL_GW_ANNOTATION = "k8s.ovn.org/hybrid-overlay-external-gw"
VTEP_ANNOTATION = "k8s.ovn.org/hybrid-overlay-vtep"
NODE_SUBNETS_ANNOTATION = "k8s.ovn.org/node-subnets"


class WorkloadPhase(Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "WorkloadPhase":
        for phase in cls:
            if phase.value == value:
                return phase
        return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self in (WorkloadPhase.SUCCEEDED, WorkloadPhase.FAILED)


@dataclass
class WorkloadSpec:
    """Desired single-container workload, never restarted."""

    name: str
    command: List[str]
    args: List[str] = field(default_factory=list)
    node_name: Optional[str] = None
    image: str = "registry.k8s.io/e2e-test-images/agnhost:2.39"
    labels: Dict[str, str] = field(default_factory=dict)
    restart_policy: str = "Never"

    @property
    def container_name(self) -> str:
        return f"{self.name}-container"


@dataclass
class Workload:
    """Observed state of a workload as reported by the cluster."""

    name: str
    namespace: str
    phase: WorkloadPhase
    node_name: Optional[str] = None
    pod_ip: Optional[str] = None
    labels: Dict[str, str] = field(default_factory=dict)
    message: Optional[str] = None


class LifecycleState(Enum):
    SCHEDULED_RUNNING = "scheduled_running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class LifecycleOutcome:
    """Terminal answer of a lifecycle wait. Never revised once produced."""

    state: LifecycleState
    workload: Optional[Workload] = None
    reason: Optional[str] = None
    logs: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state == LifecycleState.SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.state == LifecycleState.FAILED


@dataclass(frozen=True)
class NamespaceAnnotation:
    """External gateway / VTEP pair consumed by the hybrid overlay."""

    external_gateway: str
    vtep: str

    def as_mapping(self) -> Dict[str, str]:
        return {
            EXTERNAL_GW_ANNOTATION: self.external_gateway,
            VTEP_ANNOTATION: self.vtep,
        }
