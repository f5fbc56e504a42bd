#!/usr/bin/env python3
"""
Chaos Injector

Non-graceful deletion of a control-plane workload, selected by a
(role, node) predicate:

    Idle -> TargetSelected -> Deleted -> Done

Selection is first match over the cluster's listing order, so a run is
reproducible for a given candidate ordering. Deletion is never retried.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ovn_e2e.cluster.client import ClusterClient
from ovn_e2e.cluster.models import Workload
from ovn_e2e.errors import ExternalCommandError, FaultTargetNotFound
from ovn_e2e.metrics import METRICS

logger = logging.getLogger(__name__)


class ChaosState(Enum):
    IDLE = "idle"
    TARGET_SELECTED = "target_selected"
    DELETED = "deleted"
    DONE = "done"


@dataclass(frozen=True)
class FaultPredicate:
    """Matches on the `name` label or on the name prefix; node is optional."""

    role: str
    node_name: Optional[str] = None

    def matches(self, workload: Workload) -> bool:
        if self.node_name and workload.node_name != self.node_name:
            return False
        return workload.labels.get("name") == self.role or workload.name.startswith(self.role)

    def __str__(self) -> str:
        if self.node_name:
            return f"{self.role} on {self.node_name}"
        return self.role


class ChaosInjector:
    def __init__(self, cluster: ClusterClient, namespace: str):
        self.cluster = cluster
        self.namespace = namespace
        self.state = ChaosState.IDLE
        self.predicate: Optional[FaultPredicate] = None
        self.target: Optional[Workload] = None

    def _require(self, expected: ChaosState, operation: str):
        if self.state != expected:
            raise RuntimeError(f"{operation} called in state {self.state.value}, expected {expected.value}")

    async def select_target(self, predicate: FaultPredicate) -> Workload:
        self._require(ChaosState.IDLE, "select_target")

        candidates: List[Workload] = await self.cluster.list_workloads(
            self.namespace, node_name=predicate.node_name
        )
        for candidate in candidates:
            if predicate.matches(candidate):
                self.predicate = predicate
                self.target = candidate
                self.state = ChaosState.TARGET_SELECTED
                logger.info(f"Selected fault target {self.namespace}/{candidate.name} ({predicate})")
                return candidate

        raise FaultTargetNotFound(
            "select fault target",
            f"{self.namespace}: {predicate}",
            f"none of {len(candidates)} candidate(s) matched",
        )

    async def delete_target(self) -> Workload:
        self._require(ChaosState.TARGET_SELECTED, "delete_target")
        target = self.target

        try:
            await self.cluster.delete_workload(self.namespace, target.name, grace_period_seconds=0)
        except ExternalCommandError:
            raise
        except Exception as e:
            raise ExternalCommandError("delete fault target", f"{self.namespace}/{target.name}", cause=e) from e
        self.state = ChaosState.DELETED

        METRICS["faults_injected"].labels(role=self.predicate.role).inc()
        logger.info(f"Deleted {self.predicate.role} {target.name}")
        self.state = ChaosState.DONE
        return target

    async def inject(self, predicate: FaultPredicate) -> Workload:
        """Select and delete in one step."""
        await self.select_target(predicate)
        return await self.delete_target()
