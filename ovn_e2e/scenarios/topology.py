# file: topology.py

import json
import logging
from dataclasses import dataclass
from enum import Enum

from ovn_e2e.cluster.client import ClusterClient
from ovn_e2e.cluster.models import NODE_SUBNETS_ANNOTATION
from ovn_e2e.config import HarnessConfig
from ovn_e2e.errors import TopologyDiscoveryError

logger = logging.getLogger(__name__)


class TopologyMode(Enum):
    SINGLE_CONTROL_PLANE = "single-control-plane"
    HIGHLY_AVAILABLE = "highly-available"


@dataclass(frozen=True)
class Topology:
    mode: TopologyMode
    source_node: str
    destination_node: str
    agent_workload: str


async def discover_topology(cluster: ClusterClient, config: HarnessConfig) -> Topology:
    """
    Find out which KIND layout is running by looking for the node agent.

    A node agent on the first worker means a single control plane; one on
    the second control-plane node means HA. Nothing on either is fatal.
    """
    selector = f"name={config.node_agent_role}"
    candidates = [
        (TopologyMode.SINGLE_CONTROL_PLANE, config.worker_node, config.worker_node2),
        (TopologyMode.HIGHLY_AVAILABLE, config.ha_worker_node2, config.ha_worker_node3),
    ]
    for mode, source, destination in candidates:
        agents = await cluster.list_workloads(config.ovn_namespace, label_selector=selector, node_name=source)
        if agents:
            if mode == TopologyMode.HIGHLY_AVAILABLE:
                logger.info("Detected a HA mode KIND environment")
            return Topology(mode, source, destination, agents[0].name)

    raise TopologyDiscoveryError(
        "topology discovery",
        f"{config.worker_node}, {config.ha_worker_node2}",
        f"unable to locate {config.node_agent_role} on any known node",
    )


async def node_pod_cidr(cluster: ClusterClient, node_name: str) -> str:
    """Default pod subnet of a node from its node-subnets annotation."""
    raw = await cluster.get_node_annotation(node_name, NODE_SUBNETS_ANNOTATION)
    if not raw:
        raise TopologyDiscoveryError("read pod cidr", node_name, f"{NODE_SUBNETS_ANNOTATION} not set")
    try:
        subnets = json.loads(raw.replace("'", ""))
        cidr = subnets["default"]
    except (ValueError, KeyError, TypeError) as e:
        raise TopologyDiscoveryError("parse pod cidr", node_name, e) from e
    # dual-stack clusters publish a list
    if isinstance(cidr, list):
        if not cidr:
            raise TopologyDiscoveryError("parse pod cidr", node_name, "empty default subnet list")
        cidr = cidr[0]
    logger.info(f"the pod cidr for node {node_name} is {cidr}")
    return cidr
