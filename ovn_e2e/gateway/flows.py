"""
Flow Inspector

Reads the OpenFlow table of an OVS bridge from the node agent running on a
node, and checks the packet counters of flows that mention a destination.
"""

import logging
import re
from dataclasses import dataclass
from typing import List

from ovn_e2e.cluster.client import ClusterClient
from ovn_e2e.errors import TopologyDiscoveryError, UnexpectedTrafficPath

logger = logging.getLogger(__name__)

N_PACKETS = re.compile(r"n_packets=(\d+)")


@dataclass(frozen=True)
class FlowCounters:
    destination: str
    flows: int
    packets: int


def matching_flows(listing: str, destination: str) -> List[str]:
    # 172.17.0.2 must not match 172.17.0.20
    pattern = re.compile(rf"(?<![\d.]){re.escape(destination)}(?![\d.])")
    return [line.strip() for line in listing.splitlines() if pattern.search(line)]


class FlowInspector:
    def __init__(self, cluster: ClusterClient, ovn_namespace: str, node_agent_role: str, container: str):
        self.cluster = cluster
        self.ovn_namespace = ovn_namespace
        self.node_agent_role = node_agent_role
        self.container = container

    async def dump_flows(self, node_name: str, bridge: str = "br-ext") -> str:
        agents = await self.cluster.list_workloads(
            self.ovn_namespace, label_selector=f"name={self.node_agent_role}", node_name=node_name
        )
        if not agents:
            raise TopologyDiscoveryError(
                "locate node agent", node_name, f"no {self.node_agent_role} workload on the node"
            )
        agent = agents[0]
        logger.info(f"Dumping flows of {bridge} from {agent.name} on {node_name}")
        return await self.cluster.exec_in_workload(
            self.ovn_namespace, agent.name, ["ovs-ofctl", "dump-flows", bridge], container=self.container
        )

    def counters_for(self, listing: str, destination: str) -> FlowCounters:
        flows = matching_flows(listing, destination)
        packets = 0
        for flow in flows:
            match = N_PACKETS.search(flow)
            if match:
                packets += int(match.group(1))
        return FlowCounters(destination=destination, flows=len(flows), packets=packets)

    def assert_not_traversed(self, listing: str, destination: str):
        """Every flow mentioning `destination` must still have n_packets=0."""
        for flow in matching_flows(listing, destination):
            match = N_PACKETS.search(flow)
            if match and int(match.group(1)) != 0:
                raise UnexpectedTrafficPath("verify bridge bypass", destination, f"expected packets=0 but found the flow {flow}")
        logger.info(f"No flow toward {destination} was hit")

    def assert_no_new_packets(self, before: FlowCounters, after: FlowCounters):
        if after.packets > before.packets:
            raise UnexpectedTrafficPath(
                "verify retired path",
                after.destination,
                f"packets grew from {before.packets} to {after.packets}",
            )
        logger.info(f"Retired path toward {after.destination} saw no new packets")
