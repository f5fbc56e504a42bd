#!/usr/bin/env python3
"""
Scenario Catalog

Connectivity scenarios run against a KIND cluster with OVN-Kubernetes:

- node-agent-kill-continuity: internet egress survives an ovnkube-node kill
- master-kill-continuity: internet egress survives an ovnkube-master kill
- inter-node-connectivity: pods on two nodes reach each other
- hybrid-overlay-inter-node: same, with a hybrid overlay gateway annotated,
  and br-ext is not traversed
- external-gateway: pod traffic is encapsulated toward a simulated gateway
- external-gateway-hot-swap: pods follow a namespace moved to a new gateway
"""

import logging
from typing import Dict, List, Optional

from ovn_e2e.chaos.injector import FaultPredicate
from ovn_e2e.cluster.models import WorkloadSpec
from ovn_e2e.errors import FaultTargetNotFound
from ovn_e2e.probe.commands import IDLE_COMMAND, exec_ping_argv
from ovn_e2e.probe.connectivity import ProbeResult
from ovn_e2e.scenarios.orchestrator import Scenario, ScenarioContext
from ovn_e2e.scenarios.topology import node_pod_cidr

logger = logging.getLogger(__name__)

CONTINUOUS_PROBE = "connectivity-test-continuous"
DST_PING_WORKLOAD = "e2e-dst-ping-pod"
SRC_PING_WORKLOAD = "e2e-src-ping-pod"
EXTERNAL_GW_PING_WORKLOAD = "external-gateway-e2e"
HOT_SWAP_SRC_WORKLOAD = "e2e-exgw-src-ping-pod"

INTERNODE_GW_HOST = "gw-test-container-internode"
EXTERNAL_GW_HOST = "gw-test-container"
HOT_SWAP_GW_HOSTS = ("gw-test-container-alt", "gw-test-container-alt2")


def _raise_on_failure(result: ProbeResult):
    if not result.success:
        raise result.error


async def _continuity_under_fault(ctx: ScenarioContext, predicate: FaultPredicate, node_name: Optional[str]):
    cfg = ctx.config
    chaos = ctx.chaos()
    # an absent fault target aborts the run before any probing
    await chaos.select_target(predicate)

    handle = ctx.start_probe(CONTINUOUS_PROBE, cfg.probe_host, cfg.probe_port, node_name=node_name)
    workload = await handle.wait_observable(cfg.rendezvous_timeout)
    logger.info(f"Test workload running on {workload.node_name}")
    if predicate.node_name and workload.node_name != predicate.node_name:
        raise FaultTargetNotFound(
            "match fault target to probe node",
            workload.name,
            f"probe landed on {workload.node_name}, fault target is on {predicate.node_name}",
        )

    await ctx.clock.sleep(cfg.fault_settle_delay)
    await chaos.delete_target()

    _raise_on_failure(await handle.wait_result(cfg.rendezvous_timeout))


async def node_agent_kill_continuity(ctx: ScenarioContext):
    source = ctx.topology.source_node
    await _continuity_under_fault(ctx, FaultPredicate(ctx.config.node_agent_role, source), source)


async def master_kill_continuity(ctx: ScenarioContext):
    await _continuity_under_fault(ctx, FaultPredicate(ctx.config.master_role), None)


async def _ping_across_nodes(ctx: ScenarioContext) -> str:
    """Ping a sleeping workload on the destination node from the source node."""
    cfg = ctx.config
    source, destination = ctx.topology.source_node, ctx.topology.destination_node
    logger.info(f"Creating a workload on node {source} and verifying connectivity to a workload on node {destination}")

    await ctx.waiter.launch(
        ctx.namespace,
        WorkloadSpec(name=DST_PING_WORKLOAD, command=IDLE_COMMAND, node_name=destination, image=cfg.workload_image),
    )
    target = await ctx.resolver.resolve(ctx.namespace, DST_PING_WORKLOAD)
    await ctx.probe.check_ping(
        ctx.namespace,
        SRC_PING_WORKLOAD,
        target,
        source,
        timeout=cfg.ping_timeout,
        warmup=cfg.ping_warmup,
    )
    return target


async def inter_node_connectivity(ctx: ScenarioContext):
    await _ping_across_nodes(ctx)


async def hybrid_overlay_inter_node(ctx: ScenarioContext):
    cfg = ctx.config
    endpoint = await ctx.gateways.provision_host(INTERNODE_GW_HOST)
    await ctx.gateways.annotate(ctx.namespace, endpoint, external_gateway=cfg.hybrid_overlay_target)

    target = await _ping_across_nodes(ctx)

    listing = await ctx.flows.dump_flows(ctx.topology.source_node, cfg.flow_bridge)
    ctx.flows.assert_not_traversed(listing, target)


async def external_gateway(ctx: ScenarioContext):
    cfg = ctx.config
    source = ctx.topology.source_node

    local_vtep = await ctx.gateways.node_address(source)
    pod_cidr = await node_pod_cidr(ctx.cluster, source)
    endpoint = await ctx.gateways.provision(EXTERNAL_GW_HOST, local_vtep, cfg.external_gateway, pod_cidr)
    await ctx.gateways.annotate(ctx.namespace, endpoint, external_gateway=cfg.external_gateway)

    await ctx.clock.sleep(cfg.tunnel_settle_delay)
    await ctx.probe.check_ping(
        ctx.namespace,
        EXTERNAL_GW_PING_WORKLOAD,
        cfg.external_gateway,
        source,
        timeout=cfg.ping_timeout,
        warmup=cfg.ping_warmup,
    )


async def external_gateway_hot_swap(ctx: ScenarioContext):
    cfg = ctx.config
    source = ctx.topology.source_node
    if len(cfg.hot_swap_gateways) < 2:
        raise ValueError("hot swap needs two gateway addresses")
    first_gw, second_gw = cfg.hot_swap_gateways[:2]

    local_vtep = await ctx.gateways.node_address(source)
    pod_cidr = await node_pod_cidr(ctx.cluster, source)
    first = await ctx.gateways.provision(HOT_SWAP_GW_HOSTS[0], local_vtep, first_gw, pod_cidr)
    await ctx.gateways.annotate(ctx.namespace, first, external_gateway=first_gw)

    consumer = WorkloadSpec(name=HOT_SWAP_SRC_WORKLOAD, command=IDLE_COMMAND, node_name=source, image=cfg.workload_image)
    await ctx.waiter.launch(ctx.namespace, consumer)
    await ctx.resolver.resolve(ctx.namespace, consumer.name)
    await ctx.clock.sleep(cfg.hot_swap_initial_settle)

    logger.info(f"Verifying connectivity to the initial external gateway {first_gw} and vtep {first.host_address}")
    await ctx.cluster.exec_in_workload(
        ctx.namespace, consumer.name, exec_ping_argv(first_gw, cfg.exec_ping_deadline), container=consumer.container_name
    )
    before = ctx.flows.counters_for(await ctx.flows.dump_flows(source, cfg.flow_bridge), first.host_address)

    second = await ctx.gateways.hot_swap(ctx.namespace, HOT_SWAP_GW_HOSTS[1], local_vtep, second_gw, pod_cidr)
    await ctx.clock.sleep(cfg.hot_swap_settle)

    logger.info(f"Verifying connectivity to the new external gateway {second_gw} and vtep {second.host_address}")
    await ctx.cluster.exec_in_workload(
        ctx.namespace, consumer.name, exec_ping_argv(second_gw, cfg.exec_ping_deadline), container=consumer.container_name
    )
    after = ctx.flows.counters_for(await ctx.flows.dump_flows(source, cfg.flow_bridge), first.host_address)
    ctx.flows.assert_no_new_packets(before, after)


SCENARIOS: List[Scenario] = [
    Scenario(
        "node-agent-kill-continuity",
        "Internet connection stays up while the node agent is killed",
        node_agent_kill_continuity,
    ),
    Scenario(
        "master-kill-continuity",
        "Internet connection stays up while the master is killed",
        master_kill_continuity,
    ),
    Scenario(
        "inter-node-connectivity",
        "Workloads on separate nodes reach each other",
        inter_node_connectivity,
    ),
    Scenario(
        "hybrid-overlay-inter-node",
        "Inter-node traffic with a hybrid overlay gateway never traverses br-ext",
        hybrid_overlay_inter_node,
    ),
    Scenario(
        "external-gateway",
        "Traffic is encapsulated toward a simulated external gateway",
        external_gateway,
    ),
    Scenario(
        "external-gateway-hot-swap",
        "Workloads follow the namespace annotation to a new external gateway",
        external_gateway_hot_swap,
    ),
]

SCENARIOS_BY_NAME: Dict[str, Scenario] = {s.name: s for s in SCENARIOS}


def select_scenarios(names: Optional[List[str]] = None) -> List[Scenario]:
    if not names:
        return list(SCENARIOS)
    unknown = [n for n in names if n not in SCENARIOS_BY_NAME]
    if unknown:
        raise KeyError(f"unknown scenario(s): {', '.join(unknown)}")
    return [SCENARIOS_BY_NAME[n] for n in names]
