#!/usr/bin/env python3
"""
External Gateway Simulator

Provisions containers outside the cluster that act as a VXLAN VTEP plus an
external gateway address, and points a test namespace at them.

Provisioning steps, each fatal on failure and executed strictly in order:
1. create a privileged host container
2. resolve its address
3. create the VXLAN device toward the node VTEP
4. bring the device up
5. add the gateway address to the loopback
6. route the node's pod CIDR over the tunnel

Every host is tracked from the moment its creation is requested, so
teardown removes it even when a later step failed.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set

from ovn_e2e.cluster.client import ClusterClient
from ovn_e2e.cluster.models import NamespaceAnnotation
from ovn_e2e.cluster.resolver import parse_address
from ovn_e2e.config import HarnessConfig
from ovn_e2e.errors import ExternalCommandError, TeardownError
from ovn_e2e.gateway.runtime import HostRuntime
from ovn_e2e.metrics import METRICS

logger = logging.getLogger(__name__)

PROVISIONING_STEPS = (
    "create_host",
    "resolve_address",
    "create_tunnel",
    "activate_tunnel",
    "add_loopback_address",
    "install_route",
)


@dataclass
class GatewayEndpoint:
    host_handle: str
    tunnel_id: int
    encapsulation_port: int
    host_address: Optional[str] = None
    remote_address: Optional[str] = None
    gateway_address: Optional[str] = None
    loopback_cidr: Optional[str] = None
    routed_cidr: Optional[str] = None
    completed_steps: List[str] = field(default_factory=list)

    @property
    def ready(self) -> bool:
        return tuple(self.completed_steps) == PROVISIONING_STEPS

    def annotation(self, external_gateway: Optional[str] = None) -> NamespaceAnnotation:
        return NamespaceAnnotation(
            external_gateway=external_gateway or self.gateway_address,
            vtep=self.host_address,
        )


class GatewaySimulator:
    def __init__(self, runtime: HostRuntime, cluster: ClusterClient, config: HarnessConfig):
        self.runtime = runtime
        self.cluster = cluster
        self.config = config
        self.hosts: List[str] = []
        self.endpoints: List[GatewayEndpoint] = []
        self._live: Set[str] = set()

    async def provision_host(self, name: str) -> GatewayEndpoint:
        """Steps 1-2: start the host container and resolve its address."""
        endpoint = GatewayEndpoint(
            host_handle=name,
            tunnel_id=self.config.tunnel_id,
            encapsulation_port=self.config.encapsulation_port,
        )
        self.hosts.append(name)
        await self.runtime.create_host(name, self.config.gateway_image)
        self._live.add(name)
        METRICS["gateway_hosts_active"].inc()
        endpoint.completed_steps.append("create_host")

        raw = await self.runtime.inspect_address(name)
        address = parse_address(raw)
        if address is None:
            raise ExternalCommandError(
                "resolve gateway host address", name, cause=f"invalid inspect output {raw!r}"
            )
        endpoint.host_address = address
        endpoint.completed_steps.append("resolve_address")
        self.endpoints.append(endpoint)
        logger.info(f"The external gateway host {name} has address {address}")
        return endpoint

    async def configure_tunnel(
        self,
        endpoint: GatewayEndpoint,
        remote_address: str,
        gateway_address: str,
        routed_cidr: str,
    ) -> GatewayEndpoint:
        """Steps 3-6: tunnel device, loopback gateway address and pod route."""
        if endpoint.completed_steps != list(PROVISIONING_STEPS[:2]):
            raise RuntimeError(f"{endpoint.host_handle} is not ready for tunnel configuration")

        cfg = self.config
        loopback_cidr = f"{gateway_address}/{cfg.gateway_prefix_len}"
        steps = [
            ("create_tunnel", [
                "ip", "link", "add", cfg.tunnel_device, "type", "vxlan",
                "dev", cfg.underlay_device,
                "id", str(endpoint.tunnel_id),
                "dstport", str(endpoint.encapsulation_port),
                "remote", remote_address,
            ]),
            ("activate_tunnel", ["ip", "link", "set", cfg.tunnel_device, "up"]),
            ("add_loopback_address", ["ip", "address", "add", loopback_cidr, "dev", "lo"]),
            ("install_route", ["ip", "route", "add", routed_cidr, "dev", cfg.tunnel_device]),
        ]

        endpoint.remote_address = remote_address
        endpoint.gateway_address = gateway_address
        endpoint.loopback_cidr = loopback_cidr
        endpoint.routed_cidr = routed_cidr
        for step, argv in steps:
            await self.runtime.run_in_host(endpoint.host_handle, argv)
            endpoint.completed_steps.append(step)

        logger.info(
            f"Gateway {gateway_address} on {endpoint.host_handle} tunnels {routed_cidr} to {remote_address}"
        )
        return endpoint

    async def provision(
        self,
        name: str,
        remote_address: str,
        gateway_address: str,
        routed_cidr: str,
    ) -> GatewayEndpoint:
        endpoint = await self.provision_host(name)
        return await self.configure_tunnel(endpoint, remote_address, gateway_address, routed_cidr)

    async def annotate(
        self,
        namespace: str,
        endpoint: GatewayEndpoint,
        external_gateway: Optional[str] = None,
        overwrite: bool = False,
    ):
        """Point the namespace at the endpoint's VTEP and gateway address."""
        if overwrite and not endpoint.ready:
            raise RuntimeError(f"{endpoint.host_handle} is not fully provisioned, refusing to redirect {namespace}")
        annotation = endpoint.annotation(external_gateway)
        if not annotation.external_gateway or not annotation.vtep:
            raise ValueError(f"{endpoint.host_handle} has no gateway address or vtep to annotate")
        logger.info(
            f"Annotating namespace {namespace} with vtep:{annotation.vtep} gw:{annotation.external_gateway}"
        )
        await self.cluster.annotate_namespace(namespace, annotation.as_mapping(), overwrite=overwrite)

    async def hot_swap(
        self,
        namespace: str,
        name: str,
        remote_address: str,
        gateway_address: str,
        routed_cidr: str,
    ) -> GatewayEndpoint:
        """
        Move the namespace to a new gateway endpoint.

        The new endpoint is fully provisioned before the annotation is
        overwritten, so consumers are never pointed at a partial tunnel.
        Earlier endpoints stay up until teardown, so both paths exist for a
        while.
        """
        endpoint = await self.provision(name, remote_address, gateway_address, routed_cidr)
        await self.annotate(namespace, endpoint, external_gateway=gateway_address, overwrite=True)
        return endpoint

    async def node_address(self, node_name: str) -> str:
        """Address of a KIND node container, i.e. the cluster-side VTEP."""
        raw = await self.runtime.inspect_address(node_name)
        address = parse_address(raw)
        if address is None:
            raise ExternalCommandError("resolve node address", node_name, cause=f"invalid inspect output {raw!r}")
        logger.info(f"The pod side vtep node is {node_name} and the ip {address}")
        return address

    async def teardown(self):
        """Force-remove every host ever requested; raise once all were attempted."""
        failures: List[BaseException] = []
        while self.hosts:
            name = self.hosts.pop(0)
            try:
                await self.runtime.remove_host(name, force=True)
            except Exception as e:
                METRICS["teardown_failures"].labels(step="remove_host").inc()
                logger.error(f"Failed to delete the gateway host {name}: {e}")
                failures.append(e)
            else:
                if name in self._live:
                    self._live.discard(name)
                    METRICS["gateway_hosts_active"].dec()
        self.endpoints = []

        if failures:
            raise TeardownError("gateway hosts", failures)
