#!/usr/bin/env python3
"""
Host Runtime

Capability interface over the container runtime used to simulate hosts
outside the cluster, and its docker SDK implementation:
- create_host: privileged, detached, tty container
- inspect_address: bridge address of a container (gateway host or KIND node)
- run_in_host: docker exec, non-zero exit is an ExternalCommandError
- remove_host: forced removal
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Sequence

import docker
from docker.errors import DockerException, NotFound
from requests.exceptions import RequestException

from ovn_e2e.errors import ExternalCommandError, ResourceCreationError

logger = logging.getLogger(__name__)


# an unreachable daemon surfaces as a requests error, not a DockerException
DAEMON_ERRORS = (DockerException, RequestException)


class HostRuntime:
    """Operations the gateway simulator consumes from the container runtime."""

    async def create_host(self, name: str, image: str) -> str:
        raise NotImplementedError

    async def inspect_address(self, name: str) -> str:
        raise NotImplementedError

    async def run_in_host(self, name: str, argv: Sequence[str]) -> str:
        raise NotImplementedError

    async def remove_host(self, name: str, force: bool = True):
        raise NotImplementedError


def address_from_attrs(attrs: Dict[str, Any]) -> str:
    """Default bridge address, else the first address on any attached network."""
    settings = attrs.get("NetworkSettings") or {}
    address = settings.get("IPAddress")
    if address:
        return address
    for net_data in (settings.get("Networks") or {}).values():
        address = (net_data or {}).get("IPAddress")
        if address:
            return address
    return ""


class DockerHostRuntime(HostRuntime):
    """HostRuntime backed by the local docker daemon."""

    def __init__(self, docker_client: Optional[docker.DockerClient] = None):
        self.docker_client = docker_client or docker.from_env()

    def _get_container(self, name: str):
        try:
            return self.docker_client.containers.get(name)
        except NotFound as e:
            raise ExternalCommandError("find container", name, cause=e) from e

    async def create_host(self, name: str, image: str) -> str:
        try:
            container = await asyncio.to_thread(
                self.docker_client.containers.run,
                image,
                name=name,
                detach=True,
                tty=True,
                stdin_open=True,
                privileged=True,
            )
        except DAEMON_ERRORS as e:
            raise ResourceCreationError("create gateway host", name, e) from e
        logger.info(f"Started container {name} ({container.short_id}) from {image}")
        return container.name

    async def inspect_address(self, name: str) -> str:
        def _inspect():
            container = self._get_container(name)
            container.reload()
            return address_from_attrs(container.attrs)

        try:
            return await asyncio.to_thread(_inspect)
        except DAEMON_ERRORS as e:
            raise ExternalCommandError("inspect container", name, cause=e) from e

    async def run_in_host(self, name: str, argv: Sequence[str]) -> str:
        argv = list(argv)

        def _exec():
            container = self._get_container(name)
            return container.exec_run(argv)

        try:
            result = await asyncio.to_thread(_exec)
        except DAEMON_ERRORS as e:
            raise ExternalCommandError("exec in host", name, argv=argv, cause=e) from e

        output = result.output.decode(errors="replace") if result.output else ""
        if result.exit_code != 0:
            raise ExternalCommandError("exec in host", name, argv=argv, exit_code=result.exit_code, output=output)
        return output

    async def remove_host(self, name: str, force: bool = True):
        def _remove():
            container = self._get_container(name)
            container.remove(force=force)

        try:
            await asyncio.to_thread(_remove)
        except DAEMON_ERRORS as e:
            raise ExternalCommandError("remove host", name, cause=e) from e
        logger.info(f"Removed container {name}")
