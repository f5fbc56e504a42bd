#!/usr/bin/env python3
"""
Cluster Resource Store

Narrow capability interface over the cluster API used by the harness:
- Namespaces (create / delete / annotate)
- Workloads (create / get / list / delete)
- In-workload command execution and log retrieval
- Node annotations (pod subnet discovery)

KubernetesClusterClient implements it with the official kubernetes client.
Its calls are blocking, so each one runs in a worker thread to keep the
probe task and the orchestrating coroutine concurrent.
"""

import asyncio
import logging
import os
from typing import Dict, List, Optional, Sequence

import urllib3
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.stream import stream

from ovn_e2e.cluster.models import Workload, WorkloadPhase, WorkloadSpec
from ovn_e2e.errors import ExternalCommandError, ResourceCreationError

logger = logging.getLogger(__name__)

TRANSPORT_ERRORS = (ApiException, urllib3.exceptions.HTTPError)


class ClusterClient:
    """Operations the harness consumes from the cluster control plane."""

    async def create_namespace(self, base_name: str) -> str:
        raise NotImplementedError

    async def delete_namespace(self, namespace: str):
        raise NotImplementedError

    async def create_workload(self, namespace: str, spec: WorkloadSpec) -> Workload:
        raise NotImplementedError

    async def get_workload(self, namespace: str, name: str) -> Workload:
        raise NotImplementedError

    async def list_workloads(
        self,
        namespace: str,
        label_selector: Optional[str] = None,
        node_name: Optional[str] = None,
    ) -> List[Workload]:
        raise NotImplementedError

    async def delete_workload(self, namespace: str, name: str, grace_period_seconds: int = 0):
        raise NotImplementedError

    async def annotate_namespace(self, namespace: str, annotations: Dict[str, str], overwrite: bool = False):
        raise NotImplementedError

    async def get_node_annotation(self, node_name: str, key: str) -> Optional[str]:
        raise NotImplementedError

    async def exec_in_workload(
        self,
        namespace: str,
        name: str,
        argv: Sequence[str],
        container: Optional[str] = None,
    ) -> str:
        raise NotImplementedError

    async def fetch_logs(self, namespace: str, name: str, container: Optional[str] = None) -> str:
        raise NotImplementedError


def workload_from_pod(pod) -> Workload:
    status = pod.status
    return Workload(
        name=pod.metadata.name,
        namespace=pod.metadata.namespace,
        phase=WorkloadPhase.parse(status.phase if status else None),
        node_name=pod.spec.node_name if pod.spec else None,
        pod_ip=status.pod_ip if status else None,
        labels=dict(pod.metadata.labels or {}),
        message=(status.message or status.reason) if status else None,
    )


class KubernetesClusterClient(ClusterClient):
    """ClusterClient backed by CoreV1Api."""

    def __init__(self, core_v1: client.CoreV1Api, exec_timeout: int = 120):
        self.core_v1 = core_v1
        self.exec_timeout = exec_timeout

    @classmethod
    def from_kubeconfig(cls, kubeconfig_path: Optional[str] = None) -> "KubernetesClusterClient":
        """Load kubeconfig (explicit path, $KUBECONFIG, then in-cluster)."""
        kubeconfig_path = kubeconfig_path or os.getenv("KUBECONFIG")
        try:
            config.load_kube_config(config_file=kubeconfig_path)
            logger.info(f"Loaded kubeconfig from {kubeconfig_path or 'default location'}")
        except config.ConfigException:
            config.load_incluster_config()
            logger.info("Using in-cluster Kubernetes configuration")
        return cls(client.CoreV1Api())

    async def create_namespace(self, base_name: str) -> str:
        body = client.V1Namespace(metadata=client.V1ObjectMeta(generate_name=f"{base_name}-"))
        try:
            created = await asyncio.to_thread(self.core_v1.create_namespace, body=body)
        except TRANSPORT_ERRORS as e:
            raise ResourceCreationError("create namespace", base_name, e) from e
        logger.info(f"Created test namespace {created.metadata.name}")
        return created.metadata.name

    async def delete_namespace(self, namespace: str):
        try:
            await asyncio.to_thread(self.core_v1.delete_namespace, name=namespace)
        except TRANSPORT_ERRORS as e:
            raise ExternalCommandError("delete namespace", namespace, cause=e) from e

    async def create_workload(self, namespace: str, spec: WorkloadSpec) -> Workload:
        pod = client.V1Pod(
            metadata=client.V1ObjectMeta(name=spec.name, labels=spec.labels or None),
            spec=client.V1PodSpec(
                containers=[
                    client.V1Container(
                        name=spec.container_name,
                        image=spec.image,
                        command=spec.command,
                        args=spec.args or None,
                    )
                ],
                node_name=spec.node_name or None,
                restart_policy=spec.restart_policy,
            ),
        )
        try:
            created = await asyncio.to_thread(
                self.core_v1.create_namespaced_pod, namespace=namespace, body=pod
            )
        except TRANSPORT_ERRORS as e:
            raise ResourceCreationError("create workload", f"{namespace}/{spec.name}", e) from e
        return workload_from_pod(created)

    async def get_workload(self, namespace: str, name: str) -> Workload:
        try:
            pod = await asyncio.to_thread(
                self.core_v1.read_namespaced_pod, name=name, namespace=namespace
            )
        except TRANSPORT_ERRORS as e:
            raise ExternalCommandError("get workload", f"{namespace}/{name}", cause=e) from e
        return workload_from_pod(pod)

    async def list_workloads(
        self,
        namespace: str,
        label_selector: Optional[str] = None,
        node_name: Optional[str] = None,
    ) -> List[Workload]:
        kwargs = {"namespace": namespace}
        if label_selector:
            kwargs["label_selector"] = label_selector
        if node_name:
            kwargs["field_selector"] = f"spec.nodeName={node_name}"
        try:
            pods = await asyncio.to_thread(self.core_v1.list_namespaced_pod, **kwargs)
        except TRANSPORT_ERRORS as e:
            raise ExternalCommandError("list workloads", namespace, cause=e) from e
        return [workload_from_pod(p) for p in pods.items]

    async def delete_workload(self, namespace: str, name: str, grace_period_seconds: int = 0):
        try:
            await asyncio.to_thread(
                self.core_v1.delete_namespaced_pod,
                name=name,
                namespace=namespace,
                grace_period_seconds=grace_period_seconds,
            )
        except TRANSPORT_ERRORS as e:
            raise ExternalCommandError("delete workload", f"{namespace}/{name}", cause=e) from e

    async def annotate_namespace(self, namespace: str, annotations: Dict[str, str], overwrite: bool = False):
        try:
            if not overwrite:
                ns = await asyncio.to_thread(self.core_v1.read_namespace, name=namespace)
                existing = ns.metadata.annotations or {}
                conflicts = sorted(
                    key for key, value in annotations.items()
                    if key in existing and existing[key] != value
                )
                if conflicts:
                    raise ExternalCommandError(
                        "annotate namespace",
                        namespace,
                        cause=f"{', '.join(conflicts)} already set and overwrite is false",
                    )
            await asyncio.to_thread(
                self.core_v1.patch_namespace,
                name=namespace,
                body={"metadata": {"annotations": dict(annotations)}},
            )
        except TRANSPORT_ERRORS as e:
            raise ExternalCommandError("annotate namespace", namespace, cause=e) from e

    async def get_node_annotation(self, node_name: str, key: str) -> Optional[str]:
        try:
            node = await asyncio.to_thread(self.core_v1.read_node, name=node_name)
        except TRANSPORT_ERRORS as e:
            raise ExternalCommandError("read node", node_name, cause=e) from e
        return (node.metadata.annotations or {}).get(key)

    async def exec_in_workload(
        self,
        namespace: str,
        name: str,
        argv: Sequence[str],
        container: Optional[str] = None,
    ) -> str:
        target = f"{namespace}/{name}"
        try:
            exit_code, output = await asyncio.to_thread(
                self._exec_blocking, namespace, name, list(argv), container
            )
        except TRANSPORT_ERRORS as e:
            raise ExternalCommandError("exec in workload", target, argv=argv, cause=e) from e
        if exit_code != 0:
            raise ExternalCommandError(
                "exec in workload", target, argv=argv, exit_code=exit_code, output=output
            )
        return output

    def _exec_blocking(self, namespace: str, name: str, argv: List[str], container: Optional[str]):
        kwargs = {}
        if container:
            kwargs["container"] = container
        resp = stream(
            self.core_v1.connect_get_namespaced_pod_exec,
            name,
            namespace,
            command=argv,
            stderr=True,
            stdin=False,
            stdout=True,
            tty=False,
            _preload_content=False,
            **kwargs,
        )
        try:
            resp.run_forever(timeout=self.exec_timeout)
            output = resp.read_all()
            # returncode is None while the channel is still open (timed out)
            exit_code = resp.returncode
        finally:
            resp.close()
        return exit_code, output

    async def fetch_logs(self, namespace: str, name: str, container: Optional[str] = None) -> str:
        kwargs = {"name": name, "namespace": namespace}
        if container:
            kwargs["container"] = container
        try:
            return await asyncio.to_thread(self.core_v1.read_namespaced_pod_log, **kwargs)
        except TRANSPORT_ERRORS as e:
            raise ExternalCommandError("fetch logs", f"{namespace}/{name}", cause=e) from e
