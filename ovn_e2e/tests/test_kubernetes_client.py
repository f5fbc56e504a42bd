"""Tests for the kubernetes-backed cluster client"""

from unittest.mock import MagicMock, patch

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from ovn_e2e.cluster.client import KubernetesClusterClient, workload_from_pod
from ovn_e2e.cluster.models import WorkloadPhase, WorkloadSpec
from ovn_e2e.errors import ExternalCommandError, ResourceCreationError


def make_pod(name="probe", phase="Running", node="ovn-worker", pod_ip=None, labels=None):
    return client.V1Pod(
        metadata=client.V1ObjectMeta(name=name, namespace="ns", labels=labels),
        spec=client.V1PodSpec(containers=[client.V1Container(name=f"{name}-container")], node_name=node),
        status=client.V1PodStatus(phase=phase, pod_ip=pod_ip),
    )


@pytest.fixture
def core_v1():
    return MagicMock()


@pytest.fixture
def k8s(core_v1):
    return KubernetesClusterClient(core_v1)


def test_workload_from_pod():
    workload = workload_from_pod(make_pod(phase="Succeeded", pod_ip="10.244.1.5", labels={"name": "x"}))
    assert workload.phase == WorkloadPhase.SUCCEEDED
    assert workload.pod_ip == "10.244.1.5"
    assert workload.labels == {"name": "x"}
    assert workload_from_pod(make_pod(phase=None)).phase == WorkloadPhase.UNKNOWN


@pytest.mark.asyncio
async def test_create_workload_builds_single_container_pod(k8s, core_v1):
    core_v1.create_namespaced_pod.return_value = make_pod(phase="Pending")
    spec = WorkloadSpec(name="probe", command=["bash", "-c", "true"], node_name="ovn-worker", image="agnhost")

    workload = await k8s.create_workload("ns", spec)

    assert workload.phase == WorkloadPhase.PENDING
    body = core_v1.create_namespaced_pod.call_args.kwargs["body"]
    assert body.spec.restart_policy == "Never"
    assert body.spec.node_name == "ovn-worker"
    assert [c.name for c in body.spec.containers] == ["probe-container"]
    assert body.spec.containers[0].command == ["bash", "-c", "true"]


@pytest.mark.asyncio
async def test_create_workload_api_error(k8s, core_v1):
    core_v1.create_namespaced_pod.side_effect = ApiException(status=403, reason="Forbidden")

    with pytest.raises(ResourceCreationError) as exc:
        await k8s.create_workload("ns", WorkloadSpec(name="probe", command=["true"]))
    assert exc.value.target == "ns/probe"


@pytest.mark.asyncio
async def test_create_namespace_uses_generate_name(k8s, core_v1):
    core_v1.create_namespace.return_value = client.V1Namespace(metadata=client.V1ObjectMeta(name="inter-node-x7k2p"))

    assert await k8s.create_namespace("inter-node") == "inter-node-x7k2p"
    body = core_v1.create_namespace.call_args.kwargs["body"]
    assert body.metadata.generate_name == "inter-node-"


@pytest.mark.asyncio
async def test_get_workload_error_is_external_command_error(k8s, core_v1):
    core_v1.read_namespaced_pod.side_effect = ApiException(status=500)

    with pytest.raises(ExternalCommandError):
        await k8s.get_workload("ns", "probe")


@pytest.mark.asyncio
async def test_list_workloads_filters_by_label_and_node(k8s, core_v1):
    core_v1.list_namespaced_pod.return_value = client.V1PodList(items=[make_pod("ovnkube-node-a")])

    workloads = await k8s.list_workloads("ovn-kubernetes", label_selector="name=ovnkube-node", node_name="ovn-worker")

    assert [w.name for w in workloads] == ["ovnkube-node-a"]
    core_v1.list_namespaced_pod.assert_called_once_with(
        namespace="ovn-kubernetes", label_selector="name=ovnkube-node", field_selector="spec.nodeName=ovn-worker"
    )


@pytest.mark.asyncio
async def test_delete_workload_without_grace(k8s, core_v1):
    await k8s.delete_workload("ovn-kubernetes", "ovnkube-master-0")

    core_v1.delete_namespaced_pod.assert_called_once_with(
        name="ovnkube-master-0", namespace="ovn-kubernetes", grace_period_seconds=0
    )


@pytest.mark.asyncio
async def test_annotate_without_overwrite_refuses_conflict(k8s, core_v1):
    core_v1.read_namespace.return_value = client.V1Namespace(
        metadata=client.V1ObjectMeta(name="ns", annotations={"k8s.ovn.org/hybrid-overlay-vtep": "172.17.0.2"})
    )

    with pytest.raises(ExternalCommandError):
        await k8s.annotate_namespace("ns", {"k8s.ovn.org/hybrid-overlay-vtep": "172.17.0.3"})
    core_v1.patch_namespace.assert_not_called()


@pytest.mark.asyncio
async def test_annotate_with_overwrite_patches(k8s, core_v1):
    await k8s.annotate_namespace("ns", {"k8s.ovn.org/hybrid-overlay-vtep": "172.17.0.3"}, overwrite=True)

    core_v1.read_namespace.assert_not_called()
    core_v1.patch_namespace.assert_called_once_with(
        name="ns", body={"metadata": {"annotations": {"k8s.ovn.org/hybrid-overlay-vtep": "172.17.0.3"}}}
    )


@pytest.mark.asyncio
async def test_get_node_annotation(k8s, core_v1):
    core_v1.read_node.return_value = client.V1Node(
        metadata=client.V1ObjectMeta(name="ovn-worker", annotations={"k8s.ovn.org/node-subnets": '{"default":"10.244.1.0/24"}'})
    )

    assert await k8s.get_node_annotation("ovn-worker", "k8s.ovn.org/node-subnets") == '{"default":"10.244.1.0/24"}'
    assert await k8s.get_node_annotation("ovn-worker", "missing") is None


@pytest.mark.asyncio
@patch("ovn_e2e.cluster.client.stream")
async def test_exec_in_workload(mock_stream, k8s):
    resp = MagicMock(returncode=0)
    resp.read_all.return_value = "flows"
    mock_stream.return_value = resp

    output = await k8s.exec_in_workload("ovn-kubernetes", "ovnkube-node-a", ["ovs-ofctl", "dump-flows", "br-ext"],
                                        container="ovnkube-node")

    assert output == "flows"
    assert mock_stream.call_args.kwargs["command"] == ["ovs-ofctl", "dump-flows", "br-ext"]
    assert mock_stream.call_args.kwargs["container"] == "ovnkube-node"
    resp.close.assert_called_once()


@pytest.mark.asyncio
@patch("ovn_e2e.cluster.client.stream")
async def test_exec_non_zero_exit(mock_stream, k8s):
    resp = MagicMock(returncode=1)
    resp.read_all.return_value = "100% packet loss"
    mock_stream.return_value = resp

    with pytest.raises(ExternalCommandError) as exc:
        await k8s.exec_in_workload("ns", "src", ["ping", "-w", "40", "10.249.1.1"])
    assert exc.value.exit_code == 1
    assert "packet loss" in exc.value.output


@pytest.mark.asyncio
async def test_fetch_logs(k8s, core_v1):
    core_v1.read_namespaced_pod_log.return_value = "PING 10.249.0.1"

    assert await k8s.fetch_logs("ns", "src", "src-container") == "PING 10.249.0.1"
    core_v1.read_namespaced_pod_log.assert_called_once_with(name="src", namespace="ns", container="src-container")


@patch("ovn_e2e.cluster.client.client.CoreV1Api")
@patch("ovn_e2e.cluster.client.config")
def test_from_kubeconfig_falls_back_to_in_cluster(mock_config, mock_api):
    mock_config.ConfigException = Exception
    mock_config.load_kube_config.side_effect = Exception("no kubeconfig")

    KubernetesClusterClient.from_kubeconfig("/nonexistent")

    mock_config.load_incluster_config.assert_called_once()
    mock_api.assert_called_once()
