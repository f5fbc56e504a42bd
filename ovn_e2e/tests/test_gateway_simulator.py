"""Tests for the external gateway simulator"""

import pytest
import requests

from fakes import creation_error
from ovn_e2e.cluster.models import EXTERNAL_GW_ANNOTATION, VTEP_ANNOTATION
from ovn_e2e.errors import ExternalCommandError, ResourceCreationError, TeardownError
from ovn_e2e.gateway.simulator import PROVISIONING_STEPS, GatewaySimulator


@pytest.fixture
def simulator(runtime, cluster, config):
    return GatewaySimulator(runtime, cluster, config)


@pytest.mark.asyncio
async def test_provision_runs_every_step_in_order(simulator, runtime):
    endpoint = await simulator.provision("gw-test-container", "172.18.0.3", "10.249.0.1", "10.244.1.0/24")

    assert endpoint.ready
    assert endpoint.completed_steps == list(PROVISIONING_STEPS)
    assert endpoint.host_address == "172.17.0.2"
    assert endpoint.loopback_cidr == "10.249.0.1/24"
    assert [argv for _, argv in runtime.commands] == [
        ["ip", "link", "add", "vxlan0", "type", "vxlan", "dev", "eth0", "id", "4097", "dstport", "4789",
         "remote", "172.18.0.3"],
        ["ip", "link", "set", "vxlan0", "up"],
        ["ip", "address", "add", "10.249.0.1/24", "dev", "lo"],
        ["ip", "route", "add", "10.244.1.0/24", "dev", "vxlan0"],
    ]


@pytest.mark.asyncio
async def test_failed_step_stops_provisioning(simulator, runtime):
    runtime.fail_command["vxlan0 up"] = ExternalCommandError("exec in host", "gw", exit_code=2)

    with pytest.raises(ExternalCommandError):
        await simulator.provision("gw", "172.18.0.3", "10.249.0.1", "10.244.1.0/24")

    assert len(runtime.commands) == 2
    assert not simulator.endpoints[0].ready
    assert simulator.endpoints[0].completed_steps == ["create_host", "resolve_address", "create_tunnel"]


@pytest.mark.asyncio
async def test_invalid_host_address_is_fatal(simulator, runtime):
    runtime.addresses["gw"] = "<no value>"

    with pytest.raises(ExternalCommandError):
        await simulator.provision_host("gw")
    assert simulator.hosts == ["gw"]


@pytest.mark.asyncio
async def test_teardown_tracks_host_whose_creation_failed(simulator, runtime):
    runtime.fail_create["gw"] = creation_error("gw")

    with pytest.raises(ResourceCreationError):
        await simulator.provision_host("gw")
    await simulator.teardown()

    assert runtime.removed == ["gw"]


@pytest.mark.asyncio
async def test_teardown_attempts_every_host(simulator, runtime):
    await simulator.provision_host("gw-a")
    await simulator.provision_host("gw-b")
    runtime.fail_remove["gw-a"] = ExternalCommandError("remove host", "gw-a", cause="daemon busy")

    with pytest.raises(TeardownError) as exc:
        await simulator.teardown()

    assert runtime.removed == ["gw-b"]
    assert len(exc.value.failures) == 1
    # idempotent
    await simulator.teardown()
    assert runtime.removed == ["gw-b"]


@pytest.mark.asyncio
async def test_annotate_set_refuses_different_value(simulator, cluster):
    endpoint = await simulator.provision("gw", "172.18.0.3", "10.249.0.1", "10.244.1.0/24")
    await simulator.annotate("ns", endpoint)

    assert cluster.annotations["ns"] == {
        EXTERNAL_GW_ANNOTATION: "10.249.0.1",
        VTEP_ANNOTATION: endpoint.host_address,
    }
    other = await simulator.provision_host("gw2")
    with pytest.raises(ExternalCommandError):
        await simulator.annotate("ns", other, external_gateway="10.249.2.1")


@pytest.mark.asyncio
async def test_hot_swap_keeps_both_endpoints_live(simulator, runtime, cluster):
    first = await simulator.provision("gw-alt", "172.18.0.3", "10.249.1.1", "10.244.1.0/24")
    await simulator.annotate("ns", first)

    second = await simulator.hot_swap("ns", "gw-alt2", "172.18.0.3", "10.249.2.1", "10.244.1.0/24")

    assert first.ready and second.ready
    assert runtime.removed == []
    assert simulator.hosts == ["gw-alt", "gw-alt2"]
    assert cluster.annotations["ns"][EXTERNAL_GW_ANNOTATION] == "10.249.2.1"
    assert cluster.annotations["ns"][VTEP_ANNOTATION] == second.host_address
    assert ("annotate_namespace", "ns", True) in cluster.events


@pytest.mark.asyncio
async def test_node_address(simulator, runtime):
    assert await simulator.node_address("ovn-worker") == "172.18.0.3"
    with pytest.raises(ExternalCommandError):
        await simulator.node_address("ovn-worker9")


@pytest.mark.asyncio
async def test_configure_tunnel_requires_resolved_host(simulator):
    endpoint = await simulator.provision("gw", "172.18.0.3", "10.249.0.1", "10.244.1.0/24")
    with pytest.raises(RuntimeError):
        await simulator.configure_tunnel(endpoint, "172.18.0.3", "10.249.0.1", "10.244.1.0/24")


@pytest.mark.asyncio
async def test_teardown_continues_past_unexpected_errors(simulator, runtime):
    await simulator.provision_host("gw-a")
    await simulator.provision_host("gw-b")
    runtime.fail_remove["gw-a"] = requests.exceptions.ConnectionError("docker daemon gone")

    with pytest.raises(TeardownError) as exc:
        await simulator.teardown()

    assert runtime.removed == ["gw-b"]
    assert isinstance(exc.value.failures[0], requests.exceptions.ConnectionError)


@pytest.mark.asyncio
async def test_hot_swap_annotates_after_full_provisioning(simulator, runtime, cluster):
    first = await simulator.provision("gw-alt", "172.18.0.3", "10.249.1.1", "10.244.1.0/24")
    await simulator.annotate("ns", first)
    annotate_namespace = cluster.annotate_namespace
    commands_at_overwrite = []

    async def recording_annotate(namespace, annotations, overwrite=False):
        commands_at_overwrite.append([argv[:3] for name, argv in runtime.commands if name == "gw-alt2"])
        await annotate_namespace(namespace, annotations, overwrite=overwrite)

    cluster.annotate_namespace = recording_annotate
    await simulator.hot_swap("ns", "gw-alt2", "172.18.0.3", "10.249.2.1", "10.244.1.0/24")

    assert commands_at_overwrite == [[
        ["ip", "link", "add"],
        ["ip", "link", "set"],
        ["ip", "address", "add"],
        ["ip", "route", "add"],
    ]]


@pytest.mark.asyncio
async def test_hot_swap_failure_keeps_previous_annotation(simulator, runtime, cluster):
    first = await simulator.provision("gw-alt", "172.18.0.3", "10.249.1.1", "10.244.1.0/24")
    await simulator.annotate("ns", first)
    runtime.fail_command["ip route add"] = ExternalCommandError("exec in host", "gw-alt2", exit_code=2)

    with pytest.raises(ExternalCommandError):
        await simulator.hot_swap("ns", "gw-alt2", "172.18.0.3", "10.249.2.1", "10.244.1.0/24")

    assert cluster.annotations["ns"][EXTERNAL_GW_ANNOTATION] == "10.249.1.1"
    assert cluster.annotations["ns"][VTEP_ANNOTATION] == first.host_address
    assert simulator.hosts == ["gw-alt", "gw-alt2"]


@pytest.mark.asyncio
async def test_overwrite_refuses_partial_endpoint(simulator, cluster):
    partial = await simulator.provision_host("gw")

    with pytest.raises(RuntimeError):
        await simulator.annotate("ns", partial, external_gateway="10.249.2.1", overwrite=True)
    assert "ns" not in cluster.annotations
