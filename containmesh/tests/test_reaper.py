"""Tests for prefix-based teardown."""

from __future__ import annotations

import asyncio

import pytest

from containmesh.builder import EnvironmentBuilder
from containmesh.errors import RuntimeOperationFailed
from containmesh.lifecycle import NodeState
from containmesh.progress import CollectingReporter
from containmesh.reaper import Reaper, prefix_match, substring_match, teardown
from containmesh.topology import AdjacencyMatrix, Topology


def _run(coro):
    return asyncio.run(coro)


@pytest.fixture
def topology():
    return Topology(
        group_count=2, nodes_per_group=2, links_per_pair=1,
        image_ref="img", network_prefix="meshnet",
    )


def test_substring_match():
    assert substring_match("cont_img3", "cont_img")
    assert substring_match("/cont_img3", "cont_img")
    assert substring_match("old-cont_img-leftover", "cont_img")
    assert not substring_match("postgres", "cont_img")
    assert not substring_match("anything", "")


def test_prefix_match_is_stricter():
    assert prefix_match("/cont_img3", "cont_img")
    assert not prefix_match("old-cont_img-leftover", "cont_img")


def test_reap_after_build_removes_everything(runtime, topology):
    runtime.add_container("postgres")
    runtime.add_network("bridge")
    matrix = AdjacencyMatrix([[False, True], [False, False]])
    _run(EnvironmentBuilder(runtime).build(topology, matrix))

    result = _run(Reaper(runtime).reap("cont_img", "meshnet"))

    assert sorted(result.containers_removed) == [f"cont_img{i}" for i in range(4)]
    assert sorted(result.networks_removed) == ["meshnet0", "meshnet1"]
    assert [c.name for c in runtime.containers.values()] == ["postgres"]
    assert [n.name for n in runtime.networks.values()] == ["bridge"]
    assert result.success


def test_containers_removed_before_networks(runtime, topology):
    _run(EnvironmentBuilder(runtime).build(topology, AdjacencyMatrix.empty(2)))
    runtime.calls.clear()

    _run(Reaper(runtime).reap("cont_img", "meshnet"))

    ops = [op for op, _ in runtime.calls if op.startswith("remove_")]
    assert ops == ["remove_container"] * 4 + ["remove_network"] * 2


def test_second_reap_is_noop(runtime, topology):
    _run(EnvironmentBuilder(runtime).build(topology, AdjacencyMatrix.empty(2)))
    _run(Reaper(runtime).reap("cont_img", "meshnet"))
    runtime.calls.clear()

    result = _run(Reaper(runtime).reap("cont_img", "meshnet"))

    assert result.containers_removed == []
    assert result.networks_removed == []
    assert runtime.operations("remove_container") == []
    assert runtime.operations("remove_network") == []


def test_reap_works_after_partial_build(runtime, topology):
    runtime.fail_on.add(("create_container", "cont_img2"))
    with pytest.raises(RuntimeOperationFailed):
        _run(EnvironmentBuilder(runtime).build(topology, AdjacencyMatrix.empty(2)))

    result = _run(Reaper(runtime).reap("cont_img", "meshnet"))

    assert sorted(result.containers_removed) == ["cont_img0", "cont_img1"]
    assert runtime.containers == {}
    assert runtime.networks == {}


def test_substring_hazard_removes_unrelated_names(runtime):
    # Documented behaviour: anything containing the prefix is reaped
    runtime.add_network("internet-bridge")
    runtime.add_network("unrelated")

    result = _run(Reaper(runtime).reap("cont_x", "net"))

    assert result.networks_removed == ["internet-bridge"]


def test_injected_predicate_limits_matches(runtime):
    runtime.add_network("internet-bridge")
    runtime.add_network("net0")

    result = _run(Reaper(runtime, matches=prefix_match).reap("cont_x", "net"))

    assert result.networks_removed == ["net0"]
    assert [n.name for n in runtime.networks.values()] == ["internet-bridge"]


def test_first_removal_failure_aborts(runtime):
    runtime.add_container("cont_img0")
    runtime.add_container("cont_img1")
    runtime.add_network("meshnet0")
    runtime.fail_on.add(("remove_container", "c-cont_img0"))

    with pytest.raises(RuntimeOperationFailed) as exc_info:
        _run(Reaper(runtime).reap("cont_img", "meshnet"))

    assert exc_info.value.step == "teardown containers"
    assert runtime.operations("remove_container") == ["c-cont_img0"]
    assert len(runtime.networks) == 1


def test_keep_going_collects_failures(runtime):
    runtime.add_container("cont_img0")
    runtime.add_container("cont_img1")
    runtime.add_network("meshnet0")
    runtime.fail_on.add(("remove_container", "c-cont_img0"))

    result = _run(Reaper(runtime, keep_going=True).reap("cont_img", "meshnet"))

    assert not result.success
    assert result.containers_removed == ["cont_img1"]
    assert result.networks_removed == ["meshnet0"]
    assert len(result.errors) == 1
    assert result.to_dict()["containers_removed"] == 1


def test_reap_emits_progress(runtime):
    runtime.add_container("cont_img0")
    runtime.add_network("meshnet0")
    reporter = CollectingReporter()

    _run(Reaper(runtime, reporter).reap("cont_img", "meshnet"))

    assert reporter.messages == [
        "Container cont_img0 removed successfully",
        "Network meshnet0 removed successfully",
    ]


def test_teardown_marks_nodes_removed(runtime, topology):
    env = _run(EnvironmentBuilder(runtime).build(topology, AdjacencyMatrix.empty(2)))

    result = _run(teardown(env, runtime))

    assert len(result.containers_removed) == 4
    assert all(env.node_state(i) == NodeState.REMOVED for i in range(4))
