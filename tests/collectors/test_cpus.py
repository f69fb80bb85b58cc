"""Tests for the cluster CPU collector."""

import pytest

from slurm_rest_exporter import errors
from slurm_rest_exporter.collectors import cpus
from slurm_rest_exporter.slurmrestapi import types


@pytest.fixture
def raw_nodes() -> list[types.RawNodeData]:
    """Two eight-CPU nodes, one idle with two idle CPUs reported."""
    return [
        types.RawNodeData(name="n1", state=["IDLE"], cpus=8, alloc_idle_cpus=2),
        types.RawNodeData(name="n2", state=["DOWN"], cpus=8, alloc_idle_cpus=8),
    ]


@pytest.fixture
def raw_jobs() -> list[types.RawJobData]:
    return [
        types.RawJobData(job_id=1, job_state=["RUNNING"], cpus=4),
        types.RawJobData(job_id=2, job_state=["PENDING"], cpus=32),
    ]


# ---------------------------------------------------------------------------
# parse_cpus_metrics
# ---------------------------------------------------------------------------


def test_cpus_metrics(raw_nodes, raw_jobs):
    """alloc from running jobs, total and idle from nodes, other derived."""
    metrics = cpus.parse_cpus_metrics(raw_nodes, raw_jobs)
    assert metrics.alloc == 4
    assert metrics.total == 16
    assert metrics.idle == 2
    assert metrics.other == 10


def test_cpus_single_cpu_nodes_excluded(raw_nodes, raw_jobs):
    """Placeholder nodes with one CPU are left out of the totals."""
    placeholder = types.RawNodeData(
        name="login1",
        state=["IDLE"],
        cpus=1,
        alloc_idle_cpus=1,
    )
    metrics = cpus.parse_cpus_metrics([*raw_nodes, placeholder], raw_jobs)
    assert metrics.total == 16
    assert metrics.idle == 2


def test_cpus_single_cpu_exclusion_can_be_disabled(raw_nodes, raw_jobs):
    """With the no-op predicate every node counts."""
    placeholder = types.RawNodeData(
        name="login1",
        state=["IDLE"],
        cpus=1,
        alloc_idle_cpus=1,
    )
    metrics = cpus.parse_cpus_metrics(
        [*raw_nodes, placeholder],
        raw_jobs,
        exclude_node=cpus.exclude_no_nodes,
    )
    assert metrics.total == 17
    assert metrics.idle == 3


def test_cpus_idle_counted_once_per_node():
    """A node in both mix and alloc contributes its idle CPUs once."""
    node = types.RawNodeData(
        name="n1",
        state=["MIXED", "ALLOCATED"],
        cpus=16,
        alloc_idle_cpus=6,
    )
    metrics = cpus.parse_cpus_metrics([node], [])
    assert metrics.idle == 6


def test_cpus_other_may_be_negative():
    """other is not clamped when alloc and idle exceed the total."""
    node = types.RawNodeData(name="n1", state=["MIXED"], cpus=8, alloc_idle_cpus=6)
    job = types.RawJobData(job_state=["RUNNING"], cpus=4)
    metrics = cpus.parse_cpus_metrics([node], [job])
    assert metrics.other == -2


def test_cpus_bad_job_is_fatal(raw_nodes):
    """A running job without a CPU count aborts the aggregation."""
    with pytest.raises(errors.MissingFieldError):
        cpus.parse_cpus_metrics(raw_nodes, [types.RawJobData(job_state=["RUNNING"])])


def test_cpus_bad_node_state_is_fatal(raw_jobs):
    """A node with an unknown state aborts the aggregation."""
    node = types.RawNodeData(name="n1", state=["PLANNED"], cpus=8)
    with pytest.raises(errors.UnknownStateError):
        cpus.parse_cpus_metrics([node], raw_jobs)


def test_cpus_skip_policy_drops_bad_records(raw_nodes, raw_jobs):
    """Under SKIP, bad records are dropped and the rest aggregated."""
    bad_node = types.RawNodeData(name="n3", state=["PLANNED"], cpus=8)
    bad_job = types.RawJobData(job_state=["RUNNING"])
    metrics = cpus.parse_cpus_metrics(
        [*raw_nodes, bad_node],
        [*raw_jobs, bad_job],
        policy=errors.ErrorPolicy.SKIP,
    )
    assert metrics.alloc == 4
    assert metrics.total == 16


def test_cpus_generate_metrics(raw_nodes, raw_jobs):
    """Four unlabelled gauges are exported."""
    metrics = {m.name: m for m in cpus.generate_metrics((raw_nodes, raw_jobs))}
    assert metrics["slurm_cpus_alloc"].samples[0].value == 4
    assert metrics["slurm_cpus_idle"].samples[0].value == 2
    assert metrics["slurm_cpus_other"].samples[0].value == 10
    assert metrics["slurm_cpus_total"].samples[0].value == 16

