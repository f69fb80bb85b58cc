"""Tests for the job queue collector."""

import pytest

from slurm_rest_exporter import errors
from slurm_rest_exporter.collectors import queue
from slurm_rest_exporter.slurmrestapi import types

# ---------------------------------------------------------------------------
# parse_queue_metrics
# ---------------------------------------------------------------------------


def test_queue_counts_each_state():
    """Every job lands under the counter for its first state flag."""
    jobs = [
        types.RawJobData(job_state=["PENDING"]),
        types.RawJobData(job_state=["RUNNING"]),
        types.RawJobData(job_state=["RUNNING", "COMPLETING"]),
        types.RawJobData(job_state=["COMPLETED"]),
        types.RawJobData(job_state=["CANCELLED"]),
        types.RawJobData(job_state=["FAILED"]),
        types.RawJobData(job_state=["TIMEOUT"]),
        types.RawJobData(job_state=["NODE_FAIL"]),
        types.RawJobData(job_state=["OUT_OF_MEMORY"]),
    ]
    metrics = queue.parse_queue_metrics(jobs)
    assert metrics.pending == 1
    assert metrics.running == 2
    assert metrics.completing == 0
    assert metrics.completed == 1
    assert metrics.cancelled == 1
    assert metrics.failed == 1
    assert metrics.timeout == 1
    assert metrics.node_fail == 1
    assert metrics.out_of_memory == 1


def test_queue_pending_with_dependency():
    """A pending job with a dependency is counted as pending_dep only."""
    jobs = [
        types.RawJobData(job_state=["PENDING"], dependency="afterok:123"),
        types.RawJobData(job_state=["PENDING"], dependency=""),
        types.RawJobData(job_state=["PENDING"]),
    ]
    metrics = queue.parse_queue_metrics(jobs)
    assert metrics.pending_dep == 1
    assert metrics.pending == 2


def test_queue_dependency_ignored_outside_pending():
    """A running job with a leftover dependency is counted as running."""
    job = types.RawJobData(job_state=["RUNNING"], dependency="afterok:123")
    metrics = queue.parse_queue_metrics([job])
    assert metrics.running == 1
    assert metrics.pending_dep == 0


def test_queue_total_matches_job_count():
    """Each classified job increments exactly one counter."""
    jobs = [
        types.RawJobData(job_state=[state])
        for state in ("PENDING", "SUSPENDED", "PREEMPTED", "CONFIGURING", "RUNNING")
    ]
    metrics = queue.parse_queue_metrics(jobs)
    assert sum(vars(metrics).values()) == len(jobs)


def test_queue_unknown_state_raises():
    """An unrecognised job state aborts the queue tally by default."""
    with pytest.raises(errors.UnknownStateError):
        queue.parse_queue_metrics([types.RawJobData(job_state=["REQUEUED"])])


def test_queue_skip_policy():
    """Under SKIP, unclassifiable jobs are dropped."""
    jobs = [
        types.RawJobData(job_state=["REQUEUED"]),
        types.RawJobData(job_state=["RUNNING"]),
    ]
    metrics = queue.parse_queue_metrics(jobs, policy=errors.ErrorPolicy.SKIP)
    assert metrics == queue.QueueMetrics(running=1)


def test_queue_generate_metrics():
    """The dependency counter is exported under its long name."""
    job = types.RawJobData(job_state=["PENDING"], dependency="afterany:7")
    metrics = {m.name: m for m in queue.generate_metrics([job])}
    assert len(metrics) == 13
    assert metrics["slurm_queue_pending_dependency"].samples[0].value == 1
    assert metrics["slurm_queue_pending"].samples[0].value == 0
    assert "slurm_queue_out_of_memory" in metrics
