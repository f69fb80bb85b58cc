"""Tests for the per-account and per-user job collectors.

Both collectors share the same tally; the account collector is covered in
depth and the user collector checks its keying and defaults.
"""

from unittest.mock import MagicMock

import pytest

from slurm_rest_exporter import errors
from slurm_rest_exporter.collectors import accounts, users
from slurm_rest_exporter.slurmrestapi import types


@pytest.fixture
def raw_jobs() -> list[types.RawJobData]:
    """Jobs from two accounts across several states."""
    return [
        types.RawJobData(
            job_id=1,
            account="physics",
            user_name="alice",
            job_state=["PENDING"],
            cpus=4,
        ),
        types.RawJobData(
            job_id=2,
            account="physics",
            user_name="bob",
            job_state=["RUNNING"],
            cpus=16,
        ),
        types.RawJobData(
            job_id=3,
            account="physics",
            user_name="alice",
            job_state=["RUNNING"],
            cpus=8,
        ),
        types.RawJobData(
            job_id=4,
            account="chemistry",
            user_name="carol",
            job_state=["SUSPENDED"],
            cpus=2,
        ),
        types.RawJobData(
            job_id=5,
            account="chemistry",
            user_name="carol",
            job_state=["COMPLETED"],
            cpus=64,
        ),
    ]


# ---------------------------------------------------------------------------
# parse_accounts_metrics
# ---------------------------------------------------------------------------


def test_accounts_tally_by_state(raw_jobs: list[types.RawJobData]):
    """Pending, running and suspended jobs and CPUs are tallied per account."""
    result = accounts.parse_accounts_metrics(raw_jobs)

    physics = result["physics"]
    assert physics.pending == 1
    assert physics.pending_cpus == 4
    assert physics.running == 2
    assert physics.running_cpus == 24
    assert physics.suspended == 0


def test_accounts_other_states_not_tallied(raw_jobs: list[types.RawJobData]):
    """Completed jobs create the key but touch no counter."""
    chemistry = accounts.parse_accounts_metrics(raw_jobs)["chemistry"]
    assert chemistry.suspended == 1
    assert chemistry.running == 0
    assert chemistry.running_cpus == 0
    assert chemistry.pending == 0


def test_accounts_skip_bad_records_by_default(raw_jobs: list[types.RawJobData]):
    """Jobs with an unresolvable field are dropped and the rest still counted."""
    bad_jobs = [
        types.RawJobData(job_id=10, job_state=["RUNNING"], cpus=1),
        types.RawJobData(job_id=11, account="physics", job_state=["WEIRD"], cpus=1),
        types.RawJobData(job_id=12, account="biology", job_state=["RUNNING"]),
    ]
    result = accounts.parse_accounts_metrics(bad_jobs + raw_jobs)

    assert set(result) == {"physics", "chemistry"}
    assert result["physics"].running == 2


def test_accounts_fail_fast_raises():
    """Under FAIL_FAST the first bad record aborts the aggregation."""
    bad_job = types.RawJobData(job_id=10, job_state=["RUNNING"], cpus=1)
    with pytest.raises(errors.MissingFieldError):
        accounts.parse_accounts_metrics(
            [bad_job],
            policy=errors.ErrorPolicy.FAIL_FAST,
        )


# ---------------------------------------------------------------------------
# generate_metrics
# ---------------------------------------------------------------------------


def test_accounts_generate_metrics(raw_jobs: list[types.RawJobData]):
    """Gauges are labelled by account."""
    metrics = {m.name: m for m in accounts.generate_metrics(raw_jobs)}
    assert set(metrics) == {
        "slurm_account_jobs_pending",
        "slurm_account_cpus_pending",
        "slurm_account_jobs_running",
        "slurm_account_cpus_running",
        "slurm_account_jobs_suspended",
    }
    running_cpus = {
        s.labels["account"]: s.value
        for s in metrics["slurm_account_cpus_running"].samples
    }
    assert running_cpus == {"physics": 24.0, "chemistry": 0.0}


def test_accounts_fetch_reads_jobs():
    """The account collector fetches the job listing."""
    mock_client = MagicMock()
    mock_client.get_jobs.return_value = []
    assert accounts.fetch(mock_client) == []
    mock_client.get_jobs.assert_called_once()


# ---------------------------------------------------------------------------
# users
# ---------------------------------------------------------------------------


def test_users_tally_by_user(raw_jobs: list[types.RawJobData]):
    """Jobs are keyed by user name."""
    result = users.parse_users_metrics(raw_jobs)
    assert set(result) == {"alice", "bob", "carol"}
    assert result["alice"].pending == 1
    assert result["alice"].running_cpus == 8
    assert result["bob"].running == 1


def test_users_skip_job_without_user(raw_jobs: list[types.RawJobData]):
    """A job without a user name is dropped by default."""
    orphan = types.RawJobData(job_id=99, job_state=["RUNNING"], cpus=4)
    result = users.parse_users_metrics([orphan, *raw_jobs])
    assert set(result) == {"alice", "bob", "carol"}


def test_users_generate_metrics_label(raw_jobs: list[types.RawJobData]):
    """User gauges carry a ``user`` label."""
    metrics = {m.name: m for m in users.generate_metrics(raw_jobs)}
    samples = metrics["slurm_user_jobs_running"].samples
    assert {s.labels["user"] for s in samples} == {"alice", "bob", "carol"}
