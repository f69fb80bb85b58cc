"""Tests for raw-record field accessors and API type validation."""

import pytest

from slurm_rest_exporter import errors, fields
from slurm_rest_exporter.slurmrestapi import types

# ---------------------------------------------------------------------------
# Required job fields
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("accessor", "field"),
    [
        (fields.get_job_account_name, "account"),
        (fields.get_job_user_name, "user_name"),
        (fields.get_job_partition_name, "partition"),
        (fields.get_job_cpus, "cpus"),
    ],
)
def test_required_job_field_missing_raises(accessor, field: str):
    """Each required job accessor names the missing field."""
    with pytest.raises(errors.MissingFieldError) as exc_info:
        accessor(types.RawJobData())
    assert exc_info.value.field == field


def test_job_cpus_is_float():
    """Job CPU count is returned as a float."""
    assert fields.get_job_cpus(types.RawJobData(cpus=4)) == 4.0


def test_job_cpus_unwraps_no_val_struct():
    """The API's number wrapper is unwrapped on validation."""
    job = types.RawJobData.model_validate(
        {"cpus": {"set": True, "infinite": False, "number": 12}},
    )
    assert fields.get_job_cpus(job) == 12.0


def test_job_cpus_unset_no_val_struct_is_missing():
    """An unset number wrapper counts as an absent field."""
    job = types.RawJobData.model_validate(
        {"cpus": {"set": False, "infinite": False, "number": 0}},
    )
    with pytest.raises(errors.MissingFieldError):
        fields.get_job_cpus(job)


def test_job_dependency_defaults_to_empty():
    """A job without a dependency field has an empty dependency."""
    assert fields.get_job_dependency(types.RawJobData()) == ""


# ---------------------------------------------------------------------------
# Node fields
# ---------------------------------------------------------------------------


def test_node_hostname_falls_back_to_name():
    """The node name is used when hostname is empty."""
    node = types.RawNodeData(name="node003", hostname="")
    assert fields.get_node_hostname(node) == "node003"


def test_node_hostname_missing_raises():
    """A node with neither hostname nor name fails."""
    with pytest.raises(errors.MissingFieldError):
        fields.get_node_hostname(types.RawNodeData())


def test_node_counters_default_to_zero():
    """Absent node counters are zero rather than errors."""
    node = types.RawNodeData(name="n1")
    assert fields.get_node_alloc_memory(node) == 0
    assert fields.get_node_total_memory(node) == 0
    assert fields.get_node_alloc_cpus(node) == 0
    assert fields.get_node_idle_cpus(node) == 0
    assert fields.get_node_other_cpus(node) == 0
    assert fields.get_node_total_cpus(node) == 0
    assert fields.get_node_tres(node) == ""
    assert fields.get_node_tres_used(node) == ""


def test_node_partitions_none_is_empty_list():
    """A node assigned to no partition yields an empty list."""
    assert fields.get_node_partitions(types.RawNodeData(name="n1")) == []


# ---------------------------------------------------------------------------
# Partition and share fields
# ---------------------------------------------------------------------------


def test_partition_total_cpus():
    """Partition total CPUs is read from the nested cpus block."""
    partition = types.RawPartitionData.model_validate(
        {"name": "batch", "cpus": {"task_binding": 0, "total": 40}},
    )
    assert fields.get_partition_total_cpus(partition) == 40.0


def test_partition_total_cpus_missing_raises():
    """A partition without a cpus block fails."""
    with pytest.raises(errors.MissingFieldError, match="total cpus"):
        fields.get_partition_total_cpus(types.RawPartitionData(name="batch"))


def test_share_level_missing_raises():
    """A share record without a fair-share level fails."""
    share = types.RawShareData(name="physics")
    with pytest.raises(errors.MissingFieldError) as exc_info:
        fields.get_share_fairshare_level(share)
    assert exc_info.value.field == "fairshare.level"
