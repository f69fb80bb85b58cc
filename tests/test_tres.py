"""Tests for TRES resource-count extraction."""

import pytest

from slurm_rest_exporter import errors, tres


def test_extract_gpu_count():
    """The GPU count is read from a full TRES string."""
    count = tres.extract_tres_count(
        "cpu=48,mem=1020522M,billing=48,gres/gpu=4",
        tres.GPU_TRES_NAME,
    )
    assert count == 4


def test_extract_missing_resource_is_zero():
    """A TRES string without the resource yields 0."""
    assert tres.extract_tres_count("cpu=1,mem=1M,billing=1", "gres/gpu") == 0


def test_extract_empty_string_is_zero():
    """An empty TRES string yields 0."""
    assert tres.extract_tres_count("", "gres/gpu") == 0


def test_extract_first_match_wins():
    """The first pair naming the resource is used."""
    count = tres.extract_tres_count("cpu=8,gres/gpu=2,gres/gpu=6", "gres/gpu")
    assert count == 2


def test_extract_other_resource():
    """Any resource tag can be extracted, not only GPUs."""
    assert tres.extract_tres_count("cpu=48,mem=1020522M,billing=96", "billing") == 96


def test_extract_non_integer_value_raises():
    """A non-integer value on the matching pair fails with the fragment."""
    with pytest.raises(errors.ResourceParseError) as exc_info:
        tres.extract_tres_count("cpu=48,gres/gpu=bad", "gres/gpu")
    assert exc_info.value.fragment == "gres/gpu=bad"


def test_extract_malformed_pair_raises():
    """A matching fragment with more than one '=' fails."""
    with pytest.raises(errors.ResourceParseError, match="failed to parse"):
        tres.extract_tres_count("cpu=48,gres/gpu=4=4", "gres/gpu")


def test_extract_malformed_non_matching_pair_ignored():
    """Malformed fragments that do not name the resource are skipped."""
    assert tres.extract_tres_count("cpu=x=y,gres/gpu=1", "gres/gpu") == 1


def test_extract_ignores_resources_sharing_the_prefix():
    """GPU memory accounting does not shadow the GPU count."""
    count = tres.extract_tres_count(
        "cpu=64,mem=512G,gres/gpumem=81920M,gres/gpu=4",
        tres.GPU_TRES_NAME,
    )
    assert count == 4


def test_extract_ignores_typed_entries():
    """A typed GPU entry listed first does not replace the total."""
    count = tres.extract_tres_count("cpu=8,gres/gpu:a100=2,gres/gpu=4", "gres/gpu")
    assert count == 4
