"""Extraction of single resource counts from TRES strings.

Node records carry trackable resources as comma-separated ``name=value``
pairs::

    cpu=48,mem=1020522M,billing=48,gres/gpu=4   # 4 gpus
    cpu=1,mem=1M,billing=1                      # no gpus

``tres`` holds the node's configured totals and ``tres_used`` what is
currently allocated.
"""

from .errors import ResourceParseError

GPU_TRES_NAME = "gres/gpu"


def extract_tres_count(tres: str, name: str) -> int:
    """Return the count of the first pair containing ``name=``.

    Matching on ``name=`` keeps related resources such as ``gres/gpumem``
    and typed entries such as ``gres/gpu:a100`` from matching ``gres/gpu``.

    Args:
        tres: Comma-separated ``name=value`` resource string.
        name: Resource tag to look for, e.g. ``gres/gpu``.

    Returns:
        The integer value of the first matching pair, or 0 when no pair
        matches.

    Raises:
        ResourceParseError: If the matching pair is not a single
            ``name=value`` or its value is not an integer.
    """
    for fragment in tres.split(","):
        if f"{name}=" not in fragment:
            continue
        parts = fragment.split("=")
        if len(parts) != 2:  # noqa: PLR2004
            msg = f"found {name} in tres but failed to parse: {fragment}"
            raise ResourceParseError(msg, fragment=fragment)
        try:
            return int(parts[1])
        except ValueError as e:
            msg = f"failed to parse number of {name} from tres: {fragment}"
            raise ResourceParseError(msg, fragment=fragment) from e
    return 0
