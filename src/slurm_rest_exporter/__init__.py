"""Slurm REST Exporter.

Prometheus exporter for the SLURM workload manager. Reads job, node,
partition, diagnostics and fair-share snapshots from the SLURM REST API and
folds them into per-account, per-user, per-node, per-partition and
cluster-wide metrics.
"""

__version__ = "0.1.0"
