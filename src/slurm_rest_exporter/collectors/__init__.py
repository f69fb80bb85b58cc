"""Collectors package for SLURM metrics.

Each collector module covers one metric family and provides a
``parse_*_metrics`` aggregation over raw API records, plus ``fetch`` and
``generate_metrics`` functions that can be composed with the
SlurmCollector class.
"""
