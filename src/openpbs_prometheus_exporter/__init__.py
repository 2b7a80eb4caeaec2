"""OpenPBS Prometheus Exporter.

Prometheus exporter for the OpenPBS batch scheduler that polls the qstat and
pbsnodes command-line tools and exports metrics for jobs, nodes, CPUs, memory
and per-user resource usage.
"""

__version__ = "0.1.0"
