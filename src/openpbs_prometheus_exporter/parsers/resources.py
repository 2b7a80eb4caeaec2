"""Aggregate resource parser for ``pbsnodes -a`` output.

Sums the assigned and available memory and CPUs reported by every node in
the cluster. Memory values are normalized to gigabytes.
"""

from dataclasses import dataclass

from . import scanning

_ASSIGNED_MEM = scanning.attribute_pattern("resources_assigned.mem")
_AVAILABLE_MEM = scanning.attribute_pattern("resources_available.mem")
_ASSIGNED_NCPUS = scanning.attribute_pattern("resources_assigned.ncpus")
_AVAILABLE_NCPUS = scanning.attribute_pattern("resources_available.ncpus")


@dataclass
class ResourceTotals:
    """Cluster-wide resource totals summed across all nodes."""

    memory_assigned_gb: float = 0.0
    memory_available_gb: float = 0.0
    cpu_assigned: int = 0
    cpu_available: int = 0
    decode_errors: int = 0

    @property
    def cpu_total(self) -> int:
        """Total CPUs in the cluster.

        OpenPBS reports a node's full core count as resources_available.ncpus,
        so the total equals the summed available CPUs.
        """
        return self.cpu_available


def parse(text: str) -> ResourceTotals:
    """Sum node resources from pbsnodes output.

    Args:
        text: Raw output of ``pbsnodes -a``.

    Returns:
        Resource totals; all zero if no resource lines are present.
    """
    totals = ResourceTotals()

    for line in text.splitlines():
        if (raw := scanning.match_value(_ASSIGNED_MEM, line)) is not None:
            memory = scanning.decode_memory_gb(raw, line)
            if memory is None:
                totals.decode_errors += 1
            else:
                totals.memory_assigned_gb += memory
        elif (raw := scanning.match_value(_AVAILABLE_MEM, line)) is not None:
            memory = scanning.decode_memory_gb(raw, line)
            if memory is None:
                totals.decode_errors += 1
            else:
                totals.memory_available_gb += memory
        elif (raw := scanning.match_value(_ASSIGNED_NCPUS, line)) is not None:
            cpus = scanning.decode_count(raw, line)
            if cpus is None:
                totals.decode_errors += 1
            else:
                totals.cpu_assigned += cpus
        elif (raw := scanning.match_value(_AVAILABLE_NCPUS, line)) is not None:
            cpus = scanning.decode_count(raw, line)
            if cpus is None:
                totals.decode_errors += 1
            else:
                totals.cpu_available += cpus

    return totals
