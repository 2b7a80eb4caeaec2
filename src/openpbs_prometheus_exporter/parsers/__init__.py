"""Parsers for OpenPBS command output.

Each parser module scans the raw text of one qstat or pbsnodes query line by
line and returns a small result dataclass. Results are merged into a
ClusterSnapshot by the collection orchestrator.
"""
