"""External tool collaborators.

This package wraps the archive builder, the union mount facility, and
the file synchronizer behind narrow exit-status contracts.
"""
