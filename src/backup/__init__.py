"""Backup lifecycle operations.

This package drives capture cycles, resquash merges, rollback views,
restores, and bin removal on top of the inventory and layer packages.
"""
