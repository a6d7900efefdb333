"""Bin inventory layer.

This package persists the bin ledger and owns bin directories.
It keeps both sides of the inventory in lockstep for every operation.
"""
