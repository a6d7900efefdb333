"""Layer composition.

This package mounts the seed and stacks bins over it into one
union view, and tears the stack down in dependency order.
"""
