"""
Pure domain layer of the workflow kernel.

ZERO I/O.  Records, diff snapshots, transition tables and the injectable
clock live here; nothing in this package imports from ``db``,
``models`` or ``services``.
"""
