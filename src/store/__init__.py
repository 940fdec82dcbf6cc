"""Storage layer.

This package persists deals in a versioned workbook with atomic commits,
backups, and a cross-process lock, plus an in-memory reference store.
"""
