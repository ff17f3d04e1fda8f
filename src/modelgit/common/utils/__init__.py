"""Utility modules"""

from .logger import (
    console,
    setup_logging,
    OperationLogger,
    print_panel,
    print_status,
    build_history_table,
    print_history_table,
    build_branch_table,
    print_branch_table,
)

__all__ = [
    "console",
    "setup_logging",
    "OperationLogger",
    "print_panel",
    "print_status",
    "build_history_table",
    "print_history_table",
    "build_branch_table",
    "print_branch_table",
]
