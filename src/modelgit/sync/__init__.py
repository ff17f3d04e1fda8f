"""
Sync Module

커밋 히스토리 동기화:
- Sync Reconciler (INCREMENTAL / REPLACE)
- 히스토리 파일 교환 (push / pull / 최신 커밋 가져오기)
"""

from .exchange import (
    ImportSummary,
    default_export_path,
    export_branch_history,
    load_commit_batch,
    apply_latest_commit,
)

from .reconciler import (
    SyncReconciler,
    IngestMode,
    IngestResult,
    ParentAdjustment,
)

__all__ = [
    # Exchange
    "ImportSummary",
    "default_export_path",
    "export_branch_history",
    "load_commit_batch",
    "apply_latest_commit",
    # Reconciler
    "SyncReconciler",
    "IngestMode",
    "IngestResult",
    "ParentAdjustment",
]
