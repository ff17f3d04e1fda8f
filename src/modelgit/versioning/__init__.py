"""
Versioning Module

객체 변경 추적 및 커밋:
- 커밋 데이터 모델 (ObjectChange / Commit / Branch)
- 호스트 워크스페이스 경계
- 스냅샷 디프
- Repository 핸들 (활성 브랜치 + baseline)

사용 예시:
    workspace = InMemoryWorkspace()
    repo = Repository(workspace, store)

    workspace.put("beam-1", {"type": "beam", "length": 6.0})
    result = repo.commit("Add beam")
"""

from .models import (
    ChangeType,
    ObjectChange,
    Commit,
    Branch,
    content_hash,
    new_commit_id,
    sort_by_timestamp,
    latest_commit,
)

from .workspace import (
    Workspace,
    InMemoryWorkspace,
)

from .differ import (
    SnapshotDiffer,
    DiffResult,
)

from .repository import (
    Repository,
    CommitResult,
    OperationStatus,
)

__all__ = [
    # Models
    "ChangeType",
    "ObjectChange",
    "Commit",
    "Branch",
    "content_hash",
    "new_commit_id",
    "sort_by_timestamp",
    "latest_commit",
    # Workspace
    "Workspace",
    "InMemoryWorkspace",
    # Differ
    "SnapshotDiffer",
    "DiffResult",
    # Repository
    "Repository",
    "CommitResult",
    "OperationStatus",
]
