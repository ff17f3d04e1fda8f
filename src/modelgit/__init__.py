"""
modelgit - 구조화된 객체 집합을 위한 경량 버전 관리 엔진

Architecture:
- versioning: 커밋 모델, 호스트 워크스페이스 경계, 스냅샷 디프, Repository 핸들
- storage: 버전 토큰 문서 저장소, 스키마 검증, Commit Store
- branching: 브랜치 전환/재구성, 분기점 머지, 충돌 감지
- sync: 원격 히스토리 병합 (INCREMENTAL / REPLACE), 히스토리 파일 교환

핵심 원칙:
1. 커밋은 불변, 히스토리는 append-only (동기화 갱신 제외)
2. 엔진은 페이로드 내용을 해석하지 않음 (정확한 문자열 비교, 콘텐츠 해시)
3. 공개 작업은 예외 대신 결과 객체로 실패 보고

사용 예시:
    from modelgit import (
        VCSConfig, CommitStore, InMemoryWorkspace, Repository, BranchManager, MergeEngine,
    )

    config = VCSConfig.from_env()
    store = CommitStore.open(config, dataset_id="bridge_model")
    repo = Repository(InMemoryWorkspace(), store, config)

    repo.commit("Initial model")
    BranchManager(repo).create_branch("feature/deck")
"""

__version__ = "0.3.0"

from .config import VCSConfig, CorruptionPolicy

from .versioning import (
    ChangeType,
    ObjectChange,
    Commit,
    Branch,
    Workspace,
    InMemoryWorkspace,
    SnapshotDiffer,
    DiffResult,
    Repository,
    CommitResult,
    OperationStatus,
)

from .storage import (
    DocumentBackend,
    InMemoryBackend,
    JsonFileBackend,
    CommitStore,
)

from .branching import (
    BranchManager,
    MergeEngine,
    MergeResult,
    MergeStatus,
    NoOpConflictDetector,
    PayloadConflictDetector,
)

from .sync import (
    SyncReconciler,
    IngestMode,
    IngestResult,
)

__all__ = [
    # Config
    "VCSConfig",
    "CorruptionPolicy",
    # Versioning
    "ChangeType",
    "ObjectChange",
    "Commit",
    "Branch",
    "Workspace",
    "InMemoryWorkspace",
    "SnapshotDiffer",
    "DiffResult",
    "Repository",
    "CommitResult",
    "OperationStatus",
    # Storage
    "DocumentBackend",
    "InMemoryBackend",
    "JsonFileBackend",
    "CommitStore",
    # Branching
    "BranchManager",
    "MergeEngine",
    "MergeResult",
    "MergeStatus",
    "NoOpConflictDetector",
    "PayloadConflictDetector",
    # Sync
    "SyncReconciler",
    "IngestMode",
    "IngestResult",
]
