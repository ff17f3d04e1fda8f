"""
Branching & Merging Module

브랜치 및 머지:
- 브랜치 생성/전환 (자동 저장, 첫 커밋)
- 워크스페이스 재구성
- 분기점 기반 머지 + 콘텐츠 해시 중복 제거
- 충돌 감지 (교체 가능한 감지기)

사용 예시:
    manager = BranchManager(repo)

    # 브랜치 생성
    manager.create_branch("feature/deck")

    # 브랜치 전환
    manager.switch_branch("feature/deck")

    # 머지
    result = MergeEngine(repo).merge("feature/deck", "main")
"""

from .branch_manager import (
    BranchManager,
    BranchComparison,
    ReconstructResult,
    SwitchResult,
)

from .merge_engine import (
    MergeEngine,
    MergePlan,
    MergeResult,
    MergeStatus,
)

from .conflict_resolver import (
    ConflictDetector,
    NoOpConflictDetector,
    PayloadConflictDetector,
    Conflict,
    ConflictReport,
    ConflictStatus,
)

__all__ = [
    # Branch Manager
    "BranchManager",
    "BranchComparison",
    "ReconstructResult",
    "SwitchResult",
    # Merge Engine
    "MergeEngine",
    "MergePlan",
    "MergeResult",
    "MergeStatus",
    # Conflict Detection
    "ConflictDetector",
    "NoOpConflictDetector",
    "PayloadConflictDetector",
    "Conflict",
    "ConflictReport",
    "ConflictStatus",
]
