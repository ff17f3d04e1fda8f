"""
Conflict Detection

머지 충돌 감지 인터페이스:
- ConflictDetector.detect(source_changes, target_changes) → ConflictReport
- NoOpConflictDetector: 항상 "충돌 없음" (기본, last-writer-wins)
- PayloadConflictDetector: 양쪽에서 수정되어 최종 페이로드가 다른 객체 보고

사용 예시:
    engine = MergeEngine(repo, conflict_detector=PayloadConflictDetector())
    result = engine.merge("feature", "main")
    if result.has_conflicts:
        print(result.conflicts.object_ids)
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Any, Optional

from ..versioning.models import ObjectChange

logger = logging.getLogger(__name__)


class ConflictStatus(str, Enum):
    """충돌 감지 결과"""
    NO_CONFLICTS = "no_conflicts"
    CONFLICTS = "conflicts"


@dataclass
class Conflict:
    """객체 단위 충돌"""
    object_id: str
    source_change: ObjectChange
    target_change: ObjectChange
    reason: str = "modified_on_both_sides"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "object_id": self.object_id,
            "source_change_type": self.source_change.change_type.value,
            "target_change_type": self.target_change.change_type.value,
            "source_hash": self.source_change.content_hash(),
            "target_hash": self.target_change.content_hash(),
            "reason": self.reason,
        }


@dataclass
class ConflictReport:
    """충돌 감지 보고서"""
    status: ConflictStatus = ConflictStatus.NO_CONFLICTS
    conflicts: List[Conflict] = field(default_factory=list)

    @classmethod
    def from_conflicts(cls, conflicts: List[Conflict]) -> "ConflictReport":
        status = ConflictStatus.CONFLICTS if conflicts else ConflictStatus.NO_CONFLICTS
        return cls(status=status, conflicts=list(conflicts))

    @property
    def has_conflicts(self) -> bool:
        return self.status == ConflictStatus.CONFLICTS

    @property
    def object_ids(self) -> List[str]:
        return [c.object_id for c in self.conflicts]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "conflicts": [c.to_dict() for c in self.conflicts],
        }


class ConflictDetector(ABC):
    """머지 충돌 감지기"""

    @abstractmethod
    def detect(
        self,
        source_changes: List[ObjectChange],
        target_changes: List[ObjectChange],
    ) -> ConflictReport:
        """
        분기점 이후 양쪽 변경 비교

        Args:
            source_changes: 소스 브랜치 변경 (객체당 최종 변경)
            target_changes: 타겟 브랜치 변경 (객체당 최종 변경)
        """


class NoOpConflictDetector(ConflictDetector):
    """충돌을 보고하지 않는 감지기"""

    def detect(
        self,
        source_changes: List[ObjectChange],
        target_changes: List[ObjectChange],
    ) -> ConflictReport:
        return ConflictReport()


class PayloadConflictDetector(ConflictDetector):
    """
    페이로드 비교 감지기

    같은 객체가 양쪽에서 수정(Added/Modified)되었고 최종 페이로드가 다르면 충돌.
    include_deletions=True면 한쪽 삭제 / 다른 쪽 수정도 충돌로 보고한다.
    """

    def __init__(self, include_deletions: bool = False):
        self.include_deletions = include_deletions

    def detect(
        self,
        source_changes: List[ObjectChange],
        target_changes: List[ObjectChange],
    ) -> ConflictReport:
        target_by_id: Dict[str, ObjectChange] = {c.id: c for c in target_changes}
        conflicts: List[Conflict] = []

        for source_change in source_changes:
            target_change: Optional[ObjectChange] = target_by_id.get(source_change.id)
            if target_change is None:
                continue

            if source_change.is_deleted or target_change.is_deleted:
                if self.include_deletions and source_change.is_deleted != target_change.is_deleted:
                    conflicts.append(Conflict(
                        object_id=source_change.id,
                        source_change=source_change,
                        target_change=target_change,
                        reason="modify_delete",
                    ))
                continue

            if source_change.serialized_payload != target_change.serialized_payload:
                conflicts.append(Conflict(
                    object_id=source_change.id,
                    source_change=source_change,
                    target_change=target_change,
                ))

        if conflicts:
            logger.warning(f"Detected {len(conflicts)} merge conflicts")

        return ConflictReport.from_conflicts(conflicts)
