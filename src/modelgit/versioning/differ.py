"""
Snapshot Differencer

워크스페이스의 현재 객체 집합을 브랜치 baseline({id: payload})과 비교:
- added: 현재 있고 baseline에 없음
- modified: 양쪽에 있고 직렬화 문자열이 다름 (정확한 문자열 비교)
- deleted: baseline에 있고 현재 없음

비교 후 baseline은 한 번에 교체된다 (호출 단위 원자성).
직렬화에 실패한 객체는 로그를 남기고 건너뛴다 (삭제로 취급하지 않음).
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Any, Set

from ..exceptions import SerializationError
from .models import ChangeType, ObjectChange
from .workspace import Workspace

logger = logging.getLogger(__name__)


@dataclass
class DiffResult:
    """디프 결과 (changes는 감지 순서)"""
    changes: List[ObjectChange] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    def _of_type(self, change_type: ChangeType) -> List[ObjectChange]:
        return [c for c in self.changes if c.change_type == change_type]

    @property
    def added(self) -> List[ObjectChange]:
        return self._of_type(ChangeType.ADDED)

    @property
    def modified(self) -> List[ObjectChange]:
        return self._of_type(ChangeType.MODIFIED)

    @property
    def deleted(self) -> List[ObjectChange]:
        return self._of_type(ChangeType.DELETED)

    @property
    def has_changes(self) -> bool:
        return bool(self.changes)

    @property
    def total_changes(self) -> int:
        return len(self.changes)

    def get_summary(self) -> Dict[str, Any]:
        """변경 요약"""
        return {
            "added": len(self.added),
            "modified": len(self.modified),
            "deleted": len(self.deleted),
            "skipped": len(self.skipped),
            "has_changes": self.has_changes,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "changes": [c.to_dict() for c in self.changes],
            "skipped": self.skipped,
            "summary": self.get_summary(),
        }


class SnapshotDiffer:
    """
    스냅샷 디프 계산기

    baseline은 호출자(Repository)가 소유하며, diff()가 제자리에서 갱신한다.
    """

    def __init__(self, workspace: Workspace):
        self.workspace = workspace

    def diff(
        self,
        baseline: Dict[str, str],
        update_baseline: bool = True,
    ) -> DiffResult:
        """
        현재 워크스페이스와 baseline 비교

        Args:
            baseline: 브랜치 baseline {id: payload} (update_baseline이면 갱신됨)
            update_baseline: 비교 후 baseline을 현재 상태로 교체

        Returns:
            DiffResult
        """
        result = DiffResult()
        new_baseline: Dict[str, str] = {}
        current_ids: Set[str] = set()

        for object_id, obj in self.workspace.current_objects().items():
            if obj is None:
                continue

            object_id = str(object_id)
            current_ids.add(object_id)

            try:
                current_state = self.workspace.serialize(obj)
                if current_state is None:
                    raise SerializationError("Serializer returned no payload", object_id=object_id)
            except Exception as e:
                # 변경 없음으로 취급: 기존 baseline 항목 유지
                logger.warning(f"Error serializing object {object_id}: {e}")
                result.skipped.append(object_id)
                if object_id in baseline:
                    new_baseline[object_id] = baseline[object_id]
                continue

            previous_state = baseline.get(object_id)
            if previous_state is None:
                result.changes.append(self._make_change(object_id, ChangeType.ADDED, current_state, obj))
            elif current_state != previous_state:
                result.changes.append(self._make_change(object_id, ChangeType.MODIFIED, current_state, obj))

            new_baseline[object_id] = current_state

        for deleted_id in [k for k in baseline if k not in current_ids]:
            result.changes.append(ObjectChange(
                id=deleted_id,
                change_type=ChangeType.DELETED,
                serialized_payload=baseline[deleted_id],
            ))

        if update_baseline:
            baseline.clear()
            baseline.update(new_baseline)

        logger.debug(
            f"Diff computed: +{len(result.added)} ~{len(result.modified)} "
            f"-{len(result.deleted)} (skipped {len(result.skipped)})"
        )

        return result

    def preview(self, baseline: Dict[str, str]) -> DiffResult:
        """baseline을 변경하지 않는 디프"""
        return self.diff(baseline, update_baseline=False)

    def snapshot(self) -> Dict[str, str]:
        """현재 워크스페이스 전체 직렬화 {id: payload} (실패 객체 제외)"""
        state: Dict[str, str] = {}
        for object_id, obj in self.workspace.current_objects().items():
            if obj is None:
                continue
            try:
                payload = self.workspace.serialize(obj)
            except Exception as e:
                logger.warning(f"Error serializing object {object_id}: {e}")
                continue
            if payload is not None:
                state[str(object_id)] = payload
        return state

    def _make_change(
        self,
        object_id: str,
        change_type: ChangeType,
        payload: str,
        obj: Any,
    ) -> ObjectChange:
        try:
            transform = self.workspace.get_transform(obj)
        except Exception as e:
            logger.debug(f"No transform for object {object_id}: {e}")
            transform = None
        if transform is not None:
            try:
                json.dumps(transform)
            except (TypeError, ValueError) as e:
                logger.warning(f"Transform of object {object_id} is not JSON serializable, dropped: {e}")
                transform = None
        return ObjectChange(
            id=object_id,
            change_type=change_type,
            serialized_payload=payload,
            transform=transform,
        )
