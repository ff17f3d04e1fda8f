"""
Workspace (호스트 경계)

엔진이 호스트 애플리케이션의 라이브 객체 모델과 주고받는 인터페이스:
- Inbound: current_objects(), serialize(), deserialize()
- Outbound: apply_change(), clear()

InMemoryWorkspace는 JSON 호환 dict를 객체로 사용하는 기준 구현이다.
"""

import copy
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ..exceptions import SerializationError
from .models import ObjectChange

logger = logging.getLogger(__name__)


class Workspace(ABC):
    """호스트 객체 집합"""

    @abstractmethod
    def current_objects(self) -> Dict[str, Any]:
        """현재 존재하는 객체 {id: handle}"""

    @abstractmethod
    def serialize(self, obj: Any) -> str:
        """객체 → 직렬화 페이로드"""

    @abstractmethod
    def deserialize(self, payload: str) -> Any:
        """직렬화 페이로드 → 객체"""

    @abstractmethod
    def apply_change(self, change: ObjectChange) -> None:
        """변경 적용 (id 기준 추가/교체/삭제)"""

    @abstractmethod
    def clear(self) -> None:
        """모든 라이브 객체 제거"""

    def get_transform(self, obj: Any) -> Optional[Any]:
        """객체 위치/방향 오프셋 (선택)"""
        return None


class InMemoryWorkspace(Workspace):
    """
    메모리 워크스페이스

    객체는 JSON 호환 dict이며, 직렬화는 키 정렬된 compact JSON이다.
    객체에 "transform" 키가 있으면 변경의 transform으로 사용한다.
    """

    def __init__(self, objects: Optional[Dict[str, Dict[str, Any]]] = None):
        self.objects: Dict[str, Dict[str, Any]] = dict(objects or {})

    def current_objects(self) -> Dict[str, Any]:
        return dict(self.objects)

    def serialize(self, obj: Any) -> str:
        try:
            return json.dumps(obj, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Cannot serialize object: {e}", cause=e)

    def deserialize(self, payload: str) -> Any:
        if payload is None:
            raise SerializationError("Missing payload")
        try:
            return json.loads(payload)
        except json.JSONDecodeError as e:
            raise SerializationError(f"Cannot deserialize payload: {e}", cause=e)

    def apply_change(self, change: ObjectChange) -> None:
        if change.is_deleted:
            self.objects.pop(change.id, None)
        else:
            self.objects[change.id] = self.deserialize(change.serialized_payload)

    def clear(self) -> None:
        self.objects.clear()

    def get_transform(self, obj: Any) -> Optional[Any]:
        if isinstance(obj, dict):
            return copy.deepcopy(obj.get("transform"))
        return None

    # 편의 메서드 (테스트/헤드리스 호스트용)

    def put(self, object_id: str, obj: Dict[str, Any]) -> None:
        self.objects[object_id] = obj

    def remove(self, object_id: str) -> None:
        self.objects.pop(object_id, None)

    def __len__(self) -> int:
        return len(self.objects)

    def __contains__(self, object_id: str) -> bool:
        return object_id in self.objects
