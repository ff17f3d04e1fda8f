"""
Versioned Document Backends

전체 문서 단위 read-modify-write 저장소:
- read(key)  → DocumentSnapshot(data, version)
- write(key, data, expected_version) → 새 version
- version 불일치 시 StaleDocumentError (다른 writer가 먼저 기록)

구현:
- InMemoryBackend: 테스트/헤드리스용
- JsonFileBackend: 작업 폴더의 사람이 읽을 수 있는 JSON 파일

사용 예시:
    backend = JsonFileBackend("./data/modelgit")
    snapshot = backend.read("model_history_bridge.json")
    backend.write("model_history_bridge.json", history, snapshot.version)
"""

import hashlib
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from ..exceptions import HistoryCorruptionError, StaleDocumentError

logger = logging.getLogger(__name__)

# Pretty JSON on disk for readability.
PRETTY_JSON_INDENT = 2


@dataclass(frozen=True)
class DocumentSnapshot:
    """문서 읽기 결과"""
    data: Any
    version: Optional[str]  # None이면 문서 없음

    @property
    def exists(self) -> bool:
        return self.version is not None


class DocumentBackend(ABC):
    """버전 토큰 기반 문서 저장소"""

    @abstractmethod
    def read(self, key: str) -> DocumentSnapshot:
        """
        문서 읽기

        Raises:
            HistoryCorruptionError: 문서가 있으나 파싱 불가
        """

    @abstractmethod
    def write(self, key: str, data: Any, expected_version: Optional[str]) -> str:
        """
        문서 전체 쓰기

        Args:
            key: 문서 키
            data: JSON 직렬화 가능한 문서
            expected_version: 읽을 때 받은 버전 (None이면 "문서 없음"을 기대)

        Returns:
            새 버전 토큰

        Raises:
            StaleDocumentError: 현재 버전이 expected_version과 다름
        """

    @abstractmethod
    def exists(self, key: str) -> bool:
        """문서 존재 여부"""


def _dumps(data: Any) -> str:
    return json.dumps(data, ensure_ascii=False, indent=PRETTY_JSON_INDENT) + "\n"


def _sha256_bytes(raw: bytes) -> str:
    return hashlib.sha256(raw).hexdigest()


class InMemoryBackend(DocumentBackend):
    """
    메모리 문서 저장소

    문서를 JSON 텍스트로 보관하므로 파일 저장소와 동일하게
    손상된 문서(put_raw)를 재현할 수 있다.
    """

    def __init__(self):
        self._documents: Dict[str, Tuple[str, int]] = {}
        self._counter = 0
        self._lock = threading.Lock()

    def read(self, key: str) -> DocumentSnapshot:
        with self._lock:
            entry = self._documents.get(key)
        if entry is None:
            return DocumentSnapshot(data=None, version=None)

        text, version = entry
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise HistoryCorruptionError(
                f"Unreadable document '{key}': {e}",
                key=key,
                version=str(version),
                cause=e,
            )
        return DocumentSnapshot(data=data, version=str(version))

    def write(self, key: str, data: Any, expected_version: Optional[str]) -> str:
        text = _dumps(data)
        with self._lock:
            entry = self._documents.get(key)
            current = str(entry[1]) if entry else None
            if current != expected_version:
                raise StaleDocumentError(
                    f"Stale write to '{key}'",
                    key=key,
                    expected_version=expected_version,
                    actual_version=current,
                )
            self._counter += 1
            self._documents[key] = (text, self._counter)
            return str(self._counter)

    def exists(self, key: str) -> bool:
        with self._lock:
            return key in self._documents

    def put_raw(self, key: str, text: str) -> str:
        """검증 없이 원문 저장 (손상 문서 재현용)"""
        with self._lock:
            self._counter += 1
            self._documents[key] = (text, self._counter)
            return str(self._counter)

    def get_raw(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._documents.get(key)
        return entry[0] if entry else None


class JsonFileBackend(DocumentBackend):
    """
    JSON 파일 문서 저장소

    - version = 파일 바이트의 SHA-256
    - 쓰기는 임시 파일 + os.replace (부분 파일 방지)
    - 같은 프로세스 내 writer 간 비교-쓰기는 락으로 직렬화
    """

    def __init__(self, root: str):
        self.root = Path(root)
        self._lock = threading.Lock()

    def _path(self, key: str) -> Path:
        return self.root / key

    def _current_version(self, path: Path) -> Optional[str]:
        if not path.exists():
            return None
        return _sha256_bytes(path.read_bytes())

    def read(self, key: str) -> DocumentSnapshot:
        path = self._path(key)
        if not path.exists():
            return DocumentSnapshot(data=None, version=None)

        raw = path.read_bytes()
        version = _sha256_bytes(raw)
        try:
            # 다른 도구가 쓴 BOM 허용
            data = json.loads(raw.decode("utf-8-sig"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise HistoryCorruptionError(
                f"Unreadable document '{path}': {e}",
                key=key,
                version=version,
                cause=e,
            )
        return DocumentSnapshot(data=data, version=version)

    def write(self, key: str, data: Any, expected_version: Optional[str]) -> str:
        path = self._path(key)
        raw = _dumps(data).encode("utf-8")

        with self._lock:
            current = self._current_version(path)
            if current != expected_version:
                raise StaleDocumentError(
                    f"Stale write to '{path}'",
                    key=key,
                    expected_version=expected_version,
                    actual_version=current,
                )

            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_name(path.name + ".tmp")
            try:
                with open(tmp, "wb") as f:
                    f.write(raw)
                os.replace(tmp, path)
            except OSError:
                if tmp.exists():
                    tmp.unlink()
                raise

        logger.debug(f"Wrote {len(raw)} bytes to {path}")
        return _sha256_bytes(raw)

    def exists(self, key: str) -> bool:
        return self._path(key).exists()
