"""
저장소 테스트

- 버전 토큰 문서 저장소 (메모리 / JSON 파일)
- Commit Store: 추가, 조회, 손상 정책, 버전 충돌 재시도
"""

import json

import pytest

from modelgit.config import CorruptionPolicy, VCSConfig
from modelgit.exceptions import (
    DuplicateCommitError,
    HistoryCorruptionError,
    StaleDocumentError,
)
from modelgit.storage import CommitStore, InMemoryBackend, JsonFileBackend

from factories import DATASET_ID, change, make_commit

HISTORY_KEY = f"model_history_{DATASET_ID}.json"
BRANCHES_KEY = f"branches_{DATASET_ID}.json"


class InterleavingBackend(InMemoryBackend):
    """다음 write 직전에 다른 writer의 작업을 끼워 넣는 저장소"""

    def __init__(self):
        super().__init__()
        self.interleave = None

    def write(self, key, data, expected_version):
        if self.interleave is not None:
            action, self.interleave = self.interleave, None
            action()
        return super().write(key, data, expected_version)


class AlwaysStaleBackend(InMemoryBackend):
    """쓰기가 항상 버전 충돌"""

    def __init__(self):
        super().__init__()
        self.attempts = 0

    def write(self, key, data, expected_version):
        self.attempts += 1
        raise StaleDocumentError("simulated concurrent writer", key=key)


class TestInMemoryBackend:
    """메모리 문서 저장소 테스트"""

    def test_missing_document(self):
        snapshot = InMemoryBackend().read("missing.json")

        assert snapshot.data is None
        assert not snapshot.exists

    def test_write_requires_current_version(self):
        backend = InMemoryBackend()
        v1 = backend.write("doc.json", [1], None)

        with pytest.raises(StaleDocumentError):
            backend.write("doc.json", [2], None)

        v2 = backend.write("doc.json", [2], v1)
        assert v2 != v1
        assert backend.read("doc.json").data == [2]

    def test_unreadable_document_reports_version(self):
        backend = InMemoryBackend()
        version = backend.put_raw("doc.json", "{not json")

        with pytest.raises(HistoryCorruptionError) as exc_info:
            backend.read("doc.json")

        assert exc_info.value.version == version


class TestJsonFileBackend:
    """JSON 파일 저장소 테스트"""

    def test_write_and_read(self, tmp_path):
        backend = JsonFileBackend(str(tmp_path))
        version = backend.write("doc.json", [{"a": 1}], None)

        snapshot = backend.read("doc.json")
        assert snapshot.data == [{"a": 1}]
        assert snapshot.version == version

    def test_file_is_indented_json(self, tmp_path):
        backend = JsonFileBackend(str(tmp_path))
        backend.write("doc.json", [{"a": 1}], None)

        text = (tmp_path / "doc.json").read_text(encoding="utf-8")
        assert text.startswith("[\n  {")
        assert json.loads(text) == [{"a": 1}]
        assert not (tmp_path / "doc.json.tmp").exists()

    def test_stale_write_is_rejected(self, tmp_path):
        backend = JsonFileBackend(str(tmp_path))
        v1 = backend.write("doc.json", [1], None)
        backend.write("doc.json", [2], v1)

        with pytest.raises(StaleDocumentError):
            backend.write("doc.json", [3], v1)

        assert backend.read("doc.json").data == [2]

    def test_external_edit_changes_version(self, tmp_path):
        backend = JsonFileBackend(str(tmp_path))
        v1 = backend.write("doc.json", [1], None)
        (tmp_path / "doc.json").write_text("[9]", encoding="utf-8")

        assert backend.read("doc.json").version != v1

    def test_reads_file_with_bom(self, tmp_path):
        (tmp_path / "doc.json").write_bytes(b"\xef\xbb\xbf[1, 2]")

        assert JsonFileBackend(str(tmp_path)).read("doc.json").data == [1, 2]

    def test_invalid_json_is_corruption(self, tmp_path):
        (tmp_path / "doc.json").write_text("[{", encoding="utf-8")

        with pytest.raises(HistoryCorruptionError):
            JsonFileBackend(str(tmp_path)).read("doc.json")


class TestCommitStore:
    """Commit Store 테스트"""

    def test_empty_store(self, store):
        assert store.get_history() == []
        assert store.get_branches() == []
        assert store.get_last_commit_id("main") == ""
        assert store.get_commit("missing") is None

    def test_append_commit_updates_history_and_catalog(self, store):
        store.append_commit(make_commit("c1", 0, [change("a", "1")]))
        store.append_commit(make_commit("c2", 1, parent="c1"))

        assert [c.commit_id for c in store.get_history()] == ["c1", "c2"]
        assert store.get_branch("main").commits == ["c1", "c2"]
        assert store.get_commit("c1").changes[0].id == "a"

    def test_append_creates_missing_branch(self, store):
        store.append_commit(make_commit("f1", 0, branch="feature"))

        assert [b.name for b in store.get_branches()] == ["feature"]

    def test_duplicate_commit_id_is_rejected(self, store):
        store.append_commit(make_commit("c1", 0))

        with pytest.raises(DuplicateCommitError):
            store.append_commit(make_commit("c1", 5))

        assert len(store.get_history()) == 1

    def test_last_commit_id_uses_timestamp(self, store):
        store.append_commit(make_commit("late", 10))
        store.append_commit(make_commit("early", 1))
        store.append_commit(make_commit("other", 20, branch="feature"))

        assert store.get_last_commit_id("main") == "late"
        assert [c.commit_id for c in store.get_branch_commits("main")] == ["early", "late"]

    def test_create_branch(self, store):
        assert store.create_branch("feature") is True
        assert store.create_branch("feature") is False
        assert store.get_branch("feature").is_empty

    def test_documents_use_dataset_file_names(self, backend, store):
        store.append_commit(make_commit("c1", 0))

        assert backend.exists(HISTORY_KEY)
        assert backend.exists(BRANCHES_KEY)

    def test_open_uses_json_files_in_working_folder(self, tmp_path):
        config = VCSConfig(working_folder=str(tmp_path))
        store = CommitStore.open(config, "bridge")
        store.append_commit(make_commit("c1", 0))

        assert (tmp_path / "model_history_bridge.json").exists()
        assert (tmp_path / "branches_bridge.json").exists()

        reopened = CommitStore.open(config, "bridge")
        assert reopened.get_commit("c1") is not None


class TestCorruptionPolicy:
    """손상된 히스토리 문서 처리 테스트"""

    def test_reads_return_empty_on_corruption(self, backend, store):
        backend.put_raw(HISTORY_KEY, "{broken")

        assert store.get_history() == []

    def test_abort_policy_refuses_to_overwrite(self, backend, store):
        backend.put_raw(HISTORY_KEY, "{broken")

        with pytest.raises(HistoryCorruptionError):
            store.append_commit(make_commit("c1", 0))

        assert backend.get_raw(HISTORY_KEY) == "{broken"
        assert not backend.exists(BRANCHES_KEY)

    def test_abort_policy_on_schema_violation(self, backend, store):
        backend.put_raw(HISTORY_KEY, json.dumps([{"commitId": "x"}]))

        with pytest.raises(HistoryCorruptionError):
            store.append_commit(make_commit("c1", 0))

    def test_reset_policy_overwrites_with_new_history(self, backend, config):
        store = CommitStore(backend, DATASET_ID, corruption_policy=CorruptionPolicy.RESET, config=config)
        backend.put_raw(HISTORY_KEY, "{broken")

        store.append_commit(make_commit("c1", 0))

        assert [c.commit_id for c in store.get_history()] == ["c1"]


class TestConcurrentWrites:
    """버전 충돌 재시도 테스트"""

    def test_interleaved_writer_is_not_lost(self, config):
        backend = InterleavingBackend()
        ours = CommitStore(backend, DATASET_ID, config=config)
        theirs = CommitStore(backend, DATASET_ID, config=config)

        ours.append_commit(make_commit("c1", 0))
        backend.interleave = lambda: theirs.append_commit(make_commit("t1", 1))

        ours.append_commit(make_commit("c2", 2, parent="c1"))

        assert {c.commit_id for c in ours.get_history()} == {"c1", "t1", "c2"}
        assert set(ours.get_branch("main").commits) == {"c1", "t1", "c2"}

    def test_gives_up_after_configured_retries(self, config):
        backend = AlwaysStaleBackend()
        store = CommitStore(backend, DATASET_ID, write_retries=2, config=config)

        with pytest.raises(StaleDocumentError):
            store.append_commit(make_commit("c1", 0))

        assert backend.attempts == 3
