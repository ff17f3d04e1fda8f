"""
Repository 테스트

- 커밋 생성 (부모 연결, 작성자, 빈 커밋)
- 저장 실패 시 변경 유지
- 히스토리 조회 / 재생
- 데이터셋 전환 시 baseline 재구성
"""

import pytest

from modelgit.exceptions import CommitNotFoundError
from modelgit.storage import CommitStore, InMemoryBackend
from modelgit.versioning import ChangeType, InMemoryWorkspace, OperationStatus, Repository

from factories import DATASET_ID


class TypeErrorBackend(InMemoryBackend):
    """fail_writes 동안 쓰기에서 TypeError"""

    fail_writes = False

    def write(self, key, data, expected_version):
        if self.fail_writes:
            raise TypeError("Object of type object is not JSON serializable")
        return super().write(key, data, expected_version)


class OpaqueTransformWorkspace(InMemoryWorkspace):
    """호스트 전용 객체를 transform으로 반환"""

    def get_transform(self, obj):
        return object()


class TestCommit:
    """커밋 테스트"""

    def test_first_commit_is_root(self, repo, workspace):
        workspace.put("a", {"v": 1})

        result = repo.commit("first", author="kim")

        assert result.is_success
        commit = repo.store.get_commit(result.commit_id)
        assert commit.is_root
        assert commit.author == "kim"
        assert commit.branch_name == "main"
        assert [c.change_type for c in commit.changes] == [ChangeType.ADDED]

    def test_commits_chain_to_last_commit(self, repo, workspace):
        workspace.put("a", {"v": 1})
        first = repo.commit("first")
        workspace.put("a", {"v": 2})
        second = repo.commit("second")

        commit = repo.store.get_commit(second.commit_id)
        assert commit.parent_commit == first.commit_id
        assert commit.changes[0].change_type == ChangeType.MODIFIED

    def test_default_author(self, repo, workspace):
        workspace.put("a", {"v": 1})

        result = repo.commit("first")

        assert repo.store.get_commit(result.commit_id).author == "System"

    def test_empty_commit_allowed_by_default(self, repo):
        result = repo.commit("nothing")

        assert result.is_success
        assert repo.store.get_commit(result.commit_id).changes == []

    def test_empty_commit_rejected_when_disallowed(self, repo):
        result = repo.commit("nothing", allow_empty=False)

        assert result.status == OperationStatus.NO_CHANGES
        assert repo.store.get_history() == []

    def test_commit_ids_are_unique(self, repo, workspace):
        ids = set()
        for i in range(5):
            workspace.put("a", {"v": i})
            ids.add(repo.commit(f"commit {i}").commit_id)

        assert len(ids) == 5

    def test_timestamps_strictly_increase(self, repo, workspace, clock):
        clock.step = clock.step * 0
        repo.commit("one")
        repo.commit("two")

        history = repo.store.get_history()
        assert history[0].timestamp < history[1].timestamp

    def test_failed_save_keeps_changes_pending(self, repo, workspace, backend):
        backend.put_raw(repo.store.history_key, "{broken")
        workspace.put("a", {"v": 1})

        result = repo.commit("first")

        assert result.status == OperationStatus.FAILED
        assert repo.has_pending_changes()

    def test_unexpected_write_error_keeps_changes_pending(self, workspace, config, clock):
        backend = TypeErrorBackend()
        repo = Repository(workspace, CommitStore(backend, DATASET_ID, config=config), config, clock=clock)
        workspace.put("a", {"v": 1})
        backend.fail_writes = True

        result = repo.commit("first")

        assert result.status == OperationStatus.FAILED
        assert "not JSON serializable" in result.message
        assert repo.has_pending_changes()
        backend.fail_writes = False
        assert repo.commit("retry").is_success
        assert not repo.has_pending_changes()

    def test_host_transform_does_not_break_commit(self, config, clock, backend):
        workspace = OpaqueTransformWorkspace()
        repo = Repository(workspace, CommitStore(backend, DATASET_ID, config=config), config, clock=clock)
        workspace.put("a", {"v": 1})

        result = repo.commit("first")

        assert result.is_success
        assert repo.store.get_commit(result.commit_id).changes[0].transform is None
        assert not repo.has_pending_changes()

    def test_no_active_branch(self, repo):
        repo.active_branch = None

        assert repo.commit("first").status == OperationStatus.FAILED

    def test_commit_event_is_logged(self, repo, workspace):
        workspace.put("a", {"v": 1})
        result = repo.commit("first")

        events = repo.events.read_events()
        assert events[-1]["event_type"] == "commit_created"
        assert events[-1]["data"]["commit_id"] == result.commit_id


class TestBaseline:
    """baseline 테스트"""

    def test_initialize_baseline_from_workspace(self, repo, workspace):
        workspace.put("a", {"v": 1})
        workspace.put("b", {"v": 1})

        assert repo.initialize_baseline() == 2
        assert not repo.has_pending_changes()

    def test_status_does_not_consume_changes(self, repo, workspace):
        workspace.put("a", {"v": 1})

        assert repo.status().total_changes == 1
        assert repo.status().total_changes == 1

    def test_baselines_are_per_branch(self, repo, workspace):
        workspace.put("a", {"v": 1})
        repo.commit("first")

        assert repo.baseline("main")
        assert repo.baseline("feature") == {}

    def test_bind_to_other_dataset_rebuilds_baseline(self, repo, workspace, backend, config):
        workspace.put("a", {"v": 1})
        repo.baselines["feature"] = {"stale": "x"}

        assert repo.bind(CommitStore(backend, "other_model", config=config)) is True
        assert repo.dataset_id == "other_model"
        assert "feature" not in repo.baselines
        assert not repo.has_pending_changes()

    def test_bind_to_same_dataset_keeps_baseline(self, repo, backend, config):
        repo.baselines["main"] = {"a": "1"}

        assert repo.bind(CommitStore(backend, DATASET_ID, config=config)) is False
        assert repo.baselines["main"] == {"a": "1"}


class TestHistory:
    """히스토리 조회 / 재생 테스트"""

    def test_log_is_newest_first(self, repo):
        ids = [repo.commit(f"c{i}").commit_id for i in range(3)]

        assert [c.commit_id for c in repo.log()] == list(reversed(ids))
        assert len(repo.log(limit=2)) == 2

    def test_log_filters_branch(self, repo):
        repo.commit("main commit")
        repo.active_branch = "feature"
        feature = repo.commit("feature commit")

        assert [c.commit_id for c in repo.log(branch="feature")] == [feature.commit_id]
        assert len(repo.log()) == 2

    def test_replay_state_applies_deltas_in_order(self, repo, workspace):
        workspace.put("a", {"v": 1})
        workspace.put("b", {"v": 1})
        repo.commit("add a, b")
        workspace.put("a", {"v": 2})
        workspace.remove("b")
        workspace.put("c", {"v": 1})
        last = repo.commit("edit a, drop b, add c")

        state = repo.replay_state(last.commit_id)

        assert sorted(state) == ["a", "c"]
        assert state["a"].serialized_payload == workspace.serialize({"v": 2})
        assert all(c.change_type == ChangeType.ADDED for c in state.values())

    def test_replay_unknown_commit(self, repo):
        with pytest.raises(CommitNotFoundError):
            repo.replay_state("missing")
