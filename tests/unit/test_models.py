"""
데이터 모델 / 스키마 테스트

- ChangeType 정규화
- Commit / Branch 직렬화
- 영속 문서 스키마 (camelCase, PascalCase 호환, 타임스탬프)
- 워크스페이스 직렬화 왕복
"""

from datetime import datetime

import pytest

from modelgit.exceptions import HistoryCorruptionError, UnknownChangeTypeError
from modelgit.storage.schemas import dump_history, parse_branches, parse_history
from modelgit.versioning import (
    Branch,
    ChangeType,
    InMemoryWorkspace,
    latest_commit,
    sort_by_timestamp,
)

from factories import at, change, make_commit


class TestChangeType:
    """changeType 태그 테스트"""

    @pytest.mark.parametrize("tag", ["Added", "added", "ADDED", " Added "])
    def test_parse_is_case_insensitive(self, tag):
        assert ChangeType.parse(tag) == ChangeType.ADDED

    def test_parse_rejects_unknown_tag(self):
        with pytest.raises(UnknownChangeTypeError):
            ChangeType.parse("Renamed")

    def test_unknown_tag_is_value_error(self):
        with pytest.raises(ValueError):
            ChangeType.parse(None)


class TestCommitModel:
    """Commit / Branch 모델 테스트"""

    def test_commit_to_dict_uses_document_field_names(self):
        commit = make_commit("c1", 0, [change("a", "{}")], parent="c0")
        data = commit.to_dict()

        assert set(data) == {
            "commitId", "changes", "timestamp", "message",
            "branchName", "parentCommit", "author",
        }
        assert data["changes"][0] == {
            "id": "a",
            "changeType": "Added",
            "serializedPayload": "{}",
            "transform": None,
        }

    def test_change_counts(self):
        commit = make_commit("c1", 0, [
            change("a", "1"),
            change("b", "2", ChangeType.MODIFIED),
            change("c", "3", ChangeType.DELETED),
            change("d", "4"),
        ])

        assert commit.change_counts == {"Added": 2, "Modified": 1, "Deleted": 1}

    def test_root_commit(self):
        assert make_commit("c1", 0).is_root
        assert not make_commit("c2", 1, parent="c1").is_root

    def test_branch_add_commit_is_idempotent(self):
        branch = Branch(name="main")

        assert branch.add_commit("c1") is True
        assert branch.add_commit("c1") is False
        assert branch.commits == ["c1"]

    def test_latest_commit_uses_timestamp_not_position(self):
        commits = [make_commit("late", 10), make_commit("early", 1)]

        assert latest_commit(commits).commit_id == "late"
        assert [c.commit_id for c in sort_by_timestamp(commits)] == ["early", "late"]

    def test_latest_commit_tie_prefers_later_entry(self):
        commits = [make_commit("first", 5), make_commit("second", 5)]

        assert latest_commit(commits).commit_id == "second"

    def test_latest_commit_of_empty_list(self):
        assert latest_commit([]) is None


class TestHistorySchema:
    """히스토리 문서 스키마 테스트"""

    def test_roundtrip_through_document(self):
        commits = [
            make_commit("c1", 0, [change("a", '{"x":1}')]),
            make_commit("c2", 1, [change("a", '{"x":2}', ChangeType.MODIFIED)], parent="c1"),
        ]

        parsed = parse_history(dump_history(commits))

        assert [c.to_dict() for c in parsed] == [c.to_dict() for c in commits]

    def test_accepts_legacy_pascal_case_document(self):
        data = [{
            "CommitId": "abc",
            "Changes": [{
                "Id": "3f2504e0-4f89-11d3-9a0c-0305e82c3301",
                "ChangeType": "Modified",
                "SerializedGeometry": "geom",
            }],
            "Timestamp": "2024-01-01T09:00:00+00:00",
            "Message": "legacy",
            "BranchName": "main",
            "ParentCommit": None,
            "Author": "kim",
        }]

        commit = parse_history(data)[0]

        assert commit.commit_id == "abc"
        assert commit.parent_commit == ""
        assert commit.changes[0].change_type == ChangeType.MODIFIED
        assert commit.changes[0].serialized_payload == "geom"

    def test_numeric_object_id_is_coerced_to_string(self):
        data = [{"commitId": "c1", "timestamp": "2024-01-01T09:00:00+00:00",
                 "changes": [{"id": 42, "changeType": "Added"}]}]

        assert parse_history(data)[0].changes[0].id == "42"

    def test_null_changes_become_empty(self):
        data = [{"commitId": "c1", "timestamp": "2024-01-01T09:00:00+00:00", "changes": None}]

        assert parse_history(data)[0].changes == []

    def test_naive_timestamp_becomes_aware(self):
        data = [{"commitId": "c1", "timestamp": "2024-01-01T09:00:00"}]

        timestamp = parse_history(data)[0].timestamp

        assert timestamp.tzinfo is not None
        assert timestamp.replace(tzinfo=None) == datetime(2024, 1, 1, 9, 0, 0)

    def test_mixed_naive_and_aware_timestamps_are_comparable(self):
        data = [
            {"commitId": "c1", "timestamp": "2024-01-01T09:00:00"},
            {"commitId": "c2", "timestamp": at(0).isoformat()},
        ]

        assert len(sort_by_timestamp(parse_history(data))) == 2

    def test_unknown_change_type_makes_document_unreadable(self):
        data = [{"commitId": "c1", "timestamp": "2024-01-01T09:00:00+00:00",
                 "changes": [{"id": "a", "changeType": "Moved"}]}]

        with pytest.raises(HistoryCorruptionError):
            parse_history(data, key="model_history_x.json")

    def test_missing_document_is_empty(self):
        assert parse_history(None) == []
        assert parse_branches(None) == []

    def test_non_list_document_is_corrupt(self):
        with pytest.raises(HistoryCorruptionError):
            parse_history({"commitId": "c1"})

    def test_branch_catalog_accepts_both_casings(self):
        branches = parse_branches([
            {"name": "main", "commits": ["c1"]},
            {"Name": "feature", "Commits": None},
        ])

        assert [(b.name, b.commits) for b in branches] == [("main", ["c1"]), ("feature", [])]


class TestWorkspaceSerialization:
    """워크스페이스 직렬화 왕복 테스트"""

    @pytest.mark.parametrize("obj", [
        {},
        {"type": "beam", "length": 6.0},
        {"points": [[0, 0, 0], [1, 2, 3]], "closed": True},
        {"name": "슬래브", "meta": {"layer": None, "tags": ["a", "b"]}},
    ])
    def test_deserialize_reproduces_object(self, obj):
        workspace = InMemoryWorkspace()

        assert workspace.deserialize(workspace.serialize(obj)) == obj

    def test_serialization_is_canonical(self):
        workspace = InMemoryWorkspace()

        assert workspace.serialize({"b": 1, "a": 2}) == workspace.serialize({"a": 2, "b": 1})
