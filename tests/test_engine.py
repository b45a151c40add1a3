import itertools
import json
import shutil
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from postman_sync.client import PostmanClient
from postman_sync.config import load_config
from postman_sync.errors import FilesystemError, UpstreamError
from postman_sync.sync.engine import Created, SyncEngine, SyncFailure, Updated

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def project(tmp_path):
    (tmp_path / "services").mkdir()
    return tmp_path


def _add_collection(project: Path, rel: str, fixture: str = "sample.postman_collection.json") -> str:
    dest = project / rel
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy(FIXTURES / fixture, dest)
    return rel


def _mock_client():
    client = MagicMock(spec=PostmanClient)
    counter = itertools.count(1)
    client.create_collection.side_effect = lambda collection, workspace_id="": f"uid-{next(counter)}"
    client.update_collection.side_effect = lambda uid, collection: uid
    return client


def _engine(project: Path, client, **kwargs) -> SyncEngine:
    config = load_config("PMAK-test", root=project, **kwargs)
    return SyncEngine(config, client=client)


def _read_map(project: Path) -> dict:
    return json.loads((project / "postman-map.json").read_text(encoding="utf-8"))


class TestSyncFile:
    def test_new_file_is_created_with_normalized_body(self, project):
        rel = _add_collection(project, "services/users/users.postman_collection.json")
        client = _mock_client()
        engine = _engine(project, client)
        engine.store.load()

        outcome = engine.sync_file(project / rel)

        assert outcome == Created(file=rel, uid="uid-1")
        sent = client.create_collection.call_args[0][0]
        assert "_postman_id" not in sent["info"]
        assert engine.store.get(rel).uid == "uid-1"

    def test_tracked_file_is_updated(self, project):
        rel = _add_collection(project, "services/users/users.postman_collection.json")
        (project / "postman-map.json").write_text(
            json.dumps({rel: {"file": rel, "uid": "known"}}), encoding="utf-8"
        )
        client = _mock_client()
        engine = _engine(project, client)
        engine.store.load()

        outcome = engine.sync_file(project / rel)

        assert outcome == Updated(file=rel, uid="known")
        client.update_collection.assert_called_once()
        assert client.update_collection.call_args[0][0] == "known"
        client.create_collection.assert_not_called()

    def test_workspace_only_on_create(self, project):
        rel = _add_collection(project, "services/users/users.postman_collection.json")
        client = _mock_client()
        engine = _engine(project, client, workspace_id="ws-1")
        engine.run()
        assert client.create_collection.call_args[1]["workspace_id"] == "ws-1"

        engine.run()
        assert client.update_collection.call_args[0][0] == _read_map(project)[rel]["uid"]
        assert "workspace_id" not in client.update_collection.call_args[1]


class TestRun:
    def test_create_then_update_converges(self, project):
        rel = _add_collection(project, "services/users/users.postman_collection.json")
        client = _mock_client()

        first = _engine(project, client).run()
        uid_after_first = _read_map(project)[rel]["uid"]
        second = _engine(project, client).run()

        assert first.results == [Created(file=rel, uid="uid-1")]
        assert second.results == [Updated(file=rel, uid="uid-1")]
        assert client.create_collection.call_count == 1
        assert client.update_collection.call_count == 1
        assert _read_map(project)[rel]["uid"] == uid_after_first == "uid-1"

    def test_missing_mapping_document_bootstrap(self, project):
        a = _add_collection(project, "services/a/a.postman_collection.json")
        b = _add_collection(project, "services/b/b.postman_collection.json", "wrapped.postman_collection.json")
        client = _mock_client()

        report = _engine(project, client).run()

        assert report.persisted
        assert len(report.created) == 2
        assert client.create_collection.call_count == 2
        client.update_collection.assert_not_called()
        mapping = _read_map(project)
        assert set(mapping) == {a, b}
        assert all(entry["uid"] for entry in mapping.values())
        assert all(entry["file"] == key for key, entry in mapping.items())

    def test_pruning_removes_stale_entries(self, project):
        rel = _add_collection(project, "services/a/a.postman_collection.json")
        gone = "services/old/old.postman_collection.json"
        (project / "postman-map.json").write_text(json.dumps({
            rel: {"file": rel, "uid": "u-a"},
            gone: {"file": gone, "uid": "u-old"},
        }), encoding="utf-8")
        engine = _engine(project, _mock_client())

        report = engine.run()

        assert report.pruned == [gone]
        assert report.persisted
        assert gone not in _read_map(project)
        assert rel in _read_map(project)

    def test_noop_run_still_updates_every_file(self, project):
        a = _add_collection(project, "services/a/a.postman_collection.json")
        b = _add_collection(project, "services/b/b.postman_collection.json")
        mapping = {
            a: {"file": a, "uid": "u-a"},
            b: {"file": b, "uid": "u-b"},
        }
        map_path = project / "postman-map.json"
        map_path.write_text(json.dumps(mapping, indent=2) + "\n", encoding="utf-8")
        before = map_path.read_text(encoding="utf-8")
        client = _mock_client()
        engine = _engine(project, client)

        report = engine.run()

        assert report.ok
        assert not report.persisted
        assert not engine.store.changed
        assert client.update_collection.call_count == 2
        client.create_collection.assert_not_called()
        assert map_path.read_text(encoding="utf-8") == before

    def test_entry_missing_file_still_updates(self, project):
        a = _add_collection(project, "services/a/a.postman_collection.json")
        b = _add_collection(project, "services/b/b.postman_collection.json")
        (project / "postman-map.json").write_text(json.dumps({
            a: {"file": a, "uid": "u-a"},
            b: {"uid": "u-b"},
        }), encoding="utf-8")
        client = _mock_client()

        report = _engine(project, client).run()

        assert report.results == [Updated(file=a, uid="u-a"), Updated(file=b, uid="u-b")]
        client.create_collection.assert_not_called()
        assert report.persisted
        assert _read_map(project) == {
            a: {"file": a, "uid": "u-a"},
            b: {"file": b, "uid": "u-b"},
        }

    def test_partial_failure_isolation(self, project):
        first = _add_collection(project, "services/a/a.postman_collection.json")
        second = _add_collection(project, "services/b/b.postman_collection.json")
        third = _add_collection(project, "services/c/c.postman_collection.json")
        client = MagicMock(spec=PostmanClient)
        client.create_collection.side_effect = [
            "uid-a",
            UpstreamError("POST", "https://api.getpostman.com/collections", 500, "Internal Server Error"),
            "uid-c",
        ]
        seen = []

        report = _engine(project, client).run(on_result=seen.append)

        assert not report.ok
        assert [r.file for r in report.results] == [first, second, third]
        assert report.results == seen
        failure = report.failures[0]
        assert isinstance(failure, SyncFailure)
        assert failure.file == second
        assert failure.status == 500
        mapping = _read_map(project)
        assert mapping[first]["uid"] == "uid-a"
        assert mapping[third]["uid"] == "uid-c"
        assert second not in mapping

    def test_null_uid_from_api_is_per_file(self, project):
        first = _add_collection(project, "services/a/a.postman_collection.json")
        second = _add_collection(project, "services/b/b.postman_collection.json")
        responses = iter([
            {"collection": {"uid": None}},
            {"collection": {"uid": "uid-b"}},
        ])

        def request(method, url, **kwargs):
            resp = MagicMock()
            resp.status_code = 200
            resp.text = "{}"
            resp.json.return_value = next(responses)
            return resp

        session = MagicMock()
        session.request.side_effect = request
        client = PostmanClient(api_key="PMAK-test", session=session)

        report = _engine(project, client).run()

        assert [r.file for r in report.failures] == [first]
        assert report.created == [Created(file=second, uid="uid-b")]
        assert _read_map(project) == {second: {"file": second, "uid": "uid-b"}}

    def test_parse_error_is_per_file(self, project):
        good = _add_collection(project, "services/a/a.postman_collection.json")
        bad = project / "services/b/b.postman_collection.json"
        bad.parent.mkdir(parents=True)
        bad.write_text("{broken", encoding="utf-8")
        client = _mock_client()

        report = _engine(project, client).run()

        assert len(report.failures) == 1
        assert report.failures[0].file == "services/b/b.postman_collection.json"
        assert report.failures[0].status is None
        assert "Invalid JSON" in report.failures[0].error
        assert _read_map(project)[good]["uid"] == "uid-1"
        assert client.create_collection.call_count == 1

    def test_bad_envelope_is_a_parse_failure(self, project):
        path = project / "services/a/a.postman_collection.json"
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"collection": "nope"}), encoding="utf-8")

        report = _engine(project, _mock_client()).run()

        assert len(report.failures) == 1

    def test_interrupted_run_writes_nothing(self, project):
        _add_collection(project, "services/a/a.postman_collection.json")
        _add_collection(project, "services/b/b.postman_collection.json")
        client = MagicMock(spec=PostmanClient)
        client.create_collection.side_effect = ["uid-a", KeyboardInterrupt()]

        with pytest.raises(KeyboardInterrupt):
            _engine(project, client).run()

        assert not (project / "postman-map.json").exists()

    def test_empty_services_dir_still_writes_mapping(self, project):
        report = _engine(project, _mock_client()).run()
        assert report.results == []
        assert report.persisted
        assert _read_map(project) == {}

    def test_missing_services_dir_is_fatal(self, tmp_path):
        client = _mock_client()
        with pytest.raises(FilesystemError):
            _engine(tmp_path, client).run()
        client.create_collection.assert_not_called()

    def test_custom_services_dir_and_map_file(self, project):
        rel = _add_collection(project, "collections/x.postman_collection.json")
        client = _mock_client()

        _engine(project, client, services_dir=Path("collections"), map_file=Path("meta/map.json")).run()

        mapping = json.loads((project / "meta/map.json").read_text(encoding="utf-8"))
        assert mapping == {rel: {"file": rel, "uid": "uid-1"}}
