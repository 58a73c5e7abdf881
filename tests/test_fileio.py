import json
import threading
from pathlib import Path

import pytest

from app.core import fileio
from app.core.fileio import DocumentReadError, JsonDocument, read_json_file, write_json_atomic


def test_write_json_atomic(tmp_path: Path):
    path = tmp_path / "nested" / "doc.json"
    write_json_atomic(path, {"ok": True})
    assert json.loads(path.read_text(encoding="utf-8")) == {"ok": True}
    assert not [p for p in path.parent.iterdir() if p.suffix == ".tmp"]


def test_read_json_file_defaults(tmp_path: Path):
    assert read_json_file(tmp_path / "missing.json", {"d": 1}) == {"d": 1}
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    assert read_json_file(broken, []) == []


def test_failed_update_leaves_document_untouched(tmp_path: Path):
    doc = JsonDocument(tmp_path / "doc.json", dict)
    doc.update(lambda d: d.update({"stable": True}))

    def _boom(data):
        data["stable"] = False
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        doc.update(_boom)
    assert doc.read() == {"stable": True}


def test_failed_write_does_not_corrupt(tmp_path: Path, monkeypatch):
    path = tmp_path / "doc.json"
    write_json_atomic(path, {"stable": True})

    def _boom(*_args, **_kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(fileio.json, "dump", _boom)
    with pytest.raises(OSError):
        write_json_atomic(path, {"new": "data"})
    assert json.loads(path.read_text(encoding="utf-8")) == {"stable": True}


def test_concurrent_updates_are_serialised(tmp_path: Path):
    doc = JsonDocument(tmp_path / "counter.json", lambda: {"count": 0})

    def _bump():
        for _ in range(20):
            doc.update(lambda d: d.update({"count": d["count"] + 1}))

    threads = [threading.Thread(target=_bump) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert doc.read()["count"] == 100


def test_strict_document_defaults_only_when_missing(tmp_path: Path):
    doc = JsonDocument(tmp_path / "store.json", lambda: {"rows": []}, strict=True)
    assert doc.read() == {"rows": []}
    doc.update(lambda d: d["rows"].append(1))
    assert doc.read() == {"rows": [1]}


@pytest.mark.parametrize("content", ['{"rows": [1, 2', "[1, 2]", ""])
def test_strict_document_refuses_damaged_file(tmp_path: Path, content: str):
    path = tmp_path / "store.json"
    path.write_text(content, encoding="utf-8")
    doc = JsonDocument(path, lambda: {"rows": []}, strict=True)

    with pytest.raises(DocumentReadError):
        doc.read()
    with pytest.raises(DocumentReadError):
        doc.update(lambda d: d["rows"].append(3))
    assert path.read_text(encoding="utf-8") == content
