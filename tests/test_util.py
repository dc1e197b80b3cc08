from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

import pytest

from clustermap.util import ensure_directories, setup_logging, write_json


def test_write_json_creates_parents(tmp_path):
    target = tmp_path / "nested" / "out.json"
    write_json(target, {"b": 1, "a": "é"})

    text = target.read_text(encoding="utf-8")
    assert json.loads(text) == {"a": "é", "b": 1}
    assert text.index('"a"') < text.index('"b"')
    assert text.endswith("\n")


def test_ensure_directories(tmp_path):
    paths = [tmp_path / "build", tmp_path / "build" / "logs"]
    ensure_directories(paths)
    assert all(path.is_dir() for path in paths)


def test_setup_logging_writes_file(tmp_path):
    log_file = tmp_path / "logs" / "clustermap.log"
    root = logging.getLogger()
    previous = list(root.handlers)
    previous_level = root.level
    try:
        setup_logging(log_file, verbose=True)
        logging.getLogger("clustermap.test").debug("hello")
        for handler in root.handlers:
            handler.flush()

        assert root.level == logging.DEBUG
        assert " | DEBUG | clustermap.test | hello" in log_file.read_text(encoding="utf-8")
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers = previous
        root.setLevel(previous_level)


def test_write_json_serializes_datetimes_and_paths(tmp_path):
    target = tmp_path / "out.json"
    write_json(
        target,
        {"at": datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc), "file": tmp_path / "x.yaml", "ids": {3}},
    )

    payload = json.loads(target.read_text(encoding="utf-8"))
    assert payload == {"at": "2026-10-19T12:00:00+00:00", "file": str(tmp_path / "x.yaml"), "ids": [3]}


def test_write_json_rejects_unknown_objects(tmp_path):
    with pytest.raises(TypeError):
        write_json(tmp_path / "out.json", {"bad": object()})


def test_verbose_logging_keeps_third_party_quiet(tmp_path):
    root = logging.getLogger()
    previous = list(root.handlers)
    previous_level = root.level
    try:
        setup_logging(None, verbose=True)
        assert logging.getLogger("clustermap.controller").isEnabledFor(logging.DEBUG)
        assert not logging.getLogger("matplotlib.font_manager").isEnabledFor(logging.DEBUG)
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers = previous
        root.setLevel(previous_level)
        logging.getLogger("matplotlib").setLevel(logging.NOTSET)
