from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
import yaml
from fastapi.testclient import TestClient

from serve_markdown.dependencies import reset_cached_dependencies
from serve_markdown.main import create_app
from serve_markdown.repositories.database import Database

SITE_URL = "https://example.test"

CONTENT_DOCUMENTS: tuple[dict[str, Any], ...] = (
    {
        "id": 7,
        "path": "/hello-world/",
        "title": "Hi",
        "html": "<p>Hello <strong>World</strong></p>",
        "type": "post",
        "status": "publish",
        "excerpt": "<p>A short greeting.</p>",
        "author": {"name": "Ada", "url": "https://example.test/author/ada/"},
        "date": "2024-03-01T09:30:00+00:00",
        "modified": "2024-03-02T10:00:00+00:00",
        "categories": [{"id": 3, "name": "News"}],
        "tags": [{"id": 11, "name": "greeting"}],
        "image": "https://example.test/hello.png",
        "meta": {"reading_time": 2},
    },
    {
        "id": 8,
        "path": "/about/",
        "title": "About",
        "html": "<p>About this site.</p>",
        "type": "page",
    },
    {
        "id": 9,
        "path": "/members-only/",
        "title": "Members",
        "html": "<p>Secret.</p>",
        "password": "hunter2",
    },
    {
        "id": 10,
        "path": "/products/widget/",
        "title": "Widget",
        "html": "<p>Buy it.</p>",
        "type": "product",
    },
)


def write_content_documents(content_dir: Path, documents: tuple[dict[str, Any], ...]) -> None:
    content_dir.mkdir(parents=True, exist_ok=True)
    for document in documents:
        path = content_dir / f"item-{document['id']}.yaml"
        path.write_text(yaml.safe_dump(document, sort_keys=False), encoding="utf-8")


@pytest.fixture
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "state.db")
    db.initialize()
    return db


@pytest.fixture
def content_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "content"
    write_content_documents(directory, CONTENT_DOCUMENTS)
    return directory


@pytest.fixture
def data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    runtime_dir = tmp_path / "runtime-data"
    write_content_documents(runtime_dir / "content", CONTENT_DOCUMENTS)

    monkeypatch.setenv("SERVE_MARKDOWN_DATA_DIR", str(runtime_dir))
    monkeypatch.setenv("SERVE_MARKDOWN_SITE_URL", SITE_URL)
    monkeypatch.setenv("SERVE_MARKDOWN_TELEMETRY_SINK", "log")
    reset_cached_dependencies()

    yield runtime_dir

    reset_cached_dependencies()


@pytest.fixture
def client(data_dir: Path) -> Iterator[TestClient]:
    _ = data_dir
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client
