from __future__ import annotations

import json
from pathlib import Path
from uuid import uuid4

import pytest

from localrag import cli
from localrag.config import Settings
from localrag.services.query import FALLBACK_ANSWER
from support import make_pdf, words


@pytest.fixture
def offline_settings(tmp_path: Path, monkeypatch) -> Settings:
    documents = tmp_path / "documents"
    documents.mkdir()
    settings = Settings(
        environment="test",
        chroma_url=None,
        chroma_persist_dir=tmp_path / "chroma",
        collection_name=f"cli-{uuid4().hex[:8]}",
        documents_dir=documents,
        use_model_embeddings=False,
        use_model_generator=False,
        embedding_dim=16,
    )
    monkeypatch.setattr(cli, "get_settings", lambda: settings)
    return settings


def test_ingest_then_query(offline_settings: Settings, capsys):
    make_pdf(offline_settings.documents_dir / "manual.pdf", [words(211)])

    assert cli.main(["ingest"]) == cli.EXIT_OK
    report = json.loads(capsys.readouterr().out)
    assert report["status"] == "completed"
    assert report["records_written"] >= 2

    assert cli.main(["ingest"]) == cli.EXIT_OK
    assert json.loads(capsys.readouterr().out)["status"] == "skipped_existing"

    assert cli.main(["query", "word0001", "--k", "2", "--mode", "retrieve"]) == cli.EXIT_OK
    payload = json.loads(capsys.readouterr().out)
    assert len(payload["results"]) == 2
    assert payload["results"][0]["source"] == "manual.pdf"


def test_query_on_empty_collection_prints_fallback(offline_settings: Settings, capsys):
    assert cli.main(["query", "What is the refund policy?"]) == cli.EXIT_OK
    payload = json.loads(capsys.readouterr().out)
    assert payload["answer"] == FALLBACK_ANSWER
    assert payload["results"] == []


def test_missing_documents_directory_fails(offline_settings: Settings, tmp_path: Path):
    assert cli.main(["ingest", "--documents-dir", str(tmp_path / "absent")]) == cli.EXIT_FAILURE


def test_empty_documents_directory_is_not_an_error(offline_settings: Settings, capsys):
    assert cli.main(["ingest"]) == cli.EXIT_OK
    assert json.loads(capsys.readouterr().out)["status"] == "no_documents"


def test_blank_question_is_usage_error(offline_settings: Settings):
    assert cli.main(["query", "   "]) == cli.EXIT_USAGE
