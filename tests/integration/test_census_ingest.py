"""Integration tests for the ingest workflow against an in-memory client."""

from __future__ import annotations

import json
from dataclasses import replace
from typing import Any

from census import CensusClient, CensusConfig, IngestOptions
from tests.fixture_paths import fixture_path


class _InMemoryIndices:
    def __init__(self) -> None:
        self.templates: dict[str, Any] = {}
        self.settings: dict[str, Any] = {}

    def put_index_template(self, name: str, body: Any, create: bool) -> dict[str, Any]:
        self.templates[name] = body
        return {"acknowledged": True}

    def create(self, index: str, body: Any) -> dict[str, Any]:
        self.settings[index] = dict(body["settings"])
        return {"acknowledged": True}

    def put_settings(self, index: str, body: Any) -> dict[str, Any]:
        self.settings[index].update(body["index"])
        return {"acknowledged": True}


class _InMemoryOpenSearch:
    """Client double that applies bulk index actions to a dict."""

    def __init__(self) -> None:
        self.indices = _InMemoryIndices()
        self.documents: dict[str, dict[str, Any]] = {}
        self.bulk_requests = 0

    def bulk(self, body: str) -> dict[str, Any]:
        self.bulk_requests += 1
        lines = body.strip().split("\n")
        items = []
        for action_line, source_line in zip(lines[::2], lines[1::2]):
            action = json.loads(action_line)["index"]
            self.documents[action["_id"]] = json.loads(source_line)
            items.append({"index": {"_id": action["_id"], "status": 201}})
        return {"errors": False, "items": items}


def test_ingest_is_idempotent_across_reruns(monkeypatch) -> None:
    """Re-ingesting the same source should upsert, not duplicate."""
    fake_client = _InMemoryOpenSearch()
    monkeypatch.setattr(
        "ingest.pipeline.create_opensearch_client", lambda config: fake_client
    )
    config = replace(
        CensusConfig.from_env(load_dotenv_file=False),
        opensearch_index="people-integration",
        ingest_batch_size=1000,
    )
    client = CensusClient(config)
    options = IngestOptions(source_uri=str(fixture_path("people/people_objects.ndjson")))

    first = client.ingest(options)
    documents_after_first = dict(fake_client.documents)
    second = client.ingest(options)

    assert first.processed == second.processed == 4
    assert set(fake_client.documents) == set(documents_after_first)
    assert "people_v1" in fake_client.indices.templates
    assert fake_client.indices.settings["people-integration"] == {
        "number_of_shards": 6,
        "number_of_replicas": 1,
        "refresh_interval": "1s",
    }
