"""Tests for the CLI module."""

import json
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from conftest import FakeSession
from mts_client.cli import main
from mts_client.client import Client

ENV = {"MAPBOX_ACCESS_TOKEN": "test-token", "MAPBOX_USERNAME": "alice"}
NO_CREDENTIALS = {"MAPBOX_ACCESS_TOKEN": None, "MAPBOX_USERNAME": None}

FEATURE_COLLECTION = {
    "type": "FeatureCollection",
    "features": [
        {"type": "Feature", "geometry": {"type": "Point", "coordinates": [0, 0]}, "properties": {}},
        {"type": "Feature", "geometry": {"type": "Point", "coordinates": [1, 1]}, "properties": {}},
    ],
}


@pytest.fixture
def fake_api(session: FakeSession):
    """Route clients built by the CLI to the fake session."""

    def build(*args: Any, **kwargs: Any) -> Client:
        return Client(*args, session=session, **kwargs)

    with patch("mts_client.cli.Client", side_effect=build):
        yield session


def invoke(args: list[str], env: dict[str, Any] | None = None, **kwargs: Any):
    return CliRunner().invoke(main, args, env=env if env is not None else ENV, **kwargs)


class TestCLI:
    """Test CLI help and informational commands."""

    def test_help(self) -> None:
        result = invoke(["--help"])
        assert result.exit_code == 0
        assert "MTS client" in result.output
        assert "upload-source" in result.output
        assert "publish" in result.output
        assert "Examples" in result.output

    def test_version(self) -> None:
        result = invoke(["--version"])
        assert result.exit_code == 0
        assert "mts-client" in result.output

    def test_info_command(self) -> None:
        result = invoke(["info"])
        assert result.exit_code == 0
        assert "CONFIGURATION" in result.output
        assert "MAPBOX_ACCESS_TOKEN" in result.output

    def test_upload_help(self) -> None:
        result = invoke(["upload", "--help"])
        assert result.exit_code == 0
        for option in ("--id", "--name", "--source-id", "--recipe", "--wait", "--token"):
            assert option in result.output

    def test_missing_token(self) -> None:
        result = invoke(["list-tilesets"], env=NO_CREDENTIALS)
        assert result.exit_code != 0
        assert "access token required" in result.output

    def test_missing_username(self) -> None:
        result = invoke(["list-tilesets", "--token", "tk"], env=NO_CREDENTIALS)
        assert result.exit_code != 0
        assert "username required" in result.output


class TestUploadSource:
    """Test the upload-source command."""

    def test_feature_collection_is_line_delimited(self, fake_api: FakeSession, tmp_path: Path) -> None:
        path = tmp_path / "points.geojson"
        path.write_text(json.dumps(FEATURE_COLLECTION), encoding="utf-8")
        fake_api.queue(
            200,
            {"file_size": 100, "files": 1, "id": "mapbox://tileset-source/alice/pts", "source_size": 100},
        )

        result = invoke(["upload-source", "pts", str(path)])

        assert result.exit_code == 0, result.output
        assert "mapbox://tileset-source/alice/pts" in result.output
        body = fake_api.calls[0].body
        assert body.count(b'{"type":"Feature"') == 2
        assert fake_api.calls[0].url.endswith("/tilesets/v1/sources/alice/pts")

    def test_line_delimited_sent_as_is(self, fake_api: FakeSession, tmp_path: Path) -> None:
        content = b'{"type":"Feature","geometry":null,"properties":{"a":1}}\n'
        path = tmp_path / "points.ldgeojson"
        path.write_bytes(content)
        fake_api.queue(200, {"file_size": 1, "files": 1, "id": "x", "source_size": 1})

        result = invoke(["upload-source", "pts", str(path)])

        assert result.exit_code == 0, result.output
        assert content in fake_api.calls[0].body

    def test_server_error(self, fake_api: FakeSession, tmp_path: Path) -> None:
        path = tmp_path / "points.ldgeojson"
        path.write_bytes(b"{}\n")
        fake_api.queue(500, {})

        result = invoke(["upload-source", "pts", str(path)])

        assert result.exit_code == 1
        assert "non-200 response: 500" in result.output


class TestTilesetCommands:
    """Test upsert, publish and status commands."""

    def test_upsert_builds_recipe(self, fake_api: FakeSession) -> None:
        fake_api.queue(200, {})

        result = invoke(["upsert", "roads", "--max-zoom", "14"])

        assert result.exit_code == 0, result.output
        body = fake_api.calls[0].json()
        assert body["recipe"]["layers"]["data"]["source"] == "mapbox://tileset-source/alice/roads"
        assert body["recipe"]["layers"]["data"]["maxzoom"] == 14
        assert "alice.roads" in result.output

    def test_upsert_with_recipe_file(self, fake_api: FakeSession, tmp_path: Path) -> None:
        recipe = {"version": 1, "layers": {"r": {"source": "s", "minzoom": 0, "maxzoom": 3}}}
        path = tmp_path / "recipe.json"
        path.write_text(json.dumps(recipe), encoding="utf-8")
        fake_api.queue(400, {"message": "Tileset alice.roads already exists"})
        fake_api.queue(204)

        result = invoke(["upsert", "roads", "--recipe", str(path)])

        assert result.exit_code == 0, result.output
        assert fake_api.calls[1].json() == recipe

    def test_update_recipe_error(self, fake_api: FakeSession, tmp_path: Path) -> None:
        path = tmp_path / "recipe.json"
        path.write_text("{}", encoding="utf-8")
        fake_api.queue(400, {"message": "Invalid recipe", "errors": ["no layers"]})

        result = invoke(["update-recipe", "roads", str(path)])

        assert result.exit_code == 1
        assert "Invalid recipe, errors: no layers" in result.output

    def test_publish_and_wait(self, fake_api: FakeSession) -> None:
        fake_api.queue(200, {"message": "Processing", "jobId": "job-1"})
        fake_api.queue(200, {"id": "job-1", "stage": "processing"})
        fake_api.queue(200, {"id": "job-1", "stage": "success"})

        result = invoke(["publish", "roads", "--wait", "--interval", "0"])

        assert result.exit_code == 0, result.output
        assert "job-1" in result.output
        assert "Stage: processing" in result.output
        assert "Published alice.roads" in result.output

    def test_publish_job_failed(self, fake_api: FakeSession) -> None:
        fake_api.queue(200, {"jobId": "job-1"})
        fake_api.queue(200, {"id": "job-1", "stage": "failed", "errors": ["bad geometry"]})

        result = invoke(["publish", "roads", "--wait", "--interval", "0"])

        assert result.exit_code == 1
        assert "bad geometry" in result.output

    def test_publish_not_found(self, fake_api: FakeSession) -> None:
        fake_api.queue(404)

        result = invoke(["publish", "roads"])

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_publish_without_job_id(self, fake_api: FakeSession) -> None:
        fake_api.queue(200, {"message": "Processing"})

        result = invoke(["publish", "roads", "--wait"])

        assert result.exit_code == 0, result.output
        assert "no job id" in result.output
        assert len(fake_api.calls) == 1

    def test_status(self, fake_api: FakeSession) -> None:
        fake_api.queue(
            200,
            {"id": "job-1", "stage": "queued", "tileset_id": "alice.roads", "layer_stats": {}},
        )

        result = invoke(["status", "roads", "job-1"])

        assert result.exit_code == 0, result.output
        assert "Stage: queued" in result.output
        assert fake_api.calls[0].url.endswith("/alice.roads/jobs/job-1")


class TestUploadCommand:
    """Test the full upload command."""

    def test_upload(self, fake_api: FakeSession, tmp_path: Path) -> None:
        path = tmp_path / "points.geojson"
        path.write_text(json.dumps(FEATURE_COLLECTION), encoding="utf-8")
        fake_api.queue(200, {"file_size": 10, "files": 1, "id": "mapbox://tileset-source/alice/pts", "source_size": 10})
        fake_api.queue(200, {})
        fake_api.queue(200, {"jobId": "job-9"})

        result = invoke(["upload", str(path), "--id", "pts", "--name", "Points"])

        assert result.exit_code == 0, result.output
        assert [c.method for c in fake_api.calls] == ["PUT", "POST", "PATCH"]
        assert fake_api.calls[1].json()["name"] == "Points"
        assert "job-9" in result.output

    def test_upload_invalid_geojson(self, fake_api: FakeSession, tmp_path: Path) -> None:
        path = tmp_path / "bad.geojson"
        path.write_text("{not json", encoding="utf-8")

        result = invoke(["upload", str(path), "--id", "pts", "--name", "Points"])

        assert result.exit_code == 1
        assert fake_api.calls == []


class TestListAndDeleteCommands:
    """Test list-* and delete-* commands."""

    def test_list_sources(self, fake_api: FakeSession) -> None:
        fake_api.queue(200, [{"id": "mapbox://tileset-source/alice/a", "size": 12}])

        result = invoke(["list-sources"])

        assert result.exit_code == 0, result.output
        assert "mapbox://tileset-source/alice/a (12 bytes)" in result.output

    def test_list_tilesets_empty(self, fake_api: FakeSession) -> None:
        fake_api.queue(200, [])

        result = invoke(["list-tilesets"])

        assert result.exit_code == 0
        assert "No tilesets found" in result.output

    def test_delete_source_confirmed(self, fake_api: FakeSession) -> None:
        fake_api.queue(204)

        result = invoke(["delete-source", "a", "--yes"])

        assert result.exit_code == 0, result.output
        assert fake_api.calls[0].method == "DELETE"

    def test_delete_tileset_aborted(self, fake_api: FakeSession) -> None:
        result = invoke(["delete-tileset", "roads"], input="n\n")

        assert result.exit_code != 0
        assert fake_api.calls == []

    def test_delete_missing_tileset(self, fake_api: FakeSession) -> None:
        fake_api.queue(404)

        result = invoke(["delete-tileset", "roads", "--yes"])

        assert result.exit_code == 1
        assert "not found" in result.output
