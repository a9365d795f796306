"""
Tileset sources: upload summaries and line-delimited GeoJSON.

MTS expects a source file to hold one GeoJSON Feature per line.
"""

import json
from dataclasses import dataclass
from typing import Any, BinaryIO, Iterator

from mts_client.errors import ParseError, ValidationError

GEOMETRY_TYPES = (
    "Point",
    "MultiPoint",
    "LineString",
    "MultiLineString",
    "Polygon",
    "MultiPolygon",
)

# Extensions of files already in line-delimited form.
LINE_DELIMITED_EXTENSIONS = (".ldgeojson", ".geojsonl", ".geojsonld", ".geojsonseq", ".ndjson")


@dataclass(frozen=True)
class TilesetSourceSummary:
    """Summary returned after creating or replacing a tileset source."""

    file_size: int
    """Size in bytes of the uploaded file."""

    files: int
    """Number of files in the source."""

    id: str
    """Source URI, e.g. ``mapbox://tileset-source/{username}/{source_id}``."""

    source_size: int
    """Total size in bytes of all files in the source."""

    @classmethod
    def from_dict(cls, data: Any) -> "TilesetSourceSummary":
        if not isinstance(data, dict):
            raise ParseError(f"expected a JSON object, got {type(data).__name__}")
        try:
            return cls(
                file_size=int(data.get("file_size", 0)),
                files=int(data.get("files", 0)),
                id=str(data.get("id", "")),
                source_size=int(data.get("source_size", 0)),
            )
        except (TypeError, ValueError) as e:
            raise ParseError(f"malformed tileset source response: {e}") from e


def iter_features(geojson: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """
    Yield the features of any GeoJSON object.

    A FeatureCollection yields its features, a Feature yields itself, and
    geometries (including GeometryCollection members) are wrapped in
    Features with empty properties.
    """
    geojson_type = geojson.get("type")

    if geojson_type == "FeatureCollection":
        yield from geojson.get("features", [])
    elif geojson_type == "Feature":
        yield geojson
    elif geojson_type == "GeometryCollection":
        for geom in geojson.get("geometries", []):
            yield {"type": "Feature", "geometry": geom, "properties": {}}
    elif geojson_type in GEOMETRY_TYPES:
        yield {"type": "Feature", "geometry": geojson, "properties": {}}
    else:
        raise ValidationError(f"Invalid GeoJSON type: {geojson_type}")


def iter_feature_lines(geojson: dict[str, Any]) -> Iterator[bytes]:
    """Yield one newline-terminated, compact JSON line per feature."""
    for feature in iter_features(geojson):
        yield json.dumps(feature, separators=(",", ":"), ensure_ascii=False).encode("utf-8") + b"\n"


def write_feature_lines(geojson: dict[str, Any], fp: BinaryIO) -> int:
    """Write ``geojson`` to ``fp`` as line-delimited features; return the count."""
    count = 0
    for line in iter_feature_lines(geojson):
        fp.write(line)
        count += 1
    return count


def is_line_delimited(filename: str) -> bool:
    return filename.lower().endswith(LINE_DELIMITED_EXTENSIONS)
