"""Geospatial feature tools: grid cells, k-means clusters, hex-style bins.

Coordinates are read from a latitude and a longitude column; rows whose
coordinates are not both finite numbers get None in every derived column.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Iterable, Optional

import numpy as np

from tableprep.models import CleaningLogEntry, Table, cell_text, is_finite_number, round_half_up

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0

_LAT_TOKENS = {"lat", "latitude"}
_LON_TOKENS = {"lon", "lng", "long", "longitude"}


def _require(table: Table, *columns: str) -> None:
    for column in columns:
        if column not in table.columns:
            raise ValueError(f"Column '{column}' not found in table.")


def _coords(row: dict, lat_column: str, lon_column: str) -> Optional[tuple[float, float]]:
    lat, lon = row.get(lat_column), row.get(lon_column)
    if is_finite_number(lat) and is_finite_number(lon):
        return lat, lon
    return None


def detect_geo_columns(columns: Iterable[str]) -> dict[str, Optional[str]]:
    """Guess latitude/longitude columns from their names.

    A name matches when one of its word tokens is ``lat``/``latitude`` (or
    ``lon``/``lng``/``long``/``longitude``), or the whole name is ``y``
    (``x``). The first match wins.
    """
    lat_column = lon_column = None
    for col in columns:
        lowered = col.lower()
        tokens = set(re.split(r"[^a-z0-9]+", lowered))
        if lat_column is None and (tokens & _LAT_TOKENS or lowered == "y"):
            lat_column = col
        elif lon_column is None and (tokens & _LON_TOKENS or lowered == "x"):
            lon_column = col
    return {"lat_column": lat_column, "lon_column": lon_column}


def validate_geo_coordinates(table: Table, lat_column: str, lon_column: str) -> dict:
    """Count rows with usable coordinates; describe the first three bad ranges."""
    _require(table, lat_column, lon_column)
    valid = invalid = 0
    issues: list[str] = []
    for i, row in enumerate(table.rows):
        point = _coords(row, lat_column, lon_column)
        if point is None:
            invalid += 1
            continue
        lat, lon = point
        if not -90 <= lat <= 90:
            invalid += 1
            if invalid <= 3:
                issues.append(
                    f"Row {i}: Invalid latitude {cell_text(lat)} (must be between -90 and 90)"
                )
        elif not -180 <= lon <= 180:
            invalid += 1
            if invalid <= 3:
                issues.append(
                    f"Row {i}: Invalid longitude {cell_text(lon)} (must be between -180 and 180)"
                )
        else:
            valid += 1
    return {"valid": valid, "invalid": invalid, "issues": issues}


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


# ---------------------------------------------------------------------------
# Encoders
# ---------------------------------------------------------------------------


def grid_encode(
    table: Table, lat_column: str, lon_column: str, grid_size: float = 0.1
) -> tuple[Table, CleaningLogEntry]:
    """Add ``grid_lat``, ``grid_lon`` (floor of coordinate / size) and ``grid_id``."""
    _require(table, lat_column, lon_column)
    if grid_size <= 0:
        raise ValueError(f"Invalid grid size {grid_size}. Must be positive.")
    names = ["grid_lat", "grid_lon", "grid_id"]
    rows = []
    for row in table.rows:
        point = _coords(row, lat_column, lon_column)
        cells = [None, None, None]
        if point is not None:
            try:
                g_lat = math.floor(point[0] / grid_size)
                g_lon = math.floor(point[1] / grid_size)
            except (OverflowError, ValueError):
                logger.debug("Grid cell out of range for %r", point)
            else:
                cells = [g_lat, g_lon, f"{g_lat}_{g_lon}"]
        rows.append({**row, **dict(zip(names, cells))})

    log = CleaningLogEntry(
        operation="Grid Encoding",
        details=(
            f"Encoded coordinates to grid (size: {cell_text(float(grid_size))}°) - "
            f"created grid_lat, grid_lon, grid_id columns"
        ),
        rows_affected=len(table),
        category="feature",
    )
    return table.with_rows(rows, table.insert_columns(names)), log


def geo_cluster(
    table: Table,
    lat_column: str,
    lon_column: str,
    num_clusters: int = 5,
    max_iterations: int = 100,
    seed: int = 42,
) -> tuple[Table, list[tuple[float, float]], CleaningLogEntry]:
    """Seeded k-means over (lat, lon) using haversine distance.

    Initial centroids are ``num_clusters`` distinct points drawn with
    ``numpy.random.default_rng(seed)``. Iteration stops when assignments no
    longer change or after ``max_iterations`` rounds. With fewer valid
    points than clusters the table is returned unchanged.

    Returns:
        Tuple of (table with ``geo_cluster``, centroids as (lat, lon), log entry).
    """
    _require(table, lat_column, lon_column)
    if num_clusters < 1:
        raise ValueError(f"Invalid cluster count {num_clusters}. Must be at least 1.")

    points = []
    for index, row in enumerate(table.rows):
        point = _coords(row, lat_column, lon_column)
        if point is not None:
            points.append((index, point[0], point[1]))

    if len(points) < num_clusters:
        logger.warning(
            "Geo clustering skipped: %d valid points for %d clusters", len(points), num_clusters
        )
        log = CleaningLogEntry(
            operation="Geo Clustering",
            details=f"Not enough valid coordinates ({len(points)}) for {num_clusters} clusters",
            rows_affected=0,
            category="feature",
        )
        return table, [], log

    rng = np.random.default_rng(seed)
    chosen = rng.permutation(len(points))[:num_clusters]
    centroids = [(points[i][1], points[i][2]) for i in chosen]
    assignments = [-1] * len(points)

    for _ in range(max_iterations):
        updated = []
        for _, lat, lon in points:
            distances = [haversine_distance(lat, lon, c_lat, c_lon) for c_lat, c_lon in centroids]
            updated.append(int(np.argmin(distances)))
        if updated == assignments:
            break
        assignments = updated
        for ci in range(num_clusters):
            members = [p for p, a in zip(points, assignments) if a == ci]
            if members:
                centroids[ci] = (
                    sum(p[1] for p in members) / len(members),
                    sum(p[2] for p in members) / len(members),
                )

    by_row = {p[0]: a for p, a in zip(points, assignments)}
    rows = [{**row, "geo_cluster": by_row.get(i)} for i, row in enumerate(table.rows)]
    log = CleaningLogEntry(
        operation="Geo Clustering",
        details=f"Created {num_clusters} geographic clusters using K-means",
        rows_affected=len(points),
        category="feature",
    )
    return table.with_rows(rows, table.insert_columns(["geo_cluster"])), centroids, log


def hex_cell(lat: float, lon: float, resolution: int) -> tuple[int, int]:
    """Approximate hex cell: columns of width 1.5*size, odd columns shifted half a cell."""
    size = 0.01 * 2 ** (10 - resolution)
    hex_lon = math.floor(lon / (size * 1.5))
    offset = 0 if hex_lon % 2 == 0 else 0.5
    hex_lat = math.floor(lat / size + offset)
    return hex_lat, hex_lon


def hex_encode(
    table: Table, lat_column: str, lon_column: str, resolution: int = 7
) -> tuple[Table, CleaningLogEntry]:
    """Add ``hex_id``, ``hex_lat`` and ``hex_lon``; lower resolution means larger cells."""
    _require(table, lat_column, lon_column)
    names = ["hex_id", "hex_lat", "hex_lon"]
    rows = []
    for row in table.rows:
        point = _coords(row, lat_column, lon_column)
        cells = [None, None, None]
        if point is not None:
            try:
                h_lat, h_lon = hex_cell(point[0], point[1], resolution)
            except (OverflowError, ValueError):
                logger.debug("Hex cell out of range for %r", point)
            else:
                cells = [f"h{resolution}_{h_lat}_{h_lon}", h_lat, h_lon]
        rows.append({**row, **dict(zip(names, cells))})

    log = CleaningLogEntry(
        operation="Hexagonal Encoding",
        details=(
            f"Encoded coordinates to hex grid (resolution: {resolution}) - "
            f"created hex_id, hex_lat, hex_lon columns"
        ),
        rows_affected=len(table),
        category="feature",
    )
    return table.with_rows(rows, table.insert_columns(names)), log


# ---------------------------------------------------------------------------
# Reference-point features
# ---------------------------------------------------------------------------


def bearing(lat: float, lon: float, ref_lat: float, ref_lon: float) -> float:
    """Initial bearing from (lat, lon) towards the reference point, 0-360 degrees."""
    d_lon = math.radians(ref_lon - lon)
    y = math.sin(d_lon) * math.cos(math.radians(ref_lat))
    x = math.cos(math.radians(lat)) * math.sin(math.radians(ref_lat)) - math.sin(
        math.radians(lat)
    ) * math.cos(math.radians(ref_lat)) * math.cos(d_lon)
    return (math.degrees(math.atan2(y, x)) + 360) % 360


def _reference_feature(
    table: Table,
    lat_column: str,
    lon_column: str,
    feature_name: str,
    compute,
) -> Table:
    _require(table, lat_column, lon_column)
    rows = []
    for row in table.rows:
        point = _coords(row, lat_column, lon_column)
        rows.append({**row, feature_name: None if point is None else compute(*point)})
    return table.with_rows(rows, table.insert_columns([feature_name]))


def add_distance_feature(
    table: Table,
    lat_column: str,
    lon_column: str,
    ref_lat: float,
    ref_lon: float,
    feature_name: str = "distance_to_ref",
) -> tuple[Table, CleaningLogEntry]:
    """Haversine distance (km, 2 decimals) to a reference point."""
    result = _reference_feature(
        table,
        lat_column,
        lon_column,
        feature_name,
        lambda lat, lon: round_half_up(haversine_distance(lat, lon, ref_lat, ref_lon), 2),
    )
    log = CleaningLogEntry(
        operation="Distance Feature",
        details=(
            f"Added distance to reference point ({cell_text(ref_lat)}, {cell_text(ref_lon)}) "
            f'as "{feature_name}"'
        ),
        rows_affected=len(table),
        category="feature",
    )
    return result, log


def add_bearing_feature(
    table: Table,
    lat_column: str,
    lon_column: str,
    ref_lat: float,
    ref_lon: float,
    feature_name: str = "bearing_to_ref",
) -> tuple[Table, CleaningLogEntry]:
    """Bearing (degrees, 1 decimal) towards a reference point."""
    result = _reference_feature(
        table,
        lat_column,
        lon_column,
        feature_name,
        lambda lat, lon: round_half_up(bearing(lat, lon, ref_lat, ref_lon), 1),
    )
    log = CleaningLogEntry(
        operation="Bearing Feature",
        details=(
            f"Added bearing to reference point ({cell_text(ref_lat)}, {cell_text(ref_lon)}) "
            f'as "{feature_name}"'
        ),
        rows_affected=len(table),
        category="feature",
    )
    return result, log
