"""Table loading and export with automatic encoding and delimiter detection.

CSV cells are typed on the way in: null tokens become ``None``, numeric
text becomes ``int``/``float`` and everything else stays a string.
"""

from __future__ import annotations

import csv
import io
import json
import logging
import math
import os
import re
from typing import Any, Optional

import chardet
import pandas as pd

from tableprep.models import Table, cell_text

logger = logging.getLogger(__name__)

NULL_TOKENS = frozenset(["", "null", "na", "n/a", "nan", "none"])

_INTEGER = re.compile(r"^[+-]?\d+$")
_DECIMAL = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")


def parse_cell(text: str) -> Any:
    """Type one raw text cell: null token, int, float or string."""
    value = text.strip()
    if value.lower() in NULL_TOKENS:
        return None
    if _INTEGER.match(value):
        return int(value)
    if _DECIMAL.match(value):
        return float(value)
    if value in ("Infinity", "-Infinity"):
        return float(value.replace("Infinity", "inf"))
    return value


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _detect_encoding(file_path: str) -> str:
    """Detect file encoding using chardet, falling back to utf-8."""
    try:
        with open(file_path, "rb") as f:
            raw = f.read()
    except OSError:
        return "utf-8"
    if not raw:
        return "utf-8"
    encoding = chardet.detect(raw).get("encoding")
    return encoding or "utf-8"


def _detect_delimiter(text: str) -> str:
    """Detect CSV delimiter using csv.Sniffer, falling back to comma."""
    try:
        dialect = csv.Sniffer().sniff(text[:8192], delimiters=",\t;|")
        return dialect.delimiter
    except csv.Error:
        return ","


def _read_with_encoding(file_path: str, encoding: str) -> Optional[str]:
    """Try reading a file with the given encoding. Returns text or None."""
    try:
        with open(file_path, "r", encoding=encoding) as f:
            return f.read()
    except (UnicodeDecodeError, LookupError):
        return None


def _try_parse(text: str, delimiter: str) -> Optional[pd.DataFrame]:
    """Parse CSV text into an all-string DataFrame, or None if pandas rejects it."""
    try:
        return pd.read_csv(
            io.StringIO(text),
            sep=delimiter,
            engine="python",
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, csv.Error) as exc:
        logger.debug("CSV parse with delimiter %r failed: %s", delimiter, exc)
        return None


def parse_csv_text(text: str) -> Table:
    """Parse CSV text into a typed table.

    Raises:
        ValueError: If the text cannot be parsed as CSV.
    """
    delimiter = _detect_delimiter(text)
    df = _try_parse(text, delimiter)
    if df is None:
        raise ValueError("Failed to parse CSV file")

    # A single wide column usually means the sniffer picked the wrong delimiter.
    if len(df.columns) == 1 and len(df) > 1:
        for alt_delim in ["\t", ";", "|", ","]:
            if alt_delim == delimiter:
                continue
            alt_df = _try_parse(text, alt_delim)
            if alt_df is not None and len(alt_df.columns) > 1:
                df = alt_df
                break

    columns = [str(c).strip() for c in df.columns]
    rows = [
        {
            col: parse_cell(value) if isinstance(value, str) else None
            for col, value in zip(columns, values)
        }
        for values in df.itertuples(index=False, name=None)
    ]
    return Table(columns=tuple(columns), rows=tuple(rows))


def _json_cell(value: Any) -> Any:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return None if isinstance(value, float) and math.isnan(value) else value
    if isinstance(value, str):
        return parse_cell(value)
    return json.dumps(value)


def parse_json_text(text: str) -> Table:
    """Parse a JSON array of records (or ``{"data": [...]}``) into a table.

    Raises:
        ValueError: If the text is not valid JSON or not a list of objects.
    """
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON format: {exc}") from exc
    if isinstance(parsed, dict):
        parsed = parsed.get("data", [parsed])
    if not isinstance(parsed, list) or not all(isinstance(r, dict) for r in parsed):
        raise ValueError("Invalid JSON format: expected a list of objects")
    records = [{str(k): _json_cell(v) for k, v in record.items()} for record in parsed]
    return Table.from_records(records)


def load_table(file_path: str) -> dict:
    """Load a CSV or JSON file into a table.

    Args:
        file_path: Path to a ``.csv``/``.tsv``/``.txt`` or ``.json`` file.

    Returns:
        dict with keys:
            - "table": Table or None
            - "error": Optional[str] error message if loading failed
    """
    if not os.path.exists(file_path):
        return {"table": None, "error": f"File not found: {file_path}"}

    if not os.path.isfile(file_path):
        return {"table": None, "error": f"Path is not a file: {file_path}"}

    try:
        if os.path.getsize(file_path) == 0:
            return {"table": None, "error": "File is empty"}
    except OSError as e:
        return {"table": None, "error": f"Cannot read file: {e}"}

    encoding = _detect_encoding(file_path)
    text = _read_with_encoding(file_path, encoding)
    if text is None:
        text = _read_with_encoding(file_path, "utf-8")
    if text is None:
        text = _read_with_encoding(file_path, "latin-1")
    if text is None:
        return {"table": None, "error": "Failed to decode file with any supported encoding"}

    text = text.lstrip("\ufeff")
    if not text.strip():
        return {"table": None, "error": "File is empty"}

    try:
        if file_path.lower().endswith(".json"):
            table = parse_json_text(text)
        else:
            table = parse_csv_text(text)
    except ValueError as exc:
        return {"table": None, "error": str(exc)}

    if len(table) == 0:
        return {"table": None, "error": "File contains only headers with no data rows"}

    logger.info(
        "Loaded %s: %d rows x %d columns (encoding %s)",
        file_path,
        len(table),
        len(table.columns),
        encoding,
    )
    return {"table": table, "error": None}


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------


def escape_csv_value(value: str) -> str:
    """Quote a field containing a comma, quote or newline; double inner quotes."""
    if "," in value or '"' in value or "\n" in value:
        return '"' + value.replace('"', '""') + '"'
    return value


def table_to_csv(table: Table) -> str:
    """Serialize a table to comma-separated text; None renders as an empty field."""
    lines = [",".join(escape_csv_value(col) for col in table.columns)]
    for row in table.rows:
        lines.append(
            ",".join(escape_csv_value(cell_text(row.get(col))) for col in table.columns)
        )
    return "\n".join(lines)


def write_csv(table: Table, file_path: str) -> str:
    """Write the table as CSV and return the path."""
    directory = os.path.dirname(file_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(file_path, "w", encoding="utf-8", newline="") as f:
        f.write(table_to_csv(table))
    return file_path


def _json_safe(value: Any) -> Any:
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return cell_text(value)


def table_to_json(table: Table, pretty: bool = True) -> str:
    """Serialize rows as a JSON array of objects in column order."""
    records = [
        {col: _json_safe(row.get(col)) for col in table.columns} for row in table.rows
    ]
    return json.dumps(records, indent=2 if pretty else None)
