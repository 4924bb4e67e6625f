"""Reads lead records from JSON or CSV files for the CLI."""

import csv
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List

from leadsight.domain.models.errors import LeadFileError
from leadsight.domain.models.insights import LeadRecord

logger = logging.getLogger(__name__)

LEAD_FIELDS = ('name', 'role', 'company', 'location', 'description')
COLUMN_ALIASES = {
    'title': 'role',
    'job title': 'role',
    'position': 'role',
    'company name': 'company',
    'organization': 'company',
    'full name': 'name',
}
SUPPORTED_SUFFIXES = ('.json', '.csv')


def _normalize(row: Dict[str, Any]) -> LeadRecord:
    record: Dict[str, str] = {}
    for key, value in row.items():
        if key is None or value is None:
            continue
        column = str(key).strip().lower()
        column = COLUMN_ALIASES.get(column, column)
        text = str(value).strip()
        if column in LEAD_FIELDS and text and column not in record:
            record[column] = text
    return LeadRecord(**record)


def _valid(records: Iterable[LeadRecord]) -> List[LeadRecord]:
    return [r for r in records if r.get('name')]


def load_leads(path: Path) -> List[LeadRecord]:
    """Loads leads from a .json (array of objects) or .csv file.

    Rows without a name are skipped.

    Raises:
        LeadFileError: Unsupported type, unreadable file, or no valid rows.
    """
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise LeadFileError(f"Unsupported file type '{suffix}'. Use a .json or .csv file.")

    try:
        if suffix == '.json':
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if not isinstance(data, list):
                raise LeadFileError("JSON lead file must contain an array of objects.")
            rows = [_normalize(item) for item in data if isinstance(item, dict)]
        else:
            with open(path, 'r', encoding='utf-8-sig', newline='') as f:
                rows = [_normalize(row) for row in csv.DictReader(f)]
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, csv.Error) as e:
        raise LeadFileError(f"Could not read lead file {path}: {e}") from e

    leads = _valid(rows)
    skipped = len(rows) - len(leads)
    if skipped:
        logger.warning(f"Skipped {skipped} row(s) without a name in {path}")
    if not leads:
        raise LeadFileError("No valid prospect data found in the file.")
    logger.info(f"Loaded {len(leads)} lead(s) from {path}")
    return leads
