import csv
import logging
from pathlib import Path

from migration.domain import InputRecord
from migration.errors import InputFormatError

logger = logging.getLogger(__name__)


def parse_input_rows(rows: list[list[str]]) -> list[InputRecord]:
    """
    Rows are ("<declared_size>", "<source_path>"). Blank rows are skipped;
    anything else malformed raises InputFormatError with its 1-based line number.
    """
    records: list[InputRecord] = []
    for line_number, row in enumerate(rows, start=1):
        if not row or all(not cell.strip() for cell in row):
            continue

        if len(row) != 2:
            raise InputFormatError(f"Line {line_number}: expected 2 columns, got {len(row)}", line_number)

        size_text, source_path = row[0].strip(), row[1]
        try:
            declared_size = int(size_text)
        except ValueError:
            raise InputFormatError(f"Line {line_number}: declared size '{size_text}' is not an integer", line_number)

        if declared_size < 0:
            raise InputFormatError(f"Line {line_number}: declared size must not be negative", line_number)
        if not source_path:
            raise InputFormatError(f"Line {line_number}: source path is empty", line_number)

        records.append(InputRecord(declared_size=declared_size, source_path=source_path, line_number=line_number))

    return records


def load_input_records(file_path: Path, encoding: str = "utf-8") -> list[InputRecord]:
    """Read the whole listing before the batch starts."""
    with open(file_path, "r", encoding=encoding, newline="") as f:
        rows = list(csv.reader(f, delimiter=","))

    records = parse_input_rows(rows)
    if not records:
        logger.warning("No input records found in: %s", file_path)
    return records
