"""
CSV parsing into header-addressed rows.

The first row of a file is treated as headers; every following row becomes a
CsvRow whose values are looked up by header name:

    csv_data = await parser.parse_csv_file(upload, "capital-one")
    for row in csv_data.rows:
        amount = row.values["Amount"]
"""

import abc
import csv
import io
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, List, Optional, TextIO, Union

import structlog
from fastapi import UploadFile

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CsvRow:
    """
    A single data row.

    line_number is the physical line where the record starts, so a quoted
    cell spanning several lines advances the next row's number by more
    than one.
    """

    line_number: int
    values: Dict[str, str]


@dataclass(frozen=True)
class CsvData:
    """Parsed CSV file with its headers and data rows."""

    file_name: str
    format: str
    headers: List[str] = field(default_factory=list)
    rows: List[CsvRow] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.file_name is None:
            raise ValueError("fileName cannot be null")
        if self.format is None:
            raise ValueError("format cannot be null")
        if self.headers is None:
            object.__setattr__(self, "headers", [])
        if self.rows is None:
            object.__setattr__(self, "rows", [])


class CsvParser(abc.ABC):
    """Parses CSV content into CsvData."""

    async def parse_csv_file(self, file: UploadFile, format: str) -> CsvData:
        """Parse an uploaded multipart file."""
        content = await file.read()
        return self.parse_csv_bytes(content, file.filename or "", format)

    def parse_csv_bytes(self, content: bytes, file_name: str, format: str) -> CsvData:
        # utf-8-sig drops a leading byte order mark; undecodable bytes become U+FFFD
        return self.parse_csv_text(content.decode("utf-8-sig", errors="replace"), file_name, format)

    def parse_csv_stream(self, stream: Union[BinaryIO, TextIO], file_name: str, format: str) -> CsvData:
        """Parse a binary or text stream."""
        content = stream.read()
        if isinstance(content, bytes):
            return self.parse_csv_bytes(content, file_name, format)
        return self.parse_csv_text(content, file_name, format)

    @abc.abstractmethod
    def parse_csv_text(self, text: str, file_name: str, format: str) -> CsvData:
        """Parse CSV text."""


class DefaultCsvParser(CsvParser):
    """
    CsvParser backed by the standard library csv reader.

    Headers and cell values are trimmed, columns with an empty header are
    skipped, and quoted values keep embedded commas.
    """

    def parse_csv_text(self, text: str, file_name: str, format: str) -> CsvData:
        if text.startswith("\ufeff"):
            text = text[1:]

        reader = csv.reader(io.StringIO(text, newline=""))
        headers: Optional[List[str]] = None
        rows: List[CsvRow] = []

        start_line = 1
        for record in reader:
            line_number, start_line = start_line, reader.line_num + 1
            if not any(cell.strip() for cell in record):
                # Blank lines are skipped but still counted
                continue

            if headers is None:
                headers = [header.strip() for header in record]
                continue

            rows.append(CsvRow(line_number=line_number, values=self._build_data_map(headers, record)))

        if headers is None:
            logger.info("Ignoring empty csv file", file_name=file_name)
            return CsvData(file_name=file_name, format=format)

        logger.debug(
            "Parsed csv file",
            file_name=file_name,
            format=format,
            headers=len(headers),
            rows=len(rows),
        )
        return CsvData(file_name=file_name, format=format, headers=headers, rows=rows)

    @staticmethod
    def _build_data_map(headers: List[str], record: List[str]) -> Dict[str, str]:
        row_map = {}
        # Cells past the last header are ignored
        for header, cell in zip(headers, record):
            if header:
                row_map[header] = cell.strip()
        return row_map
