"""
Tests for CSV parsing into header-addressed rows.
"""

import io

import pytest
from fastapi import UploadFile

from service_common.core.csv_parser import CsvData, CsvRow, DefaultCsvParser


@pytest.fixture
def parser() -> DefaultCsvParser:
    return DefaultCsvParser()


class TestCsvData:
    """Test CsvData construction rules."""

    def test_file_name_required(self) -> None:
        with pytest.raises(ValueError, match="fileName cannot be null"):
            CsvData(file_name=None, format="capital-one")

    def test_format_required(self) -> None:
        with pytest.raises(ValueError, match="format cannot be null"):
            CsvData(file_name="statement.csv", format=None)

    def test_none_collections_become_empty(self) -> None:
        data = CsvData(file_name="statement.csv", format="capital-one", headers=None, rows=None)

        assert data.headers == []
        assert data.rows == []


class TestDefaultCsvParser:
    """Test DefaultCsvParser behavior."""

    def test_basic_parsing(self, parser: DefaultCsvParser) -> None:
        """Test headers and rows are mapped with line numbers starting at 2."""
        text = "Date,Description,Amount\n2025-01-01,Coffee,-3.50\n2025-01-02,Salary,2500.00\n"

        data = parser.parse_csv_text(text, "statement.csv", "capital-one")

        assert data.file_name == "statement.csv"
        assert data.format == "capital-one"
        assert data.headers == ["Date", "Description", "Amount"]
        assert data.rows == [
            CsvRow(2, {"Date": "2025-01-01", "Description": "Coffee", "Amount": "-3.50"}),
            CsvRow(3, {"Date": "2025-01-02", "Description": "Salary", "Amount": "2500.00"}),
        ]

    def test_values_and_headers_trimmed(self, parser: DefaultCsvParser) -> None:
        data = parser.parse_csv_text(" Date , Amount \n 2025-01-01 ,  10 \n", "f.csv", "bank")

        assert data.headers == ["Date", "Amount"]
        assert data.rows[0].values == {"Date": "2025-01-01", "Amount": "10"}

    def test_quoted_values_keep_commas(self, parser: DefaultCsvParser) -> None:
        data = parser.parse_csv_text('Description,Amount\n"Dinner, tip included",42.00\n', "f.csv", "bank")

        assert data.rows[0].values["Description"] == "Dinner, tip included"

    def test_empty_header_columns_skipped(self, parser: DefaultCsvParser) -> None:
        data = parser.parse_csv_text("Date,,Amount\n2025-01-01,ignored,10\n", "f.csv", "bank")

        assert data.rows[0].values == {"Date": "2025-01-01", "Amount": "10"}

    def test_extra_cells_ignored(self, parser: DefaultCsvParser) -> None:
        data = parser.parse_csv_text("A,B\n1,2,3,4\n", "f.csv", "bank")

        assert data.rows[0].values == {"A": "1", "B": "2"}

    def test_missing_cells_omitted(self, parser: DefaultCsvParser) -> None:
        data = parser.parse_csv_text("A,B,C\n1\n", "f.csv", "bank")

        assert data.rows[0].values == {"A": "1"}

    def test_blank_lines_skipped_but_counted(self, parser: DefaultCsvParser) -> None:
        """Test blank lines do not produce rows but advance line numbers."""
        data = parser.parse_csv_text("A,B\n1,2\n\n3,4\n", "f.csv", "bank")

        assert [row.line_number for row in data.rows] == [2, 4]
        assert data.rows[1].values == {"A": "3", "B": "4"}

    def test_empty_input(self, parser: DefaultCsvParser) -> None:
        data = parser.parse_csv_text("", "empty.csv", "bank")

        assert data.headers == []
        assert data.rows == []
        assert data.file_name == "empty.csv"

    def test_header_only(self, parser: DefaultCsvParser) -> None:
        data = parser.parse_csv_text("A,B\n", "f.csv", "bank")

        assert data.headers == ["A", "B"]
        assert data.rows == []

    def test_byte_order_mark_stripped(self, parser: DefaultCsvParser) -> None:
        data = parser.parse_csv_bytes("\ufeffDate,Amount\n2025-01-01,1\n".encode("utf-8"), "f.csv", "bank")

        assert data.headers == ["Date", "Amount"]

    def test_invalid_utf8_replaced(self, parser: DefaultCsvParser) -> None:
        """Test a Latin-1 export is parsed with the bad byte replaced."""
        data = parser.parse_csv_bytes(b"Name,Amount\nCaf\xe9,1\n", "latin1.csv", "bank")

        assert data.rows == [CsvRow(2, {"Name": "Caf�", "Amount": "1"})]

    def test_multiline_cell_line_numbers(self, parser: DefaultCsvParser) -> None:
        """Test rows are numbered by the line they start on."""
        text = 'Description,Amount\n"Rent\nMarch",900\nCoffee,3\n'

        data = parser.parse_csv_text(text, "f.csv", "bank")

        assert [row.line_number for row in data.rows] == [2, 4]
        assert data.rows[0].values["Description"] == "Rent\nMarch"

    def test_crlf_line_endings(self, parser: DefaultCsvParser) -> None:
        data = parser.parse_csv_text("A,B\r\n1,2\r\n3,4\r\n", "f.csv", "bank")

        assert [row.line_number for row in data.rows] == [2, 3]

    def test_parse_binary_stream(self, parser: DefaultCsvParser) -> None:
        stream = io.BytesIO(b"A,B\n1,2\n")

        data = parser.parse_csv_stream(stream, "stream.csv", "bank")

        assert data.rows[0].values == {"A": "1", "B": "2"}

    def test_parse_text_stream(self, parser: DefaultCsvParser) -> None:
        data = parser.parse_csv_stream(io.StringIO("A\nx\n"), "stream.csv", "bank")

        assert data.rows[0].values == {"A": "x"}

    @pytest.mark.asyncio
    async def test_parse_upload_file(self, parser: DefaultCsvParser) -> None:
        """Test parsing a multipart upload."""
        upload = UploadFile(file=io.BytesIO(b"Date,Amount\n2025-01-01,5\n"), filename="upload.csv")

        data = await parser.parse_csv_file(upload, "capital-one")

        assert data.file_name == "upload.csv"
        assert data.rows == [CsvRow(2, {"Date": "2025-01-01", "Amount": "5"})]
