"""CSV/XLSX reading and writing for imports and exports."""

import csv
import io
from datetime import date, datetime
from io import BytesIO
from typing import Dict, Iterable, List, Sequence, Tuple

from fastapi.responses import StreamingResponse
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Font, PatternFill

CSV_MEDIA_TYPE = "text/csv"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _cell(value):
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if value is None:
        return ""
    return value


def create_csv_export(rows: Iterable[Sequence], headers: Sequence[str]) -> BytesIO:
    """UTF-8 CSV with BOM so spreadsheet apps detect the encoding."""
    output = BytesIO()
    output.write(b"\xef\xbb\xbf")
    text_output = io.StringIO()
    writer = csv.writer(text_output, delimiter=",", quotechar='"', quoting=csv.QUOTE_MINIMAL)
    writer.writerow(headers)
    for row in rows:
        writer.writerow([_cell(v) for v in row])
    output.write(text_output.getvalue().encode("utf-8"))
    output.seek(0)
    return output


def create_excel_export(rows: Iterable[Sequence], headers: Sequence[str], sheet_name: str = "Report") -> BytesIO:
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name[:31]
    for col_idx, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col_idx, value=header)
        cell.font = Font(bold=True, color="FFFFFF")
        cell.fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")
        cell.alignment = Alignment(horizontal="center", vertical="center")
    for row_idx, row_data in enumerate(rows, 2):
        for col_idx, value in enumerate(row_data, 1):
            ws.cell(row=row_idx, column=col_idx, value=_cell(value))
    for column in ws.columns:
        longest = max((len(str(c.value)) for c in column if c.value is not None), default=0)
        ws.column_dimensions[column[0].column_letter].width = min(longest + 2, 50)
    output = BytesIO()
    wb.save(output)
    output.seek(0)
    return output


def download_response(content: BytesIO, filename: str, media_type: str = CSV_MEDIA_TYPE) -> StreamingResponse:
    return StreamingResponse(
        content,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


def read_table(content: bytes, extension: str) -> Tuple[List[str], List[Dict[str, str]]]:
    """Parse an uploaded CSV or XLSX file into (header, rows).

    Header names are lowercased and stripped. Raises ValueError when the file
    cannot be read or has no header row.
    """
    if extension == ".xlsx":
        try:
            wb = load_workbook(BytesIO(content), read_only=True, data_only=True)
        except Exception as e:
            raise ValueError(f"Invalid spreadsheet: {e}")
        ws = wb.active
        raw_rows = [list(r) for r in ws.iter_rows(values_only=True)]
        wb.close()
    else:
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError:
            raise ValueError("File encoding error. Please ensure the CSV file is UTF-8 encoded.")
        try:
            raw_rows = list(csv.reader(io.StringIO(text)))
        except csv.Error as e:
            raise ValueError(f"Invalid CSV format: {e}")

    if not raw_rows or not any(raw_rows[0]):
        raise ValueError("File appears to be empty or has no header row")

    header = [str(h).strip().lower() if h is not None else "" for h in raw_rows[0]]
    rows = []
    for raw in raw_rows[1:]:
        if not any(v not in (None, "") for v in raw):
            continue
        row = {}
        for idx, name in enumerate(header):
            value = raw[idx] if idx < len(raw) else None
            if isinstance(value, datetime):
                value = value.date().isoformat()
            elif isinstance(value, date):
                value = value.isoformat()
            row[name] = "" if value is None else str(value).strip()
        rows.append(row)
    return header, rows


def require_columns(header: List[str], required: Iterable[str]) -> None:
    missing = set(required) - set(header)
    if missing:
        raise ValueError(
            f"File is missing required columns: {', '.join(sorted(missing))}. "
            f"Found columns: {', '.join(h for h in header if h)}"
        )
