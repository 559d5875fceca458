import csv
import io
import re
from datetime import date
from typing import Any, Dict, Iterable, List, Sequence

from fastapi.responses import StreamingResponse


def render_csv(columns: Sequence[str], records: Iterable[Dict[str, Any]]) -> str:
    """CSV text with a header row; missing and null values become empty cells"""
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(columns)
    for record in records:
        writer.writerow(["" if record.get(column) is None else record.get(column) for column in columns])
    content = output.getvalue()
    output.close()
    return content


def export_filename(prefix: str, title: str = "") -> str:
    slug = re.sub(r"[^A-Za-z0-9]+", "_", title).strip("_")
    parts: List[str] = [prefix, slug, date.today().isoformat()] if slug else [prefix, date.today().isoformat()]
    return "-".join(parts) + ".csv"


def csv_response(content: str, filename: str) -> StreamingResponse:
    return StreamingResponse(
        io.BytesIO(content.encode("utf-8")),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
