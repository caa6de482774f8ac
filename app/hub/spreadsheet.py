from __future__ import annotations

import io
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _write_sheet(ws, rows: Sequence[dict[str, Any]], *, min_width: int | None, max_width: int | None) -> None:
    if not rows:
        return
    headers = list(rows[0].keys())
    ws.append(headers)
    for row in rows:
        ws.append(["" if row.get(h) is None else row.get(h) for h in headers])

    if min_width is None and max_width is None:
        return
    for idx, header in enumerate(headers, start=1):
        longest = max([len(header)] + [len(str(r.get(header) or "")) for r in rows])
        width = longest + 2
        if min_width is not None:
            width = max(width, min_width)
        if max_width is not None:
            width = min(width, max_width)
        ws.column_dimensions[get_column_letter(idx)].width = width


def build_workbook(
    sheets: Sequence[tuple[str, Sequence[dict[str, Any]]]],
    *,
    min_width: int | None = None,
    max_width: int | None = None,
) -> bytes:
    """
    Serialize (sheet title, rows) pairs to xlsx bytes. Each row is a dict whose
    keys become the header line (taken from the first row).
    """
    wb = Workbook()
    wb.remove(wb.active)
    for title, rows in sheets:
        ws = wb.create_sheet(title=title[:31])
        _write_sheet(ws, rows, min_width=min_width, max_width=max_width)
    out = io.BytesIO()
    wb.save(out)
    return out.getvalue()


def timestamped_filename(prefix: str, now: datetime | None = None, *, pad_hour: bool = True) -> str:
    now = now or datetime.utcnow()
    hour = f"{now.hour:02d}" if pad_hour else str(now.hour)
    return f"{prefix}_{now.date().isoformat()}_{hour}-{now.minute:02d}.xlsx"
