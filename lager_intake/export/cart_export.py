"""
Cart Export

Purpose:
    Render pick-cart lines as semicolon-separated text (spreadsheet import)
    or as a printable HTML table. Read only: nothing is written to the store.

Format:
    qty;name;note
    3;"Screws, 4x40";"Box ""A"" top"

    Fields containing ';', ',', '"' or a line break are quoted, inner
    quotes doubled. Rows end with '\\n'.
"""
import html
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

from ..inventory.cart import CartLine

HEADER = ("qty", "name", "note")
_NEEDS_QUOTES = (";", ",", '"', "\n", "\r")


def _field(value) -> str:
    text = "" if value is None else str(value)
    if any(ch in text for ch in _NEEDS_QUOTES):
        return '"' + text.replace('"', '""') + '"'
    return text


def cart_to_csv(lines: Iterable[CartLine], include_header: bool = True) -> str:
    """Semicolon-separated export of cart lines in the given order."""
    rows: List[str] = []
    if include_header:
        rows.append(";".join(HEADER))
    for line in lines:
        rows.append(";".join(_field(v) for v in (line.qty, line.name, line.note)))
    return "\n".join(rows) + "\n"


def cart_to_html(lines: Iterable[CartLine], title: str = "Einkaufsliste", generated_at: Optional[datetime] = None) -> str:
    """Printable HTML table of cart lines."""
    generated_at = generated_at or datetime.now()
    body_rows = []
    total = 0
    for line in lines:
        total += line.qty
        body_rows.append(
            "<tr>"
            f"<td class=\"qty\">{line.qty}</td>"
            f"<td>{html.escape(line.name)}</td>"
            f"<td>{html.escape(line.note or '')}</td>"
            "<td class=\"check\">&#9744;</td>"
            "</tr>"
        )
    rows_html = "\n".join(body_rows) or "<tr><td colspan=\"4\">&ndash;</td></tr>"
    return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>{html.escape(title)}</title>
<style>
body {{ font-family: sans-serif; margin: 2em; }}
table {{ border-collapse: collapse; width: 100%; }}
th, td {{ border: 1px solid #444; padding: 4px 8px; text-align: left; }}
td.qty {{ text-align: right; width: 4em; }}
td.check {{ width: 2em; text-align: center; }}
@media print {{ body {{ margin: 0; }} }}
</style>
</head>
<body>
<h1>{html.escape(title)}</h1>
<p>{generated_at.strftime('%Y-%m-%d %H:%M')} &middot; {len(body_rows)} Positionen &middot; {total} St&uuml;ck</p>
<table>
<thead><tr><th>Menge</th><th>Artikel</th><th>Notiz</th><th></th></tr></thead>
<tbody>
{rows_html}
</tbody>
</table>
</body>
</html>
"""


def export_cart(lines: Iterable[CartLine], output_path: str, fmt: str = "csv") -> Path:
    """Write a cart export to disk."""
    lines = list(lines)
    if fmt == "csv":
        content = cart_to_csv(lines)
    elif fmt == "html":
        content = cart_to_html(lines)
    else:
        raise ValueError(f"Unknown export format: {fmt}")
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as f:
        f.write(content)
    return path
