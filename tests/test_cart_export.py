import csv
import io
from datetime import datetime

import pytest

from lager_intake.export.cart_export import cart_to_csv, cart_to_html, export_cart
from lager_intake.inventory.cart import CartLine


@pytest.fixture
def lines():
    return [
        CartLine(id="1", name="Schrauben, 4x40", qty=3, note='Kiste "A"'),
        CartLine(id="2", name="Dübel", qty=10, note=""),
        CartLine(id="3", name="Kleber; schnell", qty=1, note="zwei\nZeilen"),
    ]


def test_csv_layout(lines):
    text = cart_to_csv(lines)
    rows = text.split("\n")

    assert rows[0] == "qty;name;note"
    assert rows[1] == '3;"Schrauben, 4x40";"Kiste ""A"""'
    assert rows[2] == "10;Dübel;"
    assert text.endswith("\n")


def test_csv_parses_back(lines):
    parsed = list(csv.reader(io.StringIO(cart_to_csv(lines)), delimiter=";"))

    assert parsed[0] == ["qty", "name", "note"]
    assert parsed[1:] == [[str(l.qty), l.name, l.note] for l in lines]


def test_csv_without_header_and_empty_cart():
    assert cart_to_csv([], include_header=False) == "\n"
    assert cart_to_csv([]) == "qty;name;note\n"


def test_html_escapes_and_counts(lines):
    page = cart_to_html(lines, title="Einkauf <KW 10>", generated_at=datetime(2025, 3, 7, 9, 30))

    assert "Einkauf &lt;KW 10&gt;" in page
    assert "Kiste &quot;A&quot;" in page
    assert "2025-03-07 09:30" in page
    assert "3 Positionen" in page
    assert "14 St&uuml;ck" in page


def test_export_cart_writes_file(lines, tmp_path):
    csv_path = export_cart(lines, str(tmp_path / "out" / "cart.csv"), fmt="csv")
    html_path = export_cart(lines, str(tmp_path / "cart.html"), fmt="html")

    assert csv_path.read_text(encoding="utf-8") == cart_to_csv(lines)
    assert html_path.read_text(encoding="utf-8").startswith("<!DOCTYPE html>")
    with pytest.raises(ValueError):
        export_cart(lines, str(tmp_path / "cart.pdf"), fmt="pdf")


def test_export_does_not_touch_cart(store):
    from lager_intake.inventory.cart import PickCart

    cart = PickCart(store)
    cart.add("Schrauben", 2)
    before = cart.lines()
    cart_to_csv(cart.lines())
    assert cart.lines() == before


def test_module_documents_actual_format():
    from lager_intake.export import cart_export

    line = CartLine(id="9", name="Screws, 4x40", qty=3, note='Box "A" top')
    for row in cart_to_csv([line]).splitlines():
        assert row in cart_export.__doc__
