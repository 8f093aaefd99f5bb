import json

import pytest

from conftest import checkerboard
from lager_intake.cli import main


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "intake.json"
    path.write_text(json.dumps({
        "db_path": str(tmp_path / "lager.db"),
        "blob_dir": str(tmp_path / "blobs"),
        "sync_delay_seconds": 0,
    }), encoding="utf-8")
    return str(path)


def run(config_path, *args):
    return main(["--config", config_path, "--identity", "cli-test", *args])


def created_id(output):
    line = output.splitlines()[-1]
    return line.split()[0]


def test_no_command_prints_help(capsys):
    assert main([]) == 1
    assert "usage" in capsys.readouterr().out.lower()


def test_create_attach_sync(config_path, tmp_path, capsys):
    assert run(config_path, "create", "LS-55", "Würth", "2025-03-01") == 0
    inbound_id = created_id(capsys.readouterr().out)

    scan = tmp_path / "page.png"
    checkerboard(1600, 1200).save(scan)
    small = tmp_path / "small.png"
    checkerboard(400, 300).save(small)

    assert run(config_path, "attach", inbound_id, str(scan)) == 0
    assert "page 1" in capsys.readouterr().out
    assert run(config_path, "attach", inbound_id, str(small)) == 3
    assert "too_small" in capsys.readouterr().out

    assert run(config_path, "pending") == 0
    assert "Pending uploads: 1" in capsys.readouterr().out
    assert run(config_path, "sync") == 0
    assert "acknowledged: 1" in capsys.readouterr().out

    assert run(config_path, "confirm", inbound_id) == 0
    assert "drawing_attached" in capsys.readouterr().out


def test_duplicate_needs_force(config_path, capsys):
    assert run(config_path, "create", "LS-56", "Würth", "2025-03-01") == 0
    assert run(config_path, "create", "ls 56", "Würth", "2025-03-01") == 2
    assert "--force" in capsys.readouterr().out
    assert run(config_path, "create", "ls 56", "Würth", "2025-03-01", "--force") == 0


def test_confirm_without_pages_is_an_error(config_path, capsys):
    run(config_path, "create", "LS-57", "Würth", "2025-03-01")
    inbound_id = created_id(capsys.readouterr().out)

    assert run(config_path, "confirm", inbound_id) == 1
    assert "no pages" in capsys.readouterr().err


def test_cart_export_to_stdout(config_path, capsys):
    assert run(config_path, "cart-add", "Schrauben, 4x40", "--qty", "3") == 0
    capsys.readouterr()

    assert run(config_path, "cart-export") == 0
    assert capsys.readouterr().out == 'qty;name;note\n3;"Schrauben, 4x40";\n'


def test_board_place_and_move(config_path, capsys):
    run(config_path, "board-place", "Dübel", "inbound", "--qty", "10")
    capsys.readouterr()
    run(config_path, "board-list")
    item_id = capsys.readouterr().out.split()[0]

    assert run(config_path, "board-move", item_id, "storage", "--qty", "4") == 0
    assert "storage: 4 x Dübel" in capsys.readouterr().out


def test_attach_missing_file_is_an_error(config_path, tmp_path, capsys):
    run(config_path, "create", "LS-58", "Würth", "2025-03-01")
    inbound_id = created_id(capsys.readouterr().out)

    assert run(config_path, "attach", inbound_id, str(tmp_path / "nope.jpg")) == 1
    assert "Error:" in capsys.readouterr().err
