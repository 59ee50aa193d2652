import csv
import json

import pytest

from showdown.cli import main


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    monkeypatch.delenv("SHOWDOWN_DB_PATH", raising=False)
    return tmp_path / "cli.sqlite"


@pytest.fixture
def players_file(tmp_path):
    rows = [
        ("kc_qb", "KC", "QB", 17_000, 22.0),
        ("kc_rb", "KC", "RB", 12_000, 15.0),
        ("kc_wr", "KC", "WR", 13_000, 16.0),
        ("kc_k", "KC", "K", 9_000, 8.0),
        ("buf_qb", "BUF", "QB", 16_500, 21.0),
        ("buf_wr", "BUF", "WR", 12_500, 15.0),
        ("buf_te", "BUF", "TE", 8_000, 9.0),
        ("buf_d", "BUF", "D", 8_500, 7.0),
    ]
    payload = [
        {
            "player_id": pid,
            "name": pid.upper(),
            "team": team,
            "opponent": "BUF" if team == "KC" else "KC",
            "position": position,
            "salary": salary,
            "mean_score": mean,
            "ceiling_score": mean * 1.5,
        }
        for pid, team, position, salary, mean in rows
    ]
    path = tmp_path / "players.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_optimize_writes_csv(db_path, players_file, tmp_path):
    output = tmp_path / "lineups.csv"

    code = main(["--db", str(db_path), "optimize", str(players_file), "--lineups", "2", "--output", str(output)])

    assert code == 0
    with output.open(newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == 2
    assert rows[0]["lineup_id"] == "L001"
    assert all(len(row["player_ids"].split()) == 5 for row in rows)
    assert rows[0]["player_ids"] != rows[1]["player_ids"] or rows[0]["captain"] != rows[1]["captain"]


def test_unknown_preset_is_reported(db_path, players_file, tmp_path, capsys):
    code = main(["--db", str(db_path), "optimize", str(players_file), "--preset", "contrarian"])

    assert code == 2
    assert "contrarian" in capsys.readouterr().err


def test_seed_discover_and_list_models(db_path, capsys):
    assert main(["--db", str(db_path), "seed-games", "--count", "6"]) == 0
    assert "6 games in store" in capsys.readouterr().out

    assert main(["--db", str(db_path), "discover", "--seed", "2"]) == 0
    assert "Trained on 4 games, validated on 2" in capsys.readouterr().out

    assert main(["--db", str(db_path), "models"]) == 0
    listed = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
    assert len(listed) == 1

    assert main(["--db", str(db_path), "models", "--delete", listed[0]["id"]]) == 0
    assert main(["--db", str(db_path), "models", "--delete", listed[0]["id"]]) == 1


def test_discovery_needs_enough_games(db_path, capsys):
    main(["--db", str(db_path), "seed-games", "--count", "2"])

    assert main(["--db", str(db_path), "discover"]) == 2
    assert "minimum" in capsys.readouterr().err
