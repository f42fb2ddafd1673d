"""Tests for the cardloop CLI commands."""

import asyncio
import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from cardloop.consts import APP_NAME
from cardloop.infrastructure.adapters.sqlite_store import SqliteStore
from cardloop.interface.cli import _parse_choice, app

runner = CliRunner()


@pytest.fixture
def env(mock_home, tmp_path, monkeypatch):
    db_path = tmp_path / "cards.db"
    monkeypatch.setenv("CARDLOOP_DB_PATH", str(db_path))
    monkeypatch.setenv("CARDLOOP_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("CARDLOOP_VERBOSE", "0")
    return db_path


@pytest.fixture
def deck_file(tmp_path):
    path = tmp_path / "spanish.json"
    payload = {
        "id": "spanish",
        "cards": [
            {"id": "c1", "front": "hola", "back": "hello", "audio": "c1.mp3", "sequence": 1},
            {"id": "c2", "front": "adios", "back": "goodbye", "audio": "c2.mp3", "sequence": 2},
        ],
    }
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def read_review(db_path, card_id):
    with SqliteStore(db_path) as store:
        return asyncio.run(store.get_review(card_id))


@pytest.fixture
def imported(env, deck_file):
    result = runner.invoke(app, ["import", str(deck_file)])
    assert result.exit_code == 0, result.output
    return env


# --- Parsing ---


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("3", ("grade", 3, False)),
        (" 2h ", ("grade", 2, True)),
        ("1H", ("grade", 1, True)),
        ("q", ("q", None, False)),
        ("S", ("s", None, False)),
        ("4", ("invalid", None, False)),
        ("h", ("invalid", None, False)),
        ("", ("invalid", None, False)),
    ],
)
def test_parse_choice(raw, expected):
    assert _parse_choice(raw) == expected


# --- Import / decks / queue ---


def test_import_reports_count(env, deck_file):
    result = runner.invoke(app, ["import", str(deck_file)])
    assert result.exit_code == 0
    assert "Imported 2 cards." in result.output


def test_import_invalid_json(env, tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text("{oops", encoding="utf-8")

    result = runner.invoke(app, ["import", str(bad)])

    assert result.exit_code == 1
    assert "not valid JSON" in result.output


def test_import_invalid_card(env, tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"id": "d", "cards": [{"id": "x"}]}), encoding="utf-8")

    result = runner.invoke(app, ["import", str(bad)])

    assert result.exit_code == 1
    assert "Invalid card payload: x" in result.output


def test_decks_empty(env):
    result = runner.invoke(app, ["decks"])
    assert result.exit_code == 0
    assert "No decks found" in result.output


def test_decks_json(imported):
    result = runner.invoke(app, ["decks", "--json"])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data == [
        {
            "deck_id": "spanish",
            "total": 2,
            "due_today": 0,
            "hard_count": 0,
            "new_count": 2,
            "suspended": 0,
        }
    ]


def test_queue_lists_cards(imported):
    result = runner.invoke(app, ["queue", "spanish"])
    assert result.exit_code == 0
    assert "Queue for 'spanish': 2 cards" in result.output
    assert result.output.index("c1") < result.output.index("c2")


def test_queue_respects_new_limit(imported):
    result = runner.invoke(app, ["queue", "spanish", "--new-limit", "1"])
    assert "1 cards" in result.output
    assert "c2" not in result.output


def test_queue_empty_deck(env):
    result = runner.invoke(app, ["queue", "nothing"])
    assert "No cards due." in result.output


def test_db_option_overrides_env(env, deck_file, tmp_path):
    other = tmp_path / "other.db"
    result = runner.invoke(app, ["--db", str(other), "import", str(deck_file)])

    assert result.exit_code == 0
    assert other.exists()
    assert not env.exists()


# --- Review loop ---


def test_review_session_with_hard_repass(imported):
    # c1 easy, c2 hard, then c2 again from the hard queue
    result = runner.invoke(app, ["review", "spanish"], input="\n3\n\n2\n\n3\n")

    assert result.exit_code == 0, result.output
    assert "hola" in result.output
    assert "hello" in result.output
    assert "Reviewed 3 (hard 1, again 0)" in result.output

    c2 = read_review(imported, "c2")
    assert c2.interval == 3
    assert c2.streak == 2


def test_review_output_mode_shows_back_first(imported):
    result = runner.invoke(app, ["review", "spanish", "--mode", "output"], input="\nq\n")

    assert result.exit_code == 0
    assert result.output.index("hello") < result.output.index("hola")
    assert "Reviewed 0" in result.output


def test_review_rejects_unknown_mode(imported):
    result = runner.invoke(app, ["review", "spanish", "--mode", "sideways"])
    assert result.exit_code != 0


def test_review_reprompts_on_invalid_answer(imported):
    result = runner.invoke(
        app, ["review", "spanish", "--new-limit", "1"], input="\nx\n3\n"
    )

    assert result.exit_code == 0
    assert "Please answer" in result.output
    assert "Reviewed 1" in result.output


def test_review_suspend_from_prompt(imported):
    result = runner.invoke(app, ["review", "spanish", "--new-limit", "1"], input="\ns\n")

    assert "Card suspended." in result.output
    assert read_review(imported, "c1").suspended is True


def test_review_mark_hard(imported):
    result = runner.invoke(
        app, ["review", "spanish", "--new-limit", "1"], input="\n3h\n\n3\n"
    )

    assert result.exit_code == 0
    assert "Reviewed 2 (hard 1" in result.output
    assert read_review(imported, "c1").hard_flag is False


def test_review_no_cards(env):
    result = runner.invoke(app, ["review", "empty"])
    assert result.exit_code == 0
    assert "No cards due." in result.output


# --- Flags ---


def test_suspend_and_unsuspend(imported):
    result = runner.invoke(app, ["suspend", "c1"])
    assert "c1: suspended=True" in result.output
    assert "c1" not in runner.invoke(app, ["queue", "spanish"]).output

    result = runner.invoke(app, ["suspend", "c1", "--off"])
    assert "c1: suspended=False" in result.output
    assert read_review(imported, "c1").suspended is False


def test_hard_flag(imported):
    result = runner.invoke(app, ["hard", "c2"])
    assert "c2: hard=True" in result.output
    assert read_review(imported, "c2").hard_flag is True


# --- Reports ---


def test_stats_json_after_review(imported):
    runner.invoke(app, ["review", "spanish", "--new-limit", "1"], input="\n3\n")

    result = runner.invoke(app, ["stats", "--json"])

    data = json.loads(result.stdout)
    assert data["today_reviewed"] == 1
    assert data["streak"] == 1
    assert len(data["daily_counts"]) == 14


def test_stats_text(env):
    result = runner.invoke(app, ["stats"])
    assert "Reviewed today: 0" in result.output
    assert "Last reviewed: never" in result.output


def test_forecast(imported):
    runner.invoke(app, ["review", "spanish", "--new-limit", "1"], input="\n3\n")

    result = runner.invoke(app, ["forecast", "--days", "3"])

    lines = result.output.strip().splitlines()
    assert len(lines) == 3
    assert lines[1].endswith("  1")


# --- Config / serve ---


def test_config_show(env):
    result = runner.invoke(app, ["config", "show"])

    data = json.loads(result.stdout)
    assert data["db_path"] == str(env)
    assert data["new_card_limit"] == 10
    assert data["mode"] == "input"


def test_serve_runs_uvicorn(env):
    with patch("uvicorn.run") as run:
        result = runner.invoke(app, ["serve", "--port", "9000"])

    assert result.exit_code == 0
    run.assert_called_once_with("cardloop.server:app", host="127.0.0.1", port=9000, reload=False)


# --- Last reviewed deck ---


def test_review_without_deck_continues_last_deck(imported):
    runner.invoke(app, ["queue", "spanish"])

    result = runner.invoke(app, ["review", "--new-limit", "1"], input="\n3\n")

    assert result.exit_code == 0, result.output
    assert "Continuing with deck 'spanish'." in result.output
    assert "hola" in result.output
    assert "Reviewed 1" in result.output


def test_queue_without_deck_uses_last_deck(imported):
    runner.invoke(app, ["queue", "spanish", "--new-limit", "1"])

    result = runner.invoke(app, ["queue"])

    assert result.exit_code == 0
    assert "Queue for 'spanish': 2 cards" in result.output


def test_review_without_deck_or_history_fails(env):
    result = runner.invoke(app, ["review"])

    assert result.exit_code == 1
    assert "no deck has been reviewed yet" in result.output


def test_help_names_app(env):
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert f"{APP_NAME}: Spaced-repetition flashcard reviews." in result.output
