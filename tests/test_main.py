from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

import otherside.main as main
from otherside.catalog import definition_of
from otherside.models import Stage
from otherside.puzzle import WRONG_ORDER_ERROR
from otherside.service import FINAL_ERROR_TEXT, WRONG_ANSWER_ERROR, EnigmaService
from otherside.storage import ProgressStore


def _scripted(*values: str) -> Callable[[str], str]:
    iterator = iter(values)
    return lambda prompt: next(iterator)


class DummyService:
    def __init__(self) -> None:
        self.restarted = False

    def restart(self) -> None:
        self.restarted = True


def test_run_enters_play_shell(monkeypatch: Any, tmp_path: Path) -> None:
    seen: dict[str, Any] = {}
    dummy = DummyService()

    def fake_service(settings: Any) -> DummyService:
        seen["db_path"] = settings.db_path
        return dummy

    monkeypatch.setattr(main, "_service", fake_service)
    monkeypatch.setattr(main, "play_shell", lambda service: 0)
    assert main.run(["play", "--db", str(tmp_path / "p.db")]) == 0
    assert seen["db_path"] == tmp_path / "p.db"
    assert dummy.restarted is False


def test_run_reset_flag_restarts(monkeypatch: Any) -> None:
    dummy = DummyService()
    monkeypatch.setattr(main, "_service", lambda settings: dummy)
    monkeypatch.setattr(main, "play_shell", lambda service: 0)
    assert main.run(["--reset"]) == 0
    assert dummy.restarted is True


def test_main_entry_exits_with_run_code(monkeypatch: Any) -> None:
    monkeypatch.setattr(main, "run", lambda: 3)
    try:
        main.main_entry()
        raise AssertionError("Expected SystemExit.")
    except SystemExit as exc:
        assert exc.code == 3


def test_quit_from_opening(make_service) -> None:
    printed: list[str] = []
    assert main.play_shell(_scripted(":q"), printed.append, service=make_service()) == 0
    assert "TOQUE PARA INICIAR" in printed


def test_opening_offers_continue_when_resuming(store: ProgressStore, make_service) -> None:
    store.save_stage(Stage.KNOWLEDGE)
    printed: list[str] = []
    main.play_shell(_scripted("", ":quit"), printed.append, service=make_service())
    assert "TOQUE PARA CONTINUAR" in printed
    assert "Conecte-se ao Outro Lado e entenda suas mensagens." in printed


def test_full_playthrough(make_service, clock) -> None:
    service: EnigmaService = make_service()
    printed: list[str] = []
    sleeps: list[float] = []

    def sleep(seconds: float) -> None:
        sleeps.append(seconds)
        clock.advance(seconds)

    inputs = _scripted(
        "",
        "xyz",
        "conhecimento",
        "Conquistar",
        " BUSQUE ",
        "p busque 1",
        "p conquistar 2",
        "p conhecimento 3",
    )
    assert main.play_shell(inputs, printed.append, sleep, service=service) == 0
    assert WRONG_ANSWER_ERROR in printed
    assert FINAL_ERROR_TEXT in printed
    assert "~~ s1n4l 1nst4v3l ~~" in printed
    assert service.stage == Stage.FINAL_CARD
    assert sleeps == [1.0, 90.0, 1.5]


def test_wrong_puzzle_order_resets_board(store: ProgressStore, make_service, clock) -> None:
    store.save_stage(Stage.DRAG_PUZZLE)
    service: EnigmaService = make_service()
    printed: list[str] = []
    sleeps: list[float] = []

    def sleep(seconds: float) -> None:
        sleeps.append(seconds)
        clock.advance(seconds)

    inputs = _scripted("", "p conhecimento 1", "p conquistar 2", "p busque 3", ":q")
    assert main.play_shell(inputs, printed.append, sleep, service=service) == 0
    assert WRONG_ORDER_ERROR in printed
    assert sleeps == [2.0]
    assert printed[-1] == "Palavras: CONHECIMENTO, CONQUISTAR, BUSQUE"
    assert service.puzzle is None


def test_click_commands_and_invalid_input(store: ProgressStore, make_service) -> None:
    store.save_stage(Stage.DRAG_PUZZLE)
    printed: list[str] = []
    inputs = _scripted("", "s busque", "c 1", "c 1", "c 9", "dance", "?", ":q")
    assert main.play_shell(inputs, printed.append, service=make_service()) == 0
    assert "Palavras: CONHECIMENTO, CONQUISTAR, *BUSQUE*" in printed
    assert "[1: BUSQUE] [2: ____] [3: ____]" in printed
    assert "Palavras: CONHECIMENTO, CONQUISTAR, BUSQUE" in printed
    assert printed.count("Comando inválido.") == 2


def test_mute_toggle_in_shell(make_service) -> None:
    service: EnigmaService = make_service()
    printed: list[str] = []
    main.play_shell(_scripted("", ":m", ":q"), printed.append, service=service)
    assert "Som desativado." in printed
    assert "♪ (sem som)" in printed
    assert service.is_muted is True


def test_override_code_restarts_in_shell(store: ProgressStore, make_service) -> None:
    store.save_stage(Stage.CONQUER)
    service: EnigmaService = make_service()
    printed: list[str] = []
    main.play_shell(_scripted("", "0413", ":q"), printed.append, service=service)
    assert "Progresso apagado." in printed
    assert service.stage == Stage.START
    assert printed.count("\n=== O Enigma do Outro Lado ===") == 2


def test_override_code_from_puzzle(store: ProgressStore, make_service) -> None:
    store.save_stage(Stage.DRAG_PUZZLE)
    service: EnigmaService = make_service()
    printed: list[str] = []
    main.play_shell(_scripted("", "0413", ":q"), printed.append, service=service)
    assert "Progresso apagado." in printed
    assert service.stage == Stage.START


def test_stage_image_shows_download_name(make_service) -> None:
    printed: list[str] = []
    main.play_shell(_scripted("", ":q"), printed.append, service=make_service())
    image = definition_of(Stage.START).image
    assert f"[{image}] (salvar como Primeiro-Sinal.jpg)" in printed


def test_puzzle_prompt_comes_from_catalog(store: ProgressStore, make_service) -> None:
    store.save_stage(Stage.DRAG_PUZZLE)
    printed: list[str] = []
    main.play_shell(_scripted("", ":q"), printed.append, service=make_service())
    assert f"\n{definition_of(Stage.DRAG_PUZZLE).prompt}" in printed


def test_locked_puzzle_without_timer_is_an_error(store: ProgressStore, make_service) -> None:
    store.save_stage(Stage.DRAG_PUZZLE)
    service: EnigmaService = make_service()
    service.puzzle.solved = True
    with pytest.raises(RuntimeError, match="no timer scheduled"):
        main.play_shell(_scripted(""), lambda line: None, service=service)
