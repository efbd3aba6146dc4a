"""CLI entrypoint for the text rendition of the enigma."""

from __future__ import annotations

import argparse
import logging
import time
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

from .config import Settings, get_settings
from .models import Stage, StageDefinition
from .puzzle import SLOT_COUNT, WordPuzzle
from .service import FINAL_ERROR_TEXT, OVERRIDE_CODE, EnigmaService, normalize_answer

InputFn = Callable[[str], str]
PrintFn = Callable[[str], None]
SleepFn = Callable[[float], None]
TITLE = "O Enigma do Outro Lado"
FLOW_EXIT_COMMANDS = {":quit", ":exit", ":q"}
MUTE_COMMANDS = {":mute", ":m"}
HELP_COMMANDS = {":help", ":h", "?"}


class QuitApp(Exception):
    """Signal immediate app exit from nested flows."""


def _service(settings: Settings) -> EnigmaService:
    """Create app service with the configured database path."""
    return EnigmaService.open(settings.db_path, settings=settings)


def run(argv: list[str] | None = None) -> int:
    """Run the CLI application."""
    parser = argparse.ArgumentParser(prog="otherside", description=TITLE)
    parser.add_argument("command", nargs="?", default="play", choices=["play"])
    parser.add_argument("--db", help="progress database path")
    parser.add_argument("--reset", action="store_true", help="forget saved progress before starting")
    args = parser.parse_args(argv)

    settings = get_settings()
    if args.db:
        settings = replace(settings, db_path=Path(args.db))
    logging.basicConfig(level=settings.log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    service = _service(settings)
    if args.reset:
        service.restart()
    return play_shell(service=service)


def play_shell(
    input_fn: InputFn = input,
    print_fn: PrintFn = print,
    sleep_fn: SleepFn = time.sleep,
    service: EnigmaService | None = None,
) -> int:
    """Run the stage loop until the ending is shown or the player quits."""
    if service is None:
        service = _service(get_settings())
    try:
        _opening(service, input_fn, print_fn)
        while True:
            service.tick()
            if service.accepts_answers:
                _answer_flow(service, input_fn, print_fn)
            elif service.stage == Stage.DRAG_PUZZLE:
                _puzzle_flow(service, input_fn, print_fn, sleep_fn)
            else:
                _final_flow(service, print_fn, sleep_fn)
                return 0
    except QuitApp:
        return 0
    finally:
        service.close()


def _read(input_fn: InputFn, prompt: str) -> str:
    """Read one line, raising QuitApp on an exit command."""
    value = input_fn(prompt).strip()
    if value.lower() in FLOW_EXIT_COMMANDS:
        raise QuitApp
    return value


def _opening(service: EnigmaService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Title card shown once per run."""
    print_fn(f"\n{TITLE}")
    print_fn("TOQUE PARA INICIAR" if service.stage == Stage.START else "TOQUE PARA CONTINUAR")
    _read(input_fn, "")


def _toggle_mute(service: EnigmaService, print_fn: PrintFn) -> None:
    muted = service.toggle_mute()
    print_fn("Som desativado." if muted else "Som ativado.")
    _print_track(service, print_fn)


def _print_track(service: EnigmaService, print_fn: PrintFn) -> None:
    track = service.current_track
    print_fn(f"♪ {track}" if track else "♪ (sem som)")


def _print_image(definition: StageDefinition, print_fn: PrintFn) -> None:
    if not definition.image:
        return
    if definition.download_name:
        print_fn(f"[{definition.image}] (salvar como {definition.download_name})")
    else:
        print_fn(f"[{definition.image}]")


def _answer_flow(service: EnigmaService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Show one text stage and take answers until it changes."""
    stage = service.stage
    definition = service.definition
    print_fn(f"\n=== {TITLE} ===")
    _print_image(definition, print_fn)
    print_fn(definition.prompt)
    _print_track(service, print_fn)

    while service.stage == stage:
        raw = _read(input_fn, "Digite sua resposta...: ")
        if raw.lower() in MUTE_COMMANDS:
            _toggle_mute(service, print_fn)
            continue
        result = service.submit_answer(raw)
        if result.restart:
            print_fn("Progresso apagado.")
            return
        if result.error:
            print_fn(result.error)


def _render_puzzle(puzzle: WordPuzzle, print_fn: PrintFn) -> None:
    slots = " ".join(f"[{index}: {word or '____'}]" for index, word in enumerate(puzzle.slots, start=1))
    print_fn(slots)
    pool = ", ".join(f"*{word}*" if word == puzzle.selection else word for word in puzzle.pool)
    print_fn(f"Palavras: {pool or '-'}")


def _puzzle_help(print_fn: PrintFn) -> None:
    print_fn("p PALAVRA N  arrastar palavra para o espaço N")
    print_fn("s PALAVRA    selecionar palavra")
    print_fn("c N          tocar no espaço N")
    print_fn(":m som, :q sair")


def _parse_slot(raw: str) -> int | None:
    """Convert a 1-based slot number to an index."""
    if not raw.isdigit():
        return None
    index = int(raw) - 1
    if 0 <= index < SLOT_COUNT:
        return index
    return None


def _apply_puzzle_command(puzzle: WordPuzzle, command: str) -> bool:
    """Apply one puzzle command. Returns False when it could not be parsed."""
    parts = command.split()
    if not parts:
        return False
    verb = parts[0].lower()
    if verb == "p" and len(parts) == 3:
        slot = _parse_slot(parts[2])
        if slot is None:
            return False
        puzzle.place_word(parts[1].upper(), slot)
        return True
    if verb == "s" and len(parts) == 2:
        puzzle.select_word(parts[1].upper())
        return True
    if verb == "c" and len(parts) == 2:
        slot = _parse_slot(parts[1])
        if slot is None:
            return False
        puzzle.place_selected(slot)
        return True
    return False


def _wait_for_timers(service: EnigmaService, sleep_fn: SleepFn) -> bool:
    """Sleep until the next timer and run it. Returns False when nothing is scheduled."""
    delay = service.scheduler.next_delay()
    if delay is None:
        return False
    sleep_fn(delay)
    service.tick()
    return True


def _puzzle_flow(service: EnigmaService, input_fn: InputFn, print_fn: PrintFn, sleep_fn: SleepFn) -> None:
    """Run the word ordering puzzle until it is solved."""
    print_fn(f"\n{service.definition.prompt}")
    _print_track(service, print_fn)
    _puzzle_help(print_fn)

    while service.stage == Stage.DRAG_PUZZLE and service.puzzle is not None:
        puzzle = service.puzzle
        _render_puzzle(puzzle, print_fn)
        if puzzle.error:
            print_fn(puzzle.error)
        if puzzle.locked:
            if not _wait_for_timers(service, sleep_fn):
                raise RuntimeError("Puzzle verdict pending with no timer scheduled.")
            continue

        command = _read(input_fn, "> ")
        if command.lower() in MUTE_COMMANDS:
            _toggle_mute(service, print_fn)
            continue
        if command.lower() in HELP_COMMANDS:
            _puzzle_help(print_fn)
            continue
        if normalize_answer(command) == OVERRIDE_CODE:
            service.submit_answer(command)
            print_fn("Progresso apagado.")
            return
        if not _apply_puzzle_command(puzzle, command):
            print_fn("Comando inválido.")
        service.tick()


def _final_flow(service: EnigmaService, print_fn: PrintFn, sleep_fn: SleepFn) -> None:
    """Show the final card, then the scripted connection loss."""
    definition = service.definition
    print_fn(f"\n{definition.prompt}")
    _print_image(definition, print_fn)
    _print_track(service, print_fn)

    while not service.show_final_error:
        if not _wait_for_timers(service, sleep_fn):
            break
        if service.is_glitching:
            print_fn("~~ s1n4l 1nst4v3l ~~")
    if service.show_final_error:
        print_fn(FINAL_ERROR_TEXT)


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()
