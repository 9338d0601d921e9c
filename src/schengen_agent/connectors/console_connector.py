# src/schengen_agent/connectors/console_connector.py

from __future__ import annotations

import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)

EXIT_COMMANDS = ("/exit", "/quit")
PROMPT = "schengen> "


def _say(text: str) -> None:
    stamp = datetime.now().astimezone().strftime("%H:%M:%S")
    print(f"[{stamp}] {text}", flush=True)


def confirm_prompt(question: str) -> bool:
    """Yes/no question for the bulk commands; anything but y/yes declines."""
    try:
        answer = input(f"{question} [y/N] ")
    except (EOFError, KeyboardInterrupt):
        print()
        return False
    return answer.strip().lower() in ("y", "yes")


def handle_line(state: AppState, line: str) -> str:
    """Run one console line through the command registry and return the reply."""
    try:
        reply = command_registry.handle(state, line, emit=_say, confirm=confirm_prompt)
    except TimeoutError:
        logger.warning("Agent loop did not answer in time: %s", line)
        return "The agent did not answer in time. Try again."
    except Exception:
        logger.exception("Command handler crashed: %s", line)
        return "Internal error while handling a command."

    if reply is None:
        return "Commands start with '/'. Use /help to list them."
    return reply


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started.")
    _say(f"{state.settings.app_name}: /help lists commands, /exit quits.")

    while True:
        try:
            line = input(PROMPT).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not line:
            continue
        if line.lower() in EXIT_COMMANDS:
            break

        _say(handle_line(state, line))

    logger.info("Console connector finished.")
