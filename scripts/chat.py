#!/usr/bin/env python3
"""
Interactive chat REPL for the conversational agent.

Usage:
    PYTHONPATH=src python scripts/chat.py
    PYTHONPATH=src python scripts/chat.py --character expert --log-level DEBUG

Commands inside the REPL:
    help            show commands
    chars           list available characters
    load <name>     switch character
    stats           short-term memory statistics
    learned         learning summary
    exit | quit     save long-term memory and leave
"""

import argparse

from dotenv import load_dotenv

load_dotenv()

from loguru import logger

from agents import build_agent, list_characters, load_character
from infrastructure import config
from infrastructure.config import CHARACTERS_DIR
from infrastructure.llm import CompletionError
from infrastructure.log import setup_logging
from memory.errors import LongTermStoreError

HELP = """\
Commands:
  chars         - List available characters
  load <name>   - Switch to a different character
  stats         - Short-term memory statistics
  learned       - What has been learned so far
  help          - Show this help menu
  exit | quit   - Save memory and exit
Anything else is sent to the assistant."""


def main() -> None:
    parser = argparse.ArgumentParser(description="Chat with the memory-backed agent")
    parser.add_argument("--character", default=None, help="Character to load (default from config)")
    parser.add_argument("--log-level", default="WARNING", help="Log level (default: WARNING)")
    parser.add_argument("--log-file", default=None, help="Optional rotating log file")
    parser.add_argument("--show-config", action="store_true", help="Log non-secret settings at startup (needs --log-level INFO)")
    args = parser.parse_args()

    setup_logging(args.log_level, log_file=args.log_file)
    if args.show_config:
        config.dump()
    agent = build_agent(args.character)

    print(f"Chatting with {agent.personality}. Type 'help' for commands.")
    while True:
        try:
            user_input = input("You: ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break

        if not user_input:
            continue
        command = user_input.lower()
        if command in ("exit", "quit"):
            break
        if command == "help":
            print(HELP)
        elif command == "chars":
            print(", ".join(list_characters(CHARACTERS_DIR)) or "(no characters found)")
        elif command.startswith("load "):
            try:
                agent.switch_personality(load_character(user_input[5:].strip()))
                print(f"Switched to {agent.personality}")
            except (OSError, ValueError) as exc:
                print(f"Could not load character: {exc}")
        elif command == "stats":
            print(agent.memory_stats())
        elif command == "learned":
            print(agent.learning_summary())
        else:
            try:
                response = agent.chat(user_input)
            except CompletionError as exc:
                logger.error("Completion failed: {}", exc)
                print(f"Error: {exc}")
                continue
            print(f"{agent.personality}: {response.answer}")

    try:
        agent.shutdown()
    except LongTermStoreError as exc:
        logger.error("Failed to save long-term memory: {}", exc)
    print("Goodbye!")


if __name__ == "__main__":
    main()
