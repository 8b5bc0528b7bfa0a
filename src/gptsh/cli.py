#!/usr/bin/env python3
import argparse
import sys

from .backend import ModelClient
from .chat import ConversationEngine
from .config import load_settings, setup_logging
from .errors import ConfigError, ProtocolError, TransportError
from .gate import SafetyGate
from .lists import ListStore
from .session import MODE_TOGGLE, Session
from .ui import color, print_error


def build_parser():
    parser = argparse.ArgumentParser(
        prog="gptsh",
        usage="gptsh [OPTIONS] [PROMPT]",
        description="Turn natural language into shell commands, with a human in the loop.",
    )
    parser.add_argument("prompt", nargs="*", help="what you want the shell to do")
    parser.add_argument("--shell", action="store_true", help="run in continuous shell mode")
    parser.add_argument("--chat", action="store_true", help="run in chat mode with function calling")
    parser.add_argument(
        "--no-execute", action="store_true", help="output the generated command without executing it"
    )
    parser.add_argument("--model", help="backend model name (default: $GPTSH_MODEL or gpt-4)")
    parser.add_argument("-v", "--verbose", action="store_true", help="show debug logs and command output")
    return parser


def print_banner(model_name: str, chat: bool, dry_run: bool):
    bar = "=" * 62
    print(color(bar, "2;37"))
    title = color("gptsh", "1;97")
    mode = color("chat" if chat else "shell", "1;36")
    meta = color(f"model={model_name}", "1;35")
    dry = color(f"dryrun={'on' if dry_run else 'off'}", "1;33" if dry_run else "2;37")
    print(f"{title}  {mode}  {meta}  {dry}")
    print(color(f"Type {MODE_TOGGLE} to switch AI/direct mode, /help for commands, exit to quit", "2;37"))
    print(color(bar, "2;37"))


def report_transport_error(e: TransportError):
    print_error(str(e))
    if e.body:
        print_error(f"Response body: {e.body}")
    if e.status is None:
        print_error("Tip: Check your internet connection and try again.")


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not (args.shell or args.chat or args.prompt):
        print_error("No prompt provided.\n")
        parser.print_help()
        return 1

    try:
        settings = load_settings(model=args.model)
    except ConfigError as e:
        print_error(str(e))
        return 1

    logger = setup_logging(args.verbose, settings.state_dir)
    store = ListStore.from_settings(settings)
    try:
        store.initialize()
        store.load()
    except OSError as e:
        print_error(f"Could not prepare {settings.state_dir}: {e}")
        return 1

    gate = SafetyGate(store, shell=settings.shell, dry_run=args.no_execute)
    engine = ConversationEngine(
        ModelClient.from_settings(settings),
        gate,
        max_function_rounds=settings.max_function_rounds,
        verbose=args.verbose,
    )

    if args.chat or args.shell:
        print_banner(settings.model, args.chat, args.no_execute)
        Session(engine, gate, store, chat=args.chat, history_file=settings.history_file).run()
        return 0

    prompt = " ".join(args.prompt)
    logger.debug("one-shot prompt: %s", prompt)
    try:
        command = engine.suggest(prompt, store.context)
    except TransportError as e:
        report_transport_error(e)
        return 1
    except ProtocolError as e:
        print_error(str(e))
        return 1
    gate.dispose(command, echo=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
