import enum
import logging
import os
from functools import lru_cache
from html import escape
from pathlib import Path

from prompt_toolkit import PromptSession
from prompt_toolkit.auto_suggest import AutoSuggestFromHistory
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import FileHistory
from prompt_toolkit.styles import Style

from .chat import Conversation
from .errors import ProtocolError, TransportError
from .ui import color, cwd_with_tilde, print_error, print_reply, print_status, username

logger = logging.getLogger("gptsh")

MODE_TOGGLE = "!"
EXIT_WORDS = ("exit", "quit")
SLASH_COMMANDS = ["/help", "/mode", "/clear", "/context", "/lists", "/reload", "/exit"]

PT_STYLE = Style.from_dict({
    "prompt.app": "bold ansired",
    "prompt.user": "ansigreen",
    "prompt.path": "bold ansiblue",
    "prompt.mode": "bold ansiblack bg:ansicyan",
})


class SessionMode(enum.Enum):
    LLM = "ai"
    DIRECT = "cmd"

    def toggled(self):
        return SessionMode.DIRECT if self is SessionMode.LLM else SessionMode.LLM


def prompt_html_for(mode: SessionMode, cwd: str):
    return (
        f'<prompt.app>[gptsh]</prompt.app>:'
        f'<prompt.user>{escape(username())}</prompt.user>:'
        f'<prompt.path>{escape(cwd)}</prompt.path> '
        f'<prompt.mode> {mode.value} </prompt.mode>$ '
    )


def print_help():
    print(color(f"""
gptsh session commands:
  {MODE_TOGGLE}                  Toggle between AI suggestions and direct commands
  {MODE_TOGGLE} <text>           Toggle, then run <text> in the new mode
  /mode              Show the current mode
  /clear             Forget the chat conversation
  /context           Show the context sent with every prompt
  /lists             Show allowed and banned commands
  /reload            Reload allowed/banned lists and context from disk
  /exit, exit, quit  Leave the session

Every command, suggested or typed, is checked against the allow and ban lists.
At the confirmation prompt: Enter or y runs it, n skips it, b bans it for good.
""".strip(), "37"))


@lru_cache(maxsize=1)
def executables_on_path(path_env: str):
    found = set()
    for entry in filter(None, path_env.split(os.pathsep)):
        try:
            with os.scandir(entry) as it:
                for item in it:
                    if item.is_file() and os.access(item.path, os.X_OK):
                        found.add(item.name)
        except OSError:
            continue
    return sorted(found)


def path_candidates(word: str):
    head, prefix = os.path.split(word)
    try:
        items = list(Path(os.path.expanduser(head or ".")).iterdir())
    except OSError:
        return []
    out = []
    for item in items:
        if not item.name.startswith(prefix):
            continue
        shown = os.path.join(head, item.name) + ("/" if item.is_dir() else "")
        out.append(shown.replace(" ", r"\ "))
    return sorted(out)


def command_start(line: str) -> int:
    """Offset of the command word: past a leading toggle and the spaces after it."""
    if not line.startswith(MODE_TOGGLE):
        return 0
    rest = line[len(MODE_TOGGLE):]
    return len(MODE_TOGGLE) + len(rest) - len(rest.lstrip())


def build_completions(line: str, text: str, begidx: int, mode: SessionMode):
    if line.startswith("/") and begidx == 0:
        return [c for c in SLASH_COMMANDS if c.startswith(text)]
    # A leading toggle means the line runs in the other mode
    if line.startswith(MODE_TOGGLE):
        mode = mode.toggled()
    if mode is SessionMode.LLM:
        return []
    if begidx == command_start(line):
        return [c for c in executables_on_path(os.environ.get("PATH", "")) if c.startswith(text)]
    return path_candidates(text)


class GptshCompleter(Completer):
    def __init__(self, mode_getter):
        self.mode_getter = mode_getter

    def get_completions(self, document, complete_event):
        line = document.text_before_cursor
        word = document.get_word_before_cursor(WORD=True)
        begidx = document.cursor_position - len(word)
        if begidx == 0 and word.startswith(MODE_TOGGLE):
            word = word[len(MODE_TOGGLE):]
            begidx = len(MODE_TOGGLE)
        for option in build_completions(line, word, begidx, self.mode_getter()):
            yield Completion(option, start_position=-len(word))


class SessionHistory(FileHistory):
    """FileHistory that reports a failed write once instead of ending the session."""

    def __init__(self, filename):
        super().__init__(filename)
        self.write_failed = False

    def store_string(self, string: str) -> None:
        try:
            super().store_string(string)
        except OSError as e:
            if not self.write_failed:
                print_status("history", f"could not save history: {e}", "33")
            logger.warning("history write failed: %s", e)
            self.write_failed = True


def build_prompt_session(history_file, mode_getter):
    return PromptSession(
        history=SessionHistory(str(history_file)),
        completer=GptshCompleter(mode_getter),
        auto_suggest=AutoSuggestFromHistory(),
        complete_while_typing=False,
        style=PT_STYLE,
    )


class Session:
    """Read-eval loop alternating between AI-suggested and direct commands.

    In chat mode one conversation lives for the whole session; in shell mode
    every line is translated on its own.
    """

    def __init__(self, engine, gate, store, chat: bool = False, prompt_session=None,
                 history_file=None, mode: SessionMode = SessionMode.LLM):
        self.engine = engine
        self.gate = gate
        self.store = store
        self.chat = chat
        self.mode = mode
        self.conversation = Conversation.start(context=store.context) if chat else None
        if prompt_session is None:
            prompt_session = build_prompt_session(history_file, lambda: self.mode)
        self.prompt_session = prompt_session

    def run(self):
        while True:
            cwd = cwd_with_tilde()
            try:
                line = self.prompt_session.prompt(HTML(prompt_html_for(self.mode, cwd)))
            except KeyboardInterrupt:
                continue
            except EOFError:
                print()
                break
            try:
                keep_going = self.handle_line((line or "").strip())
            except KeyboardInterrupt:
                print()
                print_status("interrupted", "line aborted", "33")
                continue
            if not keep_going:
                break
        print_status("bye", "See you later pal.", "90")

    def toggle_mode(self):
        self.mode = self.mode.toggled()
        print_status("mode", self.mode.value, "34")

    def is_slash_command(self, line: str) -> bool:
        # direct mode only intercepts known session commands; /bin/ls is a path
        if not line.startswith("/"):
            return False
        return line.split()[0] in SLASH_COMMANDS or self.mode is SessionMode.LLM

    def handle_line(self, line: str) -> bool:
        """Process one input line. Returns False when the session should end."""
        if not line:
            return True
        if line.lower() in EXIT_WORDS:
            return False
        if line.startswith(MODE_TOGGLE):
            self.toggle_mode()
            rest = line[len(MODE_TOGGLE):].strip()
            if rest:
                return self.dispatch(rest)
            return True
        if self.is_slash_command(line):
            return self.run_slash(line)
        return self.dispatch(line)

    def dispatch(self, line: str) -> bool:
        if self.mode is SessionMode.DIRECT:
            self.gate.dispose(line, echo=True)
            return True
        try:
            if self.chat:
                mark = len(self.conversation)
                try:
                    result = self.engine.advance(self.conversation, line)
                except KeyboardInterrupt:
                    # drop the half-finished turn
                    del self.conversation.messages[mark:]
                    raise
                if result.exit_requested:
                    print_status("chat", "Assistant has detected that you want to exit the chat.", "34")
                    return False
                if result.reply:
                    print_reply(result.reply)
            else:
                command = self.engine.suggest(line, self.store.context)
                self.gate.dispose(command, echo=True)
        except TransportError as e:
            print_error(str(e))
            if e.body:
                print_error(f"Response body: {e.body}")
            logger.error("transport error: %s", e)
        except ProtocolError as e:
            print_error(str(e))
            logger.error("protocol error: %s", e)
        return True

    def run_slash(self, line: str) -> bool:
        cmd = line.split()[0]
        if cmd == "/exit":
            return False
        if cmd == "/help":
            print_help()
        elif cmd == "/mode":
            print_status("mode", self.mode.value, "34")
        elif cmd == "/clear":
            if self.chat:
                self.conversation = Conversation.start(context=self.store.context)
            print_status("cleared", "chat context", "34")
        elif cmd == "/context":
            print(self.store.context or "[empty]")
        elif cmd == "/lists":
            print_status("allowed", ", ".join(self.store.allowed) or "[empty]", "32")
            print_status("banned", ", ".join(self.store.banned) or "[empty]", "31")
        elif cmd == "/reload":
            self.store.reload()
            print_status(
                "reload", f"{len(self.store.allowed)} allowed, {len(self.store.banned)} banned", "34"
            )
        else:
            print("Unknown command. Try /help")
        return True
