import os
import sys
from pathlib import Path

USE_COLOR = sys.stdout.isatty() and os.environ.get("NO_COLOR") is None


def color(text: str, code: str):
    if not USE_COLOR:
        return text
    return f"\033[{code}m{text}\033[0m"


def print_status(tag: str, msg: str, code: str = "36"):
    print(f"{color(f'[{tag}]', f'1;{code}')} {msg}")


def print_error(msg: str):
    print(f"{color('Error:', '1;31')} {msg}", file=sys.stderr)


def print_command(cmd: str):
    print(f"\n{color('Generated Command:', '1;37')}\n```bash\n{cmd}\n```")


def print_reply(text: str):
    print(f"\n{color('gptsh:', '1;35')} {text.strip()}\n")


def cwd_with_tilde(cwd: str = None) -> str:
    cwd = cwd or os.getcwd()
    home = str(Path.home())
    if cwd == home or cwd.startswith(home + os.sep):
        return "~" + cwd[len(home):]
    return cwd


def username() -> str:
    return os.environ.get("USER") or "Unknown User"
