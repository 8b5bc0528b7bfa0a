import subprocess
from dataclasses import dataclass
from typing import Optional

from .errors import ExecutionError

SHELL_BUILTINS = {"cd", "export", "alias", "source", "unset"}


def is_shell_builtin(command: str) -> bool:
    parts = (command or "").split()
    if not parts:
        return False
    return parts[0] in SHELL_BUILTINS


def extract_command(text: str) -> str:
    """
    Strip a fenced code block around a command, e.g.
      ```bash\\nls -la\\n```  ->  ls -la
    Anything that is not exactly one fence comes back trimmed but otherwise as-is.
    """
    trimmed = (text or "").strip()
    if not (trimmed.startswith("```") and trimmed.endswith("```")) or len(trimmed) < 6:
        return trimmed
    first_nl = trimmed.find("\n")
    if first_nl == -1:
        return trimmed
    info = trimmed[3:first_nl].strip()
    if info not in ("", "bash", "sh", "shell", "zsh"):
        return trimmed
    body = trimmed[first_nl + 1:]
    if not body.endswith("\n```"):
        return trimmed
    inner = body[: -len("\n```")]
    if "```" in inner:
        return trimmed
    return inner.strip()


@dataclass
class CommandResult:
    command: str
    stdout: str = ""
    stderr: str = ""
    returncode: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.returncode == 0


def run_command(command: str, shell: str = "bash") -> CommandResult:
    try:
        p = subprocess.run(
            [shell, "-c", command], text=True, encoding="utf-8", errors="replace", capture_output=True
        )
    except OSError as e:
        raise ExecutionError(f"Failed to execute command: {e}") from e
    return CommandResult(command, p.stdout or "", p.stderr or "", p.returncode)
