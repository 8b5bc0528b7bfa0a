import enum
import json
import logging
import sys
from dataclasses import dataclass
from typing import Optional

from .commands import CommandResult, extract_command, is_shell_builtin, run_command
from .errors import ExecutionError
from .ui import color, print_command, print_status

logger = logging.getLogger("gptsh")

CONFIRM_PROMPT = "Do you want to execute this command? (Y/n/b for ban) "


class DispositionKind(enum.Enum):
    EXECUTED = "executed"
    DENIED = "denied"
    BANNED = "banned"
    DEFERRED = "deferred"  # shell builtin handed back to the operator


@dataclass
class Disposition:
    kind: DispositionKind
    command: str
    result: Optional[CommandResult] = None
    reason: str = ""

    @property
    def executed(self) -> bool:
        return self.kind is DispositionKind.EXECUTED

    def function_payload(self) -> str:
        """Content of the function-role message that reports this outcome to the model."""
        if self.kind is DispositionKind.EXECUTED:
            r = self.result
            if r.error:
                return json.dumps({"error": r.error})
            if r.returncode == 0:
                return r.stdout
            return json.dumps({"stdout": r.stdout, "stderr": r.stderr, "status": r.returncode})
        if self.kind is DispositionKind.BANNED:
            return json.dumps({"error": "The command is banned and was not executed."})
        if self.kind is DispositionKind.DEFERRED:
            return json.dumps({
                "error": "The command is a shell builtin; the user has to run it in their own shell."
            })
        return json.dumps({"error": self.reason or "User denied permission to execute the command."})


def builtin_notice(command: str) -> str:
    return (
        f"Note: The command '{command}' affects the shell's state and cannot be executed "
        f"directly by this program.\nPlease run the following command in your terminal:\n{command}"
    )


class SafetyGate:
    """Decides the fate of every command before it reaches a child shell."""

    def __init__(self, store, shell: str = "bash", dry_run: bool = False, ask=input, runner=run_command):
        self.store = store
        self.shell = shell
        self.dry_run = dry_run
        self.ask = ask
        self.runner = runner

    def dispose(self, candidate: str, echo: bool = True) -> Disposition:
        command = extract_command(candidate)
        if not command:
            return Disposition(DispositionKind.DENIED, command, reason="No command provided.")

        # Allow-list wins over a ban recorded for the same text.
        if self.store.is_allowed(command):
            logger.debug("allow-listed: %s", command)
            if not self.dry_run:
                print_command(command)
            return self._execute(command, echo)

        if self.store.is_banned(command):
            print_status("banned", f'The command "{command}" is banned and will not be executed.', "31")
            logger.info("refused banned command: %s", command)
            return Disposition(DispositionKind.BANNED, command)

        if self.dry_run:
            return self._execute(command, echo)

        print_command(command)
        answer = self._confirm()
        if answer in ("", "y", "yes"):
            return self._execute(command, echo)
        if answer in ("b", "ban"):
            try:
                self.store.ban(command)
            except OSError as e:
                print_status("error", f"Error banning the command: {e}", "31")
                return Disposition(DispositionKind.DENIED, command, reason="User denied permission to execute the command.")
            print_status("banned", f'Command "{command}" has been banned.', "33")
            return Disposition(DispositionKind.BANNED, command)
        if answer not in ("n", "no"):
            print_status("ok", "Invalid input.", "33")
        print_status("ok", "Command execution cancelled.", "34")
        return Disposition(
            DispositionKind.DENIED, command, reason="User denied permission to execute the command."
        )

    def _confirm(self) -> str:
        try:
            return self.ask(CONFIRM_PROMPT).strip().lower()
        except (EOFError, KeyboardInterrupt):
            print()
            return "n"

    def _execute(self, command: str, echo: bool) -> Disposition:
        if self.dry_run:
            print(command)
            return Disposition(DispositionKind.DENIED, command, reason="dry run")

        if is_shell_builtin(command):
            print(color(builtin_notice(command), "33"))
            return Disposition(DispositionKind.DEFERRED, command)

        try:
            result = self.runner(command, self.shell)
        except ExecutionError as e:
            print_status("error", str(e), "31")
            logger.error("%s", e)
            result = CommandResult(command, error=str(e))
            return Disposition(DispositionKind.EXECUTED, command, result)

        if echo:
            if result.stdout:
                sys.stdout.write(result.stdout)
                if not result.stdout.endswith("\n"):
                    sys.stdout.write("\n")
                sys.stdout.flush()
            if result.stderr:
                sys.stderr.write(result.stderr)
                if not result.stderr.endswith("\n"):
                    sys.stderr.write("\n")
                sys.stderr.flush()
        if result.returncode != 0:
            print_status("exit", f"Command exited with non-zero status ({result.returncode}).", "31")
            logger.warning("command %r exited with status %s", command, result.returncode)
        return Disposition(DispositionKind.EXECUTED, command, result)
