import contextlib

import pytest

from gptsh.commands import CommandResult
from gptsh.lists import ListStore


@pytest.fixture
def store(tmp_path):
    s = ListStore(tmp_path / "banned.txt", tmp_path / "allowed.txt", tmp_path / "config.json")
    s.initialize()
    return s.load()


def no_spinner():
    return contextlib.nullcontext()


class FakeClient:
    """Returns scripted replies and records what was sent."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def complete(self, messages, functions=None):
        self.calls.append((list(messages), functions))
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


class RecordingRunner:
    def __init__(self, stdout="", stderr="", returncode=0):
        self.stdout = stdout
        self.stderr = stderr
        self.returncode = returncode
        self.commands = []

    def __call__(self, command, shell="bash"):
        self.commands.append(command)
        return CommandResult(command, self.stdout, self.stderr, self.returncode)


def refuse_runner(command, shell="bash"):
    raise AssertionError(f"process spawned for {command!r}")


def refuse_ask(prompt=""):
    raise AssertionError("operator was prompted")


@pytest.fixture(autouse=True)
def reset_gptsh_logger():
    import logging

    yield
    logger = logging.getLogger("gptsh")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
