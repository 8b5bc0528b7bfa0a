import json
import logging
import os
from pathlib import Path

logger = logging.getLogger("gptsh")


def load_entries(path: Path):
    """Return the trimmed, non-empty lines of a list file (missing file: empty)."""
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8") as f:
        return [ln.strip() for ln in f if ln.strip()]


def append_entry(path: Path, entry: str):
    path.parent.mkdir(parents=True, exist_ok=True)
    lead = ""
    if path.exists() and path.stat().st_size:
        # keep a hand-edited last line without its newline intact
        with path.open("rb") as f:
            f.seek(-1, os.SEEK_END)
            if f.read(1) != b"\n":
                lead = "\n"
    with path.open("a", encoding="utf-8") as f:
        f.write(lead + entry.strip() + "\n")


def load_config(path: Path):
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict):
            return data
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("could not read %s: %s", path, e)
    return {}


class ListStore:
    """Banned and allowed command lists plus the free-text context.

    Loaded once per session; call reload() to pick up edits made on disk.
    """

    def __init__(self, banned_file: Path, allowed_file: Path, config_file: Path):
        self.banned_file = Path(banned_file)
        self.allowed_file = Path(allowed_file)
        self.config_file = Path(config_file)
        self.banned = []
        self.allowed = []
        self.context = ""

    @classmethod
    def from_settings(cls, settings):
        return cls(settings.banned_file, settings.allowed_file, settings.config_file)

    def initialize(self):
        """Create empty list files so the operator can find and edit them."""
        for path in (self.banned_file, self.allowed_file):
            if not path.exists():
                path.parent.mkdir(parents=True, exist_ok=True)
                path.touch()

    def reload(self):
        self.banned = load_entries(self.banned_file)
        self.allowed = load_entries(self.allowed_file)
        context = load_config(self.config_file).get("context") or ""
        self.context = context.strip() if isinstance(context, str) else ""
        logger.debug(
            "loaded %d banned, %d allowed commands", len(self.banned), len(self.allowed)
        )
        return self

    load = reload

    def is_allowed(self, command: str) -> bool:
        return command.strip() in self.allowed

    def is_banned(self, command: str) -> bool:
        return command.strip() in self.banned

    def ban(self, command: str):
        # Append-only: a repeated ban leaves a second line behind.
        command = command.strip()
        append_entry(self.banned_file, command)
        self.banned.append(command)
        logger.info("banned command: %s", command)
