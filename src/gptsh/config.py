import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigError

# -------- Settings --------
DEFAULT_API_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-4"
DEFAULT_TIMEOUT = 60
DEFAULT_SHELL = "bash"
DEFAULT_MAX_ROUNDS = 8

BANNED_FILE = "banned.txt"
ALLOWED_FILE = "allowed.txt"
CONFIG_FILE = "config.json"
HIST_FILE = "history.txt"
LOG_FILE = "gptsh.log"

logger = logging.getLogger("gptsh")


@dataclass
class Settings:
    api_key: str
    model: str = DEFAULT_MODEL
    api_url: str = DEFAULT_API_URL
    timeout: int = DEFAULT_TIMEOUT
    shell: str = DEFAULT_SHELL
    max_function_rounds: int = DEFAULT_MAX_ROUNDS
    state_dir: Path = Path.home() / ".gptsh"

    @property
    def banned_file(self) -> Path:
        return self.state_dir / BANNED_FILE

    @property
    def allowed_file(self) -> Path:
        return self.state_dir / ALLOWED_FILE

    @property
    def config_file(self) -> Path:
        return self.state_dir / CONFIG_FILE

    @property
    def history_file(self) -> Path:
        return self.state_dir / HIST_FILE


def state_dir_from_env() -> Path:
    raw = os.environ.get("GPTSH_HOME")
    if raw:
        return Path(raw).expanduser()
    return Path.home() / ".gptsh"


def _int_env(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value


def load_settings(model: str = None) -> Settings:
    """Build settings from the environment, reading a .env file first.

    Raises ConfigError when OPENAI_API_KEY is not set.
    """
    load_dotenv()
    api_key = (os.environ.get("OPENAI_API_KEY") or "").strip()
    if not api_key:
        raise ConfigError("OPENAI_API_KEY not set in environment.")
    return Settings(
        api_key=api_key,
        model=model or os.environ.get("GPTSH_MODEL") or DEFAULT_MODEL,
        api_url=os.environ.get("OPENAI_API_URL") or DEFAULT_API_URL,
        timeout=_int_env("GPTSH_TIMEOUT", DEFAULT_TIMEOUT),
        shell=os.environ.get("GPTSH_SHELL") or DEFAULT_SHELL,
        max_function_rounds=_int_env("GPTSH_MAX_ROUNDS", DEFAULT_MAX_ROUNDS),
        state_dir=state_dir_from_env(),
    )


def setup_logging(verbose: bool = False, state_dir: Path = None) -> logging.Logger:
    logger.setLevel(logging.DEBUG)
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")

    if not logger.handlers:  # Prevent handler duplication
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

        if state_dir is not None:
            try:
                state_dir.mkdir(parents=True, exist_ok=True)
                file_handler = logging.FileHandler(state_dir / LOG_FILE, encoding="utf-8")
                file_handler.setLevel(logging.DEBUG)
                file_handler.setFormatter(formatter)
                logger.addHandler(file_handler)
            except OSError:
                # Console logging still works without the file
                pass

    return logger
