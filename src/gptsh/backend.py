import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Optional, Union

from .errors import BadBackendResponse, TransportError

logger = logging.getLogger("gptsh")

EXECUTE_COMMAND = "execute_command"
EXIT_CHAT = "exit_chat"

FUNCTIONS = [
    {
        "name": EXECUTE_COMMAND,
        "description": "Executes a shell command and returns the output.",
        "parameters": {
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "description": "The shell command to execute.",
                }
            },
            "required": ["command"],
        },
    },
    {
        "name": EXIT_CHAT,
        "description": "Signals that the user wants to exit the chat.",
        "parameters": {"type": "object", "properties": {}},
    },
]


@dataclass
class FunctionCall:
    name: str
    arguments: str = "{}"

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "arguments": self.arguments}


@dataclass
class Message:
    role: str  # system | user | assistant | function
    content: Optional[str] = None
    function_call: Optional[FunctionCall] = None
    name: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.function_call is not None:
            out["function_call"] = self.function_call.to_dict()
        if self.name is not None:
            out["name"] = self.name
        return out


@dataclass
class TextReply:
    content: str


@dataclass
class FunctionCallReply:
    function_call: FunctionCall
    content: Optional[str] = None


Reply = Union[TextReply, FunctionCallReply]


def build_request(model: str, messages: list[Message], functions=None) -> dict[str, Any]:
    body: dict[str, Any] = {
        "model": model,
        "messages": [m.to_dict() for m in messages],
    }
    if functions:
        body["functions"] = functions
        body["function_call"] = "auto"
    return body


def parse_response(payload: Any) -> Reply:
    """Turn a chat-completions payload into a TextReply or FunctionCallReply.

    Every shape problem surfaces here as BadBackendResponse.
    """
    if not isinstance(payload, dict):
        raise BadBackendResponse("Unexpected response format: body is not an object.")
    choices = payload.get("choices")
    if not isinstance(choices, list):
        raise BadBackendResponse("Unexpected response format: 'choices' field is missing.")
    if not choices:
        raise BadBackendResponse("No choices found in the response.")
    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    if not isinstance(message, dict):
        raise BadBackendResponse("Unexpected response format: 'message' field is missing.")

    content = message.get("content")
    if content is not None and not isinstance(content, str):
        raise BadBackendResponse("Unexpected response format: 'content' is not text.")

    fc = message.get("function_call")
    if fc is not None:
        if not isinstance(fc, dict):
            raise BadBackendResponse("Function call is not an object.")
        name = fc.get("name")
        if not isinstance(name, str) or not name:
            raise BadBackendResponse("Function call missing 'name' field.")
        arguments = fc.get("arguments")
        if arguments is None:
            arguments = "{}"
        if not isinstance(arguments, str):
            raise BadBackendResponse("Function call 'arguments' is not text.")
        return FunctionCallReply(FunctionCall(name, arguments), content)

    if content is None:
        raise BadBackendResponse("Reply has neither content nor a function call.")
    return TextReply(content)


class ModelClient:
    """Sends a conversation to an OpenAI-compatible chat-completions endpoint."""

    def __init__(self, api_key: str, model: str, api_url: str, timeout: int = 60):
        self.api_key = api_key
        self.model = model
        self.api_url = api_url
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings):
        return cls(settings.api_key, settings.model, settings.api_url, settings.timeout)

    def _make_headers(self):
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def post(self, body: dict[str, Any]) -> Any:
        req = urllib.request.Request(
            self.api_url,
            data=json.dumps(body).encode("utf-8"),
            headers=self._make_headers(),
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read()
        except urllib.error.HTTPError as e:
            try:
                detail = e.read().decode("utf-8", errors="replace")
            except OSError:
                detail = ""
            raise TransportError(
                f"Received non-success status code from OpenAI API: {e.code}",
                status=e.code,
                body=detail,
            ) from e
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            reason = getattr(e, "reason", e)
            raise TransportError(f"Error communicating with OpenAI API: {reason}") from e

        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise TransportError(f"Failed to parse JSON response: {e}") from e

    def complete(self, messages: list[Message], functions=None) -> Reply:
        body = build_request(self.model, messages, functions)
        logger.debug(
            "request: model=%s messages=%d functions=%s",
            self.model, len(messages), bool(functions),
        )
        reply = parse_response(self.post(body))
        logger.debug("reply: %s", type(reply).__name__)
        return reply
