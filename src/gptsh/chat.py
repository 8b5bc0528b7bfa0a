import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Optional

from .backend import EXECUTE_COMMAND, EXIT_CHAT, FUNCTIONS, FunctionCallReply, Message
from .commands import extract_command
from .errors import BadBackendResponse, MalformedFunctionArgs, ProtocolError, UnknownFunction
from .spinner import Spinner
from .ui import print_status

logger = logging.getLogger("gptsh")

SYSTEM_PROMPT = (
    "You are a helpful assistant chatting in a terminal, use proper formatting so that "
    "your answers are easy to read. When appropriate, you can execute shell commands to "
    "assist the user with the execute_command function. If you detect that the user "
    "wants to exit the conversation, call the exit_chat function."
)
TRANSLATE_PROMPT = "Translate the following prompt into a bash command without explanation:\n{prompt}"


@dataclass
class Conversation:
    messages: list = field(default_factory=list)

    @classmethod
    def start(cls, system_prompt: str = SYSTEM_PROMPT, context: str = ""):
        conv = cls()
        text = system_prompt
        if context:
            text = f"{system_prompt}\n\n{context}" if system_prompt else context
        if text:
            conv.append(Message("system", text))
        return conv

    def append(self, message: Message):
        self.messages.append(message)

    def __len__(self):
        return len(self.messages)

    def __iter__(self):
        return iter(self.messages)


class TurnState(enum.Enum):
    AWAITING_MODEL_REPLY = "awaiting_model_reply"
    AWAITING_FUNCTION_RESULT = "awaiting_function_result"
    TERMINAL = "terminal"


@dataclass
class TurnResult:
    reply: Optional[str] = None
    exit_requested: bool = False
    function_rounds: int = 0


def parse_command_arguments(arguments: str) -> str:
    try:
        args = json.loads(arguments or "")
    except json.JSONDecodeError as e:
        raise MalformedFunctionArgs(f"Failed to parse function arguments: {e}") from e
    command = args.get("command") if isinstance(args, dict) else None
    if not isinstance(command, str):
        raise MalformedFunctionArgs("Function arguments carry no 'command' field.")
    if not command.strip():
        raise MalformedFunctionArgs("No command provided to execute.")
    return command


class ConversationEngine:
    """Drives the function-calling exchange with the backend for one turn at a time.

    Each round trip runs under the spinner. A turn ends with a text reply, an
    exit_chat request, or an error; errors never leave a function call in the
    conversation without its result.
    """

    def __init__(self, client, gate, max_function_rounds: int = 8, indicator=Spinner, verbose: bool = False):
        self.client = client
        self.gate = gate
        self.max_function_rounds = max_function_rounds
        self.indicator = indicator
        self.verbose = verbose

    def _request(self, messages, functions=None):
        with self.indicator():
            return self.client.complete(messages, functions)

    def advance(self, conversation: Conversation, user_text: str) -> TurnResult:
        conversation.append(Message("user", user_text))
        result = TurnResult()
        state = TurnState.AWAITING_MODEL_REPLY

        while state is not TurnState.TERMINAL:
            reply = self._request(list(conversation), FUNCTIONS)

            if not isinstance(reply, FunctionCallReply):
                conversation.append(Message("assistant", reply.content))
                result.reply = reply.content
                state = TurnState.TERMINAL
                continue

            call = reply.function_call
            logger.debug("function call: %s %s", call.name, call.arguments)
            if call.name == EXIT_CHAT:
                result.exit_requested = True
                state = TurnState.TERMINAL
                continue
            if call.name != EXECUTE_COMMAND:
                raise UnknownFunction(call.name)
            if result.function_rounds >= self.max_function_rounds:
                raise ProtocolError(
                    f"Gave up after {self.max_function_rounds} consecutive function calls."
                )

            command = parse_command_arguments(call.arguments)
            state = TurnState.AWAITING_FUNCTION_RESULT
            print_status("assistant", f"wants to run: {command}", "35")
            disposition = self.gate.dispose(command, echo=self.verbose)
            logger.debug("disposition: %s", disposition.kind.value)

            conversation.append(Message("assistant", reply.content, function_call=call))
            conversation.append(Message("function", disposition.function_payload(), name=EXECUTE_COMMAND))
            result.function_rounds += 1
            state = TurnState.AWAITING_MODEL_REPLY

        return result

    def suggest(self, prompt: str, context: str = "") -> str:
        """One-shot translation of a prompt into a single command, on a fresh conversation."""
        conversation = Conversation.start(system_prompt="", context=context)
        conversation.append(Message("user", TRANSLATE_PROMPT.format(prompt=prompt)))
        reply = self._request(list(conversation))
        if isinstance(reply, FunctionCallReply):
            raise BadBackendResponse("Expected a command, got a function call.")
        command = extract_command(reply.content)
        if not command:
            raise BadBackendResponse("The model returned an empty command.")
        return command
