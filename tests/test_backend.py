import io
import json
import urllib.error
from unittest import mock

import pytest

from gptsh.backend import (
    FUNCTIONS,
    FunctionCall,
    FunctionCallReply,
    Message,
    ModelClient,
    TextReply,
    build_request,
    parse_response,
)
from gptsh.errors import BadBackendResponse, TransportError


def payload(message):
    return {"choices": [{"index": 0, "message": message, "finish_reason": "stop"}]}


def fake_urlopen_response(body: bytes):
    resp = mock.MagicMock()
    resp.read.return_value = body
    resp.__enter__.return_value = resp
    return resp


class TestMessages:

    def test_user_message(self):
        assert Message("user", "hi").to_dict() == {"role": "user", "content": "hi"}

    def test_assistant_function_call(self):
        msg = Message("assistant", None, function_call=FunctionCall("exit_chat", "{}"))
        assert msg.to_dict() == {
            "role": "assistant",
            "content": None,
            "function_call": {"name": "exit_chat", "arguments": "{}"},
        }

    def test_function_result_carries_name(self):
        msg = Message("function", "hi\n", name="execute_command")
        assert msg.to_dict() == {"role": "function", "content": "hi\n", "name": "execute_command"}


class TestBuildRequest:

    def test_with_functions(self):
        body = build_request("gpt-4", [Message("user", "hi")], FUNCTIONS)
        assert body["model"] == "gpt-4"
        assert body["function_call"] == "auto"
        assert [f["name"] for f in body["functions"]] == ["execute_command", "exit_chat"]
        assert body["functions"][0]["parameters"]["required"] == ["command"]

    def test_without_functions(self):
        body = build_request("gpt-4", [Message("user", "hi")])
        assert "functions" not in body
        assert "function_call" not in body
        assert body["messages"] == [{"role": "user", "content": "hi"}]


class TestParseResponse:

    def test_text_reply(self):
        reply = parse_response(payload({"role": "assistant", "content": "hello pal"}))
        assert reply == TextReply("hello pal")

    def test_function_call_reply(self):
        reply = parse_response(payload({
            "role": "assistant",
            "content": None,
            "function_call": {"name": "execute_command", "arguments": "{\"command\":\"echo hi\"}"},
        }))
        assert isinstance(reply, FunctionCallReply)
        assert reply.function_call == FunctionCall("execute_command", "{\"command\":\"echo hi\"}")
        assert reply.content is None

    def test_function_call_without_arguments(self):
        reply = parse_response(payload({"role": "assistant", "function_call": {"name": "exit_chat"}}))
        assert reply.function_call.arguments == "{}"

    @pytest.mark.parametrize("body", [
        None,
        [],
        {},
        {"choices": None},
        {"choices": []},
        {"choices": ["nope"]},
        {"choices": [{}]},
        payload({"role": "assistant"}),
        payload({"role": "assistant", "content": 42}),
        payload({"role": "assistant", "function_call": "execute_command"}),
        payload({"role": "assistant", "function_call": {"arguments": "{}"}}),
        payload({"role": "assistant", "function_call": {"name": "x", "arguments": {"command": "ls"}}}),
    ])
    def test_malformed_payloads(self, body):
        with pytest.raises(BadBackendResponse):
            parse_response(body)


class TestModelClient:

    def client(self):
        return ModelClient("sk-test", "gpt-4", "https://api.example.test/v1/chat/completions", timeout=5)

    def test_post_sends_bearer_and_json(self):
        resp = fake_urlopen_response(json.dumps(payload({"role": "assistant", "content": "ok"})).encode())
        with mock.patch("urllib.request.urlopen", return_value=resp) as urlopen:
            reply = self.client().complete([Message("user", "hi")], FUNCTIONS)
        assert reply == TextReply("ok")
        req = urlopen.call_args[0][0]
        assert req.full_url == "https://api.example.test/v1/chat/completions"
        assert req.get_method() == "POST"
        assert req.get_header("Authorization") == "Bearer sk-test"
        sent = json.loads(req.data.decode())
        assert sent["function_call"] == "auto"
        assert sent["messages"] == [{"role": "user", "content": "hi"}]
        assert urlopen.call_args[1]["timeout"] == 5

    def test_http_error_is_transport_error(self):
        error = urllib.error.HTTPError(
            "https://api.example.test", 401, "Unauthorized", {}, io.BytesIO(b'{"error": "bad key"}')
        )
        with mock.patch("urllib.request.urlopen", side_effect=error):
            with pytest.raises(TransportError) as exc:
                self.client().complete([Message("user", "hi")])
        assert exc.value.status == 401
        assert "bad key" in exc.value.body
        assert "401" in str(exc.value)

    def test_network_error_is_transport_error(self):
        with mock.patch("urllib.request.urlopen", side_effect=urllib.error.URLError("connection refused")):
            with pytest.raises(TransportError) as exc:
                self.client().complete([Message("user", "hi")])
        assert exc.value.status is None
        assert "connection refused" in str(exc.value)

    def test_timeout_is_transport_error(self):
        with mock.patch("urllib.request.urlopen", side_effect=TimeoutError("timed out")):
            with pytest.raises(TransportError):
                self.client().complete([Message("user", "hi")])

    def test_non_json_body_is_transport_error(self):
        with mock.patch("urllib.request.urlopen", return_value=fake_urlopen_response(b"<html>oops</html>")):
            with pytest.raises(TransportError):
                self.client().complete([Message("user", "hi")])

    def test_missing_choices_is_protocol_error(self):
        with mock.patch("urllib.request.urlopen", return_value=fake_urlopen_response(b'{"id": "x"}')):
            with pytest.raises(BadBackendResponse):
                self.client().complete([Message("user", "hi")])
