import pytest

from gptsh.commands import extract_command, is_shell_builtin, run_command
from gptsh.errors import ExecutionError


class TestIsShellBuiltin:

    @pytest.mark.parametrize("cmd", [
        "cd",
        "cd /tmp",
        "export X=1",
        "alias ll=ls",
        "alias ll='ls -la'",
        "source ~/.bashrc",
        "unset FOO",
        "  cd /home  ",
    ])
    def test_builtins(self, cmd):
        assert is_shell_builtin(cmd) is True

    @pytest.mark.parametrize("cmd", ["ls -la", "grep 'test' file.txt", "", " ", "cdrecord", "echo cd"])
    def test_not_builtins(self, cmd):
        assert is_shell_builtin(cmd) is False


class TestExtractCommand:

    def test_bash_fence(self):
        assert extract_command("```bash\nls -la\n```") == "ls -la"

    def test_plain_fence(self):
        assert extract_command("```\nls -la\n```") == "ls -la"

    def test_surrounding_whitespace(self):
        assert extract_command("\n  ```bash\nls -la\n```  \n") == "ls -la"

    def test_unfenced_text_is_trimmed(self):
        assert extract_command("  ls -la \n") == "ls -la"

    def test_other_language_fence_left_alone(self):
        text = "```python\nprint(1)\n```"
        assert extract_command(text) == text

    def test_unterminated_fence_falls_back(self):
        assert extract_command("```bash\nls -la") == "```bash\nls -la"

    def test_two_fences_fall_back(self):
        text = "```bash\nls\n```\n```bash\npwd\n```"
        assert extract_command(text) == text


class TestRunCommand:

    def test_captures_stdout(self):
        result = run_command("echo hi", shell="sh")
        assert result.stdout == "hi\n"
        assert result.returncode == 0
        assert result.ok

    def test_non_zero_exit_does_not_raise(self):
        result = run_command("echo oops >&2; exit 3", shell="sh")
        assert result.returncode == 3
        assert result.stderr == "oops\n"
        assert not result.ok

    def test_missing_shell_raises_execution_error(self):
        with pytest.raises(ExecutionError):
            run_command("echo hi", shell="/nonexistent/shell-binary")

    def test_undecodable_output_is_replaced(self):
        result = run_command("printf 'ok\\377\\376\\n'; printf '\\377' >&2", shell="sh")
        assert result.returncode == 0
        assert result.stdout == "ok\ufffd\ufffd\n"
        assert result.stderr == "\ufffd"
