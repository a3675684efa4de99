"""Tests for gleaner.llm: call_claude(), JSON helpers and Summarizer."""

from __future__ import annotations

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from gleaner.llm import (
    LLMError,
    Summarizer,
    call_claude,
    parse_json_object,
    strip_json_fences,
)


@pytest.fixture(autouse=True)
def _no_api_key(monkeypatch: pytest.MonkeyPatch) -> None:
    """Route calls to the subprocess backend unless a test opts in."""
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("GLEANER_USE_CLI", raising=False)


def _completed(stdout: str = "ok", returncode: int = 0, stderr: str = "") -> MagicMock:
    return MagicMock(returncode=returncode, stdout=stdout, stderr=stderr)


def _api_response(*texts: str) -> MagicMock:
    blocks = [MagicMock(type="text", text=t) for t in texts]
    return MagicMock(content=blocks)


# ---------------------------------------------------------------------------
# call_claude: Anthropic API path
# ---------------------------------------------------------------------------


class TestCallClaudeAPI:
    """Tests for the Anthropic API path in call_claude()."""

    @patch("gleaner.llm.anthropic.Anthropic")
    def test_api_returns_text(
        self, mock_client_cls: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """API path joins text blocks and strips whitespace."""
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        mock_client_cls.return_value.messages.create.return_value = _api_response(
            "  Hello ", "from API  "
        )

        assert call_claude("system", "user") == "Hello from API"

    @patch("gleaner.llm.anthropic.Anthropic")
    def test_api_resolves_short_model_name(
        self, mock_client_cls: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Short names map to full model ids; system prompt is forwarded."""
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        create = mock_client_cls.return_value.messages.create
        create.return_value = _api_response("ok")

        call_claude("be terse", "hi", model="haiku", timeout=60)

        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "claude-haiku-4-5"
        assert kwargs["system"] == "be terse"
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]
        assert mock_client_cls.call_args.kwargs == {"api_key": "sk-test", "timeout": 60}

    @patch("gleaner.llm.anthropic.Anthropic")
    def test_api_empty_response_raises(
        self, mock_client_cls: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """An empty API response is an LLMError carrying the label."""
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        mock_client_cls.return_value.messages.create.return_value = _api_response()

        with pytest.raises(LLMError, match="label=chunk 3"):
            call_claude("sys", "usr", label="chunk 3")

    @patch("gleaner.llm.subprocess.run")
    @patch("gleaner.llm.anthropic.Anthropic")
    def test_use_cli_forces_subprocess(
        self,
        mock_client_cls: MagicMock,
        mock_run: MagicMock,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """GLEANER_USE_CLI=1 bypasses the API even with a key set."""
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        monkeypatch.setenv("GLEANER_USE_CLI", "1")
        mock_run.return_value = _completed("from cli")

        assert call_claude("sys", "usr") == "from cli"
        mock_client_cls.assert_not_called()


# ---------------------------------------------------------------------------
# call_claude: subprocess path
# ---------------------------------------------------------------------------


class TestCallClaudeSubprocess:
    """Tests for the subprocess fallback path in call_claude()."""

    @patch("gleaner.llm.subprocess.run")
    def test_successful_call(self, mock_run: MagicMock) -> None:
        """Successful subprocess returns stripped stdout."""
        mock_run.return_value = _completed("  Hello from Claude  \n")

        assert call_claude("system prompt", "user prompt") == "Hello from Claude"

        args, kwargs = mock_run.call_args
        assert args[0] == ["claude", "-p"]
        assert kwargs["input"] == "system prompt\n\nuser prompt"
        assert kwargs["timeout"] == 120

    @patch("gleaner.llm.subprocess.run")
    def test_model_parameter(self, mock_run: MagicMock) -> None:
        """When model is provided, --model flag is added."""
        mock_run.return_value = _completed()
        call_claude("sys", "usr", model="haiku")

        args, _kwargs = mock_run.call_args
        assert args[0] == ["claude", "-p", "--model", "haiku"]

    @patch("gleaner.llm.subprocess.run")
    def test_file_not_found_raises_llm_error(self, mock_run: MagicMock) -> None:
        """FileNotFoundError from subprocess is wrapped in LLMError."""
        original = FileNotFoundError("claude not found")
        mock_run.side_effect = original

        with pytest.raises(LLMError, match="Claude CLI not found") as exc_info:
            call_claude("sys", "usr", label="test-label")
        assert exc_info.value.__cause__ is original

    @patch("gleaner.llm.subprocess.run")
    def test_timeout_raises_llm_error(self, mock_run: MagicMock) -> None:
        """TimeoutExpired from subprocess is wrapped in LLMError."""
        mock_run.side_effect = subprocess.TimeoutExpired(cmd=["claude", "-p"], timeout=30)

        with pytest.raises(LLMError, match="timed out after 30s"):
            call_claude("sys", "usr", timeout=30)

    @patch("gleaner.llm.subprocess.run")
    def test_nonzero_exit_includes_stderr(self, mock_run: MagicMock) -> None:
        """Non-zero exit surfaces the (truncated) stderr."""
        mock_run.return_value = _completed("", returncode=2, stderr="rate limited")

        with pytest.raises(LLMError, match="exit 2.*rate limited"):
            call_claude("sys", "usr")

    @patch("gleaner.llm.subprocess.run")
    def test_claudecode_env_filtered(
        self, mock_run: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """CLAUDECODE env var is not passed to the subprocess."""
        monkeypatch.setenv("CLAUDECODE", "1")
        mock_run.return_value = _completed()

        call_claude("sys", "usr")

        _args, kwargs = mock_run.call_args
        assert "CLAUDECODE" not in kwargs["env"]


# ---------------------------------------------------------------------------
# JSON helpers
# ---------------------------------------------------------------------------


class TestStripJsonFences:
    def test_plain_json_object(self) -> None:
        assert strip_json_fences('{"a": 1}') == '{"a": 1}'

    def test_json_fenced_block(self) -> None:
        assert strip_json_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_mixed_content_with_json_object(self) -> None:
        assert strip_json_fences('Here you go: {"a": 1} done') == '{"a": 1}'

    def test_no_json_returns_original(self) -> None:
        assert strip_json_fences("no json here") == "no json here"


class TestParseJsonObject:
    def test_object(self) -> None:
        assert parse_json_object('```json\n{"top_topics": ["x"]}\n```') == {"top_topics": ["x"]}

    @pytest.mark.parametrize("text", ["", "   ", "not json", "[1, 2]", '"just a string"'])
    def test_unusable_output_is_none(self, text: str) -> None:
        assert parse_json_object(text) is None

    def test_empty_object_is_kept(self) -> None:
        assert parse_json_object("{}") == {}


# ---------------------------------------------------------------------------
# Summarizer
# ---------------------------------------------------------------------------


class TestSummarizer:
    @patch("gleaner.llm.call_claude")
    def test_schema_goes_into_system_prompt(self, mock_call: MagicMock) -> None:
        mock_call.return_value = "{}"
        summarizer = Summarizer(model="sonnet", timeout=45)

        assert summarizer.summarize("the chat", '{"k": ""}', label="chunk 1") == "{}"

        args, kwargs = mock_call.call_args
        assert '{"k": ""}' in args[0]
        assert args[1] == "the chat"
        assert kwargs == {"model": "sonnet", "timeout": 45, "label": "chunk 1"}
        assert summarizer.model == "sonnet"

    @patch("gleaner.llm.call_claude", side_effect=LLMError("down"))
    def test_errors_propagate(self, _mock_call: MagicMock) -> None:
        with pytest.raises(LLMError):
            Summarizer().summarize("p", "{}")
