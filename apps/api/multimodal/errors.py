"""Error taxonomy for the video analysis pipeline."""


class AnalysisError(Exception):
    """Base error for the analysis pipeline."""

    code = "analysis_error"


class InputError(AnalysisError):
    """The upload is missing or cannot be read. Nothing is processed."""

    code = "no_file"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        if code:
            self.code = code


class ToolFailure(AnalysisError):
    """An external tool invocation errored or timed out.

    Always recovered inside the stage that raised it.
    """

    code = "tool_failure"

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr


class ProbeError(ToolFailure):
    """The file is not a decodable media container."""

    code = "probe_failed"


class SuggestionServiceUnavailable(AnalysisError):
    """The suggestion service is not configured."""

    code = "llm_unavailable"


class SuggestionServiceError(AnalysisError):
    """The suggestion service was called but errored or returned unusable output."""

    code = "llm_failed"
