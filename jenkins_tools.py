import json
import sys
from typing import Any, Iterable, List, Optional, TextIO, Tuple, Union

import requests
from pydantic import SecretStr

from config import config, logger
from models import (
    SUPPORTED_MODELS,
    AnalysisResult,
    BuildLogs,
    ChatMessage,
    ChatRequest,
    FailureKind,
    SmartDebuggerSettings,
    plain_token,
)

class JenkinsAPI:
    def __init__(self):
        self.base_url = config.JENKINS_URL.rstrip('/')  # Remove trailing slash
        self.username = config.JENKINS_USERNAME
        self.token = config.JENKINS_API_TOKEN
        # Only use auth if both username and token are provided
        self.auth = (self.username, self.token) if self.username and self.token else None

    def create_url_from_path(self, jenkins_path: str, endpoint_type: str = "consoleText") -> str:
        jenkins_path = jenkins_path.rstrip('/')

        if '://' in jenkins_path:
            # Full URL provided
            if '/job/' not in jenkins_path:
                return f"{jenkins_path}/{endpoint_type}"
            job_path_start = jenkins_path.find('/job/')
            base_jenkins_url = jenkins_path[:job_path_start]
            job_path = jenkins_path[job_path_start:]
        else:
            # Relative path provided, use configured base URL
            base_jenkins_url = self.base_url
            job_path = jenkins_path if jenkins_path.startswith('/') else f"/{jenkins_path}"

        return f"{base_jenkins_url}{job_path}/{endpoint_type}"

    def fetch_build_logs_from_url(self, jenkins_url: str) -> BuildLogs:
        """Fetches the complete console log from Jenkins using the full URL."""
        try:
            console_url = self.create_url_from_path(jenkins_url, "consoleText")
            response = requests.get(console_url, auth=self.auth)
            response.raise_for_status()

            return BuildLogs(logText=response.text)
        except Exception as e:
            logger.error("Failed to fetch build logs", jenkins_url=jenkins_url, error=str(e))
            raise


# Response validation pipeline. Each stage takes the previous stage's value and
# returns either the next value or an AnalysisResult describing the failure.

def _check_status(response: requests.Response) -> Union[requests.Response, AnalysisResult]:
    if not 200 <= response.status_code < 300:
        body = response.text if response.content is not None else ""
        return AnalysisResult.fail(
            FailureKind.UNEXPECTED_STATUS,
            code=response.status_code,
            body=body or "No error body",
        )
    return response

def _check_body_present(response: requests.Response) -> Union[requests.Response, AnalysisResult]:
    if response.content is None:
        return AnalysisResult.fail(FailureKind.NULL_BODY)
    return response

def _read_body(response: requests.Response) -> Union[str, AnalysisResult]:
    text = response.text
    if not text:
        return AnalysisResult.fail(FailureKind.EMPTY_BODY)
    return text

def _parse_json(text: str) -> Union[Any, AnalysisResult]:
    try:
        tree = json.loads(text)
    except (ValueError, RecursionError):
        return AnalysisResult.fail(FailureKind.UNPARSEABLE_JSON)
    if tree is None:
        return AnalysisResult.fail(FailureKind.UNPARSEABLE_JSON)
    return tree

def _first_choice(tree: Any) -> Union[Any, AnalysisResult]:
    choices = tree.get("choices") if isinstance(tree, dict) else None
    if not isinstance(choices, list) or not choices:
        return AnalysisResult.fail(FailureKind.NO_CHOICES)
    if choices[0] is None:
        return AnalysisResult.fail(FailureKind.NULL_FIRST_CHOICE)
    return choices[0]

def _message(choice: Any) -> Union[Any, AnalysisResult]:
    if not isinstance(choice, dict) or "message" not in choice:
        return AnalysisResult.fail(FailureKind.MISSING_MESSAGE)
    return choice["message"]

def _content(message: Any) -> Union[str, AnalysisResult]:
    if not isinstance(message, dict) or "content" not in message:
        return AnalysisResult.fail(FailureKind.MISSING_CONTENT)
    content = message["content"]
    if content is None:
        return AnalysisResult.fail(FailureKind.NULL_CONTENT)
    return content if isinstance(content, str) else json.dumps(content)

RESPONSE_PIPELINE = (
    _check_status,
    _check_body_present,
    _read_body,
    _parse_json,
    _first_choice,
    _message,
    _content,
)

def extract_suggestions(response: requests.Response) -> AnalysisResult:
    """Run a chat-completion response through RESPONSE_PIPELINE."""
    value: Any = response
    for stage in RESPONSE_PIPELINE:
        value = stage(value)
        if isinstance(value, AnalysisResult):
            return value
    return AnalysisResult.success(value)


class LogAnalysisClient:
    """Sends build logs to a Groq chat-completion endpoint and returns the suggestions.

    The client holds no per-call state. The underlying requests.Session is
    reused across calls for connection pooling.
    """

    MAX_LOG_CHARS = 4000
    PROMPT_TEMPLATE = (
        "Analyze these Jenkins build logs and provide debugging suggestions: {logs}. "
        "Format your response as a numbered list of short, actionable points, "
        "focusing on the most critical issues."
    )

    def __init__(self, endpoint: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.endpoint = endpoint or config.GROQ_API_URL
        self.timeout = timeout if timeout is not None else config.GROQ_TIMEOUT
        self.session = session or requests.Session()

    def truncate(self, log_text: str) -> str:
        return log_text[:self.MAX_LOG_CHARS]

    def build_request(self, log_text: str, model: str) -> ChatRequest:
        prompt = self.PROMPT_TEMPLATE.format(logs=self.truncate(log_text or ""))
        return ChatRequest(messages=[ChatMessage(role="user", content=prompt)], model=model)

    def analyze_result(self, log_text: str, token: Union[SecretStr, str, None], model: str) -> AnalysisResult:
        secret = plain_token(token)
        if not secret:
            logger.warning("API token not configured - skipping analysis")
            return AnalysisResult.fail(FailureKind.MISSING_TOKEN)

        try:
            secret.encode("latin-1")
        except UnicodeEncodeError:
            logger.warning("API token is not valid in an HTTP header - skipping analysis")
            return AnalysisResult.fail(FailureKind.INVALID_TOKEN)

        chat_request = self.build_request(log_text, model)
        headers = {
            "Authorization": f"Bearer {secret}",
            "Content-Type": "application/json",
        }

        logger.info("Requesting debugging suggestions",
                    endpoint=self.endpoint,
                    model=model,
                    log_chars=len(log_text or ""),
                    truncated=len(log_text or "") > self.MAX_LOG_CHARS)

        try:
            response = self.session.post(
                self.endpoint,
                json=chat_request.model_dump(),
                headers=headers,
                timeout=self.timeout,
            )
            try:
                result = extract_suggestions(response)
            finally:
                response.close()
        except (requests.RequestException, OSError, ValueError) as e:
            logger.error("Failed to fetch debugging suggestions", endpoint=self.endpoint, error=str(e))
            return AnalysisResult.fail(FailureKind.TRANSPORT, error=str(e))

        if result.ok:
            logger.info("Debugging suggestions received", content_chars=len(result.content))
        else:
            logger.warning("Unusable response from chat-completion API", failure=result.failure.name)
        return result

    def analyze(self, log_text: str, token: Union[SecretStr, str, None], model: str) -> str:
        return self.analyze_result(log_text, token, model).text


class SmartDebugger:
    """Build step that prints LLM debugging suggestions into the build output."""

    DISPLAY_NAME = "Smart Debugger"
    HEADER = "\n--- Smart Debugger Analysis ---"
    SUBHEADER = "Key issues and suggestions:"
    FOOTER = "--- End of Smart Debugger Analysis ---\n"

    def __init__(self, settings: SmartDebuggerSettings, client: Optional[LogAnalysisClient] = None):
        self.settings = settings
        self.client = client or LogAnalysisClient()

    @staticmethod
    def fill_selected_model_items() -> List[Tuple[str, str]]:
        return [(option.display_name, option.value) for option in SUPPORTED_MODELS]

    @staticmethod
    def get_build_logs(log_lines: Iterable[str]) -> str:
        return "\n".join(log_lines)

    def get_debugging_suggestions(self, build_logs: str) -> str:
        return self.client.analyze(build_logs, self.settings.api_token, self.settings.selected_model)

    def perform(self, build_logs: str, out: Optional[TextIO] = None) -> str:
        out = out or sys.stdout
        suggestions = self.get_debugging_suggestions(build_logs)

        print(self.HEADER, file=out)
        print(self.SUBHEADER, file=out)
        print(suggestions, file=out)
        print(self.FOOTER, file=out)
        return suggestions
