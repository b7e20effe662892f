from enum import Enum
from typing import Dict, List, Optional, Any, Union
from pydantic import BaseModel, SecretStr, field_validator

class ModelOption(BaseModel):
    display_name: str
    value: str

# Order is the order shown in the job configuration drop-down
SUPPORTED_MODELS: List[ModelOption] = [
    ModelOption(display_name="LLaMA 3 8B", value="llama3-8b-8192"),
    ModelOption(display_name="LLaMA 3 70B", value="llama3-70b-8192"),
    ModelOption(display_name="Mixtral 8x7B", value="mixtral-8x7b-32768"),
    ModelOption(display_name="Gemma 7B", value="gemma-7b-it"),
]

DEFAULT_MODEL = SUPPORTED_MODELS[0].value

def resolve_model(name: str) -> str:
    """Map a display name or internal model id to the internal id."""
    for option in SUPPORTED_MODELS:
        if name in (option.value, option.display_name):
            return option.value
    known = ", ".join(option.value for option in SUPPORTED_MODELS)
    raise ValueError(f"Unknown model '{name}'. Expected one of: {known}")

class SmartDebuggerSettings(BaseModel):
    """Operator configuration for the Smart Debugger build step"""
    api_token: Optional[SecretStr] = None
    selected_model: str = DEFAULT_MODEL

    @field_validator("selected_model")
    @classmethod
    def validate_selected_model(cls, v: str) -> str:
        return resolve_model(v)

def plain_token(token: Union[SecretStr, str, None]) -> str:
    """Unwrap a credential that may be a SecretStr, a plain string or absent."""
    if token is None:
        return ""
    if isinstance(token, SecretStr):
        return token.get_secret_value()
    return token

class BuildLogs(BaseModel):
    logText: str

class ChatMessage(BaseModel):
    role: str
    content: str

class ChatRequest(BaseModel):
    """Request body for an OpenAI-compatible chat-completion endpoint"""
    messages: List[ChatMessage]
    model: str

class FailureKind(str, Enum):
    MISSING_TOKEN = "Error: API token not found. Please configure the API token in the job settings."
    INVALID_TOKEN = "Error: API token contains characters that cannot be sent in an HTTP header."
    UNEXPECTED_STATUS = "Unexpected response code: {code}. Error: {body}"
    NULL_BODY = "Error: Received null response body from API."
    EMPTY_BODY = "Error: Received empty response body from API."
    UNPARSEABLE_JSON = "Error: Failed to parse JSON response."
    NO_CHOICES = "Error: Unexpected response format from API. No choices found."
    NULL_FIRST_CHOICE = "Error: First choice in API response is null."
    MISSING_MESSAGE = "Error: 'message' node is missing in API response."
    MISSING_CONTENT = "Error: 'content' node is missing in API response."
    NULL_CONTENT = "Error: Content is null."
    TRANSPORT = "Error fetching debugging suggestions: {error}"

class AnalysisResult(BaseModel):
    """Either the extracted suggestion text or the reason there is none."""
    content: Optional[str] = None
    failure: Optional[FailureKind] = None
    details: Dict[str, Any] = {}

    @classmethod
    def success(cls, content: str) -> "AnalysisResult":
        return cls(content=content)

    @classmethod
    def fail(cls, failure: FailureKind, **details: Any) -> "AnalysisResult":
        return cls(failure=failure, details=details)

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def text(self) -> str:
        if self.failure is None:
            return self.content or ""
        return self.failure.value.format(**self.details)
