"""
Error handling and logging setup for the chat backend.

Provides:
- ProviderError hierarchy raised by the provider gateway
- ErrorType taxonomy and classify_error(), which maps a raw failure to a
  user-facing ClassifiedError with a suggested alternative provider/model
- setup_logging() for console / file logging
"""
import logging
import os
import re
import sys
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from . import config as models_config

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: Optional[str] = None, log_dir: Optional[str] = None) -> None:
    """
    Configure the `toolchat` logger.
    :param level: log level name, defaults to LOG_LEVEL env or INFO
    :param log_dir: directory for a daily log file, defaults to LOG_DIR env (disabled if unset)
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger("toolchat")
    root.setLevel(log_level)
    root.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(console_handler)

    log_dir = log_dir or os.getenv("LOG_DIR")
    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(
            path / f"toolchat_{datetime.now().strftime('%Y%m%d')}.log",
            encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(file_handler)

    root.propagate = False
    root.info(f"Logging initialized - Level: {level_name}")


class ErrorType(str, Enum):
    """Failure taxonomy for provider calls."""
    API_KEY_MISSING = "API_KEY_MISSING"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    RATE_LIMIT = "RATE_LIMIT"
    NETWORK_ERROR = "NETWORK_ERROR"
    MODEL_CAPABILITY = "MODEL_CAPABILITY"
    UNKNOWN = "UNKNOWN"


STATUS_BY_TYPE = {
    ErrorType.API_KEY_MISSING: 401,
    ErrorType.QUOTA_EXCEEDED: 429,
    ErrorType.RATE_LIMIT: 429,
    ErrorType.NETWORK_ERROR: 503,
    ErrorType.MODEL_CAPABILITY: 400,
    ErrorType.UNKNOWN: 500,
}


class ProviderError(Exception):
    """A provider call failed. Never recovered locally; always classified."""

    def __init__(self, message: str, provider: str = None, model: str = None,
                 status_code: int = None):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.model = model
        self.status_code = status_code
        self.timestamp = datetime.now().isoformat()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "provider": self.provider,
            "model": self.model,
            "status_code": self.status_code,
            "timestamp": self.timestamp
        }


class CredentialError(ProviderError):
    """The provider API key is not configured."""

    def __init__(self, env_var: str, provider: str = None, model: str = None):
        super().__init__(f"{env_var} is not defined", provider=provider, model=model)
        self.env_var = env_var


class ModelCapabilityError(ProviderError):
    """The selected model cannot accept the attached media. Raised before any network call."""

    def __init__(self, message: str, provider: str = None, model: str = None,
                 media_type: str = None):
        super().__init__(message, provider=provider, model=model, status_code=400)
        self.media_type = media_type


@dataclass
class AlternativeModel:
    provider: str
    model: str
    display_name: str


@dataclass
class ClassifiedError:
    """
    User-facing description of a failed request.

    Attributes:
        type: taxonomy tag
        error: raw failure text
        user_message: plain-language summary
        suggestion: what the user can do next
        status: HTTP status code (400/401/429/500/503)
        alternative_provider / alternative_model: optional one-click retry target
    """
    type: ErrorType
    error: str
    user_message: str
    suggestion: str
    status: int
    alternative_provider: Optional[str] = None
    alternative_model: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Response body for a failed chat request."""
        body = {
            "error": self.error,
            "errorType": self.type.value,
            "userMessage": self.user_message,
            "suggestion": self.suggestion,
        }
        if self.alternative_provider:
            body["alternativeProvider"] = self.alternative_provider
        if self.alternative_model:
            body["alternativeModel"] = self.alternative_model
        return body


# ============ Recognition patterns (order matters) ============

API_KEY_PATTERN = re.compile(r"api_key.*not defined|unauthorized|401|invalid.*key", re.IGNORECASE)
QUOTA_PATTERN = re.compile(r"quota|exceeded|429|too many requests", re.IGNORECASE)
RATE_LIMIT_PATTERN = re.compile(r"rate limit|throttl", re.IGNORECASE)
NETWORK_PATTERN = re.compile(
    r"fetch failed|network|timeout|timed out|connection|connecterror|econnrefused|enotfound",
    re.IGNORECASE
)
CAPABILITY_PATTERN = re.compile(r"does not support|not supported|unsupported", re.IGNORECASE)

CODE_KEYWORDS = [
    '代码', 'code', '函数', 'function', '算法', 'algorithm',
    '编程', 'program', 'bug', '调试', 'debug', '实现', 'implement',
    'class', 'interface', 'api', '脚本', 'script', 'python', 'javascript',
    'typescript', 'java', 'c++', 'golang', 'rust', '写个', '帮我写',
]

TRANSLATION_KEYWORDS = [
    '翻译', 'translate', 'translation', '英译中', '中译英',
    '日译中', '法译中', '翻成', 'translate to', 'translate into',
]

GEMINI_FLASH = AlternativeModel("google", "gemini-2.5-flash", "Gemini 2.5 Flash")
QWEN_FLASH = AlternativeModel("qwen", "qwen-flash", "Qwen Flash")
QWEN_VL_PLUS = AlternativeModel("qwen", "qwen-vl-plus", "Qwen VL Plus")
QWEN_MT_FLASH = AlternativeModel("qwen", "qwen-mt-flash", "Qwen MT Flash")
DEEPSEEK_V32 = AlternativeModel("qwen", "deepseek-v3.2", "DeepSeek V3.2")


def _error_text(error: Any) -> str:
    if isinstance(error, ProviderError):
        return error.message
    text = str(error)
    # Some transport errors (e.g. httpx.ReadTimeout()) carry no message
    return text if text.strip() else type(error).__name__


def is_code_related(message: Optional[str]) -> bool:
    if not message:
        return False
    lowered = message.lower()
    return any(keyword in lowered for keyword in CODE_KEYWORDS)


def is_translation_related(message: Optional[str]) -> bool:
    if not message:
        return False
    lowered = message.lower()
    return any(keyword in lowered for keyword in TRANSLATION_KEYWORDS)


def get_alternative_model(
    current_provider: str,
    current_model: str,
    message: Optional[str] = None,
    has_media: bool = False,
    media_type: Optional[str] = None,
) -> AlternativeModel:
    """
    Recommend a backend likely to succeed for the same task.

    Priority: video attachment, image attachment, task keywords in the
    message, then the other provider's general model. Advisory only.
    """
    media_type = (media_type or "").lower()

    # Only Gemini accepts video
    if media_type.startswith("video"):
        return GEMINI_FLASH

    if has_media and media_type.startswith("image"):
        return QWEN_VL_PLUS if current_provider == "google" else GEMINI_FLASH

    if current_provider == "google":
        if is_code_related(message):
            return DEEPSEEK_V32
        if is_translation_related(message):
            return QWEN_MT_FLASH
        return QWEN_FLASH

    if current_provider == "qwen":
        return GEMINI_FLASH

    return QWEN_FLASH


def _pretty_model_name(model: str) -> str:
    return " ".join(part[:1].upper() + part[1:] for part in model.split("-"))


def _provider_env_var(provider: str) -> str:
    descriptor = models_config.get_provider(provider)
    return descriptor.api_key_env if descriptor else "QWEN_API_KEY"


def classify_error(
    error: Any,
    provider: str,
    model: str,
    message: Optional[str] = None,
    has_media: bool = False,
    media_type: Optional[str] = None,
) -> ClassifiedError:
    """
    Classify a provider failure into the fixed taxonomy.

    :param error: exception (or any object) describing the failure
    :param provider: provider id the request targeted
    :param model: model id the request targeted
    :param message: the user message (task-type detection)
    :param has_media: whether the request carried an attachment
    :param media_type: MIME type of the attachment
    :return: ClassifiedError
    """
    text = _error_text(error)

    def alternative() -> AlternativeModel:
        return get_alternative_model(provider, model, message, has_media, media_type)

    if API_KEY_PATTERN.search(text):
        alt = alternative()
        provider_info = models_config.get_provider(provider)
        provider_name = provider_info.display_name if provider_info else provider
        result = ClassifiedError(
            type=ErrorType.API_KEY_MISSING,
            error=text,
            user_message=f"{provider_name} API Key 未配置",
            suggestion=f"请在项目根目录的 .env 文件中添加：\n{_provider_env_var(provider)}=your_api_key_here",
            status=STATUS_BY_TYPE[ErrorType.API_KEY_MISSING],
            alternative_provider=alt.provider,
            alternative_model=alt.model,
        )
    elif QUOTA_PATTERN.search(text):
        alt = alternative()
        result = ClassifiedError(
            type=ErrorType.QUOTA_EXCEEDED,
            error=text,
            user_message=f"{_pretty_model_name(model)} 配额已用完",
            suggestion=f"建议切换到 {alt.display_name} 模型继续使用",
            status=STATUS_BY_TYPE[ErrorType.QUOTA_EXCEEDED],
            alternative_provider=alt.provider,
            alternative_model=alt.model,
        )
    elif RATE_LIMIT_PATTERN.search(text):
        alt = alternative()
        result = ClassifiedError(
            type=ErrorType.RATE_LIMIT,
            error=text,
            user_message="请求过于频繁",
            suggestion=f"请稍等片刻后再试，或切换到 {alt.display_name}",
            status=STATUS_BY_TYPE[ErrorType.RATE_LIMIT],
            alternative_provider=alt.provider,
            alternative_model=alt.model,
        )
    elif NETWORK_PATTERN.search(text):
        result = ClassifiedError(
            type=ErrorType.NETWORK_ERROR,
            error=text,
            user_message="网络连接失败",
            suggestion="请检查网络连接后重试",
            status=STATUS_BY_TYPE[ErrorType.NETWORK_ERROR],
        )
    elif CAPABILITY_PATTERN.search(text):
        alt = alternative()
        result = ClassifiedError(
            type=ErrorType.MODEL_CAPABILITY,
            error=text,
            user_message="该模型不支持视频" if "video" in text.lower() else "该模型不支持此功能",
            suggestion=f"请选择支持该功能的模型，例如 {alt.display_name}",
            status=STATUS_BY_TYPE[ErrorType.MODEL_CAPABILITY],
            alternative_provider=alt.provider,
            alternative_model=alt.model,
        )
    else:
        result = ClassifiedError(
            type=ErrorType.UNKNOWN,
            error=text,
            user_message="服务暂时不可用",
            suggestion="请稍后重试或切换其他模型",
            status=STATUS_BY_TYPE[ErrorType.UNKNOWN],
        )

    logger.warning(
        f"Classified {provider}/{model} failure as {result.type.value} "
        f"(status={result.status}): {text[:200]}"
    )
    return result


def invalid_request_error(error: str) -> ClassifiedError:
    """
    Failure body for a request rejected before any provider is called.
    :param error: what was wrong with the request
    :return: ClassifiedError with status 400 and no alternative
    """
    return ClassifiedError(
        type=ErrorType.UNKNOWN,
        error=error,
        user_message="请求内容为空",
        suggestion="请输入问题，或上传图片/视频后再发送",
        status=400,
    )


def format_error_for_user(error: ClassifiedError) -> str:
    """
    Render a classified error as plain text.
    :param error: ClassifiedError
    :return: message with suggestion and, when present, the alternative
    """
    text = f"⚠️ {error.user_message}\n\n💡 {error.suggestion}"
    if error.alternative_provider and error.alternative_model:
        text += f"\n\n🔄 {error.alternative_provider} / {error.alternative_model}"
    return text


__all__ = [
    'ErrorType',
    'ProviderError',
    'CredentialError',
    'ModelCapabilityError',
    'AlternativeModel',
    'ClassifiedError',
    'classify_error',
    'get_alternative_model',
    'is_code_related',
    'is_translation_related',
    'format_error_for_user',
    'invalid_request_error',
    'setup_logging',
]
