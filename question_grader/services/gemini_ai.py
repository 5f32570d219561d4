"""Wrapper for Google Gemini API interactions: question/code match classification."""

import time
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

# Use the official Google Generative AI library
import google.generativeai as genai
from google.api_core import exceptions as google_api_exceptions

from question_grader import config
from question_grader.core.models import ClassifierResult, ClassifierVerdict, SourceUnit
from question_grader.core.verdicts import parse_classifier_response
from question_grader.utils.logger import get_logger
from question_grader.utils.error_handler import ClassifierError, ConfigError
from question_grader.utils.retry import retry_on_exception

logger = get_logger()

SKIPPED_NO_KEY_REMARKS = "Gemini analysis skipped - API key not configured"
SKIPPED_NO_CODE_REMARKS = "Skipped - insufficient data"

_TRANSIENT_EXCEPTION_TYPES = (
    google_api_exceptions.ResourceExhausted,
    google_api_exceptions.ServiceUnavailable,
    google_api_exceptions.DeadlineExceeded,
    google_api_exceptions.TooManyRequests,
    TimeoutError,
    ConnectionError,
)


class VerdictClassifier(Protocol):
    def classify(self, question_text: str, source_units: Sequence[SourceUnit]) -> ClassifierResult:
        ...


def is_transient_error(error: BaseException) -> bool:
    """True for rate-limit, unavailable, timeout and connection-refused failures."""
    if isinstance(error, _TRANSIENT_EXCEPTION_TYPES):
        return True
    message = f"{type(error).__name__}: {error}".lower()
    return any(marker in message for marker in config.TRANSIENT_ERROR_MARKERS)


def format_code_content(
    source_units: Sequence[SourceUnit],
    max_chars_per_unit: int = config.CLASSIFIER_MAX_CHARS_PER_UNIT,
) -> str:
    """Renders the submission for the prompt, one fenced block per file."""
    def fenced(text: str) -> str:
        if len(text) > max_chars_per_unit:
            text = text[:max_chars_per_unit] + "\n... (truncated)"
        return f"```\n{text}\n```"

    if len(source_units) == 1:
        return fenced(source_units[0].text)
    return "\n\n".join(f"FILE: {unit.label}\n{fenced(unit.text)}" for unit in source_units)


def build_prompt(question_text: str, source_units: Sequence[SourceUnit]) -> str:
    return config.CLASSIFIER_PROMPT_TEMPLATE.format(
        question_text=question_text.strip().replace('"', "'"),
        code_content=format_code_content(source_units),
    )


def _response_text(response: Any, model_name: str) -> str:
    """Pulls the generated text out of a Gemini response, rejecting blocked or empty ones."""
    if not response.candidates:
        try:
            logger.error(f"Prompt Feedback: {response.prompt_feedback}")
        except (ValueError, AttributeError):
            logger.error("Could not access prompt feedback details.")
        raise ClassifierError("Response was empty or blocked (no candidates)", model=model_name)

    candidate = response.candidates[0]
    if candidate.content and candidate.content.parts:
        text = "".join(getattr(part, "text", "") or "" for part in candidate.content.parts)
    else:
        text = ""

    if not text.strip():
        finish_reason = getattr(candidate, "finish_reason", None)
        logger.warning(f"Gemini returned empty text. Finish Reason: {finish_reason}")
        raise ClassifierError(f"Empty response (finish reason: {finish_reason})", model=model_name)
    return text.strip()


class SkippedClassifier:
    """Stand-in used when no Gemini API key is configured."""

    def __init__(self, remarks: str = SKIPPED_NO_KEY_REMARKS):
        self.remarks = remarks

    def classify(self, question_text: str, source_units: Sequence[SourceUnit]) -> ClassifierResult:
        return ClassifierResult(ClassifierVerdict.SKIPPED, self.remarks)


class GeminiClient:
    """Classifies whether submitted code matches its question using Gemini.

    Transient failures are retried with exponential backoff; once a model's
    attempts are used up the next configured model is tried. ``classify``
    never raises: total failure is reported as an ``Error`` verdict.
    """

    def __init__(
        self,
        api_key: Optional[str] = config.GEMINI_API_KEY,
        models: Optional[List[str]] = None,
        max_attempts: int = config.CLASSIFIER_MAX_ATTEMPTS,
        initial_backoff: float = config.CLASSIFIER_INITIAL_BACKOFF_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        model_factory: Optional[Callable[[str], Any]] = None,
    ):
        """Initializes the GeminiClient.

        Args:
            api_key: The Gemini API key. Defaults to the value from config.
            models: Model identifiers tried in order. Defaults to config.GEMINI_MODELS.
            max_attempts: Attempts per model, including the first call.
            initial_backoff: Seconds to wait before the first retry; doubles afterwards.
            sleep: Function used for backoff waits.
            model_factory: Builds a model object exposing ``generate_content``.

        Raises:
            ConfigError: If the API key is missing or no model is configured.
        """
        logger.debug("Initializing GeminiClient...")
        if not api_key or api_key == config.GEMINI_PLACEHOLDER_KEY:
            raise ConfigError("GEMINI_API_KEY not found or provided.")
        self.models = list(models if models is not None else config.GEMINI_MODELS)
        if not self.models:
            raise ConfigError("No Gemini model configured (GEMINI_MODELS is empty).")
        self.max_attempts = max_attempts
        self.initial_backoff = initial_backoff
        self._sleep = sleep
        self._model_cache: Dict[str, Any] = {}

        if model_factory is None:
            try:
                genai.configure(api_key=api_key)
            except Exception as e:
                logger.critical(f"Failed to configure Gemini API: {e}", exc_info=config.DEBUG)
                raise ConfigError(f"Failed to configure Gemini API: {e}") from e
            model_factory = genai.GenerativeModel
        self._model_factory = model_factory
        logger.info(f"GeminiClient initialized with models: {', '.join(self.models)}")

    def _model(self, model_name: str) -> Any:
        if model_name not in self._model_cache:
            self._model_cache[model_name] = self._model_factory(model_name)
        return self._model_cache[model_name]

    def _generate(self, model_name: str, prompt: str) -> str:
        response = self._model(model_name).generate_content(prompt)
        return _response_text(response, model_name)

    def classify(self, question_text: str, source_units: Sequence[SourceUnit]) -> ClassifierResult:
        """Judges whether ``source_units`` implement ``question_text``.

        Returns:
            The parsed ClassifierResult, or an ``Error`` verdict once every
            model/attempt combination has failed.
        """
        units = [unit for unit in source_units if not unit.is_sentinel]
        if not units:
            return ClassifierResult(ClassifierVerdict.SKIPPED, SKIPPED_NO_CODE_REMARKS)

        prompt = build_prompt(question_text, units)
        if config.DEBUG:
            # Avoid logging potentially large submissions unless debugging
            logger.debug(f"Classifier prompt (first 500 chars):\n{prompt[:500]}...")

        generate = retry_on_exception(
            exceptions=(Exception,),
            max_attempts=self.max_attempts,
            initial_delay=self.initial_backoff,
            backoff_factor=2.0,
            jitter=0.0,
            should_retry=is_transient_error,
            sleep=self._sleep,
        )(self._generate)

        last_error: Optional[Exception] = None
        for model_name in self.models:
            try:
                raw = generate(model_name, prompt)
            except Exception as e:
                last_error = e
                kind = "transient" if is_transient_error(e) else "non-transient"
                logger.warning(f"Gemini model {model_name} failed ({kind}): {e}")
                continue
            result = parse_classifier_response(raw)
            logger.info(f"Gemini ({model_name}) verdict: {result.verdict.value}")
            return result

        logger.error(f"Gemini analysis failed on every model: {last_error}")
        return ClassifierResult(ClassifierVerdict.ERROR, f"Analysis failed: {last_error}")


def build_classifier(api_key: Optional[str] = config.GEMINI_API_KEY) -> VerdictClassifier:
    """Returns a GeminiClient, or a SkippedClassifier when the key is missing or invalid."""
    if not api_key or api_key == config.GEMINI_PLACEHOLDER_KEY:
        logger.warning("GEMINI_API_KEY not found. Gemini analysis will be skipped.")
        return SkippedClassifier()
    try:
        return GeminiClient(api_key=api_key)
    except ConfigError as e:
        logger.error(f"Gemini configuration error: {e}. Gemini analysis will be skipped.")
        return SkippedClassifier()
