"""Configuration settings for the Coding Question Grader."""

import os
import logging
from typing import Dict, Final, List, Optional, Tuple

# Debug flag: 1 = debug mode (verbose logging), 0 = production mode
DEBUG: Final[int] = int(os.environ.get("GRADER_DEBUG", "0"))


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logging.warning(f"Ignoring non-integer value for {name}: {raw!r}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logging.warning(f"Ignoring non-numeric value for {name}: {raw!r}")
        return default


# --- Target Application ---

BASE_URL: Final[str] = os.environ.get("BASE_URL", "https://lms.exskilence.com").rstrip("/")
TARGET_PATH: Final[str] = os.environ.get("TARGET_PATH", "/testing/coding/ht")
# URL fragment that proves the login flow reached the dashboard (matched case-insensitively)
DASHBOARD_URL_MARKER: Final[str] = "/dashboard"
HEADLESS: Final[bool] = os.environ.get("HEADLESS", "0").lower() in ("1", "true", "yes")

# --- Question Range & Runners ---

START_QUESTION: Final[int] = _env_int("START_QUESTION", 1) or 1
END_QUESTION: Final[Optional[int]] = _env_int("END_QUESTION", None)
RUNNERS: Final[int] = max(1, _env_int("RUNNERS", 1) or 1)
# RUNNER_ID is only set for child processes spawned by the parallel launcher
RUNNER_ID: Final[Optional[int]] = _env_int("RUNNER_ID", None)

# Label prefix of the question buttons ("Q1", "Q2", ...)
QUESTION_MARKER_PREFIX: Final[str] = "Q"
DEFAULT_QUESTION_COUNT: Final[int] = 90

# --- File Paths ---

AUTH_STATE_PATH: Final[str] = os.environ.get(
    "AUTH_STATE_PATH", os.path.join("playwright", ".auth", "user.json")
)
REPORT_DIR: Final[str] = os.environ.get("REPORT_DIR", "reports")
LOG_DIR: Final[str] = os.environ.get("GRADER_LOG_DIR", "logs")
LOG_FILE: Final[str] = os.path.join(
    LOG_DIR, f"grader_runner{RUNNER_ID}.log" if RUNNER_ID else "grader_app.log"
)

# --- Session / Login ---

LOGIN_TIMEOUT_SECONDS: Final[float] = _env_float("LOGIN_TIMEOUT_SECONDS", 180.0)
LOGIN_POLL_SECONDS: Final[float] = 2.0
SESSION_WAIT_TIMEOUT_SECONDS: Final[float] = _env_float("SESSION_WAIT_TIMEOUT_SECONDS", 300.0)
SESSION_POLL_SECONDS: Final[float] = 2.0
# The artifact is published with an atomic rename, so this is only a settle delay.
SESSION_GRACE_SECONDS: Final[float] = _env_float("SESSION_GRACE_SECONDS", 1.0)

# --- Traversal Timing ---

MAX_QUESTION_RETRIES: Final[int] = 2
GRADE_POLL_ATTEMPTS: Final[int] = 15
GRADE_POLL_INTERVAL_SECONDS: Final[float] = 1.0
SETTLE_MS: Final[int] = 500
PROBE_TIMEOUT_MS: Final[int] = 2000
FALLBACK_TIMEOUT_MS: Final[int] = 1000

# --- Gemini AI Settings ---

# Load Gemini API Key from environment variable. A missing key downgrades the
# classifier to a stub that marks every question as skipped.
GEMINI_API_KEY: Final[Optional[str]] = os.environ.get("GEMINI_API_KEY")
GEMINI_PLACEHOLDER_KEY: Final[str] = "your_api_key_here"

if not GEMINI_API_KEY and DEBUG:
    logging.warning("GEMINI_API_KEY environment variable not set. Gemini analysis will be skipped.")

# Tried in order; the next model is used once retries on the previous one are exhausted
GEMINI_MODELS: Final[List[str]] = [
    m.strip()
    for m in os.environ.get("GEMINI_MODELS", "gemini-2.5-flash,gemini-2.0-flash").split(",")
    if m.strip()
]
CLASSIFIER_MAX_ATTEMPTS: Final[int] = 3
CLASSIFIER_INITIAL_BACKOFF_SECONDS: Final[float] = 2.0
CLASSIFIER_TIMEOUT_SECONDS: Final[float] = _env_float("CLASSIFIER_TIMEOUT_SECONDS", 45.0)
CLASSIFIER_BATCH_SIZE: Final[int] = max(1, _env_int("CLASSIFIER_BATCH_SIZE", 10) or 10)
CLASSIFIER_COOLDOWN_SECONDS: Final[float] = _env_float("CLASSIFIER_COOLDOWN_SECONDS", 20.0)
CLASSIFIER_MAX_CHARS_PER_UNIT: Final[int] = 8000
CLASSIFIER_REMARKS_MAX_CHARS: Final[int] = 500

# Lower-cased substrings that mark a classifier failure as transient
TRANSIENT_ERROR_MARKERS: Final[Tuple[str, ...]] = (
    "429",
    "rate limit",
    "resource exhausted",
    "quota",
    "503",
    "service unavailable",
    "unavailable",
    "overloaded",
    "timeout",
    "timed out",
    "deadline exceeded",
    "econnrefused",
    "connection refused",
    "connection reset",
)

CLASSIFIER_PROMPT_TEMPLATE: Final[str] = """You are a code review assistant. Analyze whether the following question text matches the provided code solution.

Question Text: "{question_text}"

Code Solution:
{code_content}

Respond with a single JSON object and nothing else, using this shape:
{{"verdict": "Match" | "NoMatch" | "Partial" | "NeedsReview", "remarks": "<assessment, maximum 50 words>", "suggestedRequirements": ["<requirement the code actually implements>", ...]}}

Use "Match" when the code solves the question as stated. Use "NoMatch" when the code's intent differs from the question. Use "Partial" when only some requirements are implemented. Use "NeedsReview" for anything else.
Only include "suggestedRequirements" when the verdict is not "Match"; describe what the submitted code appears to implement."""

# --- Verdict Keyword Tables ---
# Matched case-insensitively on whole words, checked in the order given.

GRADING_KEYWORDS: Final[Dict[str, Tuple[str, ...]]] = {
    "PASSED": ("congratulations", "correct", "accepted", "success"),
    "FAILED": ("wrong answer", "incorrect", "wrong", "failed", "rejected"),
}
PROCESSING_KEYWORDS: Final[Tuple[str, ...]] = (
    "processing", "running", "evaluating", "executing", "please wait", "loading",
)
CLASSIFIER_VERDICT_KEYWORDS: Final[List[Tuple[str, Tuple[str, ...]]]] = [
    ("NoMatch", (
        "doesn't match", "does not match", "don't match", "do not match",
        "not match", "mismatch", "no match",
    )),
    ("Partial", ("partial", "partially", "incomplete")),
    ("NeedsReview", ("needs review", "unclear", "ambiguous", "cannot determine")),
    ("Match", ("match confirmed", "matches", "match")),
]

# A negation this many words or fewer before "match" turns a bare Match into NeedsReview
MATCH_NEGATIONS: Final[Tuple[str, ...]] = (
    "not", "never", "doesn't", "don't", "isn't", "aren't", "cannot", "can't", "fails to", "fail to",
)
MATCH_NEGATION_WINDOW: Final[int] = 2

# --- Page Driver Selectors ---
# Abstract locator kinds used by the traversal engine, mapped to concrete
# Playwright selectors. Only services.page_driver interprets these values.

_LAYOUT_ROOT = "/html/body/div/div/div[3]/div[2]/div/div/div/div/div/div/div/div"

SELECTORS: Final[Dict[str, str]] = {
    "question_marker": "button",
    "question_marker.styled": 'button[style*="width: 50px; height: 50px"]',
    "question_text.primary": f"xpath={_LAYOUT_ROOT}[2]/div/div[1]/div",
    "question_text.class": '[class*="question"]',
    "question_text.label": "text=Question",
    "question_text.heading": "h1, h2, h3, h4, h5, h6",
    "code.primary": f"xpath={_LAYOUT_ROOT}[3]/div[1]/div[2]/div/div/div[2]/div[2]",
    "code.ace": ".ace_text-input",
    "code.textarea": "textarea",
    "code.input": 'input[type="text"]',
    "code.contenteditable": '[contenteditable="true"]',
    "code.pre": "pre code",
    "code.inline": "code",
    "file_tabs.container": '[class*="file-tabs"], [class*="fileTabs"], [role="tablist"]',
    "file_tabs.tab": (
        '[class*="file-tabs"] button, [class*="fileTabs"] button, [role="tablist"] [role="tab"]'
    ),
    "run.primary": f"xpath={_LAYOUT_ROOT}[3]/div[2]/div/div[2]",
    "run.processing": "button.processingDivButton",
    "run.label": 'button:text-matches("^\\s*run\\s*$", "i")',
    "result.primary": f"xpath={_LAYOUT_ROOT}[3]/div[2]/div/div[1]/h5",
    "page.body": "body",
    "next.primary": f"xpath={_LAYOUT_ROOT}[3]/div[2]/div/div[2]/button[2]",
    "next.label": 'button:text-matches("^\\s*next\\s*$", "i")',
    "next.testid": '[data-testid="next-button"]',
    "next.aria": 'button[aria-label*="next" i]',
}

# Chromium flags carried over from the original browser configuration
BROWSER_LAUNCH_ARGS: Final[List[str]] = [
    "--start-maximized",
    "--disable-blink-features=AutomationControlled",
    "--no-first-run",
    "--no-default-browser-check",
    "--disable-dev-shm-usage",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
    "--window-size=1920,1080",
]
BROWSER_USER_AGENT: Final[str] = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
BROWSER_SLOW_MO_MS: Final[int] = _env_int("BROWSER_SLOW_MO_MS", 0) or 0

# --- Logging Configuration ---
LOG_LEVEL = logging.DEBUG if DEBUG else logging.INFO
# Structured log format: timestamp, level, runner tag, module.function:line, message
LOG_FORMAT = '%(asctime)s | %(levelname)s | %(runner)s | %(module)s.%(funcName)s:%(lineno)d | %(message)s'

# Basic check
if __name__ == "__main__":
    print(f"Debug Mode: {'On' if DEBUG else 'Off'}")
    print(f"Log Level: {logging.getLevelName(LOG_LEVEL)}")
    print(f"Target: {BASE_URL}{TARGET_PATH}")
    print(f"Question Range: {START_QUESTION} - {END_QUESTION or 'end'}")
    print(f"Runners: {RUNNERS} (this runner: {RUNNER_ID or 'single'})")
    print(f"Auth State File: {AUTH_STATE_PATH}")
    print(f"Report Dir: {REPORT_DIR}")
    print(f"Log File: {LOG_FILE}")
    print(f"Gemini API Key Loaded: {'Yes' if GEMINI_API_KEY else 'No'}")
    print(f"Gemini Models: {', '.join(GEMINI_MODELS)}")
