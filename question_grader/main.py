"""Main execution script for the Coding Question Grader."""

import signal
import sys
from typing import Optional

from dotenv import load_dotenv

# Load .env before config reads the environment
load_dotenv()

from question_grader import config
from question_grader.core.cancellation import CancellationToken
from question_grader.core.engine import RunOutcome, RunState, TraversalEngine, TraversalSettings
from question_grader.parallel import launch_runners
from question_grader.services.browser import open_browser_session
from question_grader.services.gemini_ai import SkippedClassifier, build_classifier
from question_grader.services.report_sink import ExcelReportSink
from question_grader.session import SessionCoordinator
from question_grader.ui import cli
from question_grader.utils.logger import setup_logger
from question_grader.utils.error_handler import (AuthenticationError, BaseGraderException, ConfigError,
                                                 NavigationError, RunCancelled)

# Initialize logger as early as possible after config is loaded
logger = setup_logger()

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def exit_code_for(outcome: RunOutcome) -> int:
    if outcome.interrupted:
        return EXIT_INTERRUPTED
    return EXIT_OK if outcome.state is RunState.DONE else EXIT_FAILURE


def failed_run_outcome(engine: TraversalEngine, error: Exception) -> RunOutcome:
    """Summarizes a run whose loop raised after the engine's final flush."""
    last = engine.ledger.last
    return RunOutcome(
        state=RunState.ABORTED,
        reason=f"{type(error).__name__}: {error}",
        summary=engine.ledger.summary(),
        last_index=last.question_index if last else None,
        report_path=engine.report_path,
    )


def install_signal_handlers(token: CancellationToken) -> None:
    """Routes SIGINT/SIGTERM to the token; a second signal interrupts immediately."""
    def handler(signum, frame):
        if token.cancelled:
            raise KeyboardInterrupt
        name = signal.Signals(signum).name
        logger.warning(f"Received {name}, stopping after the current step...")
        token.cancel(f"Interrupted by {name}")

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


def run_parent() -> int:
    """Coordinates several runner processes; the children do the grading."""
    # Children receive Ctrl+C themselves; the parent keeps waiting so it can merge
    signal.signal(signal.SIGINT, lambda signum, frame: logger.warning("Interrupt received, waiting for runners..."))
    cli.display_step(1, f"Launching {config.RUNNERS} runners...")
    code = launch_runners(config.RUNNERS)
    if code == EXIT_OK:
        cli.display_success("All runners completed successfully.")
    else:
        cli.display_warning("Some runners failed. Check the per-runner logs.")
    return code


def main(token: Optional[CancellationToken] = None) -> int:
    """Runs one grading session and returns the process exit code."""
    logger.info("Starting Coding Question Grader main workflow.")
    cli.display_welcome(config.RUNNER_ID)

    token = token or CancellationToken()
    coordinator: Optional[SessionCoordinator] = None

    try:
        settings = TraversalSettings.from_config()
        coordinator = SessionCoordinator(
            runner_id=settings.runner_id,
            runner_count=settings.runner_count,
            sleep=token.wait,
        )

        # --- Step 1: Session ---
        cli.display_step(1, "Preparing login session...")
        storage_state = coordinator.prepare()

        # --- Step 2: Classifier ---
        cli.display_step(2, "Initializing Gemini AI Client...")
        classifier = build_classifier(config.GEMINI_API_KEY)
        if isinstance(classifier, SkippedClassifier):
            cli.display_warning("GEMINI_API_KEY not found. Gemini analysis will be skipped.")
        else:
            cli.display_success("Gemini AI Client initialized.")

        # Interactive login needs a visible window
        headless = config.HEADLESS if storage_state else False
        with open_browser_session(storage_state, headless=headless) as session:
            # --- Step 3: Login ---
            cli.display_step(3, "Logging in...")
            if storage_state is None:
                coordinator.interactive_login(session)
            else:
                coordinator.ensure_logged_in(session)
            cli.display_success("Logged in.")

            # --- Step 4: Grade ---
            cli.display_step(4, "Processing questions...")
            coordinator.open_question_set(session.driver)
            engine = TraversalEngine(session.driver, classifier, ExcelReportSink(), settings, token)
            try:
                outcome = engine.run()
            except Exception as e:
                # The engine has flushed what it had; show it before reporting the error
                cli.display_run_summary(failed_run_outcome(engine, e))
                raise

        # --- Step 5: Summary ---
        cli.display_step(5, "Displaying Run Summary...")
        cli.display_run_summary(outcome)
        return exit_code_for(outcome)

    except (AuthenticationError, ConfigError) as e:
        logger.critical(f"Setup or Authentication Error: {e}", exc_info=config.DEBUG)
        cli.display_error(f"Setup Error: {e}")
        return EXIT_FAILURE
    except NavigationError as e:
        logger.error(f"Navigation Error: {e}", exc_info=config.DEBUG)
        cli.display_error(f"Navigation Error: {e}")
        return EXIT_FAILURE
    except (RunCancelled, KeyboardInterrupt) as e:
        logger.info(f"Operation interrupted by user: {e or 'Ctrl+C'}")
        cli.display_warning("Operation interrupted.")
        return EXIT_INTERRUPTED
    except BaseGraderException as e:
        logger.error(f"Grader Error: {e}", exc_info=config.DEBUG)
        cli.display_error(str(e))
        return EXIT_FAILURE
    except Exception as e:
        # Catch-all for unexpected errors
        logger.critical(f"An unexpected error occurred: {e}", exc_info=True)
        cli.display_error(f"An unexpected error occurred: {e}. Check logs for details.")
        return EXIT_FAILURE
    finally:
        if coordinator is not None:
            coordinator.release()
        cli.display_farewell()


def run() -> None:
    """Console-script entry point."""
    if config.RUNNERS > 1 and config.RUNNER_ID is None:
        sys.exit(run_parent())
    token = CancellationToken()
    install_signal_handlers(token)
    sys.exit(main(token))


if __name__ == "__main__":
    run()
