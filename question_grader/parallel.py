"""Fans a run out over several runner processes and merges their reports."""

import os
import subprocess
import sys
import time
from typing import Callable, List, Optional, Sequence

from question_grader import config
from question_grader.services.report_sink import ExcelReportSink
from question_grader.utils.logger import get_logger

logger = get_logger()

MERGED_REPORT_FILENAME = "report_merged.xlsx"
STAGGER_SECONDS = 1.0


def runner_report_filename(runner_id: int) -> str:
    return f"report_runner{runner_id}.xlsx"


def runner_command() -> List[str]:
    return [sys.executable, "-m", "question_grader.main"]


def launch_runners(
    runner_count: int = config.RUNNERS,
    sink: Optional[ExcelReportSink] = None,
    popen: Callable[..., subprocess.Popen] = subprocess.Popen,
    sleep: Callable[[float], None] = time.sleep,
    command: Optional[Sequence[str]] = None,
) -> int:
    """Starts ``runner_count`` child runs, waits for all, then merges their reports.

    Each child gets ``RUNNER_ID`` (1-based) and ``RUNNERS`` in its environment
    and grades only its own slice of the question range.

    Returns:
        0 when every runner exited cleanly, otherwise 1.
    """
    sink = sink or ExcelReportSink()
    command = list(command or runner_command())
    logger.info(f"=== Starting {runner_count} parallel runners ===")

    processes = []
    for runner_id in range(1, runner_count + 1):
        env = dict(os.environ, RUNNER_ID=str(runner_id), RUNNERS=str(runner_count))
        logger.info(f"Starting Runner {runner_id}/{runner_count}...")
        try:
            processes.append((runner_id, popen(command, env=env)))
        except OSError as e:
            logger.error(f"Runner {runner_id}/{runner_count} failed to start: {e}", exc_info=config.DEBUG)
            processes.append((runner_id, None))
        if runner_id < runner_count:
            # Stagger starts so runners do not race for the browser and the session file
            sleep(STAGGER_SECONDS)

    codes = []
    for runner_id, proc in processes:
        code = proc.wait() if proc is not None else 1
        logger.info(f"Runner {runner_id}/{runner_count} finished with code {code}")
        codes.append(code)

    logger.info(f"=== All runners completed. Results: {', '.join(str(c) for c in codes)} ===")

    paths = [os.path.join(sink.report_dir, runner_report_filename(i)) for i in range(1, runner_count + 1)]
    if any(os.path.exists(p) for p in paths):
        sink.merge(paths, MERGED_REPORT_FILENAME)
    else:
        logger.warning("No runner produced a report; nothing to merge.")

    if all(code == 0 for code in codes):
        logger.info("All runners completed successfully!")
        return 0
    logger.warning("Some runners failed.")
    return 1
