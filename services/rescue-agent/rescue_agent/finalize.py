"""Rescue finalize step.

Hands the rescue credentials and config drive to the local finalize
script, which completes the rescue-mode setup.
"""

import subprocess

import structlog

logger = structlog.get_logger()


class FinalizeError(Exception):
    """Raised when the finalize script fails."""

    def __init__(self, message: str, returncode: int = None):
        super().__init__(message)
        self.returncode = returncode


def finalize_rescue(
    finalize_script: str,
    configdrive: str,
    rescue_username: str,
    rescue_password_hash: str,
) -> None:
    """
    Run the finalize script.

    The script is called as ``<script> <username> <password-hash>`` with
    the config drive on stdin. Its stdout and stderr go straight to ours.

    Raises:
        FinalizeError: If the script cannot be started or exits non-zero.
    """
    logger.info(
        "finalize_script_starting",
        script=finalize_script,
        rescue_username=rescue_username,
    )

    try:
        result = subprocess.run(
            [finalize_script, rescue_username, rescue_password_hash],
            input=configdrive,
            encoding="utf-8",
        )
    except (OSError, UnicodeEncodeError) as e:
        raise FinalizeError(f"Failed to run finalize script {finalize_script}: {e}") from e

    if result.returncode != 0:
        raise FinalizeError(
            f"Finalize script {finalize_script} exited with status {result.returncode}",
            returncode=result.returncode,
        )

    logger.info("finalize_script_completed", script=finalize_script)
