"""Sampled logging for per-frame traffic.

Large transfers produce thousands of frames; logging each one would drown
everything else. A frame logger only reports the first and the last frame of
the first transfer and of every Nth transfer after that.
"""

import logging

from blobstream.const import FRAME_LOG_INTERVAL

logger = logging.getLogger(__name__)


class FrameLogger:
    """Sampled logger for frames of many concurrent transfers.

    Each transfer is numbered on its first frame and forgotten on its last
    frame, or through ``discard`` when it ends early.
    """

    def __init__(
        self,
        log_format: str,
        log_interval: int = FRAME_LOG_INTERVAL,
        target_logger: logging.Logger | None = None,
        level: int = logging.DEBUG,
    ) -> None:
        """Initialize the frame logger.

        Args:
            log_format: Format string. The first placeholder receives the
                transfer number, remaining placeholders receive the frame
                arguments.
            log_interval: Log every Nth transfer.
            target_logger: Logger instance to use (default: module logger).
            level: Log level to use.
        """
        self._log_format = log_format
        self._log_interval = log_interval
        self._logger = target_logger or logger
        self._level = level
        self._transfer_numbers: dict[str, int] = {}
        self._transfer_counter = 0

    def __call__(
        self,
        transfer_key: str,
        is_first: bool,
        is_last: bool,
        *format_args: object,
    ) -> None:
        if not self._logger.isEnabledFor(self._level):
            return
        if transfer_key not in self._transfer_numbers:
            self._transfer_counter += 1
            self._transfer_numbers[transfer_key] = self._transfer_counter

        number = (
            self._transfer_numbers.pop(transfer_key)
            if is_last
            else self._transfer_numbers[transfer_key]
        )
        if number != 1 and number % self._log_interval != 0:
            return
        if is_first or is_last:
            self._logger.log(self._level, self._log_format, number, *format_args)

    def discard(self, transfer_key: str) -> None:
        """Forget a transfer that ended before its last frame."""
        self._transfer_numbers.pop(transfer_key, None)

    @property
    def active_transfers(self) -> int:
        return len(self._transfer_numbers)


def make_frame_logger(
    log_format: str,
    log_interval: int = FRAME_LOG_INTERVAL,
    target_logger: logging.Logger | None = None,
    level: int = logging.DEBUG,
) -> FrameLogger:
    """Create a sampled logger for frames of many transfers.

    The returned logger is called as
    ``log_frame(transfer_key, is_first, is_last, *format_args)``.
    """
    return FrameLogger(log_format, log_interval, target_logger, level)
