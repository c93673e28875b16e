"""
File stability detection.

Samples a file's size twice, one interval apart. A file is stable when
both samples succeed and report the same size.

Known limitation: a writer that pauses for longer than the interval is
judged stable mid-write.
"""

import os
import time
from pathlib import Path
from typing import Callable, Optional, Tuple, Union

from .models import FileStabilityCheck, DEFAULT_STABILITY_INTERVAL_SECONDS


class FileStabilityChecker:
    """
    Two-sample file stability detector.

    Fails closed: a missing file, a directory, or any stat error is
    reported as unstable.

    Configuration:
        interval: Seconds between the two size samples (default: 1)
        sleep: Sleep function, replaceable in tests
    """

    def __init__(
        self,
        interval: float = DEFAULT_STABILITY_INTERVAL_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.interval = interval
        self._sleep = sleep

    def _sample(self, path: Path) -> Tuple[Optional[int], Optional[str]]:
        try:
            stat = path.stat()
        except FileNotFoundError:
            return None, "File does not exist"
        except OSError as e:
            return None, f"File not accessible: {e}"

        if os.path.isdir(path):
            return None, "Path is a directory"
        return stat.st_size, None

    def check(self, path: Union[str, Path]) -> FileStabilityCheck:
        """
        Check if a file is stable.

        Blocks for one interval unless the first sample already fails.
        """
        path = Path(path)
        path_str = str(path)

        first_size, reason = self._sample(path)
        if first_size is None:
            return FileStabilityCheck(path=path_str, is_stable=False, reason=reason)

        self._sleep(self.interval)

        second_size, reason = self._sample(path)
        if second_size is None:
            return FileStabilityCheck(path=path_str, is_stable=False, reason=reason)

        if second_size != first_size:
            return FileStabilityCheck(
                path=path_str,
                is_stable=False,
                size_bytes=second_size,
                reason=f"File size changed (prev: {first_size}, current: {second_size})",
            )

        return FileStabilityCheck(path=path_str, is_stable=True, size_bytes=second_size)

    def is_stable(self, path: Union[str, Path]) -> bool:
        return self.check(path).is_stable
