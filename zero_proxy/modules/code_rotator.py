"""
Code Rotator Module - Zero Proxy Attendance System

This module issues the short-lived codes a presenter displays during a
session. A rotation emits one code immediately and then a new one every
rotation period on a background thread until it is cancelled.

Codes are opaque "<prefix>-<NNNN>" tokens with a four digit number. They
are not signed and carry no uniqueness guarantee across rotations; a stale
code is rejected only because it no longer equals the current one.
"""

from typing import Callable, Optional
import logging
import secrets
import threading


def generate_code(prefix: str = 'ZP') -> str:
    """Draw a code such as 'ZP-4821' (number in 1000..9999)."""
    return f"{prefix}-{1000 + secrets.randbelow(9000)}"


class RotationHandle:
    """
    Cancellation handle for one running rotation.

    Emission and cancellation share a lock, so once cancel() returns no
    further code is emitted, even if a tick was already in flight.
    """

    def __init__(self, on_code: Callable[[str], None], period: float, prefix: str):
        self._on_code = on_code
        self._period = period
        self._prefix = prefix
        self._lock = threading.RLock()
        self._stopped = threading.Event()
        self._cancelled = False
        self._thread = None
        self.last_code = None
        self.logger = logging.getLogger(__name__)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _emit(self) -> bool:
        with self._lock:
            if self._cancelled:
                return False
            code = generate_code(self._prefix)
            self.last_code = code
            self._on_code(code)
            return True

    def _run(self):
        while not self._stopped.wait(self._period):
            try:
                if not self._emit():
                    break
            except Exception as e:
                # A failing subscriber must not end the rotation
                self.logger.error(f"Code rotation tick failed: {str(e)}")

    def _start(self):
        self._emit()
        self._thread = threading.Thread(
            target=self._run,
            name='code-rotator',
            daemon=True
        )
        self._thread.start()

    def cancel(self) -> bool:
        """
        Stop the rotation. Safe to call more than once.

        Returns:
            bool: True on the call that actually cancelled
        """
        with self._lock:
            if self._cancelled:
                return False
            self._cancelled = True
        self._stopped.set()
        return True

    def join(self, timeout: Optional[float] = None):
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)


class CodeRotator:
    """
    Starts code rotations with a fixed period.
    """

    def __init__(self, period: float = 10.0, prefix: str = 'ZP'):
        """
        Args:
            period (float): Seconds between two codes
            prefix (str): Code prefix
        """
        if period <= 0:
            raise ValueError("Rotation period must be positive")
        self.period = period
        self.prefix = prefix
        self.logger = logging.getLogger(__name__)

    def start(self, on_code: Callable[[str], None]) -> RotationHandle:
        """
        Emit a code to ``on_code`` now and then every period.

        The first code is emitted before this method returns.

        Returns:
            RotationHandle: Handle whose cancel() stops the rotation
        """
        handle = RotationHandle(on_code, self.period, self.prefix)
        handle._start()
        self.logger.info(f"Code rotation started (every {self.period}s)")
        return handle
