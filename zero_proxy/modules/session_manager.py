"""
Session Manager Module - Zero Proxy Attendance System

This module owns the attendance session state machine:

    IDLE --start_session(room)--> ACTIVE --end_session()--> IDLE

A session is started by a presenter connection for a room whose timetable
has a subject scheduled right now. While it is active, codes rotate and
participants can be marked present by scanning the current code or by the
presenter marking them manually. The presenter disconnecting ends it.

The active session and its current code are the only shared mutable state.
They are mutated under a single lock; persistence calls and socket
emits never run under it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import logging
import threading

from zero_proxy.exceptions import AccessDenied, CodeError, SessionError
from zero_proxy.modules.attendance_manager import METHOD_MANUAL, METHOD_SCAN, RecordResult


class SessionState(Enum):
    IDLE = 'idle'
    ACTIVE = 'active'


@dataclass
class Session:
    """The live pairing of a room with its scheduled subject."""
    subject: str
    classroom: str
    presenter_sid: str
    roster: List[Dict[str, Any]] = field(default_factory=list)
    code: Optional[str] = None
    code_issued_at: Optional[datetime] = None
    started_at: datetime = field(default_factory=datetime.now)


class SessionManager:
    """
    Coordinates the schedule resolver, code rotator, attendance recorder and
    real-time notifications for the single active session.
    """

    def __init__(self, schedule_resolver, student_manager, attendance_manager,
                 code_rotator, notifier):
        """
        Args:
            schedule_resolver: ScheduleResolver instance
            student_manager: StudentManager instance
            attendance_manager: AttendanceManager instance
            code_rotator: CodeRotator instance
            notifier: NotificationSystem instance
        """
        self.schedule = schedule_resolver
        self.students = student_manager
        self.attendance = attendance_manager
        self.rotator = code_rotator
        self.notifier = notifier
        self.logger = logging.getLogger(__name__)

        self._lock = threading.RLock()
        self._session = None
        self._handle = None

    @property
    def state(self) -> SessionState:
        with self._lock:
            return SessionState.ACTIVE if self._session else SessionState.IDLE

    @property
    def current_session(self) -> Optional[Session]:
        with self._lock:
            return self._session

    @property
    def current_code(self) -> Optional[str]:
        with self._lock:
            return self._session.code if self._session else None

    def _load_roster(self, classroom: str, subject: str) -> List[Dict[str, Any]]:
        present = self.attendance.present_roll_numbers(subject)
        return [
            {
                'rollNumber': student.roll_number,
                'name': student.name,
                'isPresent': student.roll_number in present
            }
            for student in self.students.get_students_by_classroom(classroom)
        ]

    def _on_code(self, session: Session, code: str) -> None:
        with self._lock:
            if session is not self._session:
                return
            session.code = code
            session.code_issued_at = datetime.now()

        # The rotation handle lock is still held, so cancel() waits for this send
        self.notifier.send_new_code(session.presenter_sid, code)

    def _detach(self):
        # Caller holds the lock
        session, handle = self._session, self._handle
        self._session = None
        self._handle = None
        return session, handle

    def start_session(self, classroom: str, presenter_sid: str,
                      now: Optional[datetime] = None) -> Session:
        """
        Start a session for a room.

        A presenter that already owns the active session restarts it.

        Args:
            classroom (str): Room identifier
            presenter_sid (str): Socket.IO id of the presenter connection
            now (datetime): Time used for the timetable lookup

        Returns:
            Session: The started session

        Raises:
            SessionError: nothing is scheduled, the timetable is ambiguous,
                or another presenter's session is running
        """
        self._ensure_not_taken(presenter_sid)

        subject = self.schedule.resolve(classroom, now)
        if not subject:
            raise SessionError(f"No scheduled lecture for {classroom} at this time.")

        roster = self._load_roster(classroom, subject)
        session = Session(
            subject=subject,
            classroom=classroom,
            presenter_sid=presenter_sid,
            roster=roster
        )

        with self._lock:
            self._ensure_not_taken(presenter_sid)
            _, previous_handle = self._detach()

            self._session = session

        if previous_handle is not None:
            previous_handle.cancel()
            self.logger.info(f"Previous session of {presenter_sid} replaced")

        self.notifier.send_session_started(presenter_sid, subject, roster)
        handle = self.rotator.start(lambda code: self._on_code(session, code))

        with self._lock:
            if session is self._session:
                self._handle, handle = handle, None

        if handle is not None:
            # Ended or replaced while the rotation was starting
            handle.cancel()
            self.logger.info(f"Session for {subject} ended before its rotation started")
            return session

        self.logger.info(f"Classroom '{classroom}' session started for {subject}")
        return session

    def _ensure_not_taken(self, presenter_sid: str):
        with self._lock:
            if self._session and self._session.presenter_sid != presenter_sid:
                raise SessionError(
                    f"A session for {self._session.subject} is already running in "
                    f"{self._session.classroom}."
                )

    def _require_session(self) -> Session:
        with self._lock:
            if not self._session:
                raise SessionError("No active lecture session!")
            return self._session

    def scan(self, roll_number: str, code: str) -> Tuple[RecordResult, str]:
        """
        Mark a participant present with the code they scanned.

        Returns:
            Tuple[RecordResult, str]: Record outcome and the session subject

        Raises:
            SessionError: no session is active
            CodeError: the code is not the most recently emitted one
        """
        with self._lock:
            session = self._require_session()
            if not code or code != session.code:
                raise CodeError("Expired or Invalid QR Code.")
            subject = session.subject

        return self._record(roll_number, subject, METHOD_SCAN), subject

    def mark_manual(self, roll_number: str, presenter_sid: Optional[str] = None) -> RecordResult:
        """
        Presenter-initiated marking that skips the code check.

        Raises:
            SessionError: no session is active
            AccessDenied: the caller is not the presenter of the active session
        """
        with self._lock:
            session = self._require_session()
            if presenter_sid is not None and presenter_sid != session.presenter_sid:
                raise AccessDenied("Only the presenter of the active session can mark attendance.")
            subject = session.subject

        result = self._record(roll_number, subject, METHOD_MANUAL)
        if result is RecordResult.CREATED:
            self.logger.info(f"Teacher manually marked {roll_number} present")
        return result

    def _record(self, roll_number: str, subject: str, method: str) -> RecordResult:
        result = self.attendance.record(roll_number, subject, method)
        if result is RecordResult.CREATED:
            self.notifier.send_student_marked(roll_number)
        return result

    def end_session(self, presenter_sid: Optional[str] = None) -> bool:
        """
        Cancel code rotation and return to IDLE. Safe to call repeatedly.

        Args:
            presenter_sid (str): When given, only this presenter's session ends

        Returns:
            bool: True if a session was ended
        """
        with self._lock:
            if not self._session:
                return False
            if presenter_sid is not None and presenter_sid != self._session.presenter_sid:
                return False
            session, handle = self._detach()

        if handle is not None:
            handle.cancel()

        self.logger.info(f"Session closed: {session.subject} in {session.classroom}")
        return True

    def get_status(self) -> Dict[str, Any]:
        with self._lock:
            session = self._session
            if not session:
                return {'active': False, 'subject': None, 'classroom': None}
            return {
                'active': True,
                'subject': session.subject,
                'classroom': session.classroom,
                'startedAt': session.started_at.isoformat(timespec='seconds'),
            }
