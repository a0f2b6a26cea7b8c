"""
Notification System Module - Zero Proxy Attendance System

This module delivers named real-time events to Socket.IO connections.
It carries no business logic: the session manager decides what to send
and to whom, this module only delivers and logs it.
"""

from typing import Any, Optional
import logging

EVENT_SESSION_STARTED = 'sessionStarted'
EVENT_SESSION_ERROR = 'sessionError'
EVENT_NEW_CODE = 'newQRCode'
EVENT_STUDENT_MARKED = 'studentMarked'


class NotificationSystem:
    """
    Event delivery over a Flask-SocketIO server.
    """

    def __init__(self, socketio):
        """
        Args:
            socketio: flask_socketio.SocketIO instance
        """
        self.socketio = socketio
        self.logger = logging.getLogger(__name__)

    def send(self, event: str, payload: Any, to: Optional[str] = None) -> None:
        """
        Deliver an event to one connection, or to every connection when
        ``to`` is None.
        """
        if to is None:
            self.socketio.emit(event, payload)
        else:
            self.socketio.emit(event, payload, to=to)
        self.logger.debug(f"Event {event} sent to {to or 'all connections'}")

    def send_session_started(self, sid: str, subject: str, students: list) -> None:
        self.send(EVENT_SESSION_STARTED, {'subject': subject, 'studentsList': students}, to=sid)

    def send_session_error(self, sid: str, message: str) -> None:
        self.send(EVENT_SESSION_ERROR, message, to=sid)

    def send_new_code(self, sid: str, code: str) -> None:
        self.send(EVENT_NEW_CODE, code, to=sid)

    def send_student_marked(self, roll_number: str) -> None:
        self.send(EVENT_STUDENT_MARKED, roll_number)
