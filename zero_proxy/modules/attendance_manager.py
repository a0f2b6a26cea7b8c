"""
Attendance Manager Module - Zero Proxy Attendance System

This module records presence facts. At most one attendance record exists
per (roll number, subject) pair no matter how many scans arrive; a repeat
is reported back as ALREADY_PRESENT rather than as an error.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Any, Set
import logging

METHOD_SCAN = 'scan'
METHOD_MANUAL = 'manual'


class RecordResult(Enum):
    CREATED = 'created'
    ALREADY_PRESENT = 'already_present'


@dataclass
class AttendanceRecord:
    """Data class for attendance record structure."""
    roll_number: str
    subject: str
    marked_at: str
    method: str = METHOD_SCAN


class AttendanceManager:
    """
    Idempotent attendance recorder backed by the attendance collection.
    """

    def __init__(self, database_manager):
        """
        Initialize the attendance manager with database connection.

        Args:
            database_manager: Database manager instance
        """
        self.db = database_manager
        self.logger = logging.getLogger(__name__)

    def record(self, roll_number: str, subject: str, method: str = METHOD_SCAN) -> RecordResult:
        """
        Record that a participant attended a subject.

        Args:
            roll_number (str): Participant roll number
            subject (str): Subject of the active session
            method (str): 'scan' or 'manual'

        Returns:
            RecordResult: CREATED on the first record, ALREADY_PRESENT afterwards
        """
        record = AttendanceRecord(
            roll_number=roll_number,
            subject=subject,
            marked_at=datetime.now().isoformat(timespec='seconds'),
            method=method
        )

        created = self.db.insert_if_absent('attendance', {
            'roll_number': record.roll_number,
            'subject': record.subject,
            'marked_at': record.marked_at,
            'method': record.method
        })

        if created:
            self.logger.info(f"{roll_number} marked present via {method} for {subject}")
            return RecordResult.CREATED

        self.logger.info(f"{roll_number} already marked for {subject}")
        return RecordResult.ALREADY_PRESENT

    def present_roll_numbers(self, subject: str) -> Set[str]:
        """Get the roll numbers already marked present for a subject."""
        return {row['roll_number'] for row in self.db.find('attendance', {'subject': subject})}

    def get_attendance_for_subject(self, subject: str) -> List[Dict[str, Any]]:
        return self.db.find('attendance', {'subject': subject})
