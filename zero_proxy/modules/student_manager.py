"""
Student Manager Module - Zero Proxy Attendance System

This module handles participant records: lookup by roll number, lazy
enrollment on first login, classroom rosters and the administrative reset
of a device binding.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import logging


@dataclass
class StudentProfile:
    """Data class for a participant record."""
    roll_number: str
    name: str
    classroom: Optional[str]
    mac_address: Optional[str]

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'StudentProfile':
        return cls(
            roll_number=row['roll_number'],
            name=row['name'],
            classroom=row.get('classroom'),
            mac_address=row.get('mac_address')
        )


class StudentManager:
    """
    Participant directory backed by the students collection.
    """

    def __init__(self, database_manager):
        """
        Initialize the student manager with database connection.

        Args:
            database_manager: Database manager instance
        """
        self.db = database_manager
        self.logger = logging.getLogger(__name__)

    def get_student(self, roll_number: str) -> Optional[StudentProfile]:
        row = self.db.find_one('students', {'roll_number': roll_number})
        return StudentProfile.from_row(row) if row else None

    def create_student(self, roll_number: str, name: str = None, classroom: str = None,
                       mac_address: str = None) -> Optional[StudentProfile]:
        """
        Enroll a participant.

        Args:
            roll_number (str): Unique roll number
            name (str): Display name, defaults to "Student <roll>"
            classroom (str): Room assignment
            mac_address (str): Device fingerprint to bind immediately

        Returns:
            StudentProfile: The created participant, or None if the roll
            number is already enrolled
        """
        profile = StudentProfile(
            roll_number=roll_number,
            name=name or f"Student {roll_number}",
            classroom=classroom,
            mac_address=mac_address
        )
        created = self.db.insert_if_absent('students', {
            'roll_number': profile.roll_number,
            'name': profile.name,
            'classroom': profile.classroom,
            'mac_address': profile.mac_address
        })
        if not created:
            return None

        self.logger.info(f"Student enrolled: {roll_number}")
        return profile

    def get_students_by_classroom(self, classroom: str) -> List[StudentProfile]:
        """Get every participant assigned to a room, in enrollment order."""
        rows = self.db.find('students', {'classroom': classroom})
        return [StudentProfile.from_row(row) for row in rows]

    def bind_device(self, roll_number: str, mac_address: str) -> bool:
        """
        Bind a fingerprint to a participant that has none yet.

        Returns:
            bool: False when another request bound the participant first
        """
        updated = self.db.update(
            'students',
            {'roll_number': roll_number, 'mac_address': None},
            {'$set': {'mac_address': mac_address}}
        )
        return updated == 1

    def reset_device_binding(self, roll_number: str) -> bool:
        """
        Clear the device binding of a participant so the next login binds again.

        Returns:
            bool: True if the participant exists
        """
        updated = self.db.update(
            'students',
            {'roll_number': roll_number},
            {'$set': {'mac_address': None}}
        )
        if updated:
            self.logger.warning(f"Device binding cleared for {roll_number}")
        return updated > 0
