"""
Schedule Resolver Module - Zero Proxy Attendance System

This module answers "which subject is scheduled in this room right now?".
Timetable entries are matched on day of week and an inclusive
[start_time, end_time] window expressed as zero-padded "HH:MM" strings.

day_of_week follows datetime.weekday(): 0 is Monday and 6 is Sunday.
Timetables numbered from Sunday = 0 must be converted with
(day + 6) % 7 before they are stored.

Features:
- Pure timetable lookup, safe to call repeatedly
- Configurable policy for overlapping entries
- Room schedule listing
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from zero_proxy.exceptions import ScheduleConflictError

POLICY_FIRST = 'first'
POLICY_REJECT = 'reject'
POLICY_NARROWEST = 'narrowest'

OVERLAP_POLICIES = (POLICY_FIRST, POLICY_REJECT, POLICY_NARROWEST)


def _minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(':')
    return int(hours) * 60 + int(minutes)


class ScheduleResolver:
    """
    Timetable lookup for classrooms.
    """

    # Days of week (0 = Monday, 6 = Sunday)
    DAYS_OF_WEEK = {
        0: 'Monday',
        1: 'Tuesday',
        2: 'Wednesday',
        3: 'Thursday',
        4: 'Friday',
        5: 'Saturday',
        6: 'Sunday'
    }

    def __init__(self, database_manager, overlap_policy: str = POLICY_FIRST):
        """
        Initialize the resolver.

        Args:
            database_manager: Database manager instance
            overlap_policy (str): How to pick between overlapping entries,
                one of 'first', 'reject' or 'narrowest'
        """
        if overlap_policy not in OVERLAP_POLICIES:
            raise ValueError(f"Unknown schedule overlap policy: {overlap_policy}")

        self.db = database_manager
        self.overlap_policy = overlap_policy
        self.logger = logging.getLogger(__name__)

    def find_entries(self, classroom: str, point_in_time: datetime = None) -> List[Dict[str, Any]]:
        """
        Get every timetable entry covering the given room and time, in storage order.

        The day is matched as point_in_time.weekday(), so Monday is 0.
        """
        point_in_time = point_in_time or datetime.now()
        current_time = point_in_time.strftime('%H:%M')

        return self.db.find('timetable', {
            'classroom': classroom,
            'day_of_week': point_in_time.weekday(),
            'start_time': {'$lte': current_time},
            'end_time': {'$gte': current_time},
        })

    def resolve_entry(self, classroom: str, point_in_time: datetime = None) -> Optional[Dict[str, Any]]:
        """
        Get the timetable entry that owns the room at the given time.

        Raises:
            ScheduleConflictError: several entries match under the 'reject' policy
        """
        entries = self.find_entries(classroom, point_in_time)
        if not entries:
            return None

        if len(entries) == 1 or self.overlap_policy == POLICY_FIRST:
            return entries[0]

        if self.overlap_policy == POLICY_REJECT:
            subjects = ', '.join(entry['subject'] for entry in entries)
            self.logger.warning(f"Ambiguous timetable for {classroom}: {subjects}")
            raise ScheduleConflictError(
                f"Ambiguous timetable for {classroom}: {len(entries)} lectures overlap at this time."
            )

        # min() keeps the first entry on ties, which is storage order
        return min(entries, key=lambda e: _minutes(e['end_time']) - _minutes(e['start_time']))

    def resolve(self, classroom: str, point_in_time: datetime = None) -> Optional[str]:
        """
        Get the subject currently scheduled in a room.

        Args:
            classroom (str): Room identifier
            point_in_time (datetime): Time to resolve; defaults to now

        Returns:
            Optional[str]: Subject label, or None when nothing is scheduled
        """
        entry = self.resolve_entry(classroom, point_in_time)
        return entry['subject'] if entry else None

    def get_room_schedule(self, classroom: str) -> List[Dict[str, Any]]:
        """Get the weekly schedule of a room ordered by day and start time."""
        entries = self.db.find('timetable', {'classroom': classroom})
        entries.sort(key=lambda e: (e['day_of_week'], e['start_time']))
        for entry in entries:
            entry['day_name'] = self.DAYS_OF_WEEK.get(entry['day_of_week'], 'Unknown')
        return entries
