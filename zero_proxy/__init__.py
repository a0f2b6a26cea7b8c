# Zero Proxy Attendance - App Package
"""
Classroom attendance with rotating session codes and device binding.
"""

__version__ = "1.0.0"
__description__ = "Proxy-resistant classroom attendance using rotating codes and device binding"

# Import core components for easy access
from .modules.database_manager import DatabaseManager
from .modules.schedule_resolver import ScheduleResolver
from .modules.student_manager import StudentManager
from .modules.device_binding import DeviceBindingVerifier, BindingResult
from .modules.code_rotator import CodeRotator
from .modules.attendance_manager import AttendanceManager, RecordResult
from .modules.notification_system import NotificationSystem
from .modules.qr_generator import QRGenerator
from .modules.session_manager import SessionManager, SessionState

__all__ = [
    'DatabaseManager',
    'ScheduleResolver',
    'StudentManager',
    'DeviceBindingVerifier',
    'BindingResult',
    'CodeRotator',
    'AttendanceManager',
    'RecordResult',
    'NotificationSystem',
    'QRGenerator',
    'SessionManager',
    'SessionState'
]
