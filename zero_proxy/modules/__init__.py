# Zero Proxy Attendance - Modules Package
"""
Core modules of the attendance system.
"""

# Module descriptions
MODULES = {
    'database_manager': 'Collection storage for students, timetable and attendance',
    'schedule_resolver': 'Timetable lookup by room and time',
    'student_manager': 'Participant directory and device binding reset',
    'device_binding': 'Device fingerprint resolution and first-use binding',
    'code_rotator': 'Rotating session code issuance',
    'attendance_manager': 'Idempotent attendance recording',
    'notification_system': 'Real-time event delivery',
    'qr_generator': 'QR rendering of session codes',
    'session_manager': 'Session state machine'
}


def get_module_info():
    """Get information about available modules"""
    return MODULES
