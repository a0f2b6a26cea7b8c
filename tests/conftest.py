from datetime import datetime
import threading

import pytest

from app import create_app
from zero_proxy.modules.attendance_manager import AttendanceManager
from zero_proxy.modules.database_manager import DatabaseManager
from zero_proxy.modules.device_binding import StaticFingerprintResolver
from zero_proxy.modules.notification_system import NotificationSystem
from zero_proxy.modules.schedule_resolver import ScheduleResolver
from zero_proxy.modules.session_manager import SessionManager
from zero_proxy.modules.student_manager import StudentManager

# A Monday morning
NOW = datetime(2026, 10, 19, 10, 30)

ADDRESSES = {
    '10.0.0.1': 'AA:BB',
    '10.0.0.2': 'CC:DD',
}


class FakeSocketIO:
    def __init__(self):
        self.emitted = []
        self._lock = threading.Lock()

    def emit(self, event, payload, to=None):
        with self._lock:
            self.emitted.append((event, payload, to))

    def events(self, name):
        with self._lock:
            return [(payload, to) for event, payload, to in self.emitted if event == name]


class FakeHandle:
    def __init__(self, on_code):
        self.on_code = on_code
        self.cancelled = False

    def cancel(self):
        first = not self.cancelled
        self.cancelled = True
        return first


class FakeRotator:
    """Rotator driven by the test instead of a clock."""

    def __init__(self, first_code='ZP-4821'):
        self.first_code = first_code
        self.handles = []

    def start(self, on_code):
        handle = FakeHandle(on_code)
        self.handles.append(handle)
        on_code(self.first_code)
        return handle

    def tick(self, code):
        handle = self.handles[-1]
        if not handle.cancelled:
            handle.on_code(code)


def add_entry(db, classroom='SY-CS-A', day_of_week=None, start='10:00', end='11:59',
              subject='Java Programming', teacher='Prof. Smith'):
    return db.insert('timetable', {
        'classroom': classroom,
        'day_of_week': NOW.weekday() if day_of_week is None else day_of_week,
        'start_time': start,
        'end_time': end,
        'subject': subject,
        'teacher_name': teacher,
    })


def add_student(db, roll_number, name=None, classroom='SY-CS-A', mac_address=None):
    return db.insert('students', {
        'roll_number': roll_number,
        'name': name or f"Student {roll_number}",
        'classroom': classroom,
        'mac_address': mac_address,
    })


@pytest.fixture
def db():
    manager = DatabaseManager(':memory:')
    yield manager
    manager.close_all_connections()


@pytest.fixture
def fake_socketio():
    return FakeSocketIO()


@pytest.fixture
def rotator():
    return FakeRotator()


@pytest.fixture
def session_manager(db, fake_socketio, rotator):
    manager = SessionManager(
        ScheduleResolver(db),
        StudentManager(db),
        AttendanceManager(db),
        rotator,
        NotificationSystem(fake_socketio)
    )
    yield manager
    manager.end_session()


@pytest.fixture
def resolver():
    return StaticFingerprintResolver(ADDRESSES)


@pytest.fixture
def app_bundle(resolver):
    app, socketio = create_app('testing', fingerprint_resolver=resolver)
    yield app, socketio
    services = app.extensions['zero_proxy']
    services['sessions'].end_session()
    services['db'].close_all_connections()


@pytest.fixture
def app(app_bundle):
    return app_bundle[0]


@pytest.fixture
def socketio(app_bundle):
    return app_bundle[1]


@pytest.fixture
def services(app):
    return app.extensions['zero_proxy']


@pytest.fixture
def client(app):
    return app.test_client()
