from datetime import datetime

import pytest

from conftest import add_entry, add_student
from zero_proxy.exceptions import StorageError
from zero_proxy.modules.database_manager import DEMO_CLASSROOM, DEMO_STUDENTS, DatabaseManager


def test_find_with_range_predicates(db):
    add_entry(db, start='09:00', end='09:59', subject='Maths')
    add_entry(db, start='10:00', end='10:59', subject='Java Programming')

    rows = db.find('timetable', {
        'classroom': 'SY-CS-A',
        'start_time': {'$lte': '10:15'},
        'end_time': {'$gte': '10:15'},
    })

    assert [r['subject'] for r in rows] == ['Java Programming']


def test_find_returns_storage_order(db):
    for roll in ('103', '101', '102'):
        add_student(db, roll)

    assert [r['roll_number'] for r in db.find('students')] == ['103', '101', '102']
    assert db.find_one('students')['roll_number'] == '103'


def test_none_filter_matches_null(db):
    add_student(db, '101', mac_address='AA:BB')
    add_student(db, '102')

    assert [r['roll_number'] for r in db.find('students', {'mac_address': None})] == ['102']


def test_update_accepts_set_patch(db):
    add_student(db, '101')

    assert db.update('students', {'roll_number': '101'}, {'$set': {'mac_address': 'AA:BB'}}) == 1
    assert db.find_one('students', {'roll_number': '101'})['mac_address'] == 'AA:BB'


def test_remove_and_count(db):
    add_student(db, '101')
    add_student(db, '102', classroom='SY-CS-B')

    assert db.count('students') == 2
    assert db.remove('students', {'classroom': 'SY-CS-B'}) == 1
    assert db.count('students') == 1


def test_insert_if_absent_keeps_single_record(db):
    doc = {'roll_number': '101', 'subject': 'Java Programming', 'marked_at': '2026-10-19T10:30:00'}

    assert db.insert_if_absent('attendance', doc) is True
    assert db.insert_if_absent('attendance', doc) is False
    assert db.count('attendance', {'roll_number': '101'}) == 1


def test_unknown_fields_are_rejected(db):
    with pytest.raises(ValueError):
        db.find('students', {'password': 'x'})

    with pytest.raises(ValueError):
        db.find('users')

    with pytest.raises(ValueError):
        db.find('timetable', {'start_time': {'$regex': '1.*'}})


def test_constraint_violation_surfaces_as_storage_error(db):
    add_student(db, '101')

    with pytest.raises(StorageError):
        add_student(db, '101')


def test_file_database_creates_directory(tmp_path):
    path = tmp_path / 'nested' / 'attendance.db'
    manager = DatabaseManager(str(path))
    add_student(manager, '101')
    manager.close_all_connections()

    reopened = DatabaseManager(str(path))
    assert reopened.find_one('students', {'roll_number': '101'}) is not None
    reopened.close_all_connections()


def test_seed_demo_data(db):
    add_student(db, '999', classroom='OTHER')
    now = datetime(2026, 10, 19, 23, 10)

    db.seed_demo_data(now)

    assert db.count('students', {'classroom': DEMO_CLASSROOM}) == len(DEMO_STUDENTS)
    assert db.find_one('students', {'roll_number': '999'}) is None
    entry = db.find_one('timetable')
    assert entry['day_of_week'] == now.weekday()
    assert (entry['start_time'], entry['end_time']) == ('23:00', '23:59')
