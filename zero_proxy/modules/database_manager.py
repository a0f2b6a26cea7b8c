"""
Database Manager Module - Zero Proxy Attendance System

This module is the persistence collaborator of the attendance system.
It exposes a small document-style CRUD interface (find_one, find, insert,
update, remove) over three SQLite-backed collections: students, timetable
and attendance. Filters are plain dictionaries with exact-match and range
predicates, e.g. ``{'classroom': 'SY-CS-A', 'start_time': {'$lte': '10:15'}}``.

Features:
- Thread-local SQLite connection management
- Idempotent schema creation
- Document-style filters translated to parameterised SQL
- Atomic insert-if-absent keyed by a unique constraint
- Demo data seeding for local runs
"""

import sqlite3
import logging
import os
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from zero_proxy.exceptions import StorageError

DEMO_CLASSROOM = 'SY-CS-A'

DEMO_STUDENTS = [
    ('101', 'Rahul Verma'), ('102', 'Aman Shaikh'), ('103', 'Priya Raj'),
    ('104', 'Rohan Das'), ('105', 'Simran Kaur'), ('106', 'Arjun Singh'),
    ('107', 'Neha Gupta'), ('108', 'Karan Patel'), ('109', 'Pooja Sharma'),
    ('110', 'Vikram Malhotra'), ('111', 'Sneha Reddy'), ('112', 'Aditya Joshi'),
    ('113', 'Riya Mehta'), ('114', 'Sachin Tendulkar'), ('115', 'Ananya Pandey'),
    ('116', 'Rohit Sharma'), ('117', 'Virat Kohli'), ('118', 'MS Dhoni'),
    ('119', 'Hardik Pandya'), ('120', 'Jasprit Bumrah'),
]


class DatabaseManager:
    """
    SQLite-backed collection service for the attendance system.
    Handles connection management, schema creation and the CRUD interface
    consumed by the schedule resolver, device binding verifier, student
    manager and attendance recorder.
    """

    # Columns each collection accepts in documents and filters
    COLLECTIONS = {
        'students': ('id', 'roll_number', 'name', 'classroom', 'mac_address', 'created_at'),
        'timetable': ('id', 'classroom', 'day_of_week', 'start_time', 'end_time',
                      'subject', 'teacher_name'),
        'attendance': ('id', 'roll_number', 'subject', 'marked_at', 'method'),
    }

    OPERATORS = {
        '$lt': '<',
        '$lte': '<=',
        '$gt': '>',
        '$gte': '>=',
        '$ne': '!=',
    }

    def __init__(self, db_path):
        """
        Initialize the database manager with the specified database path.

        Args:
            db_path (str): Path to the SQLite database file, or ':memory:'
        """
        self.db_path = str(db_path)
        self.logger = logging.getLogger(__name__)
        self._local = threading.local()

        # An in-memory database only exists inside one connection, so every
        # thread has to share it.
        self._shared = self.db_path == ':memory:'
        self._shared_lock = threading.RLock()
        self._shared_connection = None

        if not self._shared:
            directory = os.path.dirname(self.db_path)
            if directory:
                os.makedirs(directory, exist_ok=True)

        self.initialize_database()

    def _connect(self):
        connection = sqlite3.connect(
            self.db_path,
            check_same_thread=False,
            timeout=30.0
        )
        connection.row_factory = sqlite3.Row
        if not self._shared:
            connection.execute("PRAGMA journal_mode = WAL")
        return connection

    @contextmanager
    def get_connection(self):
        """
        Context manager for database connections.
        Provides thread-local connections for file databases and a single
        lock-guarded connection for in-memory databases.

        Yields:
            sqlite3.Connection: Database connection object
        """
        if self._shared:
            with self._shared_lock:
                if self._shared_connection is None:
                    self._shared_connection = self._connect()
                connection = self._shared_connection
                try:
                    yield connection
                except sqlite3.Error as e:
                    connection.rollback()
                    self.logger.error(f"Database operation failed: {str(e)}")
                    raise StorageError() from e
            return

        if not hasattr(self._local, 'connection'):
            self._local.connection = self._connect()

        try:
            yield self._local.connection
        except sqlite3.Error as e:
            self._local.connection.rollback()
            self.logger.error(f"Database operation failed: {str(e)}")
            raise StorageError() from e

    def initialize_database(self):
        """
        Create all collections. Safe to call multiple times.
        """
        with self.transaction() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS students (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    roll_number VARCHAR(20) UNIQUE NOT NULL,
                    name VARCHAR(100) NOT NULL,
                    classroom VARCHAR(50),
                    mac_address VARCHAR(64),
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS timetable (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    classroom VARCHAR(50) NOT NULL,
                    day_of_week INTEGER NOT NULL,
                    start_time VARCHAR(5) NOT NULL,
                    end_time VARCHAR(5) NOT NULL,
                    subject VARCHAR(100) NOT NULL,
                    teacher_name VARCHAR(100)
                )
            """)

            # The unique key makes insert_if_absent atomic per (roll, subject)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS attendance (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    roll_number VARCHAR(20) NOT NULL,
                    subject VARCHAR(100) NOT NULL,
                    marked_at TIMESTAMP NOT NULL,
                    method VARCHAR(10) DEFAULT 'scan',
                    UNIQUE(roll_number, subject)
                )
            """)

            cursor.execute("CREATE INDEX IF NOT EXISTS idx_students_classroom ON students(classroom)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_timetable_room_day ON timetable(classroom, day_of_week)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_attendance_subject ON attendance(subject)")

        self.logger.info("Database initialized successfully")

    @contextmanager
    def transaction(self):
        """
        Context manager for database transactions with automatic rollback on error.

        Yields:
            sqlite3.Connection: Database connection within transaction
        """
        with self.get_connection() as conn:
            try:
                yield conn
                conn.commit()
            except Exception as e:
                conn.rollback()
                self.logger.error(f"Transaction rolled back: {str(e)}")
                raise

    def execute_query(self, query, params=None, fetch_all=True):
        """
        Execute a SELECT query and return results.

        Args:
            query (str): SQL query string
            params (tuple): Query parameters
            fetch_all (bool): Whether to fetch all results or just one

        Returns:
            list or dict: Query results
        """
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params or ())

            if fetch_all:
                return [dict(row) for row in cursor.fetchall()]
            result = cursor.fetchone()
            return dict(result) if result else None

    def execute_update(self, query, params=None):
        """
        Execute an INSERT, UPDATE, or DELETE query.

        Returns:
            int: Last inserted row ID for INSERT statements, otherwise the
            number of affected rows
        """
        with self.transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params or ())

            if query.strip().upper().startswith('INSERT'):
                return cursor.lastrowid if cursor.rowcount else None
            return cursor.rowcount

    # ------------------------------------------------------------------
    # Collection interface

    def _columns(self, collection: str) -> Tuple[str, ...]:
        try:
            return self.COLLECTIONS[collection]
        except KeyError:
            raise ValueError(f"Unknown collection: {collection}")

    def _check_fields(self, collection: str, fields: Iterable[str]) -> None:
        columns = self._columns(collection)
        for field in fields:
            if field not in columns:
                raise ValueError(f"Unknown field '{field}' for collection {collection}")

    def _build_where(self, collection: str,
                     filter_doc: Optional[Dict[str, Any]]) -> Tuple[str, List[Any]]:
        """Translate a document filter into a WHERE clause and its parameters."""
        if not filter_doc:
            return '', []

        self._check_fields(collection, filter_doc.keys())
        clauses = []
        params = []

        for field, condition in filter_doc.items():
            if isinstance(condition, dict):
                for op, value in condition.items():
                    if op not in self.OPERATORS:
                        raise ValueError(f"Unsupported filter operator: {op}")
                    clauses.append(f"{field} {self.OPERATORS[op]} ?")
                    params.append(value)
            elif condition is None:
                clauses.append(f"{field} IS NULL")
            else:
                clauses.append(f"{field} = ?")
                params.append(condition)

        return ' WHERE ' + ' AND '.join(clauses), params

    def find(self, collection: str, filter_doc: Dict[str, Any] = None) -> List[Dict[str, Any]]:
        """Return all documents matching the filter, in storage order."""
        self._columns(collection)
        where, params = self._build_where(collection, filter_doc)
        return self.execute_query(
            f"SELECT * FROM {collection}{where} ORDER BY id",
            tuple(params)
        )

    def find_one(self, collection: str, filter_doc: Dict[str, Any] = None) -> Optional[Dict[str, Any]]:
        """Return the first document matching the filter, or None."""
        self._columns(collection)
        where, params = self._build_where(collection, filter_doc)
        return self.execute_query(
            f"SELECT * FROM {collection}{where} ORDER BY id LIMIT 1",
            tuple(params),
            fetch_all=False
        )

    def count(self, collection: str, filter_doc: Dict[str, Any] = None) -> int:
        self._columns(collection)
        where, params = self._build_where(collection, filter_doc)
        result = self.execute_query(
            f"SELECT COUNT(*) AS total FROM {collection}{where}",
            tuple(params),
            fetch_all=False
        )
        return result['total'] if result else 0

    def _insert_statement(self, collection: str, doc: Dict[str, Any],
                          verb: str = 'INSERT') -> Tuple[str, List[Any]]:
        self._check_fields(collection, doc.keys())
        fields = list(doc.keys())
        placeholders = ', '.join('?' for _ in fields)
        query = f"{verb} INTO {collection} ({', '.join(fields)}) VALUES ({placeholders})"
        return query, [doc[f] for f in fields]

    def insert(self, collection: str,
               docs: Union[Dict[str, Any], List[Dict[str, Any]]]) -> Union[Dict[str, Any], List[Dict[str, Any]]]:
        """
        Insert one document or a list of documents.

        Returns:
            The inserted document(s) including their generated ``id``
        """
        single = isinstance(docs, dict)
        batch = [docs] if single else list(docs)
        inserted = []

        with self.transaction() as conn:
            cursor = conn.cursor()
            for doc in batch:
                query, params = self._insert_statement(collection, doc)
                cursor.execute(query, params)
                inserted.append(dict(doc, id=cursor.lastrowid))

        return inserted[0] if single else inserted

    def insert_if_absent(self, collection: str, doc: Dict[str, Any]) -> bool:
        """
        Insert a document unless one with the same unique key already exists.
        The check and the insert are a single statement.

        Returns:
            bool: True when the document was created
        """
        query, params = self._insert_statement(collection, doc, verb='INSERT OR IGNORE')
        with self.transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.rowcount == 1

    def update(self, collection: str, filter_doc: Dict[str, Any],
               patch: Dict[str, Any]) -> int:
        """
        Update all documents matching the filter.

        Args:
            patch: Field values to set; ``{'$set': {...}}`` is accepted too

        Returns:
            int: Number of updated documents
        """
        values = patch.get('$set', patch)
        if not values:
            return 0
        self._check_fields(collection, values.keys())
        if 'id' in values:
            raise ValueError("Document id cannot be updated")

        assignments = ', '.join(f"{field} = ?" for field in values)
        where, params = self._build_where(collection, filter_doc)
        return self.execute_update(
            f"UPDATE {collection} SET {assignments}{where}",
            tuple(list(values.values()) + params)
        )

    def remove(self, collection: str, filter_doc: Dict[str, Any] = None) -> int:
        """Remove all documents matching the filter. Returns the removed count."""
        self._columns(collection)
        where, params = self._build_where(collection, filter_doc)
        return self.execute_update(f"DELETE FROM {collection}{where}", tuple(params))

    # ------------------------------------------------------------------

    def seed_demo_data(self, now: datetime = None):
        """
        Replace all collections with a demo classroom and a timetable entry
        covering the current hour and the next one. The entry is stored on
        today's weekday() (0 = Monday), the numbering ScheduleResolver matches.
        """
        now = now or datetime.now()
        end_hour = min(now.hour + 1, 23)

        self.remove('timetable')
        self.remove('students')
        self.remove('attendance')

        self.insert('students', [
            {'roll_number': roll, 'name': name, 'classroom': DEMO_CLASSROOM, 'mac_address': None}
            for roll, name in DEMO_STUDENTS
        ])
        self.insert('timetable', {
            'classroom': DEMO_CLASSROOM,
            'day_of_week': now.weekday(),
            'start_time': f"{now.hour:02d}:00",
            'end_time': f"{end_hour:02d}:59",
            'subject': 'Java Programming',
            'teacher_name': 'Prof. Smith',
        })

        self.logger.info(f"Demo data seeded: {len(DEMO_STUDENTS)} students in {DEMO_CLASSROOM}")

    def close_all_connections(self):
        """Close database connections for cleanup."""
        if self._shared:
            with self._shared_lock:
                if self._shared_connection is not None:
                    self._shared_connection.close()
                    self._shared_connection = None
        elif hasattr(self._local, 'connection'):
            self._local.connection.close()
            del self._local.connection
