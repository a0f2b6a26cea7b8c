"""
Zero Proxy Attendance System - Main Application

This module serves as the main entry point of the attendance server.
It wires the core modules together and exposes them over HTTP for
participants and over Socket.IO for the presenter dashboard.

Features:
- Participant login with device binding
- Code scanning against the active session
- Presenter session control over WebSocket
- Rotating code QR image for presenter displays
- Administrative device binding reset
"""

from flask import Flask, current_app, jsonify, request, send_file
from flask_socketio import SocketIO
from werkzeug.security import check_password_hash
from functools import wraps
import io
import logging

from config import init_config
from zero_proxy.exceptions import AccessDenied, AttendanceError, SessionError, ValidationError
from zero_proxy.modules.database_manager import DatabaseManager
from zero_proxy.modules.schedule_resolver import ScheduleResolver
from zero_proxy.modules.student_manager import StudentManager
from zero_proxy.modules.device_binding import ArpFingerprintResolver, DeviceBindingVerifier
from zero_proxy.modules.code_rotator import CodeRotator
from zero_proxy.modules.attendance_manager import AttendanceManager
from zero_proxy.modules.notification_system import NotificationSystem
from zero_proxy.modules.qr_generator import QRGenerator
from zero_proxy.modules.session_manager import SessionManager

logger = logging.getLogger(__name__)


def admin_required(f):
    """Decorator to require the admin token for protected routes"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token_hash = current_app.config.get('ADMIN_TOKEN_HASH')
        token = request.headers.get('X-Admin-Token', '')
        if not token_hash or not token or not check_password_hash(token_hash, token):
            logger.warning(f"Rejected admin request from {request.remote_addr}")
            raise AccessDenied('Admin privileges required.')
        return f(*args, **kwargs)
    return decorated_function


def _json_field(name):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object.')
    value = data.get(name)
    if value is None or str(value).strip() == '':
        raise ValidationError(f"Missing field: {name}")
    return str(value).strip()


def create_app(config_name=None, config_overrides=None, fingerprint_resolver=None):
    """
    Build the Flask application and its Socket.IO server.

    Args:
        config_name (str): Key of the configuration class, defaults to FLASK_ENV
        config_overrides (dict): Values applied on top of the configuration class
        fingerprint_resolver: Device fingerprint resolver, defaults to the ARP table

    Returns:
        Tuple[Flask, SocketIO]
    """
    app = Flask(__name__)
    init_config(app, config_name, config_overrides)

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, str(app.config['LOG_LEVEL']).upper(), logging.INFO),
        format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
    )

    socketio = SocketIO(
        app,
        cors_allowed_origins=app.config['CORS_ALLOWED_ORIGINS'],
        async_mode='threading'
    )

    # Initialize system components
    db_manager = DatabaseManager(app.config['DATABASE_PATH'])
    if app.config['SEED_DEMO_DATA']:
        db_manager.seed_demo_data()

    if fingerprint_resolver is None:
        fingerprint_resolver = ArpFingerprintResolver(
            loopback_fingerprint=app.config['LOOPBACK_FINGERPRINT'],
            timeout=app.config['ARP_TIMEOUT']
        )

    schedule_resolver = ScheduleResolver(db_manager, app.config['SCHEDULE_OVERLAP_POLICY'])
    student_manager = StudentManager(db_manager)
    attendance_manager = AttendanceManager(db_manager)
    device_verifier = DeviceBindingVerifier(student_manager, fingerprint_resolver)
    notification_system = NotificationSystem(socketio)
    qr_generator = QRGenerator()
    session_manager = SessionManager(
        schedule_resolver,
        student_manager,
        attendance_manager,
        CodeRotator(app.config['CODE_ROTATION_SECONDS'], app.config['CODE_PREFIX']),
        notification_system
    )

    app.extensions['zero_proxy'] = {
        'db': db_manager,
        'schedule': schedule_resolver,
        'students': student_manager,
        'attendance': attendance_manager,
        'devices': device_verifier,
        'sessions': session_manager,
    }

    @app.errorhandler(AttendanceError)
    def handle_attendance_error(error):
        if isinstance(error, AccessDenied):
            logger.warning(f"Access denied for {request.remote_addr}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    # ------------------------------------------------------------------
    # Participant API

    @app.route('/ping')
    def ping():
        """Health check for troubleshooting from phones"""
        return 'OK', 200, {'Content-Type': 'text/plain'}

    @app.route('/api/login', methods=['POST'])
    def login():
        """Participant login and device binding"""
        roll_number = _json_field('rollNumber')
        _, message = device_verifier.login(roll_number, request.remote_addr)
        return jsonify({'success': True, 'message': message})

    @app.route('/api/scan', methods=['POST'])
    def scan():
        """Mark attendance with the scanned session code"""
        roll_number = _json_field('rollNumber')
        code = _json_field('qrCode')

        device_verifier.check_device(roll_number, request.remote_addr)
        _, subject = session_manager.scan(roll_number, code)

        return jsonify({'success': True, 'message': f"Attendance marked for {subject}"})

    @app.route('/api/session')
    def session_status():
        return jsonify(session_manager.get_status())

    @app.route('/api/session/qr.png')
    @admin_required
    def session_qr():
        """QR image of the current session code, for presenter displays only"""
        code = session_manager.current_code
        if not code:
            raise SessionError("No active lecture session!", status_code=404)
        image = qr_generator.generate_code_image(code)
        response = send_file(io.BytesIO(image), mimetype='image/png')
        response.headers['Cache-Control'] = 'no-store'
        return response

    @app.route('/api/rooms/<classroom>/schedule')
    def room_schedule(classroom):
        return jsonify({'classroom': classroom, 'schedule': schedule_resolver.get_room_schedule(classroom)})

    # ------------------------------------------------------------------
    # Admin API

    @app.route('/api/admin/reset-device', methods=['POST'])
    @admin_required
    def reset_device():
        """Clear a participant's device binding after a legitimate device change"""
        roll_number = _json_field('rollNumber')
        if not student_manager.reset_device_binding(roll_number):
            return jsonify({'success': False, 'message': f"Unknown roll number {roll_number}"}), 404
        return jsonify({'success': True, 'message': f"Device binding cleared for {roll_number}"})

    @app.route('/api/admin/attendance/<subject>')
    @admin_required
    def subject_attendance(subject):
        records = attendance_manager.get_attendance_for_subject(subject)
        return jsonify({'subject': subject, 'records': records})

    # ------------------------------------------------------------------
    # Presenter WebSocket events

    @socketio.on('connect')
    def on_connect(auth=None):
        logger.info(f"Dashboard connected via WebSocket: {request.sid}")

    @socketio.on('startSession')
    def on_start_session(classroom):
        logger.info(f"Classroom '{classroom}' session requested by {request.sid}")
        try:
            session_manager.start_session(str(classroom or '').strip(), request.sid)
        except AttendanceError as e:
            notification_system.send_session_error(request.sid, e.message)

    @socketio.on('markManual')
    def on_mark_manual(roll_number):
        try:
            if not roll_number:
                raise ValidationError('Roll number is required.')
            session_manager.mark_manual(str(roll_number), request.sid)
        except AttendanceError as e:
            notification_system.send_session_error(request.sid, e.message)

    @socketio.on('endSession')
    def on_end_session(*args):
        session_manager.end_session(request.sid)

    @socketio.on('disconnect')
    def on_disconnect(*args):
        if session_manager.end_session(request.sid):
            logger.info('Session closed')

    return app, socketio


def run_server(app, socketio):
    """Serve the app; the Werkzeug development server is only allowed in debug mode"""
    logger.info(f"Zero Proxy is live on {app.config['HOST']}:{app.config['PORT']}")
    socketio.run(
        app,
        host=app.config['HOST'],
        port=app.config['PORT'],
        debug=app.config['DEBUG'],
        allow_unsafe_werkzeug=app.config['DEBUG']
    )


if __name__ == '__main__':
    app, socketio = create_app()

    # Run the application
    run_server(app, socketio)
