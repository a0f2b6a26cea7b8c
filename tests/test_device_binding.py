import subprocess

import pytest

from conftest import add_student
from zero_proxy.exceptions import AccessDenied, IdentityError, ValidationError
from zero_proxy.modules import device_binding
from zero_proxy.modules.device_binding import (
    ArpFingerprintResolver,
    BindingResult,
    DeviceBindingVerifier,
    StaticFingerprintResolver,
)
from zero_proxy.modules.student_manager import StudentManager


@pytest.fixture
def students(db):
    return StudentManager(db)


@pytest.fixture
def verifier(students, resolver):
    return DeviceBindingVerifier(students, resolver)


def test_unknown_participant_is_created_bound(verifier, students):
    assert verifier.verify('101', 'AA:BB') is BindingResult.FIRST_BIND_DONE

    student = students.get_student('101')
    assert student.mac_address == 'AA:BB'
    assert student.name == 'Student 101'


def test_known_unbound_participant_gets_bound(db, verifier, students):
    add_student(db, '101', name='Rahul Verma')

    assert verifier.verify('101', 'AA:BB') is BindingResult.FIRST_BIND_DONE
    assert students.get_student('101').mac_address == 'AA:BB'


def test_matching_fingerprint_is_bound(verifier):
    verifier.verify('101', 'AA:BB')

    assert verifier.verify('101', 'AA:BB') is BindingResult.BOUND


def test_mismatch_never_mutates_binding(verifier, students):
    verifier.verify('101', 'AA:BB')

    assert verifier.verify('101', 'CC:DD') is BindingResult.MISMATCH
    assert students.get_student('101').mac_address == 'AA:BB'


def test_login_scenario(verifier, students):
    result, message = verifier.login('101', '10.0.0.1')
    assert result is BindingResult.FIRST_BIND_DONE
    assert message.startswith('First Login')
    assert 'Bound' in message

    with pytest.raises(AccessDenied) as excinfo:
        verifier.login('101', '10.0.0.2')
    assert excinfo.value.status_code == 403
    assert students.get_student('101').mac_address == 'AA:BB'

    result, _ = verifier.login('101', '10.0.0.1')
    assert result is BindingResult.BOUND


def test_unresolvable_identity(verifier, students):
    with pytest.raises(IdentityError) as excinfo:
        verifier.login('101', '192.168.1.99')

    assert excinfo.value.status_code == 400
    assert students.get_student('101') is None


def test_empty_roll_number(verifier):
    with pytest.raises(ValidationError):
        verifier.check_device('', '10.0.0.1')


def test_lost_bind_race_is_classified_against_stored_value(db, students):
    add_student(db, '101')

    class RacingStudents:
        def get_student(self, roll_number):
            return students.get_student(roll_number)

        def create_student(self, *args, **kwargs):
            return students.create_student(*args, **kwargs)

        def bind_device(self, roll_number, mac_address):
            # Another request binds first
            students.bind_device(roll_number, 'CC:DD')
            return students.bind_device(roll_number, mac_address)

    verifier = DeviceBindingVerifier(RacingStudents(), StaticFingerprintResolver())

    assert verifier.verify('101', 'AA:BB') is BindingResult.MISMATCH
    assert students.get_student('101').mac_address == 'CC:DD'


def test_reset_binding_allows_rebinding(verifier, students):
    verifier.verify('101', 'AA:BB')

    assert students.reset_device_binding('101') is True
    assert verifier.verify('101', 'CC:DD') is BindingResult.FIRST_BIND_DONE
    assert students.reset_device_binding('999') is False


WINDOWS_ARP = """
Interface: 192.168.137.1 --- 0x12
  Internet Address      Physical Address      Type
  192.168.137.25        3c-a0-67-11-22-33     dynamic
  192.168.137.2         aa-bb-cc-dd-ee-ff     dynamic
"""

LINUX_ARP = "? (10.42.0.7) at 5c:cf:7f:00:11:22 [ether] on wlan0\n"


def test_parse_arp_output_matches_exact_address():
    parse = ArpFingerprintResolver.parse_arp_output

    assert parse(WINDOWS_ARP, '192.168.137.2') == 'aa-bb-cc-dd-ee-ff'
    assert parse(WINDOWS_ARP, '192.168.137.25') == '3c-a0-67-11-22-33'
    assert parse(LINUX_ARP, '10.42.0.7') == '5c:cf:7f:00:11:22'
    assert parse(WINDOWS_ARP, '192.168.137.9') is None


def test_arp_resolver_loopback():
    resolver = ArpFingerprintResolver(loopback_fingerprint='00-11-22-33-44-55')

    for address in ('127.0.0.1', '::1', '::ffff:127.0.0.1'):
        assert resolver.resolve_device_fingerprint(address) == '00-11-22-33-44-55'
    assert resolver.resolve_device_fingerprint('') is None


def test_arp_resolver_strips_ipv4_mapped_prefix(monkeypatch):
    calls = []

    def fake_run(args, **kwargs):
        calls.append(args)
        return subprocess.CompletedProcess(args, 0, stdout=WINDOWS_ARP, stderr='')

    monkeypatch.setattr(device_binding.subprocess, 'run', fake_run)

    resolver = ArpFingerprintResolver()
    assert resolver.resolve_device_fingerprint('::ffff:192.168.137.2') == 'aa-bb-cc-dd-ee-ff'
    assert calls == [['arp', '-a']]


def test_arp_resolver_failure_returns_none(monkeypatch):
    def failing_run(args, **kwargs):
        raise FileNotFoundError('arp')

    monkeypatch.setattr(device_binding.subprocess, 'run', failing_run)

    assert ArpFingerprintResolver().resolve_device_fingerprint('192.168.137.2') is None
