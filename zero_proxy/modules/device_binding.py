"""
Device Binding Module - Zero Proxy Attendance System

This module implements the anti-proxy control of the attendance system.
A participant's roll number is bound to the first device fingerprint it
logs in from; later requests from any other device are denied.

Fingerprints come from a resolver capability that maps the caller's
network identity (its IP address) to a device fingerprint. The default
resolver reads the MAC address from the operating system's ARP table.
"""

from enum import Enum
from typing import Dict, Optional, Tuple
import logging
import re
import subprocess

from zero_proxy.exceptions import AccessDenied, IdentityError, ValidationError

MAC_PATTERN = re.compile(r'([0-9a-fA-F]{2}[:-]){5}[0-9a-fA-F]{2}')

LOOPBACK_ADDRESSES = ('127.0.0.1', '::1', '::ffff:127.0.0.1')

MESSAGES = {
    'first_bind': 'First Login: MAC Bound Successfully.',
    'bound': 'Login successful. Proceed to scan.',
    'mismatch': 'ACCESS DENIED: MAC mismatch! Registered device only.',
    'no_identity': 'Could not identify device MAC. Ensure you are on the college Wi-Fi network.',
    'missing_roll': 'Roll number is required.',
}


class BindingResult(Enum):
    BOUND = 'bound'
    MISMATCH = 'mismatch'
    FIRST_BIND_DONE = 'first_bind_done'


class StaticFingerprintResolver:
    """Resolves fingerprints from a fixed address -> fingerprint mapping."""

    def __init__(self, mapping: Dict[str, str] = None):
        self.mapping = dict(mapping or {})

    def resolve_device_fingerprint(self, network_identity: str) -> Optional[str]:
        return self.mapping.get(network_identity)


class ArpFingerprintResolver:
    """
    Resolves a client's MAC address from the local ARP table.

    Only works for clients on the same link as the server, which is the
    deployment this system targets (a classroom hotspot or Wi-Fi network).
    """

    def __init__(self, loopback_fingerprint: str = '00-11-22-33-44-55', timeout: float = 5.0):
        self.loopback_fingerprint = loopback_fingerprint
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

    def resolve_device_fingerprint(self, network_identity: str) -> Optional[str]:
        if not network_identity:
            return None

        if network_identity in LOOPBACK_ADDRESSES:
            return self.loopback_fingerprint

        address = network_identity
        if address.startswith('::ffff:'):
            address = address[len('::ffff:'):]

        try:
            output = subprocess.run(
                ['arp', '-a'],
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=True
            ).stdout
        except (OSError, subprocess.SubprocessError) as e:
            self.logger.error(f"ARP lookup failed for {address}: {str(e)}")
            return None

        return self.parse_arp_output(output, address)

    @staticmethod
    def parse_arp_output(output: str, address: str) -> Optional[str]:
        """Find the MAC address on the ARP table line for an exact IP address."""
        address_pattern = re.compile(r'(?<![\d.])' + re.escape(address) + r'(?![\d.])')
        for line in output.splitlines():
            if address_pattern.search(line):
                match = MAC_PATTERN.search(line)
                if match:
                    return match.group(0)
        return None


class DeviceBindingVerifier:
    """
    Enforces first-use binding between participants and device fingerprints.
    """

    def __init__(self, student_manager, fingerprint_resolver):
        """
        Args:
            student_manager: Student manager instance
            fingerprint_resolver: Object exposing resolve_device_fingerprint()
        """
        self.students = student_manager
        self.resolver = fingerprint_resolver
        self.logger = logging.getLogger(__name__)

    def verify(self, roll_number: str, fingerprint: str) -> BindingResult:
        """
        Check a candidate fingerprint against the participant's binding,
        binding it when the participant has none.

        Args:
            roll_number (str): Participant roll number
            fingerprint (str): Candidate device fingerprint

        Returns:
            BindingResult: BOUND, MISMATCH or FIRST_BIND_DONE
        """
        student = self.students.get_student(roll_number)

        if student is None:
            if self.students.create_student(roll_number, mac_address=fingerprint):
                self.logger.info(f"First login for {roll_number}: device {fingerprint} bound")
                return BindingResult.FIRST_BIND_DONE
            # Enrolled concurrently; classify against what is stored now
            student = self.students.get_student(roll_number)

        elif not student.mac_address:
            if self.students.bind_device(roll_number, fingerprint):
                self.logger.info(f"Device {fingerprint} bound to {roll_number}")
                return BindingResult.FIRST_BIND_DONE
            student = self.students.get_student(roll_number)

        if student.mac_address != fingerprint:
            self.logger.warning(
                f"PROXY ATTEMPT: Roll {roll_number} from MAC {fingerprint}, "
                f"expected {student.mac_address}"
            )
            return BindingResult.MISMATCH

        return BindingResult.BOUND

    def resolve_fingerprint(self, network_identity: str) -> str:
        """
        Raises:
            IdentityError: the network identity maps to no fingerprint
        """
        fingerprint = self.resolver.resolve_device_fingerprint(network_identity)
        if not fingerprint:
            self.logger.warning(f"No device fingerprint for {network_identity}")
            raise IdentityError(MESSAGES['no_identity'])
        return fingerprint

    def check_device(self, roll_number: str, network_identity: str) -> BindingResult:
        """
        Resolve the caller's fingerprint and verify it.

        Raises:
            ValidationError: empty roll number
            IdentityError: fingerprint cannot be resolved
            AccessDenied: fingerprint differs from the bound one
        """
        if not roll_number:
            raise ValidationError(MESSAGES['missing_roll'])

        fingerprint = self.resolve_fingerprint(network_identity)
        result = self.verify(roll_number, fingerprint)
        if result is BindingResult.MISMATCH:
            raise AccessDenied(MESSAGES['mismatch'])
        return result

    def login(self, roll_number: str, network_identity: str) -> Tuple[BindingResult, str]:
        """
        Participant login.

        Returns:
            Tuple[BindingResult, str]: Binding outcome and the message shown to the participant
        """
        result = self.check_device(roll_number, network_identity)
        if result is BindingResult.FIRST_BIND_DONE:
            return result, MESSAGES['first_bind']
        return result, MESSAGES['bound']
