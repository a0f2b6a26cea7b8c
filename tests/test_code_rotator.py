import re
import threading
import time

import pytest

from zero_proxy.modules.code_rotator import CodeRotator, generate_code


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


def test_generate_code_format():
    for _ in range(200):
        code = generate_code()
        assert re.fullmatch(r'ZP-\d{4}', code)
        assert 1000 <= int(code[3:]) <= 9999

    assert generate_code('QX').startswith('QX-')


def test_first_code_is_emitted_before_start_returns():
    codes = []
    handle = CodeRotator(period=3600).start(codes.append)
    try:
        assert len(codes) == 1
        assert handle.last_code == codes[0]
    finally:
        handle.cancel()


def test_rotation_emits_periodically_until_cancelled():
    codes = []
    lock = threading.Lock()

    def on_code(code):
        with lock:
            codes.append(code)

    handle = CodeRotator(period=0.02).start(on_code)
    assert wait_for(lambda: len(codes) >= 3)

    assert handle.cancel() is True
    handle.join(1.0)
    emitted = len(codes)
    time.sleep(0.1)

    assert len(codes) == emitted
    assert handle.cancelled


def test_cancel_is_idempotent():
    handle = CodeRotator(period=3600).start(lambda code: None)

    assert handle.cancel() is True
    assert handle.cancel() is False


def test_cancel_waits_for_in_flight_tick():
    codes = []
    entered = threading.Event()
    release = threading.Event()

    def on_code(code):
        codes.append(code)
        if len(codes) == 2:
            entered.set()
            release.wait(2.0)

    handle = CodeRotator(period=0.01).start(on_code)
    assert entered.wait(2.0)

    canceller = threading.Thread(target=handle.cancel)
    canceller.start()
    canceller.join(0.1)
    assert canceller.is_alive()

    release.set()
    canceller.join(2.0)
    time.sleep(0.1)

    assert len(codes) == 2


def test_cancel_from_inside_callback():
    codes = []
    holder = {}

    def on_code(code):
        codes.append(code)
        if len(codes) == 2:
            holder['handle'].cancel()

    holder['handle'] = CodeRotator(period=0.01).start(on_code)
    assert wait_for(lambda: holder['handle'].cancelled)
    time.sleep(0.1)

    assert len(codes) == 2


def test_failing_callback_does_not_stop_rotation():
    calls = []

    def on_code(code):
        calls.append(code)
        if len(calls) == 2:
            raise RuntimeError('socket gone')

    handle = CodeRotator(period=0.01).start(on_code)
    try:
        assert wait_for(lambda: len(calls) >= 4)
    finally:
        handle.cancel()


def test_period_must_be_positive():
    with pytest.raises(ValueError):
        CodeRotator(period=0)
