# tests/test_utils.py
import pytest
from catalog.utils import retry


def test_retry_recovers():
    calls = []

    @retry(ConnectionError, tries=3, delay=0)
    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise ConnectionError("down")
        return "up"

    assert flaky() == "up"
    assert len(calls) == 3


def test_retry_gives_up():
    @retry(ConnectionError, tries=2, delay=0)
    def dead():
        raise ConnectionError("down")

    with pytest.raises(ConnectionError):
        dead()
