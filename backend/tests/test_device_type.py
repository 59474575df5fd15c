"""Tests for the user-agent device-type heuristic."""
import pytest

from app.domain.continuity.device_type import detect_device_type
from app.domain.continuity.models import DeviceType


@pytest.mark.parametrize(
    "user_agent,expected",
    [
        (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/120.0 Safari/537.36",
            DeviceType.DESKTOP,
        ),
        (
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_0) AppleWebKit/605.1.15 (KHTML, like Gecko) "
            "Version/17.0 Safari/605.1.15",
            DeviceType.DESKTOP,
        ),
        ("Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0", DeviceType.DESKTOP),
        (
            "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
            "(KHTML, like Gecko) Mobile/15E148",
            DeviceType.MOBILE,
        ),
        (
            "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/120.0 Mobile Safari/537.36",
            DeviceType.MOBILE,
        ),
        (
            "Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) "
            "Version/17.0 Mobile/15E148 Safari/604.1",
            DeviceType.TABLET,
        ),
        (
            "Mozilla/5.0 (Linux; Android 13; SM-X700) AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/120.0 Safari/537.36",
            DeviceType.TABLET,
        ),
        ("curl/8.4.0", DeviceType.UNKNOWN),
        ("", DeviceType.UNKNOWN),
        (None, DeviceType.UNKNOWN),
    ],
)
def test_detect_device_type(user_agent, expected):
    assert detect_device_type(user_agent) == expected


def test_mobile_client_hint():
    assert detect_device_type(None, "?1") == DeviceType.MOBILE
    assert detect_device_type("SomeBrowser/1.0", "?1") == DeviceType.MOBILE
    assert detect_device_type(None, "?0") == DeviceType.UNKNOWN


def test_tablet_wins_over_mobile_tokens():
    ua = "Mozilla/5.0 (Linux; Android 9; KFTRWI) AppleWebKit/537.36 (KHTML, like Gecko) Silk/120.0 Mobile Safari"
    assert detect_device_type(ua) == DeviceType.TABLET


def test_opera_mini_on_android_is_mobile():
    ua = "Opera/9.80 (Android; Opera Mini/36.2.2254/119.132; U; en) Presto/2.12.423 Version/12.16"
    assert detect_device_type(ua) == DeviceType.MOBILE
