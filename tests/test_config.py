import pytest

from gitea_activity.config.config import build_base_url, normalize_base_path
from gitea_activity.errors import ConfigurationError


@pytest.mark.parametrize(
    "host, port, expected",
    [
        ("http://gitea.local", None, "http://gitea.local/api/v1"),
        ("http://gitea.local/", "3000", "http://gitea.local:3000/api/v1"),
        ("https://gitea.local:8443", "3000", "https://gitea.local:8443/api/v1"),
        ("https://example.com/git/", None, "https://example.com/git/api/v1"),
    ],
)
def test_build_base_url(host, port, expected):
    assert build_base_url(host, port) == expected


@pytest.mark.parametrize("host", [None, "", "gitea.local"])
def test_build_base_url_rejects_bad_host(host):
    with pytest.raises(ConfigurationError):
        build_base_url(host)


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, "/"),
        ("", "/"),
        ("/", "/"),
        ("stats", "/stats"),
        (" /stats/ ", "/stats"),
        ("/a/b//", "/a/b"),
    ],
)
def test_normalize_base_path(value, expected):
    assert normalize_base_path(value) == expected
