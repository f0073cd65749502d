"""Tests for npm semver parsing."""

from dependency_cutoff.resolution import is_prerelease, npm_semver_key


def test_npm_semver_prerelease_sorting() -> None:
    versions = [
        "0.0.0-insiders.b4008fc",
        "0.0.0",
        "0.0.1",
        "0.0.1-alpha.1",
        "v1.2.3",
        "1.0.0",
        "1.0.0-beta",
        "1.0.0-beta.2",
        "1.0.0-beta.11",
        "not-a-version",
    ]

    keys = [(npm_semver_key(v), v) for v in versions]
    keys = [item for item in keys if item[0] is not None]
    keys.sort(key=lambda item: item[0])
    ordered = [v for _, v in keys]

    assert ordered == [
        "0.0.0-insiders.b4008fc",
        "0.0.0",
        "0.0.1-alpha.1",
        "0.0.1",
        "1.0.0-beta",
        "1.0.0-beta.2",
        "1.0.0-beta.11",
        "1.0.0",
        "v1.2.3",
    ]

    # Build metadata should not affect ordering vs base version.
    assert npm_semver_key("1.2.3+build.7") == npm_semver_key("1.2.3")


def test_prerelease_detection() -> None:
    assert is_prerelease("1.0.0-beta.1")
    assert is_prerelease("0.0.0-insiders.b4008fc")
    assert not is_prerelease("1.0.0")
    assert not is_prerelease("1.0.0+build.7")
