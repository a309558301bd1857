"""Supported SDKs and the GitHub repositories they are developed in."""

from __future__ import annotations

SDK_REPOS: dict[str, str] = {
    "sentry-javascript": "getsentry/sentry-javascript",
    "sentry-python": "getsentry/sentry-python",
    "sentry-java": "getsentry/sentry-java",
    "sentry-dotnet": "getsentry/sentry-dotnet",
    "sentry-go": "getsentry/sentry-go",
    "sentry-ruby": "getsentry/sentry-ruby",
    "sentry-php": "getsentry/sentry-php",
    "sentry-react-native": "getsentry/sentry-react-native",
    "sentry-cocoa": "getsentry/sentry-cocoa",
    "sentry-android": "getsentry/sentry-android",
}

SDK_LABELS: dict[str, str] = {
    "sentry-javascript": "JavaScript SDK",
    "sentry-python": "Python SDK",
    "sentry-java": "Java SDK",
    "sentry-dotnet": ".NET SDK",
    "sentry-go": "Go SDK",
    "sentry-ruby": "Ruby SDK",
    "sentry-php": "PHP SDK",
    "sentry-react-native": "React Native SDK",
    "sentry-cocoa": "iOS/macOS SDK",
    "sentry-android": "Android SDK",
}


def get_repo_for_sdk(sdk: str) -> str | None:
    return SDK_REPOS.get(sdk)
