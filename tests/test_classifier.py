"""Tests for error classification."""

import pytest

from shipctl.core.exceptions import CommandError, DeploymentError
from shipctl.recovery.classifier import classify, classify_error, error_text, is_critical
from shipctl.recovery.models import ErrorType


@pytest.mark.parametrize(
    "message,expected",
    [
        ("Quota exceeded for project", ErrorType.QUOTA_EXCEEDED),
        ("HTTP 429: Too Many Requests", ErrorType.QUOTA_EXCEEDED),
        ("Rate limit exceeded, retry later", ErrorType.QUOTA_EXCEEDED),
        ("TypeScript error TS2304", ErrorType.BUILD_FAILURE),
        ("Compilation failed in src/index.ts", ErrorType.BUILD_FAILURE),
        ("Build failed with 3 errors", ErrorType.BUILD_FAILURE),
        ("tsc exited with code 2", ErrorType.BUILD_FAILURE),
        ("getaddrinfo ENOTFOUND firebase.googleapis.com", ErrorType.NETWORK_ISSUE),
        ("connect ECONNREFUSED 127.0.0.1:443", ErrorType.NETWORK_ISSUE),
        ("Network unreachable", ErrorType.NETWORK_ISSUE),
        ("Request timeout after 30s", ErrorType.NETWORK_ISSUE),
        ("firebase deploy timed out after 300s", ErrorType.NETWORK_ISSUE),
        ("Connection reset by peer", ErrorType.NETWORK_ISSUE),
        ("Unauthorized: token expired", ErrorType.AUTH_PROBLEM),
        ("Authentication failed", ErrorType.AUTH_PROBLEM),
        ("Permission denied on resource", ErrorType.AUTH_PROBLEM),
        ("Access denied", ErrorType.AUTH_PROBLEM),
        ("Function generateCV exceeded memory limit", ErrorType.FUNCTION_ERROR),
        ("Function cold start too slow", ErrorType.FUNCTION_ERROR),
        ("Function deployment failed", ErrorType.FUNCTION_ERROR),
        ("Something odd happened", ErrorType.UNKNOWN_ERROR),
        ("", ErrorType.UNKNOWN_ERROR),
    ],
)
def test_classify_table(message: str, expected: ErrorType) -> None:
    assert classify(message) == expected


def test_first_matching_category_wins() -> None:
    # Mentions both quota and network
    assert classify("quota exceeded after connection retry") == ErrorType.QUOTA_EXCEEDED
    # Mentions both build and auth
    assert classify("build failed: permission error writing lib/") == ErrorType.BUILD_FAILURE


def test_function_keyword_needs_a_qualifier() -> None:
    assert classify("function returned 404") == ErrorType.UNKNOWN_ERROR


def test_detail_only_contributes_typescript() -> None:
    assert classify("exit code 2", "error TS2322: typescript mismatch") == ErrorType.BUILD_FAILURE
    assert classify("exit code 2", "quota exceeded") == ErrorType.UNKNOWN_ERROR


def test_error_text_uses_message_and_stderr() -> None:
    error = CommandError("deploy failed", command=["firebase"], returncode=1, stderr="typescript boom")
    assert error_text(error) == ("deploy failed", "typescript boom")
    assert classify_error(error) == ErrorType.BUILD_FAILURE


def test_error_text_plain_exception() -> None:
    assert error_text(RuntimeError("ENOTFOUND host")) == ("ENOTFOUND host", "")
    assert classify_error(DeploymentError("Quota exceeded")) == ErrorType.QUOTA_EXCEEDED


@pytest.mark.parametrize(
    "message,critical",
    [
        ("Error: Permission denied for project", True),
        ("Authentication failed: invalid credentials", True),
        ("Project not found: demo", True),
        ("Invalid project selection", True),
        ("Billing account required for this API", True),
        ("Quota exceeded", False),
        ("ENOTFOUND", False),
    ],
)
def test_is_critical(message: str, critical: bool) -> None:
    assert is_critical(message) is critical
