"""
Tests for error classification.

Covers the allow-list classifier used by the retry executor, the
helpers that extract kinds and codes from errors, and the database
classifier built on top of it.
"""

from __future__ import annotations

import errno

import pytest
from django.db import IntegrityError, InterfaceError, OperationalError

from core.database import DATABASE_CLASSIFIER
from core.exceptions import TransientDependencyError
from core.retry import (
    ErrorClassification,
    ErrorClassifier,
    errno_name,
    error_code,
    error_kinds,
)

RETRYABLE = ErrorClassification.RETRYABLE
FATAL = ErrorClassification.FATAL


class DriverError(Exception):
    """Error shaped like a database driver error: name plus code."""

    def __init__(self, message: str, name: str | None = None, code: str | None = None):
        super().__init__(message)
        self.name = name
        self.code = code


class PgError(Exception):
    """Error carrying a PostgreSQL SQLSTATE."""

    def __init__(self, message: str, sqlstate: str):
        super().__init__(message)
        self.sqlstate = sqlstate


# =============================================================================
# Helpers
# =============================================================================


class TestErrorKinds:
    """Test error_kinds()."""

    def test_includes_class_hierarchy(self):
        kinds = error_kinds(ConnectionResetError())

        assert {"ConnectionResetError", "ConnectionError", "OSError"} <= kinds

    def test_includes_explicit_name(self):
        kinds = error_kinds(DriverError("down", name="MongoNetworkError"))

        assert "MongoNetworkError" in kinds
        assert "DriverError" in kinds

    def test_ignores_non_string_name(self):
        error = DriverError("x")
        error.name = 42

        assert 42 not in error_kinds(error)


class TestErrorCode:
    """Test error_code() and errno_name()."""

    def test_reads_code_attribute(self):
        assert error_code(DriverError("x", code="ETIMEDOUT")) == "ETIMEDOUT"

    def test_reads_sqlstate(self):
        assert error_code(PgError("x", sqlstate="08006")) == "08006"

    def test_reads_errno_name(self):
        error = ConnectionResetError(errno.ECONNRESET, "Connection reset by peer")

        assert errno_name(error) == "ECONNRESET"
        assert error_code(error) == "ECONNRESET"

    def test_errno_name_only_for_os_errors(self):
        error = ValueError("x")
        error.errno = errno.EPIPE

        assert errno_name(error) is None

    def test_follows_explicit_cause(self):
        try:
            try:
                raise PgError("terminating connection", sqlstate="57P01")
            except PgError as cause:
                raise OperationalError("terminating connection") from cause
        except OperationalError as error:
            assert error_code(error) == "57P01"

    def test_ignores_implicit_context(self):
        try:
            try:
                raise DriverError("x", code="ECONNRESET")
            except DriverError:
                raise ValueError("while handling")
        except ValueError as error:
            assert error_code(error) is None

    def test_missing_code(self):
        assert error_code(ValueError("x")) is None


# =============================================================================
# ErrorClassifier
# =============================================================================


class TestErrorClassifier:
    """Test the allow-list classification algorithm."""

    @pytest.fixture
    def classifier(self) -> ErrorClassifier:
        return ErrorClassifier(
            retryable_kinds=frozenset({"MongoNetworkError", "ConnectionError"}),
            retryable_codes=frozenset({"ETIMEDOUT", "ECONNREFUSED"}),
            coded_kinds=frozenset({"DriverError"}),
            retryable_messages=("connection timed out",),
        )

    def test_retryable_by_name(self, classifier):
        assert classifier(DriverError("x", name="MongoNetworkError")) is RETRYABLE

    def test_retryable_by_class(self, classifier):
        assert classifier(ConnectionRefusedError()) is RETRYABLE

    def test_retryable_by_code_for_coded_kind(self, classifier):
        assert classifier(DriverError("x", code="ETIMEDOUT")) is RETRYABLE

    def test_code_ignored_for_other_kinds(self, classifier):
        error = ValueError("x")
        error.code = "ETIMEDOUT"

        assert classifier(error) is FATAL

    def test_retryable_by_message_case_insensitive(self, classifier):
        assert classifier(RuntimeError("Connection Timed Out")) is RETRYABLE

    def test_unknown_error_is_fatal(self, classifier):
        assert classifier(ValueError("document failed validation")) is FATAL

    def test_unknown_code_is_fatal(self, classifier):
        assert classifier(DriverError("x", code="E11000")) is FATAL

    def test_empty_classifier_treats_everything_as_fatal(self):
        classifier = ErrorClassifier()

        assert classifier(ConnectionResetError()) is FATAL
        assert classifier(TimeoutError()) is FATAL

    def test_without_coded_kinds_codes_apply_to_any_error(self):
        classifier = ErrorClassifier(retryable_codes=frozenset({"rate_limit"}))
        error = RuntimeError("slow down")
        error.code = "rate_limit"

        assert classifier(error) is RETRYABLE

    def test_is_pure(self, classifier):
        """Same error, same answer, no matter how often it is asked."""
        error = DriverError("x", code="ECONNREFUSED")

        assert {classifier(error) for _ in range(5)} == {RETRYABLE}

    def test_classify_alias(self, classifier):
        error = ConnectionResetError()

        assert classifier.classify(error) is classifier(error)

    def test_with_kinds_returns_extended_copy(self, classifier):
        extended = classifier.with_kinds("ValueError")

        assert extended(ValueError()) is RETRYABLE
        assert classifier(ValueError()) is FATAL

    def test_with_codes_returns_extended_copy(self, classifier):
        extended = classifier.with_codes("E11000")
        error = DriverError("x", code="E11000")

        assert extended(error) is RETRYABLE
        assert classifier(error) is FATAL


# =============================================================================
# Database classifier
# =============================================================================


class TestDatabaseClassifier:
    """Test DATABASE_CLASSIFIER against driver-style errors."""

    @pytest.mark.parametrize(
        "error",
        [
            ConnectionResetError(errno.ECONNRESET, "Connection reset by peer"),
            BrokenPipeError(errno.EPIPE, "Broken pipe"),
            TimeoutError("timed out"),
            TransientDependencyError("replica set unavailable"),
            OperationalError("connect ECONNREFUSED 127.0.0.1:5432"),
            OperationalError(
                "server closed the connection unexpectedly\n"
                "This probably means the server terminated abnormally"
            ),
            OperationalError("could not connect: Connection refused"),
        ],
    )
    def test_connectivity_errors_are_retryable(self, error):
        assert DATABASE_CLASSIFIER(error) is RETRYABLE

    def test_operational_error_with_connection_sqlstate(self):
        error = OperationalError("admin shutdown")
        error.sqlstate = "57P01"

        assert DATABASE_CLASSIFIER(error) is RETRYABLE

    def test_interface_error_with_cause_code(self):
        cause = PgError("connection failure", sqlstate="08006")
        error = InterfaceError("connection already closed")
        error.__cause__ = cause

        assert DATABASE_CLASSIFIER(error) is RETRYABLE

    @pytest.mark.parametrize(
        "error",
        [
            IntegrityError("duplicate key value violates unique constraint"),
            OperationalError("no such table: payments"),
            ValueError("invalid document"),
            PermissionError(errno.EACCES, "Permission denied"),
        ],
    )
    def test_other_errors_are_fatal(self, error):
        assert DATABASE_CLASSIFIER(error) is FATAL

    def test_sqlstate_ignored_outside_driver_errors(self):
        error = PgError("looks like a connection error", sqlstate="08006")

        assert DATABASE_CLASSIFIER(error) is FATAL
