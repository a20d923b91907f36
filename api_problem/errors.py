"""Errors raised when converting problems to and from their wire formats."""

import enum
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from .problem import ApiProblem


class JsonErrorKind(enum.IntEnum):
    """The categories of JSON parse and encode failures."""

    UNKNOWN = 0
    DEPTH = 1
    STATE_MISMATCH = 2
    CTRL_CHAR = 3
    SYNTAX = 4
    UTF8 = 5
    RECURSION = 6
    INF_OR_NAN = 7
    UNSUPPORTED_TYPE = 8
    INVALID_PROPERTY_NAME = 9
    UTF16 = 10

    @property
    def message(self) -> str:
        """The human-readable description of the failure category."""
        return _MESSAGES[self]


_MESSAGES = {
    JsonErrorKind.UNKNOWN: 'Unknown error',
    JsonErrorKind.DEPTH: 'Maximum stack depth exceeded',
    JsonErrorKind.STATE_MISMATCH: 'Underflow or the modes mismatch',
    JsonErrorKind.CTRL_CHAR: 'Unexpected control character found',
    JsonErrorKind.SYNTAX: 'Syntax error, malformed JSON',
    JsonErrorKind.UTF8: 'Malformed UTF-8 characters, possibly incorrectly encoded',
    JsonErrorKind.RECURSION: 'One or more recursive references in the value to be encoded',
    JsonErrorKind.INF_OR_NAN: 'One or more NAN or INF values in the value to be encoded',
    JsonErrorKind.UNSUPPORTED_TYPE: 'A value of a type that cannot be encoded was given',
    JsonErrorKind.INVALID_PROPERTY_NAME: 'A property name that cannot be encoded was given',
    JsonErrorKind.UTF16: 'Malformed UTF-16 characters, possibly incorrectly encoded',
}


class JsonError(ValueError):
    """Base error for JSON conversion failures.

    Args:
        message: A human-readable description of the failure.
        kind: The failure category.
        failed_value: The value which could not be parsed or encoded.
    """

    def __init__(
            self,
            message: str = '',
            kind: JsonErrorKind = JsonErrorKind.UNKNOWN,
            failed_value: Any = None,
    ) -> None:
        super(JsonError, self).__init__(message)
        self.message: str = message
        self.kind: JsonErrorKind = JsonErrorKind(kind)
        self.failed_value: Any = failed_value

    @property
    def code(self) -> int:
        """The numeric code of the failure category."""
        return int(self.kind)

    @classmethod
    def from_kind(cls, kind: JsonErrorKind, failed_value: Any, message: Optional[str] = None) -> 'JsonError':
        """Create an error for the given category.

        Args:
            kind: The failure category.
            failed_value: The value which could not be parsed or encoded.
            message: Overrides the default message of the category.

        Returns:
            A new error of the invoked class.
        """
        kind = JsonErrorKind(kind)
        return cls(message or kind.message, kind, failed_value)


class JsonParseError(JsonError):
    """Raised when text cannot be parsed as a JSON problem document."""

    @property
    def json(self) -> Any:
        """The input text that failed to parse."""
        return self.failed_value


class JsonEncodeError(JsonError):
    """Raised when a value cannot be serialized to JSON."""

    @property
    def json(self) -> Any:
        """The value that failed to encode."""
        return self.failed_value


class XmlParseError(ValueError):
    """Raised when text cannot be parsed as an XML problem document."""

    def __init__(self, message: str, xml: Any = None) -> None:
        super(XmlParseError, self).__init__(message)
        self.xml: Any = xml


class XmlEncodeError(ValueError):
    """Raised when structured data cannot be rendered as XML."""

    def __init__(self, message: str, name: Any = None) -> None:
        super(XmlEncodeError, self).__init__(message)
        self.name: Any = name


class ApiProblemError(Exception):
    """An exception carrying an ApiProblem.

    This is useful where code needs to hand back a problem but already has
    another return type. Raise the error and let a caller (or the exception
    handler in `api_problem.middleware`) turn the carried problem into a
    response.

    Args:
        problem: The problem to carry.
        headers: Additional HTTP headers to send with the problem response.
    """

    def __init__(self, problem: 'ApiProblem', headers: Optional[Dict[str, str]] = None) -> None:
        super(ApiProblemError, self).__init__(problem.title or '')
        self.problem: 'ApiProblem' = problem
        self.headers: Dict[str, str] = dict(headers) if headers else {}

    @property
    def status(self) -> int:
        return self.problem.status
