"""Reusable problem types.

A ProblemType holds the members shared by every occurrence of one kind of
problem, and produces a fresh ApiProblem for each occurrence:

    out_of_credit = ProblemType(
        type='https://example.com/probs/out-of-credit',
        title='You do not have enough credit.',
        status=403,
    )

    problem = out_of_credit(detail='Your current balance is 30, but that costs 50.', balance=30)
"""

import copy
from typing import Any, Dict, Optional

from .errors import ApiProblemError
from .problem import DEFAULT_TYPE, ApiProblem


class ProblemType:
    """A factory for problems which share a type, title and defaults.

    Args:
        type: The problem type URI.
        title: The title of every problem of this type.
        status: The default HTTP status code.
        detail: The default detail.
        headers: HTTP headers sent with responses for problems raised
            through `error()`.
        extensions: Default extension members.
    """

    def __init__(
            self,
            type: str = DEFAULT_TYPE,
            title: str = '',
            status: int = 0,
            detail: Optional[str] = None,
            headers: Optional[Dict[str, str]] = None,
            **extensions: Any,
    ) -> None:
        self.type: str = type or DEFAULT_TYPE
        self.title: str = title
        self.status: int = status
        self.detail: Optional[str] = detail
        self.headers: Dict[str, str] = dict(headers) if headers else {}
        self.extensions: Dict[str, Any] = extensions

    def __call__(
            self,
            detail: Optional[str] = None,
            instance: Optional[str] = None,
            status: Optional[int] = None,
            **extensions: Any,
    ) -> ApiProblem:
        """Create a new problem of this type.

        Args:
            detail: Overrides the default detail.
            instance: The URI of this occurrence of the problem.
            status: Overrides the default status code.
            extensions: Extension members, laid over the defaults.

        Returns:
            A new, independent ApiProblem.
        """
        problem = ApiProblem(self.title, self.type)
        problem.status = self.status if status is None else status

        detail = self.detail if detail is None else detail
        if detail is not None:
            problem.detail = detail
        if instance is not None:
            problem.instance = instance

        members = copy.deepcopy(self.extensions)
        members.update(extensions)
        return problem.set_extensions(members)

    def error(self, *args: Any, **kwargs: Any) -> ApiProblemError:
        """Create a new problem of this type, wrapped in an ApiProblemError.

        Takes the same arguments as calling the ProblemType.
        """
        return ApiProblemError(self(*args, **kwargs), headers=self.headers)

    def __repr__(self) -> str:
        return f'ProblemType:<{self.type}>'
