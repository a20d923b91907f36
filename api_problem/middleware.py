"""FastAPI middleware and error handlers for RFC7807-compliant Problem responses.

For details on the Problem format, see: https://tools.ietf.org/html/rfc7807
"""

import http
import inspect
import logging
from typing import (Any, Awaitable, Callable, Dict, Mapping, Optional,
                    Sequence, Union)

from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.openapi.utils import get_openapi
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from . import schema
from .errors import ApiProblemError
from .problem import CONTENT_TYPE_JSON, CONTENT_TYPE_XML, ApiProblem

logger = logging.getLogger(__name__)

PreHook = Callable[[Request, Exception], Union[Any, Awaitable[Any]]]
PostHook = Callable[[Request, Response, Exception], Union[Any, Awaitable[Any]]]

# Status code used for responses whose problem does not set one.
DEFAULT_STATUS = 500


class ProblemResponse(Response):
    """A Response for RFC7807 Problems, rendered as JSON."""

    media_type: str = CONTENT_TYPE_JSON

    def __init__(self, *args, debug: bool = False, **kwargs) -> None:
        self.debug: bool = debug
        self.problem_headers: Dict[str, str] = {}
        super(ProblemResponse, self).__init__(*args, **kwargs)

    def init_headers(self, headers: Mapping[str, str] = None) -> None:
        h = dict(headers) if headers else {}
        h.update(self.problem_headers)

        super(ProblemResponse, self).init_headers(h)

    def render(self, content: Any) -> bytes:
        """Render the provided content as RFC-7807 Problem serialized bytes."""
        if isinstance(content, ApiProblemError):
            p = content.problem
            self.problem_headers = dict(content.headers)
        elif isinstance(content, ApiProblem):
            p = content
        elif isinstance(content, dict):
            p = ApiProblem.from_dict(content)
        elif isinstance(content, HTTPException):
            p = from_http_exception(content)
            self.problem_headers = dict(content.headers or {})
        elif isinstance(content, RequestValidationError):
            p = from_request_validation_error(content)
        elif isinstance(content, Exception):
            p = from_exception(content)
        else:
            p = ApiProblem('Application Error')
            p.status = 500
            p.detail = 'Got unexpected content when trying to generate error response'
            p['content'] = str(content)

        # Dynamically set the response status_code to match
        # the status code of the Problem.
        self.status_code = p.status or DEFAULT_STATUS

        self.problem = p
        return self.serialize(p).encode('utf-8')

    def serialize(self, problem: ApiProblem) -> str:
        return problem.as_json(pretty=self.debug)


class XmlProblemResponse(ProblemResponse):
    """A Response for RFC7807 Problems, rendered as XML."""

    media_type: str = CONTENT_TYPE_XML

    def serialize(self, problem: ApiProblem) -> str:
        return problem.as_xml(pretty=self.debug)


class HttpConverter:
    """Converts problems into HTTP responses.

    The response status code is taken from the problem, or 500 if the
    problem does not set one.

    Args:
        pretty: Whether or not the response body should be pretty-printed.
    """

    def __init__(self, pretty: bool = False) -> None:
        self.pretty: bool = pretty

    def to_json_response(self, problem: ApiProblem) -> ProblemResponse:
        return ProblemResponse(problem, debug=self.pretty)

    def to_xml_response(self, problem: ApiProblem) -> XmlProblemResponse:
        return XmlProblemResponse(problem, debug=self.pretty)


def _phrase(status: int) -> str:
    try:
        return http.HTTPStatus(status).phrase
    except ValueError:
        return ''


def from_http_exception(exc: HTTPException) -> ApiProblem:
    """Create a new Problem from an HTTPException.

    The Problem will take on the status code of the HTTPException and generate
    a title based on that status code. If the HTTPException specifies a string
    detail, it is used as the problem detail; any other detail is kept as the
    "details" extension member.

    Args:
        exc: The HTTPException to convert into a Problem.

    Returns:
        A new Problem populated from the HTTPException.
    """
    problem = ApiProblem(_phrase(exc.status_code))
    problem.status = exc.status_code
    if isinstance(exc.detail, str):
        problem.detail = exc.detail
    elif exc.detail is not None:
        problem['details'] = jsonable_encoder(exc.detail)
    return problem


def from_request_validation_error(exc: RequestValidationError) -> ApiProblem:
    """Create a new Problem from a RequestValidationError.

    The Problem will take on a status code of 400 Bad Request, indicating that
    the user provided data which the server will not process. The title will
    be "Validation Error". The specifics of which fields failed validation
    checks are included as the "errors" extension member.

    Args:
        exc: The RequestValidationError to convert into a Problem.

    Returns:
         A new Problem populated from the RequestValidationError.
    """
    problem = ApiProblem('Validation Error')
    problem.status = 400
    problem.detail = 'One or more user-provided parameters are invalid'
    problem['errors'] = jsonable_encoder(exc.errors())
    return problem


def from_exception(exc: Exception) -> ApiProblem:
    """Create a new Problem from a broad-class Exception.

    Converting a general Exception into a Problem is indicative of a server
    error, where some exception is not handled explicitly or not wrapped in
    an ApiProblemError/HTTPException.

    The Problem will always use the 500 Server Error status code, with
    "Unexpected Server Error" as the title. The exception class is provided as
    the "exc_type" extension member, and the exception message is used as
    Problem detail.

    Args:
        exc: The general Exception to convert into a Problem.

    Returns:
        A new Problem populated from the Exception.
    """
    problem = ApiProblem('Unexpected Server Error')
    problem.status = 500
    problem.detail = str(exc)
    problem['exc_type'] = exc.__class__.__name__
    return problem


def get_exception_handler(
        debug: bool = False,
        pre_hooks: Optional[Sequence[PreHook]] = None,
        post_hooks: Optional[Sequence[PostHook]] = None,
) -> Callable:
    """A custom FastAPI exception handler constructor.

    The exception handler which this returns is used to return an RFC7807
    compliant ProblemResponse for the given exception.

    Hooks can be specified for the handler as well. Pre-hooks take a request
    (starlette.requests.Request) and an Exception as arguments and run before
    the exception is converted into a ProblemResponse. Post-hooks additionally
    take the response and run after it is generated. Hooks may be plain or
    async functions. Errors raised by a hook propagate out of the handler.

    Args:
        debug: Configure the handler for pretty-printing response JSON.
        pre_hooks: Functions which are run before generating a response.
        post_hooks: Functions which are run after generating a response.
    """
    async def exception_handler(request: Request, exc: Exception) -> ProblemResponse:
        nonlocal debug, pre_hooks, post_hooks

        if isinstance(exc, (ApiProblemError, HTTPException, RequestValidationError)):
            logger.debug('converting %s to problem response', exc.__class__.__name__)
        else:
            logger.error('unhandled exception, converting to problem response', exc_info=exc)

        await exec_hooks(pre_hooks, request, exc)
        response = ProblemResponse(exc, debug=debug)
        await exec_hooks(post_hooks, request, response, exc)

        return response
    return exception_handler


async def exec_hooks(hooks: Optional[Sequence[Union[PreHook, PostHook]]], *args) -> None:
    """Helper function to execute hooks, if any are defined.

    Args:
        hooks: The hooks, if any, to execute.
        args: Positional arguments to pass to the hooks.
    """
    if hooks:
        for hook in hooks:
            result = hook(*args)
            if inspect.isawaitable(result):
                await result


def register(
    app: FastAPI,
    pre_hooks: Optional[Sequence[PreHook]] = None,
    post_hooks: Optional[Sequence[PostHook]] = None,
    add_schema: Union[str, bool] = False,
) -> None:
    """Register the RFC7807 middleware with a FastAPI application instance.

    This function registers:

    1. An exception handler for ApiProblemError, HTTPException and
       RequestValidationError, so that each is converted to an RFC7807
       Problem response.
    2. ProblemMiddleware. This middleware handles all other exceptions raised by
       the application and converts them to RFC7807 Problem responses.

    The ProblemMiddleware overrides starlette's internal default
    ServerErrorMiddleware by capturing all exceptions before they make it to
    that handler, so HTML debug tracebacks are no longer rendered.

    If the FastAPI application is configured for debug mode, the JSON output
    is pretty-printed. Otherwise, it is serialized in a compact format.

    This can also add the Problem schema to the application's OpenAPI schema
    definitions, so routes can reference it under the application/problem+json
    content type:

        @app.get(
            path='/',
            responses={
                500: {
                    'content': {'application/problem+json': {
                        'schema': {
                            '$ref': '#/components/schemas/Problem',
                        },
                    }},
                }
            }
        )
        def root():
            ...

    Args:
        app: The FastAPI application instance to register with.
        pre_hooks: Functions which are run before generating a response.
        post_hooks: Functions which are run after generating a response.
        add_schema: Add the Problem pydantic model as a schema to the application's
            OpenAPI definitions. If this is a string, it will be added to the
            schema using the string as the name.
    """
    _handler = get_exception_handler(debug=app.debug, pre_hooks=pre_hooks, post_hooks=post_hooks)

    app.add_exception_handler(ApiProblemError, _handler)
    app.add_exception_handler(HTTPException, _handler)
    app.add_exception_handler(RequestValidationError, _handler)
    app.add_middleware(ProblemMiddleware, debug=app.debug, pre_hooks=pre_hooks, post_hooks=post_hooks)

    if add_schema:
        if isinstance(add_schema, str):
            name = add_schema
        else:
            name = 'Problem'

        # Override the built-in OpenAPI docs generator with the wrapper.
        # This allows the RFC7807 Problem schema to be added in, so it can be
        # referenced in API route metadata.
        def wrap_openapi() -> Dict:
            if not app.openapi_schema:
                app.openapi_schema = get_openapi(
                    title=app.title,
                    version=app.version,
                    openapi_version=app.openapi_version,
                    description=app.description,
                    routes=app.routes,
                    tags=app.openapi_tags,
                    servers=app.servers,
                )

            app.openapi_schema.setdefault('components', {}).setdefault('schemas', {})[name] = (
                schema.Problem.model_json_schema(ref_template='#/components/schemas/{model}')
            )
            return app.openapi_schema
        app.openapi = wrap_openapi  # type: ignore


class ProblemMiddleware:
    """Middleware to catch all unhandled exceptions in the stack and return
    a corresponding RFC7807 JSON-formatted response.

    If 'debug' is set, the response JSON will be serialized in a more
    human-readable format, making it easier for debugging. Otherwise, the
    response JSON is serialized in a more compact format.
    """

    def __init__(
            self,
            app: ASGIApp,
            debug: bool = False,
            pre_hooks: Optional[Sequence[PreHook]] = None,
            post_hooks: Optional[Sequence[PostHook]] = None,
    ) -> None:
        self.app: ASGIApp = app
        self.pre_hooks = pre_hooks or []
        self.post_hooks = post_hooks or []
        self.debug: bool = debug

        self._handler = get_exception_handler(
            debug=self.debug,
            pre_hooks=self.pre_hooks,
            post_hooks=self.post_hooks,
        )

    # See: starlette.middleware.errors.ServerErrorMiddleware
    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope['type'] != 'http':
            await self.app(scope, receive, send)
            return

        response_started = False

        async def _send(message: Message) -> None:
            nonlocal response_started, send

            if message['type'] == 'http.response.start':
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, _send)
        except Exception as exc:
            if not response_started:
                response = await self._handler(Request(scope), exc)
                await response(scope, receive, send)

            # Continue to raise the exception. This allows the exception to
            # be logged, or optionally allows test clients to raise the error
            # in test cases.
            raise exc from None
