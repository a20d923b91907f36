"""RFC7807 Problem details, with JSON and XML rendering and FastAPI integration."""

__title__ = 'api-problem'
__version__ = '1.0.0'
__description__ = 'RFC7807 Problem details rendered as JSON and XML, with FastAPI error handlers'
__author__ = 'Vapor IO'
__license__ = 'GNU General Public License v3.0'

from .errors import (ApiProblemError, JsonEncodeError, JsonError,  # noqa: F401
                     JsonErrorKind, JsonParseError, XmlEncodeError,
                     XmlParseError)
from .factory import ProblemType  # noqa: F401
from .problem import (CONTENT_TYPE_JSON, CONTENT_TYPE_XML,  # noqa: F401
                      ApiProblem)
