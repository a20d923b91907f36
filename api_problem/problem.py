"""The RFC 7807 problem value object.

For details on the Problem format, see: https://tools.ietf.org/html/rfc7807
"""

import copy
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from . import codec

CONTENT_TYPE_JSON = 'application/problem+json'
CONTENT_TYPE_XML = 'application/problem+xml'

DEFAULT_TYPE = 'about:blank'

# The members defined by RFC 7807, in the order they are rendered.
FIELDS = ('title', 'type', 'status', 'detail', 'instance')

Key = Union[str, Tuple[str, ...]]


def _filter_string(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


def _filter_int(value: Any) -> Optional[int]:
    """Accept ints and values whose string form is exactly an int, e.g. '403'."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        return None
    try:
        number = int(value)
    except ValueError:
        return None
    if str(number) != value:
        return None
    return number


def _copy_tree(value: Any) -> Any:
    """Deep copy nested dicts and lists without recursing, so depth is unbounded.

    Shared and cyclic containers keep their shape in the copy. Anything else
    is copied with `copy.deepcopy`.
    """
    if not isinstance(value, (dict, list)):
        return copy.deepcopy(value)

    root: Any = {} if isinstance(value, dict) else []
    memo = {id(value): root}
    stack = [(value, root)]
    while stack:
        source, target = stack.pop()
        items = source.items() if isinstance(source, dict) else enumerate(source)
        for key, child in items:
            if not isinstance(child, (dict, list)):
                child_copy = copy.deepcopy(child)
            elif id(child) in memo:
                child_copy = memo[id(child)]
            else:
                child_copy = {} if isinstance(child, dict) else []
                memo[id(child)] = child_copy
                stack.append((child, child_copy))
            if isinstance(target, dict):
                target[key] = child_copy
            else:
                target.append(child_copy)
    return root


class ApiProblem:
    """An RFC 7807 Problem.

    This models a "problem" as defined in RFC 7807 (https://tools.ietf.org/html/rfc7807).
    Configure it through its properties (or the chainable `set_*` methods),
    then render it with `as_json()`, `as_xml()` or `to_dict()`. When sent
    over HTTP, the response should use the `application/problem+json` or
    `application/problem+xml` content type, as appropriate.

    Members defined by the RFC have their own properties. Any other member is
    an extension and is accessed with item access on the problem itself:

        problem = ApiProblem('Out of credit', 'https://example.com/probs/out-of-credit')
        problem['balance'] = 30
        problem['accounts', 'current'] = '/account/12345'

    A tuple key addresses a nested extension, creating intermediate dicts as
    needed. Reading an unknown extension returns None.

    String members are rendered whenever they have been assigned, even to an
    empty string. The type always renders, falling back to "about:blank". The
    status renders only when it is non-zero, 0 meaning "unset".

    Args:
        title: A short, human-readable summary of the problem type.
        type: A URI reference that identifies the problem type.
    """

    CONTENT_TYPE_JSON = CONTENT_TYPE_JSON
    CONTENT_TYPE_XML = CONTENT_TYPE_XML

    def __init__(self, title: str = '', type: str = DEFAULT_TYPE) -> None:
        self._title: Optional[str] = title or None
        self._type: str = type or DEFAULT_TYPE
        self._status: int = 0
        self._detail: Optional[str] = None
        self._instance: Optional[str] = None
        self._extensions: Dict[str, Any] = {}

    @property
    def title(self) -> Optional[str]:
        """A short, human-readable summary of the problem type."""
        return self._title

    @title.setter
    def title(self, title: str) -> None:
        self._title = title

    def set_title(self, title: str) -> 'ApiProblem':
        self._title = title
        return self

    @property
    def type(self) -> str:
        """A URI reference that identifies the problem type.

        Defaults to "about:blank", which indicates that the problem has no
        semantics beyond that of the HTTP status code.
        """
        return self._type

    @type.setter
    def type(self, type: str) -> None:
        self._type = type or DEFAULT_TYPE

    def set_type(self, type: str) -> 'ApiProblem':
        self.type = type
        return self

    @property
    def status(self) -> int:
        """The advisory HTTP status code, or 0 if not set."""
        return self._status

    @status.setter
    def status(self, status: int) -> None:
        self._status = status or 0

    def set_status(self, status: int) -> 'ApiProblem':
        self.status = status
        return self

    @property
    def detail(self) -> Optional[str]:
        """A human-readable explanation specific to this occurrence of the problem."""
        return self._detail

    @detail.setter
    def detail(self, detail: str) -> None:
        self._detail = detail

    def set_detail(self, detail: str) -> 'ApiProblem':
        self._detail = detail
        return self

    @property
    def instance(self) -> Optional[str]:
        """A URI reference that identifies this occurrence of the problem."""
        return self._instance

    @instance.setter
    def instance(self, instance: str) -> None:
        self._instance = instance

    def set_instance(self, instance: str) -> 'ApiProblem':
        self._instance = instance
        return self

    @property
    def extensions(self) -> Dict[str, Any]:
        """A copy of the extension members of the problem."""
        return _copy_tree(self._extensions)

    def set_extensions(self, extensions: Mapping[str, Any]) -> 'ApiProblem':
        """Replace all extension members of the problem.

        Raises:
            KeyError: One of the keys is a member defined by RFC 7807.
        """
        for key in extensions:
            self._check_key(key)
        self._extensions = _copy_tree(dict(extensions))
        return self

    @staticmethod
    def _check_key(key: Any) -> None:
        if key in FIELDS:
            raise KeyError(f'"{key}" is a problem member, not an extension; use the "{key}" property')

    @staticmethod
    def _path(key: Key) -> Tuple[Any, ...]:
        return key if isinstance(key, tuple) else (key,)

    def _parent(self, path: Tuple[Any, ...], create: bool = False) -> Optional[Dict[str, Any]]:
        """Find the dict holding the last step of a path."""
        node = self._extensions
        for step in path[:-1]:
            if step not in node and create:
                node[step] = {}
            node = node.get(step)
            if not isinstance(node, dict):
                if create:
                    raise TypeError(f'extension "{step}" is not a mapping')
                return None
        return node

    def __getitem__(self, key: Key) -> Any:
        path = self._path(key)
        parent = self._parent(path)
        if parent is None:
            return None
        return parent.get(path[-1])

    def __setitem__(self, key: Key, value: Any) -> None:
        path = self._path(key)
        self._check_key(path[0])
        self._parent(path, create=True)[path[-1]] = value

    def __delitem__(self, key: Key) -> None:
        path = self._path(key)
        parent = self._parent(path)
        if parent is not None:
            parent.pop(path[-1], None)

    def __contains__(self, key: Key) -> bool:
        path = self._path(key)
        parent = self._parent(path)
        return parent is not None and path[-1] in parent

    def get(self, key: Key, default: Any = None) -> Any:
        """Get an extension member, or the default if it does not exist."""
        if key not in self:
            return default
        return self[key]

    def to_dict(self) -> Dict[str, Any]:
        """Get a dictionary representation of the Problem.

        Extension members come first, in the order they were added, followed
        by the members defined by RFC 7807. This can be serialized out to
        JSON or XML and used as a response body.

        Returns:
            A dictionary representation of the Problem.
        """
        d = _copy_tree(self._extensions)

        if self._title is not None:
            d['title'] = self._title
        d['type'] = self._type
        if self._status:
            d['status'] = self._status
        if self._detail is not None:
            d['detail'] = self._detail
        if self._instance is not None:
            d['instance'] = self._instance
        return d

    def as_array(self) -> Dict[str, Any]:
        return self.to_dict()

    def json_serialize(self) -> Dict[str, Any]:
        return self.to_dict()

    def as_json(self, pretty: bool = False) -> str:
        """Render the Problem as JSON.

        Args:
            pretty: Pretty-print the JSON, making it easier for humans to
                read while debugging.

        Returns:
            The JSON text representing the Problem.

        Raises:
            JsonEncodeError: An extension holds a value which cannot be
                represented in JSON.
        """
        return codec.encode_json(self.to_dict(), pretty=pretty)

    def as_xml(self, pretty: bool = False) -> str:
        """Render the Problem as an XML document with a <problem> root element.

        Args:
            pretty: Pretty-print the XML, making it easier for humans to
                read while debugging.

        Returns:
            The XML text representing the Problem.

        Raises:
            XmlEncodeError: An extension key is not a valid XML name, or the
                extensions nest too deeply to render.
        """
        return codec.encode_xml(self.to_dict(), root='problem', pretty=pretty)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ApiProblem':
        """Create a new Problem from its dictionary representation.

        Members defined by RFC 7807 are picked out of the dictionary; a member
        holding a value of the wrong shape (e.g. a non-numeric status) is
        dropped. Every other key becomes an extension member.

        Args:
            data: The dictionary to convert into a Problem.

        Returns:
            A new Problem populated from the dictionary.
        """
        data = dict(data)
        problem = cls()

        title = _filter_string(data.get('title'))
        if title is not None:
            problem.title = title
        problem.type = _filter_string(data.get('type'))
        status = _filter_int(data.get('status'))
        if status is not None:
            problem.status = status
        detail = _filter_string(data.get('detail'))
        if detail is not None:
            problem.detail = detail
        instance = _filter_string(data.get('instance'))
        if instance is not None:
            problem.instance = instance

        # Whatever is left must be an extension member.
        for key in FIELDS:
            data.pop(key, None)
        problem._extensions = _copy_tree(data)
        return problem

    @classmethod
    def from_json(cls, text: codec.Text) -> 'ApiProblem':
        """Parse JSON text into a new Problem.

        Raises:
            JsonParseError: The text is empty, is not valid JSON or does not
                hold a JSON object.
        """
        return cls.from_dict(codec.decode_json(text))

    @classmethod
    def from_xml(cls, text: codec.Text) -> 'ApiProblem':
        """Parse XML text into a new Problem.

        Raises:
            XmlParseError: The text is not well-formed XML.
        """
        return cls.from_dict(codec.decode_xml(text))

    def __str__(self) -> str:
        return str(f'ApiProblem:<{self.to_dict()}>')

    def __repr__(self) -> str:
        return str(self)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ApiProblem):
            return False
        return self.to_dict() == other.to_dict()
