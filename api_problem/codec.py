"""Conversion between the structured form of a problem and JSON or XML text.

The structured form is a plain `dict` which may nest further dicts and
sequences. These routines know nothing about the problem fields; they only
map structure onto the wire formats, so they are equally usable for any
other document of the same shape.
"""

import json
import re
import xml.etree.ElementTree as ET
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from .errors import (JsonEncodeError, JsonErrorKind, JsonParseError, XmlEncodeError,
                     XmlParseError)

# Nesting limit for JSON documents, in containers.
MAX_DEPTH = 512

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'

# Used for sequence entries when no enclosing tag name is known.
DEFAULT_ITEM_TAG = 'item'

_NUMERIC = re.compile(r'[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?')

# Element and attribute names: a letter or underscore, then letters, digits, '_', '.' or '-'.
_XML_NAME = re.compile(r'[^\W\d][\w.-]*')

Text = Union[str, bytes, bytearray]


class _NonFiniteConstant(ValueError):
    pass


def _reject_constant(name: str) -> Any:
    raise _NonFiniteConstant(name)


def _encode_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode('utf-8')
    raise TypeError(f'Object of type {value.__class__.__name__} is not JSON serializable')


def _exceeds_depth(value: Any, limit: int = MAX_DEPTH) -> bool:
    stack = [(value, 1)]
    while stack:
        item, depth = stack.pop()
        if isinstance(item, dict):
            children: Iterable = item.values()
        elif isinstance(item, (list, tuple)):
            children = item
        else:
            continue
        if depth > limit:
            return True
        stack.extend((child, depth + 1) for child in children)
    return False


def encode_json(data: Any, pretty: bool = False) -> str:
    """Serialize structured data as JSON text.

    Forward slashes and non-ASCII characters are emitted as-is. `bytes`
    values are decoded as UTF-8.

    Args:
        data: The structured data to serialize.
        pretty: Indent the output, making it easier for humans to read.

    Returns:
        The JSON text.

    Raises:
        JsonEncodeError: The data contains something which cannot be
            represented in JSON.
    """
    try:
        if pretty:
            text = json.dumps(
                data,
                ensure_ascii=False,
                allow_nan=False,
                default=_encode_default,
                indent=2,
            )
        else:
            text = json.dumps(
                data,
                ensure_ascii=False,
                allow_nan=False,
                default=_encode_default,
                indent=None,
                separators=(',', ':'),
            )
        # Lone surrogates survive json.dumps but cannot be written out.
        text.encode('utf-8')
    except RecursionError as exc:
        raise JsonEncodeError.from_kind(JsonErrorKind.DEPTH, data) from exc
    except UnicodeDecodeError as exc:
        raise JsonEncodeError.from_kind(JsonErrorKind.UTF8, data) from exc
    except UnicodeEncodeError as exc:
        raise JsonEncodeError.from_kind(JsonErrorKind.UTF16, data) from exc
    except TypeError as exc:
        if str(exc).startswith('keys must be'):
            raise JsonEncodeError.from_kind(JsonErrorKind.INVALID_PROPERTY_NAME, data) from exc
        raise JsonEncodeError.from_kind(JsonErrorKind.UNSUPPORTED_TYPE, data) from exc
    except ValueError as exc:
        if 'Circular reference' in str(exc):
            raise JsonEncodeError.from_kind(JsonErrorKind.RECURSION, data) from exc
        if 'Out of range float' in str(exc):
            raise JsonEncodeError.from_kind(JsonErrorKind.INF_OR_NAN, data) from exc
        raise JsonEncodeError.from_kind(JsonErrorKind.UNKNOWN, data) from exc

    if _exceeds_depth(data):
        raise JsonEncodeError.from_kind(JsonErrorKind.DEPTH, data)
    return text


def decode_json(text: Text) -> Dict[str, Any]:
    """Parse JSON text holding an object into a dict.

    Args:
        text: The JSON text. Bytes are decoded the way `json.loads` does.

    Returns:
        The parsed object.

    Raises:
        JsonParseError: The text is empty, is not valid JSON, or does not
            hold a JSON object.
    """
    if not text:
        raise JsonParseError.from_kind(
            JsonErrorKind.SYNTAX, text, 'An empty string is not a valid JSON value',
        )

    try:
        parsed = json.loads(text, parse_constant=_reject_constant)
    except RecursionError as exc:
        raise JsonParseError.from_kind(JsonErrorKind.DEPTH, text) from exc
    except _NonFiniteConstant as exc:
        raise JsonParseError.from_kind(JsonErrorKind.INF_OR_NAN, text) from exc
    except UnicodeDecodeError as exc:
        raise JsonParseError.from_kind(JsonErrorKind.SYNTAX, text) from exc
    except json.JSONDecodeError as exc:
        if exc.msg.startswith('Invalid control character'):
            raise JsonParseError.from_kind(JsonErrorKind.CTRL_CHAR, text) from exc
        raise JsonParseError.from_kind(JsonErrorKind.SYNTAX, text) from exc
    except TypeError as exc:
        raise JsonParseError.from_kind(JsonErrorKind.UNSUPPORTED_TYPE, text) from exc
    except ValueError as exc:
        raise JsonParseError.from_kind(JsonErrorKind.UNKNOWN, text) from exc

    if _exceeds_depth(parsed):
        raise JsonParseError.from_kind(JsonErrorKind.DEPTH, text)
    if not isinstance(parsed, dict):
        raise JsonParseError.from_kind(
            JsonErrorKind.UNSUPPORTED_TYPE, text, 'A problem document must be a JSON object',
        )
    return parsed


def _is_numeric(key: Any) -> bool:
    if isinstance(key, bool):
        return False
    if isinstance(key, (int, float)):
        return True
    return isinstance(key, str) and _NUMERIC.fullmatch(key) is not None


def _is_sequence(value: Union[Dict, list, tuple]) -> bool:
    """Whether a container should be flattened into repeated sibling elements."""
    if isinstance(value, (list, tuple)):
        return len(value) > 0 and value[0] is not None
    return value.get(0) is not None or value.get('0') is not None


def _items(value: Union[Dict, list, tuple]) -> Iterable[Tuple[Any, Any]]:
    if isinstance(value, dict):
        return value.items()
    return enumerate(value)


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return str(int(value))
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode('utf-8')
    return str(value)


def _xml_name(key: Any) -> str:
    name = str(key)
    if _XML_NAME.fullmatch(name) is None:
        raise XmlEncodeError(f'{name!r} is not a valid XML name', name)
    return name


def dict_to_xml(data: Union[Dict, list, tuple], element: ET.Element, parent: Optional[str] = None) -> None:
    """Add nested structured data to an XML element.

    Keys become child elements. Keys prefixed with '@' become attributes of
    the current element and the key 'value' sets the text of the current
    element. Sequences produce one sibling element per entry, each named
    after the key the sequence is stored under.

    For example, {'errors': [{'@code': 'x'}, {'@code': 'y'}]} becomes
    <errors code="x"/><errors code="y"/>.

    Args:
        data: The data to add to the element.
        element: The XML element to which to add data.
        parent: The tag name used for sequence entries. Internal recursion only.

    Raises:
        XmlEncodeError: A key is not a valid XML element or attribute name.
    """
    for key, value in _items(data):
        if isinstance(value, (dict, list, tuple)):
            if not _is_numeric(key):
                tag = _xml_name(key)
                if _is_sequence(value):
                    dict_to_xml(value, element, tag)
                else:
                    dict_to_xml(value, ET.SubElement(element, tag), tag)
            else:
                tag = parent or DEFAULT_ITEM_TAG
                dict_to_xml(value, ET.SubElement(element, tag), tag)

        elif not _is_numeric(key):
            key = str(key)
            if key.startswith('@'):
                element.set(_xml_name(key[1:]), _text(value) or '')
            elif key == 'value':
                element.text = _text(value)
            else:
                ET.SubElement(element, _xml_name(key)).text = _text(value)

        else:
            ET.SubElement(element, parent or DEFAULT_ITEM_TAG).text = _text(value)


def _element_value(element: ET.Element) -> Any:
    if len(element) or element.attrib:
        return xml_to_dict(element)
    return element.text or ''


def xml_to_dict(element: ET.Element) -> Dict[str, Any]:
    """Convert an XML element into nested structured data.

    This mirrors `dict_to_xml`: attributes come back as '@'-prefixed keys,
    the text of an element which also has children or attributes comes back
    under 'value', and repeated sibling elements are collected into a list.
    Elements with neither children nor attributes become their text.

    Args:
        element: The XML element to convert.

    Returns:
        A dict corresponding to the content of the element.
    """
    data: Dict[str, Any] = {f'@{name}': value for name, value in element.attrib.items()}

    text = (element.text or '').strip()
    if text:
        data['value'] = text

    for child in element:
        value = _element_value(child)
        if child.tag not in data:
            data[child.tag] = value
        elif isinstance(data[child.tag], list):
            data[child.tag].append(value)
        else:
            data[child.tag] = [data[child.tag], value]
    return data


def encode_xml(data: Dict[str, Any], root: str = 'problem', pretty: bool = False) -> str:
    """Render structured data as an XML document.

    Args:
        data: The structured data to render.
        root: The tag name of the document element.
        pretty: Indent the output, making it easier for humans to read.

    Returns:
        The XML text, including the XML declaration.

    Raises:
        XmlEncodeError: A key is not a valid XML name, or the data nests too
            deeply (or cyclically) to render.
    """
    element = ET.Element(root)
    try:
        dict_to_xml(data, element)
        if pretty:
            ET.indent(element, space='  ')
        text = ET.tostring(element, encoding='unicode')
    except RecursionError as exc:
        raise XmlEncodeError('Maximum nesting depth exceeded') from exc
    return XML_DECLARATION + text + '\n'


def decode_xml(text: Text) -> Dict[str, Any]:
    """Parse an XML document into structured data.

    Args:
        text: The XML text.

    Returns:
        The content of the document element, as converted by `xml_to_dict`.

    Raises:
        XmlParseError: The text is not well-formed XML.
    """
    try:
        element = ET.fromstring(text)
    except ET.ParseError as exc:
        raise XmlParseError(str(exc), text) from exc
    return xml_to_dict(element)
