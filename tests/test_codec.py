import xml.etree.ElementTree as ET

import pytest

from api_problem import codec
from api_problem.errors import (JsonEncodeError, JsonErrorKind, JsonParseError,
                                XmlEncodeError, XmlParseError)


def nested(depth: int) -> dict:
    value: dict = {}
    for _ in range(depth - 1):
        value = {'a': value}
    return value


def render(data) -> str:
    element = ET.Element('problem')
    codec.dict_to_xml(data, element)
    return ET.tostring(element, encoding='unicode')


class TestEncodeJson:

    def test_compact(self):
        assert codec.encode_json({'type': 'about:blank', 'status': 500}) == '{"type":"about:blank","status":500}'

    def test_pretty(self):
        assert codec.encode_json({'a': [1, 2]}, pretty=True) == '{\n  "a": [\n    1,\n    2\n  ]\n}'

    def test_unescaped(self):
        assert codec.encode_json({'type': 'https://example.com/ü'}) == '{"type":"https://example.com/ü"}'

    def test_bytes(self):
        assert codec.encode_json({'sir': b'Gir'}) == '{"sir":"Gir"}'

    def test_int_keys(self):
        assert codec.encode_json({1: 'one'}) == '{"1":"one"}'

    def test_circular(self):
        data: dict = {}
        data['self'] = data

        with pytest.raises(JsonEncodeError) as err:
            codec.encode_json(data)

        assert err.value.kind == JsonErrorKind.RECURSION
        assert err.value.json is data

    @pytest.mark.parametrize('value', [float('nan'), float('inf'), float('-inf')])
    def test_inf_or_nan(self, value):
        with pytest.raises(JsonEncodeError) as err:
            codec.encode_json({'a': value})

        assert err.value.kind == JsonErrorKind.INF_OR_NAN
        assert err.value.message == 'One or more NAN or INF values in the value to be encoded'

    def test_unsupported_type(self):
        with pytest.raises(JsonEncodeError) as err:
            codec.encode_json({'a': object()})

        assert err.value.kind == JsonErrorKind.UNSUPPORTED_TYPE

    def test_invalid_property_name(self):
        with pytest.raises(JsonEncodeError) as err:
            codec.encode_json({('a', 'b'): 1})

        assert err.value.kind == JsonErrorKind.INVALID_PROPERTY_NAME

    def test_malformed_utf8(self):
        with pytest.raises(JsonEncodeError) as err:
            codec.encode_json({'a': b'\xc3\x28'})

        assert err.value.kind == JsonErrorKind.UTF8

    def test_lone_surrogate(self):
        with pytest.raises(JsonEncodeError) as err:
            codec.encode_json({'a': '\ud800'})

        assert err.value.kind == JsonErrorKind.UTF16

    def test_depth(self):
        codec.encode_json(nested(codec.MAX_DEPTH))

        with pytest.raises(JsonEncodeError) as err:
            codec.encode_json(nested(codec.MAX_DEPTH + 1))

        assert err.value.kind == JsonErrorKind.DEPTH


class TestDecodeJson:

    def test_object(self):
        assert codec.decode_json('{"title": "T", "sir": {"name": "Gir"}}') == {
            'title': 'T',
            'sir': {'name': 'Gir'},
        }

    def test_bytes(self):
        assert codec.decode_json('{"title": "ü"}'.encode('utf-8')) == {'title': 'ü'}

    def test_empty(self):
        with pytest.raises(JsonParseError) as err:
            codec.decode_json('')

        assert err.value.kind == JsonErrorKind.SYNTAX
        assert err.value.message == 'An empty string is not a valid JSON value'

    @pytest.mark.parametrize('text', ['{', '{"a": "b",}', 'nope', '{"a": 1} trailing'])
    def test_syntax(self, text):
        with pytest.raises(JsonParseError) as err:
            codec.decode_json(text)

        assert err.value.kind == JsonErrorKind.SYNTAX
        assert err.value.message == 'Syntax error, malformed JSON'
        assert err.value.json == text
        assert isinstance(err.value.__cause__, ValueError)

    def test_control_character(self):
        with pytest.raises(JsonParseError) as err:
            codec.decode_json('{"a": "b\x01"}')

        assert err.value.kind == JsonErrorKind.CTRL_CHAR

    @pytest.mark.parametrize('constant', ['NaN', 'Infinity', '-Infinity'])
    def test_inf_or_nan(self, constant):
        with pytest.raises(JsonParseError) as err:
            codec.decode_json(f'{{"a": {constant}}}')

        assert err.value.kind == JsonErrorKind.INF_OR_NAN

    @pytest.mark.parametrize('text', ['[1, 2]', '"title"', '42', 'null'])
    def test_not_an_object(self, text):
        with pytest.raises(JsonParseError) as err:
            codec.decode_json(text)

        assert err.value.kind == JsonErrorKind.UNSUPPORTED_TYPE

    def test_depth(self):
        depth = codec.MAX_DEPTH + 1
        text = '{"a":' + '[' * depth + ']' * depth + '}'

        with pytest.raises(JsonParseError) as err:
            codec.decode_json(text)

        assert err.value.kind == JsonErrorKind.DEPTH


class TestDictToXml:

    def test_scalars(self):
        assert render({'title': 'T', 'status': 403}) == '<problem><title>T</title><status>403</status></problem>'

    def test_nested_mapping(self):
        assert render({'irken': {'invader': 'Zim'}}) == '<problem><irken><invader>Zim</invader></irken></problem>'

    def test_sequence_of_scalars(self):
        assert render({'tags': ['a', 'b']}) == '<problem><tags>a</tags><tags>b</tags></problem>'

    def test_sequence_of_mappings(self):
        data = {'errors': [{'@code': 'x', 'field': 'name'}, {'@code': 'y'}]}

        assert render(data) == (
            '<problem>'
            '<errors code="x"><field>name</field></errors>'
            '<errors code="y" />'
            '</problem>'
        )

    def test_indexed_mapping(self):
        assert render({'a': {0: 'x', 1: 'y'}}) == '<problem><a>x</a><a>y</a></problem>'
        assert render({'a': {'0': 'x', '1': 'y'}}) == '<problem><a>x</a><a>y</a></problem>'

    def test_empty_containers(self):
        assert render({'a': [], 'b': {}}) == '<problem><a /><b /></problem>'

    def test_attribute_and_value(self):
        data = {'link': {'@href': '/x', '@rel': 'self', 'value': 'X'}}

        assert render(data) == '<problem><link href="/x" rel="self">X</link></problem>'

    def test_booleans(self):
        assert render({'yes': True, 'no': False}) == '<problem><yes>1</yes><no>0</no></problem>'

    def test_none(self):
        assert render({'a': None}) == '<problem><a /></problem>'

    def test_escaping(self):
        out = render({'a': '<b> & "c"'})

        assert out == '<problem><a>&lt;b&gt; &amp; "c"</a></problem>'
        assert ET.fromstring(out).find('a').text == '<b> & "c"'

    def test_numeric_key_without_parent(self):
        assert render({0: 'x', 1: {'a': 'b'}}) == '<problem><item>x</item><item><a>b</a></item></problem>'

    @pytest.mark.parametrize('data,name', [
        ({'my key': 'v'}, 'my key'),
        ({'': 'v'}, ''),
        ({'1abc': 'v'}, '1abc'),
        ({'a': {'b c': {'d': 'e'}}}, 'b c'),
        ({'link': {'@my attr': 'x'}}, 'my attr'),
    ])
    def test_invalid_names(self, data, name):
        with pytest.raises(XmlEncodeError) as err:
            render(data)

        assert err.value.name == name

    @pytest.mark.parametrize('key', [' 0', '0 ', '\t1'])
    def test_padded_numbers_are_not_indices(self, key):
        with pytest.raises(XmlEncodeError):
            render({'a': {key: 'x'}})

    def test_numeric_strings_are_indices(self):
        assert render({'a': {'0': 'x', '-1': 'y', '1.5e3': 'z'}}) == (
            '<problem><a>x</a><a>y</a><a>z</a></problem>'
        )


class TestXmlToDict:

    def test_leaves(self):
        assert codec.decode_xml('<problem><title>T</title><empty/></problem>') == {
            'title': 'T',
            'empty': '',
        }

    def test_nested(self):
        assert codec.decode_xml('<problem><irken><invader>Zim</invader></irken></problem>') == {
            'irken': {'invader': 'Zim'},
        }

    def test_repeated(self):
        assert codec.decode_xml('<problem><tags>a</tags><tags>b</tags><tags>c</tags></problem>') == {
            'tags': ['a', 'b', 'c'],
        }

    def test_attributes_and_text(self):
        assert codec.decode_xml('<problem lang="en"><link href="/x">X</link></problem>') == {
            '@lang': 'en',
            'link': {'@href': '/x', 'value': 'X'},
        }

    def test_symmetric_with_dict_to_xml(self):
        data = {
            'link': {'@href': '/x', 'value': 'X'},
            'errors': [{'@code': 'x', 'field': 'name'}, {'@code': 'y', 'field': 'age'}],
            'irken': {'invader': 'Zim'},
            'tags': ['a', 'b'],
        }

        assert codec.decode_xml(codec.encode_xml(data)) == data
        assert codec.decode_xml(codec.encode_xml(data, pretty=True)) == data

    @pytest.mark.parametrize('text', ['', '<problem>', 'not xml', b'\xff\xfe\xfd'])
    def test_malformed(self, text):
        with pytest.raises(XmlParseError) as err:
            codec.decode_xml(text)

        assert err.value.xml == text
        assert isinstance(err.value.__cause__, ET.ParseError)


def test_encode_xml_root():
    assert codec.encode_xml({'a': 'b'}, root='error') == (
        '<?xml version="1.0" encoding="UTF-8"?>\n<error><a>b</a></error>\n'
    )


def test_encode_xml_pretty():
    assert codec.encode_xml({'irken': {'invader': 'Zim'}, 'tags': ['a', 'b']}, pretty=True) == (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<problem>\n'
        '  <irken>\n'
        '    <invader>Zim</invader>\n'
        '  </irken>\n'
        '  <tags>a</tags>\n'
        '  <tags>b</tags>\n'
        '</problem>\n'
    )


def test_encode_xml_too_deep():
    with pytest.raises(XmlEncodeError) as err:
        codec.encode_xml({'deep': nested(5000)})

    assert isinstance(err.value.__cause__, RecursionError)


def test_encode_xml_cyclic():
    loop: dict = {}
    loop['self'] = loop

    with pytest.raises(XmlEncodeError):
        codec.encode_xml({'loop': loop})
