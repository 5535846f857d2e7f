import gzip
import json
import zlib

import pytest

from memtui_view import (
    DataType,
    DecompressError,
    FormatError,
    ViewMode,
    decompress,
    detect_type,
    format_auto,
    format_hex,
    format_json,
    highlight_json,
    render,
)
from memtui_view.highlight import BRACKET, KEY, NULL, NUMBER, STRING, BOOLEAN, split_lines


@pytest.mark.parametrize(
    "data, expected",
    [
        (b"", DataType.TEXT),
        (b'{"a": 1}', DataType.JSON),
        (b"  \n[1, 2, 3]", DataType.JSON),
        (b"Hello\nWorld\ttabbed\r\n", DataType.TEXT),
        (b"{not json", DataType.TEXT),
        (b"\x00\x01\x02\x03", DataType.BINARY),
        (b"abc\x1bdef", DataType.BINARY),
        (b"\x1f\x8b" + b"\x00" * 10, DataType.GZIP),
        (b"\x78\x9c" + b"\x00" * 10, DataType.ZLIB),
        (b"\x78\x01abc", DataType.ZLIB),
        (b"\x78\x20abc", DataType.TEXT),
    ],
)
def test_detect_type(data, expected):
    assert detect_type(data) is expected


def test_detect_binary_only_scans_leading_sample():
    data = b"a" * 8192 + b"\x00"
    assert detect_type(data) is DataType.TEXT
    assert detect_type(b"a" * 8191 + b"\x00") is DataType.BINARY


def test_decompress_gzip_and_zlib():
    payload = b'{"user": "alice"}'
    assert decompress(gzip.compress(payload)) == (payload, DataType.GZIP)
    assert decompress(zlib.compress(payload)) == (payload, DataType.ZLIB)


def test_decompress_rejects_bombs_corruption_and_plain_data():
    bomb = zlib.compress(b"\x00" * 100_000)
    with pytest.raises(DecompressError, match="exceeds limit"):
        decompress(bomb, limit=1000)
    with pytest.raises(DecompressError):
        decompress(b"\x1f\x8b" + b"garbage-not-gzip")
    with pytest.raises(DecompressError):
        decompress(zlib.compress(b"hello world")[:-4])
    with pytest.raises(DecompressError, match="not gzip or zlib"):
        decompress(b"plain")


def test_format_json_pretty_prints_and_rejects_invalid():
    assert format_json(b'{"a":1,"b":[true,null]}') == '{\n  "a": 1,\n  "b": [\n    true,\n    null\n  ]\n}'
    with pytest.raises(FormatError, match="invalid JSON"):
        format_json(b"{oops")


def test_format_hex_layout():
    out = format_hex(b"Hello, World!\x00\x01\x02\xffxyz")
    lines = out.splitlines()
    assert len(lines) == 2
    assert lines[0] == "00000000  48 65 6c 6c 6f 2c 20 57 6f 72 6c 64 21 00 01 02  |Hello, World!...|"
    assert lines[1].startswith("00000010  ff 78 79 7a ")
    assert lines[1].endswith("|.xyz|")
    # Short last line is padded so the ascii column lines up.
    assert lines[0].index("|") == lines[1].index("|")
    assert format_hex(b"") == ""


def test_auto_dispatch_by_type():
    assert format_auto(b'{"k":"v"}').text == '{\n  "k": "v"\n}'
    assert format_auto(b"plain text").text == "plain text"
    binary = format_auto(b"\x00\x01")
    assert binary.data_type is DataType.BINARY
    assert binary.text.startswith("00000000  00 01")


def test_auto_decompresses_one_level_and_labels_container():
    payload = json.dumps({"id": 7}).encode()
    r = format_auto(gzip.compress(payload))
    assert r.compression is DataType.GZIP
    assert r.data_type is DataType.JSON
    assert r.type_label == "Gzip → JSON"
    assert r.is_json
    assert r.text == format_auto(payload).text

    z = format_auto(zlib.compress(b"just text"))
    assert z.type_label == "Zlib → Text"
    assert z.text == "just text"


def test_auto_never_decompresses_twice():
    nested = gzip.compress(gzip.compress(b"inner"))
    r = format_auto(nested)
    assert r.compression is DataType.GZIP
    assert r.data_type is DataType.GZIP
    assert r.text.startswith("00000000  1f 8b")


def test_auto_corrupt_compressed_falls_back_to_hex():
    r = format_auto(b"\x1f\x8bnot really gzip")
    assert r.compression is None
    assert r.data_type is DataType.GZIP
    assert r.error
    assert r.text.startswith("00000000  1f 8b")


def test_render_explicit_modes():
    data = b'{"a": 1}'
    assert render(data, ViewMode.TEXT).text == '{"a": 1}'
    assert render(data, ViewMode.HEX).text.startswith("00000000  7b 22 61 22")
    assert render(data, ViewMode.JSON).text == '{\n  "a": 1\n}'

    fallback = render(b"not json", ViewMode.JSON)
    assert fallback.text == "not json"
    assert fallback.error.startswith("invalid JSON")
    assert not fallback.is_json


def test_text_rendering_replaces_invalid_utf8():
    assert render(b"caf\xe9", ViewMode.TEXT).text == "caf�"


def test_view_mode_parse_and_labels():
    assert ViewMode.parse("json") is ViewMode.JSON
    assert ViewMode.parse(" HEX ") is ViewMode.HEX
    assert str(ViewMode.AUTO) == "Auto"
    with pytest.raises(ValueError):
        ViewMode.parse("yaml")


def test_highlight_json_classifies_tokens():
    frags = highlight_json('{"name": "x", "n": -1.5e3, "ok": true, "nil": null}')
    styled = [(s, t) for s, t in frags if s]
    assert (BRACKET, "{") in styled
    assert (KEY, '"name"') in styled
    assert (STRING, '"x"') in styled
    assert (NUMBER, "-1.5e3") in styled
    assert (BOOLEAN, "true") in styled
    assert (NULL, "null") in styled
    assert "".join(t for _, t in frags) == '{"name": "x", "n": -1.5e3, "ok": true, "nil": null}'


def test_highlight_handles_escaped_quotes():
    frags = highlight_json(r'{"say": "he said \"hi\""}')
    assert (STRING, r'"he said \"hi\""') in frags


def test_split_lines():
    lines = split_lines(highlight_json('{\n  "a": 1\n}'))
    assert len(lines) == 3
    assert lines[0] == [(BRACKET, "{")]
    assert (KEY, '"a"') in lines[1]
    assert lines[2] == [(BRACKET, "}")]


@pytest.mark.parametrize(
    "doc",
    [
        b'{"a":1}',
        b'[1, 2.5, -3e2, "x", true, false, null]',
        b'{"nested": {"list": [{"k": "v"}, []], "empty": {}}, "s": "caf\xc3\xa9 \\"q\\""}',
        b"  \n[]",
    ],
)
def test_format_json_preserves_the_document(doc):
    assert json.loads(format_json(doc)) == json.loads(doc)


DEEP_JSON = b"[" * 100000 + b"]" * 100000


def test_deeply_nested_json_is_classified_without_crashing():
    assert detect_type(DEEP_JSON) is DataType.TEXT
    assert detect_type(DEEP_JSON) is detect_type(DEEP_JSON)
    with pytest.raises(FormatError):
        format_json(DEEP_JSON)

    auto = render(DEEP_JSON, ViewMode.AUTO)
    assert auto.data_type is DataType.TEXT
    assert auto.text.startswith("[[[")

    forced = render(DEEP_JSON, ViewMode.JSON)
    assert forced.error
    assert forced.text.startswith("[[[")
