"""Readers and writers for descriptor files.

Three formats are understood, picked by file suffix:

* ``.js`` / ``.cjs``: an ecosystem module, ``module.exports = { apps: [...] };``
* ``.json``
* ``.yaml`` / ``.yml``

The ecosystem module reader does not evaluate JavaScript. It removes comments,
rewrites every string literal and key as a double-quoted string and hands the
exported object literal to PyYAML, whose flow syntax accepts trailing commas.
Bare values other than numbers, true, false and null are rejected, so
expressions such as process.env.X never load as strings.
"""

import json
import logging
import os
import re
from typing import Any, Dict, List, Tuple

import yaml

from ecosystem.config import DescriptorSet
from ecosystem.exceptions import DescriptorError

logger = logging.getLogger(__name__)

JS = 'js'
JSON = 'json'
YAML = 'yaml'
FORMATS = (JS, JSON, YAML)

_SUFFIXES = {
    '.js': JS,
    '.cjs': JS,
    '.json': JSON,
    '.yaml': YAML,
    '.yml': YAML,
}

_EXPORT_RE = re.compile(r'^\s*module\.exports\s*=\s*(.*?)\s*;?\s*$', re.DOTALL)
_IDENTIFIER_RE = re.compile(r'^[A-Za-z_$][A-Za-z0-9_$]*$')
_TOKEN_RE = re.compile(r'[A-Za-z0-9_$.+\-]+')
_NUMBER_RE = re.compile(r'^[+-]?(?:0|[1-9]\d*)(?:\.\d+)?(?:[eE][+-]?\d+)?$')
_SPACE_RE = re.compile(r'\s*')
_EXPORT_TARGET = 'module.exports'
_SIMPLE_ESCAPES = {
    'n': '\n',
    't': '\t',
    'r': '\r',
    'b': '\b',
    'f': '\f',
    'v': '\v',
    '0': '\0',
}
_INDENT = '    '


def format_for_path(path: str) -> str:
    """Return the descriptor format for a file path.

    Raises:
        DescriptorError: If the suffix is not a known descriptor format
    """
    suffix = os.path.splitext(path)[1].lower()
    if suffix not in _SUFFIXES:
        raise DescriptorError(
            f"Unsupported descriptor file type '{suffix}': {path}"
        )
    return _SUFFIXES[suffix]


def _join_chars(chars: List[str], start: int) -> str:
    """Join decoded characters, combining UTF-16 surrogate pairs."""
    try:
        return ''.join(chars).encode(
            'utf-16-le', 'surrogatepass'
        ).decode('utf-16-le')
    except UnicodeDecodeError as e:
        raise DescriptorError(
            f"Unpaired surrogate in string literal at offset {start}"
        ) from e


def _read_js_string(text: str, start: int) -> Tuple[str, int]:
    """Decode the string literal opening at text[start].

    Returns:
        Decoded value and the index just past the closing quote
    """
    quote = text[start]
    chars: List[str] = []
    i = start + 1
    while i < len(text):
        ch = text[i]
        if ch == quote:
            return _join_chars(chars, start), i + 1
        if ch == '\n':
            break
        if ch != '\\':
            chars.append(ch)
            i += 1
            continue

        i += 1
        if i >= len(text):
            break
        esc = text[i]
        if esc == 'u' and re.match(r'[0-9a-fA-F]{4}', text[i + 1:i + 5]):
            chars.append(chr(int(text[i + 1:i + 5], 16)))
            i += 5
        elif esc == 'x' and re.match(r'[0-9a-fA-F]{2}', text[i + 1:i + 3]):
            chars.append(chr(int(text[i + 1:i + 3], 16)))
            i += 3
        elif esc == '\n':
            # line continuation
            i += 1
        else:
            chars.append(_SIMPLE_ESCAPES.get(esc, esc))
            i += 1
    raise DescriptorError(f"Unterminated string literal at offset {start}")


def _yaml_quote(value: str) -> str:
    """Quote a string for a YAML flow scalar, escaping unprintable characters."""
    quoted = json.dumps(value, ensure_ascii=False)
    return ''.join(
        ch if ch.isprintable() else (
            f'\\u{ord(ch):04x}' if ord(ch) <= 0xFFFF else f'\\U{ord(ch):08x}'
        )
        for ch in quoted
    )


def _render_number(token: str) -> str:
    if not any(c in token for c in '.eE'):
        return str(int(token))
    value = float(token)
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


def _convert_token(token: str, next_char: str, depth: int) -> str:
    """Return the YAML text for a bare word, or raise if it is not a literal.

    Keys are quoted so YAML never reads them as booleans. Values may only be
    numbers, true, false or null.
    """
    if depth == 0:
        if token == _EXPORT_TARGET and next_char == '=':
            return token
    elif next_char == ':':
        if _IDENTIFIER_RE.match(token):
            return _yaml_quote(token)
    elif token in ('true', 'false', 'null'):
        return token
    elif _NUMBER_RE.match(token):
        return _render_number(token)
    raise DescriptorError(
        f"Unsupported expression '{token}': values must be string, number, "
        "boolean or null literals"
    )


def _normalize_js(text: str) -> str:
    """Strip comments and requote strings so PyYAML can read the literal."""
    out: List[str] = []
    depth = 0
    i = 0
    while i < len(text):
        ch = text[i]
        if ch in ('"', "'"):
            value, i = _read_js_string(text, i)
            out.append(_yaml_quote(value))
        elif ch == '`':
            raise DescriptorError(
                f"Template literals are not supported (offset {i})"
            )
        elif text.startswith('//', i):
            end = text.find('\n', i)
            i = len(text) if end == -1 else end
        elif text.startswith('/*', i):
            end = text.find('*/', i + 2)
            if end == -1:
                raise DescriptorError(f"Unterminated comment at offset {i}")
            i = end + 2
            out.append(' ')
        elif _TOKEN_RE.match(text, i):
            token = _TOKEN_RE.match(text, i).group(0)
            i += len(token)
            j = _SPACE_RE.match(text, i).end()
            next_char = text[j:j + 1]
            out.append(_convert_token(token, next_char, depth))
        elif ch == ':':
            out.append(': ')
            i += 1
        elif ch in '{[' or ch in '}]' or ch == ',' or ch.isspace():
            if ch in '{[':
                depth += 1
            elif ch in '}]':
                depth -= 1
            out.append(ch)
            i += 1
        elif ch in '=;' and depth == 0:
            out.append(ch)
            i += 1
        else:
            raise DescriptorError(
                f"Unexpected character {ch!r} at offset {i}"
            )
    return ''.join(out)


def _parse_js(text: str) -> Any:
    body = _normalize_js(text)
    match = _EXPORT_RE.match(body)
    if not match:
        raise DescriptorError(
            "Ecosystem file must assign an object to module.exports"
        )
    literal = match.group(1)
    if not literal.startswith('{') or not literal.endswith('}'):
        raise DescriptorError("module.exports must be an object literal")
    try:
        return yaml.safe_load(literal)
    except yaml.YAMLError as e:
        raise DescriptorError(f"Invalid object literal: {e}") from e


def _render_js_key(key: str) -> str:
    if _IDENTIFIER_RE.match(key):
        return key
    return json.dumps(key)


def _render_js_string(value: str, double: bool = False) -> str:
    if double or "'" in value or '\\' in value or not value.isprintable():
        return json.dumps(value)
    return f"'{value}'"


def _render_js(value: Any, depth: int, key: str = '') -> str:
    pad = _INDENT * depth
    inner = _INDENT * (depth + 1)
    if isinstance(value, dict):
        lines = ['{']
        for k, v in value.items():
            lines.append(
                f"{inner}{_render_js_key(k)}: {_render_js(v, depth + 1, k)},"
            )
        lines.append(pad + '}')
        return '\n'.join(lines)
    if isinstance(value, list):
        lines = ['[']
        for item in value:
            lines.append(f"{inner}{_render_js(item, depth + 1)},")
        lines.append(pad + ']')
        return '\n'.join(lines)
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if value is None:
        return 'null'
    if isinstance(value, (int, float)):
        return repr(value)
    return _render_js_string(str(value), double=(key == 'exec_mode'))


def loads(text: str, fmt: str) -> DescriptorSet:
    """Parse descriptor text.

    Args:
        text: File contents
        fmt: One of FORMATS

    Returns:
        Validated DescriptorSet

    Raises:
        DescriptorError: If the text cannot be parsed or is invalid
    """
    if fmt == JS:
        data = _parse_js(text)
    elif fmt == JSON:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise DescriptorError(f"Invalid JSON: {e}") from e
    elif fmt == YAML:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise DescriptorError(f"Invalid YAML: {e}") from e
    else:
        raise DescriptorError(f"Unknown descriptor format: {fmt}")
    return DescriptorSet.from_dict(data)


def dumps(descriptor_set: DescriptorSet, fmt: str) -> str:
    """Serialize a descriptor set.

    Args:
        descriptor_set: Descriptor set to write
        fmt: One of FORMATS

    Returns:
        File contents ending in a newline
    """
    data: Dict[str, Any] = descriptor_set.to_dict()
    if fmt == JS:
        return f"module.exports = {_render_js(data, 0)};\n"
    if fmt == JSON:
        return json.dumps(data, indent=2) + '\n'
    if fmt == YAML:
        return yaml.safe_dump(data, sort_keys=False, default_flow_style=False,
                              allow_unicode=True)
    raise DescriptorError(f"Unknown descriptor format: {fmt}")


def load(path: str) -> DescriptorSet:
    """Load and validate a descriptor file.

    Raises:
        FileNotFoundError: If the file does not exist
        DescriptorError: If the file is invalid
    """
    fmt = format_for_path(path)
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Descriptor file not found: {path}")

    with open(path, 'r', encoding='utf-8') as f:
        text = f.read()

    try:
        descriptor_set = loads(text, fmt)
    except DescriptorError as e:
        raise DescriptorError(f"{path}: {e}") from e
    logger.debug("Loaded %d apps from %s", len(descriptor_set), path)
    return descriptor_set


def dump(descriptor_set: DescriptorSet, path: str) -> None:
    """Write a descriptor set to a file, creating parent directories."""
    fmt = format_for_path(path)
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        f.write(dumps(descriptor_set, fmt))
    logger.info("Wrote %s (%d apps)", path, len(descriptor_set))
