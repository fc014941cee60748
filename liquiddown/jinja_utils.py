"""Jinja2 utilities for liquiddown -- a lenient environment that reads Liquid.

Liquid and Jinja share their delimiters and most of their expression syntax.
The differences that matter for parsing single constructs are handled here:

- Liquid-only standalone tags (``assign``, ``echo``, ``cycle``, ...) are
  taught to the parser by ``LiquidTagsExtension``.
- Liquid ``include`` takes render-style arguments, which Jinja's own
  ``include`` rejects; the preprocess hook routes it to the extension.
- A ``{% liquid %}`` tag holds one tag per line without delimiters; the
  preprocess hook gives each line its own delimiters.
- Liquid filter arguments (``| truncate: 20, "..."``) are rewritten to Jinja
  call syntax (``| truncate(20, "...")``) by the extension's preprocess hook.

Only ``Environment.parse`` is ever used: nothing is compiled or rendered, so
unknown filters and undefined variables never raise.
"""

import logging
import re
from typing import List, Optional

from jinja2 import ChainableUndefined, Environment, nodes
from jinja2.ext import Extension

logger = logging.getLogger(__name__)

# a single {{ ... }} or {% ... %} construct, including whitespace control
CONSTRUCT_PATTERN = re.compile(r"(\{\{-?|\{%-?)(.*?)(-?\}\}|-?%\})", re.DOTALL)

_FILTER_WITH_ARGS = re.compile(r"\|\s*(\w+)\s*:")
_KEYWORD_ARG = re.compile(r"^\s*(\w+)\s*:\s*(.+?)\s*$", re.DOTALL)
_QUOTES = "'\""

# {% liquid ... %}: group 2 is the body, one tag per line
_LIQUID_TAG = re.compile(r"\{%(-?)\s*liquid\b(.*?)(-?)%\}", re.DOTALL)
_INCLUDE_TAG = re.compile(r"(\{%-?\s*)include\b")
# Liquid block keywords spelled differently in Jinja
_LIQUID_LINE_KEYWORDS = {"elsif": "elif", "endunless": "endif"}


class SilentUndefined(ChainableUndefined):
    """Undefined that never raises: attribute access, calls and arithmetic stay undefined.

    Parsing never consults it; it only matters to callers that render with
    ``get_liquid_environment()``. ``ChainableUndefined`` already covers
    attribute and item access. The operators below are the ones it still
    fails on.
    """

    def _fail_with_undefined_error(self, *args, **kwargs):
        return self

    __add__ = __radd__ = __sub__ = __rsub__ = _fail_with_undefined_error
    __mul__ = __rmul__ = __call__ = _fail_with_undefined_error


def _scan_until(markup: str, start: int, stops: str) -> int:
    """Index of the first top-level char in ``stops`` at or after ``start``.

    Characters inside quotes or brackets are skipped. Returns ``len(markup)``
    if none is found.
    """
    quote = None
    depth = 0
    for i in range(start, len(markup)):
        ch = markup[i]
        if quote:
            if ch == quote:
                quote = None
        elif ch in _QUOTES:
            quote = ch
        elif ch in "([":
            depth += 1
        elif ch in ")]":
            depth -= 1
        elif depth <= 0 and ch in stops:
            return i
    return len(markup)


def _split_arguments(args: str) -> List[str]:
    parts = []
    pos = 0
    while pos <= len(args):
        end = _scan_until(args, pos, ",")
        part = args[pos:end].strip()
        if part:
            parts.append(part)
        pos = end + 1
    return parts


def _as_jinja_argument(arg: str) -> str:
    match = _KEYWORD_ARG.match(arg)
    if match and not match.group(1).isdigit():
        return f"{match.group(1)}={match.group(2)}"
    return arg


def translate_filter_arguments(markup: str) -> str:
    """Rewrite Liquid ``| name: a, b`` filter calls as Jinja ``| name(a, b)``.

    >>> translate_filter_arguments('title | truncate: 20, "..."')
    'title | truncate(20, "...")'
    """
    out = []
    i = 0
    quote = None
    while i < len(markup):
        ch = markup[i]
        if quote:
            out.append(ch)
            if ch == quote:
                quote = None
            i += 1
            continue
        if ch in _QUOTES:
            quote = ch
            out.append(ch)
            i += 1
            continue
        if ch == "|":
            match = _FILTER_WITH_ARGS.match(markup, i)
            if match:
                end = _scan_until(markup, match.end(), "|")
                args = _split_arguments(markup[match.end():end])
                out.append(
                    f"| {match.group(1)}({', '.join(_as_jinja_argument(a) for a in args)})"
                )
                trailing = markup[match.end():end]
                # keep the whitespace that separated this filter from the next
                out.append(trailing[len(trailing.rstrip()):])
                i = end
                continue
        out.append(ch)
        i += 1
    return "".join(out)


def _liquid_line(line: str) -> str:
    keyword, _, rest = line.partition(" ")
    if keyword == "unless":
        return f"if not ({rest.strip()})"
    return " ".join(filter(None, [_LIQUID_LINE_KEYWORDS.get(keyword, keyword), rest.strip()]))


def expand_liquid_tags(source: str) -> str:
    """Give every line of a ``{% liquid %}`` tag its own delimiters.

    The lines are wrapped in ``{% liquid %}...{% endliquid %}`` so the
    extension still sees one construct. Blank lines and ``#`` comment lines
    are dropped. ``case``/``when`` lines have no Jinja counterpart and fail
    to parse.

    >>> expand_liquid_tags("{% liquid assign x = 1 %}")
    '{% liquid %}{% assign x = 1 %}{% endliquid %}'
    """

    def _expand(match: re.Match) -> str:
        lines = [line.strip() for line in match.group(2).splitlines()]
        tags = "".join(
            f"{{% {_liquid_line(line)} %}}" for line in lines if line and not line.startswith("#")
        )
        return f"{{%{match.group(1)} liquid %}}{tags}{{% endliquid {match.group(3)}%}}"

    return _LIQUID_TAG.sub(_expand, source)


class LiquidTagsExtension(Extension):
    """Parses Liquid standalone tags that Jinja does not know.

    The produced nodes only need to describe the construct; they are never
    compiled.
    """

    tags = {
        "assign", "increment", "decrement", "echo", "cycle", "render", "layout",
        "liquid", "liquid_include",
    }

    def preprocess(self, source: str, name: Optional[str], filename: Optional[str] = None) -> str:
        def _translate(match: re.Match) -> str:
            return match.group(1) + translate_filter_arguments(match.group(2)) + match.group(3)

        source = expand_liquid_tags(source)
        # Jinja's include grammar takes precedence over extensions
        source = _INCLUDE_TAG.sub(r"\1liquid_include", source)
        return CONSTRUCT_PATTERN.sub(_translate, source)

    def parse(self, parser):
        token = next(parser.stream)
        handler = getattr(self, f"_parse_{token.value}")
        return handler(parser, token.lineno)

    def _parse_assign(self, parser, lineno):
        target = parser.parse_assign_target(name_only=True)
        parser.stream.expect("assign")
        value = parser.parse_expression()
        return nodes.Assign(target, value, lineno=lineno)

    def _parse_counter(self, parser, lineno):
        name = parser.stream.expect("name")
        return nodes.Output([nodes.Name(name.value, "load", lineno=lineno)], lineno=lineno)

    _parse_increment = _parse_counter
    _parse_decrement = _parse_counter

    def _parse_echo(self, parser, lineno):
        return nodes.Output([parser.parse_expression()], lineno=lineno)

    def _parse_cycle(self, parser, lineno):
        values = [parser.parse_expression()]
        if parser.stream.skip_if("colon"):
            # named cycle group: {% cycle 'group': 'a', 'b' %}
            values = [parser.parse_expression()]
        while parser.stream.skip_if("comma"):
            values.append(parser.parse_expression())
        return nodes.Output([nodes.Tuple(values, "load", lineno=lineno)], lineno=lineno)

    def _call(self, name, args, kwargs, lineno):
        call = nodes.Call(nodes.Name(name, "load", lineno=lineno), args, kwargs, None, None, lineno=lineno)
        return nodes.ExprStmt(call, lineno=lineno)

    def _parse_render(self, parser, lineno):
        return self._parse_partial(parser, lineno, "render")

    def _parse_liquid_include(self, parser, lineno):
        return self._parse_partial(parser, lineno, "include")

    def _parse_liquid(self, parser, lineno):
        body = parser.parse_statements(("name:endliquid",), drop_needle=True)
        return nodes.Scope(body, lineno=lineno)

    def _parse_partial(self, parser, lineno, name):
        template = parser.parse_expression()
        kwargs = []
        if parser.stream.skip_if("name:with") or parser.stream.skip_if("name:for"):
            kwargs.append(nodes.Keyword("object", parser.parse_expression(), lineno=lineno))
            if parser.stream.skip_if("name:as"):
                alias = parser.stream.expect("name")
                kwargs.append(nodes.Keyword("alias", nodes.Const(alias.value), lineno=lineno))
        while parser.stream.skip_if("comma"):
            key = parser.stream.expect("name")
            parser.stream.expect("colon")
            kwargs.append(nodes.Keyword(key.value, parser.parse_expression(), lineno=lineno))
        return self._call(name, [template], kwargs, lineno)

    def _parse_layout(self, parser, lineno):
        return self._call("layout", [parser.parse_expression()], [], lineno)


_cached_environment = None


def get_liquid_environment() -> Environment:
    """Shared lenient environment used to parse single Liquid constructs."""
    global _cached_environment
    if _cached_environment is None:
        _cached_environment = Environment(
            undefined=SilentUndefined,
            extensions=[LiquidTagsExtension, "jinja2.ext.loopcontrols", "jinja2.ext.do"],
        )
    return _cached_environment


def parse_construct(source: str) -> nodes.Template:
    """Parse one construct (or any snippet) into a Jinja AST.

    Raises whatever the Jinja parser raises (usually ``TemplateSyntaxError``).
    """
    return get_liquid_environment().parse(source)
