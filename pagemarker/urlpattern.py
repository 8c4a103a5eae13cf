"""
URL pattern matching for rule scoping.

Supported pattern formats
-------------------------
https://example.com/docs/*     – structured pattern; each URL component
                                 (scheme, host, port, path, search, hash) is
                                 matched on its own
*://*.example.com/*            – wildcards in scheme and host work the same way
*example*                      – not a structured pattern: anchored glob
example.com/docs               – not a structured pattern, no ``*``: substring

Structured pattern syntax
-------------------------
*                 any run of characters
:name             one host label / path segment
:name(\\d+)       named group constrained by a regexp
(docs|api)        regexp group
{www.}?           group; ``?``, ``*`` or ``+`` after any group is a modifier
\\x               literal ``x``

In the path, a modified group directly after ``/`` takes the slash with it, so
``/books/:id?`` matches both ``/books`` and ``/books/7``.

Malformed structured patterns never raise; they drop to the glob / substring
fallback, and a pattern that cannot be evaluated at all is non-matching.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, NamedTuple, Optional
from urllib.parse import SplitResult, urlsplit

log = logging.getLogger(__name__)

_NAME_RE = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")
_SCHEME_CHARS = set("+-.")

_DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443, "ftp": 21}


class MalformedPattern(ValueError):
    """Raised while compiling a pattern that is not a structured URL pattern."""


class _Token(NamedTuple):
    kind: str  # char, escaped, name, regexp, asterisk, modifier, open, close
    value: str


_COLON = _Token("char", ":")
_SLASH = _Token("char", "/")
_HASH = _Token("char", "#")
_AT = _Token("char", "@")
_QUESTION = _Token("modifier", "?")
# a modifier token right after one of these modifies it
_MODIFIABLE = frozenset({"name", "regexp", "close", "asterisk"})


@dataclass(frozen=True, slots=True)
class CompiledPattern:
    scheme: re.Pattern[str]
    username: re.Pattern[str]
    password: re.Pattern[str]
    host: re.Pattern[str]
    port: re.Pattern[str]
    path: re.Pattern[str]
    search: re.Pattern[str]
    hash: re.Pattern[str]

    def test(self, url: str) -> bool:
        parts = _split_url(url)
        if parts is None:
            return False
        scheme, username, password, host, port, path, search, fragment = parts
        return bool(
            self.scheme.fullmatch(scheme)
            and self.username.fullmatch(username)
            and self.password.fullmatch(password)
            and self.host.fullmatch(host)
            and self.port.fullmatch(port)
            and self.path.fullmatch(path)
            and self.search.fullmatch(search)
            and self.hash.fullmatch(fragment)
        )


_ANY = re.compile(r".*", re.DOTALL)


# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------


def _read_regexp(pattern: str, start: int) -> tuple[str, int]:
    """Read a balanced ``( ... )`` starting at *start*; return body and end."""
    depth = 1
    pos = start + 1
    while pos < len(pattern):
        ch = pattern[pos]
        if ch == "\\":
            pos += 2
            continue
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                body = pattern[start + 1:pos]
                if not body:
                    raise MalformedPattern("empty regexp group")
                return body, pos + 1
        pos += 1
    raise MalformedPattern("unterminated regexp group")


def _tokenize(pattern: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    while pos < len(pattern):
        ch = pattern[pos]
        if ch.isspace():
            raise MalformedPattern("whitespace in pattern")
        if ch == "\\":
            if pos + 1 >= len(pattern):
                raise MalformedPattern("trailing backslash")
            tokens.append(_Token("escaped", pattern[pos + 1]))
            pos += 2
        elif ch == "*":
            tokens.append(_Token("asterisk", ch))
            pos += 1
        elif ch in "?+":
            tokens.append(_Token("modifier", ch))
            pos += 1
        elif ch == "{":
            tokens.append(_Token("open", ch))
            pos += 1
        elif ch == "}":
            tokens.append(_Token("close", ch))
            pos += 1
        elif ch == "(":
            body, pos = _read_regexp(pattern, pos)
            tokens.append(_Token("regexp", body))
        elif ch == ")":
            raise MalformedPattern("unbalanced ')'")
        else:
            m = _NAME_RE.match(pattern, pos + 1) if ch == ":" else None
            if m is not None:
                tokens.append(_Token("name", m.group()))
                pos = m.end()
            else:
                tokens.append(_Token("char", ch))
                pos += 1
    return tokens


def _group_depths(tokens: list[_Token]) -> list[int]:
    """Brace depth at each token; ``{}`` groups may not nest."""
    depths: list[int] = []
    depth = 0
    for tok in tokens:
        if tok.kind == "open":
            if depth:
                raise MalformedPattern("nested '{' group")
            depths.append(depth)
            depth = 1
        elif tok.kind == "close":
            if not depth:
                raise MalformedPattern("unbalanced '}'")
            depth = 0
            depths.append(depth)
        else:
            depths.append(depth)
    if depth:
        raise MalformedPattern("unterminated '{' group")
    return depths


# ---------------------------------------------------------------------------
# Splitting into components
# ---------------------------------------------------------------------------


def _is_search_prefix(tokens: list[_Token], i: int) -> bool:
    if tokens[i] != _QUESTION:
        return False
    return i == 0 or tokens[i - 1].kind not in _MODIFIABLE


def _split_pattern(pattern: str) -> dict[str, Optional[list[_Token]]]:
    tokens = _tokenize(pattern)
    depths = _group_depths(tokens)

    def top(i: int) -> bool:
        return depths[i] == 0

    scheme_end = next(
        (
            i
            for i in range(len(tokens))
            if top(i) and tokens[i:i + 3] == [_COLON, _SLASH, _SLASH]
        ),
        None,
    )
    if not scheme_end:
        raise MalformedPattern("missing or invalid scheme")
    scheme = tokens[:scheme_end]
    for tok in scheme:
        if tok.kind in ("char", "escaped") and not (tok.value.isalnum() or tok.value in _SCHEME_CHARS):
            raise MalformedPattern("missing or invalid scheme")

    # authority runs up to the first path / search / hash delimiter
    start = scheme_end + 3
    cut = next(
        (
            i
            for i in range(start, len(tokens))
            if top(i) and (tokens[i] in (_SLASH, _HASH) or _is_search_prefix(tokens, i))
        ),
        len(tokens),
    )
    authority = list(range(start, cut))

    username: Optional[list[_Token]] = None
    password: Optional[list[_Token]] = None
    at = [i for i in authority if top(i) and tokens[i] == _AT]
    if at:
        userinfo = [i for i in authority if i < at[-1]]
        authority = [i for i in authority if i > at[-1]]
        colon = next((i for i in userinfo if top(i) and tokens[i] == _COLON), None)
        if colon is None:
            username = [tokens[i] for i in userinfo]
        else:
            username = [tokens[i] for i in userinfo if i < colon]
            password = [tokens[i] for i in userinfo if i > colon]

    host = [tokens[i] for i in authority]
    port: Optional[list[_Token]] = None
    colons = [n for n, i in enumerate(authority) if top(i) and tokens[i] == _COLON]
    if colons:
        candidate = host[colons[-1] + 1:]
        if candidate == [_Token("asterisk", "*")] or (
            candidate and all(t.kind == "char" and t.value.isdigit() for t in candidate)
        ):
            host, port = host[:colons[-1]], candidate
    if not host:
        raise MalformedPattern("missing host")

    tail = list(range(cut, len(tokens)))
    fragment: Optional[list[_Token]] = None
    hash_at = next((i for i in tail if top(i) and tokens[i] == _HASH), None)
    if hash_at is not None:
        fragment = tokens[hash_at + 1:]
        tail = [i for i in tail if i < hash_at]
    search: Optional[list[_Token]] = None
    search_at = next((i for i in tail if top(i) and _is_search_prefix(tokens, i)), None)
    if search_at is not None:
        search = [tokens[i] for i in tail if i > search_at]
        tail = [i for i in tail if i < search_at]
    path = [tokens[i] for i in tail] or [_SLASH, _Token("asterisk", "*")]

    return {
        "scheme": scheme,
        "username": username,
        "password": password,
        "host": host,
        "port": port,
        "path": path,
        "search": search,
        "hash": fragment,
    }


# ---------------------------------------------------------------------------
# Component compilation
# ---------------------------------------------------------------------------


def _translate(
    tokens: list[_Token], segment: str, prefix: Optional[str], allow_colon: bool
) -> str:
    out: list[str] = []
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        if tok.kind == "open":
            close = next(j for j in range(i + 1, len(tokens)) if tokens[j].kind == "close")
            part = "(?:" + _translate(tokens[i + 1:close], segment, None, allow_colon) + ")"
            i = close + 1
        elif tok.kind == "name":
            if i + 1 < len(tokens) and tokens[i + 1].kind == "regexp":
                part = "(?:" + tokens[i + 1].value + ")"
                i += 2
            else:
                part = "(?:" + segment + ")"
                i += 1
        elif tok.kind == "regexp":
            part = "(?:" + tok.value + ")"
            i += 1
        elif tok.kind == "asterisk":
            part = "(?:.*)"
            i += 1
        elif tok == _COLON and not allow_colon:
            raise MalformedPattern("':' without a group name")
        else:
            # chars, escapes and stray modifiers are literals
            out.append(re.escape(tok.value))
            i += 1
            continue

        modifier = ""
        if i < len(tokens) and tokens[i].kind in ("modifier", "asterisk"):
            modifier = tokens[i].value
            i += 1
        if modifier and prefix and tok.kind != "open" and out and out[-1] == re.escape(prefix):
            out.pop()
            part = "(?:" + re.escape(prefix) + part + ")"
        out.append(part + modifier)
    return "".join(out)


def _compile_component(
    tokens: Optional[list[_Token]],
    segment: str,
    *,
    prefix: Optional[str] = None,
    ignore_case: bool = False,
) -> re.Pattern[str]:
    """Translate one component into a regex; ``None`` means unconstrained."""
    if tokens is None:
        return _ANY
    allow_colon = bool(tokens) and tokens[0] == _Token("char", "[")
    source = _translate(tokens, segment, prefix, allow_colon)
    flags = re.DOTALL | (re.IGNORECASE if ignore_case else 0)
    try:
        return re.compile(source, flags)
    except re.error as exc:
        raise MalformedPattern(f"bad regexp group: {exc}") from exc


@lru_cache(maxsize=512)
def compile_pattern(pattern: str) -> CompiledPattern:
    """Compile a structured URL pattern; raises MalformedPattern otherwise."""
    parts = _split_pattern(pattern)
    return CompiledPattern(
        scheme=_compile_component(parts["scheme"], "[^:]+", ignore_case=True),
        username=_compile_component(parts["username"], "[^:@]+"),
        password=_compile_component(parts["password"], "[^@]+"),
        host=_compile_component(parts["host"], r"[^.]+", ignore_case=True),
        port=_compile_component(parts["port"], r"\d+"),
        path=_compile_component(parts["path"], "[^/]+", prefix="/"),
        search=_compile_component(parts["search"], "[^&]+"),
        hash=_compile_component(parts["hash"], ".+"),
    )


@lru_cache(maxsize=512)
def _compile_glob(pattern: str) -> re.Pattern[str]:
    return re.compile("^" + re.escape(pattern).replace(r"\*", ".*") + "$", re.DOTALL)


def _split_url(url: str) -> Optional[tuple[str, str, str, str, str, str, str, str]]:
    try:
        parsed: SplitResult = urlsplit(url)
        port = parsed.port
    except ValueError:
        return None
    scheme = parsed.scheme.lower()
    if port is None or port == _DEFAULT_PORTS.get(scheme):
        port_str = ""
    else:
        port_str = str(port)
    path = parsed.path or ("/" if parsed.netloc else "")
    return (
        scheme,
        parsed.username or "",
        parsed.password or "",
        parsed.hostname or "",
        port_str,
        path,
        parsed.query,
        parsed.fragment,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def matches_pattern(url: str, pattern: str) -> bool:
    """True if *url* matches the single *pattern*; never raises."""
    try:
        return compile_pattern(pattern).test(url)
    except MalformedPattern:
        pass
    except Exception:
        log.exception("Unexpected error evaluating URL pattern %r", pattern)
        return False

    try:
        if "*" in pattern:
            return _compile_glob(pattern).match(url) is not None
        return pattern in url
    except re.error:
        log.debug("Unusable URL pattern %r", pattern)
        return False


def matches(url: str, patterns: Iterable[str]) -> bool:
    """True if *url* matches any of *patterns*; an empty list never matches."""
    return any(matches_pattern(url, p) for p in patterns if isinstance(p, str))
