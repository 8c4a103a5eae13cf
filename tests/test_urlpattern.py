import pytest

from pagemarker.urlpattern import MalformedPattern, compile_pattern, matches, matches_pattern


@pytest.mark.parametrize(
    "pattern, url, expected",
    [
        ("https://example.com/*", "https://example.com/docs/a", True),
        ("https://example.com/*", "https://example.org/docs/a", False),
        ("https://example.com", "https://example.com/anything?x=1", True),
        ("https://example.com/", "https://example.com", True),
        ("https://*.example.com/*", "https://news.example.com/today", True),
        ("https://*.example.com/*", "https://example.com/today", False),
        ("*://example.com/*", "http://example.com/a", True),
        ("https://Example.COM/*", "https://example.com/a", True),
        ("https://example.com:8443/*", "https://example.com:8443/a", True),
        ("https://example.com:8443/*", "https://example.com/a", False),
        ("https://example.com/*", "https://example.com:443/a", True),
        ("https://example.com/users/:id", "https://example.com/users/42", True),
        ("https://example.com/users/:id", "https://example.com/users/42/edit", False),
        ("https://example.com/search?q=*", "https://example.com/search?q=cats", True),
        ("https://example.com/search?q=*", "https://example.com/search", False),
        ("https://example.com/a#top", "https://example.com/a#top", True),
        ("https://example.com/a#top", "https://example.com/a#bottom", False),
    ],
)
def test_structured_patterns(pattern, url, expected):
    assert matches_pattern(url, pattern) is expected


@pytest.mark.parametrize(
    "pattern, url, expected",
    [
        ("https://example.com/(docs|api)/*", "https://example.com/docs/intro", True),
        ("https://example.com/(docs|api)/*", "https://example.com/api/v1", True),
        ("https://example.com/(docs|api)/*", "https://example.com/blog/post", False),
        ("https://{www.}?example.com/*", "https://example.com/a", True),
        ("https://{www.}?example.com/*", "https://www.example.com/a", True),
        ("https://{www.}?example.com/*", "https://ww.example.com/a", False),
        ("https://example.com/users/:id(\\d+)", "https://example.com/users/42", True),
        ("https://example.com/users/:id(\\d+)", "https://example.com/users/abc", False),
        ("https://example.com/books/:id?", "https://example.com/books", True),
        ("https://example.com/books/:id?", "https://example.com/books/7", True),
        ("https://example.com/books/:id?", "https://example.com/books/7/8", False),
        ("https://example.com/files/:path+", "https://example.com/files/a/b", True),
        ("https://example.com/files/:path+", "https://example.com/files", False),
        ("http{s}?://example.com/*", "http://example.com/", True),
        ("http{s}?://example.com/*", "https://example.com/", True),
        ("https://example.com/a\\+b", "https://example.com/a+b", True),
        ("https://example.com/a\\+b", "https://example.com/aab", False),
    ],
)
def test_group_syntax(pattern, url, expected):
    assert matches_pattern(url, pattern) is expected


def test_group_patterns_compile_without_fallback():
    for pattern in (
        "https://example.com/(docs|api)/*",
        "https://{www.}?example.com/*",
        "https://example.com/users/:id(\\d+)",
    ):
        compile_pattern(pattern)


@pytest.mark.parametrize(
    "pattern",
    [
        "example.com/docs",
        "*example*",
        "https://example.com/(docs/*",
        "https://example.com/()/x",
        "https://example.com/{a{b}}",
        "https://example.com/a}",
        "https://example.com/(?<x)/",
        "https://example.com/a:1",
        "https://:8080/",
        "ht tp://x.com/",
    ],
)
def test_malformed_patterns_are_rejected_by_compiler(pattern):
    with pytest.raises(MalformedPattern):
        compile_pattern(pattern)


def test_glob_fallback_is_anchored():
    assert matches_pattern("https://www.example.com/", "*example*") is True
    assert matches_pattern("https://example.com/", "*example") is False


def test_glob_fallback_escapes_metacharacters():
    assert matches_pattern("https://example.com/a+b/c", "*example.com/a+b*") is True
    assert matches_pattern("https://exampleXcom/aab/c", "*example.com/a+b*") is False


def test_malformed_pattern_with_star_uses_glob():
    assert matches_pattern("https://example.com/(docs/x", "https://example.com/(docs/*") is True
    assert matches_pattern("https://example.com/docs/x", "https://example.com/(docs/*") is False


def test_substring_fallback():
    assert matches_pattern("https://example.com/docs/intro", "example.com/docs") is True
    assert matches_pattern("https://example.com/docs/intro", "example.org") is False


def test_unparseable_url_never_raises():
    assert matches_pattern("http://[::1", "https://*") is False


def test_any_pattern_matches():
    patterns = ["https://other.org/*", "not a (pattern", "https://example.com/*"]
    assert matches("https://example.com/x", patterns) is True


def test_empty_pattern_list_never_matches():
    assert matches("https://example.com/x", []) is False


def test_bad_sibling_pattern_does_not_poison_rule():
    assert matches("https://example.com/x", ["https://exa(mple.com/*", "https://example.com/x"]) is True
