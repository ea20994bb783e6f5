"""Tests for URL normalization and link categorization."""

import pytest

from sitecrawl.url_normalizer import (
    NormalizeOptions,
    categorize_links,
    deduplicate_urls,
    get_relative_path,
    is_internal_link,
    is_same_page,
    is_within_path,
    normalize_url,
    url_to_file_path,
)


class TestNormalizeUrl:
    """Test cases for normalize_url."""

    def test_lowercases_host_strips_fragment_and_trailing_slash(self):
        """Test the default canonical form."""
        assert normalize_url("https://Example.COM/about/#team") == "https://example.com/about"

    def test_root_keeps_single_slash(self):
        """Test the site root normalizes to a single slash."""
        assert normalize_url("https://example.com") == "https://example.com/"
        assert normalize_url("https://example.com/") == "https://example.com/"

    def test_strips_tracking_params_and_sorts_query(self):
        """Test tracking params are dropped and the rest sorted by key."""
        url = "https://example.com/p?utm_source=news&b=2&fbclid=x&a=1"
        assert normalize_url(url) == "https://example.com/p?a=1&b=2"

    def test_removes_default_index_file(self):
        """Test index documents collapse to their directory."""
        assert normalize_url("https://example.com/index.html") == "https://example.com/"
        assert normalize_url("https://example.com/docs/index.php") == "https://example.com/docs"

    def test_removes_default_port(self):
        """Test :443 on https and :80 on http are dropped."""
        assert normalize_url("https://example.com:443/a") == "https://example.com/a"
        assert normalize_url("http://example.com:80/a") == "http://example.com/a"
        assert normalize_url("http://example.com:8080/a") == "http://example.com:8080/a"

    def test_resolves_dot_segments(self):
        """Test '.' and '..' path segments are resolved."""
        assert normalize_url("https://example.com/a/./b/../c") == "https://example.com/a/c"

    def test_path_case_preserved_by_default(self):
        """Test the path keeps its case unless lowercase_path is set."""
        assert normalize_url("https://example.com/About") == "https://example.com/About"
        options = NormalizeOptions(lowercase_path=True)
        assert normalize_url("https://example.com/About", options) == "https://example.com/about"

    def test_remove_all_query_params(self):
        """Test remove_all_query_params drops the whole query."""
        options = NormalizeOptions(remove_all_query_params=True)
        assert normalize_url("https://example.com/p?a=1&b=2", options) == "https://example.com/p"

    def test_custom_params_to_remove(self):
        """Test custom parameter names are stripped."""
        options = NormalizeOptions(custom_params_to_remove=["session"])
        assert normalize_url("https://example.com/p?session=abc&id=1", options) == "https://example.com/p?id=1"

    def test_keep_fragment_when_disabled(self):
        """Test fragments survive when remove_fragment is off."""
        options = NormalizeOptions(remove_fragment=False)
        assert normalize_url("https://example.com/p#top", options) == "https://example.com/p#top"

    @pytest.mark.parametrize("url", [
        "https://Example.com/docs/index.html/",
        "https://example.com/a/b/../c/?utm_campaign=x&z=1&y=2#frag",
        "https://example.com:443/index.htm",
        "http://example.com/path//",
    ])
    def test_idempotent(self, url):
        """Test normalizing twice gives the same result as once."""
        once = normalize_url(url)
        assert normalize_url(once) == once

    @pytest.mark.parametrize("url", ["", "/relative/path", "not a url", "mailto:a@example.com"])
    def test_unparseable_input_returned_unchanged(self, url):
        """Test non-absolute input is returned as-is instead of raising."""
        assert normalize_url(url) == url

    def test_is_same_page(self):
        """Test URLs differing only in cosmetic parts are the same page."""
        assert is_same_page("https://example.com/about", "https://EXAMPLE.com/about/#x")
        assert not is_same_page("https://example.com/about", "https://example.com/contact")


class TestLinkChecks:
    """Test cases for internal link and path checks."""

    def test_relative_link_is_internal(self):
        """Test relative links resolve against the base and count as internal."""
        assert is_internal_link("/about", "https://example.com/")
        assert is_internal_link("https://EXAMPLE.com/x", "https://example.com/")

    def test_other_host_is_external(self):
        """Test a different hostname (subdomains included) is external."""
        assert not is_internal_link("https://other.com/", "https://example.com/")
        assert not is_internal_link("https://blog.example.com/", "https://example.com/")

    def test_unparseable_base_is_not_internal(self):
        """Test malformed input yields False rather than raising."""
        assert not is_internal_link("/about", "not a url")

    def test_is_within_path(self):
        """Test prefix matching on the resolved path."""
        base = "https://example.com/docs/"
        assert is_within_path("/docs/intro", base, "/docs")
        assert not is_within_path("/blog/post", base, "/docs")
        assert not is_within_path("https://other.com/docs/intro", base, "/docs")


class TestPaths:
    """Test cases for relative paths and output file paths."""

    def test_relative_path_up_and_across(self):
        """Test a sibling directory is reached with '../'."""
        assert get_relative_path("https://example.com/blog/post", "https://example.com/about") == "../about"

    def test_relative_path_same_directory(self):
        """Test pages in the same directory link by name."""
        assert get_relative_path("https://example.com/a", "https://example.com/b") == "b"

    def test_relative_path_root_to_root(self):
        """Test an empty relative path becomes '.'."""
        assert get_relative_path("https://example.com/", "https://example.com/") == "."

    def test_relative_path_other_origin(self):
        """Test a different origin returns the absolute target."""
        target = "https://other.com/page"
        assert get_relative_path("https://example.com/a", target) == target

    def test_url_to_file_path_root(self):
        """Test the root maps to 'index'."""
        assert url_to_file_path("https://example.com/", "https://example.com/") == "index"

    def test_url_to_file_path_strips_extension_and_slash(self):
        """Test page extensions and trailing slashes are dropped."""
        base = "https://example.com/"
        assert url_to_file_path("https://example.com/blog/post.html", base) == "blog/post"
        assert url_to_file_path("https://example.com/docs/", base) == "docs"

    def test_url_to_file_path_replaces_unsafe_characters(self):
        """Test characters invalid in file names are replaced."""
        base = "https://example.com/"
        assert url_to_file_path('https://example.com/a:b|c', base) == "a_b_c"

    def test_url_to_file_path_fallback_hash(self):
        """Test unparseable input falls back to a hashed name."""
        path = url_to_file_path("not a url", "https://example.com/")
        assert path.startswith("page_")
        assert len(path) == len("page_") + 12


class TestCategorizeAndDedupe:
    """Test cases for categorize_links and deduplicate_urls."""

    def test_categorize_links(self):
        """Test links are bucketed and pseudo-schemes dropped."""
        links = [
            "/about",
            "https://other.com/x",
            "/img/logo.png",
            "#top",
            "mailto:hi@example.com",
            "javascript:void(0)",
            "tel:+100",
        ]
        result = categorize_links(links, "https://example.com/")

        assert result.internal == ["https://example.com/about"]
        assert result.external == ["https://other.com/x"]
        assert result.assets == ["https://example.com/img/logo.png"]
        assert result.anchors == ["#top"]

    def test_deduplicate_keeps_first_original(self):
        """Test duplicates by normalized form collapse to the first occurrence."""
        urls = [
            "https://example.com/a",
            "https://example.com/a/",
            "https://example.com/a#section",
            "https://example.com/b",
        ]
        assert deduplicate_urls(urls) == ["https://example.com/a", "https://example.com/b"]

    def test_deduplicate_bounds(self):
        """Test output size never exceeds input and entries are unique when normalized."""
        urls = ["https://example.com/?utm_source=a", "https://example.com", "https://example.com/x"]
        result = deduplicate_urls(urls)

        assert len(result) <= len(urls)
        normalized = [normalize_url(u) for u in result]
        assert len(normalized) == len(set(normalized))
