from bs4 import BeautifulSoup, Comment

from gitbook_mdx.sanitizer import sanitize_document


def _sanitized(html: str) -> BeautifulSoup:
    soup = BeautifulSoup(html, "html.parser")
    sanitize_document(soup)
    return soup


def test_executable_and_import_elements_are_removed():
    soup = _sanitized(
        """
        <html><head><style>p{}</style><link rel="import" href="x.html">
        <link rel="stylesheet" href="site.css"></head>
        <body><script>track()</script><noscript>enable js</noscript><main><p>Body</p></main></body></html>
        """
    )
    assert soup.find("script") is None
    assert soup.find("style") is None
    assert soup.find("noscript") is None
    assert [link["href"] for link in soup.find_all("link")] == ["site.css"]
    assert soup.main.get_text(strip=True) == "Body"


def test_plugin_selectors_are_removed():
    soup = _sanitized(
        """
        <body><main><p>Keep</p>
        <div class="gitbook-plugin-pageview-count">12</div>
        <ins class="adsbygoogle"></ins>
        <span id="pageview">3</span>
        <div class="page-footer"><span class="count">99</span></div>
        </main></body>
        """
    )
    assert soup.select_one(".gitbook-plugin-pageview-count") is None
    assert soup.select_one(".adsbygoogle") is None
    assert soup.select_one("#pageview") is None
    assert soup.select_one(".page-footer .count") is None
    assert "Keep" in soup.get_text()


def test_tracking_and_sourceless_iframes_are_removed():
    soup = _sanitized(
        """
        <body><main>
        <iframe></iframe>
        <iframe src="https://www.Google-Analytics.com/frame"></iframe>
        <iframe src="https://counter.example/pixel"></iframe>
        <iframe src="https://www.youtube.com/embed/abc"></iframe>
        </main></body>
        """
    )
    assert [frame["src"] for frame in soup.find_all("iframe")] == ["https://www.youtube.com/embed/abc"]


def test_event_handler_attributes_are_removed_everywhere():
    soup = _sanitized(
        '<body onload="x()"><nav><a href="/a" onClick="y()">A</a></nav>'
        '<main><img src="/i.png" onerror="z()"></main></body>'
    )
    assert "onload" not in soup.body.attrs
    assert soup.a.attrs == {"href": "/a"}
    assert soup.img.attrs == {"src": "/i.png"}


def test_comments_are_removed():
    soup = _sanitized("<body><!-- top --><main><p>a<!-- inner --></p></main></body>")
    assert soup.find_all(string=lambda text: isinstance(text, Comment)) == []
    assert soup.p.get_text() == "a"


def test_aria_and_data_attributes_stripped_only_in_main():
    soup = _sanitized(
        """
        <body><nav data-track="1" aria-label="nav">n</nav>
        <main aria-busy="false" data-page="7">
          <img src="/a.png" data-src="/lazy.png" data-original="/orig.png" data-dataoriginal="x" data-analytics="1" aria-hidden="true">
          <a href="/x" data-href="/y" data-testid="link">x</a>
        </main></body>
        """
    )
    assert soup.nav.attrs == {"data-track": "1", "aria-label": "nav"}
    assert soup.main.attrs == {}
    assert soup.img.attrs == {"src": "/a.png", "data-src": "/lazy.png", "data-original": "/orig.png"}
    assert soup.a.attrs == {"href": "/x", "data-href": "/y"}


def test_search_widgets_removed_only_when_interactive_or_vendor():
    soup = _sanitized(
        """
        <body><main>
          <div role="search"><input type="text"></div>
          <div class="algolia-autocomplete"><span>results</span></div>
          <div class="search-plugin"><p>How to search the docs effectively</p></div>
        </main></body>
        """
    )
    assert soup.select_one('[role="search"]') is None
    assert soup.select_one(".algolia-autocomplete") is None
    assert soup.select_one(".search-plugin") is not None
    assert "How to search the docs effectively" in soup.get_text()


def test_view_counts_removed_only_when_text_is_a_count():
    soup = _sanitized(
        """
        <body><main>
          <span class="count">42 views</span>
          <span class="count">Views: 7</span>
          <span class="count">3 steps to install</span>
          <span class="count">1024</span>
        </main></body>
        """
    )
    remaining = [span.get_text() for span in soup.select(".count")]
    assert remaining == ["3 steps to install"]


def test_sanitize_returns_nothing():
    soup = BeautifulSoup("<p>x</p>", "html.parser")
    assert sanitize_document(soup) is None
    assert soup.p.get_text() == "x"
