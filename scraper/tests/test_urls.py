from adharvest.urls import batch_endpoint, build_search_url, is_creative_image_url


def test_build_search_url_encodes_query():
    url = build_search_url(region="anywhere", platform="SEARCH", start_date="2024-01-01", end_date="2024-01-31")
    assert url == (
        "https://adstransparency.google.com/?region=anywhere&platform=SEARCH&start-date=2024-01-01&end-date=2024-01-31"
    )


def test_build_search_url_prefers_override():
    override = "https://adstransparency.google.com/advertiser/AR123?region=US"
    assert (
        build_search_url(region="US", platform="SEARCH", start_date="a", end_date="b", search_url=override) == override
    )


def test_is_creative_image_url_filters_hosts_and_schemes():
    assert is_creative_image_url("https://lh3.googleusercontent.com/abc=s0")
    assert is_creative_image_url("http://tpc.googlesyndication.com/x.doubleclick.net/img")
    assert is_creative_image_url("https://www.gstatic.com/images/a.png")
    assert not is_creative_image_url("https://example.com/banner.png")
    assert not is_creative_image_url("data:image/png;base64,abcd")
    assert not is_creative_image_url("")
    assert not is_creative_image_url(None)


def test_batch_endpoint_joins_with_or_without_trailing_slash():
    assert batch_endpoint("https://api.example") == "https://api.example/api/ads/batch"
    assert batch_endpoint("https://api.example/") == "https://api.example/api/ads/batch"
