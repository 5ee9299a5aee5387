from adharvest.metadata import SearchSource, build_ad_metadata

SOURCE = SearchSource(region="anywhere", platform="SEARCH", start_date="2024-05-01", end_date="2024-05-02")


def test_build_ad_metadata_includes_optional_fields_when_provided():
    md = build_ad_metadata(
        alt_text="Acme banner",
        text_snippets=["Buy now", "Free shipping"],
        source=SOURCE,
        scraper_version="harvest:0.1.0",
    )
    assert type(md) is dict
    assert list(md) == ["alt", "textSnippets", "source", "scraperVersion"]
    assert md["alt"] == "Acme banner"
    assert md["textSnippets"] == ["Buy now", "Free shipping"]
    assert md["source"] == {
        "region": "anywhere",
        "platform": "SEARCH",
        "startDate": "2024-05-01",
        "endDate": "2024-05-02",
    }


def test_build_ad_metadata_omits_optional_fields_when_absent():
    md = build_ad_metadata(alt_text=None, text_snippets=[], source=SOURCE)
    assert "alt" not in md
    assert "scraperVersion" not in md
    assert md["textSnippets"] == []
