import hashlib

import pytest
from adharvest.hashing import derive_ad_identifier, image_url_digest


def test_derive_ad_identifier_is_deterministic():
    url = "https://tpc.googlesyndication.com/archive/simgad/123"
    assert derive_ad_identifier(url, 1) == derive_ad_identifier(url, 1)


def test_derive_ad_identifier_differs_by_ordinal_and_url():
    x = "https://lh3.googleusercontent.com/x"
    y = "https://lh3.googleusercontent.com/y"
    assert derive_ad_identifier(x, 1) != derive_ad_identifier(x, 2)
    assert derive_ad_identifier(x, 1) != derive_ad_identifier(y, 1)


def test_derive_ad_identifier_format():
    url = "https://lh3.googleusercontent.com/abc"
    expected = hashlib.sha1(url.encode("utf-8")).hexdigest()
    assert image_url_digest(url) == expected
    assert derive_ad_identifier(url, 7) == f"{expected}-7"


def test_derive_ad_identifier_rejects_zero_ordinal():
    with pytest.raises(ValueError):
        derive_ad_identifier("https://lh3.googleusercontent.com/abc", 0)
