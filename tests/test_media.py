import pytest

from autopress.config import build_config
from autopress.media import (
    DownloadedImage,
    MediaError,
    extension_for,
    extract_image_candidates,
    find_source_image,
    select_featured_media,
)
from autopress.models import Article, CandidateItem

ITEM = CandidateItem(
    title="Guvernul aprobă bugetul",
    body_text="",
    source_name="Digi24",
    source_url="https://www.digi24.ro/stiri/buget",
    published_at=None,
    suggested_category_id=4058,
    image_candidate_urls=("https://cdn.digi24.ro/logo.png", "/img/feed.jpg"),
)
ARTICLE = Article(title="Guvernul aprobă bugetul", seo_title="Bugetul aprobat", meta_description="Rezumat")


def test_extract_image_candidates_reads_meta_and_img():
    html = (
        '<meta property="og:image" content="/og.jpg">'
        '<meta name="twitter:image" content="https://cdn.ro/tw.jpg">'
        '<img src="https://cdn.ro/tw.jpg"><img src="data:image/png;base64,xx">'
    )
    assert extract_image_candidates(html, "https://site.ro/a/b") == ["https://site.ro/og.jpg", "https://cdn.ro/tw.jpg"]


def test_find_source_image_skips_decorative_and_failed_downloads():
    tried = []

    def downloader(url, timeout, min_bytes):
        tried.append(url)
        if url.endswith("feed.jpg"):
            raise MediaError("image_too_small 10")
        return DownloadedImage(url=url, data=b"x" * min_bytes, content_type="image/webp")

    image = find_source_image(
        ITEM.source_url,
        ITEM.image_candidate_urls,
        5,
        100,
        downloader=downloader,
        html_fetcher=lambda url, timeout: '<meta property="og:image" content="https://cdn.digi24.ro/og.webp">',
    )

    assert tried == ["https://www.digi24.ro/img/feed.jpg", "https://cdn.digi24.ro/og.webp"]
    assert image.url == "https://cdn.digi24.ro/og.webp"
    assert image.filename.endswith(".webp")


def test_find_source_image_without_candidates_raises():
    with pytest.raises(MediaError):
        find_source_image("", (), 5, 100, html_fetcher=None)


def test_default_featured_media_wins(store):
    config = build_config({"publish": {"default_featured_media_id": 12}}).publish

    def finder(*args):
        raise AssertionError("finder must not run")

    assert select_featured_media(ARTICLE, ITEM, config, store, finder=finder) == 12


def test_source_image_uploaded_with_metadata(config, store):
    def finder(source_url, candidates, timeout, min_bytes):
        return DownloadedImage(url="https://cdn.digi24.ro/og.jpg", data=b"img", content_type="image/jpeg")

    assert select_featured_media(ARTICLE, ITEM, config.publish, store, finder=finder) == 55
    filename, content_type, metadata = store.uploads[0]
    assert filename.startswith("featured-") and filename.endswith(".jpg")
    assert content_type == "image/jpeg"
    assert metadata == {"title": "Bugetul aprobat", "alt_text": "Guvernul aprobă bugetul", "caption": "Rezumat"}


def test_image_failures_mean_no_image(config, store):
    def finder(*args):
        raise MediaError("no_image_candidates")

    assert select_featured_media(ARTICLE, ITEM, config.publish, store, finder=finder) is None
    assert select_featured_media(ARTICLE, None, config.publish, store) is None


def test_extension_for():
    assert extension_for("image/png") == "png"
    assert extension_for("application/octet-stream") == "jpg"
