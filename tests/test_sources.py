"""
Tests for the art source adapters with requests mocked out.
"""
import random

import pytest
import requests

from dashboard.errors import SourceUnavailable
from dashboard.rotation import (
    ArticSource,
    ClevelandSource,
    FilterSet,
    GiphySource,
    MetSource,
    NO_FILTERS,
    Orientation,
    derive_orientation,
)

from conftest import RecordingGet

ARTIC_SEARCH = {
    "data": [
        {
            "id": 111, "title": "Tall One", "artist_display": "Painter A", "date_display": "1910",
            "image_id": "img-tall", "thumbnail": {"width": 600, "height": 900},
        },
        {
            "id": 222, "title": "Wide One", "artist_display": "Painter B", "date_display": "1920",
            "image_id": "img-wide", "thumbnail": {"width": 1200, "height": 800},
        },
        {"id": 333, "title": "No Image", "image_id": None},
    ]
}

MET_OBJECT = {
    "objectID": 436535,
    "title": "Wheat Field with Cypresses",
    "artistDisplayName": "Vincent van Gogh",
    "objectDate": "1889",
    "classification": "Paintings",
    "primaryImage": "https://images.metmuseum.org/full.jpg",
    "primaryImageSmall": "https://images.metmuseum.org/small.jpg",
    "measurements": [{"elementMeasurements": {"Height": 73.2, "Width": 93.4}}],
}

CLEVELAND_SEARCH = {
    "data": [
        {
            "id": 94979,
            "title": "Water Lilies",
            "creators": [{"description": "Claude Monet (French, 1840-1926)"}],
            "creation_date": "c. 1915-1926",
            "department": "Modern European Painting and Sculpture",
            "images": {"web": {"url": "https://openaccess.clevelandart.org/web.jpg"}},
        }
    ]
}

GIPHY_SEARCH = {
    "data": [
        {
            "id": "abc123",
            "title": "Rain window",
            "username": "loopmaker",
            "import_datetime": "2016-05-01 10:00:00",
            "images": {
                "original": {"url": "https://media.giphy.com/a.gif", "mp4": "https://media.giphy.com/a.mp4",
                             "webp": "https://media.giphy.com/a.webp", "width": "480", "height": "270"},
                "original_still": {"url": "https://media.giphy.com/a_s.gif"},
            },
        }
    ]
}


class TestOrientation:

    def test_derive(self):
        assert derive_orientation(600, 900) == Orientation.PORTRAIT
        assert derive_orientation("1200", "800") == Orientation.LANDSCAPE
        assert derive_orientation(500, 500) is None
        assert derive_orientation(None, 10) is None
        assert derive_orientation(0, 10) is None


class TestArtic:

    def test_prefers_requested_orientation(self, monkeypatch):
        monkeypatch.setattr(requests, "get", RecordingGet({"artworks/search": ARTIC_SEARCH}))
        source = ArticSource(rng=random.Random(0))

        item = source.fetch_item(Orientation.PORTRAIT, NO_FILTERS)

        assert item.id == "111"
        assert item.source == "artic"
        assert item.image_url == "https://www.artic.edu/iiif/2/img-tall/full/843,/0/default.jpg"
        assert item.orientation == Orientation.PORTRAIT

    def test_style_filter_drives_query(self, monkeypatch):
        fake_get = RecordingGet({"artworks/search": ARTIC_SEARCH})
        monkeypatch.setattr(requests, "get", fake_get)
        source = ArticSource(rng=random.Random(0))

        item = source.fetch_item(Orientation.LANDSCAPE, FilterSet.from_styles(["Bauhaus"]))

        assert fake_get.calls[0][1]["q"] == "Bauhaus painting"
        assert item.style == "Bauhaus"
        assert item.id == "222"

    def test_falls_back_to_any_orientation(self, monkeypatch):
        only_wide = {"data": [ARTIC_SEARCH["data"][1]]}
        monkeypatch.setattr(requests, "get", RecordingGet({"artworks/search": only_wide}))
        item = ArticSource().fetch_item(Orientation.PORTRAIT, NO_FILTERS)
        assert item.id == "222"

    def test_no_images_raises(self, monkeypatch):
        monkeypatch.setattr(requests, "get", RecordingGet({"artworks/search": {"data": []}}))
        with pytest.raises(SourceUnavailable, match="artic"):
            ArticSource().fetch_item(None, NO_FILTERS)

    def test_network_error_raises(self, monkeypatch):
        monkeypatch.setattr(requests, "get", RecordingGet({"": requests.ConnectionError("refused")}))
        with pytest.raises(SourceUnavailable):
            ArticSource().fetch_item(None, NO_FILTERS)


class TestMet:

    def test_resolves_object(self, monkeypatch):
        monkeypatch.setattr(requests, "get", RecordingGet({
            "/search": {"objectIDs": [436535]},
            "/objects/": MET_OBJECT,
        }))
        source = MetSource(options={"departments": [11]})

        item = source.fetch_item(Orientation.LANDSCAPE, NO_FILTERS)

        assert item.id == "436535"
        assert item.artist == "Vincent van Gogh"
        assert item.image_url.endswith("small.jpg")
        assert item.orientation == Orientation.LANDSCAPE

    def test_wrong_orientation_exhausts_lookups(self, monkeypatch):
        fake_get = RecordingGet({"/search": {"objectIDs": [1, 2, 3]}, "/objects/": MET_OBJECT})
        monkeypatch.setattr(requests, "get", fake_get)

        with pytest.raises(SourceUnavailable, match="orientation"):
            MetSource().fetch_item(Orientation.PORTRAIT, NO_FILTERS)
        # One search plus one lookup per candidate
        assert len(fake_get.calls) == 4

    def test_empty_search(self, monkeypatch):
        monkeypatch.setattr(requests, "get", RecordingGet({"/search": {"objectIDs": None}}))
        with pytest.raises(SourceUnavailable):
            MetSource().fetch_item(None, NO_FILTERS)


class TestCleveland:

    def test_unknown_orientation_is_accepted(self, monkeypatch):
        monkeypatch.setattr(requests, "get", RecordingGet({"/artworks": CLEVELAND_SEARCH}))

        item = ClevelandSource(options={"type": "Painting"}).fetch_item(Orientation.PORTRAIT, NO_FILTERS)

        assert item.id == "94979"
        assert item.artist == "Claude Monet (French, 1840-1926)"
        assert item.image_url == "https://openaccess.clevelandart.org/web.jpg"
        assert item.orientation is None


class TestGiphy:

    def test_requires_api_key(self):
        with pytest.raises(SourceUnavailable, match="not configured"):
            GiphySource(options={"api_key": None}).fetch_item(None, NO_FILTERS)

    def test_cinemagraph_item(self, monkeypatch):
        monkeypatch.setattr(requests, "get", RecordingGet({"/search": GIPHY_SEARCH}))

        item = GiphySource(options={"api_key": "real-key"}).fetch_item(Orientation.LANDSCAPE, NO_FILTERS)
        data = item.to_dict()

        assert item.is_video
        assert item.date == "2016"
        assert data["type"] == "cinemagraph"
        assert data["videoUrl"].endswith(".mp4")
        assert data["stillUrl"].endswith("_s.gif")
        assert data["orientation"] == "landscape"
