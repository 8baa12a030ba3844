"""
Upstream art source adapters.

Every adapter exposes the same two-step contract:
- search_candidates(): one upstream query returning raw provider records
- normalize(): turn one raw record into a ContentItem

fetch_item() combines them with a best-effort orientation filter.
"""
import random
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Any, Optional

import requests

from dashboard.errors import SourceUnavailable
from dashboard.utils.helpers import safe_str, safe_int
from .models import ContentItem, FilterSet, Orientation, derive_orientation

logger = logging.getLogger("rotation.sources")

DEFAULT_HEADERS = {
    "User-Agent": "Dashboard-App/1.0 (contact@example.com)",
    "Accept": "application/json",
}

REQUEST_TIMEOUT = 10

DEFAULT_ARTIC_STYLES = [
    "Cubism", "Expressionism", "Surrealism", "Abstract", "Minimalism",
    "Constructivism", "Symbolism", "Suprematism", "Bauhaus",
]


class ContentSource(ABC):
    """
    Abstract base class for art providers.

    Subclasses set `key` and implement search_candidates() and normalize().
    """

    key: str = ""
    # Keep candidates whose orientation cannot be determined when filtering
    accept_unknown_orientation: bool = False

    def __init__(self, options: Optional[Dict[str, Any]] = None, rng: Optional[random.Random] = None):
        self.options = options or {}
        self._rng = rng or random.Random()

    @abstractmethod
    def search_candidates(
        self,
        orientation: Optional[Orientation],
        filters: FilterSet,
    ) -> List[Dict[str, Any]]:
        """
        Query the provider for raw candidate records.

        Raises:
            SourceUnavailable: On network errors, provider errors or empty results
        """
        pass

    @abstractmethod
    def normalize(self, raw: Dict[str, Any]) -> ContentItem:
        """Convert a raw provider record to a ContentItem."""
        pass

    def candidate_orientation(self, raw: Dict[str, Any]) -> Optional[Orientation]:
        """Orientation of a raw record, if the provider reports dimensions."""
        return self.normalize(raw).orientation

    def fetch_item(self, orientation: Optional[Orientation], filters: FilterSet) -> ContentItem:
        """
        Fetch one item, preferring the requested orientation.

        Falls back to any orientation when no candidate matches.
        """
        candidates = self.search_candidates(orientation, filters)
        if not candidates:
            raise SourceUnavailable(self.key, "no candidates returned")

        pool = candidates
        if orientation is not None:
            matching = [c for c in candidates if self._matches(c, orientation)]
            if matching:
                pool = matching
            else:
                logger.debug(f"{self.key}: no {orientation.value} candidates, using any orientation")

        item = self.normalize(self._rng.choice(pool))
        if not item.has_media:
            raise SourceUnavailable(self.key, f"item {item.id} has no media url")
        return item

    def _matches(self, raw: Dict[str, Any], orientation: Orientation) -> bool:
        actual = self.candidate_orientation(raw)
        if actual is None:
            return self.accept_unknown_orientation
        return actual == orientation

    def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET a JSON document, wrapping transport errors as SourceUnavailable."""
        try:
            response = requests.get(
                url,
                params=params,
                headers=DEFAULT_HEADERS,
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise SourceUnavailable(self.key, str(e)) from e
        except ValueError as e:
            raise SourceUnavailable(self.key, f"invalid JSON response: {e}") from e

    def _pick_style(self, filters: FilterSet, default: Optional[List[str]] = None) -> Optional[str]:
        styles = list(filters.styles) or default or []
        if not styles:
            return None
        return self._rng.choice(styles)


class ArticSource(ContentSource):
    """Art Institute of Chicago public API."""

    key = "artic"
    API_BASE = "https://api.artic.edu/api/v1"
    IIIF_BASE = "https://www.artic.edu/iiif/2"

    def search_candidates(self, orientation, filters):
        style = self._pick_style(filters, self.options.get("styles") or DEFAULT_ARTIC_STYLES)
        data = self._get_json(
            f"{self.API_BASE}/artworks/search",
            params={
                "q": f"{style} painting",
                "fields": "id,title,artist_display,date_display,image_id,thumbnail",
                "limit": 100,
            },
        )
        candidates = [
            dict(item, _style=style)
            for item in (data or {}).get("data") or []
            if item.get("image_id")
        ]
        if not candidates:
            raise SourceUnavailable(self.key, "no artworks with images returned")
        return candidates

    def candidate_orientation(self, raw):
        thumbnail = raw.get("thumbnail") or {}
        return derive_orientation(thumbnail.get("width"), thumbnail.get("height"))

    def normalize(self, raw):
        return ContentItem(
            id=safe_str(raw.get("id")),
            source=self.key,
            title=raw.get("title") or "Untitled",
            artist=raw.get("artist_display") or "Unknown Artist",
            date=raw.get("date_display") or "Unknown Date",
            style=raw.get("_style") or "Unknown Style",
            image_url=f"{self.IIIF_BASE}/{raw['image_id']}/full/843,/0/default.jpg",
            orientation=self.candidate_orientation(raw),
        )


class MetSource(ContentSource):
    """
    Metropolitan Museum of Art collection API.

    Search only returns object IDs, so fetch_item() resolves a handful of
    random IDs one by one until an object with an image and a compatible
    orientation turns up.
    """

    key = "met"
    API_BASE = "https://collectionapi.metmuseum.org/public/collection/v1"
    MAX_OBJECT_LOOKUPS = 10

    def search_candidates(self, orientation, filters):
        params: Dict[str, Any] = {
            "q": self._pick_style(filters) or "painting",
            "hasImages": "true" if self.options.get("has_images", True) else "false",
        }
        departments = self.options.get("departments") or []
        if departments:
            params["departmentId"] = self._rng.choice(departments)

        data = self._get_json(f"{self.API_BASE}/search", params=params)
        ids = (data or {}).get("objectIDs") or []
        if not ids:
            raise SourceUnavailable(self.key, "no objects returned for query")
        return [{"objectID": object_id} for object_id in ids]

    def fetch_object(self, object_id: int) -> Dict[str, Any]:
        return self._get_json(f"{self.API_BASE}/objects/{object_id}") or {}

    def fetch_item(self, orientation, filters):
        candidates = self.search_candidates(orientation, filters)
        for _ in range(min(self.MAX_OBJECT_LOOKUPS, len(candidates))):
            obj = self.fetch_object(self._rng.choice(candidates)["objectID"])
            if not (obj.get("primaryImage") or obj.get("primaryImageSmall")):
                continue
            item = self.normalize(obj)
            if orientation is not None and item.orientation and item.orientation != orientation:
                continue
            return item
        raise SourceUnavailable(self.key, "unable to find image matching orientation")

    def normalize(self, raw):
        measurements = (raw.get("measurements") or [{}])[0] or {}
        dims = measurements.get("elementMeasurements") or {}
        return ContentItem(
            id=safe_str(raw.get("objectID")),
            source=self.key,
            title=raw.get("title") or "Untitled",
            artist=raw.get("artistDisplayName") or "Unknown Artist",
            date=raw.get("objectDate") or safe_str(raw.get("objectBeginDate")) or "Unknown Date",
            style=raw.get("classification") or raw.get("department") or "Unknown Style",
            image_url=raw.get("primaryImageSmall") or raw.get("primaryImage"),
            orientation=derive_orientation(dims.get("Width"), dims.get("Height")),
        )


class ClevelandSource(ContentSource):
    """Cleveland Museum of Art open access API."""

    key = "cleveland"
    API_BASE = "https://openaccess-api.clevelandart.org/api"
    accept_unknown_orientation = True

    def search_candidates(self, orientation, filters):
        params: Dict[str, Any] = {"has_image": 1, "limit": 50}
        if self.options.get("type"):
            params["type"] = self.options["type"]
        style = self._pick_style(filters)
        if style:
            params["q"] = style

        data = self._get_json(f"{self.API_BASE}/artworks", params=params)
        candidates = [item for item in (data or {}).get("data") or [] if item.get("images")]
        if not candidates:
            raise SourceUnavailable(self.key, "no artworks with images returned")
        return candidates

    @staticmethod
    def _image_dims(raw):
        images = raw.get("images") or {}
        web = images.get("web") or {}
        printable = images.get("print") or {}
        return (
            web.get("width") or printable.get("width"),
            web.get("height") or printable.get("height"),
        )

    def candidate_orientation(self, raw):
        return derive_orientation(*self._image_dims(raw))

    def normalize(self, raw):
        images = raw.get("images") or {}
        image_url = None
        for size in ("web", "print", "digital", "tiny"):
            image_url = (images.get(size) or {}).get("url")
            if image_url:
                break

        creators = [
            c.get("description") or c.get("role") or c.get("name")
            for c in raw.get("creators") or []
        ]
        artist = ", ".join(c for c in creators if c) or raw.get("creator") or "Unknown Artist"

        return ContentItem(
            id=safe_str(raw.get("id")),
            source=self.key,
            title=raw.get("title") or "Untitled",
            artist=artist,
            date=raw.get("creation_date") or safe_str(raw.get("creation_date_earliest")) or "Unknown Date",
            style=raw.get("department") or raw.get("type") or "Unknown Style",
            image_url=image_url,
            orientation=self.candidate_orientation(raw),
        )


class GiphySource(ContentSource):
    """GIPHY cinemagraph search. Needs an API key."""

    key = "giphy"
    API_BASE = "https://api.giphy.com/v1/gifs"
    PLACEHOLDER_KEY = "your_giphy_api_key_here"
    BATCH_SIZE = 50
    MAX_OFFSET = 500

    @property
    def is_configured(self) -> bool:
        api_key = self.options.get("api_key")
        return bool(api_key and api_key != self.PLACEHOLDER_KEY)

    def search_candidates(self, orientation, filters):
        if not self.is_configured:
            raise SourceUnavailable(self.key, "GIPHY API key not configured")
        data = self._get_json(
            f"{self.API_BASE}/search",
            params={
                "api_key": self.options["api_key"],
                "q": "cinemagraph",
                "limit": self.BATCH_SIZE,
                "offset": self._rng.randrange(self.MAX_OFFSET),
                "rating": "g",
                "lang": "en",
            },
        )
        gifs = (data or {}).get("data") or []
        if not gifs:
            raise SourceUnavailable(self.key, "no cinemagraphs returned")
        return gifs

    def candidate_orientation(self, raw):
        original = (raw.get("images") or {}).get("original") or {}
        return derive_orientation(safe_int(original.get("width")), safe_int(original.get("height")))

    def normalize(self, raw):
        images = raw.get("images") or {}
        original = images.get("original") or {}
        year = "Recent"
        imported = raw.get("import_datetime")
        if imported:
            try:
                year = str(datetime.strptime(imported, "%Y-%m-%d %H:%M:%S").year)
            except ValueError:
                pass

        return ContentItem(
            id=safe_str(raw.get("id")),
            source=self.key,
            title=raw.get("title") or "Cinemagraph",
            artist=raw.get("username") or "GIPHY User",
            date=year,
            style="Cinemagraph",
            image_url=original.get("url"),
            video_url=original.get("mp4"),
            webp_url=original.get("webp"),
            still_url=(images.get("original_still") or {}).get("url"),
            orientation=self.candidate_orientation(raw),
            is_video=True,
        )


SOURCE_CLASSES = {
    cls.key: cls
    for cls in (ArticSource, MetSource, ClevelandSource, GiphySource)
}
