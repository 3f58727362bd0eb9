# Overview: Server-side asset caches (images, videos, 3D models) with get-or-fetch-and-store.

"""
Asset Cache

Kiosk screens reference remote media by URL. Each cache keeps a local copy
under ASSET_CACHE_FOLDER/<cache name>/, keyed by the SHA-256 of the URL:

    <key>.bin   the bytes
    <key>.json  url, content_type, size, cached_at

The three caches differ only in name and allowed content types. A failed
download is logged and answered with None so the kiosk falls back to the
remote URL.

MANIFEST: menu_manifest() lists the images the menu needs (categories,
subcategories, products, preroll variants) under the name "menu-assets-v1";
preload_menu() fetches the remote ones into the image cache.
"""
from __future__ import annotations

import hashlib
import json
import os

import httpx
from flask import current_app

from ..extensions import db
from ..models import Category, PrerollVariant, Product, Subcategory
from ..time_utils import to_utc_z, utcnow


MENU_MANIFEST_NAME = "menu-assets-v1"

CACHE_CONTENT_TYPES = {
    "images": ("image/",),
    "videos": ("video/",),
    "models": ("model/", "application/octet-stream", "application/gltf"),
}


class AssetCacheError(Exception):
    """Raised for unknown caches or invalid URLs."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def cache_key(url: str) -> str:
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


def _is_remote(url: str | None) -> bool:
    return bool(url) and url.startswith(("http://", "https://"))


class AssetCache:
    def __init__(self, name: str, root: str, *, timeout: float = 10, transport: httpx.BaseTransport | None = None):
        if name not in CACHE_CONTENT_TYPES:
            raise AssetCacheError(f"Unknown asset cache: {name}")
        self.name = name
        self.directory = os.path.join(root, name)
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_config(cls, name: str, config, instance_path: str) -> "AssetCache":
        root = config["ASSET_CACHE_FOLDER"]
        if not os.path.isabs(root):
            root = os.path.join(instance_path, root)
        return cls(
            name,
            root,
            timeout=config.get("HTTP_TIMEOUT_SECONDS", 10),
            transport=config.get("ASSET_TRANSPORT"),
        )

    def _paths(self, url: str) -> tuple[str, str]:
        key = cache_key(url)
        return os.path.join(self.directory, f"{key}.bin"), os.path.join(self.directory, f"{key}.json")

    def get(self, url: str) -> tuple[bytes, dict] | None:
        """Cached (bytes, metadata), or None on a miss."""
        data_path, meta_path = self._paths(url)
        if not (os.path.exists(data_path) and os.path.exists(meta_path)):
            return None
        with open(meta_path, "r", encoding="utf-8") as f:
            meta = json.load(f)
        with open(data_path, "rb") as f:
            return f.read(), meta

    def put(self, url: str, content: bytes, content_type: str | None = None) -> dict:
        os.makedirs(self.directory, exist_ok=True)
        data_path, meta_path = self._paths(url)
        meta = {
            "url": url,
            "key": cache_key(url),
            "content_type": content_type or "application/octet-stream",
            "size": len(content),
            "cached_at": to_utc_z(utcnow()),
        }
        with open(data_path, "wb") as f:
            f.write(content)
        with open(meta_path, "w", encoding="utf-8") as f:
            json.dump(meta, f)
        return meta

    def _accepts(self, content_type: str) -> bool:
        return content_type.startswith(CACHE_CONTENT_TYPES[self.name])

    def fetch(self, url: str) -> tuple[bytes, str] | None:
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport, follow_redirects=True) as client:
                response = client.get(url)
        except httpx.HTTPError as exc:
            current_app.logger.warning("Asset download failed for %s: %s", url, exc)
            return None
        if response.status_code >= 400:
            current_app.logger.warning("Asset download failed for %s: HTTP %s", url, response.status_code)
            return None

        content_type = (response.headers.get("content-type") or "application/octet-stream").split(";")[0].strip()
        if not self._accepts(content_type):
            current_app.logger.warning("Asset %s has content type %s, not cached in %s", url, content_type, self.name)
            return None
        return response.content, content_type

    def get_or_fetch(self, url: str) -> tuple[bytes, dict] | None:
        if not _is_remote(url):
            raise AssetCacheError("Only http(s) URLs can be cached", details={"url": url})
        cached = self.get(url)
        if cached is not None:
            return cached
        fetched = self.fetch(url)
        if fetched is None:
            return None
        content, content_type = fetched
        return content, self.put(url, content, content_type)

    def delete(self, url: str) -> bool:
        removed = False
        for path in self._paths(url):
            if os.path.exists(path):
                os.remove(path)
                removed = True
        return removed

    def clear(self) -> int:
        """Remove every entry. Returns entries removed."""
        if not os.path.isdir(self.directory):
            return 0
        removed = 0
        for filename in os.listdir(self.directory):
            os.remove(os.path.join(self.directory, filename))
            if filename.endswith(".bin"):
                removed += 1
        return removed

    def stats(self) -> dict:
        entries = 0
        total_bytes = 0
        if os.path.isdir(self.directory):
            for filename in os.listdir(self.directory):
                if filename.endswith(".bin"):
                    entries += 1
                    total_bytes += os.path.getsize(os.path.join(self.directory, filename))
        return {"name": self.name, "entries": entries, "total_bytes": total_bytes}


def get_cache(name: str) -> AssetCache:
    return AssetCache.from_config(name, current_app.config, current_app.instance_path)


def all_stats() -> dict:
    return {name: get_cache(name).stats() for name in CACHE_CONTENT_TYPES}


def menu_manifest() -> dict:
    """Images the kiosk menu shows, deduplicated, in menu order."""
    urls: list[str] = []

    def add(url: str | None) -> None:
        if url and url not in urls:
            urls.append(url)

    for category in db.session.query(Category).filter(Category.is_active.is_(True)).order_by(Category.id.asc()):
        add(category.image)
        add(category.background_image)
    for sub in db.session.query(Subcategory).filter(Subcategory.is_active.is_(True)).order_by(Subcategory.id.asc()):
        add(sub.image)
    for product in db.session.query(Product).filter(Product.is_active.is_(True)).order_by(Product.id.asc()):
        add(product.main_image)
        for variant in product.variants or []:
            for option in variant.get("options") or []:
                add(option.get("image"))
    for variant in db.session.query(PrerollVariant).filter(PrerollVariant.is_available.is_(True)).order_by(PrerollVariant.id.asc()):
        add(variant.image)

    return {"name": MENU_MANIFEST_NAME, "generated_at": to_utc_z(utcnow()), "assets": urls}


def preload_menu() -> dict:
    """Fetch every remote manifest image into the image cache."""
    cache = get_cache("images")
    results = {"total": 0, "cached": 0, "fetched": 0, "failed": 0, "local": 0}
    for url in menu_manifest()["assets"]:
        results["total"] += 1
        if not _is_remote(url):
            results["local"] += 1
            continue
        if cache.get(url) is not None:
            results["cached"] += 1
        elif cache.get_or_fetch(url) is not None:
            results["fetched"] += 1
        else:
            results["failed"] += 1
    current_app.logger.info("Menu asset preload: %s", results)
    return results
