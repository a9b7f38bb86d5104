"""
Debian cloud image cache

Resolves the latest Debian generic cloud image from the cloud.debian.org
directory listing, downloads it, and keeps one copy in a cache directory
that is reused while younger than the configured expiry.
"""

import os
import re
import shutil
import time
from typing import Optional, Tuple

import requests

from debvm.proxmox_utils import DebvmConfig, DebvmError, logger

HREF_RE = re.compile(r'href="([^"]+\.qcow2)"')
CHUNK_SIZE = 1024 * 1024
DOWNLOAD_FILENAME = 'debian-cloud.qcow2'


class ImageError(DebvmError):
    """Raised when the cloud image cannot be resolved or downloaded"""
    pass


def listing_url(config: DebvmConfig) -> str:
    return f"{config.get_image_base_url()}/{config.get_image_release()}/latest/"


def cached_image_path(config: DebvmConfig) -> str:
    filename = f"debian-{config.get_image_release()}-generic-{config.get_image_arch()}.qcow2"
    return os.path.join(config.get_cache_dir(), filename)


def image_age(path: str, now: Optional[float] = None) -> Optional[float]:
    """Age of a file in seconds since last modification, or None if missing"""
    if not os.path.isfile(path):
        return None
    if now is None:
        now = time.time()
    return now - os.path.getmtime(path)


def is_fresh(path: str, expiry_days: int, now: Optional[float] = None) -> bool:
    age = image_age(path, now)
    return age is not None and age < expiry_days * 86400


def find_image_filename(listing_html: str, arch: str) -> Optional[str]:
    """
    Pick the generic cloud image for an architecture from a directory listing

    Args:
        listing_html: HTML of the 'latest/' directory index
        arch: Architecture (e.g., 'amd64', 'arm64')

    Returns:
        Filename of the first matching qcow2 image, or None
    """
    for href in HREF_RE.findall(listing_html):
        filename = href.rsplit('/', 1)[-1]
        if 'generic' in filename and arch in filename:
            return filename
    return None


def resolve_latest_image_url(config: DebvmConfig) -> str:
    """
    Find the download URL of the latest generic image

    Raises:
        ImageError if the listing cannot be fetched or contains no image
    """
    url = listing_url(config)
    logger.info("→ Finding latest Debian cloud image...")
    try:
        response = requests.get(url, timeout=config.get_http_timeout())
        response.raise_for_status()
    except requests.RequestException as e:
        raise ImageError(f"Failed to fetch image listing {url}: {e}") from e

    filename = find_image_filename(response.text, config.get_image_arch())
    if not filename:
        raise ImageError(
            f"No generic {config.get_image_arch()} qcow2 image found at {url}"
        )
    return url + filename


def download_image(url: str, dest: str, timeout: int = 60) -> str:
    """
    Stream an image to disk

    Args:
        url: Image URL
        dest: Destination file path
        timeout: Connect/read timeout in seconds

    Returns:
        Destination path

    Raises:
        ImageError if the download fails; a partial file is removed
    """
    logger.info(f"→ Downloading latest Debian cloud image: {url}")
    try:
        with requests.get(url, stream=True, timeout=timeout) as response:
            response.raise_for_status()
            total = int(response.headers.get('content-length', 0))
            written = 0
            with open(dest, 'wb') as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
                        written += len(chunk)
        if total and written != total:
            raise ImageError(f"Incomplete download: got {written} of {total} bytes")
    except (requests.RequestException, OSError, ImageError) as e:
        if os.path.exists(dest):
            os.remove(dest)
        if isinstance(e, ImageError):
            raise
        raise ImageError(f"Failed to download cloud image: {e}") from e

    logger.info(f"✓ Downloaded {written / (1024 * 1024):.0f} MB to {dest}")
    return dest


def store_in_cache(src: str, cache_path: str) -> bool:
    """
    Copy a downloaded image into the cache

    Failure to cache is never fatal; a warning is logged and False returned.
    """
    cache_dir = os.path.dirname(cache_path)
    if not os.path.isdir(cache_dir):
        logger.warning(f"→ Warning: cache directory {cache_dir} does not exist, creating it")
        try:
            os.makedirs(cache_dir, exist_ok=True)
        except OSError as e:
            logger.warning(f"→ Warning: could not create cache directory: {e}")
            return False

    tmp_path = cache_path + '.part'
    try:
        shutil.copyfile(src, tmp_path)
        os.replace(tmp_path, cache_path)
    except OSError as e:
        logger.warning(f"→ Warning: failed to cache image at {cache_path}: {e}")
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        return False

    logger.info(f"✓ Cached image for future use: {cache_path}")
    return True


def get_base_image(config: DebvmConfig, workdir: str, dry_run: bool = False) -> Tuple[str, bool]:
    """
    Return a path to a usable base image

    A cached image younger than the expiry is returned as-is without any
    network access. Otherwise the latest image is downloaded into workdir,
    copied into the cache, and the workdir path is returned.

    Args:
        config: DebvmConfig instance
        workdir: Per-run temporary directory
        dry_run: Report what would happen without downloading

    Returns:
        Tuple of (image_path, from_cache)
    """
    cache_path = cached_image_path(config)
    expiry_days = config.get_cache_expiry_days()

    if is_fresh(cache_path, expiry_days):
        age_days = image_age(cache_path) / 86400
        logger.info(f"✓ Using cached image {cache_path} ({age_days:.1f} days old)")
        return (cache_path, True)

    if os.path.isfile(cache_path):
        logger.info(f"→ Cached image is older than {expiry_days} days, refreshing")

    download_path = os.path.join(workdir, DOWNLOAD_FILENAME)
    if dry_run:
        logger.info(f"→ [dry-run] would download the latest image from {listing_url(config)}")
        return (download_path, False)

    url = resolve_latest_image_url(config)
    download_image(url, download_path, timeout=config.get_http_timeout())
    store_in_cache(download_path, cache_path)
    return (download_path, False)


def refresh_cache(config: DebvmConfig) -> str:
    """Download the latest image straight into the cache, replacing any copy"""
    cache_path = cached_image_path(config)
    cache_dir = os.path.dirname(cache_path)
    try:
        os.makedirs(cache_dir, exist_ok=True)
    except OSError as e:
        raise ImageError(f"Could not create cache directory {cache_dir}: {e}") from e

    url = resolve_latest_image_url(config)
    tmp_path = cache_path + '.part'
    download_image(url, tmp_path, timeout=config.get_http_timeout())
    os.replace(tmp_path, cache_path)
    logger.info(f"✓ Cache updated: {cache_path}")
    return cache_path


def delete_cached_image(config: DebvmConfig) -> bool:
    cache_path = cached_image_path(config)
    if not os.path.isfile(cache_path):
        logger.info(f"→ No cached image at {cache_path}")
        return False
    try:
        os.remove(cache_path)
    except OSError as e:
        raise ImageError(f"Failed to delete {cache_path}: {e}") from e
    logger.info(f"✓ Deleted cached image: {cache_path}")
    return True
