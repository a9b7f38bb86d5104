"""Image cache commands"""

import sys
import time

from debvm.image_cache import (
    ImageError,
    cached_image_path,
    delete_cached_image,
    image_age,
    is_fresh,
    listing_url,
    refresh_cache,
)
from debvm.proxmox_utils import ConfigError, DebvmConfig, logger


def setup_status_parser(parser):
    """Setup argument parser for image status command"""


def setup_update_parser(parser):
    """Setup argument parser for image update command"""
    parser.add_argument('--if-stale', action='store_true',
                        help='Only download when the cached image is missing or expired')


def setup_delete_parser(parser):
    """Setup argument parser for image delete command"""


def _load_config(args) -> DebvmConfig:
    try:
        return DebvmConfig(args.config)
    except ConfigError as e:
        logger.error(str(e))
        sys.exit(1)


def handle_status(args):
    """Handle image status command"""
    config = _load_config(args)
    cache_path = cached_image_path(config)
    expiry_days = config.get_cache_expiry_days()
    now = time.time()
    age = image_age(cache_path, now)

    print("\nCached Debian Image:")
    print("-" * 80)
    print(f"  Source:    {listing_url(config)}")
    print(f"  Path:      {cache_path}")
    if age is None:
        print("  Status:    not cached")
    else:
        age_days = age / 86400
        state = 'fresh' if is_fresh(cache_path, expiry_days, now) else 'stale'
        modified = time.strftime('%Y-%m-%d %H:%M', time.localtime(now - age))
        print(f"  Modified:  {modified}")
        print(f"  Age:       {age_days:.1f} days (expires after {expiry_days})")
        print(f"  Status:    {state}")
    print("-" * 80)


def handle_update(args):
    """Handle image update command"""
    config = _load_config(args)
    cache_path = cached_image_path(config)

    if args.if_stale and is_fresh(cache_path, config.get_cache_expiry_days()):
        logger.info(f"→ Cached image is still fresh, skipping download: {cache_path}")
        return

    try:
        refresh_cache(config)
    except ImageError as e:
        logger.error(str(e))
        sys.exit(1)


def handle_delete(args):
    """Handle image delete command"""
    config = _load_config(args)
    try:
        delete_cached_image(config)
    except ImageError as e:
        logger.error(str(e))
        sys.exit(1)
