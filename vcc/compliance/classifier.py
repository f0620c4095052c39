"""Content-type classification from metadata alone.

Pure and cheap: resolution, orientation and bitrate are the only inputs,
so the same profile always lands in the same category. First match wins:

1. portrait and in the vertical resolution set      -> VERTICAL
2. below the live-action floor and a screen-capture
   preferred resolution                             -> SCREEN_CAPTURE
3. at or above the live-action floor                -> LIVE_ACTION
4. bitrate unknown                                  -> UNKNOWN
5. anything else                                    -> MIXED_MEDIA
"""

import logging

from vcc.compliance.catalog import StandardsCatalog
from vcc.domain.models import ContentCategory, MediaProfile

logger = logging.getLogger(__name__)


def classify(profile: MediaProfile, catalog: StandardsCatalog) -> ContentCategory:
    resolution = profile.resolution
    vertical = catalog.rules_for(ContentCategory.VERTICAL)
    screen = catalog.rules_for(ContentCategory.SCREEN_CAPTURE)
    live_floor = catalog.rules_for(ContentCategory.LIVE_ACTION).bitrate.min_kbps
    kbps = profile.video_bitrate_kbps

    if resolution.is_portrait and resolution in vertical.all_resolutions:
        category = ContentCategory.VERTICAL
    elif kbps is not None and kbps < live_floor and resolution in screen.preferred_resolutions:
        category = ContentCategory.SCREEN_CAPTURE
    elif kbps is not None and kbps >= live_floor:
        category = ContentCategory.LIVE_ACTION
    elif kbps is None:
        category = ContentCategory.UNKNOWN
    else:
        category = ContentCategory.MIXED_MEDIA

    logger.debug(f"CLASSIFY: {profile.source_name} {resolution} kbps={kbps} -> {category.value}")
    return category
