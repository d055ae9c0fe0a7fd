"""
Feature Registry - loads the static per-widget feature lists from configs/
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from widgets.taxonomy import (
    AVATAR_GROUP, CAROUSEL_SLIDER, FLOATING_TOAST, MARQUEE_LEFTRIGHT, MARQUEE_STRIPE,
    MARQUEE_UPDOWN, MASONRY, SINGLE_SLIDER,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIGS_DIR = Path(__file__).parent.parent / 'configs'

FEATURE_FILES = {
    CAROUSEL_SLIDER: 'carouselSliderFeature',
    MASONRY: 'masonryFeature',
    MARQUEE_STRIPE: 'stripSliderFeature',
    AVATAR_GROUP: 'avatarGroupFeature',
    SINGLE_SLIDER: 'avatarSliderFeature',
    MARQUEE_UPDOWN: 'verticalScrollFeature',
    MARQUEE_LEFTRIGHT: 'horizontalScrollFeature',
    FLOATING_TOAST: 'floatingCardsFeature',
}


class FeatureRegistry:
    """Caches feature lists per widget type"""

    def __init__(self, configs_dir: Optional[str] = None):
        self.configs_dir = Path(configs_dir) if configs_dir else DEFAULT_CONFIGS_DIR
        self.cache: Dict[str, Optional[List[str]]] = {}

    def get_config_path(self, widget_type: str) -> Path:
        file_name = FEATURE_FILES.get(widget_type, widget_type.lower())
        return self.configs_dir / f"{file_name}.json"

    def load(self, widget_type: str) -> Dict[str, Any]:
        """Raw feature config file for a widget type ({} when missing or unreadable)"""
        config_path = self.get_config_path(widget_type)
        if not config_path.exists():
            return {}
        try:
            with open(config_path, 'r') as f:
                return json.load(f)
        except Exception as e:
            logger.warning(f"⚠️ Error loading feature config {config_path}: {e}")
            return {}

    def get_features(self, widget_type: str) -> Optional[List[str]]:
        """Feature names to validate, or None to let the vision model use its defaults"""
        if widget_type in self.cache:
            return self.cache[widget_type]

        features = self.load(widget_type).get('features')
        if features:
            logger.info(f"📋 Features loaded for {widget_type}: {len(features)} markers")
        else:
            logger.warning(f"⚠️ No feature config found for {widget_type}, using default feature set")
            features = None

        self.cache[widget_type] = features
        return features


# Global registry instance
_registry = None

def get_registry(configs_dir: Optional[str] = None) -> FeatureRegistry:
    """Get global registry instance"""
    global _registry
    if _registry is None:
        _registry = FeatureRegistry(configs_dir)
    return _registry
