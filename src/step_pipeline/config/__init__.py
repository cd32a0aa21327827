from .loader import SETTINGS_SECTION, load_settings, load_yaml_config, settings_from_mapping
from .models import PipelineSettings

__all__ = ["PipelineSettings", "SETTINGS_SECTION", "load_settings", "load_yaml_config", "settings_from_mapping"]
