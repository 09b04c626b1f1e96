"""
Configuration module.
Exports the singleton settings instance. The credential store lives in
`insight_dash.config.credentials` because it logs through `utils.logger`,
which itself reads these settings.
"""
from .settings import settings, Settings

__all__ = ["settings", "Settings"]
