from deep_synthesis.repositories.base_repository import BaseRepository
from deep_synthesis.repositories.brief_repository import BriefRepository
from deep_synthesis.repositories.paper_brief_repository import PaperBriefRepository
from deep_synthesis.repositories.paper_repository import PaperRepository
from deep_synthesis.repositories.provider_settings_repository import (
    ProviderSettingsRepository,
    ProviderSettingsStore,
)

__all__ = [
    "BaseRepository",
    "BriefRepository",
    "PaperBriefRepository",
    "PaperRepository",
    "ProviderSettingsRepository",
    "ProviderSettingsStore",
]
