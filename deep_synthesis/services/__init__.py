from deep_synthesis.services.base_service import BaseLLMService, BaseService
from deep_synthesis.services.brief_generation_service import BriefGenerationService
from deep_synthesis.services.paper_search_service import PaperSearchService
from deep_synthesis.services.query_generation_service import QueryGenerationService
from deep_synthesis.services.query_refinement_service import QueryRefinementService
from deep_synthesis.services.relevancy_scoring_service import RelevancyScoringService

__all__ = [
    "BaseLLMService",
    "BaseService",
    "BriefGenerationService",
    "PaperSearchService",
    "QueryGenerationService",
    "QueryRefinementService",
    "RelevancyScoringService",
]
