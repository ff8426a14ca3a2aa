# Services package
from .dealers import DealerDirectory, StaticDealerDirectory, build_seller, get_dealer_directory
from .llm import GenerativeModel, LLMClient

__all__ = [
    "DealerDirectory",
    "StaticDealerDirectory",
    "build_seller",
    "get_dealer_directory",
    "GenerativeModel",
    "LLMClient",
]
