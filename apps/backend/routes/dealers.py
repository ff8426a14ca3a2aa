"""Dealer directory and discovery endpoints."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from dependencies import get_directory, get_discovery
from research.discovery import DealerDiscovery, discovery_options, preview_query
from research.models import DiscoveryRequest, DiscoveryResponse, Seller
from services.dealers import DealerDirectory

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/dealers", tags=["dealers"])


@router.get("", response_model=List[Seller])
async def list_dealers(
    active_only: bool = Query(True),
    can_research: Optional[bool] = Query(None),
    directory: DealerDirectory = Depends(get_directory),
):
    return await directory.list_sellers(active_only=active_only, can_research=can_research)


@router.post("/discover", response_model=DiscoveryResponse)
async def discover_dealers(body: DiscoveryRequest, discovery: DealerDiscovery = Depends(get_discovery)):
    logger.info(f"[Dealers] Discovery requested: {body.seller_type} in {body.region} ({body.language})")
    return await discovery.discover(body)


@router.get("/discover/options")
async def get_discovery_options(
    region: Optional[str] = Query(None),
    seller_type: str = Query("poster_dealer"),
    language: str = Query("en"),
):
    """Form choices, plus a preview of the query a discovery run would send."""
    options = discovery_options()
    if region:
        options["query_preview"] = preview_query(
            DiscoveryRequest(region=region, seller_type=seller_type, language=language)
        )
    return options
