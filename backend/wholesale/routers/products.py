"""
Public catalog routes.
"""
from typing import Annotated, Optional

from fastapi import APIRouter, HTTPException, Query, status

from wholesale.core.database import DbSession
from wholesale.repositories.product import ProductRepository
from wholesale.schemas.commerce import ProductFilters, ProductResponse
from wholesale.services.commerce import CommerceStore

router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=list[ProductResponse])
async def list_products(
    session: DbSession,
    category: Optional[str] = None,
    brand: Optional[str] = None,
    search: Optional[str] = None,
    group_id: Annotated[Optional[str], Query(alias="groupId")] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> list[ProductResponse]:
    """Online, in-stock products."""
    filters = ProductFilters(
        category=category,
        brand=brand,
        search=search,
        group_id=group_id,
        limit=limit,
        offset=offset,
    )
    products = await CommerceStore(session).get_products(filters)
    return [ProductResponse.model_validate(p) for p in products]


@router.get("/{sku}", response_model=ProductResponse)
async def get_product(sku: str, session: DbSession) -> ProductResponse:
    product = await ProductRepository(session).get_by_sku(sku)
    if not product or not product.is_active or not product.is_online:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return ProductResponse.model_validate(product)
