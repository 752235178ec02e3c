"""
Repository package for data access layer.
"""
from wholesale.repositories.base import BaseRepository
from wholesale.repositories.catalog import CategoryRepository, PriceListRepository
from wholesale.repositories.job import JobRepository
from wholesale.repositories.order import CartRepository, OrderRepository
from wholesale.repositories.product import ProductGroupRepository, ProductRepository
from wholesale.repositories.sync_run import SyncRunRepository
from wholesale.repositories.user import UserRepository

__all__ = [
    "BaseRepository",
    "CartRepository",
    "CategoryRepository",
    "JobRepository",
    "OrderRepository",
    "PriceListRepository",
    "ProductGroupRepository",
    "ProductRepository",
    "SyncRunRepository",
    "UserRepository",
]
