"""
SQLAlchemy models package.
All models are imported here for easy access and Alembic discovery.
"""
from wholesale.models.cart import Cart, CartItem
from wholesale.models.category import Category
from wholesale.models.job import Job, JobStatus, JobType
from wholesale.models.order import Order, OrderItem, OrderStatus
from wholesale.models.pricing import CustomerPrice, PriceList
from wholesale.models.product import ImageSource, Product, ProductGroup
from wholesale.models.sync import SyncMode, SyncRun, SyncStatus, SyncType, ZohoApiLog
from wholesale.models.user import User, UserRole, UserStatus

__all__ = [
    "User",
    "UserRole",
    "UserStatus",
    "Product",
    "ProductGroup",
    "ImageSource",
    "Category",
    "PriceList",
    "CustomerPrice",
    "Cart",
    "CartItem",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Job",
    "JobType",
    "JobStatus",
    "SyncRun",
    "SyncType",
    "SyncMode",
    "SyncStatus",
    "ZohoApiLog",
]
