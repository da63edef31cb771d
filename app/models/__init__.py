# app/models/__init__.py
from app.database import Base
from .user import User
from .subscription import Subscription
from .product import Product, ProductAnalysis

__all__ = ['Base', 'User', 'Subscription', 'Product', 'ProductAnalysis']
