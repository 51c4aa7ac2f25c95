"""Import all models so SQLAlchemy metadata knows about them."""
from app.models.base import Base
from app.models.product import Product
from app.models.product_attachment import ProductAttachment

__all__ = ["Base", "Product", "ProductAttachment"]
