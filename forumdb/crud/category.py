"""Delegate for the `Category` model."""

from ..models.category import Category
from ..schemas.category import CategoryCreate, CategoryUpdate
from .base import ModelDelegate


class CategoryDelegate(ModelDelegate[Category, CategoryCreate, CategoryUpdate]):
    client_attr = "category"

    def __init__(self, client):
        super().__init__(client, Category, CategoryCreate, CategoryUpdate)

    def get_by_name(self, name: str):
        return self.find_unique(where={"name": name})

    def list_with_post_counts(self):
        """All categories by name, each with `_count.posts`."""
        return self.find_many(order_by={"name": "asc"}, include={"_count": {"select": {"posts": True}}})
