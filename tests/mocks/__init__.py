class MockData:
    """Mock catalog data for testing"""

    @staticmethod
    def product(key: str, name: str = "A", **fields) -> dict:
        product = {
            "key": key,
            "name": {"en": name},
            "slug": {"en": key.lower()},
            "productType": {"typeId": "product-type", "id": "src-pt-1"},
            "masterVariant": {"id": 1, "sku": f"{key}-1", "attributes": []},
            "variants": [],
            "published": True,
            "hasStagedChanges": False,
        }
        product.update(fields)
        return product

    @staticmethod
    def category(key: str, name: str = "Category", **fields) -> dict:
        category = {
            "key": key,
            "name": {"en": name},
            "slug": {"en": key.lower()},
            "orderHint": "0.1",
        }
        category.update(fields)
        return category
