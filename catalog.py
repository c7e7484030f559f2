# catalog.py
"""Read-only product queries for the storefront."""


def list_products(storage):
    return storage.get_products()


def by_category(storage, category):
    """Exact, case-sensitive match on the category label."""
    return storage.get_products_by_category(category)


def search_products(storage, query):
    return storage.search_products(query)


def query_products(storage, category=None, text=None):
    # one filter per call: category wins over text search
    if category:
        return by_category(storage, category)
    if text:
        return search_products(storage, text)
    return list_products(storage)
