"""
Domain layer for the fetch proxy: the cache-aside fetch pipeline and the
JSON response shaping it produces.
"""
