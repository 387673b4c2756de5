"""ID-to-name and field metadata caches.

Usage:
    from autotask_tools.services.cache import LabelCache, FieldCache

    names = await LabelCache.get_instance(data_source)
    fields = FieldCache(data_source.get_field_info)
"""
from autotask_tools.services.cache.field_cache import FieldCache
from autotask_tools.services.cache.label_cache import LabelCache
from autotask_tools.services.cache.models import CacheEntry, FieldInfo, PicklistValue

__all__ = [
    "CacheEntry",
    "FieldCache",
    "FieldInfo",
    "LabelCache",
    "PicklistValue",
]
