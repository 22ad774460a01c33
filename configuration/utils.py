from typing import Any

from django.conf import settings
from django.core.cache import caches

from configuration.models import Configuration

CONFIGURATION_KEY_PREFIX = "config"

_MISSING = object()


def _cache_key(key: str) -> str:
    return f"{CONFIGURATION_KEY_PREFIX}_{key}"


def configuration_value(key: str, default: Any = _MISSING) -> Any:
    """
    Retrieve a configuration value by key with caching and type casting.

    Behavior:
        - Look up the value in the ``configuration_cache`` using a namespaced
          cache key.
        - If the value is missing, delegate to
          ``cache_configuration_value(key)`` to fetch, cast, cache, and return
          the value.
        - If there is no ``Configuration`` row for the key and a ``default``
          was supplied, return the default without caching it so that a row
          added later takes effect immediately.

    Args:
        key (str): The configuration key to resolve.
        default (Any): Value returned when the key has not been configured.

    Returns:
        Any: The resolved and type-cast configuration value.

    Raises:
        Configuration.DoesNotExist: If the key is not present in the database
            and no default was supplied.
    """
    value = caches["configuration_cache"].get(_cache_key(key))

    if value is None:
        try:
            value = cache_configuration_value(key)
        except Configuration.DoesNotExist:
            if default is _MISSING:
                raise
            return default

    return value


def cache_configuration_value(key: str, value: Any | None = None) -> Any:
    """
    Populate or refresh the cached value for a configuration key.

    If ``value`` is ``None`` the ``Configuration`` row is loaded and cast via
    ``get_value()``; otherwise ``value`` is cached directly.

    Raises:
        Configuration.DoesNotExist: If ``value`` is ``None`` and there is no
            ``Configuration`` row with the given key.
    """
    if value is None:
        config = Configuration.objects.get(key=key)
        value = config.get_value()

    caches["configuration_cache"].set(
        _cache_key(key), value, timeout=settings.CONFIGURATION_CACHE_TIMEOUT
    )
    return value


def clear_configuration_value(key: str) -> None:
    caches["configuration_cache"].delete(_cache_key(key))
