from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from configuration.models import Configuration
from configuration.utils import cache_configuration_value, clear_configuration_value


@receiver(post_save, sender=Configuration)
def update_cached_configuration_value(
    sender: type[Configuration], *, instance: Configuration, **kwargs
) -> None:
    """
    Refresh the cached value whenever a configuration row is saved.

    A value which cannot be parsed evicts the cached entry instead, so readers
    fall back to their defaults rather than seeing a stale value.
    """
    try:
        value = instance.get_value()
    except ValueError:
        clear_configuration_value(instance.key)
        return
    cache_configuration_value(instance.key, value)


@receiver(post_delete, sender=Configuration)
def evict_cached_configuration_value(
    sender: type[Configuration], *, instance: Configuration, **kwargs
) -> None:
    clear_configuration_value(instance.key)
