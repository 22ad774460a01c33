import functools
from importlib.metadata import PackageNotFoundError, version


@functools.lru_cache(maxsize=None)
def get_laurel_version():
    try:
        return version("laurel")
    except PackageNotFoundError:
        # Running from a source checkout which was never installed
        from laurel import get_version

        return get_version()
