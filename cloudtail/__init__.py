__version__ = "0.3.0"


def get_version() -> str:
    return __version__
