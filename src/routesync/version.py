__version__ = "0.1.0"
__is_release__ = True
