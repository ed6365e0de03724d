# propsearch/__init__.py
from propsearch.orchestrators.search_controller import PropertySearchController

__version__ = "0.1.0"

__all__ = ["PropertySearchController", "__version__"]
