from .markup_transformer import MarkupTransformer, TransformOptions, transform
from .module_loader import LoadInterceptor, read_source
from .registry import ExtensionLoader, ExtensionRegistry, LoaderRegistration, get_default_registry

__all__ = [
    "ExtensionLoader",
    "ExtensionRegistry",
    "LoadInterceptor",
    "LoaderRegistration",
    "MarkupTransformer",
    "TransformOptions",
    "get_default_registry",
    "read_source",
    "transform",
]
