"""Protocol Buffers wire-format primitives: field descriptors, UTF-8 checking and encoding."""

__version__ = "0.4.6"
__all__ = ["descriptor", "encode", "utf8"]