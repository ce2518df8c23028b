"""Partially signed transactions as defined by BIP 174."""

__all__ = [
    "checks",
    "codec",
    "errors",
    "extractor",
    "finalizer",
    "keys",
    "packet",
    "partial_input",
    "partial_output",
    "script",
    "signer",
    "sort",
    "types",
    "updater",
]