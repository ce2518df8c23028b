"""Transaction utilities: wire encoding, cached transactions, BIP 69 sorting and PSBTs."""

__version__ = "0.1.0"

__all__ = ["psbt", "tx", "txsort", "wire"]