"""SSZ serialization utilities."""

from remerkleable.core import View


def encode(obj: View) -> bytes:
    """Encode an SSZ object to bytes."""
    return bytes(obj.encode_bytes())


def decode(cls: type[View], data: bytes) -> View:
    """Decode bytes into an SSZ object of a fixed-size type.

    Raises ValueError when the input length does not match the type.
    """
    expected = cls.type_byte_length()
    if len(data) != expected:
        raise ValueError(
            f"Invalid length for {cls.__name__}: expected {expected} bytes, got {len(data)}"
        )
    return cls.decode_bytes(data)


def hash_tree_root(obj: View) -> bytes:
    """Compute the hash tree root of an SSZ object."""
    return bytes(obj.hash_tree_root())


__all__ = ["encode", "decode", "hash_tree_root"]
