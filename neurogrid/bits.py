"""Conversions between symbols and fixed-width bit vectors (most significant bit first)."""
from typing import List, Sequence, Union

from .config import ConfigurationError, MAX_BIT_WIDTH, validate_bit_width


Symbol = Union[str, int]


def symbol_code(symbol: Symbol) -> int:
    """
    Get the integer code of a symbol.

    Args:
        symbol: Single character or integer code

    Returns:
        Integer code in the range 0..0xFFFF
    """
    if isinstance(symbol, str):
        if len(symbol) != 1:
            raise ConfigurationError(f"symbol must be a single character, got {symbol!r}")
        code = ord(symbol)
    else:
        code = int(symbol)
    if not 0 <= code < (1 << MAX_BIT_WIDTH):
        raise ConfigurationError(f"symbol code {code} does not fit in {MAX_BIT_WIDTH} bits")
    return code


def symbol_to_bits(symbol: Symbol, width: int) -> List[bool]:
    """
    Encode a symbol as `width` bits, most significant first.

    Symbols whose code needs more than `width` bits are rejected.

    Args:
        symbol: Character or integer code
        width: Number of bits (1..16)

    Returns:
        List of booleans
    """
    validate_bit_width(width)
    code = symbol_code(symbol)
    if code >= (1 << width):
        raise ConfigurationError(
            f"symbol {symbol!r} (code {code}) does not fit in {width} bits")
    return [bool((code >> (width - 1 - i)) & 1) for i in range(width)]


def bits_to_symbol(bits: Sequence[bool]) -> str:
    """
    Decode bits (most significant first) into a character.

    Args:
        bits: 1 to 16 booleans

    Returns:
        The decoded character
    """
    validate_bit_width(len(bits))
    value = 0
    for bit in bits:
        value = (value << 1) | (1 if bit else 0)
    return chr(value)


def hamming_distance(a: Symbol, b: Symbol) -> int:
    """Number of bit positions in which two symbols differ."""
    return bin(symbol_code(a) ^ symbol_code(b)).count("1")
