import numpy as np

# 2-bit codes: A=0, C=1, G=2, T/U=3, anything else=4
NT4_INVALID = 4
NT4_LUT = np.full(256, NT4_INVALID, dtype=np.uint8)
for _ch, _code in (("A", 0), ("C", 1), ("G", 2), ("T", 3), ("U", 3)):
    NT4_LUT[ord(_ch)] = _code
    NT4_LUT[ord(_ch.lower())] = _code

COMPL_LUT = np.full(256, ord("N"), dtype=np.uint8)
for _ch, _comp in zip("ACGTU", "TGCAA"):
    COMPL_LUT[ord(_ch)] = ord(_comp)
    COMPL_LUT[ord(_ch.lower())] = ord(_comp)


def nt4(b: int) -> int:
    """2-bit code of an ASCII nucleotide byte, or 4 when it is not A/C/G/T/U."""
    return int(NT4_LUT[b & 0xFF])


def complement(b: int) -> int:
    """Complementary base byte (upper case); non-nucleotides map to N."""
    return int(COMPL_LUT[b & 0xFF])
