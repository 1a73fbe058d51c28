import numbers
from dataclasses import dataclass, replace
from enum import Enum
from typing import Union

from strobemers.errors import InvalidInput

# 2^20 - 1, mask used by the RandStrobes combine step
DEFAULT_PRIME_NUMBER = (1 << 20) - 1
MIN_PRIME_NUMBER = 256
MASK64 = 0xFFFFFFFFFFFFFFFF
SUPPORTED_ORDERS = (2, 3)


class SelectionPolicy(str, Enum):
    MIN = "min"     # MinStrobes: smallest raw hash in the window
    RAND = "rand"   # RandStrobes: smallest combine(H[anchor], H[j])

    @classmethod
    def parse(cls, value: Union["SelectionPolicy", str]) -> "SelectionPolicy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise InvalidInput(f"unknown selection policy {value!r} (expected 'min' or 'rand')") from None


def roundup64(x: int) -> int:
    """Smallest power of two >= x (x >= 1)."""
    return 1 << (int(x) - 1).bit_length()


def mersenne_mask(q: int) -> int:
    """Round q up to a 2^b - 1 mask; q must be at least 256."""
    if q < MIN_PRIME_NUMBER:
        raise InvalidInput(f"prime number too small (must be >= {MIN_PRIME_NUMBER}), got {q}")
    return min(roundup64(q) - 1, MASK64)


# ------------------------------
# StrobeConfig
# ------------------------------
@dataclass(frozen=True)
class StrobeConfig:
    """
    Parameters of one strobemer stream.

    order  : number of strobes per strobemer (2 or 3)
    k      : strobe (k-mer) length
    w_min  : first candidate offset after the previous strobe
    w_max  : last candidate offset after the previous strobe (inclusive)
    policy : 'min' (MinStrobes) or 'rand' (RandStrobes)
    prime  : mask for the RandStrobes combine step, kept in 2^b - 1 form
    shrink : allow windows to be clipped at the sequence end; when False a
             window that does not fit entirely ends the stream
    """
    order: int = 2
    k: int = 15
    w_min: int = 1
    w_max: int = 10
    policy: SelectionPolicy = SelectionPolicy.MIN
    prime: int = DEFAULT_PRIME_NUMBER
    shrink: bool = True

    def __post_init__(self):
        for name in ("order", "k", "w_min", "w_max", "prime"):
            v = getattr(self, name)
            if isinstance(v, bool) or not isinstance(v, numbers.Integral):
                raise InvalidInput(f"{name} must be an int, got {type(v).__name__}")
            # numpy integers are stored as plain ints
            object.__setattr__(self, name, int(v))
        if self.order not in SUPPORTED_ORDERS:
            raise InvalidInput(f"strobemer order not supported (must be 2 or 3), got {self.order}")
        if self.k < 1:
            raise InvalidInput(f"strobe length k must be >= 1, got {self.k}")
        if self.w_min < 0 or self.w_max < 0:
            raise InvalidInput(f"window offsets must be >= 0, got w_min={self.w_min}, w_max={self.w_max}")
        if self.w_min > self.w_max:
            raise InvalidInput(f"w_min must be <= w_max, got w_min={self.w_min}, w_max={self.w_max}")
        # smallest accepted q (256) rounds to the mask 255
        if self.prime < MIN_PRIME_NUMBER - 1 or self.prime > MASK64:
            raise InvalidInput(f"prime must be in [{MIN_PRIME_NUMBER - 1}, 2^64 - 1], got {self.prime}")
        # frozen: go through object.__setattr__ for the normalised fields
        object.__setattr__(self, "policy", SelectionPolicy.parse(self.policy))
        object.__setattr__(self, "shrink", bool(self.shrink))

    def with_prime(self, q: int) -> "StrobeConfig":
        return replace(self, prime=mersenne_mask(q))

    def with_shrink(self, shrink: bool) -> "StrobeConfig":
        return replace(self, shrink=bool(shrink))

    def min_sequence_length(self) -> int:
        return self.k + self.w_min


def validate_params(seq_len: int, cfg: StrobeConfig) -> None:
    """Fail fast when no strobe could ever be selected from a sequence of seq_len bases."""
    if seq_len < cfg.k:
        raise InvalidInput(f"sequence too short: length {seq_len} < k={cfg.k}")
    if seq_len < cfg.min_sequence_length():
        raise InvalidInput(
            f"sequence too short for given parameters: length {seq_len} < k + w_min = {cfg.min_sequence_length()}"
        )
