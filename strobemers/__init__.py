
from .errors import StrobeError, InvalidInput, HasherFailure
from .configs import StrobeConfig, SelectionPolicy, DEFAULT_PRIME_NUMBER, validate_params, mersenne_mask
from .rc import nt4, complement
from .NtHasher import KmerHasher, BatchKmerHasher, NtHash64, XorHasher, fnv1a64, splitmix64
from .HashStream import HashTable, build, sliding_window_min
from .WindowSelector import select, combine, candidate_window
from .StrobemerIterator import StrobemerIterator, MinStrobes, RandStrobes, StrobemerRecord, finalize
from .StrobeWindower import StrobeWindower, StrobemerBatch, compute_records
