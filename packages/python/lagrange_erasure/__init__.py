"""
Lagrange Erasure Kit - Python SDK

Erasure coding over arbitrary-precision integers: every data fragment of a file
is one point of an implicit integer polynomial, erasure fragments are further
points of that polynomial, and any ``data_count`` surviving fragments rebuild
the rest by exact Lagrange interpolation.
"""

__version__ = "0.1.0"

from .errors import (
    ErasureError,
    FormatError,
    ManifestError,
    GeometryError,
    InvariantViolation,
    CodecError,
)
from .codec import (
    Sign,
    encode,
    encode_erasure,
    decode,
    settle,
    head_padding_length,
)
from .manifest import (
    FragmentMetadata,
    load_manifest,
    save_manifest,
    parse_fragment_index,
    fragment_file_name,
)
from .fragment import Fragment
from .erasure import (
    lagrange_coefficient,
    interpolate_at,
    interpolate_missing,
    missing_indices,
    analyze_reconstruction,
)
from .reconstruct import (
    parse_pattern,
    split_file,
    merge_fragments,
    encode_file,
    rebuild_file,
    analyze_recoverability,
    EncodeReport,
    ReconstructionReport,
)

__all__ = [
    # Errors
    "ErasureError",
    "FormatError",
    "ManifestError",
    "GeometryError",
    "InvariantViolation",
    "CodecError",
    # Codec
    "Sign",
    "encode",
    "encode_erasure",
    "decode",
    "settle",
    "head_padding_length",
    # Manifest
    "FragmentMetadata",
    "load_manifest",
    "save_manifest",
    "parse_fragment_index",
    "fragment_file_name",
    "Fragment",
    # Interpolation
    "lagrange_coefficient",
    "interpolate_at",
    "interpolate_missing",
    "missing_indices",
    "analyze_reconstruction",
    # Workflows
    "parse_pattern",
    "split_file",
    "merge_fragments",
    "encode_file",
    "rebuild_file",
    "analyze_recoverability",
    "EncodeReport",
    "ReconstructionReport",
]
