"""
Binary tensor codec.

A buffer is the concatenation of raw little-endian tensor bytes; its
layout is described by an ordered list of weight specs:

    [{"name": "0/exp_avg", "shape": [64, 25], "dtype": "float32"}, ...]

The same codec backs model ``weights.bin`` shards and the
``optimizer_state.bin`` checkpoint artifact.
"""
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple, Union

import numpy as np

from ..exceptions import DecodeError

SUPPORTED_DTYPES = {
    'float32': np.dtype('<f4'),
    'int32': np.dtype('<i4'),
}

NamedArrays = Union[Mapping[str, Any], Iterable[Tuple[str, Any]]]


def weight_spec(name: str, shape: Sequence[int], dtype: str = 'float32') -> Dict[str, Any]:
    """Build one manifest entry."""
    if dtype not in SUPPORTED_DTYPES:
        raise ValueError(f"Unsupported dtype: {dtype}")
    return {'name': name, 'shape': [int(d) for d in shape], 'dtype': dtype}


def spec_nbytes(spec: Mapping[str, Any]) -> int:
    """Size in bytes of the tensor a spec describes."""
    count = int(np.prod(spec['shape'], dtype=np.int64)) if spec['shape'] else 1
    return count * SUPPORTED_DTYPES[spec['dtype']].itemsize


def encode_weights(named_arrays: NamedArrays) -> Tuple[bytes, List[Dict[str, Any]]]:
    """
    Encode named arrays into one buffer.

    Args:
        named_arrays: Mapping or (name, array) pairs, in buffer order.
                     Integer arrays are stored as int32, everything
                     else as float32.

    Returns:
        Tuple of (buffer, specs).
    """
    items = named_arrays.items() if isinstance(named_arrays, Mapping) else named_arrays

    chunks = []
    specs = []
    for name, value in items:
        array = np.asarray(value)
        dtype = 'int32' if np.issubdtype(array.dtype, np.integer) else 'float32'
        array = array.astype(SUPPORTED_DTYPES[dtype], copy=False)
        specs.append(weight_spec(name, array.shape, dtype))
        chunks.append(array.tobytes(order='C'))

    return b''.join(chunks), specs


def decode_weights(
    data: bytes,
    specs: Sequence[Mapping[str, Any]],
) -> 'OrderedDict[str, np.ndarray]':
    """
    Decode a buffer against its weight specs.

    Args:
        data: Buffer produced by encode_weights().
        specs: The declared specification to decode against.

    Returns:
        Ordered mapping of name to array, in spec order.

    Raises:
        DecodeError: If a spec is malformed or the buffer size does not
            match the specs exactly.
    """
    try:
        sizes = [spec_nbytes(spec) for spec in specs]
    except (KeyError, TypeError, ValueError) as e:
        raise DecodeError(f"Malformed weight spec: {e}")

    expected = sum(sizes)
    if len(data) != expected:
        raise DecodeError(
            f"Buffer holds {len(data)} bytes but {len(specs)} specs need {expected}"
        )

    arrays = OrderedDict()
    offset = 0
    for spec, size in zip(specs, sizes):
        dtype = SUPPORTED_DTYPES[spec['dtype']]
        array = np.frombuffer(data, dtype=dtype, count=size // dtype.itemsize, offset=offset)
        arrays[spec['name']] = array.reshape(spec['shape']).copy()
        offset += size

    return arrays
