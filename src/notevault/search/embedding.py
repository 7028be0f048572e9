"""Harmonic token projection embeddings.

A deterministic, training-free text embedding. Each token is folded into a
64-bit integer, reduced modulo a fixed table of coprime moduli, and every
residue is projected onto the unit circle. Token vectors are mean-pooled
and L2-normalised.

No model file and no randomness are involved, so identical text yields a
bit-identical vector in every process. Similarity comes from shared tokens
and coincident residues, not from learned semantics.
"""

from __future__ import annotations

import math
import re
import string
from typing import Sequence

import numpy as np


EMBEDDING_DIM = 384
MAX_TOKEN_LENGTH = 64

# First 192 primes: pairwise coprime, two dimensions each.
COPRIME_MODULI: tuple[int, ...] = (
    2, 3, 5, 7, 11, 13, 17, 19, 23, 29, 31, 37, 41, 43, 47, 53, 59, 61, 67,
    71, 73, 79, 83, 89, 97, 101, 103, 107, 109, 113, 127, 131, 137, 139,
    149, 151, 157, 163, 167, 173, 179, 181, 191, 193, 197, 199, 211, 223,
    227, 229, 233, 239, 241, 251, 257, 263, 269, 271, 277, 281, 283, 293,
    307, 311, 313, 317, 331, 337, 347, 349, 353, 359, 367, 373, 379, 383,
    389, 397, 401, 409, 419, 421, 431, 433, 439, 443, 449, 457, 461, 463,
    467, 479, 487, 491, 499, 503, 509, 521, 523, 541, 547, 557, 563, 569,
    571, 577, 587, 593, 599, 601, 607, 613, 617, 619, 631, 641, 643, 647,
    653, 659, 661, 673, 677, 683, 691, 701, 709, 719, 727, 733, 739, 743,
    751, 757, 761, 769, 773, 787, 797, 809, 811, 821, 823, 827, 829, 839,
    853, 857, 859, 863, 877, 881, 883, 887, 907, 911, 919, 929, 937, 941,
    947, 953, 967, 971, 977, 983, 991, 997, 1009, 1013, 1019, 1021, 1031,
    1033, 1039, 1049, 1051, 1061, 1063, 1069, 1087, 1091, 1093, 1097, 1103,
    1109, 1117, 1123, 1129, 1151, 1153, 1163,
)

NUM_MODULI = EMBEDDING_DIM // 2

_TOKEN_BASE = 65536
_WORD_MASK = (1 << 64) - 1
# Unicode White_Space. Narrower than re's \s, which also matches U+001C..U+001F.
UNICODE_WHITESPACE = (
    "\u0009\u000a\u000b\u000c\u000d\u0020\u0085\u00a0\u1680"
    "\u2000\u2001\u2002\u2003\u2004\u2005\u2006\u2007\u2008\u2009\u200a"
    "\u2028\u2029\u202f\u205f\u3000"
)
_SPLIT_PATTERN = re.compile(
    "[" + re.escape(UNICODE_WHITESPACE + string.punctuation) + "]+"
)


def tokenize(text: str) -> list[str]:
    """Split on whitespace and ASCII punctuation, lowercase, drop empties."""
    return [t.lower() for t in _SPLIT_PATTERN.split(text) if t]


def token_to_integer(token: str) -> int:
    """Fold a token's code points into an unsigned 64-bit integer.

    N = sum(u_j * 65536**(L-j)) modulo 2**64. Only the first
    MAX_TOKEN_LENGTH code points contribute.
    """
    n = 0
    for ch in token[:MAX_TOKEN_LENGTH]:
        n = (n * _TOKEN_BASE + ord(ch)) & _WORD_MASK
    return n


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors.

    Returns 0.0 when the lengths differ or either vector has zero norm.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        return 0.0

    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a > 0.0 and norm_b > 0.0:
        return float(np.dot(va, vb) / (norm_a * norm_b))
    return 0.0


class EmbeddingModel:
    """Harmonic token projection model.

    Stateless apart from the moduli table; instances are interchangeable.
    """

    def __init__(self) -> None:
        self.moduli = COPRIME_MODULI[:NUM_MODULI]
        self._moduli_f64 = np.array(self.moduli, dtype=np.float64)

    @property
    def dimension(self) -> int:
        return 2 * len(self.moduli)

    def embed(self, text: str) -> np.ndarray:
        """Embed a text as a float32 vector of EMBEDDING_DIM components.

        Text without tokens maps to the zero vector.
        """
        tokens = tokenize(text)
        if not tokens:
            return np.zeros(self.dimension, dtype=np.float32)

        pooled = np.zeros(self.dimension, dtype=np.float64)
        for token in tokens:
            pooled += self.embed_token(token)
        pooled /= len(tokens)

        norm = float(np.linalg.norm(pooled))
        if norm > 0.0:
            pooled /= norm
        return pooled.astype(np.float32)

    def embed_token(self, token: str) -> np.ndarray:
        """Project one token onto the unit circle once per modulus.

        Output layout is [sin θ_0, cos θ_0, sin θ_1, cos θ_1, ...].
        """
        n = token_to_integer(token)
        residues = np.fromiter(
            (n % m for m in self.moduli), dtype=np.float64, count=len(self.moduli)
        )
        theta = 2.0 * math.pi * residues / self._moduli_f64

        out = np.empty(self.dimension, dtype=np.float64)
        out[0::2] = np.sin(theta)
        out[1::2] = np.cos(theta)
        return out

    def embed_batch(self, texts: Sequence[str]) -> list[np.ndarray]:
        """Embed each text independently."""
        return [self.embed(text) for text in texts]
