"""
tangentcore: A Worked Example
=============================

A hand-written reverse-mode rule for

    f(x, A) = Point(x=sum(A @ x), y=label)

where `A` is a symmetric matrix and `label` is a string.

The pullback below shows the pieces an AD engine strings together:
1. Thunks defer work the caller may never need
2. InplaceableThunk lets an accumulator add into an existing buffer
3. add_into sums contributions, in place where it is safe
4. projector() maps raw gradients back onto the primal's tangent space
"""

import logging
from dataclasses import dataclass

import numpy as np

from tangentcore import (
    InplaceableThunk,
    NoTangent,
    Tangent,
    Thunk,
    ZeroTangent,
    add_into,
    projector,
    unthunk,
)
from tangentcore.linalg import Symmetric


@dataclass(frozen=True)
class Point:
    x: float
    y: str


def f(x, A):
    return Point(x=float(np.sum(np.asarray(A) @ x)), y="label")


def f_pullback(x, A, dout):
    """Pullback of f: cotangent of the output -> cotangents of (x, A)."""
    # The string field has no tangent, only dout.x carries information
    s = unthunk(dout.x)
    ones = np.ones(len(x))

    def add_dx(buffer):
        buffer += s * (np.asarray(A).T @ ones)
        return buffer

    dx = InplaceableThunk(lambda: s * (np.asarray(A).T @ ones), add_dx)
    dA = Thunk(lambda: s * np.outer(ones, x))
    return dx, projector(A)(dA)


def section(title):
    print()
    print("=" * 60)
    print(title)
    print("=" * 60)


def main():
    logging.basicConfig(level=logging.INFO)

    x = np.array([1.0, 2.0, 3.0])
    A = Symmetric(np.arange(9.0).reshape(3, 3))

    section("Forward pass")
    out = f(x, A)
    print(f"f(x, A) = {out}")

    section("Projection")
    p = projector(out)
    dout = p(Tangent(Point, x=2))
    print(f"projector(out)      = {p}")
    print(f"projected cotangent = {dout}")
    print(f"string field        = {dout.y!r} (is NoTangent: {dout.y is NoTangent()})")

    section("Pullback")
    dx, dA = f_pullback(x, A, dout)
    print(f"dx (lazy) = {dx}")
    print(f"dA (lazy) = {dA}")

    section("Accumulation")
    grad_x = np.zeros(3)
    grad_x = add_into(grad_x, dx)
    grad_x = add_into(grad_x, ZeroTangent())
    print(f"accumulated dx = {grad_x}")

    dA = unthunk(dA)
    print(f"dA is {type(dA).__name__}: symmetric = {np.allclose(dA.to_dense(), dA.to_dense().T)}")
    print(dA.to_dense())


if __name__ == '__main__':
    main()
