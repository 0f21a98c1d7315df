"""
algorithm.py — geometry and allocation-correction primitives

Pure functions over key paths and allocation vectors:
- intersect / split_intersect      : segment crossings, subdividing paths at them
- visual_center / ..._length        : stroke-weighted centroid in [0,1]²
- scale_correction                  : proportional rescale with water-filling
- center_correction                 : move the visual center of a 1-D allocation

No knowledge of prototypes, trees or configs lives here.
"""

from __future__ import annotations

import copy
import logging
import math
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from glyph_types import AssignVal, KeyPath, KeyPoint, WorkPoint

logger = logging.getLogger(__name__)

# Tolerance used for float comparisons across the layout engine.
NORMAL_OFFSET = 0.0001


# ----------------------------
# Segment intersection
# ----------------------------

def _cross(ax: float, ay: float, bx: float, by: float) -> float:
    return ax * by - ay * bx


def _snap_unit(t: float) -> Optional[float]:
    """Clamp t into [0,1] when it lies within NORMAL_OFFSET of the interval."""
    if t < -NORMAL_OFFSET or t > 1.0 + NORMAL_OFFSET:
        return None
    return min(1.0, max(0.0, t))


def intersect(
    p11: WorkPoint, p12: WorkPoint, p21: WorkPoint, p22: WorkPoint
) -> Optional[Tuple[WorkPoint, float, float]]:
    """
    Crossing of segment p11→p12 with segment p21→p22.

    Returns (point, t1, t2) with t1/t2 the parameters on each segment, or None
    for parallel segments (zero determinant) and crossings outside both
    segments. Parameters within NORMAL_OFFSET of [0,1] are clamped into it.
    """
    a1x, a1y = p12[0] - p11[0], p12[1] - p11[1]
    a2x, a2y = p22[0] - p21[0], p22[1] - p21[1]
    det = _cross(a1x, a1y, a2x, a2y)
    if abs(det) < 1e-12:
        return None

    dx, dy = p21[0] - p11[0], p21[1] - p11[1]
    t1 = _snap_unit(_cross(dx, dy, a2x, a2y) / det)
    t2 = _snap_unit(_cross(dx, dy, a1x, a1y) / det)
    if t1 is None or t2 is None:
        return None

    point = (p11[0] + a1x * t1, p11[1] + a1y * t1)
    return point, t1, t2


def _splittable(a: WorkPoint, b: WorkPoint, p: WorkPoint, min_sq: float) -> bool:
    da = (p[0] - a[0]) ** 2 + (p[1] - a[1]) ** 2
    db = (b[0] - p[0]) ** 2 + (b[1] - p[1]) ** 2
    if da < NORMAL_OFFSET or db < NORMAL_OFFSET:
        return False
    return da + NORMAL_OFFSET >= min_sq and db + NORMAL_OFFSET >= min_sq


def split_intersect(paths: List[KeyPath], min_len: float) -> None:
    """
    Subdivide every segment, in place, at interior crossings with segments of
    the other paths. A crossing is inserted only if both resulting
    sub-segments are at least `min_len` long.
    """
    min_sq = min_len * min_len
    splits: Dict[Tuple[int, int], List[Tuple[float, WorkPoint]]] = {}

    for i in range(len(paths)):
        pts_i = paths[i].points()
        for j in range(i + 1, len(paths)):
            pts_j = paths[j].points()
            for si in range(len(pts_i) - 1):
                a1, b1 = pts_i[si], pts_i[si + 1]
                for sj in range(len(pts_j) - 1):
                    a2, b2 = pts_j[sj], pts_j[sj + 1]
                    hit = intersect(a1, b1, a2, b2)
                    if hit is None:
                        continue
                    pos, t1, t2 = hit
                    if _splittable(a1, b1, pos, min_sq):
                        splits.setdefault((i, si), []).append((t1, pos))
                    if _splittable(a2, b2, pos, min_sq):
                        splits.setdefault((j, sj), []).append((t2, pos))

    if not splits:
        return

    for i, path in enumerate(paths):
        if not any(k[0] == i for k in splits):
            continue
        new_points: List[KeyPoint] = []
        for si, kp in enumerate(path.kpoints):
            new_points.append(kp)
            cuts = sorted(splits.get((i, si), []), key=lambda c: c[0])
            last_t = -1.0
            for t, pos in cuts:
                if t - last_t < NORMAL_OFFSET:
                    continue
                new_points.append(KeyPoint((pos[0], pos[1])))
                last_t = t
        path.kpoints = new_points


# ----------------------------
# Visual center
# ----------------------------

def _normalize_center(center: np.ndarray, lo: np.ndarray, hi: np.ndarray) -> WorkPoint:
    out = []
    for k in range(2):
        size = hi[k] - lo[k]
        c = 0.5 if size < NORMAL_OFFSET else float((center[k] - lo[k]) / size)
        if abs(c - 0.5) < NORMAL_OFFSET:
            c = 0.5
        out.append(c)
    return (out[0], out[1])


def _bounds(paths: Sequence[KeyPath]) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    pts = [p for path in paths for p in path.points()]
    if not pts:
        return None
    arr = np.asarray(pts, dtype=np.float64)
    return arr.min(axis=0), arr.max(axis=0)


def visual_center(paths: Sequence[KeyPath]) -> WorkPoint:
    """
    Segment-count weighted centroid of the visible paths, normalized to the
    bounding box of all paths (hidden ones included). A zero-size axis
    reports 0.5.
    """
    bounds = _bounds(paths)
    if bounds is None:
        return (0.5, 0.5)

    mids: List[WorkPoint] = []
    for path in paths:
        if path.hide or not path.kpoints:
            continue
        pts = path.points()
        if path.is_dot():
            mids.append(pts[0])
            continue
        for a, b in zip(pts, pts[1:]):
            mids.append(((a[0] + b[0]) / 2.0, (a[1] + b[1]) / 2.0))

    if not mids:
        return (0.5, 0.5)
    center = np.asarray(mids, dtype=np.float64).mean(axis=0)
    return _normalize_center(center, *bounds)


def visual_center_length(paths: Sequence[KeyPath], min_len: float, stroke_width: float) -> WorkPoint:
    """
    Length weighted centroid. Paths are split at their mutual crossings first
    so crossing strokes are weighted per piece. A dot weighs one stroke width.
    """
    bounds = _bounds(paths)
    if bounds is None:
        return (0.5, 0.5)

    pieces = [copy.deepcopy(p) for p in paths]
    split_intersect(pieces, min_len)

    mids: List[WorkPoint] = []
    weights: List[float] = []
    for path in pieces:
        if path.hide or not path.kpoints:
            continue
        pts = path.points()
        if path.is_dot():
            mids.append(pts[0])
            weights.append(stroke_width)
            continue
        for a, b in zip(pts, pts[1:]):
            length = math.hypot(b[0] - a[0], b[1] - a[1])
            if length < NORMAL_OFFSET:
                continue
            mids.append(((a[0] + b[0]) / 2.0, (a[1] + b[1]) / 2.0))
            weights.append(length)

    if not mids or sum(weights) <= 0.0:
        return (0.5, 0.5)
    center = np.average(np.asarray(mids, dtype=np.float64), axis=0, weights=np.asarray(weights))
    return _normalize_center(center, *bounds)


# ----------------------------
# Allocation corrections
# ----------------------------

def scale_correction(values: List[AssignVal], target: float) -> bool:
    """
    Rescale `values` in place so their totals sum to `target` while every
    base stays put. Excess that would go negative is zeroed and the debt is
    spread evenly over the elements that still have excess (water-filling).

    Returns False, with every excess zeroed, when target < Σ base.
    """
    if not values:
        return target <= NORMAL_OFFSET

    bases = np.array([v.base for v in values], dtype=np.float64)
    totals = np.array([v.total() for v in values], dtype=np.float64)
    base_sum = float(bases.sum())

    if target + NORMAL_OFFSET < base_sum:
        for v in values:
            v.excess = 0.0
        return False

    total = float(totals.sum())
    if total <= 0.0:
        excess = np.full(len(values), (target - base_sum) / len(values))
    else:
        excess = totals * (target / total) - bases

    for _ in range(len(values)):
        neg = excess < 0.0
        if not neg.any():
            break
        debt = float(-excess[neg].sum())
        excess[neg] = 0.0
        pos = excess > 0.0
        if not pos.any():
            break
        excess[pos] -= debt / int(pos.sum())
    excess = np.maximum(excess, 0.0)

    for v, e in zip(values, excess.tolist()):
        v.excess = e
    return True


class CorrectionMode(str, Enum):
    # left → right; used when the end portion grows
    EXPAND = "Expand"
    # right → left; used when the end portion shrinks
    SHRINK = "Shrink"


def _fold_to_bases(vals: np.ndarray, bases: np.ndarray, mode: CorrectionMode) -> np.ndarray:
    out = vals.copy()
    order = range(len(out)) if mode is CorrectionMode.EXPAND else range(len(out) - 1, -1, -1)
    diff = 0.0
    for i in order:
        if out[i] < bases[i]:
            diff += bases[i] - out[i]
            out[i] = bases[i]
        elif diff > 0.0:
            take = min(out[i] - bases[i], diff)
            out[i] -= take
            diff -= take
    # debt left over at the far end is taken back in the other direction
    for i in reversed(order):
        if diff <= 0.0:
            break
        take = min(out[i] - bases[i], diff)
        out[i] -= take
        diff -= take
    return out


def center_correction(
    values: Sequence[float],
    bases: Sequence[float],
    center: float,
    target: float,
    corr_val: float,
) -> List[float]:
    """
    Move the visual center of a 1-D allocation toward `target`.

    values  : current lengths (base + excess) of each slot
    bases   : guaranteed part of each slot
    center  : current center as a fraction of Σ values
    corr_val: strength in [-1, 1]; negative mirrors the target across 0.5

    Returns the new excess per slot (Σ preserved). When center sits on 0 or 1
    the input excess is returned unchanged.
    """
    vals = np.asarray(values, dtype=np.float64)
    base = np.asarray(bases, dtype=np.float64)
    total = float(vals.sum())

    if total <= 0.0 or center <= 0.0 or center >= 1.0 or corr_val == 0.0:
        return (vals - base).tolist()

    if corr_val < 0.0:
        target = 1.0 - target
        corr_val = -corr_val

    new_center = center + (target - center) * min(corr_val, 1.0)
    new_center = min(1.0 - NORMAL_OFFSET, max(NORMAL_OFFSET, new_center))
    deviation = new_center - center
    if abs(deviation) < NORMAL_OFFSET:
        return (vals - base).tolist()

    split = center * total
    ratio_l = new_center / center
    ratio_r = (1.0 - new_center) / (1.0 - center)

    cum = np.cumsum(vals)
    new_cum = np.where(cum <= split, cum * ratio_l, split * ratio_l + (cum - split) * ratio_r)
    new_vals = np.diff(np.concatenate(([0.0], new_cum)))

    mode = CorrectionMode.SHRINK if deviation > 0.0 else CorrectionMode.EXPAND
    new_vals = _fold_to_bases(new_vals, base, mode)
    logger.debug("center_correction %.4f -> %.4f (%s)", center, new_center, mode.value)
    return (new_vals - base).tolist()
