from __future__ import annotations

import math
import sys
from typing import List, Sequence


def _isatty() -> bool:
    try:
        return sys.stdout.isatty()
    except Exception:
        return False


def _c(s: str, code: str) -> str:
    if not _isatty():
        return s
    return f"\033[{code}m{s}\033[0m"


def green(s: str) -> str:
    return _c(s, "32")


def yellow(s: str) -> str:
    return _c(s, "33")


def red(s: str) -> str:
    return _c(s, "31")


def dim(s: str) -> str:
    return _c(s, "2")


def bold(s: str) -> str:
    return _c(s, "1")


def mass_bar(lp: float, width: int = 18) -> str:
    """Bar for exp(lp).

    Zero mass (lp = -inf) draws "∅", mass too small for one cell draws "∘",
    and a "▶" after the bar marks a sum above one.
    """
    if lp == -math.inf:
        return "[∅" + "·" * (width - 1) + "]"
    p = _exp(lp)
    n = min(width, int(round(p * width)))
    cells = "●" * n if n else "∘"
    tail = "]▶" if lp > 0.0 else "]"
    return "[" + cells + "·" * (width - len(cells)) + tail


class HumanUI:
    def __init__(self, enabled: bool = True):
        self.enabled = bool(enabled)

    def header(self, op: str, detail: str) -> None:
        if not self.enabled:
            return
        print(bold(f"logprob {op}") + dim(f" ({detail})"))

    def lse(self, value: float, clamped: bool = False) -> None:
        if not self.enabled:
            return
        p = _exp(value)
        if value > 0.0:
            print(yellow(f"ln(sum p) = {value!r}") + f"  {mass_bar(value)} sum p = {p!r} > 1")
        else:
            print(green(f"ln(sum p) = {value!r}") + f"  {mass_bar(value)} p = {p!r}")
        if clamped:
            print(dim("   clamped mode: sums above 1 are reported as ln 1 = 0"))

    def distribution(self, log_probs: Sequence[float]) -> None:
        if not self.enabled:
            return
        rows: List[str] = []
        for i, lp in enumerate(log_probs):
            p = _exp(lp)
            rows.append(f"  {i:3d} {mass_bar(lp)} ln p = {lp!r}  p = {p!r}")
        print("\n".join(rows) if rows else dim("  (empty)"))

    def error(self, msg: str) -> None:
        print(red(f"❌ {msg}"), file=sys.stderr)


def _exp(x: float) -> float:
    try:
        return math.exp(x)
    except OverflowError:
        return float("inf")
