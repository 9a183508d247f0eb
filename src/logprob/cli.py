from __future__ import annotations

import argparse
import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from .errors import LogProbError
from .log_prob import LogProb
from .reduce import MODES, STRATEGIES, ReduceConfig, reduce_log_probs
from .softmax import softmax
from .ui import HumanUI

DTYPES = ("float32", "float64")


def _log_probs(values: Sequence[float], linear: bool, dtype: str) -> List[LogProb]:
    make = LogProb.from_linear if linear else LogProb.from_log
    return [make(v, dtype) for v in values]


def _run_lse(args: argparse.Namespace, ui: HumanUI) -> Dict[str, Any]:
    cfg = ReduceConfig(strategy=args.strategy, mode=args.mode, dtype=args.dtype)
    lps = _log_probs(args.values, args.linear, cfg.dtype)
    value = float(reduce_log_probs(lps, cfg))

    ui.header("lse", f"{cfg.strategy}/{cfg.mode}, {cfg.dtype}, n={len(lps)}")
    ui.lse(value, clamped=cfg.mode == "clamped")
    return {
        "op": "lse",
        "strategy": cfg.strategy,
        "mode": cfg.mode,
        "dtype": cfg.dtype,
        "n": len(lps),
        "value": value,
    }


def _run_softmax(args: argparse.Namespace, ui: HumanUI) -> Dict[str, Any]:
    out = [float(lp) for lp in softmax(args.values, dtype=args.dtype)]

    ui.header("softmax", f"{args.dtype}, n={len(out)}")
    ui.distribution(out)
    return {"op": "softmax", "dtype": args.dtype, "n": len(out), "log_probs": out}


def main(argv: Optional[Sequence[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="logprob", description="Log-space probability arithmetic.")
    ap.add_argument("--ui", type=str, default="human", choices=["human", "json"])
    ap.add_argument("-v", "--verbose", action="store_true")
    sub = ap.add_subparsers(dest="cmd", required=True)

    lse = sub.add_parser("lse", help="ln(sum p_i) of log-probabilities (use -- before values like -inf)")
    lse.add_argument("values", type=float, nargs="*")
    lse.add_argument("--linear", action="store_true", help="values are probabilities in [0, 1]")
    lse.add_argument("--strategy", type=str, default="buffered", choices=STRATEGIES)
    lse.add_argument("--mode", type=str, default="strict", choices=MODES)
    lse.add_argument("--dtype", type=str, default="float64", choices=DTYPES)

    sm = sub.add_parser("softmax", help="log-space softmax of real scores")
    sm.add_argument("values", type=float, nargs="*")
    sm.add_argument("--dtype", type=str, default="float64", choices=DTYPES)

    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ui = HumanUI(enabled=args.ui == "human")

    try:
        if args.cmd == "lse":
            out = _run_lse(args, ui)
        else:
            out = _run_softmax(args, ui)
    except LogProbError as e:
        if args.ui == "json":
            print(json.dumps({"error": type(e).__name__, "message": str(e)}, sort_keys=True))
        else:
            ui.error(str(e))
        return 2

    if args.ui == "json":
        print(json.dumps(out, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
