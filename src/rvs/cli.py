"""
Rvs CLI
=======
Command-line interface for the rvs evaluation engine.

Input is a parsed forest in JSON form (see rvs.loader); DSL text is the
parser's job.

    rvs run  --forest stim.json --cycles 100 --seed 7 --vcd stim.vcd
    rvs show --forest stim.json
    rvs once --forest stim.json --expr '{"type": "range", "min": 0, "max": 9}'
"""

import argparse
import json
import logging
import sys

from rvs.compiler import ModelCompiler
from rvs.config import EngineConfig
from rvs.errors import ForestFormatError, RvsError
from rvs.loader import expr_from_dict, load_forest
from rvs.monitor import Monitor


def _build_model(args):
    config = EngineConfig.from_env().override(seed=args.seed, backend=args.backend)
    forest = load_forest(args.forest)
    return ModelCompiler(config).compile(forest), config


def cmd_run(args):
    model, config = _build_model(args)
    print(f"Compiled {len(model)} variables from {args.forest} ({config.backend}, seed={config.seed})")

    scope = Monitor(model)
    for _ in range(args.cycles):
        results = model.advance_cycle()
        scope.sample()
        if not args.quiet:
            row = "  ".join(f"{r.name}={r.value}{'*' if r.done else ''}" for r in results)
            print(f"[{model.cycle:>6}] {row}")

    print(f"[SUCCESS] {args.cycles} cycles complete.")
    if args.vcd:
        scope.export_vcd(args.vcd)
        print(f"VCD written to {args.vcd}")
    if args.json:
        scope.save_json(args.json)
        print(f"JSON written to {args.json}")
    if args.mem:
        scope.save_mem(args.mem)
        print(f"MEM written to {args.mem}")
    return 0


def cmd_show(args):
    forest = load_forest(args.forest)
    for enum in forest.enums:
        items = ", ".join(
            item.name if item.value is None else f"{item.name} = {item.value}" for item in enum.items
        )
        print(f"enum {enum.name} {{ {items} }}")
    for decl in forest.declarations:
        print(decl)
    return 0


def cmd_once(args):
    model, _ = _build_model(args)
    try:
        doc = json.loads(args.expr)
    except json.JSONDecodeError as e:
        raise ForestFormatError(f"--expr: invalid JSON: {e}") from e
    print(model.evaluate_once(expr_from_dict(doc)))
    return 0


def build_parser():
    parser = argparse.ArgumentParser(prog="rvs", description="rvs: random variable stimulus engine")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v for INFO, -vv for DEBUG logging")
    subparsers = parser.add_subparsers(dest="command", help="Sub-commands")

    def engine_args(p):
        p.add_argument("--forest", required=True, help="Parsed forest (JSON)")
        p.add_argument("--seed", type=lambda s: int(s, 0), default=None, help="64-bit seed (default: $RVS_SEED or 0)")
        p.add_argument("--backend", default=None, help="Random backend: philox or pcg64 (default: $RVS_BACKEND or philox)")

    # run
    p_run = subparsers.add_parser("run", help="Advance the model and print/export the trace")
    engine_args(p_run)
    p_run.add_argument("--cycles", type=int, default=10, help="Number of cycles")
    p_run.add_argument("--vcd", help="Output VCD file")
    p_run.add_argument("--json", help="Output JSON stimulus file")
    p_run.add_argument("--mem", help="Output $readmemh stimulus file")
    p_run.add_argument("-q", "--quiet", action="store_true", help="Do not print per-cycle values")

    # show
    p_show = subparsers.add_parser("show", help="Print the forest's declarations")
    p_show.add_argument("--forest", required=True, help="Parsed forest (JSON)")

    # once
    p_once = subparsers.add_parser("once", help="Evaluate one anonymous expression once")
    engine_args(p_once)
    p_once.add_argument("--expr", required=True, help="Expression (JSON)")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    commands = {"run": cmd_run, "show": cmd_show, "once": cmd_once}
    if args.command not in commands:
        parser.print_help()
        return 2

    try:
        return commands[args.command](args)
    except RvsError as e:
        print(f"[FAIL] {e.kind} error: {e}", file=sys.stderr)
        return 1
    except (OSError, ValueError) as e:
        print(f"[FAIL] {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
