#!/usr/bin/env python3
"""
CLI wrapper: reconcile a broker activity export into open positions and
closed trades.
"""
import os, sys
# ensure repo root is on PYTHONPATH so options_ledger can be imported
_SCRIPT_DIR = os.path.dirname(__file__)
_REPO_ROOT = os.path.abspath(os.path.join(_SCRIPT_DIR, os.pardir))
sys.path.insert(0, _REPO_ROOT)
import argparse
import logging
from pathlib import Path

from options_ledger.parsers import GenericParser, RobinhoodParser
from options_ledger.processing import check_consistency, process_all

PARSERS = {
    'auto': None,
    'robinhood': RobinhoodParser,
    'generic': GenericParser,
}


def main(argv=None):
    ap = argparse.ArgumentParser(description=__doc__)
    ap.add_argument('activity_file', nargs='?', default='data/activity.csv')
    ap.add_argument('--out-dir', default='data/cleaned')
    ap.add_argument('--format', choices=sorted(PARSERS), default='auto')
    ap.add_argument('--sort-by-date', action='store_true',
                    help='consume opening lots in date order instead of file order')
    ap.add_argument('-v', '--verbose', action='store_true')
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(levelname)s: %(message)s',
    )

    parser_cls = PARSERS[args.format]
    try:
        result = process_all(
            Path(args.activity_file),
            Path(args.out_dir),
            parser=parser_cls() if parser_cls else None,
            sort_by_date=args.sort_by_date,
        )
    except FileNotFoundError as e:
        print(f"Error: {e}")
        return 1

    print(f"Realized P&L: {result.realized_pnl:.2f} over {len(result.closed_history)} closing legs")
    problems = check_consistency(result.lots, result.closed_history)
    if problems.empty:
        print("All open and close quantities are consistent.")
    else:
        print(problems)
    return 0


if __name__ == '__main__':
    sys.exit(main())
