"""qabuild command-line interface.

Builds training and challenge splits from a SQuAD-style corpus, checks answer
spans, and hosts the evaluation stub.
"""

import argparse
import datetime
import os
import sys
from collections.abc import Sequence

from .config import VERSION, load_config
from .corpus import QabuildError, read_corpus, read_ids, span_mismatches
from .harness import CHALLENGE_SPLITS, TRAIN_SPLITS, RunConfig, run_splits
from .report import render_split_report

COMMANDS = ('train', 'challenge', 'eval', 'check', 'version')

USAGE_HINT = (
  'usage: qabuild {train,challenge,eval,check,version} ...\n'
  "Run 'qabuild <command> --help' for details."
)


def _timestamp() -> str:
  return datetime.datetime.now().strftime('%Y%m%d_%H%M%S')


def _run_config(args: argparse.Namespace) -> RunConfig:
  """Merge CLI flags over environment configuration."""
  cfg = load_config()
  seed = getattr(args, 'seed', None)
  return RunConfig(
    out_dir=args.out if args.out is not None else cfg.out_dir,
    seed=seed if seed is not None else cfg.seed,
    log_path=cfg.log_path,
    stdout_format=cfg.log_format,
    verbose=not args.quiet,
    report=args.report,
  )


def _build(args: argparse.Namespace, names: tuple[str, ...]) -> int:
  cfg = _run_config(args)
  written, summaries = run_splits(args.infile, names, cfg)
  if cfg.report:
    stem = os.path.splitext(os.path.basename(args.infile))[0]
    render_split_report(summaries, cfg.out_dir, basename=f'{stem}-{_timestamp()}')
    print(f'Wrote report to {cfg.out_dir}')
  for path in written.values():
    print(f'Wrote {path}')
  return 0


def cmd_train(args: argparse.Namespace) -> int:
  """CLI: write clean, append, and twoway training splits."""
  return _build(args, TRAIN_SPLITS)


def cmd_challenge(args: argparse.Namespace) -> int:
  """CLI: write the adversarial challenge split."""
  return _build(args, CHALLENGE_SPLITS)


def cmd_eval(args: argparse.Namespace) -> int:
  """CLI: evaluation stub; reports its inputs without transforming them."""
  corpus = read_corpus(args.infile)
  ids = read_ids(args.idfile)
  found = sum(1 for i in ids if i in corpus)
  print(f'eval: corpus {args.infile} ({len(corpus)} examples)')
  print(f'eval: ids {args.idfile} ({len(ids)} ids, {found} in corpus)')
  print('eval: scoring is not implemented')
  return 0


def cmd_check(args: argparse.Namespace) -> int:
  """CLI: report answers whose text does not match the context slice."""
  corpus = read_corpus(args.infile)
  bad = list(span_mismatches(corpus.items()))
  print(f'{args.infile}: {len(corpus)} examples, {len(bad)} bad spans')
  for example_id, i, expected, found in bad[: args.limit]:
    print(f'  {example_id}[{i}]: expected {expected!r}, found {found!r}')
  return 1 if bad else 0


def cmd_version(args: argparse.Namespace) -> int:
  """CLI: print the version."""
  print(f'qabuild {VERSION}')
  return 0


def _parser() -> argparse.ArgumentParser:
  ap = argparse.ArgumentParser(
    prog='qabuild', description='Build QA training and challenge splits'
  )
  sub = ap.add_subparsers(dest='cmd', required=True)

  for name, func, help_ in (
    ('train', cmd_train, 'Write clean, append, and twoway splits'),
    ('challenge', cmd_challenge, 'Write the adversarial challenge split'),
  ):
    p = sub.add_parser(name, help=help_)
    p.add_argument('infile', type=str, help='SQuAD-style JSON corpus')
    p.add_argument(
      '--out',
      type=str,
      default=None,
      help='Output directory (defaults to QABUILD_OUT_DIR or .)',
    )
    if name == 'train':
      p.add_argument(
        '--seed', type=int, default=None, help='RNG seed (defaults to QABUILD_SEED)'
      )
    p.add_argument(
      '--report', action='store_true', help='Also render a split composition report'
    )
    p.add_argument(
      '--quiet', action='store_true', help='Disable per-event stdout logs'
    )
    p.set_defaults(func=func)

  e = sub.add_parser('eval', help='Evaluation stub: report inputs')
  e.add_argument('infile', type=str, help='SQuAD-style JSON corpus')
  e.add_argument('idfile', type=str, help='File with one example id per line')
  e.set_defaults(func=cmd_eval)

  c = sub.add_parser('check', help='Report misaligned answer spans')
  c.add_argument('infile', type=str, help='Corpus or split JSON file')
  c.add_argument(
    '--limit', type=int, default=20, help='Maximum mismatches to print'
  )
  c.set_defaults(func=cmd_check)

  v = sub.add_parser('version', help='Print the version')
  v.set_defaults(func=cmd_version)
  return ap


def main(argv: Sequence[str] | None = None) -> int:
  """Entry point for qabuild CLI."""
  argv = list(sys.argv[1:] if argv is None else argv)
  if not argv or argv[0] not in COMMANDS:
    # Unknown commands are not an error
    print(USAGE_HINT)
    return 0
  args = _parser().parse_args(argv)
  try:
    return args.func(args)
  except (QabuildError, OSError, ValueError) as e:
    print(f'qabuild: error: {e}', file=sys.stderr)
    return 1


if __name__ == '__main__':
  sys.exit(main())
