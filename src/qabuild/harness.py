"""Run orchestration for building splits.

Loads a corpus, computes every requested split in memory, then writes them.
Progress is reported through a tee logger that writes JSON lines to a file
and prints pretty console lines.
"""

import json
import os
import random
import sys
import time
from dataclasses import dataclass, field
from typing import Any

from .corpus import QabuildError, read_corpus, write_split
from .data import Corpus, Split
from .partition import RANDOMIZED, RULES

TRAIN_SPLITS: tuple[str, ...] = ('clean', 'append', 'twoway')
CHALLENGE_SPLITS: tuple[str, ...] = ('challenge',)

# Output filename per split, formatted with the input stem
OUTPUT_NAMES = {
  'clean': '{stem}-clean.json',
  'append': '{stem}-append.json',
  'twoway': '{stem}-twoway.json',
  'challenge': '{stem}Challenge.json',
}


@dataclass
class RunConfig:
  """Configuration for one split-building run."""

  out_dir: str = '.'
  seed: int | None = None
  log_path: str | None = None
  stdout_format: str = 'auto'
  verbose: bool = True
  report: bool = False


# SGR codes for console output
_ANSI = {'dim': '2', 'red': '31', 'green': '32', 'magenta': '35', 'cyan': '36'}

# Console glyph per event
_ICONS = {'split': '✂️ ', 'load': '📖', 'write': '💾', 'error': '💥'}


def _console_mode(stdout_format: str) -> tuple[bool, bool]:
  """Return (pretty, color) for the current stdout."""
  tty = sys.stdout.isatty()
  pretty = {'pretty': True, 'json': False}.get(stdout_format, tty)
  color = (
    pretty
    and tty
    and 'NO_COLOR' not in os.environ
    and os.environ.get('TERM', 'dumb') != 'dumb'
  )
  return pretty, color


def _elapsed(seconds: float) -> str:
  """`+07.25s` under a minute, `+3m05s` after."""
  if seconds < 60:
    return f'+{seconds:05.2f}s'
  return f'+{int(seconds) // 60}m{int(seconds) % 60:02d}s'


@dataclass(slots=True)
class RunLogger:
  """Tee logger: every event goes to the JSONL log file and to stdout.

  Stdout gets either the raw JSON line or a short human line, depending on
  `stdout_format` ("auto" picks pretty output for terminals). With
  `enabled=False` only the log file is written.
  """

  path: str | None
  enabled: bool = True
  stdout_format: str = 'auto'
  _fh: Any | None = field(init=False, default=None)
  _started: float = field(init=False, default_factory=time.monotonic)
  _seq: int = field(init=False, default=0)
  _pretty: bool = field(init=False, default=False)
  _color: bool = field(init=False, default=False)

  def __post_init__(self) -> None:
    self._pretty, self._color = _console_mode(self.stdout_format)
    if self.path:
      os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
      self._fh = open(self.path, 'a', encoding='utf-8')

  def log(self, record: dict[str, Any]) -> None:
    """Emit one record to file as JSONL and, unless quiet, to the console."""
    line_json = json.dumps(record, ensure_ascii=False)
    if self._fh:
      self._fh.write(line_json + '\n')
      self._fh.flush()
    if self.enabled:
      print(self._human(record) if self._pretty else line_json, flush=True)

  def close(self) -> None:
    """Close file handle if open."""
    if self._fh:
      self._fh.close()
      self._fh = None

  def _human(self, r: dict[str, Any]) -> str:
    """One console line: sequence number, elapsed time, icon, details."""
    self._seq += 1
    event = r.get('event')
    head = self._paint(
      f'{self._seq:04d} {_elapsed(time.monotonic() - self._started)}', 'dim'
    )
    icon = _ICONS.get(event, 'ℹ️ ')
    if event == 'split':
      body = self._split_summary(r)
    elif event == 'load':
      count = self._paint(str(r.get('examples', 0)), 'cyan', bold=True)
      body = f'{r.get("path", "-")}  {count} examples'
    elif event == 'write':
      path = self._paint(str(r.get('path', '-')), 'green')
      body = f'{path}  {r.get("rows", 0)} rows'
    elif event == 'error':
      label = self._paint('ERROR', 'red', bold=True)
      body = f'{label}  {self._paint(str(r.get("error", "?")), "red")}'
    else:
      body = json.dumps(r, ensure_ascii=False)
    return f'{head} {icon} {body}'

  def _split_summary(self, r: dict[str, Any]) -> str:
    """`append: clean_examples: 3, appended_examples: 5` style summary."""
    counts = r.get('counts', {})
    parts = ', '.join(f'{k}_examples: {v}' for k, v in counts.items())
    rule = self._paint(str(r.get('rule', '-')), 'magenta', bold=True)
    return f'{rule}: {parts or "no examples"}  ({r.get("size", 0)} rows)'

  def _paint(self, s: str, color: str, bold: bool = False) -> str:
    if not self._color:
      return s
    codes = (['1'] if bold else []) + [_ANSI[color]]
    return f'\033[{";".join(codes)}m{s}\033[0m'


@dataclass
class SplitTally:
  """Forwards events to a logger and keeps each rule's category counts."""

  logger: RunLogger | None = None
  counts: dict[str, dict[str, int]] = field(default_factory=dict)

  def log(self, record: dict[str, Any]) -> None:
    if record.get('event') == 'split':
      self.counts[record['rule']] = dict(record.get('counts', {}))
    if self.logger:
      self.logger.log(record)


def _rule_rng(name: str, seed: int | None) -> random.Random:
  """Independent random source per rule, derived from the run seed."""
  if seed is None:
    return random.Random()
  return random.Random(seed + list(RULES).index(name))


def build_splits(
  corpus: Corpus,
  names: tuple[str, ...],
  seed: int | None = None,
  logger: Any | None = None,
) -> dict[str, Split]:
  """Apply each named rule to the same read-only corpus."""
  splits: dict[str, Split] = {}
  for name in names:
    rule = RULES[name]
    if name in RANDOMIZED:
      splits[name] = rule(corpus, rng=_rule_rng(name, seed), logger=logger)
    else:
      splits[name] = rule(corpus, logger=logger)
  return splits


def output_path(infile: str, out_dir: str, name: str) -> str:
  """Destination for split `name` built from `infile`."""
  stem = os.path.splitext(os.path.basename(infile))[0]
  return os.path.join(out_dir, OUTPUT_NAMES[name].format(stem=stem))


def run_splits(
  infile: str, names: tuple[str, ...], cfg: RunConfig
) -> tuple[dict[str, str], dict[str, dict[str, int]]]:
  """Load `infile`, build `names`, and write one file per split.

  Every split is computed before the first file is written.

  Returns:
    (split name -> written path, rule name -> category counts)
  """
  logger = RunLogger(
    cfg.log_path, enabled=cfg.verbose, stdout_format=cfg.stdout_format
  )
  tally = SplitTally(logger)
  written: dict[str, str] = {}
  try:
    corpus = read_corpus(infile)
    logger.log({'event': 'load', 'path': infile, 'examples': len(corpus)})
    splits = build_splits(corpus, names, seed=cfg.seed, logger=tally)
    for name, split in splits.items():
      path = output_path(infile, cfg.out_dir, name)
      write_split(split, path)
      written[name] = path
      logger.log(
        {'event': 'write', 'split': name, 'path': path, 'rows': len(split)}
      )
  except (QabuildError, OSError) as e:
    logger.log({'event': 'error', 'path': infile, 'error': str(e)})
    raise
  finally:
    logger.close()
  return written, tally.counts
