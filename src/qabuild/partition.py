"""Partition rules that turn one corpus into training/evaluation splits.

Each rule reads the full corpus without modifying it and returns a new split.
Append and Twoway mix clean and adversarial examples with fixed empirical
ratios drawn from a caller-supplied random source; Clean and Challenge
partition purely by id shape.

Mixture (draws are uniform in [0, SAMPLE_SPACE)):
- append: clean < 26009 <= appended
- twoway: clean < 11339 <= appended < 40469 <= prepended
"""

import random
from collections import Counter
from collections.abc import Callable
from typing import Any, Protocol

from .data import (
  HIGH_CONF_SUFFIX,
  Answers,
  Corpus,
  Example,
  Split,
  base_id,
  is_variant_id,
)

SAMPLE_SPACE = 69808
APPEND_CLEAN_CUTOFF = 26009
TWOWAY_CLEAN_CUTOFF = 11339
TWOWAY_APPEND_CUTOFF = 40469


class EventSink(Protocol):
  def log(self, record: dict[str, Any]) -> None: ...


def _emit(
  logger: EventSink | None, rule: str, counts: Counter, size: int
) -> None:
  if logger is None:
    return
  logger.log(
    {'event': 'split', 'rule': rule, 'counts': dict(counts), 'size': size}
  )


def prepend_example(variant: Example, base: Example) -> Example:
  """Move the sentence appended in `variant` in front of `base`'s passage.

  The adversarial sentence is whatever follows the clean context inside the
  variant context. Every answer offset shifts by the length of the new
  prefix, so spans keep pointing at the same text.
  """
  prefix = variant.context[len(base.context) :].strip() + ' '
  offset = len(prefix)
  return Example(
    title=base.title,
    context=prefix + base.context,
    question=base.question,
    answers=Answers(
      text=base.answers.text,
      answer_start=tuple(s + offset for s in base.answers.answer_start),
    ),
  )


def clean_split(corpus: Corpus, logger: EventSink | None = None) -> Split:
  """Keep only unperturbed examples, keyed by their own id."""
  out: Split = {k: v for k, v in corpus.items() if not is_variant_id(k)}
  _emit(logger, 'clean', Counter(clean=len(out)), len(out))
  return out


def _mix(
  corpus: Corpus,
  rule: str,
  choose: Callable[[int, Example, Example], tuple[str, Example]],
  rng: random.Random,
  logger: EventSink | None,
) -> Split:
  """Shared walk for the randomized rules.

  A base id without a `-high-conf` variant is kept as-is. Each variant whose
  base is present gets one draw and `choose` picks what lands under the base
  id. Variants whose base is missing are skipped. Later variants of the same
  base overwrite earlier ones; sources carry at most one `-high-conf` variant
  per base, so this only matters for malformed corpora.
  """
  out: Split = {}
  counts: Counter = Counter()
  for k, v in corpus.items():
    if not is_variant_id(k):
      if k + HIGH_CONF_SUFFIX not in corpus:
        out[k] = v
        counts['clean'] += 1
      continue
    b = base_id(k)
    base = corpus.get(b)
    if base is None:
      continue
    category, chosen = choose(rng.randrange(SAMPLE_SPACE), v, base)
    out[b] = chosen
    counts[category] += 1
  _emit(logger, rule, counts, len(out))
  return out


def _choose_append(
  sample: int, variant: Example, base: Example
) -> tuple[str, Example]:
  if sample < APPEND_CLEAN_CUTOFF:
    return 'clean', base
  return 'appended', variant


def _choose_twoway(
  sample: int, variant: Example, base: Example
) -> tuple[str, Example]:
  if sample < TWOWAY_CLEAN_CUTOFF:
    return 'clean', base
  if sample < TWOWAY_APPEND_CUTOFF:
    return 'appended', variant
  return 'prepended', prepend_example(variant, base)


def append_split(
  corpus: Corpus,
  rng: random.Random | None = None,
  logger: EventSink | None = None,
) -> Split:
  """One row per base id: clean or adversarially appended."""
  return _mix(corpus, 'append', _choose_append, rng or random.Random(), logger)


def twoway_split(
  corpus: Corpus,
  rng: random.Random | None = None,
  logger: EventSink | None = None,
) -> Split:
  """One row per base id: clean, appended, or prepended."""
  return _mix(corpus, 'twoway', _choose_twoway, rng or random.Random(), logger)


def challenge_split(corpus: Corpus, logger: EventSink | None = None) -> Split:
  """Keep every adversarial variant under its full id; drop clean ids."""
  out: Split = {k: v for k, v in corpus.items() if is_variant_id(k)}
  counts = Counter(clean=len(corpus) - len(out), challenge=len(out))
  _emit(logger, 'challenge', counts, len(out))
  return out


# Rules that take a random source
RANDOMIZED = frozenset({'append', 'twoway'})

RULES: dict[str, Callable[..., Split]] = {
  'clean': clean_split,
  'append': append_split,
  'twoway': twoway_split,
  'challenge': challenge_split,
}
