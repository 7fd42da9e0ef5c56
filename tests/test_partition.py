import random
from collections import Counter

import pytest

from qabuild.corpus import span_mismatches
from qabuild.data import Answers, Example
from qabuild.partition import (
  SAMPLE_SPACE,
  append_split,
  challenge_split,
  clean_split,
  prepend_example,
  twoway_split,
)

BASE = Example(
  title='T',
  context='Paris is the capital. It is large.',
  question='What is the capital?',
  answers=Answers(text=('Paris',), answer_start=(0,)),
)
VARIANT = Example(
  title='T',
  context='Paris is the capital. It is large. Rome is also a capital.',
  question='What is the capital?',
  answers=Answers(text=('Paris',), answer_start=(0,)),
)


class ScriptedRng:
  """Random source that replays fixed draws."""

  def __init__(self, *draws: int) -> None:
    self.draws = list(draws)
    self.calls: list[int] = []

  def randrange(self, n: int) -> int:
    self.calls.append(n)
    return self.draws.pop(0)


class Sink:
  def __init__(self) -> None:
    self.records: list[dict] = []

  def log(self, record: dict) -> None:
    self.records.append(record)


def scenario() -> dict[str, Example]:
  return {'Q1': BASE, 'Q1-high-conf': VARIANT}


def big_corpus(n: int) -> dict[str, Example]:
  corpus = {}
  for i in range(n):
    corpus[f'q{i}'] = BASE
    corpus[f'q{i}-high-conf'] = VARIANT
  return corpus


def test_clean_keeps_only_base_ids():
  corpus = {**scenario(), 'Q2': BASE, 'Q3-low-conf': VARIANT}
  out = clean_split(corpus)
  assert list(out) == ['Q1', 'Q2']
  assert out['Q1'] is BASE


def test_challenge_keeps_full_variant_ids():
  corpus = {**scenario(), 'Q1-low-conf': BASE, 'Q2': BASE}
  sink = Sink()
  out = challenge_split(corpus, logger=sink)
  assert set(out) == {'Q1-high-conf', 'Q1-low-conf'}
  assert out['Q1-high-conf'] is VARIANT
  assert sink.records[0]['counts'] == {'clean': 2, 'challenge': 2}


def test_rules_do_not_mutate_corpus():
  corpus = scenario()
  before = dict(corpus)
  for rule in (clean_split, challenge_split):
    rule(corpus)
  append_split(corpus, rng=random.Random(1))
  twoway_split(corpus, rng=random.Random(1))
  assert corpus == before


@pytest.mark.parametrize(
  'draw, expected', [(0, BASE), (26008, BASE), (26009, VARIANT), (69807, VARIANT)]
)
def test_append_thresholds(draw, expected):
  rng = ScriptedRng(draw)
  out = append_split(scenario(), rng=rng)
  assert out == {'Q1': expected}
  assert rng.calls == [SAMPLE_SPACE]


def test_append_keeps_base_without_high_conf_variant():
  corpus = {'Q1': BASE, 'Q2': VARIANT}
  rng = ScriptedRng()
  sink = Sink()
  out = append_split(corpus, rng=rng, logger=sink)
  assert out == corpus
  assert rng.calls == []
  assert sink.records == [
    {'event': 'split', 'rule': 'append', 'counts': {'clean': 2}, 'size': 2}
  ]


def test_variant_without_base_is_skipped():
  corpus = {'Q9-high-conf': VARIANT, 'Q1': BASE}
  sink = Sink()
  out = twoway_split(corpus, rng=ScriptedRng(), logger=sink)
  assert out == {'Q1': BASE}
  assert sink.records[0]['counts'] == {'clean': 1}


def test_later_variant_overwrites_earlier():
  other = Example('T', 'Paris is the capital. It is large. Oslo.', 'q', BASE.answers)
  corpus = {'Q1': BASE, 'Q1-high-conf': VARIANT, 'Q1-other': other}
  out = append_split(corpus, rng=ScriptedRng(50000, 50000))
  assert out == {'Q1': other}


@pytest.mark.parametrize(
  'draw, category',
  [
    (0, 'clean'),
    (11338, 'clean'),
    (11339, 'appended'),
    (40468, 'appended'),
    (40469, 'prepended'),
    (69807, 'prepended'),
  ],
)
def test_twoway_thresholds(draw, category):
  sink = Sink()
  out = twoway_split(scenario(), rng=ScriptedRng(draw), logger=sink)
  assert sink.records[0]['counts'] == {category: 1}
  if category == 'clean':
    assert out['Q1'] is BASE
  elif category == 'appended':
    assert out['Q1'] is VARIANT
  else:
    assert out['Q1'].context.startswith('Rome is also a capital. ')


def test_twoway_prepend_scenario():
  out = twoway_split(scenario(), rng=ScriptedRng(60000))
  ex = out['Q1']
  prefix = 'Rome is also a capital. '
  assert ex.context == 'Rome is also a capital. Paris is the capital. It is large.'
  assert ex.answers.answer_start == (len(prefix),) == (24,)
  assert ex.answers.text == ('Paris',)
  assert ex.title == 'T'
  assert ex.question == BASE.question


def test_prepend_shifts_every_answer():
  base = Example(
    title='Cities',
    context='Zürich lies on a lake. Bern is the seat.',
    question='Which city is the seat?',
    answers=Answers(text=('Bern', 'Bern is the seat'), answer_start=(23, 23)),
  )
  variant = Example(
    title='Cities',
    context=base.context + '  Genève hosts the UN.\n',
    question=base.question,
    answers=base.answers,
  )
  ex = prepend_example(variant, base)
  prefix = 'Genève hosts the UN. '
  assert ex.context == prefix + base.context
  for old, new in zip(base.answers.answer_start, ex.answers.answer_start):
    assert new - old == len(prefix)
  assert list(span_mismatches([('x', ex)])) == []


def test_append_ratio_converges():
  corpus = big_corpus(20000)
  sink = Sink()
  out = append_split(corpus, rng=random.Random(7), logger=sink)
  assert len(out) == 20000
  assert all(v is BASE or v is VARIANT for v in out.values())
  counts = sink.records[0]['counts']
  assert counts['clean'] + counts['appended'] == 20000
  assert counts['clean'] / 20000 == pytest.approx(26009 / 69808, abs=0.015)


def test_twoway_ratio_converges():
  corpus = big_corpus(20000)
  out = twoway_split(corpus, rng=random.Random(11))
  kinds = Counter(
    'clean' if v is BASE else 'appended' if v is VARIANT else 'prepended'
    for v in out.values()
  )
  assert kinds['clean'] / 20000 == pytest.approx(11339 / 69808, abs=0.015)
  assert kinds['appended'] / 20000 == pytest.approx(29130 / 69808, abs=0.015)
  assert kinds['prepended'] / 20000 == pytest.approx(29339 / 69808, abs=0.015)


def test_seeded_runs_are_deterministic():
  corpus = big_corpus(200)
  a = twoway_split(corpus, rng=random.Random(3))
  b = twoway_split(corpus, rng=random.Random(3))
  assert a == b
