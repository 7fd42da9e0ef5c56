"""Corpus loading and split writing.

Reads the nested SQuAD schema (or a flattened split written by this module)
into an id -> Example mapping, and writes splits back as five parallel
arrays under a top-level `data` key.
"""

import json
import os
import tempfile
from collections.abc import Iterable, Iterator
from typing import Any

from .data import Answers, Corpus, Example, Split


class QabuildError(Exception):
  """Base class for qabuild failures."""


class ParseError(QabuildError):
  """Input JSON is missing a required field or has the wrong type."""

  def __init__(self, message: str, path: str = '') -> None:
    self.path = path
    super().__init__(f'{path}: {message}' if path else message)


_SPLIT_COLUMNS = ('title', 'context', 'question', 'id', 'answers')


def _field(obj: Any, key: str, kind: type, path: str) -> Any:
  """Fetch `obj[key]` and check its type, raising ParseError otherwise."""
  if not isinstance(obj, dict):
    raise ParseError('expected an object', path)
  where = f'{path}.{key}' if path else key
  if key not in obj:
    raise ParseError('missing required field', where)
  value = obj[key]
  # bool is an int subclass; offsets must be real integers
  if kind is int and isinstance(value, bool):
    raise ParseError('expected int, got bool', where)
  if not isinstance(value, kind):
    raise ParseError(
      f'expected {kind.__name__}, got {type(value).__name__}', where
    )
  return value


def _parse_nested(data: list, corpus: Corpus) -> None:
  """Walk passage groups -> paragraphs -> qas."""
  for gi, group in enumerate(data):
    gpath = f'data[{gi}]'
    title = _field(group, 'title', str, gpath)
    paragraphs = _field(group, 'paragraphs', list, gpath)
    for pi, paragraph in enumerate(paragraphs):
      ppath = f'{gpath}.paragraphs[{pi}]'
      context = _field(paragraph, 'context', str, ppath)
      qas = _field(paragraph, 'qas', list, ppath)
      for qi, qa in enumerate(qas):
        qpath = f'{ppath}.qas[{qi}]'
        question = _field(qa, 'question', str, qpath)
        example_id = _field(qa, 'id', str, qpath)
        texts: list[str] = []
        starts: list[int] = []
        for ai, answer in enumerate(_field(qa, 'answers', list, qpath)):
          apath = f'{qpath}.answers[{ai}]'
          starts.append(_field(answer, 'answer_start', int, apath))
          texts.append(_field(answer, 'text', str, apath))
        corpus[example_id] = Example(
          title=title,
          context=context,
          question=question,
          answers=Answers(text=tuple(texts), answer_start=tuple(starts)),
        )


def _parse_flat(data: dict, corpus: Corpus) -> None:
  """Read the parallel-array layout produced by `flatten_split`."""
  columns = {c: _field(data, c, list, 'data') for c in _SPLIT_COLUMNS}
  lengths = {len(v) for v in columns.values()}
  if len(lengths) != 1:
    raise ParseError('parallel arrays differ in length', 'data')
  for i in range(lengths.pop()):
    row = {c: columns[c][i] for c in _SPLIT_COLUMNS}
    for c in ('title', 'context', 'question', 'id'):
      if not isinstance(row[c], str):
        raise ParseError(
          f'expected str, got {type(row[c]).__name__}', f'data.{c}[{i}]'
        )
    apath = f'data.answers[{i}]'
    texts = _field(row['answers'], 'text', list, apath)
    starts = _field(row['answers'], 'answer_start', list, apath)
    if len(texts) != len(starts):
      raise ParseError('text and answer_start differ in length', apath)
    for j, (t, s) in enumerate(zip(texts, starts)):
      if not isinstance(t, str):
        raise ParseError('expected str', f'{apath}.text[{j}]')
      if isinstance(s, bool) or not isinstance(s, int):
        raise ParseError('expected int', f'{apath}.answer_start[{j}]')
    corpus[row['id']] = Example(
      title=row['title'],
      context=row['context'],
      question=row['question'],
      answers=Answers(text=tuple(texts), answer_start=tuple(starts)),
    )


def parse_corpus(obj: Any) -> Corpus:
  """Build a corpus from decoded JSON.

  Accepts both the nested SQuAD layout (`data` is a list of passage groups)
  and the flattened split layout (`data` is an object of parallel arrays).
  Later duplicate ids overwrite earlier ones.
  """
  if not isinstance(obj, dict):
    raise ParseError('top level must be an object')
  if 'data' not in obj:
    raise ParseError('missing required field', 'data')
  data = obj['data']
  corpus: Corpus = {}
  if isinstance(data, list):
    _parse_nested(data, corpus)
  elif isinstance(data, dict):
    _parse_flat(data, corpus)
  else:
    raise ParseError(
      f'expected list or object, got {type(data).__name__}', 'data'
    )
  return corpus


def read_corpus(path: str) -> Corpus:
  """Load a corpus or split file from disk."""
  with open(path, 'r', encoding='utf-8') as f:
    try:
      obj = json.load(f)
    except json.JSONDecodeError as e:
      raise ParseError(f'invalid JSON: {e}', os.fspath(path)) from e
  return parse_corpus(obj)


def flatten_split(split: Split) -> dict[str, Any]:
  """Flatten a split into the `{"data": {...}}` parallel-array layout."""
  out: dict[str, list] = {c: [] for c in _SPLIT_COLUMNS}
  for example_id, ex in split.items():
    out['title'].append(ex.title)
    out['context'].append(ex.context)
    out['question'].append(ex.question)
    out['id'].append(example_id)
    out['answers'].append(
      {
        'text': list(ex.answers.text),
        'answer_start': list(ex.answers.answer_start),
      }
    )
  return {'data': out}


def _umask() -> int:
  """Current process umask (reading it requires setting it)."""
  mask = os.umask(0)
  os.umask(mask)
  return mask


def write_split(split: Split, path: str) -> None:
  """Serialize a split to `path`.

  The file is written next to its destination and renamed into place, so a
  failure never leaves a truncated split behind.
  """
  payload = flatten_split(split)
  parent = os.path.dirname(os.path.abspath(path))
  os.makedirs(parent, exist_ok=True)
  fd, tmp = tempfile.mkstemp(prefix='.qabuild-', suffix='.json', dir=parent)
  try:
    # mkstemp creates 0600; give the split the mode open() would
    os.chmod(tmp, 0o666 & ~_umask())
    with os.fdopen(fd, 'w', encoding='utf-8') as f:
      json.dump(payload, f, indent=2, ensure_ascii=False)
      f.write('\n')
    os.replace(tmp, path)
  except BaseException:
    if os.path.exists(tmp):
      os.unlink(tmp)
    raise


def span_mismatches(
  examples: Iterable[tuple[str, Example]],
) -> Iterator[tuple[str, int, str, str]]:
  """Yield (id, answer index, expected text, context slice) for bad spans."""
  for example_id, ex in examples:
    for i, (text, start) in enumerate(
      zip(ex.answers.text, ex.answers.answer_start)
    ):
      found = ex.context[start : start + len(text)]
      if start < 0 or found != text:
        yield example_id, i, text, found


def read_ids(path: str) -> list[str]:
  """Read one id per line, skipping blank lines."""
  with open(path, 'r', encoding='utf-8') as f:
    return [line.strip() for line in f if line.strip()]
