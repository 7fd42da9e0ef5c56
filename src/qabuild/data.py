"""Core data structures for qabuild.

Defines the schema for answers, examples, and the id scheme that ties
adversarial variants back to their clean question.
"""

from dataclasses import dataclass

HIGH_CONF_SUFFIX = '-high-conf'


@dataclass(frozen=True)
class Answers:
  """Parallel answer texts and their character offsets in the context."""

  text: tuple[str, ...] = ()
  answer_start: tuple[int, ...] = ()

  def __post_init__(self) -> None:
    if len(self.text) != len(self.answer_start):
      raise ValueError(
        f'answers out of step: {len(self.text)} texts, '
        f'{len(self.answer_start)} offsets'
      )


@dataclass(frozen=True)
class Example:
  """One question over one passage.

  Examples from the same passage share their title and context strings.
  """

  title: str
  context: str
  question: str
  answers: Answers


Corpus = dict[str, Example]
Split = dict[str, Example]


def is_variant_id(example_id: str) -> bool:
  """Return True for adversarial variant ids like `abc-high-conf`."""
  return '-' in example_id


def base_id(example_id: str) -> str:
  """Strip any variant suffix from an id."""
  return example_id.split('-', 1)[0]
