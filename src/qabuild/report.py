"""Split composition reports.

Turns the per-rule category counts gathered during a run into a JSON summary,
a Markdown table, and a stacked bar chart.
"""

import json
import os

import pandas as pd
import matplotlib.pyplot as plt
from tabulate import tabulate

from .partition import (
  APPEND_CLEAN_CUTOFF,
  SAMPLE_SPACE,
  TWOWAY_APPEND_CUTOFF,
  TWOWAY_CLEAN_CUTOFF,
)

CATEGORIES: tuple[str, ...] = ('clean', 'appended', 'prepended', 'challenge')

# Share of adversarial draws each randomized rule aims for
EXPECTED_MIX: dict[str, dict[str, float]] = {
  'append': {
    'clean': APPEND_CLEAN_CUTOFF / SAMPLE_SPACE,
    'appended': (SAMPLE_SPACE - APPEND_CLEAN_CUTOFF) / SAMPLE_SPACE,
  },
  'twoway': {
    'clean': TWOWAY_CLEAN_CUTOFF / SAMPLE_SPACE,
    'appended': (TWOWAY_APPEND_CUTOFF - TWOWAY_CLEAN_CUTOFF) / SAMPLE_SPACE,
    'prepended': (SAMPLE_SPACE - TWOWAY_APPEND_CUTOFF) / SAMPLE_SPACE,
  },
}


def summary_frame(summaries: dict[str, dict[str, int]]) -> pd.DataFrame:
  """One row per rule, one column per category, plus a total."""
  rows = []
  for rule, counts in summaries.items():
    row = {'rule': rule}
    for c in CATEGORIES:
      row[c] = int(counts.get(c, 0))
    row['total'] = sum(row[c] for c in CATEGORIES)
    rows.append(row)
  return pd.DataFrame(rows, columns=['rule', *CATEGORIES, 'total'])


def _expected_table() -> str:
  rows = [
    [rule, cat, f'{share:.3f}']
    for rule, mix in EXPECTED_MIX.items()
    for cat, share in mix.items()
  ]
  return tabulate(
    rows, headers=['rule', 'category', 'expected share'], tablefmt='github'
  )


def render_split_report(
  summaries: dict[str, dict[str, int]], out_dir: str, basename: str = 'splits'
) -> dict[str, str]:
  """Write summary JSON, Markdown report, and chart for one run.

  Files written:
    summary_{basename}.json
    report_{basename}.md
    split_counts_{basename}.png
  """
  os.makedirs(out_dir, exist_ok=True)
  paths = {
    'summary': os.path.join(out_dir, f'summary_{basename}.json'),
    'markdown': os.path.join(out_dir, f'report_{basename}.md'),
    'chart': os.path.join(out_dir, f'split_counts_{basename}.png'),
  }
  with open(paths['summary'], 'w', encoding='utf-8') as f:
    json.dump(summaries, f, indent=2)

  df = summary_frame(summaries)
  # Stacked bars, one per rule
  fig, ax = plt.subplots()
  bottom = [0] * len(df)
  for c in CATEGORIES:
    values = df[c].tolist()
    if not any(values):
      continue
    ax.bar(df['rule'], values, bottom=bottom, label=c)
    bottom = [b + v for b, v in zip(bottom, values)]
  ax.set_ylabel('Examples')
  ax.set_title('Split composition')
  ax.legend()
  fig.tight_layout()
  fig.savefig(paths['chart'], dpi=160)
  plt.close(fig)

  shares = df.copy()
  for c in CATEGORIES:
    shares[c] = (df[c] / df['total'].where(df['total'] > 0)).fillna(0.0)
  lines = ['# Split Report\n']
  lines.append(f'**Run:** {basename}\n')
  lines.append('## Counts\n')
  lines.append(df.to_markdown(index=False))
  lines.append('\n## Shares\n')
  lines.append(
    shares.drop(columns=['total']).to_markdown(index=False, floatfmt='.3f')
  )
  lines.append('\n## Expected mixture\n')
  lines.append(_expected_table())
  lines.append(f'\n![Split composition](split_counts_{basename}.png)\n')
  with open(paths['markdown'], 'w', encoding='utf-8') as f:
    f.write('\n'.join(lines))
  return paths
