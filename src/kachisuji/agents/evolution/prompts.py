"""Prompts for the strategy evolution agent."""

from kachisuji.schemas.evolution import EvolveMode
from kachisuji.schemas.finder import FinderSettings

MODE_INSTRUCTIONS: dict[str, str] = {
    "mutation": (
        "【mutation: 一部を変える】元の戦略の要素（対象顧客・提供価値・チャネル・収益モデルなど）"
        "を一つだけ変え、より強い案にしてください。"
    ),
    "crossover": (
        "【crossover: 組み合わせる】2つ以上の元戦略を組み合わせ、"
        "互いの弱点を補う新しい案を作ってください。sourceStrategiesには組み合わせた戦略名を全て入れてください。"
    ),
    "refutation": (
        "【refutation: 逆から考える】元戦略が失敗するシナリオを想定し、"
        "その前提を覆す・リスクを潰す案を作ってください。"
    ),
}

_SYSTEM_TEMPLATE = """\
あなたは戦略進化エージェントです。
ユーザーが採用した戦略や高スコアの戦略を「親」として、より優れた{result_label}を生み出します。

## 進化の方法
{modes}

## 評価軸
各案を以下の軸で 1〜5 の整数で採点してください（5が最高）。
{axes}

## 出力形式
必ず以下のJSON形式で回答してください：
{{
  "strategies": [
    {{
      "name": "進化した{result_label}名",
      "reason": "なぜこれが有望か",
      "howToObtain": "具体的なアクション",
      "metrics": "成功を測る指標例",
      "sourceStrategies": ["元になった戦略名"],
      "evolveType": "{evolve_types}",
      "improvement": "元戦略から何が改善されたか",
      "scores": {{{score_keys}}}
    }}
  ],
  "thinkingProcess": "どのように進化させたか"
}}

{count_hint}"""

USER_TEMPLATE = """\
## 元になる戦略
{sources}

## 社内資料・外部情報（RAG）
{rag_context}

上記の戦略を進化させてください。"""


def build_system_prompt(mode: EvolveMode, finder: FinderSettings) -> str:
    allowed = sorted(mode.allowed_types())
    modes = "\n".join(MODE_INSTRUCTIONS[m] for m in ("mutation", "crossover", "refutation") if m in allowed)
    axes = "\n".join(f"- {a.key}（{a.label}）: {a.description}" for a in finder.score_axes)
    score_keys = ", ".join(f'"{a.key}": 1-5' for a in finder.score_axes)
    if mode is EvolveMode.ALL:
        count_hint = "各進化方法につき2〜3件、合計6〜9件を生成してください。"
    else:
        count_hint = "3〜5件を生成してください。"
    return _SYSTEM_TEMPLATE.format(
        result_label=finder.result_label,
        modes=modes,
        axes=axes,
        evolve_types="|".join(allowed),
        score_keys=score_keys,
        count_hint=count_hint,
    )
