"""Finder catalog — score axes and preset questions per finder.

A "finder" is one flavour of the exploration tool. All finders share the
same pipeline; they differ only in what the LLM is asked to score and in
the example questions offered to the user.
"""

from pydantic import BaseModel


class ScoreAxis(BaseModel):
    """One evaluation axis. Scores are integers on a 1-5 scale."""

    key: str
    label: str
    description: str
    default_weight: int  # 0-100


class PresetQuestion(BaseModel):
    label: str
    question: str


class FinderSettings(BaseModel):
    id: str
    name: str
    description: str
    explore_label: str   # e.g. 「勝ち筋探索」
    result_label: str    # e.g. 「勝ち筋」
    score_axes: list[ScoreAxis]
    preset_questions: list[PresetQuestion] = []


DEFAULT_FINDER_ID = "winning-strategy"

_WINNING_STRATEGY = FinderSettings(
    id="winning-strategy",
    name="勝ち筋ファインダー",
    description="AIの力を借りて企業の「勝ち筋」を探索するツール",
    explore_label="勝ち筋探索",
    result_label="勝ち筋",
    score_axes=[
        ScoreAxis(key="revenuePotential", label="収益ポテンシャル", description="期待される収益規模", default_weight=30),
        ScoreAxis(key="timeToRevenue", label="収益化までの距離", description="収益化までの期間", default_weight=20),
        ScoreAxis(key="competitiveAdvantage", label="勝ち筋の強さ", description="競争優位性の程度", default_weight=20),
        ScoreAxis(key="executionFeasibility", label="実行可能性", description="実現のしやすさ", default_weight=15),
        ScoreAxis(key="hqContribution", label="本社貢献", description="グループ全体への貢献", default_weight=10),
        ScoreAxis(key="mergerSynergy", label="合併シナジー", description="統合効果の大きさ", default_weight=5),
    ],
    preset_questions=[
        PresetQuestion(label="生成AI", question="生成AIで業務効率化・新サービス創出するには？"),
        PresetQuestion(label="RAG構築", question="社内ナレッジをRAG化して、誰でもAIに質問できる環境を作るには？"),
        PresetQuestion(label="自動化", question="業務自動化（RPA・AI）で人的リソースを最適化するには？"),
        PresetQuestion(label="データ分析", question="データ分析で意思決定の質を向上させるには？"),
        PresetQuestion(label="属人化解消", question="ベテランの暗黙知をシステム化して属人化を解消するには？"),
        PresetQuestion(label="新規事業", question="既存の強みを活かした新規事業は何か？"),
        PresetQuestion(label="サブスク", question="サブスクリプション型収益モデルを導入するには？"),
        PresetQuestion(label="脱炭素", question="脱炭素化支援で新たな収益源を作るには？"),
    ],
)

_DEFENSIVE_DX = FinderSettings(
    id="defensive-dx",
    name="自社開発AIアプリファインダー",
    description="内製開発で実現可能な「守りのDX」施策を発見するツール",
    explore_label="DX施策探索",
    result_label="DX施策",
    score_axes=[
        ScoreAxis(key="costReduction", label="コスト削減効果", description="年間コスト削減額の見込み", default_weight=25),
        ScoreAxis(key="implementationEase", label="実装容易性", description="内製チームでの実現しやすさ", default_weight=25),
        ScoreAxis(key="riskMitigation", label="リスク低減", description="業務リスク・障害リスクの軽減度", default_weight=20),
        ScoreAxis(key="efficiencyGain", label="業務効率化", description="工数削減・処理速度向上の程度", default_weight=15),
        ScoreAxis(key="employeeSatisfaction", label="従業員満足度", description="働きやすさへの貢献", default_weight=10),
        ScoreAxis(key="scalability", label="スケーラビリティ", description="他部門・他業務への展開可能性", default_weight=5),
    ],
    preset_questions=[
        PresetQuestion(label="ペーパーレス", question="紙の申請書・帳票をデジタル化するには？"),
        PresetQuestion(label="承認フロー", question="承認プロセスを効率化・自動化するには？"),
        PresetQuestion(label="入力自動化", question="手入力作業を自動化・削減するには？"),
        PresetQuestion(label="レポート自動化", question="定期レポート作成を自動化するには？"),
        PresetQuestion(label="ナレッジ共有", question="社内ナレッジを効果的に共有・活用するには？"),
        PresetQuestion(label="経費精算", question="経費精算プロセスを効率化するには？"),
    ],
)

_TALENT = FinderSettings(
    id="talent",
    name="人材ファインダー",
    description="採用すべき人材像を明確化するツール",
    explore_label="人材像探索",
    result_label="人材像",
    score_axes=[
        ScoreAxis(key="skillMatch", label="スキルマッチ度", description="必要スキルとの適合度", default_weight=25),
        ScoreAxis(key="growthPotential", label="成長可能性", description="育成による伸びしろ", default_weight=20),
        ScoreAxis(key="cultureFit", label="組織適合性", description="企業文化との相性", default_weight=20),
        ScoreAxis(key="futureValue", label="将来性", description="中長期的な価値創出期待", default_weight=15),
        ScoreAxis(key="immediateImpact", label="即戦力度", description="入社後すぐに貢献できる度合い", default_weight=15),
        ScoreAxis(key="costEfficiency", label="コスト効率", description="採用・育成コスト対効果", default_weight=5),
    ],
    preset_questions=[
        PresetQuestion(label="エンジニア", question="どのようなスキルセットのエンジニアを採用すべきか？"),
        PresetQuestion(label="DX人材", question="DX推進に必要な人材像とは？"),
        PresetQuestion(label="リーダー候補", question="次世代リーダー候補に必要な素養は？"),
        PresetQuestion(label="中途採用", question="中途採用で優先すべき経験・スキルは？"),
    ],
)

FINDER_SETTINGS: dict[str, FinderSettings] = {
    f.id: f for f in (_WINNING_STRATEGY, _DEFENSIVE_DX, _TALENT)
}


def get_finder_settings(finder_id: str | None) -> FinderSettings:
    """Return the settings for ``finder_id``, falling back to the winning-strategy finder."""
    if finder_id and finder_id in FINDER_SETTINGS:
        return FINDER_SETTINGS[finder_id]
    return FINDER_SETTINGS[DEFAULT_FINDER_ID]


def get_default_weights(finder_id: str | None) -> dict[str, int]:
    return {axis.key: axis.default_weight for axis in get_finder_settings(finder_id).score_axes}


def get_score_labels(finder_id: str | None) -> dict[str, str]:
    return {axis.key: axis.label for axis in get_finder_settings(finder_id).score_axes}
