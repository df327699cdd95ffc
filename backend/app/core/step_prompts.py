"""
Prompt template and fallback steps for breaking a goal down into tasks.
"""

from app.models.steps import ParsedStep

STEP_GENERATION_PROMPT = """あなたは目標達成のサポートアシスタントです。以下の目標を達成するための詳細で具体的なステップを作成してください。

【目標】
{goal_title}

{description_block}【重要な指示】
1. まず、Google検索で「{goal_title}」について調べてください
2. 公式サイト、チュートリアル、ダウンロードページを探してください
3. 検索結果を基に、以下の観点で具体的なステップ（5-10個）を作成してください：
   - 公式サイトや公式ドキュメントのURL
   - 具体的なダウンロード方法やインストール手順
   - 初期設定や環境構築の方法
   - 簡単な使い方や実践例
   - 具体的なツール名、サービス名、技術名
4. ステップは時系列順に並べ、初心者でもわかる表現を使ってください

【出力形式】
以下のJSON配列のみを出力してください。説明文やコードブロック記号（```）は含めないでください:
[
  {{
    "title": "公式サイトにアクセス",
    "description": "https://example.com にアクセスして、ダウンロードページを開く"
  }},
  {{
    "title": "ダウンロードとインストール",
    "description": "インストーラーをダウンロードし、実行してセットアップを完了する"
  }}
]"""


FALLBACK_STEPS: tuple[ParsedStep, ...] = (
    ParsedStep(title="目標の詳細を確認", description="何が必要かを調べる"),
    ParsedStep(title="準備を始める", description="必要なものを揃える"),
    ParsedStep(title="実行する", description="実際に作業を進める"),
    ParsedStep(title="完了を確認", description="目標が達成できたか確認"),
)


def build_step_generation_prompt(goal_title: str, description: str | None = None) -> str:
    """
    Build the search-grounded prompt for decomposing a goal.

    Args:
        goal_title: Short title of the goal
        description: Optional details or the user's current situation

    Returns:
        Formatted prompt string
    """
    description_block = f"【詳細】\n{description}\n\n" if description else ""
    return STEP_GENERATION_PROMPT.format(
        goal_title=goal_title,
        description_block=description_block,
    )
