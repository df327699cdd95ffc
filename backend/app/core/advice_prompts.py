"""Prompt templates for screenshot-based PC operation advice.

There are exactly two templates. ``select_context`` picks one at the call
boundary; ``compose_prompt`` renders it.
"""

from dataclasses import dataclass, field

from app.config import settings
from app.models.advice import GoalContext, HistoryEntry

PLAIN_ADVICE_PROMPT = """あなたはPC操作のサポート係です。ユーザーのスクリーンショットと質問を見て、以下の形式で回答してください：

## 状況要約
[スクリーンショットから読み取れる状況を簡潔に説明]

## 原因候補（優先順）
1. [最も可能性が高い原因]
2. [次に考えられる原因]
3. [その他の原因]

## すぐ試せる手順
1. [具体的な操作手順1]
2. [具体的な操作手順2]
3. [具体的な操作手順3]

## 追加で確認したい情報
- [確認すべき設定やログなど]
- [その他、問題解決に役立つ情報]

必ず上記の構造で回答し、ユーザーが即座に行動できる具体的な手順を提供してください。"""


GOAL_DIRECTED_ADVICE_PROMPT = """あなたはPC操作のサポート係です。ユーザーのスクリーンショットと質問を見て、以下の形式で回答してください：

## 状況要約
[スクリーンショットから読み取れる状況を簡潔に説明]

## 次のステップ（優先順）
1. [まず最初にやるべきこと]
2. [その次にやるべきこと]
3. [さらに必要なこと]

## 具体的な操作手順
**重要: 画面に表示されている要素（ボタン名、リンク、入力欄など）を具体的に指定してください**

1. **[操作1]**
   - 画面の[位置]にある「[ボタン/リンク名]」をクリック
   - または、[入力欄の名前]に「[入力する値]」を入力

2. **[操作2]**
   - [具体的な要素名]を探して[操作]

3. **[操作3]**
   - [詳細な手順]

## 注意点・ヒント
- [気をつけるべきこと]
- [うまくいかない場合の対処法]
- [見落としがちなポイント]

**画面上の要素を具体的に指示すること！** 例：
- 「右上の『設定』ボタンをクリック」
- 「API Key という欄に、取得したキーを貼り付け」
- 「画面下部の青い『保存』ボタンを押す」

必ず上記の構造で回答し、ユーザーが迷わず操作できるよう、画面に見える要素を具体的に指示してください。"""

GOAL_REMINDER = "ユーザーの最終目標を常に意識して、そこに向かって進むためのアドバイスをしてください。"


@dataclass(frozen=True)
class PlainContext:
    """No goal and no history: quick Q&A."""


@dataclass(frozen=True)
class GoalDirectedContext:
    """Goal and/or conversation history supplied."""

    goal: GoalContext | None = None
    history: tuple[HistoryEntry, ...] = field(default_factory=tuple)


PromptContext = PlainContext | GoalDirectedContext


def select_context(
    goal: GoalContext | None = None,
    history: list[HistoryEntry] | None = None,
) -> PromptContext:
    """Choose the template once: goal-directed if either goal or history was supplied."""
    if goal is None and history is None:
        return PlainContext()

    turns = settings.history_context_turns
    recent = tuple(history[-turns:]) if history and turns > 0 else ()
    return GoalDirectedContext(goal=goal, history=recent)


def _format_goal(goal: GoalContext) -> str:
    lines = [
        "【ユーザーの目標】",
        f"- 目標: {goal.objective}",
        f"- 現在の状況: {goal.current_status}",
    ]
    if goal.deadline:
        lines.append(f"- 期限: {goal.deadline}")
    return "\n".join(lines)


def _format_history(history: tuple[HistoryEntry, ...]) -> str:
    lines = ["【これまでの会話】"]
    for i, entry in enumerate(history, start=1):
        lines.append(f"{i}. ユーザー: {entry.question}")
        lines.append(f"   アシスタント: {entry.answer}")
    return "\n".join(lines)


def compose_prompt(question: str, context: PromptContext) -> str:
    """Render the instruction text sent alongside the screenshot."""
    if isinstance(context, PlainContext):
        return f"{PLAIN_ADVICE_PROMPT}\n\nユーザーの質問: {question}"

    sections: list[str] = []
    if context.goal is not None:
        sections.append(_format_goal(context.goal))
    if context.history:
        sections.append(_format_history(context.history))

    body = GOAL_DIRECTED_ADVICE_PROMPT
    if context.goal is not None:
        body += f"\n\n{GOAL_REMINDER}"
    sections.append(body)
    sections.append(f"ユーザーの質問: {question}")

    return "\n\n".join(sections)
