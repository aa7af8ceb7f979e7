"""
Prompts for the Clarity analyses and the mind map generator
"""

import json
from typing import Iterable, List, Optional

from clarity.models import AnalysisResult, Message

ANALYSIS_TYPES = {
    'summary': {
        'label': 'Summary',
        'icon': '📝',
        'description': 'Concise overview of the conversation',
    },
    'sentiment': {
        'label': 'Sentiment',
        'icon': '💭',
        'description': 'Emotional tone and mood analysis',
    },
    'insights': {
        'label': 'Key Insights',
        'icon': '💡',
        'description': 'Important takeaways and learnings',
    },
    'actions': {
        'label': 'Action Items',
        'icon': '✅',
        'description': 'Extracted tasks and TODOs',
    },
    'qna': {
        'label': 'Q&A Pairs',
        'icon': '❓',
        'description': 'Structured question-answer format',
    },
    'learn': {
        'label': 'Learn Mode',
        'icon': '📚',
        'description': 'Educational points and concepts',
    },
    'decisions': {
        'label': 'Decisions',
        'icon': '⚖️',
        'description': 'Key choices and decisions discussed',
    },
    'topics': {
        'label': 'Topics',
        'icon': '🏷️',
        'description': 'Main themes and categories',
    },
}

ANALYSIS_TYPE_KEYS = list(ANALYSIS_TYPES.keys())

DEFAULT_SELECTED_TYPES = ['summary', 'insights', 'actions']

SYSTEM_PROMPT = """You are an expert analyst helping users understand their ChatGPT conversations. Provide clear, structured, and insightful analysis. Use markdown formatting for better readability."""

SUMMARY_PROMPT = """Analyze this ChatGPT conversation{title_context} and provide a comprehensive summary.

Include:
- Main topic(s) discussed
- Key points covered
- Important conclusions or outcomes
- Brief overview of the conversation flow

Keep it concise but informative.

CONVERSATION:
{conversation}"""

SENTIMENT_PROMPT = """Analyze the emotional tone and sentiment of this ChatGPT conversation{title_context}.

Include:
- Overall sentiment (positive/negative/neutral)
- Emotional progression throughout the conversation
- User's apparent mood or concerns
- Any frustrations or satisfactions expressed
- Tone of the assistant's responses

CONVERSATION:
{conversation}"""

INSIGHTS_PROMPT = """Extract the most valuable insights from this ChatGPT conversation{title_context}.

Focus on:
- Key learnings and takeaways
- Novel ideas or perspectives discovered
- Important facts or information revealed
- Aha moments or breakthroughs
- Practical knowledge gained

Present as bullet points with clear explanations.

CONVERSATION:
{conversation}"""

ACTIONS_PROMPT = """Identify all action items and tasks from this ChatGPT conversation{title_context}.

Extract:
- Specific tasks mentioned
- Follow-up actions needed
- Recommendations to implement
- Decisions requiring action
- Next steps discussed

Format as a clear, actionable checklist.

CONVERSATION:
{conversation}"""

QNA_PROMPT = """Convert this ChatGPT conversation{title_context} into a structured Q&A format.

Create:
- Clear, standalone questions
- Comprehensive answers
- Group related Q&As together
- Highlight the most important exchanges

Make each Q&A pair self-contained and useful.

CONVERSATION:
{conversation}"""

LEARN_PROMPT = """Analyze this ChatGPT conversation{title_context} from an educational perspective.

Identify:
- Concepts explained or explored
- Learning moments and explanations
- Topics that could be studied further
- Skills or knowledge demonstrated
- Educational value of the conversation

Format as study notes or learning points.

CONVERSATION:
{conversation}"""

DECISIONS_PROMPT = """Analyze the decision-making aspects of this ChatGPT conversation{title_context}.

Extract:
- Key decisions discussed
- Options or alternatives considered
- Pros and cons mentioned
- Final choices made
- Reasoning behind decisions
- Pending decisions requiring more thought

CONVERSATION:
{conversation}"""

TOPICS_PROMPT = """Identify and categorize all topics discussed in this ChatGPT conversation{title_context}.

Provide:
- Main themes and categories
- Sub-topics under each theme
- How topics relate to each other
- Topic coverage depth (brief mention vs. deep dive)
- Suggested related topics for exploration

CONVERSATION:
{conversation}"""

ANALYSIS_PROMPTS = {
    'summary': SUMMARY_PROMPT,
    'sentiment': SENTIMENT_PROMPT,
    'insights': INSIGHTS_PROMPT,
    'actions': ACTIONS_PROMPT,
    'qna': QNA_PROMPT,
    'learn': LEARN_PROMPT,
    'decisions': DECISIONS_PROMPT,
    'topics': TOPICS_PROMPT,
}


def get_label(analysis_type: str) -> str:
    """Display label for an analysis type"""
    info = ANALYSIS_TYPES.get(analysis_type)
    return info['label'] if info else analysis_type


def build_analysis_prompt(analysis_type: str, conversation: str, title: Optional[str] = None) -> str:
    """
    Build the user prompt for one analysis type

    Unknown types fall back to the summary template. The same arguments always
    produce the same prompt.
    """
    template = ANALYSIS_PROMPTS.get(analysis_type, SUMMARY_PROMPT)
    title_context = f' titled "{title}"' if title else ''
    return template.format(title_context=title_context, conversation=conversation)


def format_conversation(messages: Iterable[Message]) -> str:
    """Render messages as [ROLE]: content blocks for the analysis prompt"""
    return "\n\n".join(f"[{message.role.upper()}]: {message.content}" for message in messages)


MINDMAP_PROMPT = """You are a mind map designer. Turn the analyses of a ChatGPT conversation into a mind map.

RULES:
1. Create exactly one node of type "central" holding the conversation title
2. Create one "main" node per analysis and connect it from the central node
3. Add "sub", "action" or "insight" nodes for the most important points (3-5 per main node)
4. Use "action" for tasks and next steps, "insight" for learnings, "sub" for everything else
5. Keep labels under 6 words; put detail in "description"
6. Every edge must connect two node ids that exist

OUTPUT FORMAT (JSON only, no other text):
{
    "nodes": [
        {"id": "central", "label": "...", "type": "central", "icon": "🧠"},
        {"id": "summary", "label": "Summary", "type": "main", "icon": "📝", "color": "#667eea", "description": "..."}
    ],
    "edges": [
        {"id": "e-central-summary", "source": "central", "target": "summary", "label": "..."}
    ]
}"""


def build_mindmap_prompt(results: List[AnalysisResult], title: str) -> str:
    """User message for the mind map generator"""
    sections = []
    for result in results:
        sections.append(f"### {get_label(result.type)} ({result.type})\n{result.content.strip()}")
    analyses = "\n\n".join(sections)
    return f"CONVERSATION TITLE: {json.dumps(title)}\n\nANALYSES:\n\n{analyses}"
