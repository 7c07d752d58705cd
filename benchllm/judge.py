"""
LLM-as-Judge quality scoring for a single candidate output.

The judge model scores 8 rubric dimensions from 1 to 5. Parsing is lenient:
malformed or partial responses degrade to neutral scores (3) and a failed
judge call returns a neutral score with the failure as reasoning.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from .client import ChatClient, ChatMessage, collect_text
from .errors import ConfigError, RunCancelled

DIMENSIONS = (
    "completeness",
    "structure",
    "accuracy",
    "engagement",
    "evidence_quality",
    "balance",
    "actionability",
    "depth",
)

DEFAULT_DIMENSION_SCORE = 3
DEFAULT_REASONING = "No detailed reasoning provided"
MAX_EVALUATION_CHARS = 8000


@dataclass(frozen=True)
class QualityScore:
    """Judge scores, each dimension 1 (poor) to 5 (excellent)."""
    completeness: int
    structure: int
    accuracy: int
    engagement: int
    evidence_quality: int
    balance: int
    actionability: int
    depth: int
    reasoning: str = DEFAULT_REASONING

    def __post_init__(self):
        for dim in DIMENSIONS:
            object.__setattr__(self, dim, clamp_score(getattr(self, dim)))

    @property
    def average(self) -> float:
        return sum(getattr(self, dim) for dim in DIMENSIONS) / len(DIMENSIONS)

    def dimensions(self) -> dict:
        return {dim: getattr(self, dim) for dim in DIMENSIONS}

    def to_dict(self) -> dict:
        return {
            **self.dimensions(),
            "average": round(self.average, 2),
            "reasoning": self.reasoning,
        }

    @classmethod
    def neutral(cls, reasoning: str = DEFAULT_REASONING) -> "QualityScore":
        return cls(**{dim: DEFAULT_DIMENSION_SCORE for dim in DIMENSIONS}, reasoning=reasoning)

    def __str__(self):
        return (
            f"Quality: {self.average:.1f}/5 (C:{self.completeness} S:{self.structure} "
            f"A:{self.accuracy} E:{self.engagement} Ev:{self.evidence_quality} "
            f"B:{self.balance} Ac:{self.actionability} D:{self.depth})"
        )


def clamp_score(value) -> int:
    try:
        score = int(value)
    except (TypeError, ValueError):
        return DEFAULT_DIMENSION_SCORE
    return max(1, min(5, score))


def _dimension_patterns(dimension: str) -> list[str]:
    key = dimension.replace("_", "[_ ]")
    return [
        rf"{key}\s*[:\-=]\s*(\d)",
        rf"{key}\s*\(?\s*(\d)\s*/\s*5\s*\)?",
        rf"\"?{key}\"?\s*:\s*(\d)",
    ]


REASONING_PATTERNS = [
    r"reasoning\s*[:\-=]\s*(.+?)(?=\n\n|$)",
    r"reasoning\s*[:\-=]\s*(.+)",
    r"\*\*reasoning\*\*\s*[:\-=]\s*(.+?)(?=\n\n|$)",
]


def extract_dimension(text: str, dimension: str) -> int:
    """First matching pattern wins; 3 when nothing matches."""
    for pattern in _dimension_patterns(dimension):
        match = re.search(pattern, text, re.IGNORECASE)
        if match:
            return clamp_score(match.group(1))
    return DEFAULT_DIMENSION_SCORE


def extract_reasoning(text: str) -> str:
    for pattern in REASONING_PATTERNS:
        match = re.search(pattern, text, re.IGNORECASE | re.DOTALL)
        if match:
            reasoning = re.sub(r"\n+$", "", match.group(1).strip()).strip()
            if reasoning:
                return reasoning
    return DEFAULT_REASONING


def parse_quality_response(text: Optional[str]) -> QualityScore:
    """Parse a judge response into a complete QualityScore. Never raises."""
    text = text or ""
    scores = {dim: extract_dimension(text, dim) for dim in DIMENSIONS}
    return QualityScore(**scores, reasoning=extract_reasoning(text))


def strip_status_footer(content: str) -> str:
    """Drop a trailing verification footer (a blank line then a ✓/✗ line onwards)."""
    return re.sub(r"\n\n[✓✗].*$", "", content, flags=re.DOTALL).strip()


def strip_agent_headers(content: str) -> str:
    """Replace '=== [Agent] ===' section headers with paragraph breaks."""
    return re.sub(r"\n*=== \[.*?\] ===\n*", "\n\n", content).strip()


def truncate(content: str, limit: int, marker: str) -> str:
    if len(content) <= limit:
        return content
    return content[:limit] + marker


class ContentEvaluator(ABC):
    """Anything that can score (prompt, content) pairs."""

    @abstractmethod
    def evaluate(self, prompt: str, content: str, cancel=None) -> QualityScore:
        pass


class RubricJudge(ContentEvaluator):
    """
    Base class for rubric-based judges.

    Subclasses supply the system prompt, the rubric template (with {prompt}
    and {content} placeholders) and optional content cleanup.
    """

    system_prompt: str = ""
    evaluation_template: str = ""
    truncation_marker: str = "\n\n[Content truncated for evaluation...]"

    def __init__(self, client: ChatClient, options: Optional[dict] = None):
        self.client = client
        self.options = options

    def clean(self, content: str) -> str:
        return strip_status_footer(content)

    def build_messages(self, prompt: str, content: str) -> list[ChatMessage]:
        cleaned = truncate(self.clean(content or ""), MAX_EVALUATION_CHARS, self.truncation_marker)
        user_prompt = self.evaluation_template.format(prompt=prompt, content=cleaned)
        return [
            ChatMessage("system", self.system_prompt),
            ChatMessage("user", user_prompt),
        ]

    def evaluate(self, prompt: str, content: str, cancel=None) -> QualityScore:
        """Score content. Judge call failures yield a neutral score."""
        if cancel is not None and cancel.is_set():
            raise RunCancelled()

        messages = self.build_messages(prompt, content)
        try:
            response_text = collect_text(self.client, messages, self.options)
        except Exception as e:
            return QualityScore.neutral(f"API call failed: {e}")

        return parse_quality_response(response_text)


QUALITY_SYSTEM_PROMPT = """You are an expert content evaluator assessing AI-generated educational and informational content.
Your role is to provide objective, consistent quality assessments using the scoring rubrics provided.
Be strict but fair - reserve 5s for truly exceptional content and 1s for content with serious deficiencies."""

RESPONSE_FORMAT = """Provide your scores and a brief justification. Format your response exactly as:

completeness: [1-5]
structure: [1-5]
accuracy: [1-5]
engagement: [1-5]
evidence_quality: [1-5]
balance: [1-5]
actionability: [1-5]
depth: [1-5]
reasoning: [{reasoning_hint}]"""

QUALITY_TEMPLATE = """Evaluate the following content written about: "{prompt}"

## Scoring Rubrics (1-5 scale)

**COMPLETENESS** - Does the content thoroughly cover the topic?
- 5: Comprehensive coverage of all key aspects, no significant gaps
- 4: Covers most important points with minor omissions
- 3: Addresses main topic but misses some relevant points
- 2: Superficial coverage, several important aspects missing
- 1: Severely incomplete, barely addresses the topic

**STRUCTURE** - Is the content well-organized and logical?
- 5: Excellent organization with clear flow, headings, and transitions
- 4: Good structure with minor flow issues
- 3: Adequate organization but could be clearer
- 2: Disorganized, hard to follow the progression
- 1: No discernible structure, chaotic presentation

**ACCURACY** - Is the information factually correct and reliable?
- 5: All claims are accurate, well-reasoned, no errors
- 4: Mostly accurate with very minor issues
- 3: Generally accurate but some questionable claims
- 2: Contains noticeable factual errors or misleading statements
- 1: Significantly inaccurate or contains harmful misinformation

**ENGAGEMENT** - Is the content readable and compelling?
- 5: Highly engaging, excellent writing quality, maintains interest throughout
- 4: Well-written and interesting with minor dull spots
- 3: Readable but somewhat dry or formulaic
- 2: Difficult to read, poorly written, or boring
- 1: Unreadable, confusing, or off-putting

**EVIDENCE_QUALITY** - Does the content use concrete evidence to support claims?
- 5: Rich with specific statistics, company examples, academic citations, case studies
- 4: Good evidence with several concrete examples and some data
- 3: Some evidence but mostly general claims without specifics
- 2: Few examples, vague references, lacks concrete data
- 1: No evidence, all claims unsupported or purely theoretical

**BALANCE** - Does the content address both benefits AND limitations/challenges?
- 5: Thoroughly discusses pros and cons, acknowledges trade-offs and challenges
- 4: Good balance with some acknowledgment of limitations
- 3: Mentions limitations briefly but mostly one-sided
- 2: Almost entirely one-sided, minimal acknowledgment of downsides
- 1: Completely one-sided, no mention of limitations or challenges

**ACTIONABILITY** - Does the content provide practical implementation guidance?
- 5: Clear step-by-step guidance, specific tips, implementation strategies
- 4: Good practical advice with some specific recommendations
- 3: Some practical elements but mostly theoretical discussion
- 2: Vague suggestions, lacks concrete actionable advice
- 1: Purely theoretical, no practical guidance whatsoever

**DEPTH** - Does the content provide deep analysis or just surface-level summary?
- 5: Deep analysis with nuanced insights, explores implications thoroughly
- 4: Good depth with meaningful analysis beyond basics
- 3: Moderate depth, covers basics well but lacks deeper exploration
- 2: Shallow treatment, skims surface of topics
- 1: Extremely superficial, barely scratches the surface

---

## Content to Evaluate

{content}

---

## Your Evaluation

""" + RESPONSE_FORMAT.format(reasoning_hint="2-3 sentences explaining key strengths and weaknesses")


class QualityJudge(RubricJudge):
    """Scores informational/educational content on the 8-dimension rubric."""

    system_prompt = QUALITY_SYSTEM_PROMPT
    evaluation_template = QUALITY_TEMPLATE

    def clean(self, content: str) -> str:
        return strip_agent_headers(strip_status_footer(content))


AGENT_TASK_SYSTEM_PROMPT = """You are an expert evaluator assessing AI agent task completion.
Your role is to determine if the agent successfully completed the requested task.
Focus on outcomes and correct tool usage, not writing quality.
Be strict - the task either succeeded or it didn't."""

AGENT_TASK_TEMPLATE = """Evaluate whether the AI agent successfully completed this task: "{prompt}"

## Scoring Rubrics (1-5 scale)

**COMPLETENESS** - Did the agent complete ALL steps of the task?
- 5: All required steps completed successfully
- 4: Most steps completed, minor omissions
- 3: Core task done but some steps skipped
- 2: Task partially completed, significant steps missing
- 1: Task not completed or wrong task performed

**STRUCTURE** - Did the agent follow a logical sequence of actions?
- 5: Optimal sequence, efficient tool usage
- 4: Good sequence with minor inefficiencies
- 3: Completed task but with unnecessary steps
- 2: Confusing sequence, redundant actions
- 1: Chaotic, illogical action sequence

**ACCURACY** - Did the agent make correct decisions and tool calls?
- 5: All decisions and parameters correct
- 4: Mostly correct with minor issues
- 3: Some incorrect choices but recovered
- 2: Multiple errors affecting outcome
- 1: Fundamentally wrong approach

**ENGAGEMENT** - Did the agent communicate clearly about its actions?
- 5: Clear, helpful communication throughout
- 4: Good communication with minor gaps
- 3: Adequate but could be clearer
- 2: Confusing or incomplete communication
- 1: Poor or misleading communication

**EVIDENCE_QUALITY** - Did the agent use data from tools correctly?
- 5: Correctly interpreted all tool responses
- 4: Good interpretation with minor issues
- 3: Some misinterpretation but functional
- 2: Significant misuse of tool data
- 1: Ignored or misunderstood tool responses

**BALANCE** - Did the agent handle the task appropriately (not over/under-doing)?
- 5: Perfect scope - did exactly what was needed
- 4: Appropriate scope with minor extras/omissions
- 3: Acceptable but scope could be better
- 2: Over-engineered or under-delivered
- 1: Completely wrong scope

**ACTIONABILITY** - Did the agent take concrete actions vs just talking?
- 5: All necessary actions taken, task completed
- 4: Most actions taken, task mostly complete
- 3: Some actions taken but incomplete execution
- 2: More talk than action, limited progress
- 1: No meaningful actions taken

**DEPTH** - Did the agent handle edge cases and details?
- 5: Handled all details and potential issues
- 4: Good detail handling with minor oversights
- 3: Basic handling, some details missed
- 2: Shallow execution, many details missed
- 1: No attention to details or edge cases

---

## Agent Output to Evaluate

{content}

---

## Your Evaluation

""" + RESPONSE_FORMAT.format(reasoning_hint="2-3 sentences explaining whether the task was completed successfully and any issues")


class AgentTaskJudge(RubricJudge):
    """Scores tool-use / multi-step agent runs on task completion."""

    system_prompt = AGENT_TASK_SYSTEM_PROMPT
    evaluation_template = AGENT_TASK_TEMPLATE
    truncation_marker = "\n\n[Output truncated for evaluation...]"


JUDGES = {
    "quality": QualityJudge,
    "agent-task": AgentTaskJudge,
}


def create_judge(kind: str, client: ChatClient, options: Optional[dict] = None) -> RubricJudge:
    """Build a judge by rubric name ("quality" or "agent-task")."""
    try:
        judge_cls = JUDGES[kind]
    except KeyError:
        raise ConfigError(f"Unknown judge rubric: {kind}. Available: {', '.join(JUDGES)}") from None
    return judge_cls(client, options)
