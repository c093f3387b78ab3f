"""
Prompt templates for study-guide, mock-interview and answer-review generation.

The JSON shapes spelled out here are the contract with models.py: field names
must match the camelCase aliases there.
"""

from typing import Dict, List

# Item counts requested at each compaction level (0 = full, 2 = smallest)
INTERVIEW_QUESTION_COUNTS = {0: "8-10", 1: "6", 2: "5"}
GUIDE_MODULE_COUNTS = {0: "3-4", 1: "3", 2: "2"}
GUIDE_QUIZ_COUNTS = {0: "3", 1: "2", 2: "2"}
GUIDE_INTERVIEW_COUNTS = {0: "6-8", 1: "5", 2: "4"}

STRICT_JSON_SUFFIX = """

Output must be a single-line JSON object. Escape any newlines as \\n and any quotes inside strings.
Do not include trailing commas or comments. Do not wrap the JSON in code fences."""


def _level(compaction_level: int) -> int:
    return max(0, min(2, compaction_level))


def build_interview_prompt(strict_json: bool, compaction_level: int) -> str:
    """System prompt for a mock-interview session at the given strictness/compaction."""
    question_count = INTERVIEW_QUESTION_COUNTS[_level(compaction_level)]
    prompt = f"""You are a senior interviewer. Return ONLY valid JSON.
Use this exact structure:
{{
  "jobTitle": "string",
  "questions": ["string", "string", "string"]
}}
Generate {question_count} short-answer interview questions tailored to the role.
Include exactly 5 technical questions based on the job description's required tools/stack.
The rest can be experience, leadership, or problem-solving questions.
Technical questions should be concrete (e.g., if React is required, ask about useMemo, hydration vs render, state management tradeoffs).
Avoid trivia or syntax-only questions."""
    if strict_json:
        prompt += STRICT_JSON_SUFFIX
    return prompt


def build_course_guide_prompt(strict_json: bool, compaction_level: int) -> str:
    """System prompt for a study guide with per-module quizzes."""
    level = _level(compaction_level)
    prompt = f"""You are a curriculum designer. Given a user prompt, return a SHORT structured JSON study guide
in a Coursera-like style plus a mock interview. Return ONLY valid JSON, no markdown, no explanation.
Use this exact structure:
{{
  "jobTitle": "string",
  "overview": "string",
  "modules": [
    {{
      "title": "string",
      "description": "string",
      "lessons": ["string"],
      "resources": ["string - book, article, or course recommendation"],
      "quiz": [
        {{
          "question": "string",
          "options": ["string", "string", "string", "string"],
          "correctIndex": 0,
          "explanation": "string"
        }}
      ]
    }}
  ],
  "mockInterviewQuestions": ["string", "string", "string"]
}}
Generate {GUIDE_MODULE_COUNTS[level]} modules, each with {GUIDE_QUIZ_COUNTS[level]} quiz questions, and {GUIDE_INTERVIEW_COUNTS[level]} interview questions.
Every quiz question has exactly 4 options; correctIndex is the 0-based index of the correct option."""
    if level > 0:
        prompt += "\nKeep descriptions to one sentence and list at most 2 lessons and 2 resources per module."
    if strict_json:
        prompt += STRICT_JSON_SUFFIX
    return prompt


REVIEW_SYSTEM_PROMPT = """You are a technical interviewer. Review the candidate's answer and provide constructive feedback.
Return ONLY valid JSON, no markdown, no explanation. Use this exact structure:
{
  "summary": "string",
  "strengths": ["string", "string", "string"],
  "improvements": ["string", "string", "string"],
  "score": "string (0-10)"
}
Keep the summary to 2-4 sentences. Strengths and improvements should be concrete and actionable."""

IDEAL_ANSWER_SYSTEM_PROMPT = """You are a senior interviewer. Provide an ideal, concise answer to the question.
Return ONLY valid JSON, no markdown, no explanation. Use this exact structure:
{ "answer": "string" }
Keep the answer under 180 words. Use clear, practical language."""


def build_messages(system_prompt: str, user_content: str) -> List[Dict[str, str]]:
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_content},
    ]
