from typing import Optional

from app.schemas.test_paper import TestContentRequest

# ============================================
# SYSTEM MESSAGES
# ============================================

LAYOUT_SYSTEM_MESSAGE = """You are an expert layout designer specializing in creating test papers that fit within one or two pages.

OUTPUT FORMAT:
   • Return ONLY valid JSON
   • NO markdown formatting (no ```json```)
   • NO additional text or explanations outside JSON
"""

GUESS_PAPER_SYSTEM_MESSAGE = """You are an expert educator specializing in generating guess paper templates for students.

OUTPUT FORMAT:
   • Return ONLY valid JSON
   • NO markdown formatting (no ```json```)
   • NO additional text or explanations outside JSON
"""


# ============================================
# SHARED CONTEXT
# ============================================


def _format_dimension(value: Optional[float], unit: str) -> str:
    if value is None:
        return "not specified"
    return f"{value:g}{unit}"


def get_test_content_context(request: TestContentRequest) -> str:
    lines = [
        f"Test Title: {request.title}",
        f"Instructions: {request.instructions or 'None'}",
        "Sections:",
    ]
    for section in request.sections:
        lines.append(f"Section Title: {section.title}")
        lines.append("Questions:")
        lines.extend(f"- {question}" for question in section.questions)

    lines.extend(
        [
            f"Font Size: {request.font_size:g}px",
            f"Page Width: {request.page_width_px}px",
            f"Page Height: {request.page_height_px}px",
            f"Page Width (cm, optional): {_format_dimension(request.page_width_cm, 'cm')}",
            f"Page Height (cm, optional): {_format_dimension(request.page_height_cm, 'cm')}",
        ]
    )
    return "\n".join(lines)


# ============================================
# TEST LAYOUT PROMPTS
# ============================================


def get_structure_test_prompt(request: TestContentRequest) -> str:
    return f"""Given the following test paper content and settings, arrange it so it fits within the specified page dimensions.
Group the questions into clear sections, tidy the wording of section titles, and keep every question.

{get_test_content_context(request)}

Return JSON in EXACTLY this structure:
{{
  "testTitle": "Title of the test",
  "sections": [
    {{
      "title": "Section title",
      "questions": ["Question text", "..."],
      "answers": ["Short model answer for each question, same order", "..."]
    }}
  ]
}}

RULES:
1. Do NOT drop any question.
2. Do NOT number the questions; numbering is added when the paper is printed.
3. "answers" must have one entry per question, in the same order.
"""


def get_optimize_layout_prompt(request: TestContentRequest) -> str:
    return f"""Given the following test paper content and settings, optimize the layout to ensure it fits within the specified page dimensions.
Consider adjusting spacing, font sizes, and section arrangements to achieve the most efficient use of space while maintaining readability.

{get_test_content_context(request)}

Return JSON in EXACTLY this structure:
{{
  "optimizedLayout": "The optimized layout of the test paper as plain text"
}}
"""


# ============================================
# GUESS PAPER PROMPTS
# ============================================


def get_guess_paper_prompt(subject: str, difficulty: str) -> str:
    return f"""Generate a guess paper template for the subject of {subject} with a difficulty level of {difficulty}.

The guess paper template should include multiple sections, each with a title, a list of questions, and a list of corresponding answers.
Make sure the questions and answers are appropriate for the specified subject and difficulty level.

Return JSON in EXACTLY this structure:
{{
  "title": "Title of the guess paper",
  "introduction": "Introduction of the guess paper",
  "sections": [
    {{
      "title": "Section title",
      "questions": ["Question text", "..."],
      "answers": ["Answer to each question, same order", "..."]
    }}
  ]
}}
"""
