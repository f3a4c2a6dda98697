"""Prompt templates for question generation.

This module contains the prompts sent to the generative text service: the
main quiz question prompt and the secondary prompt that asks for wrong
answers to a multiple-choice question. All builders are pure functions.
"""

from typing import Dict, List, Sequence

from ..models import DifficultyLevel, GenerationParameters, SessionQuestion

# Number of previous questions forwarded into the prompt
RECENT_QUESTION_WINDOW = 10

SYSTEM_PROMPT = (
    "You are an expert quiz master with access to accurate, up-to-date "
    "information. Generate a single quiz question and its answer."
)

LANGUAGE_INSTRUCTIONS: Dict[str, str] = {
    "english": "Generate the question and answer in English language.",
    "en": "Generate the question and answer in English language.",
    "bulgarian": (
        "Generate the question and answer in Bulgarian language. "
        "Use proper Bulgarian Cyrillic characters and grammar."
    ),
    "bg": (
        "Generate the question and answer in Bulgarian language. "
        "Use proper Bulgarian Cyrillic characters and grammar."
    ),
}

RANDOM_CATEGORY_INSTRUCTION = (
    "Choose any widely-known general knowledge topic from areas like "
    "geography, history, science, literature, arts, sports, or current events."
)

DIFFICULTY_INSTRUCTIONS: Dict[DifficultyLevel, str] = {
    DifficultyLevel.EASY: """Make this an EASY question that most people would know. Use basic, well-known facts that are:
- Commonly taught in elementary or high school
- Widely known in popular culture
- Basic geographical locations (capitals, famous landmarks)
- Simple historical events or dates
- Fundamental scientific concepts""",
    DifficultyLevel.MEDIUM: """Make this a MEDIUM difficulty question that requires some general knowledge and thinking. It should be:
- Challenging but not impossible for an educated person
- More than basic facts but not requiring specialized expertise
- Encouraging critical thinking or making connections
- Accessible to someone with good general knowledge
- Engaging and educational without being frustrating""",
    DifficultyLevel.HARD: """Make this a HARD question that requires specialized knowledge or expertise. Include:
- Advanced technical or scientific concepts
- Obscure historical details or lesser-known events
- Specialized terminology or professional knowledge
- Complex relationships between concepts
- Details that require deep study or research to know""",
}

# Keyword lists matched against the lower-cased category
GEOGRAPHY_KEYWORDS = (
    "geography",
    "geographic",
    "bulgaria",
    "смолян",
    "mountain",
    "peak",
)
HISTORY_KEYWORDS = ("history", "historical")
SCIENCE_KEYWORDS = ("science", "scientific", "physics", "chemistry", "biology")

GEOGRAPHY_FACT_CHECK = """FACT-CHECKING FOR GEOGRAPHY:
- For Bulgarian geography: Verify all mountain peaks, heights, and locations
- For Smolyan region: The highest peak near Smolyan is Perelik (2,191m), NOT Snezhanka
- Snezhanka is near Pamporovo but is NOT the highest peak in the Smolyan area
- Always verify geographical facts against reliable sources
- Double-check all numerical data (heights, distances, populations)
- Confirm current political boundaries and country names"""

HISTORY_FACT_CHECK = """FACT-CHECKING FOR HISTORY:
- Verify all dates, names, and historical events
- Ensure chronological accuracy and cause-effect relationships
- Cross-reference multiple historical sources
- Avoid disputed historical interpretations
- Confirm spelling of historical figures and places"""

SCIENCE_FACT_CHECK = """FACT-CHECKING FOR SCIENCE:
- Verify all scientific facts, figures, and formulas
- Ensure laws and theories are correctly stated
- Use current scientific understanding and discoveries
- Double-check units of measurement and calculations
- Avoid outdated scientific information"""

GENERAL_FACT_CHECK = """FACT-CHECKING:
- Verify all facts before including them in the question
- Use reliable, authoritative sources for verification
- Avoid outdated, disputed, or controversial information
- Double-check numerical data and proper names
- Ensure information is current and accurate"""

CRITICAL_REQUIREMENTS = """CRITICAL REQUIREMENTS:
- The answer must be 100% factually correct and verifiable
- For geographic questions, double-check all facts (heights, locations, names)
- Avoid controversial or ambiguous topics
- Make the question engaging and educational
- Ensure the question is unique and not repetitive"""

OUTPUT_FORMAT_TEMPLATE = """IMPORTANT: Respond ONLY with a valid JSON object in this exact format:
{{
  "question": "Your generated question here",
  "answer": "The correct answer here",
  "category": "The category of the question",
  "difficulty": "{difficulty}"
}}

Do not include any other text, explanations, or formatting outside the JSON object."""

DISTRACTOR_DIFFICULTY_INSTRUCTIONS: Dict[DifficultyLevel, str] = {
    DifficultyLevel.EASY: "Make the wrong answers obviously incorrect but still plausible.",
    DifficultyLevel.MEDIUM: (
        "Make the wrong answers plausible but clearly distinguishable "
        "from the correct answer."
    ),
    DifficultyLevel.HARD: (
        "Make the wrong answers very plausible and similar to the correct answer."
    ),
}


def get_language_instruction(language: str) -> str:
    """Get the language directive for the prompt.

    Args:
        language: Target language name or code

    Returns:
        Language instruction; unlisted languages are requested by name
    """
    key = (language or "").strip().lower()
    if not key:
        return LANGUAGE_INSTRUCTIONS["english"]
    if key in LANGUAGE_INSTRUCTIONS:
        return LANGUAGE_INSTRUCTIONS[key]
    return f"Generate the question and answer in {language.strip()} language."


def get_category_instruction(params: GenerationParameters) -> str:
    """Get the topic directive for the prompt."""
    if params.is_random_category:
        return RANDOM_CATEGORY_INSTRUCTION
    return (
        f"Generate a question about the category: {params.category}. "
        "Stay focused on this topic while ensuring the question is "
        "interesting and educational."
    )


def get_difficulty_instruction(difficulty: DifficultyLevel) -> str:
    """Get the knowledge-depth paragraph for a difficulty level."""
    return DIFFICULTY_INSTRUCTIONS[DifficultyLevel(difficulty)]


def get_fact_checking_instruction(category: str) -> str:
    """Select the fact-checking addendum by keyword-matching the category.

    Args:
        category: The requested category (or "random")

    Returns:
        Domain-specific fact-checking hints, or the generic addendum
    """
    lower_category = (category or "").lower()

    if any(keyword in lower_category for keyword in GEOGRAPHY_KEYWORDS):
        return GEOGRAPHY_FACT_CHECK
    if any(keyword in lower_category for keyword in HISTORY_KEYWORDS):
        return HISTORY_FACT_CHECK
    if any(keyword in lower_category for keyword in SCIENCE_KEYWORDS):
        return SCIENCE_FACT_CHECK
    return GENERAL_FACT_CHECK


def select_recent_questions(
    previous_questions: Sequence[SessionQuestion],
    limit: int = RECENT_QUESTION_WINDOW,
) -> List[SessionQuestion]:
    """Return at most the ``limit`` most recent questions, oldest first."""
    if limit <= 0:
        return []
    return list(previous_questions)[-limit:]


def get_previous_questions_context(
    previous_questions: Sequence[SessionQuestion],
    limit: int = RECENT_QUESTION_WINDOW,
) -> str:
    """Build the duplicate-avoidance clause.

    Args:
        previous_questions: Questions already asked in this session
        limit: Maximum number of questions to list

    Returns:
        Clause listing recent questions verbatim, or "" when there are none
    """
    recent = select_recent_questions(previous_questions, limit)
    if not recent:
        return ""

    listing = "\n".join(
        f"{index}. {question.question_text}"
        for index, question in enumerate(recent, start=1)
    )
    return (
        "IMPORTANT: Do NOT repeat any of these recently asked questions. "
        f"Generate something completely different:\n{listing}"
    )


def build_prompt(
    params: GenerationParameters,
    recent_window: int = RECENT_QUESTION_WINDOW,
) -> str:
    """Build the complete question generation prompt.

    Sections appear in a fixed order: persona, language, category,
    difficulty, fact-checking, duplicate avoidance, requirements and the
    strict JSON output format.

    Args:
        params: Generation parameters including session history
        recent_window: Maximum number of previous questions to list

    Returns:
        Prompt string
    """
    sections = [
        SYSTEM_PROMPT,
        get_language_instruction(params.language),
        get_category_instruction(params),
        get_difficulty_instruction(params.difficulty),
        get_fact_checking_instruction(params.category),
        get_previous_questions_context(params.previous_questions, recent_window),
        CRITICAL_REQUIREMENTS,
        OUTPUT_FORMAT_TEMPLATE.format(difficulty=params.difficulty.value),
    ]
    return "\n\n".join(section for section in sections if section)


def build_distractor_prompt(
    question: str,
    correct_answer: str,
    count: int,
    difficulty: DifficultyLevel,
) -> str:
    """Build the prompt asking for wrong answers to a question.

    Args:
        question: The question text
        correct_answer: The correct answer
        count: Number of wrong answers wanted
        difficulty: Controls how close the wrong answers should be

    Returns:
        Prompt string
    """
    difficulty_instruction = DISTRACTOR_DIFFICULTY_INSTRUCTIONS[
        DifficultyLevel(difficulty)
    ]
    return f"""Generate {count} incorrect but plausible answers for this multiple choice question.

Question: {question}
Correct Answer: {correct_answer}

Requirements:
- {difficulty_instruction}
- Each wrong answer should be on a separate line
- Make them the same format/length as the correct answer
- Don't number them or add extra text
- Make them factually wrong but believable
- Avoid obviously ridiculous answers

Wrong answers:"""
