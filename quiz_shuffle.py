"""
Quiz option shuffling.

Models tend to put the correct option first. After a study guide is parsed,
every quiz question's options are permuted uniformly at random and the
correct index is remapped so it still points at the same option text.
"""

import random
from typing import List, Optional

from models import CourseGuide, CourseModule, QuizQuestion


def shuffle_question(question: QuizQuestion, rng: Optional[random.Random] = None) -> QuizQuestion:
    """Return a copy of question with shuffled options (unchanged if unshufflable)."""
    options = question.options
    if not options or not 0 <= question.correct_index < len(options):
        return question

    rng = rng or random.Random()
    permutation: List[int] = list(range(len(options)))
    rng.shuffle(permutation)

    shuffled = [options[source] for source in permutation]
    new_correct = permutation.index(question.correct_index)
    return question.model_copy(update={"options": shuffled, "correct_index": new_correct})


def shuffle_quiz_options(guide: CourseGuide, rng: Optional[random.Random] = None) -> CourseGuide:
    """Shuffle the options of every quiz question in the guide. The input is not mutated."""
    rng = rng or random.Random()
    modules: List[CourseModule] = []
    for module in guide.modules:
        quiz = [shuffle_question(question, rng) for question in module.quiz]
        modules.append(module.model_copy(update={"quiz": quiz}))
    return guide.model_copy(update={"modules": modules})
