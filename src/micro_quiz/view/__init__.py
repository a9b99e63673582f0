from .quiz import QuestionView, TakeQuizApp

__all__ = ["QuestionView", "TakeQuizApp"]
